"""
Mutation Gateway Test Suite

Every request goes to an httpx.MockTransport that records it.
"""

import base64
import json

import httpx
import pytest

from aduan.ingestion.feeds import Status
from aduan.reports.gateway import (
    ACTION_ADD,
    FormDraft,
    GatewayError,
    MutationGateway,
    UploadTooLarge,
    build_create_intent,
    build_delete_intent,
    build_update_intent,
)


SCRIPT_URL = "https://script.test/exec"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

class Recorder:
    def __init__(self, response: httpx.Response = None, error: Exception = None):
        self.requests: list[httpx.Request] = []
        self.response = response or httpx.Response(302, headers={"Location": "https://elsewhere.test"})
        self.error = error

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        return self.response

    def bodies(self) -> list[dict]:
        return [json.loads(r.content) for r in self.requests]


def make_gateway(recorder: Recorder, schema_version: int = 2) -> MutationGateway:
    client = httpx.Client(transport=httpx.MockTransport(recorder))
    return MutationGateway(client, script_url=SCRIPT_URL, schema_version=schema_version)


def make_draft() -> FormDraft:
    return FormDraft(teacher_name="Siti", location="Makmal", issue_description="Paip bocor")


# ---------------------------------------------------------------------------
# Form draft
# ---------------------------------------------------------------------------

class TestFormDraft:
    def test_attach_image_encodes_data_url(self):
        draft = make_draft()
        draft.attach_image("paip.png", "image/png", b"\x89PNG")
        assert draft.image_base64 == "data:image/png;base64," + base64.b64encode(b"\x89PNG").decode()
        assert draft.image_name == "paip.png"
        assert draft.mime_type == "image/png"
        assert draft.preview == b"\x89PNG"
        assert draft.has_image

    def test_oversize_rejected_and_draft_untouched(self):
        draft = make_draft()
        with pytest.raises(UploadTooLarge) as exc_info:
            draft.attach_image("big.jpg", "image/jpeg", b"x" * 11, max_bytes=10)
        assert exc_info.value.size == 11
        assert not draft.has_image
        assert draft.image_name == ""

    def test_exact_limit_accepted(self):
        draft = make_draft()
        draft.attach_image("ok.jpg", "image/jpeg", b"x" * 10, max_bytes=10)
        assert draft.has_image

    def test_missing_fields(self):
        draft = FormDraft(teacher_name="Siti", location="  ")
        assert draft.missing_fields() == ["location", "issue_description"]
        assert make_draft().missing_fields() == []


# ---------------------------------------------------------------------------
# Intents
# ---------------------------------------------------------------------------

class TestIntents:
    def test_create_intent_tagged(self):
        intent = build_create_intent(make_draft(), schema_version=2)
        assert intent["action"] == ACTION_ADD
        assert intent["namaGuru"] == "Siti"
        assert intent["tempat"] == "Makmal"
        assert intent["jenisKerosakan"] == "Paip bocor"

    def test_legacy_create_intent_has_no_action(self):
        intent = build_create_intent(make_draft(), schema_version=1)
        assert "action" not in intent
        assert intent["namaGuru"] == "Siti"

    def test_preview_bytes_never_sent(self):
        draft = make_draft()
        draft.attach_image("a.png", "image/png", b"abc")
        intent = build_create_intent(draft, schema_version=2)
        assert b"abc" not in json.dumps(intent).encode()
        assert "gambarPreview" not in intent

    def test_update_intent(self):
        assert build_update_intent("R1", Status.DONE) == {
            "action": "updateStatus", "id": "R1", "status": "Selesai",
        }

    def test_delete_intent(self):
        assert build_delete_intent("R1") == {"action": "deleteReport", "id": "R1"}


# ---------------------------------------------------------------------------
# Dispatch
# ---------------------------------------------------------------------------

class TestDispatch:
    def test_posts_plain_text_json(self):
        recorder = Recorder()
        make_gateway(recorder).update_status("R7", Status.IN_PROGRESS)
        request = recorder.requests[0]
        assert request.method == "POST"
        assert str(request.url) == SCRIPT_URL
        assert request.headers["content-type"] == "text/plain"
        assert recorder.bodies() == [{"action": "updateStatus", "id": "R7", "status": "Dalam Proses"}]

    def test_redirect_not_followed(self):
        recorder = Recorder()
        make_gateway(recorder).delete("R7")
        assert len(recorder.requests) == 1

    def test_server_error_is_not_observed(self):
        """The reply is never inspected; only delivery failures surface."""
        recorder = Recorder(response=httpx.Response(500, text="boom"))
        make_gateway(recorder).create(make_draft())
        assert recorder.bodies()[0]["action"] == "addReport"

    def test_legacy_gateway_omits_action(self):
        recorder = Recorder()
        make_gateway(recorder, schema_version=1).create(make_draft())
        assert "action" not in recorder.bodies()[0]

    def test_connection_failure_raises(self):
        recorder = Recorder(error=httpx.ConnectError("dns failure"))
        with pytest.raises(GatewayError) as exc_info:
            make_gateway(recorder).delete("R3")
        assert exc_info.value.action == "deleteReport"
        assert exc_info.value.report_id == "R3"

    def test_timeout_raises(self):
        recorder = Recorder(error=httpx.ConnectTimeout("slow"))
        with pytest.raises(GatewayError) as exc_info:
            make_gateway(recorder).create(make_draft())
        assert exc_info.value.reason == "request timed out"
