"""
Mutation gateway for the spreadsheet script endpoint.

The script endpoint is posted to without reading its answer: the body is
sent as text/plain JSON and neither the status nor the body of the reply
is looked at. The only failure a caller can see is that the request never
left (DNS, connection, timeout). Whether the sheet applied the change is
learned later from the feeds.
"""

from __future__ import annotations

import base64
import json
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

import httpx

from aduan import config
from aduan.ingestion.feeds import Status

logger = logging.getLogger(__name__)

ACTION_ADD = "addReport"
ACTION_UPDATE_STATUS = "updateStatus"
ACTION_DELETE = "deleteReport"

LEGACY_SCHEMA = 1


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


@dataclass
class GatewayError(Exception):
    """The intent could not be dispatched at all."""
    action: str
    reason: str
    report_id: Optional[str] = None

    def __str__(self) -> str:
        target = f" (report {self.report_id})" if self.report_id else ""
        return f"Could not send {self.action}{target}: {self.reason}"


@dataclass
class UploadTooLarge(Exception):
    """Rejected before any network activity."""
    filename: str
    size: int
    limit: int

    def __str__(self) -> str:
        limit_mb = self.limit / (1024 * 1024)
        return f"Image '{self.filename}' is too large. Maximum {limit_mb:.0f}MB."


# ---------------------------------------------------------------------------
# Form draft
# ---------------------------------------------------------------------------


@dataclass
class FormDraft:
    teacher_name: str = ""
    location: str = ""
    issue_description: str = ""
    image_base64: str = ""
    image_name: str = ""
    mime_type: str = ""
    # Raw bytes for the on-page preview only; never sent.
    preview: Optional[bytes] = field(default=None, repr=False)

    @property
    def has_image(self) -> bool:
        return bool(self.image_base64)

    def attach_image(
        self,
        filename: str,
        mime_type: str,
        data: bytes,
        max_bytes: Optional[int] = None,
    ) -> None:
        """Encode an image as a data URL for transport. Raises UploadTooLarge."""
        limit = config.MAX_UPLOAD_BYTES if max_bytes is None else max_bytes
        if len(data) > limit:
            raise UploadTooLarge(filename=filename, size=len(data), limit=limit)
        encoded = base64.b64encode(data).decode("ascii")
        self.image_base64 = f"data:{mime_type};base64,{encoded}"
        self.image_name = filename
        self.mime_type = mime_type
        self.preview = data

    def missing_fields(self) -> list[str]:
        required = {
            "teacher_name": self.teacher_name,
            "location": self.location,
            "issue_description": self.issue_description,
        }
        return [name for name, value in required.items() if not value.strip()]


# ---------------------------------------------------------------------------
# Intents
# ---------------------------------------------------------------------------


def build_create_intent(draft: FormDraft, schema_version: Optional[int] = None) -> dict[str, Any]:
    """Wire payload for a new report. Legacy scripts take the draft fields alone."""
    version = config.SCHEMA_VERSION if schema_version is None else schema_version
    intent: dict[str, Any] = {
        "namaGuru": draft.teacher_name,
        "tempat": draft.location,
        "jenisKerosakan": draft.issue_description,
        "gambarBase64": draft.image_base64,
        "gambarName": draft.image_name,
        "mimeType": draft.mime_type,
    }
    if version > LEGACY_SCHEMA:
        intent["action"] = ACTION_ADD
    return intent


def build_update_intent(report_id: str, status: Status) -> dict[str, Any]:
    return {"action": ACTION_UPDATE_STATUS, "id": report_id, "status": Status(status).value}


def build_delete_intent(report_id: str) -> dict[str, Any]:
    return {"action": ACTION_DELETE, "id": report_id}


# ---------------------------------------------------------------------------
# Dispatch
# ---------------------------------------------------------------------------


class MutationGateway:
    def __init__(
        self,
        client: httpx.Client,
        script_url: Optional[str] = None,
        schema_version: Optional[int] = None,
    ):
        self.client = client
        self.script_url = script_url or config.SCRIPT_URL
        self.schema_version = config.SCHEMA_VERSION if schema_version is None else schema_version

    def dispatch(self, intent: dict[str, Any]) -> datetime:
        """
        POST an intent and return when it was sent.

        The reply is deliberately ignored; a 4xx/5xx from the script is not
        an error here. Raises GatewayError only when the request could not
        be delivered.
        """
        action = intent.get("action", ACTION_ADD)
        report_id = intent.get("id")
        logger.info("[gateway] dispatching %s%s", action, f" for {report_id}" if report_id else "")
        try:
            self.client.post(
                self.script_url,
                content=json.dumps(intent),
                headers={"Content-Type": "text/plain"},
                follow_redirects=False,
            )
        except httpx.TimeoutException as e:
            logger.error("[gateway] timeout sending %s", action)
            raise GatewayError(action=action, reason="request timed out", report_id=report_id) from e
        except httpx.RequestError as e:
            logger.error("[gateway] request error sending %s: %s", action, e)
            raise GatewayError(action=action, reason=str(e), report_id=report_id) from e
        return datetime.now()

    def create(self, draft: FormDraft) -> datetime:
        return self.dispatch(build_create_intent(draft, self.schema_version))

    def update_status(self, report_id: str, status: Status) -> datetime:
        return self.dispatch(build_update_intent(report_id, status))

    def delete(self, report_id: str) -> datetime:
        return self.dispatch(build_delete_intent(report_id))
