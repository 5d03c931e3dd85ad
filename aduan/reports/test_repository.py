"""
Report Repository Test Suite

A fake spreadsheet backend serves both feeds and records posted intents.
Time comes from a controllable clock.
"""

import json
import threading
from datetime import datetime, timedelta

import httpx
import pytest

from aduan.ingestion.feeds import IMAGE_UPLOADING, NO_IMAGE, PENDING_ID, Status
from aduan.reports.gateway import FormDraft, GatewayError, MutationGateway
from aduan.reports.repository import (
    AdminRequired,
    PendingLedger,
    ReportRepository,
)


TEACHERS_URL = "https://sheets.test/teachers.csv"
REPORTS_URL = "https://sheets.test/reports.csv"
SCRIPT_URL = "https://script.test/exec"

HEADER = "ID,TARIKH,NAMA GURU,TEMPAT,JENIS KEROSAKAN,GAMBAR,STATUS"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

class FakeSheet:
    def __init__(self, rows: list[str], teachers: list[str] = None):
        self.rows = list(rows)
        self.teachers = teachers if teachers is not None else ["Siti", "Ali"]
        self.posted: list[dict] = []
        self.feed_status = 200
        self.dispatch_error: Exception = None
        self.feed_hits = 0

    def __call__(self, request: httpx.Request) -> httpx.Response:
        url = str(request.url)
        if request.method == "POST":
            if self.dispatch_error is not None:
                raise self.dispatch_error
            self.posted.append(json.loads(request.content))
            return httpx.Response(302, headers={"Location": "https://script.test/echo"})
        self.feed_hits += 1
        if self.feed_status != 200:
            return httpx.Response(self.feed_status)
        if url == TEACHERS_URL:
            lines = ["BIL,NAMA"] + [f"{i},{name}" for i, name in enumerate(self.teachers, 1)]
            return httpx.Response(200, text="\n".join(lines))
        if url == REPORTS_URL:
            return httpx.Response(200, text="\n".join([HEADER] + self.rows))
        return httpx.Response(404)


class Clock:
    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


START = datetime(2026, 3, 7, 9, 30)

ROWS = [
    "R001,2/25/2026,Siti,Makmal Sains,Paip bocor,,Selesai",
    'R002,3/3/2026,Ali,"Blok A, Tingkat 2",Kipas rosak,,',
]


def make_repo(sheet: FakeSheet, clock: Clock = None, deadline_seconds: int = 600) -> ReportRepository:
    client = httpx.Client(transport=httpx.MockTransport(sheet))
    clock = clock or Clock(START)
    return ReportRepository(
        client,
        gateway=MutationGateway(client, script_url=SCRIPT_URL, schema_version=2),
        teachers_url=TEACHERS_URL,
        reports_url=REPORTS_URL,
        ledger=PendingLedger(deadline_seconds=deadline_seconds),
        clock=clock,
    )


def make_draft(**overrides) -> FormDraft:
    fields = dict(teacher_name="Siti", location="Kantin", issue_description="Lampu padam")
    fields.update(overrides)
    return FormDraft(**fields)


# ---------------------------------------------------------------------------
# Refresh
# ---------------------------------------------------------------------------

class TestRefresh:
    def test_loads_reports_and_teachers(self):
        repo = make_repo(FakeSheet(ROWS))
        assert repo.refresh() is True
        assert repo.is_loaded
        assert [r.id for r in repo.reports] == ["R002", "R001"]
        assert repo.teachers == ["Ali", "Siti"]
        assert repo.reports[0].status is Status.NEW

    def test_refresh_twice_is_identical(self):
        repo = make_repo(FakeSheet(ROWS))
        repo.refresh()
        first = repo.reports
        repo.refresh()
        assert repo.reports == first

    def test_refresh_replaces_rather_than_merges(self):
        sheet = FakeSheet(ROWS)
        repo = make_repo(sheet)
        repo.refresh()
        sheet.rows = ["R003,4/3/2026,Ali,Kantin,Lampu,,"]
        repo.refresh()
        assert [r.id for r in repo.reports] == ["R003"]

    def test_feed_failure_leaves_collection_empty(self):
        sheet = FakeSheet(ROWS)
        sheet.feed_status = 503
        repo = make_repo(sheet)
        assert repo.refresh() is False
        assert repo.reports == []
        assert not repo.is_loaded
        assert repo.last_error is not None
        assert repo.last_error.status_code == 503

    def test_feed_failure_keeps_previous_collection(self):
        sheet = FakeSheet(ROWS)
        repo = make_repo(sheet)
        repo.refresh()
        sheet.feed_status = 500
        assert repo.refresh() is False
        assert len(repo.reports) == 2

    def test_overlapping_refresh_coalesces(self):
        sheet = FakeSheet(ROWS)
        repo = make_repo(sheet)
        entered = threading.Event()
        release = threading.Event()
        serve = sheet.__call__

        def slow(request):
            entered.set()
            release.wait(timeout=5)
            return serve(request)

        repo.client = httpx.Client(transport=httpx.MockTransport(slow))
        worker = threading.Thread(target=repo.refresh)
        worker.start()
        assert entered.wait(timeout=5)
        try:
            assert repo.is_refreshing
            assert repo.refresh() is False
        finally:
            release.set()
            worker.join(timeout=5)
        assert repo.is_loaded
        assert sheet.feed_hits == 2


# ---------------------------------------------------------------------------
# Submit
# ---------------------------------------------------------------------------

class TestSubmit:
    def test_optimistic_report_prepended(self):
        sheet = FakeSheet(ROWS)
        repo = make_repo(sheet)
        repo.refresh()
        teachers_before = repo.teachers

        repo.submit_report(make_draft())

        first = repo.reports[0]
        assert first.id == PENDING_ID
        assert first.location == "Kantin"
        assert first.issue_description == "Lampu padam"
        assert first.status is Status.NEW
        assert first.reported_at == "07/03/2026"
        assert first.image_url == NO_IMAGE
        assert len(repo.reports) == 3
        assert repo.teachers == teachers_before
        assert sheet.posted[0]["action"] == "addReport"

    def test_image_placeholder_when_photo_attached(self):
        repo = make_repo(FakeSheet(ROWS))
        draft = make_draft()
        draft.attach_image("a.jpg", "image/jpeg", b"jpeg")
        assert repo.submit_report(draft).image_url == IMAGE_UPLOADING

    def test_dispatch_failure_changes_nothing(self):
        sheet = FakeSheet(ROWS)
        repo = make_repo(sheet)
        repo.refresh()
        sheet.dispatch_error = httpx.ConnectError("offline")
        with pytest.raises(GatewayError):
            repo.submit_report(make_draft())
        assert len(repo.reports) == 2
        assert len(repo.ledger) == 0

    def test_next_refresh_supersedes_optimistic_row(self):
        repo = make_repo(FakeSheet(ROWS))
        repo.refresh()
        repo.submit_report(make_draft())
        repo.refresh()
        assert all(r.id != PENDING_ID for r in repo.reports)


# ---------------------------------------------------------------------------
# Admin mutations
# ---------------------------------------------------------------------------

class TestUpdateStatus:
    def test_requires_admin(self):
        sheet = FakeSheet(ROWS)
        repo = make_repo(sheet)
        repo.refresh()
        with pytest.raises(AdminRequired):
            repo.update_status("R001", Status.REJECTED, is_admin=False)
        assert sheet.posted == []

    def test_local_record_updated(self):
        sheet = FakeSheet(ROWS)
        repo = make_repo(sheet)
        repo.refresh()
        repo.update_status("R002", Status.IN_PROGRESS, is_admin=True)
        assert repo.find("R002").status is Status.IN_PROGRESS
        assert sheet.posted == [{"action": "updateStatus", "id": "R002", "status": "Dalam Proses"}]

    def test_last_update_wins_locally(self):
        repo = make_repo(FakeSheet(ROWS))
        repo.refresh()
        repo.update_status("R002", Status.IN_PROGRESS, is_admin=True)
        repo.update_status("R002", Status.DONE, is_admin=True)
        assert repo.find("R002").status is Status.DONE
        assert len(repo.ledger) == 1


class TestDelete:
    def test_requires_admin(self):
        repo = make_repo(FakeSheet(ROWS))
        repo.refresh()
        with pytest.raises(AdminRequired):
            repo.delete_report("R001", is_admin=False, confirmed=True)

    def test_unconfirmed_sends_nothing(self):
        sheet = FakeSheet(ROWS)
        repo = make_repo(sheet)
        repo.refresh()
        assert repo.delete_report("R001", is_admin=True, confirmed=False) is False
        assert sheet.posted == []
        assert repo.find("R001") is not None

    def test_confirmed_delete_removes_locally(self):
        sheet = FakeSheet(ROWS)
        repo = make_repo(sheet)
        repo.refresh()
        assert repo.delete_report("R001", is_admin=True, confirmed=True) is True
        assert repo.find("R001") is None
        assert sheet.posted == [{"action": "deleteReport", "id": "R001"}]


# ---------------------------------------------------------------------------
# Reconciliation
# ---------------------------------------------------------------------------

class TestReconciliation:
    def test_create_confirmed_when_row_appears(self):
        sheet = FakeSheet(ROWS)
        repo = make_repo(sheet)
        repo.refresh()
        repo.submit_report(make_draft())
        sheet.rows.append("R003,7/3/2026,Siti,Kantin,Lampu padam,,")
        repo.refresh()
        assert len(repo.last_reconcile.confirmed) == 1
        assert len(repo.ledger) == 0

    def test_existing_duplicate_does_not_confirm(self):
        sheet = FakeSheet(ROWS + ["R000,1/3/2026,Siti,Kantin,Lampu padam,,"])
        repo = make_repo(sheet)
        repo.refresh()
        repo.submit_report(make_draft())
        repo.refresh()
        assert len(repo.ledger.outstanding) == 1

    def test_status_update_confirmed(self):
        sheet = FakeSheet(ROWS)
        repo = make_repo(sheet)
        repo.refresh()
        repo.update_status("R002", Status.DONE, is_admin=True)
        sheet.rows[1] = 'R002,3/3/2026,Ali,"Blok A, Tingkat 2",Kipas rosak,,Selesai'
        repo.refresh()
        assert len(repo.ledger) == 0

    def test_delete_confirmed_when_row_gone(self):
        sheet = FakeSheet(ROWS)
        repo = make_repo(sheet)
        repo.refresh()
        repo.delete_report("R001", is_admin=True, confirmed=True)
        sheet.rows = sheet.rows[1:]
        repo.refresh()
        assert len(repo.ledger) == 0

    def test_unconfirmed_change_flagged_after_deadline(self):
        sheet = FakeSheet(ROWS)
        clock = Clock(START)
        repo = make_repo(sheet, clock=clock, deadline_seconds=600)
        repo.refresh()
        repo.submit_report(make_draft())

        clock.advance(minutes=5)
        repo.refresh()
        assert len(repo.ledger.outstanding) == 1
        assert repo.ledger.discrepancies == []

        clock.advance(minutes=6)
        repo.refresh()
        assert len(repo.ledger.discrepancies) == 1
        assert repo.ledger.outstanding == []

        repo.ledger.clear_discrepancies()
        assert len(repo.ledger) == 0
