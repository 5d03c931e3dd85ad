"""
Aduan Report Repository

Session-local cache of reports and the teacher directory.

RULES:
- refresh() replaces the collection wholesale. It never merges.
- refresh() is single-flight: a call made while another is running returns
  immediately without fetching.
- submit / update / delete change the local collection right after the
  intent is dispatched and are never rolled back. The ledger remembers
  each such change until a later refresh shows it, or flags it once the
  confirmation deadline passes.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Callable, Optional

import httpx

from aduan import config
from aduan.ingestion.feeds import (
    IMAGE_UPLOADING,
    NO_IMAGE,
    PENDING_ID,
    FeedError,
    Report,
    Status,
    load_feeds,
)
from aduan.ingestion.row_parser import today_display
from aduan.reports.gateway import FormDraft, MutationGateway

logger = logging.getLogger(__name__)

CHANGE_CREATE = "create"
CHANGE_UPDATE = "update"
CHANGE_DELETE = "delete"


@dataclass
class AdminRequired(Exception):
    action: str

    def __str__(self) -> str:
        return f"{self.action} is only available to the admin"


# ---------------------------------------------------------------------------
# Reconciliation ledger
# ---------------------------------------------------------------------------


def _fingerprint(teacher_name: str, location: str, issue_description: str) -> tuple[str, str, str]:
    return (
        teacher_name.strip().lower(),
        location.strip().lower(),
        issue_description.strip().lower(),
    )


def _report_fingerprint(report: Report) -> tuple[str, str, str]:
    return _fingerprint(report.teacher_name, report.location, report.issue_description)


@dataclass
class PendingChange:
    kind: str
    dispatched_at: datetime
    report_id: str = ""
    expected_status: Optional[Status] = None
    fingerprint: tuple[str, str, str] = ("", "", "")
    # Matching confirmed rows that already existed when the create was sent.
    baseline: int = 0
    discrepancy: bool = False

    def describe(self) -> str:
        if self.kind == CHANGE_CREATE:
            return f"new report at {self.fingerprint[1] or '?'}"
        if self.kind == CHANGE_UPDATE:
            return f"status of {self.report_id} -> {self.expected_status}"
        return f"deletion of {self.report_id}"


@dataclass
class ReconcileResult:
    confirmed: list[PendingChange] = field(default_factory=list)
    outstanding: list[PendingChange] = field(default_factory=list)
    discrepancies: list[PendingChange] = field(default_factory=list)


class PendingLedger:
    """Optimistic changes not yet seen in the feeds."""

    def __init__(self, deadline_seconds: Optional[int] = None):
        seconds = config.CONFIRM_DEADLINE_SECONDS if deadline_seconds is None else deadline_seconds
        self.deadline = timedelta(seconds=seconds)
        self.changes: list[PendingChange] = []

    def __len__(self) -> int:
        return len(self.changes)

    @property
    def outstanding(self) -> list[PendingChange]:
        return [c for c in self.changes if not c.discrepancy]

    @property
    def discrepancies(self) -> list[PendingChange]:
        return [c for c in self.changes if c.discrepancy]

    def track_create(self, draft: FormDraft, reports: list[Report], at: datetime) -> PendingChange:
        fingerprint = _fingerprint(draft.teacher_name, draft.location, draft.issue_description)
        baseline = sum(
            1 for r in reports if not r.is_pending and _report_fingerprint(r) == fingerprint
        )
        change = PendingChange(
            kind=CHANGE_CREATE, dispatched_at=at, fingerprint=fingerprint, baseline=baseline
        )
        self.changes.append(change)
        return change

    def track_update(self, report_id: str, status: Status, at: datetime) -> PendingChange:
        # Last status sent for a report is the one we wait for.
        self.changes = [
            c for c in self.changes
            if not (c.kind == CHANGE_UPDATE and c.report_id == report_id)
        ]
        change = PendingChange(
            kind=CHANGE_UPDATE, dispatched_at=at, report_id=report_id, expected_status=status
        )
        self.changes.append(change)
        return change

    def track_delete(self, report_id: str, at: datetime) -> PendingChange:
        self.changes = [
            c for c in self.changes
            if not (c.kind == CHANGE_UPDATE and c.report_id == report_id)
        ]
        change = PendingChange(kind=CHANGE_DELETE, dispatched_at=at, report_id=report_id)
        self.changes.append(change)
        return change

    def _is_visible(self, change: PendingChange, reports: list[Report]) -> bool:
        if change.kind == CHANGE_CREATE:
            count = sum(
                1 for r in reports
                if not r.is_pending and _report_fingerprint(r) == change.fingerprint
            )
            return count > change.baseline
        if change.kind == CHANGE_UPDATE:
            return any(
                r.id == change.report_id and r.status == change.expected_status
                for r in reports
            )
        return all(r.id != change.report_id for r in reports)

    def reconcile(self, reports: list[Report], now: datetime) -> ReconcileResult:
        """Match pending changes against freshly fetched reports."""
        result = ReconcileResult()
        remaining: list[PendingChange] = []
        for change in self.changes:
            if self._is_visible(change, reports):
                result.confirmed.append(change)
                continue
            if now - change.dispatched_at > self.deadline:
                if not change.discrepancy:
                    logger.warning("[repository] not confirmed in time: %s", change.describe())
                change.discrepancy = True
                result.discrepancies.append(change)
            else:
                result.outstanding.append(change)
            remaining.append(change)
        self.changes = remaining
        if result.confirmed:
            logger.info("[repository] %d pending change(s) confirmed", len(result.confirmed))
        return result

    def clear_discrepancies(self) -> None:
        self.changes = [c for c in self.changes if not c.discrepancy]


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class ReportRepository:
    def __init__(
        self,
        client: httpx.Client,
        gateway: Optional[MutationGateway] = None,
        teachers_url: Optional[str] = None,
        reports_url: Optional[str] = None,
        date_order: Optional[str] = None,
        ledger: Optional[PendingLedger] = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.client = client
        self.gateway = gateway or MutationGateway(client)
        self.teachers_url = teachers_url or config.TEACHERS_CSV_URL
        self.reports_url = reports_url or config.REPORTS_CSV_URL
        self.date_order = date_order
        self.ledger = ledger if ledger is not None else PendingLedger()
        self.clock = clock

        self._reports: list[Report] = []
        self._teachers: list[str] = []
        self._refresh_lock = threading.Lock()

        self.is_loaded = False
        self.last_error: Optional[FeedError] = None
        self.last_refreshed: Optional[datetime] = None
        self.last_reconcile: ReconcileResult = ReconcileResult()

    # -- read access ---------------------------------------------------------

    @property
    def reports(self) -> list[Report]:
        return list(self._reports)

    @property
    def teachers(self) -> list[str]:
        return list(self._teachers)

    @property
    def is_refreshing(self) -> bool:
        return self._refresh_lock.locked()

    def find(self, report_id: str) -> Optional[Report]:
        for report in self._reports:
            if report.id == report_id:
                return report
        return None

    # -- refresh -------------------------------------------------------------

    def refresh(self) -> bool:
        """
        Reload both feeds and replace the collection.

        Returns False when another refresh was already running or when a
        feed could not be fetched; in the latter case the previous
        collection is kept and last_error is set.
        """
        if not self._refresh_lock.acquire(blocking=False):
            logger.debug("[repository] refresh already in flight, coalescing")
            return False
        try:
            try:
                snapshot = load_feeds(
                    self.client, self.teachers_url, self.reports_url, self.date_order
                )
            except FeedError as e:
                logger.error("[repository] refresh failed: %s (%s)", e.reason, e.feed)
                self.last_error = e
                return False

            self._teachers = snapshot.teachers
            self._reports = snapshot.reports
            self.is_loaded = True
            self.last_error = None
            self.last_refreshed = snapshot.fetched_at
            self.last_reconcile = self.ledger.reconcile(self._reports, self.clock())
            return True
        finally:
            self._refresh_lock.release()

    # -- mutations -----------------------------------------------------------

    def submit_report(self, draft: FormDraft) -> Report:
        """
        Send a new report and show it immediately under the pending id.

        GatewayError propagates and leaves the collection untouched.
        """
        self.gateway.create(draft)
        dispatched_at = self.clock()
        optimistic = Report(
            id=PENDING_ID,
            reported_at=today_display(self.clock().date()),
            teacher_name=draft.teacher_name,
            location=draft.location,
            issue_description=draft.issue_description,
            image_url=IMAGE_UPLOADING if draft.has_image else NO_IMAGE,
            status=Status.NEW,
        )
        self.ledger.track_create(draft, self._reports, dispatched_at)
        self._reports.insert(0, optimistic)
        logger.info("[repository] report from %s queued", draft.teacher_name)
        return optimistic

    def update_status(self, report_id: str, status: Status, *, is_admin: bool) -> None:
        if not is_admin:
            raise AdminRequired(action="Status update")
        status = Status(status)
        self.gateway.update_status(report_id, status)
        dispatched_at = self.clock()
        self._reports = [
            r.with_status(status) if r.id == report_id else r for r in self._reports
        ]
        self.ledger.track_update(report_id, status, dispatched_at)

    def delete_report(self, report_id: str, *, is_admin: bool, confirmed: bool) -> bool:
        """Remove a report. Returns False, without sending, unless confirmed."""
        if not is_admin:
            raise AdminRequired(action="Delete")
        if not confirmed:
            logger.debug("[repository] delete of %s not confirmed", report_id)
            return False
        self.gateway.delete(report_id)
        dispatched_at = self.clock()
        self._reports = [r for r in self._reports if r.id != report_id]
        self.ledger.track_delete(report_id, dispatched_at)
        return True
