"""
Aduan Feed Ingestion

Turns the two published spreadsheet exports into Report records and the
teacher directory.

CONTRACT ANCHORS
----------------
- Teacher feed: header row, then one teacher per row; the name is
  everything after the first comma.
- Report feed: header row, then
  ID | TARIKH | NAMA GURU | TEMPAT | JENIS KEROSAKAN | GAMBAR | STATUS
  (STATUS is absent in older sheets and defaults to Baru).
- One bad row never stops the rest of the feed. Rows degrade, feeds halt
  only when the feed itself cannot be fetched.
- Reports are stored newest first (reverse of sheet order).
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Optional

import httpx

from aduan.ingestion.row_parser import (
    field_at,
    normalize_date,
    parse_row,
    split_feed_lines,
)

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

# Placeholder id for a report the sheet has not numbered yet.
PENDING_ID = "Tunggu Update"

# Image placeholders used by optimistic rows.
IMAGE_UPLOADING = "Sedang Dimuat Naik..."
NO_IMAGE = "Tiada Gambar"

REPORT_COLUMNS: list[str] = [
    "id",
    "reported_at",
    "teacher_name",
    "location",
    "issue_description",
    "image_url",
    "status",
]


class Status(str, enum.Enum):
    """Report status as written in the sheet."""

    NEW = "Baru"
    IN_PROGRESS = "Dalam Proses"
    DONE = "Selesai"
    REJECTED = "Ditolak"

    @classmethod
    def parse(cls, raw: Optional[str]) -> "Status":
        """Sheet value to Status. Empty reads as NEW, as does anything unknown."""
        key = (raw or "").strip().lower()
        if not key:
            return cls.NEW
        status = _STATUS_LOOKUP.get(key)
        if status is None:
            logger.warning("[feeds] unknown status %r, treating as %s", raw, cls.NEW.value)
            return cls.NEW
        return status

    def __str__(self) -> str:
        return self.value


_STATUS_LOOKUP: dict[str, Status] = {
    "baru": Status.NEW,
    "new": Status.NEW,
    "dalam proses": Status.IN_PROGRESS,
    "in progress": Status.IN_PROGRESS,
    "inprogress": Status.IN_PROGRESS,
    "selesai": Status.DONE,
    "done": Status.DONE,
    "ditolak": Status.REJECTED,
    "rejected": Status.REJECTED,
}


# ---------------------------------------------------------------------------
# Dataclasses
# ---------------------------------------------------------------------------


@dataclass
class FeedError(Exception):
    """A feed could not be fetched. Row-level problems never raise this."""
    reason: str
    feed: str
    url: str
    status_code: Optional[int] = None
    fix_steps: list[str] = field(default_factory=list)

    def __str__(self) -> str:
        lines = [
            "═" * 60,
            "ADUAN FEED UNAVAILABLE",
            "═" * 60,
            f"Reason      : {self.reason}",
            f"Feed        : {self.feed}",
            f"URL         : {self.url}",
        ]
        if self.status_code is not None:
            lines.append(f"HTTP status : {self.status_code}")
        if self.fix_steps:
            lines.append("Fix Steps:")
            for i, step in enumerate(self.fix_steps, 1):
                lines.append(f"  {i}. {step}")
        lines.append("═" * 60)
        return "\n".join(lines)


@dataclass
class Report:
    id: str
    reported_at: str
    teacher_name: str
    location: str
    issue_description: str
    image_url: str = ""
    status: Status = Status.NEW

    @property
    def is_pending(self) -> bool:
        return self.id == PENDING_ID

    def with_status(self, status: Status) -> "Report":
        return replace(self, status=status)


@dataclass
class FeedSnapshot:
    teachers: list[str]
    reports: list[Report]
    fetched_at: datetime


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------


def parse_teacher_feed(text: str) -> list[str]:
    """Sorted teacher names; rows without a comma or a name are skipped."""
    names: list[str] = []
    for line in split_feed_lines(text):
        first_comma = line.find(",")
        if first_comma == -1:
            continue
        name = line[first_comma + 1:].strip()
        if name.startswith('"'):
            name = name[1:]
        if name.endswith('"'):
            name = name[:-1]
        name = name.strip()
        if name:
            names.append(name)
    return sorted(names)


def parse_report_row(line: str, date_order: Optional[str] = None) -> Report:
    """One feed line to a Report. Missing columns become empty strings."""
    fields = parse_row(line)
    if len(fields) < len(REPORT_COLUMNS) - 1:
        logger.debug("[feeds] short row (%d fields): %r", len(fields), line)
    return Report(
        id=field_at(fields, 0),
        reported_at=normalize_date(field_at(fields, 1), date_order),
        teacher_name=field_at(fields, 2),
        location=field_at(fields, 3),
        issue_description=field_at(fields, 4),
        image_url=field_at(fields, 5),
        status=Status.parse(field_at(fields, 6)),
    )


def parse_report_feed(text: str, date_order: Optional[str] = None) -> list[Report]:
    """All report rows, newest (last in the sheet) first."""
    reports = [parse_report_row(line, date_order) for line in split_feed_lines(text)]
    reports.reverse()
    return reports


# ---------------------------------------------------------------------------
# Fetching
# ---------------------------------------------------------------------------


def fetch_feed(client: httpx.Client, url: str, label: str) -> str:
    """
    GET a published export and return its text.

    Raises
    ------
    FeedError
        On timeouts, connection failures and non-2xx responses.
    """
    logger.info("[feeds] fetching %s feed", label)
    logger.debug("[feeds] %s URL: %s", label, url)
    try:
        response = client.get(url, follow_redirects=True)
        response.raise_for_status()
    except httpx.HTTPStatusError as e:
        raise FeedError(
            reason="Feed returned an error status",
            feed=label,
            url=url,
            status_code=e.response.status_code,
            fix_steps=[
                "Check the sheet is still published to the web as CSV.",
                "Check the gid in the feed URL points at the right tab.",
            ],
        ) from e
    except httpx.TimeoutException as e:
        raise FeedError(
            reason="Timed out fetching feed",
            feed=label,
            url=url,
            fix_steps=["Retry later; the sheet host may be slow."],
        ) from e
    except httpx.RequestError as e:
        raise FeedError(
            reason=f"Could not reach feed: {e}",
            feed=label,
            url=url,
            fix_steps=["Check the network connection."],
        ) from e
    return response.text


def load_feeds(
    client: httpx.Client,
    teachers_url: str,
    reports_url: str,
    date_order: Optional[str] = None,
) -> FeedSnapshot:
    """Fetch and parse both feeds. Either feed failing raises FeedError."""
    teachers = parse_teacher_feed(fetch_feed(client, teachers_url, "teachers"))
    reports = parse_report_feed(fetch_feed(client, reports_url, "reports"), date_order)
    logger.info("[feeds] loaded %d teachers, %d reports", len(teachers), len(reports))
    return FeedSnapshot(teachers=teachers, reports=reports, fetched_at=datetime.now())
