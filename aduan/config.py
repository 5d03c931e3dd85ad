"""
Aduan configuration.

Every value here has a working default and can be overridden through the
environment. Nothing else in the package reads the environment directly.
"""

from __future__ import annotations

import logging
from os import getenv

# ---------------------------------------------------------------------------
# Remote endpoints
# ---------------------------------------------------------------------------

_SHEET_BASE = (
    "https://docs.google.com/spreadsheets/d/e/"
    "2PACX-1vQK1iQjcMX49LNY0VmT93sFGtC_tn2PgHWjr2WQSZjqIrgGteTAJqebNgwkHmfAXtEPJmnAnUm9onS6/pub"
)

TEACHERS_CSV_URL: str = getenv("ADUAN_TEACHERS_CSV_URL", f"{_SHEET_BASE}?output=csv")
REPORTS_CSV_URL: str = getenv(
    "ADUAN_REPORTS_CSV_URL",
    f"{_SHEET_BASE}?gid=798141725&single=true&output=csv",
)
SCRIPT_URL: str = getenv(
    "ADUAN_SCRIPT_URL",
    "https://script.google.com/macros/s/"
    "AKfycby6kP-MgspGDpeKGzG6OefbajvfsXW0hNSTEmfAs7Ep3-29eVKUbnhDMV1N28rJ8HBW/exec",
)

# Seconds before any feed fetch or mutation dispatch is abandoned.
REQUEST_TIMEOUT: float = float(getenv("ADUAN_REQUEST_TIMEOUT", "20"))

# 1 = legacy script (create intent carries no action tag), 2 = current.
SCHEMA_VERSION: int = int(getenv("ADUAN_SCHEMA_VERSION", "2"))

# ---------------------------------------------------------------------------
# Form / upload
# ---------------------------------------------------------------------------

MAX_UPLOAD_BYTES: int = int(float(getenv("ADUAN_MAX_UPLOAD_MB", "50")) * 1024 * 1024)

# ---------------------------------------------------------------------------
# Dates
# ---------------------------------------------------------------------------

# How to read d/m/yyyy tokens where both leading parts are <= 12.
# "DMY" (school default) or "MDY".
DATE_ORDER: str = getenv("ADUAN_AMBIGUOUS_DATE_ORDER", "DMY").strip().upper()

# ---------------------------------------------------------------------------
# Admin gate (shared placeholder secret, not an auth boundary)
# ---------------------------------------------------------------------------

ADMIN_PASSWORD: str = getenv("ADUAN_ADMIN_PASSWORD", "admin123")

# ---------------------------------------------------------------------------
# Reconciliation
# ---------------------------------------------------------------------------

RECONCILE_SECONDS: int = int(getenv("ADUAN_RECONCILE_SECONDS", "60"))
CONFIRM_DEADLINE_SECONDS: int = int(getenv("ADUAN_CONFIRM_DEADLINE_SECONDS", "900"))

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

DEBUG: bool = getenv("APP_DEBUG", "false").lower() == "true"

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging() -> None:
    """Set up root logging once; DEBUG when APP_DEBUG=true."""
    logging.basicConfig(
        level=logging.DEBUG if DEBUG else logging.INFO,
        format=LOG_FORMAT,
    )
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.DEBUG if DEBUG else logging.WARNING)
