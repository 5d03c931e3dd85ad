"""Per-session UI state and the shared-password admin gate."""

from __future__ import annotations

import hmac
import logging
from dataclasses import dataclass
from typing import Optional

from aduan import config

logger = logging.getLogger(__name__)

VIEWS: dict[str, str] = {
    "dashboard": "Dashboard",
    "analysis": "Analysis",
    "list": "All Reports",
    "form": "New Report",
}
DEFAULT_VIEW = "dashboard"


def check_admin_password(candidate: str, secret: Optional[str] = None) -> bool:
    """Placeholder gate: one static shared secret. Not authentication."""
    expected = config.ADMIN_PASSWORD if secret is None else secret
    if not candidate or not expected:
        return False
    return hmac.compare_digest(candidate.encode("utf-8"), expected.encode("utf-8"))


@dataclass
class AppState:
    active_view: str = DEFAULT_VIEW
    is_admin: bool = False
    is_loading: bool = False
    is_submitting: bool = False
    updating_id: Optional[str] = None
    deleting_id: Optional[str] = None
    # Report waiting for the second click of a delete.
    pending_delete_id: Optional[str] = None
    notification: str = ""
    error_message: str = ""
    # Bumped after a failed admin action so its widgets are rebuilt.
    widget_epoch: int = 0

    def navigate(self, view: str) -> None:
        if view not in VIEWS:
            raise ValueError(f"Unknown view: {view}")
        self.active_view = view

    def elevate(self, password: str, secret: Optional[str] = None) -> bool:
        if check_admin_password(password, secret):
            self.is_admin = True
            self.notification = "Welcome, Admin!"
            logger.info("[session] admin view enabled")
            return True
        logger.info("[session] admin password rejected")
        return False

    def drop_admin(self) -> None:
        self.is_admin = False
        self.pending_delete_id = None

    def notify(self, message: str) -> None:
        self.notification = message

    def take_notification(self) -> str:
        message, self.notification = self.notification, ""
        return message

    def fail(self, message: str) -> None:
        """Record an error for the next render and reset admin widgets."""
        self.error_message = message
        self.widget_epoch += 1

    def take_error(self) -> str:
        message, self.error_message = self.error_message, ""
        return message
