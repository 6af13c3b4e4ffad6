"""Explicit per-request identity passed into every store and engine call."""

from __future__ import annotations

from dataclasses import dataclass

from fitledger.config import settings
from fitledger.core.errors import StoreUnavailableError


@dataclass(frozen=True)
class SessionContext:
    user_id: str | None = None
    is_premium: bool = False

    @property
    def is_authenticated(self) -> bool:
        return bool(self.user_id)

    @property
    def history_days(self) -> int:
        """How far back "repeat last meal" may look for this user."""
        return settings.premium_history_days if self.is_premium else settings.free_history_days

    @property
    def auto_mirror(self) -> bool:
        """Premium users get workout calories mirrored into the ledger automatically."""
        return self.is_premium

    def require_user_id(self) -> str:
        if not self.user_id:
            raise StoreUnavailableError("No authenticated user for this operation")
        return self.user_id

    # Document paths

    def user_path(self) -> str:
        return f"users/{self.require_user_id()}"

    def collection_path(self, name: str) -> str:
        return f"{self.user_path()}/{name}"

    def log_path(self, date: str) -> str:
        return f"{self.collection_path('logs')}/{date}"


ANONYMOUS = SessionContext()
