"""Domain errors raised by the ledger services. Mapped to HTTP responses in main.py."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from fitledger.schemas.ledger import DailyLog


class LedgerError(Exception):
    """Base class for ledger engine errors."""


class NotFoundError(LedgerError):
    """A referenced workout, exercise or routine does not exist."""

    def __init__(self, resource: str, resource_id: str) -> None:
        super().__init__(f"{resource} {resource_id} not found")
        self.resource = resource
        self.resource_id = resource_id


class InvalidEnumError(LedgerError, ValueError):
    """Unrecognized enum value (activity level, goal, gender...)."""

    def __init__(self, field: str, value: object, allowed: list[str]) -> None:
        super().__init__(f"Invalid {field}: {value!r} (expected one of {', '.join(allowed)})")
        self.field = field
        self.value = value
        self.allowed = allowed


class StoreUnavailableError(LedgerError):
    """A user-scoped document path was requested without an identified user."""


class MirrorEntryError(LedgerError):
    """Mirror entries can only change through their source workout or exercise."""

    def __init__(self, entry_id: str) -> None:
        super().__init__(f"Exercise entry {entry_id} mirrors a workout and cannot be edited directly")
        self.entry_id = entry_id


class OptimisticWriteFailed(LedgerError):
    """Optimistic write failed; `log` holds the authoritative ledger reloaded after the failure."""

    def __init__(self, date: str, log: DailyLog) -> None:
        super().__init__(f"Failed to persist optimistic update for {date}")
        self.date = date
        self.log = log
