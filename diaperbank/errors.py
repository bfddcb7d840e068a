from __future__ import annotations

from collections.abc import Sequence


class LifecycleError(ValueError):
    """Raised when a deactivate/delete transition is refused by the usage guard."""

    def __init__(self, message: str, item_id: int | None = None, blocking: Sequence[str] = ()) -> None:
        super().__init__(message)
        self.message = message
        self.item_id = item_id
        self.blocking = list(blocking)


class ItemValidationError(ValueError):
    """Field-level validation failure; nothing was persisted."""

    def __init__(self, errors: dict[str, list[str]]) -> None:
        self.errors = errors
        super().__init__("; ".join(f"{field} {msg}" for field, msgs in errors.items() for msg in msgs))
