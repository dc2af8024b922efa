"""Error hierarchy for the study engine.

Invalid user actions (navigating past the last card, learning a word twice,
acting on an empty due-set) are silent no-ops and never raise. The exceptions
below are reserved for programmer errors and storage failures.
"""

from __future__ import annotations


class KiokuError(Exception):
    """Base exception for study engine errors."""

    def __init__(self, message: str, error_code: str | None = None) -> None:
        """Initialize engine error.

        Args:
            message: Human-readable error message
            error_code: Optional machine-readable error code
        """
        super().__init__(message)
        self.error_code = error_code


class ValidationError(KiokuError):
    """Raised when an argument does not meet the engine's constraints."""

    def __init__(self, message: str, field: str | None = None) -> None:
        """Initialize validation error.

        Args:
            message: Human-readable error message
            field: Optional name of the offending field or argument
        """
        super().__init__(message, "VALIDATION_ERROR")
        self.field = field


class StorageError(KiokuError):
    """Raised by persistence adapters when a read or write fails."""

    def __init__(self, message: str, key: str | None = None) -> None:
        super().__init__(message, "STORAGE_ERROR")
        self.key = key


class CardNotFoundError(KiokuError):
    """Raised by the card repository when an update targets an unknown card."""

    def __init__(self, card_id: str) -> None:
        super().__init__(f"Card {card_id} not found", "CARD_NOT_FOUND")
        self.card_id = card_id
