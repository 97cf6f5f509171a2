"""Exceptions raised by the verification store."""

from __future__ import annotations

from typing import Any

from verifystate.database.table_store import StorageFailure


class VerificationError(Exception):
    """Base class for misuse of the verification store."""


class NotInitialized(VerificationError):
    def __init__(self) -> None:
        super().__init__("The verification store must be initialized first")


class AlreadyInitialized(VerificationError):
    def __init__(self) -> None:
        super().__init__("The verification store is already initialized")


class InvalidTier(VerificationError):
    """Raised for SKIPPED or for values that are not a verification tier."""

    def __init__(self, tier: Any, reason: str | None = None) -> None:
        super().__init__(
            reason
            or f"Verification tier {tier!r} cannot be stored"
        )
        self.tier = tier


__all__ = [
    "VerificationError",
    "NotInitialized",
    "AlreadyInitialized",
    "InvalidTier",
    "StorageFailure",
]
