"""Error taxonomy for portalflow."""

from __future__ import annotations

from typing import Optional


class PortalflowError(Exception):
    """Base class for all portalflow errors."""


class ConfigError(PortalflowError):
    """Configuration could not be loaded."""


class ExternalActionFailure(PortalflowError):
    """A call to an external collaborator failed.

    Raised to the immediate caller only. Failures are never retried
    automatically; retrying is up to the caller and creates a new record.
    """

    def __init__(self, kind: str, message: str, action_id: Optional[str] = None):
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.action_id = action_id

    def __str__(self) -> str:
        return f"{self.kind} failed: {self.message}"


class UnrecognizedInput(PortalflowError):
    """User input matched none of the patterns expected for a phase."""

    def __init__(self, phase: str, user_input: str):
        super().__init__(f"Unrecognized input for phase {phase!r}: {user_input!r}")
        self.phase = phase
        self.user_input = user_input


class SigningTokenError(PortalflowError):
    """A signing link token is invalid, expired or unknown."""
