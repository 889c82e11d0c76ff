"""
Error taxonomy for the AEO Tracker.

Lookup failures, rejected requests and illegal lifecycle transitions all derive
from AeoTrackerError so callers (the CLI, a future HTTP layer) can map them to
user-facing responses in one place. Empty results are never errors.
"""

from __future__ import annotations


class AeoTrackerError(Exception):
    """Base class for all tracker errors."""


class NotFoundError(AeoTrackerError):
    """A project or check does not exist, is inactive, or is not visible to the owner."""

    def __init__(self, kind: str, identifier: str) -> None:
        self.kind = kind
        self.identifier = identifier
        super().__init__(f"{kind.capitalize()} not found: {identifier}")


class AccessDeniedError(AeoTrackerError):
    """The resource exists but belongs to another owner."""


class InvalidRequestError(AeoTrackerError):
    """Input was rejected before any work was attempted."""


class InvalidTransitionError(AeoTrackerError):
    """A check record left the pending state more than once."""

    def __init__(self, check_id: str, current_status: str) -> None:
        self.check_id = check_id
        self.current_status = current_status
        super().__init__(
            f"Check {check_id} is already {current_status}; only pending checks can transition"
        )


class EngineQueryError(AeoTrackerError):
    """Retryable failure reported by an engine client."""


__all__ = [
    "AeoTrackerError",
    "NotFoundError",
    "AccessDeniedError",
    "InvalidRequestError",
    "InvalidTransitionError",
    "EngineQueryError",
]
