"""
Domain package for the AEO Tracker.

Exports the projects/check records models and the error taxonomy shared by
stores, the check orchestrator, the aggregator and the service layer.
Keep this package focused on data definitions and validation concerns.
"""

from aeo_tracker.domain.errors import (
    AccessDeniedError,
    AeoTrackerError,
    EngineQueryError,
    InvalidRequestError,
    InvalidTransitionError,
    NotFoundError,
)
from aeo_tracker.domain.models import (
    ENGINES,
    CheckMetadata,
    CheckRecord,
    Competitor,
    EngineResponse,
    ObservedUrl,
    Project,
    ProjectCreate,
    ProjectSettings,
    ProjectUpdate,
    TrackedKeyword,
)

__all__ = [
    "ENGINES",
    "CheckMetadata",
    "CheckRecord",
    "Competitor",
    "EngineResponse",
    "ObservedUrl",
    "Project",
    "ProjectCreate",
    "ProjectSettings",
    "ProjectUpdate",
    "TrackedKeyword",
    "AccessDeniedError",
    "AeoTrackerError",
    "EngineQueryError",
    "InvalidRequestError",
    "InvalidTransitionError",
    "NotFoundError",
]
