"""
Dashboard service: the owner-scoped use cases of the AEO Tracker.

Every operation takes an `owner_id` and only ever sees that owner's active
projects and their checks. The service validates input, resolves time windows
and pagination, reads records through the stores and hands them to the pure
functions in `aeo_tracker.aggregator`. Rendering (CLI tables, JSON) is left to
callers.

Usage:
    from aeo_tracker.service import DashboardService
    from aeo_tracker.stores import InMemoryCheckStore, InMemoryProjectStore

    service = DashboardService(InMemoryProjectStore(), InMemoryCheckStore())
    project = service.create_project("alice", {...})
    overview = service.overview("alice", project.id, days=7)
"""

from __future__ import annotations

import asyncio
import math
from datetime import datetime, timedelta
from typing import (
    Any,
    Callable,
    List,
    Mapping,
    Optional,
    Sequence,
    Tuple,
    Type,
    TypedDict,
    TypeVar,
    Union,
)

from pydantic import BaseModel, ValidationError

from aeo_tracker import aggregator
from aeo_tracker.config import Settings, get_settings
from aeo_tracker.domain.errors import AccessDeniedError, InvalidRequestError, NotFoundError
from aeo_tracker.domain.models import (
    ENGINES,
    CheckRecord,
    Project,
    ProjectCreate,
    ProjectSettings,
    ProjectUpdate,
    utcnow,
)
from aeo_tracker.orchestrator import CheckOrchestrator
from aeo_tracker.stores.abstract import CheckQuery, CheckStore, ProjectStore
from aeo_tracker.utils.logging import get_logger

log = get_logger(__name__)

M = TypeVar("M", bound=BaseModel)
Payload = Union[BaseModel, Mapping[str, Any]]


class Period(TypedDict):
    days: int
    start_date: str
    end_date: str


class Pagination(TypedDict):
    current: int
    pages: int
    total: int


class CheckPage(TypedDict):
    checks: List[CheckRecord]
    pagination: Pagination


class Overview(aggregator.VisibilitySummary):
    period: Period


class KeywordReport(TypedDict):
    keyword: str
    period: Period
    engine_data: List[aggregator.KeywordEngineAnalysis]


class EngineReport(TypedDict):
    engine_comparison: List[aggregator.EngineComparison]
    period: Period


def _format_errors(exc: ValidationError) -> str:
    parts = []
    for error in exc.errors():
        location = ".".join(str(p) for p in error.get("loc", ())) or "payload"
        parts.append(f"{location}: {error.get('msg')}")
    return "; ".join(parts)


def _validate(model: Type[M], payload: Payload) -> M:
    """Validate `payload` as `model`, turning pydantic errors into InvalidRequestError."""
    if isinstance(payload, model):
        return payload
    data = payload.model_dump(exclude_unset=True) if isinstance(payload, BaseModel) else payload
    try:
        return model.model_validate(data)
    except ValidationError as exc:
        raise InvalidRequestError(f"Invalid {model.__name__}: {_format_errors(exc)}") from exc


class DashboardService:
    """
    Owner-scoped project, check and dashboard operations.

    Parameters
    ----------
    projects : ProjectStore
        Project persistence.
    checks : CheckStore
        Check record persistence.
    orchestrator : CheckOrchestrator | None
        Runs checks; built from settings over `checks` when omitted.
    settings : Settings | None
        Defaults for windows, page size and recommendation thresholds.
    clock : callable | None
        Source of "now"; injectable for deterministic windows in tests.
    """

    def __init__(
        self,
        projects: ProjectStore,
        checks: CheckStore,
        orchestrator: Optional[CheckOrchestrator] = None,
        settings: Optional[Settings] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self._projects = projects
        self._checks = checks
        self._settings = settings or get_settings()
        self._clock = clock or utcnow
        self._orchestrator = orchestrator or CheckOrchestrator(
            checks, clock=self._clock, settings=self._settings
        )

    @property
    def orchestrator(self) -> CheckOrchestrator:
        return self._orchestrator

    # ------------------------------------------------------------------ #
    # Scoping helpers
    # ------------------------------------------------------------------ #
    def _owned_project(self, owner_id: str, project_id: str) -> Project:
        project = self._projects.get(project_id)
        if project is None or project.owner_id != owner_id or not project.is_active:
            raise NotFoundError("project", project_id)
        return project

    def _scope(self, owner_id: str, project_id: Optional[str]) -> List[str]:
        if project_id:
            return [self._owned_project(owner_id, project_id).id]
        return [p.id for p in self._projects.list_for_owner(owner_id)]

    def _window(self, days: Optional[int]) -> Tuple[datetime, datetime, Period]:
        days = self._settings.dashboard_days if days is None else days
        if isinstance(days, bool) or not isinstance(days, int) or days < 1:
            raise InvalidRequestError(f"days must be a positive integer, got {days!r}")
        until = self._clock()
        since = until - timedelta(days=days)
        period = Period(days=days, start_date=since.isoformat(), end_date=until.isoformat())
        return since, until, period

    def _completed_records(
        self, project_ids: Sequence[str], since: datetime, until: datetime
    ) -> List[CheckRecord]:
        if not project_ids:
            return []
        return self._checks.find(
            CheckQuery(project_ids=list(project_ids), since=since, until=until, status="completed")
        )

    # ------------------------------------------------------------------ #
    # Projects
    # ------------------------------------------------------------------ #
    def list_projects(self, owner_id: str) -> List[Project]:
        """Active projects of the owner, newest first."""
        return self._projects.list_for_owner(owner_id)

    def get_project(self, owner_id: str, project_id: str) -> Project:
        return self._owned_project(owner_id, project_id)

    def create_project(self, owner_id: str, payload: Payload) -> Project:
        data = _validate(ProjectCreate, payload)
        now = self._clock()
        settings = data.settings or _validate(
            ProjectSettings, {"engines": list(self._settings.default_engines)}
        )
        project = _validate(
            Project,
            {
                **data.model_dump(exclude={"settings"}),
                "owner_id": owner_id,
                "settings": settings.model_dump(),
                "created_at": now,
                "updated_at": now,
            },
        )
        self._projects.add(project)
        log.info(
            "Project created",
            extra={
                "project_id": project.id,
                "owner_id": owner_id,
                "keywords": len(project.keywords),
            },
        )
        return project

    def update_project(self, owner_id: str, project_id: str, payload: Payload) -> Project:
        """Apply only the fields present in `payload`."""
        current = self._owned_project(owner_id, project_id)
        changes = _validate(ProjectUpdate, payload).model_dump(exclude_unset=True)
        updated = _validate(
            Project, {**current.model_dump(), **changes, "updated_at": self._clock()}
        )
        self._projects.replace(updated)
        log.info(
            "Project updated",
            extra={"project_id": project_id, "owner_id": owner_id, "fields": sorted(changes)},
        )
        return updated

    def delete_project(self, owner_id: str, project_id: str) -> Project:
        """Soft delete: the project and its checks disappear from every query."""
        current = self._owned_project(owner_id, project_id)
        deleted = current.model_copy(update={"is_active": False, "updated_at": self._clock()})
        self._projects.replace(deleted)
        log.info("Project deleted", extra={"project_id": project_id, "owner_id": owner_id})
        return deleted

    # ------------------------------------------------------------------ #
    # Checks
    # ------------------------------------------------------------------ #
    async def start_checks(
        self,
        owner_id: str,
        project_id: str,
        engines: Optional[Sequence[str]] = None,
        keywords: Optional[Sequence[str]] = None,
    ) -> List[CheckRecord]:
        """
        Create pending checks and resolve them in the background.

        Returns the pending records immediately; their resolution runs as a
        task on the current event loop.
        """
        project = await asyncio.to_thread(self._owned_project, owner_id, project_id)
        pending = await asyncio.to_thread(
            self._orchestrator.create_pending, project, engines, keywords
        )
        self._orchestrator.schedule(project, pending)
        return pending

    def run_checks(
        self,
        owner_id: str,
        project_id: str,
        engines: Optional[Sequence[str]] = None,
        keywords: Optional[Sequence[str]] = None,
    ) -> List[CheckRecord]:
        """Create checks and block until every one is completed or failed."""
        project = self._owned_project(owner_id, project_id)
        return self._orchestrator.run(project, engines=engines, keywords=keywords)

    def list_checks(
        self,
        owner_id: str,
        project_id: str,
        engine: Optional[str] = None,
        keyword: Optional[str] = None,
        limit: Optional[int] = None,
        page: int = 1,
    ) -> CheckPage:
        """
        One page of a project's checks in any state, newest first.

        `keyword` is a case-insensitive substring filter.
        """
        limit = self._settings.checks_page_size if limit is None else limit
        if limit < 1 or page < 1:
            raise InvalidRequestError("limit and page must be positive integers")
        if engine is not None and engine not in ENGINES:
            raise InvalidRequestError(f"Unknown engine '{engine}'")

        project = self._owned_project(owner_id, project_id)
        query = CheckQuery(
            project_ids=[project.id],
            engine=engine,
            keyword_contains=keyword.strip() if keyword else None,
            limit=limit,
            offset=(page - 1) * limit,
        )
        total = self._checks.count(query)
        return CheckPage(
            checks=self._checks.find(query),
            pagination=Pagination(current=page, pages=math.ceil(total / limit), total=total),
        )

    def get_check(self, owner_id: str, check_id: str) -> CheckRecord:
        record = self._checks.get(check_id)
        if record is None:
            raise NotFoundError("check", check_id)
        project = self._projects.get(record.project_id)
        if project is None or not project.is_active:
            raise NotFoundError("check", check_id)
        if project.owner_id != owner_id:
            raise AccessDeniedError(f"Check {check_id} belongs to another owner")
        return record

    # ------------------------------------------------------------------ #
    # Dashboard
    # ------------------------------------------------------------------ #
    def overview(
        self, owner_id: str, project_id: Optional[str] = None, days: Optional[int] = None
    ) -> Overview:
        """
        Visibility scores, trends, keyword breakdown and recommendations over
        the completed checks of the last `days` days.
        """
        since, until, period = self._window(days)
        records = self._completed_records(self._scope(owner_id, project_id), since, until)
        summary = aggregator.summarize(
            records,
            keyword_limit=self._settings.keyword_breakdown_limit,
            low_visibility_threshold=self._settings.low_visibility_threshold,
            low_citations_threshold=self._settings.low_citations_threshold,
        )
        log.debug(
            "Overview computed",
            extra={"owner_id": owner_id, "project_id": project_id, "records": len(records)},
        )
        return Overview(**summary, period=period)

    def keyword_analysis(
        self, owner_id: str, keyword: str, days: Optional[int] = None
    ) -> KeywordReport:
        if not keyword or not keyword.strip():
            raise InvalidRequestError("keyword must not be empty")
        since, until, period = self._window(days)
        records = self._completed_records(self._scope(owner_id, None), since, until)
        return KeywordReport(
            keyword=keyword,
            period=period,
            engine_data=aggregator.keyword_analysis(records, keyword),
        )

    def engine_comparison(
        self, owner_id: str, project_id: Optional[str] = None, days: Optional[int] = None
    ) -> EngineReport:
        since, until, period = self._window(days)
        records = self._completed_records(self._scope(owner_id, project_id), since, until)
        return EngineReport(
            engine_comparison=aggregator.engine_comparison(records),
            period=period,
        )


__all__ = [
    "DashboardService",
    "CheckPage",
    "Pagination",
    "Period",
    "Overview",
    "KeywordReport",
    "EngineReport",
]
