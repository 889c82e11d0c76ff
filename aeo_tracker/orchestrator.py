"""
Check orchestrator: creates pending checks and resolves them against engine clients.

For a project it creates one pending CheckRecord per (engine x keyword), then
resolves every record concurrently and independently. Each resolution queries
the engine client under a timeout, retries retryable failures with exponential
backoff, and finally moves the record to `completed` or `failed`. A failing
check never affects its siblings.

Usage:
    from aeo_tracker.orchestrator import CheckOrchestrator

    orchestrator = CheckOrchestrator(check_store)
    resolved = orchestrator.run(project, engines=["chatgpt"])
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Callable, Iterable, List, Mapping, Optional, Sequence, Set

from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from aeo_tracker.config import Settings, get_settings
from aeo_tracker.domain.errors import (
    EngineQueryError,
    InvalidRequestError,
    InvalidTransitionError,
)
from aeo_tracker.domain.models import (
    ENGINES,
    CheckRecord,
    EngineResponse,
    Project,
    normalize_keyword,
    utcnow,
)
from aeo_tracker.engines.abstract import EngineClient
from aeo_tracker.engines.simulated import simulated_clients
from aeo_tracker.stores.abstract import CheckStore
from aeo_tracker.utils.logging import get_logger

log = get_logger(__name__)

_RETRYABLE = (EngineQueryError, asyncio.TimeoutError)
_MAX_BACKOFF_SECONDS = 30.0


def _dedupe(values: Iterable[str]) -> List[str]:
    return list(dict.fromkeys(values))


class CheckOrchestrator:
    """
    Runs brand-presence checks for a project.

    Parameters
    ----------
    check_store : CheckStore
        Where pending records are created and transitioned.
    clients : mapping[str, EngineClient] | None
        Engine registry keyed by engine name. Defaults to simulated clients.
    delay_seconds : float | None
        Pause before resolution starts. Defaults to settings.check_delay_seconds.
    timeout_seconds : float | None
        Bound on a single engine query. Defaults to settings.engine_timeout_seconds.
    max_attempts : int | None
        Attempts per check for retryable failures. Defaults to settings.engine_max_attempts.
    backoff_seconds : float | None
        Base of the exponential backoff. Defaults to settings.engine_backoff_seconds.
    clock : callable | None
        Source of timestamps for created and transitioned records.
    settings : Settings | None
        Source of the defaults above and of the default engines. Defaults to
        get_settings().
    """

    def __init__(
        self,
        check_store: CheckStore,
        clients: Optional[Mapping[str, EngineClient]] = None,
        delay_seconds: Optional[float] = None,
        timeout_seconds: Optional[float] = None,
        max_attempts: Optional[int] = None,
        backoff_seconds: Optional[float] = None,
        clock: Optional[Callable[[], datetime]] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        settings = settings or get_settings()
        self._store = check_store
        self._clients = dict(clients) if clients is not None else simulated_clients()
        self._delay_seconds = (
            settings.check_delay_seconds if delay_seconds is None else delay_seconds
        )
        self._timeout_seconds = (
            settings.engine_timeout_seconds if timeout_seconds is None else timeout_seconds
        )
        self._max_attempts = settings.engine_max_attempts if max_attempts is None else max_attempts
        self._backoff_seconds = (
            settings.engine_backoff_seconds if backoff_seconds is None else backoff_seconds
        )
        self._default_engines = list(settings.default_engines)
        self._clock = clock or utcnow
        self._tasks: Set[asyncio.Task] = set()

    def available_engines(self) -> List[str]:
        """List engine names that have a registered client."""
        return sorted(self._clients.keys())

    def _resolve_engines(self, project: Project, engines: Optional[Sequence[str]]) -> List[str]:
        requested = _dedupe(engines or project.settings.engines or self._default_engines)
        unknown = [e for e in requested if e not in ENGINES or e not in self._clients]
        if unknown:
            raise InvalidRequestError(
                f"Unknown engine(s): {', '.join(unknown)}. "
                f"Available: {', '.join(self.available_engines())}"
            )
        return requested

    @staticmethod
    def _resolve_keywords(project: Project, keywords: Optional[Sequence[str]]) -> List[str]:
        source = project.keyword_names if keywords is None else keywords
        normalized = _dedupe(k for k in (normalize_keyword(k) for k in source) if k)
        if not normalized:
            raise InvalidRequestError("At least one keyword is required to run checks")
        return normalized

    def create_pending(
        self,
        project: Project,
        engines: Optional[Sequence[str]] = None,
        keywords: Optional[Sequence[str]] = None,
    ) -> List[CheckRecord]:
        """
        Persist one pending check per (engine x keyword), in creation order.

        Engines default to the project's configured engines, keywords to its
        tracked keywords. Raises InvalidRequestError for unknown engines or an
        empty keyword list; nothing is persisted in that case.
        """
        engine_names = self._resolve_engines(project, engines)
        keyword_names = self._resolve_keywords(project, keywords)
        now = self._clock()
        checks = [
            CheckRecord(
                project_id=project.id,
                engine=engine,
                keyword=keyword,
                created_at=now,
                updated_at=now,
            )
            for engine in engine_names
            for keyword in keyword_names
        ]
        created = self._store.add_many(checks)
        log.info(
            f"[CHECKS CREATED] {len(created)} pending check(s) for project {project.id}",
            extra={
                "project_id": project.id,
                "engines": engine_names,
                "keywords": len(keyword_names),
                "checks": len(created),
            },
        )
        return created

    async def _query(self, client: EngineClient, project: Project, keyword: str) -> EngineResponse:
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self._max_attempts),
            wait=wait_exponential(multiplier=self._backoff_seconds, max=_MAX_BACKOFF_SECONDS),
            retry=retry_if_exception_type(_RETRYABLE),
            before_sleep=before_sleep_log(log, logging.WARNING),
            reraise=True,
        ):
            with attempt:
                return await asyncio.wait_for(
                    client.query(project.brand, project.domain, keyword),
                    timeout=self._timeout_seconds,
                )
        raise RuntimeError("retry loop ended without an outcome")  # pragma: no cover

    def _failure_message(self, exc: BaseException) -> str:
        if isinstance(exc, asyncio.TimeoutError):
            return (
                f"Engine query timed out after {self._timeout_seconds:g}s "
                f"({self._max_attempts} attempt(s))"
            )
        if isinstance(exc, EngineQueryError):
            return f"Engine query failed after {self._max_attempts} attempt(s): {exc}"
        return f"{type(exc).__name__}: {exc}"

    async def _transition(
        self, transition: Callable[..., CheckRecord], check: CheckRecord, argument: object
    ) -> CheckRecord:
        try:
            return await asyncio.to_thread(transition, check.id, argument, self._clock())
        except InvalidTransitionError:
            log.warning(
                f"[CHECK SKIPPED] {check.id} was already resolved",
                extra={"check_id": check.id},
            )
            stored = await asyncio.to_thread(self._store.get, check.id)
            return stored or check

    def _log_failure(self, check: CheckRecord, message: str, exc_info: bool = False) -> None:
        log.warning(
            f"[CHECK FAILED] {check.engine}/{check.keyword}",
            extra={"check_id": check.id, "engine": check.engine, "error": message},
            exc_info=exc_info,
        )

    async def _resolve(self, project: Project, check: CheckRecord) -> CheckRecord:
        """Move `check` to a terminal state; never raises except on cancellation."""
        client = self._clients.get(check.engine)
        try:
            if client is None:
                raise InvalidRequestError(f"No client registered for engine '{check.engine}'")
            response = await self._query(client, project, check.keyword)
        except Exception as exc:  # noqa: BLE001
            message = self._failure_message(exc)
            self._log_failure(check, message)
        else:
            log.debug(
                f"[CHECK COMPLETED] {check.engine}/{check.keyword}",
                extra={
                    "check_id": check.id,
                    "engine": check.engine,
                    "presence": response.presence,
                    "position": response.position,
                },
            )
            try:
                return await self._transition(self._store.complete, check, response)
            except Exception as exc:  # noqa: BLE001
                message = f"Storing the result failed: {type(exc).__name__}: {exc}"
                self._log_failure(check, message, exc_info=True)

        try:
            return await self._transition(self._store.fail, check, message)
        except Exception:  # noqa: BLE001
            log.error(
                f"[CHECK STRANDED] {check.id} could not be marked failed",
                extra={"check_id": check.id, "engine": check.engine},
                exc_info=True,
            )
            return check

    async def resolve_all(
        self, project: Project, checks: Sequence[CheckRecord]
    ) -> List[CheckRecord]:
        """
        Resolve every check concurrently after the configured delay.

        Returns the terminal records in the order of `checks`.
        """
        if not checks:
            return []
        if self._delay_seconds:
            await asyncio.sleep(self._delay_seconds)

        resolved = await asyncio.gather(*(self._resolve(project, c) for c in checks))
        completed = sum(1 for r in resolved if r.status == "completed")
        failed = sum(1 for r in resolved if r.status == "failed")
        log.info(
            f"[CHECKS RESOLVED] project {project.id}",
            extra={
                "project_id": project.id,
                "completed": completed,
                "failed": failed,
            },
        )
        return list(resolved)

    def schedule(self, project: Project, checks: Sequence[CheckRecord]) -> asyncio.Task:
        """
        Resolve `checks` in the background on the running event loop.

        The task is referenced until it finishes so it cannot be garbage
        collected mid-flight. Raises RuntimeError when no loop is running.
        """
        loop = asyncio.get_running_loop()
        task = loop.create_task(self.resolve_all(project, list(checks)))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    @property
    def pending_tasks(self) -> int:
        return len(self._tasks)

    async def drain(self) -> None:
        """Wait for every scheduled resolution to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks))

    def run(
        self,
        project: Project,
        engines: Optional[Sequence[str]] = None,
        keywords: Optional[Sequence[str]] = None,
    ) -> List[CheckRecord]:
        """
        Create and resolve checks, blocking until every one is terminal.

        For synchronous callers only; raises RuntimeError inside a running loop.
        """
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            pass
        else:
            raise RuntimeError("CheckOrchestrator.run() cannot be called from a running event loop")

        checks = self.create_pending(project, engines=engines, keywords=keywords)
        return asyncio.run(self.resolve_all(project, checks))


__all__ = ["CheckOrchestrator"]
