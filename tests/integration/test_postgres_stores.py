"""
Integration tests for the PostgreSQL stores.

These tests run against a real PostgreSQL instance and verify that:
1. Projects and checks round-trip through the JSONB columns intact
2. Check queries filter, order and page the same way as the in-memory store
3. Status transitions happen at most once
4. The dashboard service produces the same figures on top of Postgres

Run with: RUN_INTEGRATION_TESTS=1 pytest tests/integration/
"""

from __future__ import annotations

import os
from datetime import timedelta

import pytest

from aeo_tracker.domain.errors import InvalidTransitionError, NotFoundError
from aeo_tracker.domain.models import CheckRecord, EngineResponse, ObservedUrl
from aeo_tracker.orchestrator import CheckOrchestrator
from aeo_tracker.service import DashboardService
from aeo_tracker.stores import CheckQuery, PostgresCheckStore, PostgresProjectStore

pytestmark = pytest.mark.skipif(
    os.getenv("RUN_INTEGRATION_TESTS", "0") != "1",
    reason="Integration tests require RUN_INTEGRATION_TESTS=1 and reachable Postgres",
)


@pytest.fixture
def stores(test_dsn, clean_tables):
    projects = PostgresProjectStore(dsn_override=test_dsn)
    checks = PostgresCheckStore(dsn_override=test_dsn)
    yield projects, checks
    projects.close()
    checks.close()


class TestProjectStore:
    """Project persistence."""

    def test_add_and_get_round_trip(self, stores, make_project):
        projects, _ = stores
        project = make_project(
            competitors=[{"name": "Globex", "domain": "globex.com"}],
            keywords=[{"keyword": "crm", "category": "secondary", "target_position": 3}],
            settings={"engines": ["claude"], "check_frequency": "weekly"},
        )

        projects.add(project)

        assert projects.get(project.id).model_dump() == project.model_dump()
        assert projects.get("missing") is None

    def test_list_for_owner_hides_inactive(self, stores, make_project, now):
        projects, _ = stores
        older = projects.add(make_project(created_at=now - timedelta(days=3)))
        newer = projects.add(make_project(created_at=now - timedelta(days=1)))
        gone = projects.add(make_project(is_active=False))

        listed = projects.list_for_owner(older.owner_id)
        everything = projects.list_for_owner(older.owner_id, include_inactive=True)

        assert [p.id for p in listed] == [newer.id, older.id]
        assert gone.id in [p.id for p in everything]

    def test_replace_updates_or_raises(self, stores, make_project):
        projects, _ = stores
        project = projects.add(make_project())

        projects.replace(project.model_copy(update={"name": "Renamed"}))

        assert projects.get(project.id).name == "Renamed"
        with pytest.raises(NotFoundError):
            projects.replace(make_project())


class TestCheckStore:
    """Check persistence, queries and transitions."""

    def test_find_filters_orders_and_pages(self, stores, make_project, make_check):
        projects, checks = stores
        project = projects.add(make_project())
        records = [
            make_check(project_id=project.id, keyword="ai tools", days_ago=3),
            make_check(project_id=project.id, engine="gemini", keyword="best_ai tools", days_ago=2),
            make_check(project_id=project.id, keyword="crm", days_ago=1),
        ]
        checks.add_many(records)

        ordered = checks.find(CheckQuery(project_ids=[project.id]))
        assert [r.id for r in ordered] == [records[2].id, records[1].id, records[0].id]
        assert ordered[0].model_dump() == records[2].model_dump()

        matching = CheckQuery(project_ids=[project.id], keyword_contains="AI TOOLS")
        assert checks.count(matching) == 2
        # LIKE wildcards in the search text match literally
        assert checks.count(CheckQuery(keyword_contains="_ai")) == 1

        page = checks.find(CheckQuery(project_ids=[project.id], limit=1, offset=1))
        assert [r.id for r in page] == [records[1].id]
        assert checks.find(CheckQuery(project_ids=[])) == []

    def test_complete_once(self, stores, make_project, now):
        projects, checks = stores
        project = projects.add(make_project())
        pending = CheckRecord(project_id=project.id, engine="chatgpt", keyword="crm")
        checks.add_many([pending])

        response = EngineResponse(
            presence=True,
            position=2,
            citations_count=1,
            observed_urls=[ObservedUrl(url="https://acme.com/a", domain="acme.com", position=1)],
        )
        completed = checks.complete(pending.id, response, at=now)

        stored = checks.get(pending.id)
        assert stored.model_dump() == completed.model_dump()
        assert stored.observed_urls[0].url == "https://acme.com/a"
        with pytest.raises(InvalidTransitionError):
            checks.fail(pending.id, "late")


class TestServiceOnPostgres:
    """Dashboard figures over Postgres-backed stores."""

    def test_run_checks_then_overview(self, stores, now):
        projects, checks = stores
        orchestrator = CheckOrchestrator(
            checks, delay_seconds=0, timeout_seconds=5, backoff_seconds=0, clock=lambda: now
        )
        service = DashboardService(projects, checks, orchestrator=orchestrator, clock=lambda: now)
        project = service.create_project(
            "owner-a",
            {"name": "Acme", "domain": "acme.com", "brand": "Acme", "keywords": ["crm"]},
        )

        resolved = service.run_checks("owner-a", project.id, engines=["chatgpt", "claude"])

        assert {r.status for r in resolved} == {"completed"}
        overview = service.overview("owner-a", project.id, days=1)
        scores = [row["visibility_score"] for row in overview["visibility_score"]]
        assert scores == sorted(scores, reverse=True)
        assert sum(row["total_checks"] for row in overview["visibility_score"]) == 2
