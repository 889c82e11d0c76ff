from __future__ import annotations

from datetime import datetime

import pytest
from pydantic import ValidationError

from aeo_tracker.domain.errors import InvalidTransitionError, NotFoundError
from aeo_tracker.domain.models import (
    CheckRecord,
    EngineResponse,
    ObservedUrl,
    Project,
    ProjectCreate,
    ProjectSettings,
    ProjectUpdate,
    normalize_domain,
)

CHECK_TIME = datetime(2024, 3, 15, 12, 0)


def _pending() -> CheckRecord:
    return CheckRecord(project_id="p1", engine="chatgpt", keyword="  AI Tools ")


def _present_response() -> EngineResponse:
    return EngineResponse(
        presence=True,
        position=3,
        citations_count=2,
        observed_urls=[
            ObservedUrl(url="https://acme.com/a", domain="ACME.com", position=1),
            ObservedUrl(url="https://acme.com/b", domain="acme.com", position=2),
        ],
        answer_snippet="Acme is mentioned.",
    )


def test_check_record_normalizes_keyword_and_defaults() -> None:
    check = _pending()

    assert check.keyword == "ai tools"
    assert check.status == "pending"
    assert check.is_pending
    assert check.position == 0
    assert check.citations_count == 0
    assert check.created_at.tzinfo is not None


def test_naive_timestamps_are_treated_as_utc() -> None:
    check = CheckRecord(
        project_id="p1", engine="gemini", keyword="crm", created_at=CHECK_TIME
    )

    assert check.created_at.utcoffset().total_seconds() == 0


def test_unknown_engine_is_rejected() -> None:
    with pytest.raises(ValidationError):
        CheckRecord(project_id="p1", engine="bing", keyword="crm")


def test_completed_populates_fields_and_lowercases_url_domains() -> None:
    done = _pending().completed(_present_response())

    assert done.status == "completed"
    assert done.presence is True
    assert done.position == 3
    assert done.citations_count == 2
    assert [u.domain for u in done.observed_urls] == ["acme.com", "acme.com"]
    assert done.answer_snippet == "Acme is mentioned."
    assert done.error_message is None


def test_completed_absent_response_clears_rank_citations_and_urls() -> None:
    response = EngineResponse(
        presence=False,
        position=4,
        citations_count=3,
        observed_urls=[ObservedUrl(url="https://x.com", domain="x.com", position=1)],
    )

    done = _pending().completed(response)

    assert done.presence is False
    assert done.position == 0
    assert done.citations_count == 0
    assert done.observed_urls == []


def test_failed_records_message_and_keeps_defaults() -> None:
    failed = _pending().failed("engine unavailable")

    assert failed.status == "failed"
    assert failed.error_message == "engine unavailable"
    assert failed.presence is False
    assert failed.position == 0


def test_second_transition_raises() -> None:
    done = _pending().completed(_present_response())

    with pytest.raises(InvalidTransitionError):
        done.failed("late failure")
    with pytest.raises(InvalidTransitionError):
        done.completed(_present_response())


def test_records_are_immutable() -> None:
    check = _pending()

    with pytest.raises(ValidationError):
        check.status = "completed"


def test_snippet_length_is_bounded() -> None:
    with pytest.raises(ValidationError):
        EngineResponse(presence=True, position=1, answer_snippet="x" * 2001)


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("Example.COM", "example.com"),
        ("https://www.Example.com/path?q=1", "www.example.com"),
        ("example.com/pricing", "example.com"),
    ],
)
def test_normalize_domain_accepts_hosts_and_urls(raw: str, expected: str) -> None:
    assert normalize_domain(raw) == expected


@pytest.mark.parametrize("raw", ["not a domain", "localhost", "http://", "-bad-.com"])
def test_normalize_domain_rejects_invalid_values(raw: str) -> None:
    with pytest.raises(ValueError):
        normalize_domain(raw)


def test_project_collapses_duplicate_keywords_keeping_first() -> None:
    project = Project(
        owner_id="o1",
        name="Acme",
        domain="acme.com",
        brand="Acme",
        keywords=[
            {"keyword": "AI Tools", "category": "secondary", "target_position": 2},
            "ai tools",
            " CRM ",
        ],
    )

    assert project.keyword_names == ["ai tools", "crm"]
    assert project.keywords[0].category == "secondary"
    assert project.settings.engines == ["chatgpt", "gemini"]
    assert project.settings.check_frequency == "daily"


def test_project_create_requires_a_keyword() -> None:
    with pytest.raises(ValidationError):
        ProjectCreate(name="Acme", domain="acme.com", brand="Acme", keywords=[])


def test_project_create_rejects_out_of_range_target_position() -> None:
    with pytest.raises(ValidationError):
        ProjectCreate(
            name="Acme",
            domain="acme.com",
            brand="Acme",
            keywords=[{"keyword": "crm", "target_position": 11}],
        )


def test_project_name_length_is_bounded() -> None:
    with pytest.raises(ValidationError):
        ProjectCreate(name="x" * 101, domain="acme.com", brand="Acme", keywords=["crm"])


def test_project_settings_dedupes_engines() -> None:
    settings = ProjectSettings(engines=["claude", "claude", "gemini"])

    assert settings.engines == ["claude", "gemini"]


def test_project_update_tracks_only_provided_fields() -> None:
    update = ProjectUpdate(name="Renamed")

    assert update.model_dump(exclude_unset=True) == {"name": "Renamed"}


def test_not_found_error_message() -> None:
    error = NotFoundError("project", "abc")

    assert str(error) == "Project not found: abc"
    assert error.kind == "project"
