from __future__ import annotations

import json
import logging

import pytest
from typer.testing import CliRunner

from aeo_tracker import main
from aeo_tracker.config import Settings
from aeo_tracker.domain.errors import InvalidRequestError

OWNER = "cli-owner"

runner = CliRunner()
real_build_service = main.build_service


@pytest.fixture(autouse=True)
def shared_service(service, monkeypatch: pytest.MonkeyPatch):
    """Every CLI invocation in a test talks to the same in-memory service."""
    monkeypatch.delenv("AEO_OWNER", raising=False)
    monkeypatch.setattr(main, "build_service", lambda settings: service)
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield service
    root.handlers[:] = handlers
    root.setLevel(level)


def _invoke(*args: str, owner: str = OWNER):
    return runner.invoke(main.app, ["--owner", owner, *args])


def _create_project(*extra: str) -> dict:
    result = _invoke(
        "projects",
        "create",
        "--name",
        "Acme",
        "--domain",
        "https://acme.com",
        "--brand",
        "Acme",
        "--keyword",
        "AI Tools",
        "--keyword",
        "crm",
        "--json",
        *extra,
    )
    assert result.exit_code == 0, result.output
    return json.loads(result.stdout)


def test_build_service_by_backend() -> None:
    memory = real_build_service(Settings(storage_backend="memory", _env_file=None))

    assert memory.list_projects(OWNER) == []
    assert memory.orchestrator.available_engines()
    with pytest.raises(InvalidRequestError, match="sqlite"):
        real_build_service(Settings(storage_backend="sqlite", _env_file=None))


def test_engines_command_lists_available_engines() -> None:
    result = _invoke("engines")

    assert result.exit_code == 0
    assert "chatgpt, claude, copilot, gemini, perplexity" in result.stdout


def test_create_and_list_projects() -> None:
    created = _create_project("--competitor", "Globex=globex.com", "--engine", "claude")

    assert created["domain"] == "acme.com"
    assert [k["keyword"] for k in created["keywords"]] == ["ai tools", "crm"]
    assert created["settings"]["engines"] == ["claude"]
    assert created["competitors"] == [{"name": "Globex", "domain": "globex.com"}]

    listed = _invoke("projects", "list", "--json")
    assert [p["id"] for p in json.loads(listed.stdout)] == [created["id"]]

    table = _invoke("projects", "list")
    assert "Acme" in table.stdout


def test_projects_are_scoped_by_owner_option() -> None:
    _create_project()

    result = _invoke("projects", "list", "--json", owner="someone-else")

    assert json.loads(result.stdout) == []


def test_invalid_competitor_is_reported() -> None:
    result = _invoke(
        "projects",
        "create",
        "--name",
        "Acme",
        "--domain",
        "acme.com",
        "--brand",
        "Acme",
        "--keyword",
        "crm",
        "--competitor",
        "no-separator",
    )

    assert result.exit_code == 1
    assert "Error" in result.output


def test_update_and_delete_project() -> None:
    created = _create_project()

    updated = _invoke("projects", "update", created["id"], "--name", "Acme 2", "--json")
    assert json.loads(updated.stdout)["name"] == "Acme 2"

    nothing = _invoke("projects", "update", created["id"])
    assert nothing.exit_code == 1

    deleted = _invoke("projects", "delete", created["id"])
    assert deleted.exit_code == 0
    missing = _invoke("projects", "show", created["id"])
    assert missing.exit_code == 1
    assert "Project not found" in missing.output


def test_run_checks_then_inspect_results() -> None:
    created = _create_project()

    run = _invoke("checks", "run", created["id"], "--engine", "chatgpt", "--json")
    assert run.exit_code == 0, run.output
    checks = json.loads(run.stdout)
    assert [(c["engine"], c["keyword"]) for c in checks] == [
        ("chatgpt", "ai tools"),
        ("chatgpt", "crm"),
    ]
    assert {c["status"] for c in checks} == {"completed"}

    listed = json.loads(_invoke("checks", "list", created["id"], "--limit", "1", "--json").stdout)
    assert listed["pagination"] == {"current": 1, "pages": 2, "total": 2}

    shown = json.loads(_invoke("checks", "show", checks[0]["id"], "--json").stdout)
    assert shown["id"] == checks[0]["id"]

    foreign = _invoke("checks", "show", checks[0]["id"], owner="someone-else")
    assert foreign.exit_code == 1


def test_run_checks_with_unknown_engine_fails() -> None:
    created = _create_project()

    result = _invoke("checks", "run", created["id"], "--engine", "bing")

    assert result.exit_code == 1
    assert "bing" in result.output


def test_dashboard_commands_report_completed_checks() -> None:
    created = _create_project()
    _invoke("checks", "run", created["id"], "--engine", "gemini")

    overview = json.loads(_invoke("dashboard", "overview", "--days", "7", "--json").stdout)
    assert [row["engine"] for row in overview["visibility_score"]] == ["gemini"]
    assert overview["visibility_score"][0]["total_checks"] == 2
    assert overview["period"]["days"] == 7

    keyword = json.loads(_invoke("dashboard", "keyword", "crm", "--json").stdout)
    assert [entry["engine"] for entry in keyword["engine_data"]] == ["gemini"]

    engines = json.loads(
        _invoke("dashboard", "engines", "--project", created["id"], "--json").stdout
    )
    assert [row["engine"] for row in engines["engine_comparison"]] == ["gemini"]

    rendered = _invoke("dashboard", "overview")
    assert rendered.exit_code == 0
    assert "Visibility by Engine" in rendered.stdout


def test_dashboard_rejects_non_positive_days() -> None:
    result = _invoke("dashboard", "overview", "--days", "0")

    assert result.exit_code != 0
