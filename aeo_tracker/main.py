from __future__ import annotations

import json
import sys
from contextlib import contextmanager
from typing import Any, Iterator, List, Optional

import typer
from pydantic_core import to_jsonable_python
from rich.console import Console

from aeo_tracker import reporter
from aeo_tracker.config import Settings, get_settings
from aeo_tracker.domain.errors import AeoTrackerError, InvalidRequestError
from aeo_tracker.domain.models import ENGINES
from aeo_tracker.infrastructure.db_factory import initialize_schema
from aeo_tracker.service import DashboardService
from aeo_tracker.stores import (
    InMemoryCheckStore,
    InMemoryProjectStore,
    PostgresCheckStore,
    PostgresProjectStore,
)
from aeo_tracker.utils.logging import configure_logging

app = typer.Typer(help="AEO Tracker: brand visibility in AI answer engines.")
projects_app = typer.Typer(help="Manage tracked projects.")
checks_app = typer.Typer(help="Run and inspect visibility checks.")
dashboard_app = typer.Typer(help="Aggregated visibility metrics.")
app.add_typer(projects_app, name="projects")
app.add_typer(checks_app, name="checks")
app.add_typer(dashboard_app, name="dashboard")

JSON_OPTION = typer.Option(False, "--json", help="Print raw JSON instead of tables.")
DAYS_OPTION = typer.Option(None, "--days", "-d", min=1, help="Window size in days.")
PROJECT_OPTION = typer.Option(None, "--project", "-p", help="Restrict to one project id.")


def build_service(settings: Settings) -> DashboardService:
    """
    Wire stores according to STORAGE_BACKEND ("postgres" or "memory").

    The memory backend keeps nothing between invocations.
    """
    backend = settings.storage_backend.lower()
    if backend == "memory":
        return DashboardService(InMemoryProjectStore(), InMemoryCheckStore(), settings=settings)
    if backend == "postgres":
        return DashboardService(PostgresProjectStore(), PostgresCheckStore(), settings=settings)
    raise InvalidRequestError(f"Unknown storage backend '{settings.storage_backend}'")


def _service() -> DashboardService:
    return build_service(get_settings())


def _owner(ctx: typer.Context) -> str:
    return (ctx.obj or {}).get("owner") or get_settings().default_owner_id


def _echo_json(data: Any) -> None:
    typer.echo(json.dumps(to_jsonable_python(data), indent=2))


@contextmanager
def _reported_errors() -> Iterator[None]:
    try:
        yield
    except AeoTrackerError as exc:
        Console(stderr=True).print(f"[red]Error:[/red] {exc}")
        raise typer.Exit(code=1) from exc


@app.callback()
def _main(
    ctx: typer.Context,
    owner: Optional[str] = typer.Option(
        None,
        "--owner",
        "-o",
        envvar="AEO_OWNER",
        help="Owner id to act as (defaults to DEFAULT_OWNER_ID).",
    ),
) -> None:
    settings = get_settings()
    configure_logging(level=settings.log_level, json_logs=settings.log_json)
    ctx.obj = {"owner": owner}


@app.command()
def info() -> None:
    """
    Show effective configuration values.
    """
    settings = get_settings()
    typer.echo(
        f"backend={settings.storage_backend} "
        f"DB={settings.db_user}@{settings.db_host}:{settings.db_port}/{settings.db_name} | "
        f"owner={settings.default_owner_id} engines={','.join(settings.default_engines)} "
        f"delay={settings.check_delay_seconds}s timeout={settings.engine_timeout_seconds}s "
        f"attempts={settings.engine_max_attempts}"
    )


@app.command()
def engines() -> None:
    """
    List engines that checks can run against.
    """
    with _reported_errors():
        available = _service().orchestrator.available_engines()
    typer.echo("Available engines: " + ", ".join(available))


@app.command("init-db")
def init_db() -> None:
    """
    Create the PostgreSQL tables and indexes if they are missing.
    """
    initialize_schema()
    typer.echo("Database schema is ready.")


# ---------------------------------------------------------------------- #
# projects
# ---------------------------------------------------------------------- #
@projects_app.command("list")
def projects_list(ctx: typer.Context, as_json: bool = JSON_OPTION) -> None:
    """List active projects, newest first."""
    with _reported_errors():
        projects = _service().list_projects(_owner(ctx))
    if as_json:
        _echo_json(projects)
    else:
        reporter.print_projects(projects)


@projects_app.command("show")
def projects_show(ctx: typer.Context, project_id: str, as_json: bool = JSON_OPTION) -> None:
    """Show one project."""
    with _reported_errors():
        project = _service().get_project(_owner(ctx), project_id)
    if as_json:
        _echo_json(project)
    else:
        reporter.print_project(project)


def _parse_competitor(raw: str) -> dict:
    name, sep, domain = raw.partition("=")
    if not sep or not name.strip() or not domain.strip():
        raise InvalidRequestError(f"Competitor must look like 'Name=domain.com', got '{raw}'")
    return {"name": name.strip(), "domain": domain.strip()}


@projects_app.command("create")
def projects_create(
    ctx: typer.Context,
    name: str = typer.Option(..., "--name", "-n", help="Project name."),
    domain: str = typer.Option(..., "--domain", help="Brand domain or URL."),
    brand: str = typer.Option(..., "--brand", "-b", help="Brand name to look for."),
    keyword: List[str] = typer.Option(
        ..., "--keyword", "-k", help="Tracked keyword (repeatable)."
    ),
    competitor: Optional[List[str]] = typer.Option(
        None, "--competitor", "-c", help="Competitor as Name=domain (repeatable)."
    ),
    engine: Optional[List[str]] = typer.Option(
        None, "--engine", "-e", help=f"Engine to check (repeatable): {', '.join(ENGINES)}."
    ),
    frequency: str = typer.Option("daily", "--frequency", help="daily, weekly or monthly."),
    description: Optional[str] = typer.Option(None, "--description", help="Free text."),
    as_json: bool = JSON_OPTION,
) -> None:
    """Create a project."""
    with _reported_errors():
        payload: dict = {
            "name": name,
            "domain": domain,
            "brand": brand,
            "description": description,
            "keywords": list(keyword),
            "competitors": [_parse_competitor(c) for c in competitor or []],
        }
        if engine or frequency != "daily":
            settings_payload: dict = {"check_frequency": frequency}
            if engine:
                settings_payload["engines"] = list(engine)
            payload["settings"] = settings_payload
        project = _service().create_project(_owner(ctx), payload)
    if as_json:
        _echo_json(project)
    else:
        typer.echo(f"Created project {project.id} ({project.name}).")


@projects_app.command("update")
def projects_update(
    ctx: typer.Context,
    project_id: str,
    name: Optional[str] = typer.Option(None, "--name", "-n"),
    domain: Optional[str] = typer.Option(None, "--domain"),
    brand: Optional[str] = typer.Option(None, "--brand", "-b"),
    description: Optional[str] = typer.Option(None, "--description"),
    keyword: Optional[List[str]] = typer.Option(
        None, "--keyword", "-k", help="Replace the keyword list (repeatable)."
    ),
    as_json: bool = JSON_OPTION,
) -> None:
    """Update selected fields of a project."""
    provided = {
        "name": name,
        "domain": domain,
        "brand": brand,
        "description": description,
        "keywords": list(keyword) if keyword else None,
    }
    changes = {key: value for key, value in provided.items() if value is not None}
    with _reported_errors():
        if not changes:
            raise InvalidRequestError("Nothing to update; pass at least one option.")
        project = _service().update_project(_owner(ctx), project_id, changes)
    if as_json:
        _echo_json(project)
    else:
        typer.echo(f"Updated project {project.id}.")


@projects_app.command("delete")
def projects_delete(ctx: typer.Context, project_id: str) -> None:
    """Deactivate a project; its checks stop counting towards the dashboard."""
    with _reported_errors():
        _service().delete_project(_owner(ctx), project_id)
    typer.echo(f"Project {project_id} deleted.")


# ---------------------------------------------------------------------- #
# checks
# ---------------------------------------------------------------------- #
@checks_app.command("run")
def checks_run(
    ctx: typer.Context,
    project_id: str,
    engine: Optional[List[str]] = typer.Option(
        None, "--engine", "-e", help="Engine to check (repeatable). Defaults to the project's."
    ),
    keyword: Optional[List[str]] = typer.Option(
        None, "--keyword", "-k", help="Keyword to check (repeatable). Defaults to the project's."
    ),
    as_json: bool = JSON_OPTION,
) -> None:
    """Run checks for a project and wait for the results."""
    with _reported_errors():
        checks = _service().run_checks(
            _owner(ctx),
            project_id,
            engines=list(engine) if engine else None,
            keywords=list(keyword) if keyword else None,
        )
    if as_json:
        _echo_json(checks)
        return
    reporter.print_checks(checks)
    failed = sum(1 for c in checks if c.status == "failed")
    typer.echo(f"{len(checks) - failed} completed, {failed} failed.")


@checks_app.command("list")
def checks_list(
    ctx: typer.Context,
    project_id: str,
    engine: Optional[str] = typer.Option(None, "--engine", "-e"),
    keyword: Optional[str] = typer.Option(None, "--keyword", "-k", help="Substring match."),
    limit: Optional[int] = typer.Option(None, "--limit", "-l", min=1),
    page: int = typer.Option(1, "--page", min=1),
    as_json: bool = JSON_OPTION,
) -> None:
    """List a project's checks, newest first."""
    with _reported_errors():
        result = _service().list_checks(
            _owner(ctx), project_id, engine=engine, keyword=keyword, limit=limit, page=page
        )
    if as_json:
        _echo_json(result)
    else:
        reporter.print_checks(result["checks"], pagination=result["pagination"])


@checks_app.command("show")
def checks_show(ctx: typer.Context, check_id: str, as_json: bool = JSON_OPTION) -> None:
    """Show one check."""
    with _reported_errors():
        check = _service().get_check(_owner(ctx), check_id)
    if as_json:
        _echo_json(check)
    else:
        reporter.print_check(check)


# ---------------------------------------------------------------------- #
# dashboard
# ---------------------------------------------------------------------- #
@dashboard_app.command("overview")
def dashboard_overview(
    ctx: typer.Context,
    project: Optional[str] = PROJECT_OPTION,
    days: Optional[int] = DAYS_OPTION,
    as_json: bool = JSON_OPTION,
) -> None:
    """Visibility scores, trends, keyword breakdown and recommendations."""
    with _reported_errors():
        overview = _service().overview(_owner(ctx), project_id=project, days=days)
    if as_json:
        _echo_json(overview)
    else:
        reporter.print_overview(overview)


@dashboard_app.command("keyword")
def dashboard_keyword(
    ctx: typer.Context,
    keyword: str,
    days: Optional[int] = DAYS_OPTION,
    as_json: bool = JSON_OPTION,
) -> None:
    """Daily per-engine visibility for keywords containing KEYWORD."""
    with _reported_errors():
        report = _service().keyword_analysis(_owner(ctx), keyword, days=days)
    if as_json:
        _echo_json(report)
    else:
        reporter.print_keyword_analysis(report)


@dashboard_app.command("engines")
def dashboard_engines(
    ctx: typer.Context,
    project: Optional[str] = PROJECT_OPTION,
    days: Optional[int] = DAYS_OPTION,
    as_json: bool = JSON_OPTION,
) -> None:
    """Compare engines and their most recent ranking keywords."""
    with _reported_errors():
        report = _service().engine_comparison(_owner(ctx), project_id=project, days=days)
    if as_json:
        _echo_json(report)
    else:
        reporter.print_engine_comparison(report)


def main() -> None:
    try:
        app()
    except KeyboardInterrupt:
        typer.echo("Cancelled by user.", err=True)
        sys.exit(130)


if __name__ == "__main__":
    main()
