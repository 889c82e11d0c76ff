"""
Sample data seeding script for the AEO Tracker.

Creates a demo project with two weeks of completed checks across four engines,
plus a second project without history. Generation is deterministic for a given
seed and reference time, so repeated runs produce the same presence pattern.
"""

from __future__ import annotations

import random
import sys
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional, Tuple

import typer
from rich.console import Console

from aeo_tracker import reporter
from aeo_tracker.config import get_settings
from aeo_tracker.domain.models import CheckMetadata, CheckRecord, ObservedUrl, Project
from aeo_tracker.infrastructure.db_factory import (
    build_dsn,
    get_sync_connection,
    initialize_schema,
)
from aeo_tracker.service import DashboardService
from aeo_tracker.stores import (
    InMemoryCheckStore,
    InMemoryProjectStore,
    PostgresCheckStore,
    PostgresProjectStore,
)

app = typer.Typer(help="Seed a sample project with synthetic check history.")

SEED_ENGINES = ("chatgpt", "gemini", "claude", "perplexity")
ENGINE_MODIFIERS: Dict[str, float] = {
    "chatgpt": 1.0,
    "gemini": 0.9,
    "claude": 0.85,
    "perplexity": 0.8,
}
SEED_USER_AGENT = "AEO-Tracker/1.0"

_URL_PATHS = ("solutions/ai", "blog/ai-trends", "case-studies", "resources/whitepapers")
_SNIPPETS = (
    "{brand} is a leading provider of {keyword} solutions, offering comprehensive "
    "services to help businesses implement cutting-edge technology.",
    "When it comes to {keyword}, {brand} has established itself as an industry leader "
    "with innovative approaches and proven results.",
    "{brand}'s expertise in {keyword} spans over a decade, with successful "
    "implementations across various industries.",
    "The company's {keyword} platform has been recognized for its advanced "
    "capabilities and user-friendly interface.",
)


def sample_projects(owner_id: str, now: datetime) -> Tuple[Project, Project]:
    """The demo project that receives check history, and a quieter second project."""
    techcorp = Project(
        owner_id=owner_id,
        name="TechCorp AI Visibility",
        description="Tracking AI search visibility for TechCorp brand and products",
        domain="techcorp.com",
        brand="TechCorp",
        competitors=[
            {"name": "Competitor A", "domain": "competitor-a.com"},
            {"name": "Competitor B", "domain": "competitor-b.com"},
        ],
        keywords=[
            {"keyword": "artificial intelligence", "category": "primary", "target_position": 3},
            {"keyword": "machine learning", "category": "primary", "target_position": 2},
            {"keyword": "AI automation", "category": "secondary", "target_position": 5},
            {"keyword": "deep learning algorithms", "category": "long-tail", "target_position": 4},
            {"keyword": "neural networks", "category": "primary", "target_position": 3},
            {"keyword": "AI consulting services", "category": "secondary", "target_position": 6},
            {"keyword": "automated decision making", "category": "long-tail", "target_position": 7},
            {"keyword": "predictive analytics", "category": "secondary", "target_position": 4},
            {"keyword": "AI implementation guide", "category": "long-tail", "target_position": 5},
            {"keyword": "intelligent systems", "category": "primary", "target_position": 3},
        ],
        settings={"check_frequency": "daily", "engines": list(SEED_ENGINES)},
        created_at=now - timedelta(days=15),
        updated_at=now - timedelta(days=15),
    )
    shopai = Project(
        owner_id=owner_id,
        name="E-commerce AI Tracking",
        description="Monitoring AI search presence for e-commerce platform",
        domain="shopai.com",
        brand="ShopAI",
        competitors=[{"name": "E-commerce Giant", "domain": "ecommerce-giant.com"}],
        keywords=[
            {"keyword": "e-commerce AI", "category": "primary", "target_position": 2},
            {"keyword": "shopping automation", "category": "secondary", "target_position": 4},
            {
                "keyword": "AI product recommendations",
                "category": "long-tail",
                "target_position": 3,
            },
        ],
        settings={"check_frequency": "weekly", "engines": ["chatgpt", "gemini"]},
        created_at=now - timedelta(days=1),
        updated_at=now - timedelta(days=1),
    )
    return techcorp, shopai


def generate_checks(
    project: Project,
    rng: random.Random,
    days: int,
    now: datetime,
) -> List[CheckRecord]:
    """
    One completed check per (day, engine, keyword), going back `days` days from `now`.

    Presence is drawn against a 60-90% base rate scaled by the engine modifier.
    """
    checks: List[CheckRecord] = []
    for day in range(days):
        checked_at = now - timedelta(days=day)
        for engine in SEED_ENGINES:
            for keyword in project.keyword_names:
                base_presence = 0.6 + rng.random() * 0.3
                presence = rng.random() < base_presence * ENGINE_MODIFIERS[engine]
                position = rng.randint(1, 8) if presence else 0
                citations = rng.randint(0, 3) if presence else 0
                snippet = (
                    rng.choice(_SNIPPETS).format(brand=project.brand, keyword=keyword)
                    if presence
                    else None
                )
                urls = [
                    ObservedUrl(
                        url=f"https://{project.domain}/{path}",
                        domain=project.domain,
                        position=index,
                    )
                    for index, path in enumerate(_URL_PATHS[:citations], start=1)
                ]
                checks.append(
                    CheckRecord(
                        project_id=project.id,
                        engine=engine,
                        keyword=keyword,
                        presence=presence,
                        position=position,
                        citations_count=citations,
                        observed_urls=urls,
                        answer_snippet=snippet,
                        metadata=CheckMetadata(
                            query_time_ms=rng.randint(500, 1999),
                            response_size_bytes=rng.randint(1000, 3999),
                            user_agent=SEED_USER_AGENT,
                            ip_address="127.0.0.1",
                        ),
                        status="completed",
                        created_at=checked_at,
                        updated_at=checked_at,
                    )
                )
    return checks


def _reset_db(dsn: str, owner_id: str) -> None:
    with get_sync_connection(dsn) as conn:
        with conn.cursor() as cur:
            cur.execute(
                "DELETE FROM public.checks WHERE project_id IN "
                "(SELECT id FROM public.projects WHERE owner_id = %s)",
                (owner_id,),
            )
            cur.execute("DELETE FROM public.projects WHERE owner_id = %s", (owner_id,))
        conn.commit()


def _load_into_db(dsn: str, projects: List[Project], checks: List[CheckRecord]) -> None:
    project_store = PostgresProjectStore(dsn_override=dsn)
    check_store = PostgresCheckStore(dsn_override=dsn)
    try:
        for project in projects:
            project_store.add(project)
        check_store.add_many(checks)
    finally:
        project_store.close()
        check_store.close()


@app.command()
def main(
    days: int = typer.Option(14, "--days", "-d", min=1, help="Days of history to generate."),
    seed: int = typer.Option(42, "--seed", help="Deterministic RNG seed."),
    owner: Optional[str] = typer.Option(
        None, "--owner", help="Owner id for the seeded projects (defaults to DEFAULT_OWNER_ID)."
    ),
    dsn: Optional[str] = typer.Option(None, "--dsn", help="Optional DSN override for Postgres."),
    reset: bool = typer.Option(
        False, "--reset", help="Delete the owner's existing projects and checks first."
    ),
    no_load: bool = typer.Option(
        False, "--no-load", help="Only generate and print the overview; skip Postgres."
    ),
) -> None:
    """
    Generate sample projects and check history, then load them into Postgres.
    """
    owner_id = owner or get_settings().default_owner_id
    now = datetime.now(timezone.utc)
    rng = random.Random(seed)

    techcorp, shopai = sample_projects(owner_id, now)
    checks = generate_checks(techcorp, rng, days=days, now=now)
    typer.echo(
        f"Generated {len(checks):,} checks for '{techcorp.name}' "
        f"({days} day(s), {len(SEED_ENGINES)} engines, seed={seed})"
    )

    if no_load:
        projects = InMemoryProjectStore()
        check_store = InMemoryCheckStore()
        for project in (techcorp, shopai):
            projects.add(project)
        check_store.add_many(checks)
        service = DashboardService(projects, check_store, clock=lambda: now)
        reporter.print_overview(service.overview(owner_id, days=days), console=Console())
        return

    conn_dsn = dsn or build_dsn()
    initialize_schema(conn_dsn)
    if reset:
        _reset_db(conn_dsn, owner_id)
        typer.echo(f"Removed existing data for owner '{owner_id}'.")
    _load_into_db(conn_dsn, [techcorp, shopai], checks)
    typer.echo(f"Seeded projects {techcorp.id} and {shopai.id} for owner '{owner_id}'.")


if __name__ == "__main__":
    try:
        app()
    except KeyboardInterrupt:
        typer.echo("Cancelled by user.", err=True)
        sys.exit(130)
