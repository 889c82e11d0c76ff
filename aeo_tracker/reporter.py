"""
Terminal rendering of projects, checks and dashboard figures with rich.

Every function accepts an optional Console so tests can capture output.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Sequence

from rich import box
from rich.console import Console
from rich.table import Table

from aeo_tracker.domain.models import CheckRecord, Project

_STATUS_STYLES = {"completed": "green", "pending": "yellow", "failed": "red"}
_PRIORITY_STYLES = {"high": "bold red", "medium": "yellow", "low": "cyan"}


def _fmt_score(value: Optional[float]) -> str:
    return "N/A" if value is None else f"{value:.2f}%"


def _fmt_number(value: Optional[float]) -> str:
    return "N/A" if value is None else f"{value:.2f}"


def _fmt_day(value: Any) -> str:
    return value.strftime("%Y-%m-%d %H:%M") if hasattr(value, "strftime") else str(value)


def _score_style(score: float) -> str:
    # 50 is the default low-visibility threshold.
    if score >= 70:
        return "green"
    if score >= 50:
        return "yellow"
    return "red"


def print_projects(projects: Sequence[Project], console: Optional[Console] = None) -> None:
    """Render the owner's projects as a table."""
    console = console or Console()
    if not projects:
        console.print(
            "[yellow]No projects yet. Create one with `aeo-tracker projects create`.[/yellow]"
        )
        return

    table = Table(title="Projects", box=box.ROUNDED, caption="Newest first")
    table.add_column("ID", style="dim", no_wrap=True)
    table.add_column("Name", style="cyan")
    table.add_column("Brand", style="magenta")
    table.add_column("Domain")
    table.add_column("Keywords", justify="right")
    table.add_column("Engines")
    table.add_column("Created", style="dim")

    for project in projects:
        table.add_row(
            project.id,
            project.name,
            project.brand,
            project.domain,
            str(len(project.keywords)),
            ", ".join(project.settings.engines),
            _fmt_day(project.created_at),
        )
    console.print(table)


def print_project(project: Project, console: Optional[Console] = None) -> None:
    """Render a single project with its keywords and competitors."""
    console = console or Console()
    console.print(f"[bold cyan]{project.name}[/bold cyan] [dim]({project.id})[/dim]")
    if project.description:
        console.print(project.description)
    console.print(
        f"Brand: [magenta]{project.brand}[/magenta] | Domain: {project.domain} | "
        f"Frequency: {project.settings.check_frequency} | "
        f"Engines: {', '.join(project.settings.engines)}"
    )

    keywords = Table(title="Keywords", box=box.ROUNDED)
    keywords.add_column("Keyword", style="cyan")
    keywords.add_column("Category")
    keywords.add_column("Target", justify="right")
    for kw in project.keywords:
        target = str(kw.target_position) if kw.target_position is not None else "-"
        keywords.add_row(kw.keyword, kw.category, target)
    console.print(keywords)

    if project.competitors:
        competitors = Table(title="Competitors", box=box.ROUNDED)
        competitors.add_column("Name", style="cyan")
        competitors.add_column("Domain")
        for competitor in project.competitors:
            competitors.add_row(competitor.name, competitor.domain)
        console.print(competitors)


def print_checks(
    checks: Sequence[CheckRecord],
    pagination: Optional[Dict[str, int]] = None,
    console: Optional[Console] = None,
) -> None:
    """Render check records, newest first as given."""
    console = console or Console()
    if not checks:
        console.print("[yellow]No checks found.[/yellow]")
        return

    caption = None
    if pagination:
        caption = (
            f"Page {pagination['current']} of {pagination['pages']} "
            f"({pagination['total']} checks)"
        )
    table = Table(title="Checks", box=box.ROUNDED, caption=caption)
    table.add_column("ID", style="dim", no_wrap=True)
    table.add_column("Engine", style="cyan")
    table.add_column("Keyword")
    table.add_column("Status")
    table.add_column("Present", justify="center")
    table.add_column("Position", justify="right")
    table.add_column("Citations", justify="right")
    table.add_column("Created", style="dim")

    for check in checks:
        style = _STATUS_STYLES.get(check.status, "white")
        if check.status == "completed":
            present = "[green]yes[/green]" if check.presence else "[red]no[/red]"
            position = str(check.position) if check.presence and check.position else "-"
            citations = str(check.citations_count)
        else:
            present, position, citations = "-", "-", "-"
        table.add_row(
            check.id,
            check.engine,
            check.keyword,
            f"[{style}]{check.status}[/{style}]",
            present,
            position,
            citations,
            _fmt_day(check.created_at),
        )
    console.print(table)


def print_check(check: CheckRecord, console: Optional[Console] = None) -> None:
    """Render one check record including its cited URLs."""
    console = console or Console()
    style = _STATUS_STYLES.get(check.status, "white")
    console.print(
        f"[bold]{check.engine}[/bold] / [cyan]{check.keyword}[/cyan] "
        f"[{style}]{check.status}[/{style}] [dim]({check.id})[/dim]"
    )
    if check.status == "failed":
        console.print(f"[red]{check.error_message}[/red]")
        return
    if check.status == "pending":
        return

    console.print(
        f"Present: {'yes' if check.presence else 'no'} | Position: {check.position or '-'} | "
        f"Citations: {check.citations_count} | "
        f"Query time: {check.metadata.query_time_ms} ms"
    )
    if check.answer_snippet:
        console.print(f"[italic]{check.answer_snippet}[/italic]")
    if check.observed_urls:
        urls = Table(title="Observed URLs", box=box.ROUNDED)
        urls.add_column("#", justify="right")
        urls.add_column("URL", style="cyan")
        urls.add_column("Domain")
        for url in check.observed_urls:
            urls.add_row(str(url.position), url.url, url.domain)
        console.print(urls)


def _visibility_table(rows: Sequence[Dict[str, Any]]) -> Table:
    table = Table(
        title="Visibility by Engine",
        box=box.ROUNDED,
        caption="Sorted by Visibility Score (descending)",
    )
    table.add_column("Engine", style="cyan", no_wrap=True)
    table.add_column("Visibility", justify="right")
    table.add_column("Avg Position", justify="right", style="magenta")
    table.add_column("Avg Citations", justify="right", style="blue")
    table.add_column("Present / Total", justify="right")
    for row in rows:
        score = row["visibility_score"]
        style = _score_style(score)
        table.add_row(
            row["engine"],
            f"[{style}]{_fmt_score(score)}[/{style}]",
            _fmt_number(row["avg_position"]),
            _fmt_number(row["avg_citations"]),
            f"{row['presence_count']} / {row['total_checks']}",
        )
    return table


def print_overview(overview: Dict[str, Any], console: Optional[Console] = None) -> None:
    """
    Render the dashboard overview: engine visibility, daily trend, top keywords
    and recommendations.
    """
    console = console or Console()
    period = overview.get("period") or {}
    if period:
        console.print(
            f"[bold]Dashboard overview[/bold] [dim]last {period['days']} day(s): "
            f"{period['start_date'][:10]} to {period['end_date'][:10]}[/dim]"
        )

    scores: List[Dict[str, Any]] = overview.get("visibility_score", [])
    if not scores:
        console.print("[yellow]No completed checks in this period.[/yellow]")
        return

    console.print(_visibility_table(scores))

    trends = overview.get("trends", [])
    if trends:
        engines = sorted({e["engine"] for point in trends for e in point["engines"]})
        trend_table = Table(title="Daily Visibility Trend", box=box.ROUNDED)
        trend_table.add_column("Date", style="dim", no_wrap=True)
        for engine in engines:
            trend_table.add_column(engine, justify="right")
        for point in trends:
            by_engine = {e["engine"]: e["visibility_score"] for e in point["engines"]}
            trend_table.add_row(
                point["date"],
                *(_fmt_score(by_engine[e]) if e in by_engine else "-" for e in engines),
            )
        console.print(trend_table)

    keywords = overview.get("keyword_breakdown", [])
    if keywords:
        kw_table = Table(title="Top Keywords", box=box.ROUNDED)
        kw_table.add_column("Keyword", style="cyan")
        kw_table.add_column("Visibility", justify="right")
        kw_table.add_column("Avg Position", justify="right", style="magenta")
        kw_table.add_column("Engines", justify="right")
        kw_table.add_column("Present / Total", justify="right")
        for row in keywords:
            kw_table.add_row(
                row["keyword"],
                _fmt_score(row["visibility_score"]),
                _fmt_number(row["avg_position"]),
                str(row["engines_count"]),
                f"{row['presence_count']} / {row['total_checks']}",
            )
        console.print(kw_table)

    print_recommendations(overview.get("recommendations", []), console=console)


def print_recommendations(
    recommendations: Sequence[Dict[str, Any]], console: Optional[Console] = None
) -> None:
    console = console or Console()
    if not recommendations:
        console.print("[green]No recommendations: visibility looks healthy.[/green]")
        return
    console.print("[bold]Recommendations[/bold]")
    for rec in recommendations:
        style = _PRIORITY_STYLES.get(rec["priority"], "white")
        console.print(f"  [{style}]{rec['priority'].upper()}[/{style}] {rec['message']}")
        console.print(f"    [dim]{rec['action']}[/dim]")


def print_keyword_analysis(report: Dict[str, Any], console: Optional[Console] = None) -> None:
    """Render per-engine daily figures for one keyword query."""
    console = console or Console()
    engine_data = report.get("engine_data", [])
    if not engine_data:
        console.print(f"[yellow]No completed checks matching '{report.get('keyword')}'.[/yellow]")
        return

    for entry in engine_data:
        table = Table(
            title=f"{entry['engine']}: '{report['keyword']}'",
            box=box.ROUNDED,
            caption=f"Overall visibility {_fmt_score(entry['overall_visibility'])}",
        )
        table.add_column("Date", style="dim", no_wrap=True)
        table.add_column("Visibility", justify="right")
        table.add_column("Avg Position", justify="right", style="magenta")
        table.add_column("Avg Citations", justify="right", style="blue")
        for day in entry["daily_data"]:
            table.add_row(
                day["date"],
                _fmt_score(day["visibility_score"]),
                _fmt_number(day["avg_position"]),
                _fmt_number(day["avg_citations"]),
            )
        console.print(table)


def print_engine_comparison(report: Dict[str, Any], console: Optional[Console] = None) -> None:
    """Render engine visibility with each engine's most recent ranking keywords."""
    console = console or Console()
    rows = report.get("engine_comparison", [])
    if not rows:
        console.print("[yellow]No completed checks in this period.[/yellow]")
        return

    console.print(_visibility_table(rows))
    table = Table(title="Recent Top Keywords", box=box.ROUNDED)
    table.add_column("Engine", style="cyan", no_wrap=True)
    table.add_column("Keywords (position)")
    for row in rows:
        keywords = ", ".join(
            f"{kw['keyword']} (#{kw['position']})" for kw in row["top_performing_keywords"]
        )
        table.add_row(row["engine"], keywords or "-")
    console.print(table)


__all__ = [
    "print_projects",
    "print_project",
    "print_checks",
    "print_check",
    "print_overview",
    "print_recommendations",
    "print_keyword_analysis",
    "print_engine_comparison",
]
