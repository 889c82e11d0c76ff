"""
Visibility aggregation for the AEO Tracker.

Pure functions that turn a sequence of check records (already filtered by the
caller to an owner, an optional project and a time window) into the dashboard
figures:

- per-engine visibility scores
- a day-bucketed trend series per engine
- a ranked keyword breakdown
- heuristic recommendations

plus the keyword drill-down and engine comparison views. Nothing here performs
I/O or depends on a persistence technology; every function returns fresh plain
data (TypedDicts) and is safe to call repeatedly on the same input.

Usage:
    from aeo_tracker.aggregator import summarize

    overview = summarize(records)
    overview["visibility_score"][0]["engine"]
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import (
    Callable,
    Dict,
    Hashable,
    Iterable,
    List,
    Optional,
    Sequence,
    Tuple,
    TypedDict,
    TypeVar,
)

from aeo_tracker.domain.models import CheckRecord

T = TypeVar("T")
K = TypeVar("K", bound=Hashable)

LOW_VISIBILITY_THRESHOLD = 50.0
LOW_CITATIONS_THRESHOLD = 2.0
KEYWORD_BREAKDOWN_LIMIT = 10
MAX_LOW_CITATION_KEYWORDS = 3
TOP_KEYWORDS_PER_ENGINE = 5


class EngineVisibility(TypedDict):
    engine: str
    visibility_score: float
    avg_position: Optional[float]
    avg_citations: float
    total_checks: int
    presence_count: int


class EngineTrendScore(TypedDict):
    engine: str
    visibility_score: float


class TrendPoint(TypedDict):
    date: str
    engines: List[EngineTrendScore]


class KeywordStat(TypedDict):
    keyword: str
    visibility_score: float
    avg_position: Optional[float]
    total_checks: int
    presence_count: int
    engines_count: int


class Recommendation(TypedDict):
    type: str
    priority: str
    message: str
    action: str


class DailyKeywordScore(TypedDict):
    date: str
    visibility_score: float
    avg_position: Optional[float]
    avg_citations: float


class KeywordEngineAnalysis(TypedDict):
    engine: str
    daily_data: List[DailyKeywordScore]
    overall_visibility: float


class KeywordPerformance(TypedDict):
    keyword: str
    position: Optional[int]


class EngineComparison(EngineVisibility):
    top_performing_keywords: List[KeywordPerformance]


class VisibilitySummary(TypedDict):
    visibility_score: List[EngineVisibility]
    trends: List[TrendPoint]
    keyword_breakdown: List[KeywordStat]
    recommendations: List[Recommendation]


def group_by(items: Iterable[T], key: Callable[[T], K]) -> Dict[K, List[T]]:
    """
    Group items by key, preserving first-seen key order and item order within groups.
    """
    groups: Dict[K, List[T]] = {}
    for item in items:
        groups.setdefault(key(item), []).append(item)
    return groups


def day_of(record: CheckRecord) -> str:
    """UTC calendar day of a record's creation time, as YYYY-MM-DD."""
    created: datetime = record.created_at
    if created.tzinfo is None:
        created = created.replace(tzinfo=timezone.utc)
    return created.astimezone(timezone.utc).date().isoformat()


def _round(value: float) -> float:
    return round(value, 2)


def _mean(values: Sequence[float]) -> Optional[float]:
    if not values:
        return None
    return sum(values) / len(values)


def _presence_rate(group: Sequence[CheckRecord]) -> float:
    # Groups built by group_by are never empty.
    return sum(1 for r in group if r.presence) / len(group) * 100


def _visibility(group: Sequence[CheckRecord]) -> float:
    return _round(_presence_rate(group))


def _avg_position(group: Sequence[CheckRecord]) -> Optional[float]:
    # Present records missing a position are skipped rather than counted as 0.
    mean = _mean([r.position for r in group if r.presence and r.position is not None])
    return None if mean is None else _round(mean)


def _avg_citations(group: Sequence[CheckRecord]) -> float:
    return _round(_mean([r.citations_count or 0 for r in group]) or 0.0)


def _by_score(name_key: str) -> Callable[[dict], Tuple[float, str]]:
    return lambda row: (-row["visibility_score"], row[name_key])


def _engine_row(engine: str, group: Sequence[CheckRecord]) -> EngineVisibility:
    return EngineVisibility(
        engine=engine,
        visibility_score=_visibility(group),
        avg_position=_avg_position(group),
        avg_citations=_avg_citations(group),
        total_checks=len(group),
        presence_count=sum(1 for r in group if r.presence),
    )


def visibility_scores(records: Iterable[CheckRecord]) -> List[EngineVisibility]:
    """
    Per-engine visibility for every engine that has at least one record.

    Sorted by visibility_score descending, ties broken by engine name.
    """
    groups = group_by(records, lambda r: r.engine)
    rows = [_engine_row(engine, group) for engine, group in groups.items()]
    return sorted(rows, key=_by_score("engine"))


def trend_series(records: Iterable[CheckRecord]) -> List[TrendPoint]:
    """
    One entry per UTC day holding the visibility score of each engine seen that day.

    Engines without records on a day are omitted from that day (no zero-fill).
    """
    days: Dict[str, List[EngineTrendScore]] = {}
    for (day, engine), group in group_by(records, lambda r: (day_of(r), r.engine)).items():
        days.setdefault(day, []).append(
            EngineTrendScore(engine=engine, visibility_score=_visibility(group))
        )
    return [
        TrendPoint(date=day, engines=sorted(scores, key=lambda s: s["engine"]))
        for day, scores in sorted(days.items())
    ]


def keyword_breakdown(
    records: Iterable[CheckRecord], limit: int = KEYWORD_BREAKDOWN_LIMIT
) -> List[KeywordStat]:
    """
    Keywords ranked by visibility_score descending (then keyword ascending), top `limit`.
    """
    rows = [
        KeywordStat(
            keyword=keyword,
            visibility_score=_visibility(group),
            avg_position=_avg_position(group),
            total_checks=len(group),
            presence_count=sum(1 for r in group if r.presence),
            engines_count=len({r.engine for r in group}),
        )
        for keyword, group in group_by(records, lambda r: r.keyword).items()
    ]
    return sorted(rows, key=_by_score("keyword"))[: max(limit, 0)]


def recommendations(
    records: Iterable[CheckRecord],
    low_visibility_threshold: float = LOW_VISIBILITY_THRESHOLD,
    low_citations_threshold: float = LOW_CITATIONS_THRESHOLD,
) -> List[Recommendation]:
    """
    Heuristic advice derived from the same record set.

    - Engines whose presence rate is below `low_visibility_threshold` produce a
      single high-priority `low_visibility` entry naming all of them.
    - Keywords averaging fewer than `low_citations_threshold` citations produce a
      single medium-priority `low_citations` entry naming up to three of them,
      lowest average first.

    An empty list means nothing needs attention.
    """
    records = list(records)
    results: List[Recommendation] = []

    low_engines = sorted(
        engine
        for engine, group in group_by(records, lambda r: r.engine).items()
        if _mean([100.0 if r.presence else 0.0 for r in group]) < low_visibility_threshold
    )
    if low_engines:
        results.append(
            Recommendation(
                type="low_visibility",
                priority="high",
                message=f"Low visibility detected on engines: {', '.join(low_engines)}",
                action="Consider optimizing content for these AI engines",
            )
        )

    citation_means: List[Tuple[float, str]] = []
    for keyword, group in group_by(records, lambda r: r.keyword).items():
        mean = _mean([r.citations_count or 0 for r in group]) or 0.0
        if mean < low_citations_threshold:
            citation_means.append((mean, keyword))
    if citation_means:
        names = [keyword for _, keyword in sorted(citation_means)[:MAX_LOW_CITATION_KEYWORDS]]
        results.append(
            Recommendation(
                type="low_citations",
                priority="medium",
                message=f"Keywords with low citations: {', '.join(names)}",
                action="Improve content authority and backlinks for these keywords",
            )
        )

    return results


def summarize(
    records: Iterable[CheckRecord],
    keyword_limit: int = KEYWORD_BREAKDOWN_LIMIT,
    low_visibility_threshold: float = LOW_VISIBILITY_THRESHOLD,
    low_citations_threshold: float = LOW_CITATIONS_THRESHOLD,
) -> VisibilitySummary:
    """Compute the four dashboard outputs over one materialized record set."""
    records = list(records)
    return VisibilitySummary(
        visibility_score=visibility_scores(records),
        trends=trend_series(records),
        keyword_breakdown=keyword_breakdown(records, limit=keyword_limit),
        recommendations=recommendations(
            records,
            low_visibility_threshold=low_visibility_threshold,
            low_citations_threshold=low_citations_threshold,
        ),
    )


def keyword_analysis(records: Iterable[CheckRecord], keyword: str) -> List[KeywordEngineAnalysis]:
    """
    Daily per-engine figures for records whose keyword contains `keyword`.

    Matching is a case-insensitive literal substring test. overall_visibility is
    the mean of the unrounded daily scores.
    """
    needle = keyword.strip().lower()
    matched = [r for r in records if needle in r.keyword.lower()]

    results: List[KeywordEngineAnalysis] = []
    for engine, group in sorted(group_by(matched, lambda r: r.engine).items()):
        daily = sorted(group_by(group, day_of).items())
        results.append(
            KeywordEngineAnalysis(
                engine=engine,
                daily_data=[
                    DailyKeywordScore(
                        date=day,
                        visibility_score=_visibility(day_group),
                        avg_position=_avg_position(day_group),
                        avg_citations=_avg_citations(day_group),
                    )
                    for day, day_group in daily
                ],
                overall_visibility=_round(
                    _mean([_presence_rate(day_group) for _, day_group in daily]) or 0.0
                ),
            )
        )
    return results


def engine_comparison(
    records: Iterable[CheckRecord], top_keywords: int = TOP_KEYWORDS_PER_ENGINE
) -> List[EngineComparison]:
    """
    Engine visibility rows enriched with the most recent keywords where the brand was present.
    """
    newest_first = sorted(records, key=lambda r: r.created_at, reverse=True)
    rows: List[EngineComparison] = []
    for engine, group in group_by(newest_first, lambda r: r.engine).items():
        row = EngineComparison(
            **_engine_row(engine, group),
            top_performing_keywords=[
                KeywordPerformance(keyword=r.keyword, position=r.position)
                for r in group
                if r.presence
            ][:top_keywords],
        )
        rows.append(row)
    return sorted(rows, key=_by_score("engine"))


__all__ = [
    "EngineVisibility",
    "EngineTrendScore",
    "TrendPoint",
    "KeywordStat",
    "Recommendation",
    "DailyKeywordScore",
    "KeywordEngineAnalysis",
    "KeywordPerformance",
    "EngineComparison",
    "VisibilitySummary",
    "group_by",
    "day_of",
    "visibility_scores",
    "trend_series",
    "keyword_breakdown",
    "recommendations",
    "summarize",
    "keyword_analysis",
    "engine_comparison",
]
