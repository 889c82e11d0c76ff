"""
AEO Tracker - Answer Engine Optimization visibility tracking.

Tracks whether a brand shows up in the answers AI engines give for a set of
keywords, and turns those observations into dashboard figures:

- Per-engine visibility scores (presence rate, average rank, citations)
- Daily visibility trends
- Keyword rankings and drill-downs
- Heuristic recommendations

Checks run through a pluggable engine client interface; a simulated client is
shipped until real engine integrations are plugged in.
"""

from __future__ import annotations

__version__ = "0.1.0"
__license__ = "MIT"

# Public API exports
from aeo_tracker.aggregator import (
    engine_comparison,
    keyword_analysis,
    keyword_breakdown,
    recommendations,
    summarize,
    trend_series,
    visibility_scores,
)
from aeo_tracker.config import Settings, get_settings
from aeo_tracker.engines import EngineClient, SimulatedEngineClient
from aeo_tracker.orchestrator import CheckOrchestrator
from aeo_tracker.service import DashboardService
from aeo_tracker.utils.logging import configure_logging, get_logger

__all__ = [
    # Version info
    "__version__",
    "__license__",
    # Configuration
    "Settings",
    "get_settings",
    # Aggregation
    "visibility_scores",
    "trend_series",
    "keyword_breakdown",
    "recommendations",
    "summarize",
    "keyword_analysis",
    "engine_comparison",
    # Execution
    "CheckOrchestrator",
    "EngineClient",
    "SimulatedEngineClient",
    # Service
    "DashboardService",
    # Logging
    "configure_logging",
    "get_logger",
]
