"""Match aggregation and team standings calculation."""

from standings.ranking.aggregate import (
    MatchAggregator,
    aggregate_match,
    aggregate_matches,
    group_matches,
    match_key_for,
)
from standings.ranking.calculator import (
    RecalculationSummary,
    ScopeResult,
    TeamRankingCalculator,
    WeekFailure,
)

__all__ = [
    "MatchAggregator",
    "aggregate_match",
    "aggregate_matches",
    "group_matches",
    "match_key_for",
    "RecalculationSummary",
    "ScopeResult",
    "TeamRankingCalculator",
    "WeekFailure",
]
