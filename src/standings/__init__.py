"""Team identity resolution and standings for round-based tournaments.

Rounds arrive with two anonymous player slots. ``TeamMappingResolver``
works out which registered team played in each slot from roster overlap,
and ``TeamRankingCalculator`` turns the mapped rounds into per-week and
cumulative standings.
"""

from standings.core import (
    CUMULATIVE,
    DataAccessError,
    EngineConfig,
    GameMode,
    MappingConfig,
    RankingConfig,
    RoundRecord,
    RoundSlot,
    TeamMapping,
    TeamRanking,
    TournamentTeam,
)
from standings.mapping import TeamMappingResolver, match_roster_overlap
from standings.memory import InMemoryRankingStore, InMemoryRoundSource
from standings.ranking import (
    MatchAggregator,
    RecalculationSummary,
    TeamRankingCalculator,
)

__version__ = "0.1.0"

__all__ = [
    "CUMULATIVE",
    "DataAccessError",
    "EngineConfig",
    "GameMode",
    "MappingConfig",
    "RankingConfig",
    "RoundRecord",
    "RoundSlot",
    "TeamMapping",
    "TeamRanking",
    "TournamentTeam",
    "TeamMappingResolver",
    "match_roster_overlap",
    "InMemoryRankingStore",
    "InMemoryRoundSource",
    "MatchAggregator",
    "RecalculationSummary",
    "TeamRankingCalculator",
    "__version__",
]
