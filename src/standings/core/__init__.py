"""Core types, configuration and ambient helpers for the standings engine."""

from standings.core.config import EngineConfig, MappingConfig, RankingConfig
from standings.core.errors import (
    DataAccessError,
    InvalidRoundError,
    MappingOverrideError,
    StandingsError,
)
from standings.core.events import (
    DecisionEvent,
    LoggingEventSink,
    NullEventSink,
    RecordingEventSink,
)
from standings.core.logging import get_logger, log_timing, setup_logging
from standings.core.protocols import (
    DecisionEventSink,
    RankingStore,
    RoundSource,
    ScopeSnapshot,
)
from standings.core.types import (
    CUMULATIVE,
    GameMode,
    MappedRound,
    MappingFailureReason,
    MappingStatus,
    MatchKey,
    MatchOutcome,
    MatchRecord,
    Outcome,
    RoundRecord,
    RoundSlot,
    SlotAssignment,
    TeamMapping,
    TeamRanking,
    TeamWeekStatistics,
    TournamentTeam,
    rankings_to_dataframe,
)

__all__ = [
    # Config
    "EngineConfig",
    "MappingConfig",
    "RankingConfig",
    # Errors
    "DataAccessError",
    "InvalidRoundError",
    "MappingOverrideError",
    "StandingsError",
    # Events
    "DecisionEvent",
    "LoggingEventSink",
    "NullEventSink",
    "RecordingEventSink",
    # Logging
    "get_logger",
    "log_timing",
    "setup_logging",
    # Protocols
    "DecisionEventSink",
    "RankingStore",
    "RoundSource",
    "ScopeSnapshot",
    # Types
    "CUMULATIVE",
    "GameMode",
    "MappedRound",
    "MappingFailureReason",
    "MappingStatus",
    "MatchKey",
    "MatchOutcome",
    "MatchRecord",
    "Outcome",
    "RoundRecord",
    "RoundSlot",
    "SlotAssignment",
    "TeamMapping",
    "TeamRanking",
    "TeamWeekStatistics",
    "TournamentTeam",
    "rankings_to_dataframe",
]
