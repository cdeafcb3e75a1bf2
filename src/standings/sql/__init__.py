"""SQL persistence for the standings engine.

This package defines:
- Schema constants (configurable via env)
- SQLAlchemy models for tournaments, rounds, overrides and standings rows
- Engine/session helpers
- Loaders that return Polars DataFrames
- ``SqlRoundSource`` / ``SqlRankingStore`` for ``TeamRankingCalculator``

Environment variables:
- STANDINGS_DB_SCHEMA: default "standings"
- STANDINGS_DATABASE_URL or DATABASE_URL: SQLAlchemy URL for the DB engine
"""

from __future__ import annotations

from standings.sql import models
from standings.sql.constants import SCHEMA
from standings.sql.engine import (
    create_all,
    create_engine,
    create_session_factory,
    ensure_schema,
)
from standings.sql.load import (
    load_overrides_df,
    load_ranked_weeks,
    load_rankings_df,
    load_round_players_df,
    load_rounds_df,
    load_team_players_df,
    load_teams_df,
    load_weeks,
)
from standings.sql.store import (
    SqlRankingStore,
    SqlRoundSource,
    save_mapping_override,
)

__all__ = [
    # Config
    "SCHEMA",
    # Engine helpers
    "create_engine",
    "create_session_factory",
    "ensure_schema",
    "create_all",
    # Models
    "models",
    # Loaders
    "load_overrides_df",
    "load_ranked_weeks",
    "load_rankings_df",
    "load_round_players_df",
    "load_rounds_df",
    "load_team_players_df",
    "load_teams_df",
    "load_weeks",
    # Source / store
    "SqlRankingStore",
    "SqlRoundSource",
    "save_mapping_override",
]
