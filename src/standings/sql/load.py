from __future__ import annotations

from collections import defaultdict
from typing import Optional, Union

import pandas as pd
import polars as pl
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.sql import Select

from standings.core.types import (
    RANKING_SCHEMA,
    RoundRecord,
    RoundSlot,
    TournamentTeam,
)
from standings.sql.models import (
    MappingOverride,
    RoundPlayer,
    TeamPlayer,
    TeamRankingRow,
    Tournament,
    TournamentMatch,
    TournamentRound,
)
from standings.sql.models import TournamentTeam as TeamModel

Bind = Union[Engine, Connection]

# pandas may wrap driver failures raised inside read_sql_query
READ_ERRORS = (SQLAlchemyError, pd.errors.DatabaseError)

TEAM_SCHEMA = {
    "team_id": pl.Int64,
    "tournament_id": pl.Int64,
    "name": pl.Utf8,
}
TEAM_PLAYER_SCHEMA = {"team_id": pl.Int64, "player_name": pl.Utf8}
ROUND_SCHEMA = {
    "round_id": pl.Utf8,
    "tournament_id": pl.Int64,
    "match_id": pl.Int64,
    "map_id": pl.Int64,
    "week": pl.Utf8,
    "team1_tickets": pl.Int64,
    "team2_tickets": pl.Int64,
    "winning_slot": pl.Int64,
}
ROUND_PLAYER_SCHEMA = {
    "round_id": pl.Utf8,
    "player_name": pl.Utf8,
    "slot": pl.Int64,
}
OVERRIDE_SCHEMA = {
    "round_id": pl.Utf8,
    "team1_id": pl.Int64,
    "team2_id": pl.Int64,
}


def _read_sql(bind: Bind, statement: Select, schema: dict) -> pl.DataFrame:
    """Read a Core select into a Polars DataFrame via pandas for compatibility.

    The frame always carries the columns of ``schema``; empty results come
    back as typed empty frames.
    """
    if isinstance(bind, Engine):
        with bind.connect() as conn:
            pdf = pd.read_sql_query(statement, conn)
    else:
        pdf = pd.read_sql_query(statement, bind)
    if pdf.empty:
        return pl.DataFrame(schema=schema)
    df = pl.from_pandas(pdf)
    # Datetimes keep whatever zone the driver returned
    return df.with_columns(
        [
            pl.col(name).cast(dtype, strict=False)
            for name, dtype in schema.items()
            if not isinstance(dtype, pl.Datetime)
        ]
    ).select(list(schema))


def _rounds_in_scope(statement: Select, tournament_id: int, week: Optional[str]):
    statement = statement.where(TournamentRound.tournament_id == tournament_id)
    if week is not None:
        statement = statement.where(TournamentMatch.week == week)
    return statement


def load_game_mode(bind: Bind, tournament_id: int) -> Optional[str]:
    """Return the tournament's configured game mode string, if any."""
    stmt = select(Tournament.game_mode).where(
        Tournament.tournament_id == tournament_id
    )
    if isinstance(bind, Engine):
        with bind.connect() as conn:
            return conn.execute(stmt).scalar_one_or_none()
    return bind.execute(stmt).scalar_one_or_none()


def load_teams_df(bind: Bind, tournament_id: int) -> pl.DataFrame:
    """Load the tournament's registered teams.

    Columns: team_id, tournament_id, name
    """
    stmt = (
        select(
            TeamModel.team_id,
            TeamModel.tournament_id,
            TeamModel.name,
        )
        .where(TeamModel.tournament_id == tournament_id)
        .order_by(TeamModel.team_id)
    )
    return _read_sql(bind, stmt, TEAM_SCHEMA)


def load_team_players_df(bind: Bind, tournament_id: int) -> pl.DataFrame:
    """Load roster player names for every team of the tournament.

    Columns: team_id, player_name
    """
    stmt = (
        select(TeamPlayer.team_id, TeamPlayer.player_name)
        .where(TeamPlayer.tournament_id == tournament_id)
        .order_by(TeamPlayer.team_id, TeamPlayer.player_name)
    )
    return _read_sql(bind, stmt, TEAM_PLAYER_SCHEMA)


def load_rounds_df(
    bind: Bind, tournament_id: int, week: Optional[str] = None
) -> pl.DataFrame:
    """Load rounds of the tournament, optionally restricted to one week.

    The week comes from the round's match; rounds without a match only show
    up in the cumulative (``week=None``) scope.

    Columns: round_id, tournament_id, match_id, map_id, week,
    team1_tickets, team2_tickets, winning_slot
    """
    stmt = select(
        TournamentRound.round_id,
        TournamentRound.tournament_id,
        TournamentRound.match_id,
        TournamentRound.map_id,
        TournamentMatch.week,
        TournamentRound.team1_tickets,
        TournamentRound.team2_tickets,
        TournamentRound.winning_slot,
    ).outerjoin(
        TournamentMatch, TournamentMatch.match_id == TournamentRound.match_id
    )
    stmt = _rounds_in_scope(stmt, tournament_id, week).order_by(
        TournamentRound.round_id
    )
    return _read_sql(bind, stmt, ROUND_SCHEMA)


def load_round_players_df(
    bind: Bind, tournament_id: int, week: Optional[str] = None
) -> pl.DataFrame:
    """Load slot membership for the rounds selected by ``load_rounds_df``.

    Columns: round_id, player_name, slot
    """
    stmt = (
        select(RoundPlayer.round_id, RoundPlayer.player_name, RoundPlayer.slot)
        .join(TournamentRound, TournamentRound.round_id == RoundPlayer.round_id)
        .outerjoin(
            TournamentMatch,
            TournamentMatch.match_id == TournamentRound.match_id,
        )
    )
    stmt = _rounds_in_scope(stmt, tournament_id, week).order_by(
        RoundPlayer.round_id, RoundPlayer.slot, RoundPlayer.player_name
    )
    return _read_sql(bind, stmt, ROUND_PLAYER_SCHEMA)


def load_overrides_df(
    bind: Bind, tournament_id: int, week: Optional[str] = None
) -> pl.DataFrame:
    """Load manual team mappings for rounds in scope.

    Columns: round_id, team1_id, team2_id
    """
    stmt = (
        select(
            MappingOverride.round_id,
            MappingOverride.team1_id,
            MappingOverride.team2_id,
        )
        .join(
            TournamentRound,
            TournamentRound.round_id == MappingOverride.round_id,
        )
        .outerjoin(
            TournamentMatch,
            TournamentMatch.match_id == TournamentRound.match_id,
        )
    )
    stmt = _rounds_in_scope(stmt, tournament_id, week).order_by(
        MappingOverride.round_id
    )
    return _read_sql(bind, stmt, OVERRIDE_SCHEMA)


def load_weeks(bind: Bind, tournament_id: int) -> list[str]:
    """Return the distinct, non-null week labels that have rounds."""
    stmt = (
        select(TournamentMatch.week)
        .distinct()
        .join(
            TournamentRound,
            TournamentRound.match_id == TournamentMatch.match_id,
        )
        .where(TournamentMatch.tournament_id == tournament_id)
        .where(TournamentMatch.week.is_not(None))
        .order_by(TournamentMatch.week)
    )
    df = _read_sql(bind, stmt, {"week": pl.Utf8})
    return df.get_column("week").to_list()


def load_ranked_weeks(bind: Bind, tournament_id: int) -> list[str]:
    """Return the distinct, non-null week labels that have standings rows."""
    stmt = (
        select(TeamRankingRow.week)
        .distinct()
        .where(TeamRankingRow.tournament_id == tournament_id)
        .where(TeamRankingRow.week.is_not(None))
        .order_by(TeamRankingRow.week)
    )
    df = _read_sql(bind, stmt, {"week": pl.Utf8})
    return df.get_column("week").to_list()


def load_rankings_df(
    bind: Bind, tournament_id: int, week: Optional[str] = None
) -> pl.DataFrame:
    """Load persisted standings rows for one scope ordered by rank.

    ``week=None`` reads the cumulative rows.
    """
    columns = [getattr(TeamRankingRow, name) for name in RANKING_SCHEMA]
    stmt = select(*columns).where(TeamRankingRow.tournament_id == tournament_id)
    if week is None:
        stmt = stmt.where(TeamRankingRow.week.is_(None))
    else:
        stmt = stmt.where(TeamRankingRow.week == week)
    stmt = stmt.order_by(TeamRankingRow.rank)
    return _read_sql(bind, stmt, RANKING_SCHEMA)


def frames_to_teams(
    teams_df: pl.DataFrame, players_df: pl.DataFrame
) -> list[TournamentTeam]:
    """Join team rows with their roster names."""
    rosters: dict[int, set[str]] = defaultdict(set)
    for team_id, player_name in players_df.select(
        ["team_id", "player_name"]
    ).iter_rows():
        if player_name is not None:
            rosters[team_id].add(player_name)
    return [
        TournamentTeam(
            team_id=row["team_id"],
            tournament_id=row["tournament_id"],
            name=row["name"] or "",
            roster=frozenset(rosters.get(row["team_id"], ())),
        )
        for row in teams_df.iter_rows(named=True)
    ]


def frames_to_rounds(
    rounds_df: pl.DataFrame, players_df: pl.DataFrame
) -> list[RoundRecord]:
    """Join round rows with their per-slot player names."""
    slots: dict[tuple[str, int], set[str]] = defaultdict(set)
    for round_id, player_name, slot in players_df.select(
        ["round_id", "player_name", "slot"]
    ).iter_rows():
        if player_name is not None:
            slots[(round_id, slot)].add(player_name)

    records = []
    for row in rounds_df.iter_rows(named=True):
        round_id = row["round_id"]
        winner = row["winning_slot"]
        records.append(
            RoundRecord(
                round_id=round_id,
                tournament_id=row["tournament_id"],
                team1_players=frozenset(slots.get((round_id, 1), ())),
                team2_players=frozenset(slots.get((round_id, 2), ())),
                team1_tickets=row["team1_tickets"] or 0,
                team2_tickets=row["team2_tickets"] or 0,
                winning_slot=RoundSlot(winner) if winner is not None else None,
                match_id=row["match_id"],
                map_id=row["map_id"],
                week=row["week"],
            )
        )
    return records


def frames_to_overrides(
    overrides_df: pl.DataFrame,
) -> dict[str, tuple[int, int]]:
    return {
        round_id: (team1_id, team2_id)
        for round_id, team1_id, team2_id in overrides_df.select(
            ["round_id", "team1_id", "team2_id"]
        ).iter_rows()
    }
