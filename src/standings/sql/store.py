"""SQLAlchemy-backed round source and ranking store."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator, Optional, Sequence

from sqlalchemy import and_, delete, insert, select
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import SQLAlchemyError

from standings.core.errors import (
    DataAccessError,
    InvalidRoundError,
    MappingOverrideError,
)
from standings.core.protocols import ScopeSnapshot
from standings.core.types import GameMode, TeamRanking
from standings.sql import load
from standings.sql.models import (
    MappingOverride,
    TeamRankingRow,
    TournamentRound,
)
from standings.sql.models import TournamentTeam as TeamModel

logger = logging.getLogger(__name__)


def _scope_label(week: Optional[str]) -> str:
    return "cumulative" if week is None else week


def _scope_filter(table, tournament_id: int, week: Optional[str]):
    week_clause = table.c.week.is_(None) if week is None else table.c.week == week
    return and_(table.c.tournament_id == tournament_id, week_clause)


class SqlRoundSource:
    """Reads scope snapshots from the standings tables.

    Every read of one scope runs inside a single transaction. On Postgres the
    transaction uses REPEATABLE READ so teams, rounds and overrides come from
    the same snapshot.
    """

    def __init__(
        self, engine: Engine, *, isolation_level: Optional[str] = None
    ) -> None:
        self.engine = engine
        if isolation_level is None and engine.dialect.name == "postgresql":
            isolation_level = "REPEATABLE READ"
        self.isolation_level = isolation_level

    @contextmanager
    def _snapshot(self) -> Iterator[Connection]:
        with self.engine.connect() as conn:
            if self.isolation_level:
                conn = conn.execution_options(
                    isolation_level=self.isolation_level
                )
            with conn.begin():
                yield conn

    def load_scope(
        self, tournament_id: int, week: Optional[str]
    ) -> ScopeSnapshot:
        try:
            with self._snapshot() as conn:
                game_mode = load.load_game_mode(conn, tournament_id)
                teams_df = load.load_teams_df(conn, tournament_id)
                team_players_df = load.load_team_players_df(conn, tournament_id)
                rounds_df = load.load_rounds_df(conn, tournament_id, week)
                round_players_df = load.load_round_players_df(
                    conn, tournament_id, week
                )
                overrides_df = load.load_overrides_df(conn, tournament_id, week)
        except load.READ_ERRORS as exc:
            raise DataAccessError(
                f"Failed to load tournament {tournament_id} "
                f"({_scope_label(week)})",
                tournament_id=tournament_id,
                week=week,
            ) from exc

        try:
            rounds = load.frames_to_rounds(rounds_df, round_players_df)
        except InvalidRoundError as exc:
            raise DataAccessError(
                f"Stored round data for tournament {tournament_id} is invalid",
                tournament_id=tournament_id,
                week=week,
            ) from exc

        logger.debug(
            "Loaded tournament %s (%s): %d teams, %d rounds, %d overrides",
            tournament_id,
            _scope_label(week),
            teams_df.height,
            rounds_df.height,
            overrides_df.height,
        )
        return ScopeSnapshot(
            tournament_id=tournament_id,
            week=week,
            teams=tuple(load.frames_to_teams(teams_df, team_players_df)),
            rounds=tuple(rounds),
            overrides=load.frames_to_overrides(overrides_df),
            game_mode=GameMode.parse(game_mode),
        )

    def load_weeks(self, tournament_id: int) -> list[Optional[str]]:
        try:
            return list(load.load_weeks(self.engine, tournament_id))
        except load.READ_ERRORS as exc:
            raise DataAccessError(
                f"Failed to list weeks for tournament {tournament_id}",
                tournament_id=tournament_id,
            ) from exc


class SqlRankingStore:
    """Writes standings rows; each scope is replaced in one transaction."""

    def __init__(self, engine: Engine) -> None:
        self.engine = engine

    @staticmethod
    def _payload(rows: Sequence[TeamRanking]) -> list[dict]:
        return [row.to_dict() for row in rows]

    def replace_rankings(
        self,
        tournament_id: int,
        week: Optional[str],
        rows: Sequence[TeamRanking],
    ) -> int:
        table = TeamRankingRow.__table__
        payload = self._payload(rows)
        try:
            with self.engine.begin() as conn:
                removed = conn.execute(
                    delete(table).where(_scope_filter(table, tournament_id, week))
                ).rowcount
                if payload:
                    conn.execute(insert(table), payload)
        except SQLAlchemyError as exc:
            raise DataAccessError(
                f"Failed to write rankings for tournament {tournament_id} "
                f"({_scope_label(week)})",
                tournament_id=tournament_id,
                week=week,
            ) from exc
        logger.debug(
            "Replaced rankings for tournament %s (%s): removed=%s inserted=%d",
            tournament_id,
            _scope_label(week),
            removed,
            len(payload),
        )
        return len(payload)

    def delete_rankings(self, tournament_id: int, week: Optional[str]) -> int:
        table = TeamRankingRow.__table__
        try:
            with self.engine.begin() as conn:
                result = conn.execute(
                    delete(table).where(_scope_filter(table, tournament_id, week))
                )
        except SQLAlchemyError as exc:
            raise DataAccessError(
                f"Failed to clear rankings for tournament {tournament_id} "
                f"({_scope_label(week)})",
                tournament_id=tournament_id,
                week=week,
            ) from exc
        return int(result.rowcount or 0)

    def ranked_weeks(self, tournament_id: int) -> list[str]:
        try:
            return list(load.load_ranked_weeks(self.engine, tournament_id))
        except load.READ_ERRORS as exc:
            raise DataAccessError(
                f"Failed to list ranked weeks for tournament {tournament_id}",
                tournament_id=tournament_id,
            ) from exc


def save_mapping_override(
    engine: Engine,
    tournament_id: int,
    round_id: str,
    team1_id: int,
    team2_id: int,
) -> None:
    """Store a manual team mapping for one round, replacing any previous one.

    Raises:
        MappingOverrideError: the teams are identical, not registered in the
            tournament, or the round does not belong to it.
        DataAccessError: the database write failed.
    """
    if team1_id == team2_id:
        raise MappingOverrideError(
            f"Round {round_id}: both slots cannot map to team {team1_id}"
        )
    table = MappingOverride.__table__
    try:
        with engine.begin() as conn:
            round_tournament = conn.execute(
                select(TournamentRound.tournament_id).where(
                    TournamentRound.round_id == round_id
                )
            ).scalar_one_or_none()
            if round_tournament != tournament_id:
                raise MappingOverrideError(
                    f"Round {round_id} does not belong to tournament "
                    f"{tournament_id}"
                )
            registered = set(
                conn.execute(
                    select(TeamModel.team_id).where(
                        TeamModel.tournament_id == tournament_id,
                        TeamModel.team_id.in_([team1_id, team2_id]),
                    )
                ).scalars()
            )
            missing = sorted({team1_id, team2_id} - registered)
            if missing:
                raise MappingOverrideError(
                    f"Teams {missing} are not registered in tournament "
                    f"{tournament_id}"
                )
            conn.execute(delete(table).where(table.c.round_id == round_id))
            conn.execute(
                insert(table),
                [
                    {
                        "round_id": round_id,
                        "tournament_id": tournament_id,
                        "team1_id": team1_id,
                        "team2_id": team2_id,
                    }
                ],
            )
    except SQLAlchemyError as exc:
        raise DataAccessError(
            f"Failed to store mapping override for round {round_id}",
            tournament_id=tournament_id,
        ) from exc
    logger.info(
        "Stored mapping override for round %s: team1=%s team2=%s",
        round_id,
        team1_id,
        team2_id,
    )
