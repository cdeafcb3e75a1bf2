from __future__ import annotations

from sqlalchemy import (
    BigInteger,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    SmallInteger,
    String,
    UniqueConstraint,
)

from .constants import SCHEMA
from .engine import Base

# SQLite only autoincrements INTEGER primary keys
_ID = BigInteger().with_variant(Integer, "sqlite")


class Tournament(Base):
    __tablename__ = "tournaments"
    __table_args__ = ({"schema": SCHEMA},)

    tournament_id = Column(_ID, primary_key=True, autoincrement=True)
    name = Column(String, nullable=False)
    game_mode = Column(String, nullable=True)  # 'conquest' (default) or 'ctf'
    created_at_ms = Column(BigInteger, nullable=True)


class TournamentTeam(Base):
    __tablename__ = "tournament_teams"
    __table_args__ = (
        Index("ix_teams_tournament_id", "tournament_id"),
        {"schema": SCHEMA},
    )

    team_id = Column(_ID, primary_key=True, autoincrement=True)
    tournament_id = Column(
        _ID,
        ForeignKey(f"{SCHEMA}.tournaments.tournament_id"),
        nullable=False,
    )
    name = Column(String, nullable=False)
    created_at_ms = Column(BigInteger, nullable=True)


class TeamPlayer(Base):
    __tablename__ = "team_players"
    __table_args__ = (
        UniqueConstraint("team_id", "player_name", name="uq_team_player"),
        Index("ix_team_players_tournament", "tournament_id"),
        {"schema": SCHEMA},
    )

    team_player_id = Column(_ID, primary_key=True, autoincrement=True)
    tournament_id = Column(
        _ID,
        ForeignKey(f"{SCHEMA}.tournaments.tournament_id"),
        nullable=False,
    )
    team_id = Column(
        _ID,
        ForeignKey(f"{SCHEMA}.tournament_teams.team_id"),
        nullable=False,
    )
    player_name = Column(String, nullable=False)


class TournamentMatch(Base):
    __tablename__ = "tournament_matches"
    __table_args__ = (
        Index("ix_matches_tournament_week", "tournament_id", "week"),
        {"schema": SCHEMA},
    )

    match_id = Column(_ID, primary_key=True, autoincrement=True)
    tournament_id = Column(
        _ID,
        ForeignKey(f"{SCHEMA}.tournaments.tournament_id"),
        nullable=False,
    )
    week = Column(String, nullable=True)
    number = Column(Integer, nullable=True)


class TournamentRound(Base):
    __tablename__ = "tournament_rounds"
    __table_args__ = (
        Index("ix_rounds_tournament", "tournament_id"),
        Index("ix_rounds_match", "match_id"),
        CheckConstraint(
            "winning_slot IS NULL OR winning_slot IN (1, 2)",
            name="ck_rounds_winning_slot",
        ),
        {"schema": SCHEMA},
    )

    # Provider round identifier
    round_id = Column(String, primary_key=True)
    tournament_id = Column(
        _ID,
        ForeignKey(f"{SCHEMA}.tournaments.tournament_id"),
        nullable=False,
    )
    match_id = Column(
        _ID,
        ForeignKey(f"{SCHEMA}.tournament_matches.match_id"),
        nullable=True,
    )
    map_id = Column(Integer, nullable=True)
    team1_tickets = Column(Integer, nullable=False, default=0)
    team2_tickets = Column(Integer, nullable=False, default=0)
    winning_slot = Column(SmallInteger, nullable=True)  # NULL = tie
    finished_at_ms = Column(BigInteger, nullable=True)


class RoundPlayer(Base):
    __tablename__ = "round_players"
    __table_args__ = (
        UniqueConstraint("round_id", "player_name", name="uq_round_player"),
        CheckConstraint("slot IN (1, 2)", name="ck_round_players_slot"),
        {"schema": SCHEMA},
    )

    round_player_id = Column(_ID, primary_key=True, autoincrement=True)
    round_id = Column(
        String,
        ForeignKey(f"{SCHEMA}.tournament_rounds.round_id"),
        nullable=False,
    )
    player_name = Column(String, nullable=False)
    slot = Column(SmallInteger, nullable=False)


class MappingOverride(Base):
    __tablename__ = "mapping_overrides"
    __table_args__ = (
        Index("ix_mapping_overrides_tournament", "tournament_id"),
        CheckConstraint("team1_id <> team2_id", name="ck_override_distinct"),
        {"schema": SCHEMA},
    )

    round_id = Column(
        String,
        ForeignKey(f"{SCHEMA}.tournament_rounds.round_id"),
        primary_key=True,
    )
    tournament_id = Column(
        _ID,
        ForeignKey(f"{SCHEMA}.tournaments.tournament_id"),
        nullable=False,
    )
    team1_id = Column(
        _ID,
        ForeignKey(f"{SCHEMA}.tournament_teams.team_id"),
        nullable=False,
    )
    team2_id = Column(
        _ID,
        ForeignKey(f"{SCHEMA}.tournament_teams.team_id"),
        nullable=False,
    )


class TeamRankingRow(Base):
    __tablename__ = "team_rankings"
    __table_args__ = (
        Index("ix_team_rankings_scope", "tournament_id", "week"),
        Index("ix_team_rankings_team", "team_id"),
        {"schema": SCHEMA},
    )

    ranking_id = Column(_ID, primary_key=True, autoincrement=True)
    tournament_id = Column(
        _ID,
        ForeignKey(f"{SCHEMA}.tournaments.tournament_id"),
        nullable=False,
    )
    team_id = Column(
        _ID,
        ForeignKey(f"{SCHEMA}.tournament_teams.team_id"),
        nullable=False,
    )
    week = Column(String, nullable=True)  # NULL = cumulative

    rank = Column(Integer, nullable=False)
    points = Column(Integer, nullable=False)
    rounds_won = Column(Integer, nullable=False)
    rounds_tied = Column(Integer, nullable=False)
    rounds_lost = Column(Integer, nullable=False)
    tickets_for = Column(Integer, nullable=False)
    tickets_against = Column(Integer, nullable=False)
    ticket_differential = Column(Integer, nullable=False)
    matches_played = Column(Integer, nullable=False)
    victories = Column(Integer, nullable=False)
    ties = Column(Integer, nullable=False)
    losses = Column(Integer, nullable=False)

    updated_at = Column(DateTime(timezone=True), nullable=False)
