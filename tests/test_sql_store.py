from dataclasses import replace
from datetime import datetime, timezone

import pytest
import sqlalchemy as sa
from sqlalchemy.pool import StaticPool

from standings.core.errors import DataAccessError, MappingOverrideError
from standings.core.events import NullEventSink
from standings.core.protocols import RankingStore, RoundSource
from standings.core.types import GameMode, RoundSlot, TeamRanking
from standings.ranking.calculator import TeamRankingCalculator
from standings.sql import (
    SCHEMA,
    SqlRankingStore,
    SqlRoundSource,
    create_all,
    create_session_factory,
    load_rankings_df,
    save_mapping_override,
)
from standings.sql import models as SM

NOW = datetime(2024, 5, 1, tzinfo=timezone.utc)


def _sqlite_engine():
    return sa.create_engine(
        "sqlite+pysqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    ).execution_options(schema_translate_map={SCHEMA: None})


@pytest.fixture
def engine():
    eng = _sqlite_engine()
    create_all(eng)
    _seed(eng)
    yield eng
    eng.dispose()


def _seed(engine) -> None:
    Session = create_session_factory(engine)
    with Session() as session:
        session.add(SM.Tournament(tournament_id=1, name="Spring Cup", game_mode="conquest"))
        session.add(SM.Tournament(tournament_id=2, name="Flag Night", game_mode="CTF"))
        session.flush()
        session.add_all(
            [
                SM.TournamentTeam(team_id=1, tournament_id=1, name="Alpha"),
                SM.TournamentTeam(team_id=2, tournament_id=1, name="Bravo"),
                SM.TournamentTeam(team_id=3, tournament_id=1, name="Charlie"),
            ]
        )
        session.flush()
        session.add_all(
            [
                SM.TeamPlayer(tournament_id=1, team_id=1, player_name="a1"),
                SM.TeamPlayer(tournament_id=1, team_id=1, player_name="a2"),
                SM.TeamPlayer(tournament_id=1, team_id=2, player_name="b1"),
                SM.TeamPlayer(tournament_id=1, team_id=2, player_name="b2"),
                SM.TeamPlayer(tournament_id=1, team_id=3, player_name="c1"),
                SM.TournamentMatch(match_id=10, tournament_id=1, week="1"),
                SM.TournamentMatch(match_id=20, tournament_id=1, week="2"),
            ]
        )
        session.flush()
        session.add_all(
            [
                SM.TournamentRound(
                    round_id="r1", tournament_id=1, match_id=10,
                    team1_tickets=200, team2_tickets=100, winning_slot=1,
                ),
                SM.TournamentRound(
                    round_id="r2", tournament_id=1, match_id=20, map_id=4,
                    team1_tickets=150, team2_tickets=50, winning_slot=1,
                ),
                SM.TournamentRound(
                    round_id="r3", tournament_id=1, match_id=None,
                    team1_tickets=100, team2_tickets=100, winning_slot=None,
                ),
            ]
        )
        session.flush()
        players = [
            ("r1", "a1", 1), ("r1", "a2", 1), ("r1", "b1", 2), ("r1", "b2", 2),
            ("r2", "b1", 1), ("r2", "b2", 1), ("r2", "a1", 2),
            ("r3", "A1", 1), ("r3", "c1", 2),
        ]
        session.add_all(
            [
                SM.RoundPlayer(round_id=rid, player_name=name, slot=slot)
                for rid, name, slot in players
            ]
        )
        session.commit()


def _ranking(team_id: int, rank: int, week) -> TeamRanking:
    return TeamRanking(
        tournament_id=1, team_id=team_id, week=week, rank=rank, points=3 - rank,
        rounds_won=3 - rank, rounds_tied=0, rounds_lost=rank - 1,
        tickets_for=100, tickets_against=50, ticket_differential=50,
        matches_played=1, victories=1, ties=0, losses=0, updated_at=NOW,
    )


def test_sql_collaborators_satisfy_protocols(engine):
    assert isinstance(SqlRoundSource(engine), RoundSource)
    assert isinstance(SqlRankingStore(engine), RankingStore)


def test_load_scope_for_one_week(engine):
    snapshot = SqlRoundSource(engine).load_scope(1, "1")

    assert [r.round_id for r in snapshot.rounds] == ["r1"]
    record = snapshot.rounds[0]
    assert record.week == "1"
    assert record.match_id == 10
    assert record.team1_players == frozenset({"a1", "a2"})
    assert record.winning_slot is RoundSlot.TEAM1
    assert {t.team_id: t.roster for t in snapshot.teams}[1] == frozenset({"a1", "a2"})
    assert snapshot.game_mode is GameMode.CONQUEST
    assert snapshot.overrides == {}


def test_cumulative_scope_includes_rounds_without_match(engine):
    snapshot = SqlRoundSource(engine).load_scope(1, None)
    by_id = {r.round_id: r for r in snapshot.rounds}

    assert set(by_id) == {"r1", "r2", "r3"}
    assert by_id["r3"].week is None
    assert by_id["r3"].match_id is None
    assert by_id["r3"].winning_slot is None
    assert by_id["r2"].map_id == 4


def test_load_weeks_and_game_mode(engine):
    source = SqlRoundSource(engine)
    assert source.load_weeks(1) == ["1", "2"]
    assert source.load_weeks(2) == []
    assert source.load_scope(2, None).game_mode is GameMode.CTF


def test_replace_rankings_scopes_null_week_separately(engine):
    store = SqlRankingStore(engine)
    store.replace_rankings(1, "1", [_ranking(1, 1, "1"), _ranking(2, 2, "1")])
    store.replace_rankings(1, None, [_ranking(1, 1, None)])

    assert store.replace_rankings(1, None, [_ranking(2, 1, None)]) == 1
    cumulative = load_rankings_df(engine, 1, None)
    assert cumulative["team_id"].to_list() == [2]
    assert load_rankings_df(engine, 1, "1")["rank"].to_list() == [1, 2]

    assert store.delete_rankings(1, None) == 1
    assert load_rankings_df(engine, 1, None).height == 0
    assert load_rankings_df(engine, 1, "1").height == 2


def test_failed_replace_keeps_previous_rows(engine):
    store = SqlRankingStore(engine)
    store.replace_rankings(1, "1", [_ranking(1, 1, "1")])

    broken = replace(_ranking(2, 1, "1"), rank=None)
    with pytest.raises(DataAccessError) as excinfo:
        store.replace_rankings(1, "1", [broken])

    assert excinfo.value.week == "1"
    assert isinstance(excinfo.value.__cause__, sa.exc.SQLAlchemyError)
    assert load_rankings_df(engine, 1, "1")["team_id"].to_list() == [1]


def test_missing_tables_raise_data_access_error():
    bare = _sqlite_engine()
    with pytest.raises(DataAccessError):
        SqlRoundSource(bare).load_scope(1, "1")
    with pytest.raises(DataAccessError):
        SqlRankingStore(bare).delete_rankings(1, None)


def test_save_mapping_override_validates_and_replaces(engine):
    with pytest.raises(MappingOverrideError):
        save_mapping_override(engine, 1, "r3", 1, 1)
    with pytest.raises(MappingOverrideError):
        save_mapping_override(engine, 1, "r3", 1, 99)
    with pytest.raises(MappingOverrideError):
        save_mapping_override(engine, 2, "r3", 1, 3)

    save_mapping_override(engine, 1, "r3", 2, 3)
    save_mapping_override(engine, 1, "r3", 3, 1)
    snapshot = SqlRoundSource(engine).load_scope(1, None)
    assert snapshot.overrides == {"r3": (3, 1)}
    assert SqlRoundSource(engine).load_scope(1, "1").overrides == {}


def test_recalculate_all_against_database(engine):
    calc = TeamRankingCalculator(
        SqlRoundSource(engine),
        SqlRankingStore(engine),
        sink=NullEventSink(),
        clock=lambda: NOW,
    )
    summary = calc.recalculate_all(1)

    assert summary.ok
    assert [r.week for r in summary.results] == ["1", "2", None]

    week1 = load_rankings_df(engine, 1, "1")
    assert week1["team_id"].to_list() == [1, 2, 3]
    assert week1["rounds_won"].to_list() == [1, 0, 0]

    cumulative = load_rankings_df(engine, 1, None)
    alpha = cumulative.filter(cumulative["team_id"] == 1).row(0, named=True)
    # r3 maps by case-insensitive roster match and is a tie
    assert (alpha["rounds_won"], alpha["rounds_tied"], alpha["rounds_lost"]) == (1, 1, 1)
    assert alpha["tickets_for"] == 200 + 50 + 100
    assert cumulative.height == 3


def test_read_failure_after_game_mode_becomes_data_access_error():
    partial = _sqlite_engine()
    SM.Tournament.__table__.create(partial)
    Session = create_session_factory(partial)
    with Session() as session:
        session.add(SM.Tournament(tournament_id=1, name="Spring Cup"))
        session.commit()

    source = SqlRoundSource(partial)
    with pytest.raises(DataAccessError) as excinfo:
        source.load_scope(1, "1")
    assert excinfo.value.week == "1"
    with pytest.raises(DataAccessError):
        source.load_weeks(1)
    with pytest.raises(DataAccessError):
        SqlRankingStore(partial).ranked_weeks(1)
    partial.dispose()


def test_ranked_weeks_lists_stored_weeks_only(engine):
    store = SqlRankingStore(engine)
    store.replace_rankings(1, "2", [_ranking(1, 1, "2")])
    store.replace_rankings(1, "1", [_ranking(1, 1, "1")])
    store.replace_rankings(1, None, [_ranking(1, 1, None)])
    assert store.ranked_weeks(1) == ["1", "2"]
    assert store.ranked_weeks(2) == []
