from datetime import datetime, timezone

import polars as pl
import pytest

from standings.core.errors import InvalidRoundError
from standings.core.types import (
    GameMode,
    MappedRound,
    MappingFailureReason,
    Outcome,
    RoundRecord,
    RoundSlot,
    SlotAssignment,
    TeamMapping,
    TeamRanking,
    TeamWeekStatistics,
    rankings_to_dataframe,
)
from standings.memory import InMemoryRankingStore, InMemoryRoundSource


def test_round_rejects_player_in_both_slots():
    with pytest.raises(InvalidRoundError):
        RoundRecord("r1", 1, frozenset({"a", "b"}), frozenset({"b"}))


@pytest.mark.parametrize(
    "tickets, winner",
    [((10, 5), RoundSlot.TEAM1), ((5, 10), RoundSlot.TEAM2), ((7, 7), None), ((None, None), None)],
)
def test_from_tickets_derives_winner(tickets, winner):
    record = RoundRecord.from_tickets("r1", 1, {"a"}, {"b"}, *tickets)
    assert record.winning_slot is winner


def test_game_mode_parse():
    assert GameMode.parse("CTF") is GameMode.CTF
    assert GameMode.parse(" ctf ") is GameMode.CTF
    assert GameMode.parse("conquest") is GameMode.CONQUEST
    assert GameMode.parse(None) is GameMode.CONQUEST
    assert GameMode.parse("anything") is GameMode.CONQUEST


def test_resolved_mapping_requires_two_distinct_teams():
    with pytest.raises(ValueError):
        TeamMapping.resolved(
            "r1",
            SlotAssignment(1, RoundSlot.TEAM1, 1.0),
            SlotAssignment(1, RoundSlot.TEAM2, 1.0),
        )
    with pytest.raises(ValueError):
        TeamMapping.resolved(
            "r1",
            SlotAssignment(1, RoundSlot.TEAM1, 1.0),
            SlotAssignment(2, RoundSlot.TEAM1, 1.0),
        )


def test_mapped_round_outcomes_from_team_perspective():
    record = RoundRecord.from_tickets("r1", 1, {"a"}, {"b"}, 40, 90)
    mapping = TeamMapping.resolved(
        "r1", SlotAssignment(7, RoundSlot.TEAM1, 1.0), SlotAssignment(8, RoundSlot.TEAM2, 0.8)
    )
    mapped = MappedRound(record, mapping)

    assert mapped.outcome_for(7) is Outcome.LOSS
    assert mapped.outcome_for(8) is Outcome.WIN
    assert mapped.tickets_for(8) == 90 and mapped.tickets_against(8) == 40
    assert mapped.opponent_of(7) == 8
    with pytest.raises(KeyError):
        mapped.slot_of(99)


def test_mapped_round_requires_resolved_mapping():
    record = RoundRecord("r1", 1, frozenset({"a"}), frozenset({"b"}))
    failed = TeamMapping.failed("r1", MappingFailureReason.INSUFFICIENT_MATCHES)
    with pytest.raises(ValueError):
        MappedRound(record, failed)


def test_statistics_accumulate():
    stats = TeamWeekStatistics(tournament_id=1, team_id=2)
    stats.record_round(Outcome.WIN, 100, 50)
    stats.record_round(Outcome.TIE, 10, 10)
    stats.record_match(Outcome.WIN)
    assert stats.rounds_played == 2
    assert stats.ticket_differential == 50
    assert stats.to_dict()["ticket_differential"] == 50
    assert (stats.matches_played, stats.victories) == (1, 1)


def test_rankings_to_dataframe():
    now = datetime(2024, 1, 1, tzinfo=timezone.utc)
    rows = [
        TeamRanking.from_statistics(TeamWeekStatistics(1, team_id, None), rank, now)
        for team_id, rank in ((4, 2), (3, 1))
    ]
    df = rankings_to_dataframe(rows)
    assert df["team_id"].to_list() == [3, 4]
    assert df.schema["week"] == pl.Utf8

    empty = rankings_to_dataframe([])
    assert empty.height == 0
    assert empty.columns == df.columns


def test_memory_source_scopes_rounds_and_overrides():
    rounds = [
        RoundRecord("r1", 1, frozenset({"a"}), frozenset({"b"}), week="1"),
        RoundRecord("r2", 1, frozenset({"a"}), frozenset({"b"}), week="2"),
        RoundRecord("r3", 2, frozenset({"a"}), frozenset({"b"}), week="1"),
    ]
    source = InMemoryRoundSource(rounds=rounds, overrides={"r2": (1, 2)})

    week1 = source.load_scope(1, "1")
    assert [r.round_id for r in week1.rounds] == ["r1"]
    assert week1.overrides == {}
    assert [r.round_id for r in source.load_scope(1, None).rounds] == ["r1", "r2"]
    assert source.load_scope(1, None).overrides == {"r2": (1, 2)}
    assert source.load_weeks(1) == ["1", "2"]


def test_memory_store_replace_and_delete():
    store = InMemoryRankingStore()
    now = datetime(2024, 1, 1, tzinfo=timezone.utc)
    row = TeamRanking.from_statistics(TeamWeekStatistics(1, 1, "1"), 1, now)
    assert store.replace_rankings(1, "1", [row]) == 1
    assert store.delete_rankings(1, None) == 0
    assert store.delete_rankings(1, "1") == 1
    assert store.get(1, "1") == []
