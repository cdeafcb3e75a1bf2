import logging

import pytest

from standings.core import events
from standings.core.config import MappingConfig
from standings.core.errors import MappingOverrideError
from standings.core.events import RecordingEventSink
from standings.core.types import (
    MappingFailureReason,
    RoundRecord,
    RoundSlot,
    TournamentTeam,
)
from standings.mapping.resolver import TeamMappingResolver


def _team(team_id: int, roster, tournament_id: int = 1) -> TournamentTeam:
    return TournamentTeam(team_id, tournament_id, f"Team {team_id}", frozenset(roster))


def _round(slot1, slot2, round_id: str = "r1", **kwargs) -> RoundRecord:
    kwargs.setdefault("tournament_id", 1)
    return RoundRecord(
        round_id=round_id,
        team1_players=frozenset(slot1),
        team2_players=frozenset(slot2),
        **kwargs,
    )


def _resolver(**config) -> tuple[TeamMappingResolver, RecordingEventSink]:
    sink = RecordingEventSink()
    return TeamMappingResolver(MappingConfig(**config), sink), sink


def test_resolves_two_distinct_teams_from_roster_overlap():
    resolver, sink = _resolver()
    team_x = _team(10, {"P1", "P2"})
    team_y = _team(20, {"P4", "P5", "P6"})

    mapping = resolver.resolve(_round({"P1", "P2", "P3"}, {"P4", "P5"}), [team_x, team_y])

    assert mapping.is_resolved
    assert mapping.team_for(RoundSlot.TEAM1) == 10
    assert mapping.team_for(RoundSlot.TEAM2) == 20
    assert mapping.confidence_for(10) == 1.0
    assert mapping.confidence_for(20) == 1.0
    assert len(sink.of_kind(events.CANDIDATE_EVALUATED)) == 2
    (resolved,) = sink.of_kind(events.MAPPING_RESOLVED)
    assert resolved.data["team1_id"] == 10
    assert resolved.round_id == "r1"


def test_single_matching_team_is_insufficient():
    resolver, sink = _resolver()
    mapping = resolver.resolve(_round({"P1"}, {"P2"}), [_team(10, {"P1", "P2"})])

    assert not mapping.is_resolved
    assert mapping.reason is MappingFailureReason.INSUFFICIENT_MATCHES
    assert mapping.detail.startswith("Only one tournament team matched players")
    (failed,) = sink.of_kind(events.MAPPING_FAILED)
    assert failed.data["candidate_count"] == 1
    assert failed.data["reason"] == "insufficient_matches"


def test_no_matching_team_is_insufficient():
    resolver, _ = _resolver()
    mapping = resolver.resolve(_round({"A"}, {"B"}), [_team(1, {"X"}), _team(2, {"Y"})])
    assert mapping.reason is MappingFailureReason.INSUFFICIENT_MATCHES
    assert mapping.detail == "No tournament teams matched players in round"


def test_both_teams_preferring_same_slot_is_conflicting():
    resolver, _ = _resolver()
    teams = [_team(1, {"A", "B"}), _team(2, {"C"})]
    mapping = resolver.resolve(_round({"A", "B", "C"}, {"Z"}), teams)

    assert mapping.reason is MappingFailureReason.AMBIGUOUS_OR_CONFLICTING_ASSIGNMENT
    assert "slot 2" in mapping.detail


def test_ambiguous_team_is_not_viable():
    resolver, _ = _resolver()
    # Team 3 sits evenly across both slots and must not be picked
    teams = [_team(1, {"A"}), _team(3, {"B", "C"})]
    mapping = resolver.resolve(_round({"A", "B"}, {"C"}), teams)
    assert mapping.reason is MappingFailureReason.INSUFFICIENT_MATCHES


def test_higher_confidence_candidate_wins_slot():
    resolver, _ = _resolver()
    teams = [
        _team(1, {"A", "B", "X"}),  # slot 1, confidence 2/3
        _team(2, {"C"}),  # slot 1, confidence 1.0
        _team(3, {"X", "Y"}),  # slot 2, confidence 1.0
    ]
    mapping = resolver.resolve(_round({"A", "B", "C"}, {"X", "Y"}), teams)
    assert mapping.team_for(RoundSlot.TEAM1) == 2
    assert mapping.team_for(RoundSlot.TEAM2) == 3


def test_min_confidence_filters_weak_candidates():
    teams = [_team(1, {"A", "B", "X"}), _team(2, {"X", "Y"})]
    record = _round({"A", "B"}, {"X", "Y"})

    resolver, _ = _resolver()
    assert resolver.resolve(record, teams).is_resolved

    strict, _ = _resolver(min_confidence=0.9)
    mapping = strict.resolve(record, teams)
    assert mapping.reason is MappingFailureReason.INSUFFICIENT_MATCHES


def test_player_names_match_case_insensitively():
    resolver, _ = _resolver()
    teams = [_team(1, {"Alice"}), _team(2, {"Bob"})]
    mapping = resolver.resolve(_round({"ALICE"}, {"bob"}), teams)
    assert mapping.is_resolved

    exact, _ = _resolver(case_sensitive_names=True)
    assert not exact.resolve(_round({"ALICE"}, {"bob"}), teams).is_resolved


def test_teams_from_other_tournaments_are_ignored():
    resolver, _ = _resolver()
    teams = [_team(1, {"A"}), _team(2, {"B"}, tournament_id=99)]
    mapping = resolver.resolve(_round({"A"}, {"B"}), teams)
    assert mapping.reason is MappingFailureReason.INSUFFICIENT_MATCHES


def test_apply_override_marks_mapping_as_manual():
    resolver, sink = _resolver()
    teams = [_team(1, set()), _team(2, set())]
    mapping = resolver.apply_override(_round({"A"}, {"B"}), 2, 1, teams)

    assert mapping.overridden
    assert mapping.team_for(RoundSlot.TEAM1) == 2
    assert mapping.confidence_for(1) == 1.0
    assert len(sink.of_kind(events.MAPPING_OVERRIDDEN)) == 1


@pytest.mark.parametrize("team1_id, team2_id", [(1, 1), (1, 42)])
def test_apply_override_rejects_invalid_teams(team1_id, team2_id):
    resolver, _ = _resolver()
    teams = [_team(1, set()), _team(2, set())]
    with pytest.raises(MappingOverrideError):
        resolver.apply_override(_round({"A"}, {"B"}), team1_id, team2_id, teams)


def test_resolve_all_prefers_overrides_and_reports_failures():
    resolver, _ = _resolver()
    teams = [_team(1, {"A"}), _team(2, {"B"})]
    rounds = [
        _round({"A"}, {"B"}, round_id="auto"),
        _round({"Z"}, {"Y"}, round_id="manual"),
        _round({"Q"}, {"R"}, round_id="unmapped"),
    ]
    report = resolver.resolve_all(rounds, teams, {"manual": (2, 1)})

    assert [m.round.round_id for m in report.resolved] == ["auto", "manual"]
    assert report.resolved[1].team1_id == 2
    assert [f.round_id for f in report.failures] == ["unmapped"]
    assert report.total == 3
    assert report.failure_counts() == {MappingFailureReason.INSUFFICIENT_MATCHES: 1}


def test_stale_override_falls_back_to_inference(caplog):
    caplog.set_level(logging.WARNING, logger="standings.mapping.resolver")
    resolver, _ = _resolver()
    teams = [_team(1, {"A"}), _team(2, {"B"})]
    report = resolver.resolve_all([_round({"A"}, {"B"})], teams, {"r1": (1, 77)})

    (mapped,) = report.resolved
    assert not mapped.mapping.overridden
    assert mapped.team_ids == (1, 2)
    assert any("stale mapping override" in m for m in caplog.messages)
