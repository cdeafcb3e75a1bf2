import polars as pl

from standings.core.types import RoundSlot, TournamentTeam
from standings.mapping.overlap import (
    candidates_to_dataframe,
    match_roster_overlap,
    normalize_player_name,
)


def _team(team_id: int, roster, tournament_id: int = 1) -> TournamentTeam:
    return TournamentTeam(
        team_id=team_id,
        tournament_id=tournament_id,
        name=f"Team {team_id}",
        roster=frozenset(roster),
    )


def test_normalize_player_name_strips_and_folds_case():
    assert normalize_player_name("  Alice ") == "alice"
    assert normalize_player_name("  Alice ", case_sensitive=True) == "Alice"


def test_counts_roster_overlap_per_slot():
    team_x = _team(10, {"P1", "P2"})
    team_y = _team(20, {"P4", "P5", "P6"})
    candidates = match_roster_overlap(
        {"P1", "P2", "P3"}, {"P4", "P5"}, [team_x, team_y]
    )

    by_id = {c.team_id: c for c in candidates}
    assert by_id[10].matches1 == 2 and by_id[10].matches2 == 0
    assert by_id[20].matches1 == 0 and by_id[20].matches2 == 2
    assert by_id[10].preferred_slot is RoundSlot.TEAM1
    assert by_id[20].preferred_slot is RoundSlot.TEAM2
    assert by_id[10].confidence == 1.0
    assert by_id[10].matched_players1 == ("P1", "P2")


def test_teams_without_matches_are_not_candidates():
    candidates = match_roster_overlap(
        {"P1"}, {"P2"}, [_team(1, {"P1"}), _team(2, {"Z9"})]
    )
    assert [c.team_id for c in candidates] == [1]


def test_equal_slot_counts_are_flagged_ambiguous():
    (candidate,) = match_roster_overlap({"P1"}, {"P4"}, [_team(1, {"P1", "P4"})])
    assert candidate.is_ambiguous
    assert candidate.preferred_slot is None
    assert candidate.confidence == 0.5


def test_candidates_ordered_by_confidence_then_total_then_id():
    strong = _team(3, {"A", "B", "C"})  # 3/3 in slot 1
    mixed = _team(1, {"A", "B", "X"})  # 2 in slot 1, 1 in slot 2
    small = _team(2, {"X"})  # 1/1 in slot 2
    candidates = match_roster_overlap({"A", "B", "C"}, {"X"}, [mixed, small, strong])
    assert [c.team_id for c in candidates] == [3, 2, 1]


def test_name_comparison_ignores_case_by_default():
    team = _team(1, {"Alice", "BOB"})
    (candidate,) = match_roster_overlap({"alice", "bob"}, set(), [team])
    assert candidate.matches1 == 2

    assert match_roster_overlap({"alice"}, set(), [team], case_sensitive=True) == []


def test_candidates_to_dataframe_is_typed():
    candidates = match_roster_overlap({"P1"}, {"P2"}, [_team(1, {"P1"}), _team(2, {"P2"})])
    df = candidates_to_dataframe(candidates)
    assert df.height == 2
    assert df.schema["preferred_slot"] == pl.Int64
    assert df.filter(pl.col("team_id") == 2)["preferred_slot"].item() == 2

    empty = candidates_to_dataframe([])
    assert empty.height == 0
    assert empty.schema["confidence"] == pl.Float64


def test_name_in_both_slots_after_case_folding_counts_for_neither():
    team = _team(1, {"Bob", "Ann"})
    (candidate,) = match_roster_overlap({"Bob", "Ann"}, {"bob", "Zed"}, [team])
    assert (candidate.matches1, candidate.matches2) == (1, 0)
    assert candidate.confidence == 1.0

    (exact,) = match_roster_overlap(
        {"Bob", "Ann"}, {"bob", "Zed"}, [team], case_sensitive=True
    )
    assert (exact.matches1, exact.matches2) == (2, 0)
