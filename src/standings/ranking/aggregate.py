"""Match-level aggregation of mapped rounds.

Rounds sharing a ``MatchKey`` form one match. The match outcome is decided
by ticket totals across all of its rounds, independent of who won each
individual round.
"""

from __future__ import annotations

from typing import Iterable, Optional

from standings.core.types import (
    MappedRound,
    MatchKey,
    MatchOutcome,
    MatchRecord,
    Outcome,
)


def match_key_for(mapped: MappedRound) -> MatchKey:
    return MatchKey.for_round(mapped)


def group_matches(mapped_rounds: Iterable[MappedRound]) -> list[MatchRecord]:
    """Group mapped rounds into matches, ordered by match key."""
    grouped: dict[MatchKey, list[MappedRound]] = {}
    for mapped in mapped_rounds:
        grouped.setdefault(match_key_for(mapped), []).append(mapped)
    return [
        MatchRecord(key=key, rounds=tuple(grouped[key]))
        for key in sorted(grouped, key=MatchKey.sort_key)
    ]


def aggregate_match(
    match: MatchRecord,
) -> Optional[tuple[MatchOutcome, MatchOutcome]]:
    """Decide a match from summed tickets.

    Returns:
        One outcome per team (lower team id first), or None when the match
        has no rounds.
    """
    if not match.rounds:
        return None

    team_a, team_b = match.key.team_pair
    tickets_a = sum(mapped.tickets_for(team_a) for mapped in match.rounds)
    tickets_b = sum(mapped.tickets_for(team_b) for mapped in match.rounds)

    if tickets_a > tickets_b:
        outcome_a, outcome_b = Outcome.WIN, Outcome.LOSS
    elif tickets_a < tickets_b:
        outcome_a, outcome_b = Outcome.LOSS, Outcome.WIN
    else:
        outcome_a = outcome_b = Outcome.TIE

    rounds = len(match.rounds)
    return (
        MatchOutcome(match.key, team_a, team_b, tickets_a, tickets_b, rounds, outcome_a),
        MatchOutcome(match.key, team_b, team_a, tickets_b, tickets_a, rounds, outcome_b),
    )


def aggregate_matches(mapped_rounds: Iterable[MappedRound]) -> list[MatchOutcome]:
    """Per-team, per-match outcomes for every non-empty match."""
    outcomes: list[MatchOutcome] = []
    for match in group_matches(mapped_rounds):
        pair = aggregate_match(match)
        if pair is not None:
            outcomes.extend(pair)
    return outcomes


class MatchAggregator:
    """Groups mapped rounds into matches and decides each match."""

    def group(self, mapped_rounds: Iterable[MappedRound]) -> list[MatchRecord]:
        return group_matches(mapped_rounds)

    def aggregate(self, mapped_rounds: Iterable[MappedRound]) -> list[MatchOutcome]:
        return aggregate_matches(mapped_rounds)

    def outcomes_by_team(
        self, mapped_rounds: Iterable[MappedRound]
    ) -> dict[int, list[MatchOutcome]]:
        by_team: dict[int, list[MatchOutcome]] = {}
        for outcome in self.aggregate(mapped_rounds):
            by_team.setdefault(outcome.team_id, []).append(outcome)
        return by_team
