"""Roster-overlap scoring between round slots and registered teams.

Pure computation: given the player names seen in the two slots of a round
and the registered tournament teams, count how many roster players of each
team appear in each slot and rank the teams by how clearly they belong to
one slot.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional

import polars as pl

from standings.core.types import RoundSlot, TournamentTeam


def normalize_player_name(name: str, case_sensitive: bool = False) -> str:
    """Normalize a player name for roster comparison."""
    name = name.strip()
    return name if case_sensitive else name.casefold()


@dataclass(frozen=True)
class OverlapCandidate:
    """Overlap of one registered team with the two slots of a round."""

    team: TournamentTeam
    matches1: int
    matches2: int
    matched_players1: tuple[str, ...] = ()
    matched_players2: tuple[str, ...] = ()

    @property
    def team_id(self) -> int:
        return self.team.team_id

    @property
    def total_matches(self) -> int:
        return self.matches1 + self.matches2

    @property
    def is_ambiguous(self) -> bool:
        return self.matches1 == self.matches2

    @property
    def preferred_slot(self) -> Optional[RoundSlot]:
        if self.is_ambiguous:
            return None
        return RoundSlot.TEAM1 if self.matches1 > self.matches2 else RoundSlot.TEAM2

    @property
    def confidence(self) -> float:
        """Share of the team's matched players found in its preferred slot."""
        if self.total_matches == 0:
            return 0.0
        return max(self.matches1, self.matches2) / self.total_matches

    def matches_in(self, slot: RoundSlot) -> int:
        return self.matches1 if slot is RoundSlot.TEAM1 else self.matches2


def _name_index(names: Iterable[str], case_sensitive: bool) -> dict[str, str]:
    index: dict[str, str] = {}
    for name in sorted(names):
        key = normalize_player_name(name, case_sensitive)
        if key:
            index.setdefault(key, name)
    return index


def match_roster_overlap(
    slot1: Iterable[str],
    slot2: Iterable[str],
    teams: Iterable[TournamentTeam],
    *,
    case_sensitive: bool = False,
) -> list[OverlapCandidate]:
    """Score every registered team against the two slots of a round.

    Args:
        slot1: Player names recorded in the first slot.
        slot2: Player names recorded in the second slot.
        teams: Registered teams of the tournament.
        case_sensitive: Compare names exactly. Defaults to False.

    Returns:
        Candidates with at least one matched player, ordered by confidence
        (descending), then total matched players (descending), then team id.
        Teams matching both slots equally are included but flagged
        ambiguous. A name that normalizes to the same key in both slots
        cannot be attributed and counts for neither.
    """
    slot1_keys = set(_name_index(slot1, case_sensitive))
    slot2_keys = set(_name_index(slot2, case_sensitive))
    shared = slot1_keys & slot2_keys
    slot1_keys -= shared
    slot2_keys -= shared

    candidates = []
    for team in teams:
        roster = _name_index(team.roster, case_sensitive)
        matched1 = sorted(roster[key] for key in roster.keys() & slot1_keys)
        matched2 = sorted(roster[key] for key in roster.keys() & slot2_keys)
        if not matched1 and not matched2:
            continue
        candidates.append(
            OverlapCandidate(
                team=team,
                matches1=len(matched1),
                matches2=len(matched2),
                matched_players1=tuple(matched1),
                matched_players2=tuple(matched2),
            )
        )

    candidates.sort(
        key=lambda c: (-c.confidence, -c.total_matches, c.team_id)
    )
    return candidates


def candidates_to_dataframe(candidates: Iterable[OverlapCandidate]) -> pl.DataFrame:
    """Render overlap candidates as a Polars DataFrame for inspection."""
    rows = [
        {
            "team_id": candidate.team_id,
            "team_name": candidate.team.name,
            "matches1": candidate.matches1,
            "matches2": candidate.matches2,
            "preferred_slot": (
                int(candidate.preferred_slot)
                if candidate.preferred_slot is not None
                else None
            ),
            "confidence": candidate.confidence,
            "ambiguous": candidate.is_ambiguous,
        }
        for candidate in candidates
    ]
    schema = {
        "team_id": pl.Int64,
        "team_name": pl.Utf8,
        "matches1": pl.Int64,
        "matches2": pl.Int64,
        "preferred_slot": pl.Int64,
        "confidence": pl.Float64,
        "ambiguous": pl.Boolean,
    }
    return pl.DataFrame(rows, schema=schema)
