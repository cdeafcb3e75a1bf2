"""In-memory round source and ranking store.

Useful for callers that already hold their records and for tests. Both
classes are safe to share between threads.
"""

from __future__ import annotations

import threading
from typing import Iterable, Mapping, Optional, Sequence

from standings.core.protocols import ScopeSnapshot
from standings.core.types import GameMode, RoundRecord, TeamRanking, TournamentTeam


class InMemoryRoundSource:
    def __init__(
        self,
        teams: Iterable[TournamentTeam] = (),
        rounds: Iterable[RoundRecord] = (),
        overrides: Optional[Mapping[str, tuple[int, int]]] = None,
        game_modes: Optional[Mapping[int, GameMode]] = None,
    ) -> None:
        self.teams = list(teams)
        self.rounds = list(rounds)
        self.overrides = dict(overrides or {})
        self.game_modes = dict(game_modes or {})
        self._lock = threading.Lock()

    def add_rounds(self, rounds: Iterable[RoundRecord]) -> None:
        with self._lock:
            self.rounds.extend(rounds)

    def set_override(self, round_id: str, team1_id: int, team2_id: int) -> None:
        with self._lock:
            self.overrides[round_id] = (team1_id, team2_id)

    def load_scope(self, tournament_id: int, week: Optional[str]) -> ScopeSnapshot:
        with self._lock:
            teams = tuple(t for t in self.teams if t.tournament_id == tournament_id)
            rounds = tuple(
                r
                for r in self.rounds
                if r.tournament_id == tournament_id
                and (week is None or r.week == week)
            )
            round_ids = {r.round_id for r in rounds}
            overrides = {
                round_id: pair
                for round_id, pair in self.overrides.items()
                if round_id in round_ids
            }
            game_mode = GameMode.parse(self.game_modes.get(tournament_id))
        return ScopeSnapshot(
            tournament_id=tournament_id,
            week=week,
            teams=teams,
            rounds=rounds,
            overrides=overrides,
            game_mode=game_mode,
        )

    def load_weeks(self, tournament_id: int) -> list[Optional[str]]:
        with self._lock:
            weeks = {
                r.week
                for r in self.rounds
                if r.tournament_id == tournament_id and r.week is not None
            }
        return sorted(weeks)


class InMemoryRankingStore:
    """Ranking rows keyed by (tournament, week) scope."""

    def __init__(self) -> None:
        self.rows: dict[tuple[int, Optional[str]], list[TeamRanking]] = {}
        self._lock = threading.Lock()

    def replace_rankings(
        self,
        tournament_id: int,
        week: Optional[str],
        rows: Sequence[TeamRanking],
    ) -> int:
        rows = list(rows)
        with self._lock:
            self.rows[(tournament_id, week)] = rows
        return len(rows)

    def delete_rankings(self, tournament_id: int, week: Optional[str]) -> int:
        with self._lock:
            removed = self.rows.pop((tournament_id, week), [])
        return len(removed)

    def ranked_weeks(self, tournament_id: int) -> list[str]:
        with self._lock:
            weeks = {
                week
                for tid, week in self.rows
                if tid == tournament_id and week is not None
            }
        return sorted(weeks)

    def get(self, tournament_id: int, week: Optional[str]) -> list[TeamRanking]:
        with self._lock:
            return list(self.rows.get((tournament_id, week), []))
