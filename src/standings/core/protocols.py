"""Protocol definitions for the engine's external collaborators."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Optional, Protocol, Sequence, runtime_checkable

from standings.core.types import GameMode, RoundRecord, TournamentTeam

if TYPE_CHECKING:
    from standings.core.events import DecisionEvent
    from standings.core.types import TeamRanking


@dataclass(frozen=True)
class ScopeSnapshot:
    """Everything one calculation pass reads, taken as a single consistent view.

    ``overrides`` maps a round id to the manually assigned
    ``(team1_id, team2_id)`` pair for that round.
    """

    tournament_id: int
    week: Optional[str]
    teams: tuple[TournamentTeam, ...] = ()
    rounds: tuple[RoundRecord, ...] = ()
    overrides: dict[str, tuple[int, int]] = field(default_factory=dict)
    game_mode: GameMode = GameMode.CONQUEST


@runtime_checkable
class RoundSource(Protocol):
    """Read side: rounds and registered teams of a tournament.

    Implementations raise ``DataAccessError`` when the backing store fails.
    """

    def load_scope(
        self, tournament_id: int, week: Optional[str]
    ) -> ScopeSnapshot:
        """Load teams, rounds, overrides and game mode for one scope.

        Args:
            tournament_id: Tournament to read.
            week: Week label, or None for every round of the tournament.
        """
        ...

    def load_weeks(self, tournament_id: int) -> list[Optional[str]]:
        """Return the distinct week labels that have rounds."""
        ...


@runtime_checkable
class RankingStore(Protocol):
    """Write side: standings rows scoped to one (tournament, week) pair."""

    def replace_rankings(
        self,
        tournament_id: int,
        week: Optional[str],
        rows: Sequence[TeamRanking],
    ) -> int:
        """Delete the scope's rows and insert ``rows`` in one transaction.

        Returns the number of rows written.
        """
        ...

    def delete_rankings(self, tournament_id: int, week: Optional[str]) -> int:
        """Delete the scope's rows; returns the number removed."""
        ...

    def ranked_weeks(self, tournament_id: int) -> list[str]:
        """Return the distinct week labels that currently have rows."""
        ...


@runtime_checkable
class DecisionEventSink(Protocol):
    def emit(self, event: DecisionEvent) -> None:
        ...
