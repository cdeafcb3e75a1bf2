"""Record types shared by the mapping and ranking components."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field, fields
from datetime import datetime
from enum import Enum, IntEnum
from typing import Iterable, Optional

import polars as pl

from standings.core.errors import InvalidRoundError

# Scope value for standings computed over every round regardless of week.
CUMULATIVE: Optional[str] = None


class RoundSlot(IntEnum):
    """One of the two anonymous team positions recorded on a round."""

    TEAM1 = 1
    TEAM2 = 2

    @property
    def other(self) -> RoundSlot:
        return RoundSlot.TEAM2 if self is RoundSlot.TEAM1 else RoundSlot.TEAM1


class MappingStatus(str, Enum):
    RESOLVED = "resolved"
    FAILED = "failed"


class MappingFailureReason(str, Enum):
    INSUFFICIENT_MATCHES = "insufficient_matches"
    AMBIGUOUS_OR_CONFLICTING_ASSIGNMENT = "ambiguous_or_conflicting_assignment"


class Outcome(str, Enum):
    WIN = "win"
    TIE = "tie"
    LOSS = "loss"


class GameMode(str, Enum):
    """Scoring mode of a tournament.

    Conquest awards one point per round won. CTF awards match points
    (3 per victory, 1 per tie).
    """

    CONQUEST = "conquest"
    CTF = "ctf"

    @classmethod
    def parse(cls, value: object) -> GameMode:
        """Parse a stored game mode label; anything but CTF is conquest."""
        if isinstance(value, cls):
            return value
        if value is not None and str(value).strip().lower() == cls.CTF.value:
            return cls.CTF
        return cls.CONQUEST


@dataclass(frozen=True)
class RoundRecord:
    """One played round with its two anonymous team slots."""

    round_id: str
    tournament_id: int
    team1_players: frozenset[str]
    team2_players: frozenset[str]
    team1_tickets: int = 0
    team2_tickets: int = 0
    winning_slot: Optional[RoundSlot] = None
    match_id: Optional[int] = None
    map_id: Optional[int] = None
    week: Optional[str] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "team1_players", frozenset(self.team1_players))
        object.__setattr__(self, "team2_players", frozenset(self.team2_players))
        if self.winning_slot is not None:
            object.__setattr__(
                self, "winning_slot", RoundSlot(self.winning_slot)
            )
        shared = self.team1_players & self.team2_players
        if shared:
            raise InvalidRoundError(
                f"Round {self.round_id} lists players in both slots: "
                f"{sorted(shared)}"
            )

    @classmethod
    def from_tickets(
        cls,
        round_id: str,
        tournament_id: int,
        team1_players: Iterable[str],
        team2_players: Iterable[str],
        team1_tickets: Optional[int],
        team2_tickets: Optional[int],
        **kwargs,
    ) -> RoundRecord:
        """Build a round whose winner is the slot holding more tickets.

        Missing ticket counts are treated as zero; equal counts are a tie.
        """
        tickets1 = int(team1_tickets or 0)
        tickets2 = int(team2_tickets or 0)
        if tickets1 > tickets2:
            winner: Optional[RoundSlot] = RoundSlot.TEAM1
        elif tickets2 > tickets1:
            winner = RoundSlot.TEAM2
        else:
            winner = None
        return cls(
            round_id=round_id,
            tournament_id=tournament_id,
            team1_players=frozenset(team1_players),
            team2_players=frozenset(team2_players),
            team1_tickets=tickets1,
            team2_tickets=tickets2,
            winning_slot=winner,
            **kwargs,
        )

    def players(self, slot: RoundSlot) -> frozenset[str]:
        return self.team1_players if slot is RoundSlot.TEAM1 else self.team2_players

    def tickets(self, slot: RoundSlot) -> int:
        return self.team1_tickets if slot is RoundSlot.TEAM1 else self.team2_tickets


@dataclass(frozen=True)
class TournamentTeam:
    """A registered tournament team and its roster of player names."""

    team_id: int
    tournament_id: int
    name: str
    roster: frozenset[str] = field(default_factory=frozenset)

    def __post_init__(self) -> None:
        object.__setattr__(self, "roster", frozenset(self.roster))


@dataclass(frozen=True)
class SlotAssignment:
    team_id: int
    slot: RoundSlot
    confidence: float


@dataclass(frozen=True)
class TeamMapping:
    """Result of mapping tournament teams onto the slots of one round.

    A resolved mapping always holds exactly two assignments covering both
    slots with two distinct teams. A failed mapping holds none and carries a
    reason.
    """

    round_id: str
    status: MappingStatus
    assignments: tuple[SlotAssignment, ...] = ()
    reason: Optional[MappingFailureReason] = None
    detail: Optional[str] = None
    overridden: bool = False

    def __post_init__(self) -> None:
        if self.status is MappingStatus.RESOLVED:
            slots = {assignment.slot for assignment in self.assignments}
            teams = {assignment.team_id for assignment in self.assignments}
            if (
                len(self.assignments) != 2
                or slots != {RoundSlot.TEAM1, RoundSlot.TEAM2}
                or len(teams) != 2
            ):
                raise ValueError(
                    f"Resolved mapping for round {self.round_id} must assign "
                    "two distinct teams to the two slots"
                )
        elif self.reason is None:
            raise ValueError(
                f"Failed mapping for round {self.round_id} needs a reason"
            )

    @classmethod
    def resolved(
        cls,
        round_id: str,
        team1: SlotAssignment,
        team2: SlotAssignment,
        *,
        overridden: bool = False,
    ) -> TeamMapping:
        return cls(
            round_id=round_id,
            status=MappingStatus.RESOLVED,
            assignments=(team1, team2),
            overridden=overridden,
        )

    @classmethod
    def failed(
        cls,
        round_id: str,
        reason: MappingFailureReason,
        detail: Optional[str] = None,
    ) -> TeamMapping:
        return cls(
            round_id=round_id,
            status=MappingStatus.FAILED,
            reason=reason,
            detail=detail,
        )

    @property
    def is_resolved(self) -> bool:
        return self.status is MappingStatus.RESOLVED

    def team_for(self, slot: RoundSlot) -> Optional[int]:
        for assignment in self.assignments:
            if assignment.slot is slot:
                return assignment.team_id
        return None

    def slot_for(self, team_id: int) -> Optional[RoundSlot]:
        for assignment in self.assignments:
            if assignment.team_id == team_id:
                return assignment.slot
        return None

    def confidence_for(self, team_id: int) -> Optional[float]:
        for assignment in self.assignments:
            if assignment.team_id == team_id:
                return assignment.confidence
        return None


@dataclass(frozen=True)
class MappedRound:
    """A round paired with its resolved team mapping."""

    round: RoundRecord
    mapping: TeamMapping

    def __post_init__(self) -> None:
        if not self.mapping.is_resolved:
            raise ValueError(
                f"Round {self.round.round_id} has no resolved mapping"
            )
        if self.mapping.round_id != self.round.round_id:
            raise ValueError(
                f"Mapping for round {self.mapping.round_id} attached to "
                f"round {self.round.round_id}"
            )

    @property
    def team1_id(self) -> int:
        return self.mapping.team_for(RoundSlot.TEAM1)

    @property
    def team2_id(self) -> int:
        return self.mapping.team_for(RoundSlot.TEAM2)

    @property
    def team_ids(self) -> tuple[int, int]:
        return (self.team1_id, self.team2_id)

    def slot_of(self, team_id: int) -> RoundSlot:
        slot = self.mapping.slot_for(team_id)
        if slot is None:
            raise KeyError(
                f"Team {team_id} did not play round {self.round.round_id}"
            )
        return slot

    def opponent_of(self, team_id: int) -> int:
        return self.mapping.team_for(self.slot_of(team_id).other)

    def tickets_for(self, team_id: int) -> int:
        return self.round.tickets(self.slot_of(team_id))

    def tickets_against(self, team_id: int) -> int:
        return self.round.tickets(self.slot_of(team_id).other)

    def outcome_for(self, team_id: int) -> Outcome:
        slot = self.slot_of(team_id)
        if self.round.winning_slot is None:
            return Outcome.TIE
        if self.round.winning_slot is slot:
            return Outcome.WIN
        return Outcome.LOSS


@dataclass(frozen=True)
class MatchKey:
    """Grouping key identifying one match between two tournament teams.

    ``round_id`` is only set for rounds without a match association; each
    such round forms a match of its own.
    """

    tournament_id: int
    week: Optional[str]
    team_pair: tuple[int, int]
    match_id: Optional[int] = None
    round_id: Optional[str] = None

    @classmethod
    def for_round(cls, mapped: MappedRound) -> MatchKey:
        record = mapped.round
        return cls(
            tournament_id=record.tournament_id,
            week=record.week,
            team_pair=tuple(sorted(mapped.team_ids)),
            match_id=record.match_id,
            round_id=record.round_id if record.match_id is None else None,
        )

    def sort_key(self) -> tuple:
        return (
            self.tournament_id,
            self.week or "",
            self.match_id if self.match_id is not None else -1,
            self.round_id or "",
            self.team_pair,
        )


@dataclass(frozen=True)
class MatchRecord:
    key: MatchKey
    rounds: tuple[MappedRound, ...] = ()


@dataclass(frozen=True)
class MatchOutcome:
    """Match-level result from the point of view of one team."""

    key: MatchKey
    team_id: int
    opponent_id: int
    tickets_for: int
    tickets_against: int
    rounds: int
    outcome: Outcome

    @property
    def ticket_differential(self) -> int:
        return self.tickets_for - self.tickets_against


@dataclass
class TeamWeekStatistics:
    """Per-team accumulator for one (tournament, week) scope."""

    tournament_id: int
    team_id: int
    week: Optional[str] = None
    rounds_won: int = 0
    rounds_tied: int = 0
    rounds_lost: int = 0
    tickets_for: int = 0
    tickets_against: int = 0
    matches_played: int = 0
    victories: int = 0
    ties: int = 0
    losses: int = 0
    points: int = 0

    @property
    def ticket_differential(self) -> int:
        return self.tickets_for - self.tickets_against

    @property
    def rounds_played(self) -> int:
        return self.rounds_won + self.rounds_tied + self.rounds_lost

    def record_round(
        self, outcome: Outcome, tickets_for: int, tickets_against: int
    ) -> None:
        if outcome is Outcome.WIN:
            self.rounds_won += 1
        elif outcome is Outcome.TIE:
            self.rounds_tied += 1
        else:
            self.rounds_lost += 1
        self.tickets_for += tickets_for
        self.tickets_against += tickets_against

    def record_match(self, outcome: Outcome) -> None:
        self.matches_played += 1
        if outcome is Outcome.WIN:
            self.victories += 1
        elif outcome is Outcome.TIE:
            self.ties += 1
        else:
            self.losses += 1

    def to_dict(self) -> dict:
        data = asdict(self)
        data["ticket_differential"] = self.ticket_differential
        return data


@dataclass(frozen=True)
class TeamRanking:
    """A persisted standings row for one team in one scope."""

    tournament_id: int
    team_id: int
    week: Optional[str]
    rank: int
    points: int
    rounds_won: int
    rounds_tied: int
    rounds_lost: int
    tickets_for: int
    tickets_against: int
    ticket_differential: int
    matches_played: int
    victories: int
    ties: int
    losses: int
    updated_at: datetime

    @classmethod
    def from_statistics(
        cls, stats: TeamWeekStatistics, rank: int, updated_at: datetime
    ) -> TeamRanking:
        return cls(
            tournament_id=stats.tournament_id,
            team_id=stats.team_id,
            week=stats.week,
            rank=rank,
            points=stats.points,
            rounds_won=stats.rounds_won,
            rounds_tied=stats.rounds_tied,
            rounds_lost=stats.rounds_lost,
            tickets_for=stats.tickets_for,
            tickets_against=stats.tickets_against,
            ticket_differential=stats.ticket_differential,
            matches_played=stats.matches_played,
            victories=stats.victories,
            ties=stats.ties,
            losses=stats.losses,
            updated_at=updated_at,
        )

    def to_dict(self) -> dict:
        return asdict(self)

    def without_timestamp(self) -> dict:
        data = asdict(self)
        data.pop("updated_at")
        return data


RANKING_COLUMNS = [f.name for f in fields(TeamRanking)]

RANKING_SCHEMA = {
    name: pl.Int64
    for name in RANKING_COLUMNS
    if name not in {"week", "updated_at"}
}
RANKING_SCHEMA["week"] = pl.Utf8
RANKING_SCHEMA["updated_at"] = pl.Datetime("us", "UTC")


def rankings_to_dataframe(rankings: Iterable[TeamRanking]) -> pl.DataFrame:
    """Render ranking rows as a Polars DataFrame ordered by rank."""
    rows = [ranking.to_dict() for ranking in rankings]
    if not rows:
        return pl.DataFrame(schema=RANKING_SCHEMA).select(RANKING_COLUMNS)
    return (
        pl.DataFrame(rows, schema_overrides={"week": pl.Utf8})
        .select(RANKING_COLUMNS)
        .sort("rank")
    )
