"""Resolve which registered teams played the two slots of a round."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from typing import Iterable, Mapping, Optional, Sequence

from standings.core import events
from standings.core.config import MappingConfig
from standings.core.constants import MIN_VIABLE_TEAMS, OVERRIDE_CONFIDENCE
from standings.core.errors import MappingOverrideError
from standings.core.events import DecisionEvent, LoggingEventSink
from standings.core.logging import get_logger
from standings.core.protocols import DecisionEventSink
from standings.core.types import (
    MappedRound,
    MappingFailureReason,
    RoundRecord,
    RoundSlot,
    SlotAssignment,
    TeamMapping,
    TournamentTeam,
)
from standings.mapping.overlap import OverlapCandidate, match_roster_overlap

logger = get_logger(__name__)


@dataclass
class MappingReport:
    """Outcome of mapping a batch of rounds."""

    resolved: list[MappedRound] = field(default_factory=list)
    failures: list[TeamMapping] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.resolved) + len(self.failures)

    def failure_counts(self) -> dict[MappingFailureReason, int]:
        return dict(Counter(failure.reason for failure in self.failures))


class TeamMappingResolver:
    """Maps registered tournament teams onto round slots by roster overlap.

    A round resolves when two distinct viable teams claim the two slots.
    Anything else is reported as a failed mapping with a reason; failures
    never raise.

    Examples:
        >>> resolver = TeamMappingResolver()
        >>> mapping = resolver.resolve(round_record, teams)
        >>> mapping.is_resolved, mapping.team_for(RoundSlot.TEAM1)
    """

    def __init__(
        self,
        config: Optional[MappingConfig] = None,
        sink: Optional[DecisionEventSink] = None,
    ) -> None:
        self.config = config or MappingConfig()
        self.sink = sink or LoggingEventSink()

    def resolve(
        self, round_record: RoundRecord, teams: Iterable[TournamentTeam]
    ) -> TeamMapping:
        """Infer the team mapping of one round from roster overlap."""
        eligible = [
            team for team in teams if team.tournament_id == round_record.tournament_id
        ]
        candidates = match_roster_overlap(
            round_record.team1_players,
            round_record.team2_players,
            eligible,
            case_sensitive=self.config.case_sensitive_names,
        )
        for candidate in candidates:
            self._emit_candidate(round_record, candidate)

        viable = [
            candidate
            for candidate in candidates
            if candidate.total_matches > 0
            and not candidate.is_ambiguous
            and candidate.confidence >= self.config.min_confidence
        ]

        if len(viable) < MIN_VIABLE_TEAMS:
            if not candidates:
                detail = "No tournament teams matched players in round"
            elif len(candidates) == 1:
                detail = (
                    "Only one tournament team matched players - "
                    "need at least two teams"
                )
            else:
                detail = (
                    f"Only {len(viable)} of {len(candidates)} matched teams "
                    "prefer a single slot - need at least two teams"
                )
            return self._failed(
                round_record,
                MappingFailureReason.INSUFFICIENT_MATCHES,
                detail,
                viable_count=len(viable),
                candidate_count=len(candidates),
            )

        best1 = _best_for_slot(viable, RoundSlot.TEAM1)
        best2 = _best_for_slot(
            viable,
            RoundSlot.TEAM2,
            exclude=best1.team_id if best1 is not None else None,
        )

        if best1 is None or best2 is None or best1.team_id == best2.team_id:
            empty = [
                str(int(slot))
                for slot, best in ((RoundSlot.TEAM1, best1), (RoundSlot.TEAM2, best2))
                if best is None
            ]
            detail = (
                f"No viable tournament team prefers slot {', '.join(empty)}"
                if empty
                else "Same tournament team is best for both slots"
            )
            return self._failed(
                round_record,
                MappingFailureReason.AMBIGUOUS_OR_CONFLICTING_ASSIGNMENT,
                detail,
                viable_count=len(viable),
                candidate_count=len(candidates),
            )

        mapping = TeamMapping.resolved(
            round_record.round_id,
            SlotAssignment(best1.team_id, RoundSlot.TEAM1, best1.confidence),
            SlotAssignment(best2.team_id, RoundSlot.TEAM2, best2.confidence),
        )
        self.sink.emit(
            DecisionEvent(
                kind=events.MAPPING_RESOLVED,
                tournament_id=round_record.tournament_id,
                week=round_record.week,
                round_id=round_record.round_id,
                data={
                    "team1_id": best1.team_id,
                    "team1_confidence": round(best1.confidence, 4),
                    "team2_id": best2.team_id,
                    "team2_confidence": round(best2.confidence, 4),
                    "viable_count": len(viable),
                },
            )
        )
        return mapping

    def apply_override(
        self,
        round_record: RoundRecord,
        team1_id: int,
        team2_id: int,
        teams: Iterable[TournamentTeam],
    ) -> TeamMapping:
        """Build a mapping from a manual team assignment.

        Raises:
            MappingOverrideError: If the teams are equal or not registered
                in the round's tournament.
        """
        if team1_id == team2_id:
            raise MappingOverrideError(
                f"Round {round_record.round_id}: both slots assigned to team {team1_id}"
            )
        registered = {
            team.team_id
            for team in teams
            if team.tournament_id == round_record.tournament_id
        }
        missing = [tid for tid in (team1_id, team2_id) if tid not in registered]
        if missing:
            raise MappingOverrideError(
                f"Round {round_record.round_id}: teams {missing} are not registered "
                f"in tournament {round_record.tournament_id}"
            )

        mapping = TeamMapping.resolved(
            round_record.round_id,
            SlotAssignment(team1_id, RoundSlot.TEAM1, OVERRIDE_CONFIDENCE),
            SlotAssignment(team2_id, RoundSlot.TEAM2, OVERRIDE_CONFIDENCE),
            overridden=True,
        )
        self.sink.emit(
            DecisionEvent(
                kind=events.MAPPING_OVERRIDDEN,
                tournament_id=round_record.tournament_id,
                week=round_record.week,
                round_id=round_record.round_id,
                data={"team1_id": team1_id, "team2_id": team2_id},
            )
        )
        return mapping

    def resolve_all(
        self,
        rounds: Iterable[RoundRecord],
        teams: Sequence[TournamentTeam],
        overrides: Optional[Mapping[str, tuple[int, int]]] = None,
    ) -> MappingReport:
        """Map every round; manual overrides take precedence over inference.

        An override that no longer names two registered teams is ignored
        with a warning and the round is inferred from rosters instead.
        """
        overrides = overrides or {}
        teams = tuple(teams)
        report = MappingReport()
        for round_record in rounds:
            mapping = None
            override = overrides.get(round_record.round_id)
            if override is not None:
                try:
                    mapping = self.apply_override(round_record, *override, teams)
                except MappingOverrideError as exc:
                    logger.warning(
                        "Ignoring stale mapping override | RoundId=%s Reason=%s",
                        round_record.round_id,
                        exc,
                    )
            if mapping is None:
                mapping = self.resolve(round_record, teams)

            if mapping.is_resolved:
                report.resolved.append(MappedRound(round_record, mapping))
            else:
                report.failures.append(mapping)
        return report

    def _failed(
        self,
        round_record: RoundRecord,
        reason: MappingFailureReason,
        detail: str,
        **data,
    ) -> TeamMapping:
        self.sink.emit(
            DecisionEvent(
                kind=events.MAPPING_FAILED,
                tournament_id=round_record.tournament_id,
                week=round_record.week,
                round_id=round_record.round_id,
                data={"reason": reason.value, "detail": detail, **data},
            )
        )
        return TeamMapping.failed(round_record.round_id, reason, detail)

    def _emit_candidate(
        self, round_record: RoundRecord, candidate: OverlapCandidate
    ) -> None:
        slot = candidate.preferred_slot
        self.sink.emit(
            DecisionEvent(
                kind=events.CANDIDATE_EVALUATED,
                tournament_id=round_record.tournament_id,
                week=round_record.week,
                round_id=round_record.round_id,
                team_id=candidate.team_id,
                data={
                    "matches1": candidate.matches1,
                    "matches2": candidate.matches2,
                    "preferred_slot": int(slot) if slot is not None else None,
                    "confidence": round(candidate.confidence, 4),
                    "ambiguous": candidate.is_ambiguous,
                },
            )
        )


def _best_for_slot(
    viable: Sequence[OverlapCandidate],
    slot: RoundSlot,
    exclude: Optional[int] = None,
) -> Optional[OverlapCandidate]:
    # viable is already ordered best-first
    for candidate in viable:
        if candidate.preferred_slot is slot and candidate.team_id != exclude:
            return candidate
    return None
