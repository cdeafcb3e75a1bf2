"""Team standings calculation for one week or a whole tournament.

A calculation pass always starts from the full set of rounds in scope:
rounds are mapped to teams, folded into fresh per-team statistics, sorted
under the tie-break policy and written back to the ranking store, replacing
whatever rows the scope held before.
"""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Iterable, Optional, Sequence

import polars as pl

from standings.core import events
from standings.core.config import MappingConfig, RankingConfig
from standings.core.constants import (
    CTF_POINTS_PER_TIE,
    CTF_POINTS_PER_VICTORY,
    CUMULATIVE_LABEL,
)
from standings.core.errors import DataAccessError
from standings.core.events import DecisionEvent, LoggingEventSink
from standings.core.logging import get_logger, log_timing
from standings.core.protocols import DecisionEventSink, RankingStore, RoundSource
from standings.core.types import (
    CUMULATIVE,
    GameMode,
    MappedRound,
    MappingFailureReason,
    TeamRanking,
    TeamWeekStatistics,
    TournamentTeam,
)
from standings.mapping.resolver import MappingReport, TeamMappingResolver
from standings.ranking.aggregate import MatchAggregator

logger = get_logger(__name__)


def _label(week: Optional[str]) -> str:
    return week if week is not None else CUMULATIVE_LABEL


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class ScopeResult:
    """Result of calculating one (tournament, week) scope."""

    tournament_id: int
    week: Optional[str]
    game_mode: GameMode
    rankings: list[TeamRanking] = field(default_factory=list)
    mapping: MappingReport = field(default_factory=MappingReport)
    rows_written: int = 0
    cleared: bool = False

    @property
    def mapping_failure_counts(self) -> dict[MappingFailureReason, int]:
        return self.mapping.failure_counts()


@dataclass(frozen=True)
class WeekFailure:
    week: Optional[str]
    error: str


@dataclass
class RecalculationSummary:
    """Per-week results of a full tournament recalculation."""

    tournament_id: int
    results: list[ScopeResult] = field(default_factory=list)
    failures: list[WeekFailure] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None and not self.failures

    @property
    def total_rankings(self) -> int:
        return sum(result.rows_written for result in self.results)

    def to_dataframe(self) -> pl.DataFrame:
        """One row per scope with its status and mapping counts."""
        rows = [
            {
                "tournament_id": self.tournament_id,
                "week": result.week,
                "status": "cleared" if result.cleared else "replaced",
                "teams": len(result.rankings),
                "resolved_rounds": len(result.mapping.resolved),
                "failed_mappings": len(result.mapping.failures),
                "error": None,
            }
            for result in self.results
        ]
        rows.extend(
            {
                "tournament_id": self.tournament_id,
                "week": failure.week,
                "status": "failed",
                "teams": 0,
                "resolved_rounds": 0,
                "failed_mappings": 0,
                "error": failure.error,
            }
            for failure in self.failures
        )
        schema = {
            "tournament_id": pl.Int64,
            "week": pl.Utf8,
            "status": pl.Utf8,
            "teams": pl.Int64,
            "resolved_rounds": pl.Int64,
            "failed_mappings": pl.Int64,
            "error": pl.Utf8,
        }
        return pl.DataFrame(rows, schema=schema)


class TeamRankingCalculator:
    """Computes and persists team standings.

    Ranking order (all descending except the final tiebreak):
      - Conquest: points (= rounds won), rounds tied, rounds lost, ticket
        differential, then team id ascending.
      - CTF: points (3 per victory, 1 per tie), ticket differential, then
        team id ascending.

    The rounds-lost tier ranks more losses higher unless
    ``RankingConfig.fewer_losses_rank_higher`` is set.
    """

    def __init__(
        self,
        source: RoundSource,
        store: RankingStore,
        *,
        config: Optional[RankingConfig] = None,
        resolver: Optional[TeamMappingResolver] = None,
        mapping_config: Optional[MappingConfig] = None,
        sink: Optional[DecisionEventSink] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.source = source
        self.store = store
        self.config = config or RankingConfig()
        self.sink = sink or LoggingEventSink()
        self.resolver = resolver or TeamMappingResolver(mapping_config, self.sink)
        self.aggregator = MatchAggregator()
        self.clock = clock or _utcnow

    # ------------------------------------------------------------------
    # Pure computation
    # ------------------------------------------------------------------

    def compute_statistics(
        self,
        tournament_id: int,
        week: Optional[str],
        teams: Iterable[TournamentTeam],
        mapped_rounds: Iterable[MappedRound],
        game_mode: GameMode = GameMode.CONQUEST,
    ) -> list[TeamWeekStatistics]:
        """Fold mapped rounds into one statistics record per team.

        Every registered team is present, with zero statistics when it has
        no rounds in scope.
        """
        mapped_rounds = list(mapped_rounds)
        stats: dict[int, TeamWeekStatistics] = {
            team.team_id: TeamWeekStatistics(tournament_id, team.team_id, week)
            for team in teams
            if team.tournament_id == tournament_id
        }

        def _stats_for(team_id: int) -> TeamWeekStatistics:
            if team_id not in stats:
                stats[team_id] = TeamWeekStatistics(tournament_id, team_id, week)
            return stats[team_id]

        for mapped in mapped_rounds:
            for team_id in mapped.team_ids:
                _stats_for(team_id).record_round(
                    mapped.outcome_for(team_id),
                    mapped.tickets_for(team_id),
                    mapped.tickets_against(team_id),
                )

        for outcome in self.aggregator.aggregate(mapped_rounds):
            _stats_for(outcome.team_id).record_match(outcome.outcome)

        for team_stats in stats.values():
            if game_mode is GameMode.CTF:
                team_stats.points = (
                    team_stats.victories * CTF_POINTS_PER_VICTORY
                    + team_stats.ties * CTF_POINTS_PER_TIE
                )
            else:
                team_stats.points = team_stats.rounds_won
            self.sink.emit(
                DecisionEvent(
                    kind=events.TEAM_STATISTICS,
                    tournament_id=tournament_id,
                    week=week,
                    team_id=team_stats.team_id,
                    data={
                        "points": team_stats.points,
                        "rounds": (
                            f"{team_stats.rounds_won}-{team_stats.rounds_tied}"
                            f"-{team_stats.rounds_lost}"
                        ),
                        "matches": (
                            f"{team_stats.victories}-{team_stats.ties}"
                            f"-{team_stats.losses}"
                        ),
                        "tickets": (
                            f"{team_stats.tickets_for}-{team_stats.tickets_against}"
                        ),
                        "ticket_differential": team_stats.ticket_differential,
                    },
                )
            )

        return sorted(stats.values(), key=lambda s: s.team_id)

    def sort_columns(self, game_mode: GameMode) -> tuple[list[str], list[bool]]:
        """Sort columns and directions for the given game mode."""
        if game_mode is GameMode.CTF:
            return (
                ["points", "ticket_differential", "team_id"],
                [True, True, False],
            )
        return (
            ["points", "rounds_tied", "rounds_lost", "ticket_differential", "team_id"],
            [True, True, not self.config.fewer_losses_rank_higher, True, False],
        )

    def rank_statistics(
        self,
        stats: Sequence[TeamWeekStatistics],
        game_mode: GameMode = GameMode.CONQUEST,
        updated_at: Optional[datetime] = None,
    ) -> list[TeamRanking]:
        """Assign ranks 1..N under the tie-break policy."""
        if not stats:
            return []
        updated_at = updated_at or self.clock()

        frame = pl.DataFrame(
            {
                "team_id": [s.team_id for s in stats],
                "points": [s.points for s in stats],
                "rounds_tied": [s.rounds_tied for s in stats],
                "rounds_lost": [s.rounds_lost for s in stats],
                "ticket_differential": [s.ticket_differential for s in stats],
            }
        )
        by, descending = self.sort_columns(game_mode)
        ordered = frame.sort(by, descending=descending).with_row_index(
            "rank", offset=1
        )
        ranks = dict(
            zip(ordered["team_id"].to_list(), ordered["rank"].to_list())
        )

        by_team = {s.team_id: s for s in stats}
        rankings = [
            TeamRanking.from_statistics(by_team[team_id], int(rank), updated_at)
            for team_id, rank in sorted(ranks.items(), key=lambda item: item[1])
        ]
        for ranking in rankings:
            self.sink.emit(
                DecisionEvent(
                    kind=events.RANK_ASSIGNED,
                    tournament_id=ranking.tournament_id,
                    week=ranking.week,
                    team_id=ranking.team_id,
                    data={
                        "rank": ranking.rank,
                        "points": ranking.points,
                        "ticket_differential": ranking.ticket_differential,
                    },
                )
            )
        return rankings

    # ------------------------------------------------------------------
    # Scoped passes (read, compute, replace)
    # ------------------------------------------------------------------

    def calculate_for_week(
        self, tournament_id: int, week: Optional[str] = CUMULATIVE
    ) -> ScopeResult:
        """Recalculate and persist standings for one scope.

        When no round in scope resolves to two teams, the scope's stored
        rows are deleted instead.

        Raises:
            DataAccessError: If the source or store fails. No rows are
                written for the scope in that case.
        """
        operation = (
            f"ranking calculation for tournament {tournament_id} week {_label(week)}"
        )
        with log_timing(logger, operation):
            snapshot = self.source.load_scope(tournament_id, week)
            game_mode = self.config.game_mode or snapshot.game_mode
            rounds = [
                record
                for record in snapshot.rounds
                if record.tournament_id == tournament_id
                and (week is None or record.week == week)
            ]
            report = self.resolver.resolve_all(
                rounds, snapshot.teams, snapshot.overrides
            )
            logger.info(
                "Rounds mapped | TournamentId=%s Week=%s Rounds=%d Resolved=%d Failed=%d FailureReasons=%s",
                tournament_id,
                _label(week),
                len(rounds),
                len(report.resolved),
                len(report.failures),
                {reason.value: count for reason, count in report.failure_counts().items()},
            )

            result = ScopeResult(
                tournament_id=tournament_id,
                week=week,
                game_mode=game_mode,
                mapping=report,
            )

            if not report.resolved:
                removed = self.store.delete_rankings(tournament_id, week)
                result.cleared = True
                self.sink.emit(
                    DecisionEvent(
                        kind=events.SCOPE_CLEARED,
                        tournament_id=tournament_id,
                        week=week,
                        data={"removed": removed},
                    )
                )
                return result

            stats = self.compute_statistics(
                tournament_id, week, snapshot.teams, report.resolved, game_mode
            )
            result.rankings = self.rank_statistics(stats, game_mode)
            result.rows_written = self.store.replace_rankings(
                tournament_id, week, result.rankings
            )
            self.sink.emit(
                DecisionEvent(
                    kind=events.SCOPE_REPLACED,
                    tournament_id=tournament_id,
                    week=week,
                    data={
                        "rows": result.rows_written,
                        "game_mode": game_mode.value,
                    },
                )
            )
            return result

    def plan_weeks(self, tournament_id: int) -> list[Optional[str]]:
        """Ordered task list: every labelled week, then the cumulative scope.

        Weeks with rounds come first in source order. Weeks that only still
        have stored standings follow, so their stale rows get cleared.
        """
        weeks: list[Optional[str]] = []
        for week in self.source.load_weeks(tournament_id):
            if week is not None and week not in weeks:
                weeks.append(week)
        for week in sorted(self.store.ranked_weeks(tournament_id)):
            if week is not None and week not in weeks:
                weeks.append(week)
        weeks.append(CUMULATIVE)
        return weeks

    def recalculate_all(self, tournament_id: int) -> RecalculationSummary:
        """Recalculate every week of a tournament, then the cumulative scope.

        Weeks run one after another. A data-access failure in one week is
        recorded and the remaining weeks still run; weeks already written
        are left as they are.

        Raises:
            DataAccessError: If the week list itself cannot be read.
        """
        summary = RecalculationSummary(tournament_id=tournament_id)
        with log_timing(logger, f"full ranking recalculation for tournament {tournament_id}"):
            plan = self.plan_weeks(tournament_id)
            logger.info(
                "Weeks planned for recalculation | TournamentId=%s Weeks=%s",
                tournament_id,
                [_label(week) for week in plan],
            )
            for week in plan:
                try:
                    summary.results.append(
                        self.calculate_for_week(tournament_id, week)
                    )
                except DataAccessError as exc:
                    logger.error(
                        "Error recalculating rankings for week | TournamentId=%s Week=%s Error=%s",
                        tournament_id,
                        _label(week),
                        exc,
                    )
                    summary.failures.append(WeekFailure(week=week, error=str(exc)))
            logger.info(
                "Full ranking recalculation finished | TournamentId=%s TotalRankingsUpdated=%d FailedWeeks=%d",
                tournament_id,
                summary.total_rankings,
                len(summary.failures),
            )
        return summary

    def recalculate_tournaments(
        self,
        tournament_ids: Iterable[int],
        max_workers: Optional[int] = None,
    ) -> dict[int, RecalculationSummary]:
        """Run :meth:`recalculate_all` for several tournaments in parallel.

        Each tournament is an independent set of scopes, so tournaments run
        concurrently while the weeks inside each stay sequential.
        """
        unique_ids = list(dict.fromkeys(tournament_ids))
        workers = max(1, min(max_workers or self.config.max_workers, len(unique_ids) or 1))
        summaries: dict[int, RecalculationSummary] = {}
        with ThreadPoolExecutor(max_workers=workers) as executor:
            futures = {
                executor.submit(self.recalculate_all, tournament_id): tournament_id
                for tournament_id in unique_ids
            }
            for future in as_completed(futures):
                tournament_id = futures[future]
                try:
                    summaries[tournament_id] = future.result()
                except DataAccessError as exc:
                    logger.error(
                        "Full ranking recalculation FAILED | TournamentId=%s Error=%s",
                        tournament_id,
                        exc,
                    )
                    summaries[tournament_id] = RecalculationSummary(
                        tournament_id=tournament_id, error=str(exc)
                    )
        return {tournament_id: summaries[tournament_id] for tournament_id in unique_ids}
