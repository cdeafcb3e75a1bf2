"""
Recalculate team standings for one or more tournaments from the database.

By default every week of each tournament is recalculated, followed by the
cumulative standings. Use ``--week`` to refresh a single week or
``--cumulative`` for the cumulative standings only.

Usage examples:
  python -m standings.cli.recalculate --tournament-id 12
  python -m standings.cli.recalculate --tournament-id 12 --week 3
  python -m standings.cli.recalculate --tournament-id 12 --tournament-id 13 --workers 2
"""

from __future__ import annotations

import argparse
import os
from pathlib import Path
from typing import Any, Optional

import polars as pl
import yaml

from standings import __version__
from standings.core.config import EngineConfig
from standings.core.errors import DataAccessError
from standings.core.logging import get_logger, setup_logging
from standings.core.sentry import init_sentry
from standings.core.types import CUMULATIVE
from standings.ranking.calculator import (
    RecalculationSummary,
    ScopeResult,
    TeamRankingCalculator,
)
from standings.sql import SqlRankingStore, SqlRoundSource
from standings.sql import create_all as standings_create_all
from standings.sql import create_engine as standings_create_engine

log = get_logger("standings.cli.recalculate")


def load_config(path: Optional[str]) -> EngineConfig:
    """Build the engine config from YAML, or from env when no file is given.

    The YAML file holds ``mapping`` and ``ranking`` sections mirroring the
    config dataclasses.
    """
    if not path:
        return EngineConfig.from_env()
    cfg_path = Path(path)
    with cfg_path.open("r", encoding="utf-8") as f:
        data: Any = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Invalid config format at {cfg_path}")
    return EngineConfig.from_dict(data)


def _single_scope_summary(
    calculator: TeamRankingCalculator, tournament_id: int, week: Optional[str]
) -> RecalculationSummary:
    summary = RecalculationSummary(tournament_id=tournament_id)
    try:
        result: ScopeResult = calculator.calculate_for_week(tournament_id, week)
    except DataAccessError as exc:
        log.error(
            "Ranking calculation failed | TournamentId=%s Week=%s Error=%s",
            tournament_id,
            week,
            exc,
        )
        summary.error = str(exc)
        return summary
    summary.results.append(result)
    return summary


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Resolve round team mappings and recalculate tournament standings"
    )
    parser.add_argument(
        "--tournament-id",
        dest="tournament_ids",
        type=int,
        action="append",
        required=True,
        help="Tournament to recalculate (repeatable)",
    )
    scope = parser.add_mutually_exclusive_group()
    scope.add_argument(
        "--week",
        type=str,
        default=None,
        help="Recalculate only this week label",
    )
    scope.add_argument(
        "--cumulative",
        action="store_true",
        help="Recalculate only the cumulative standings",
    )
    scope.add_argument(
        "--all-weeks",
        action="store_true",
        help="Recalculate every week and then the cumulative standings (default)",
    )
    parser.add_argument(
        "--db-url",
        type=str,
        default=None,
        help="SQLAlchemy URL (defaults to STANDINGS_DATABASE_URL / DATABASE_URL)",
    )
    parser.add_argument(
        "--config",
        type=str,
        default=os.getenv("STANDINGS_CONFIG_PATH"),
        help="Path to YAML config with mapping/ranking sections",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default=os.getenv("STANDINGS_LOG_LEVEL", "INFO"),
    )
    parser.add_argument(
        "--log-format",
        type=str,
        choices=["simple", "detailed", "json"],
        default=os.getenv("STANDINGS_LOG_FORMAT", "detailed"),
    )
    parser.add_argument(
        "--workers",
        type=int,
        default=None,
        help="Tournaments processed in parallel (overrides config max_workers)",
    )
    parser.add_argument(
        "--create-tables",
        action="store_true",
        help="Create the standings schema and tables before running",
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)

    setup_logging(level=args.log_level, format_style=args.log_format)
    init_sentry(
        context="standings_recalculate",
        release=__version__,
        tags={"tournament_ids": ",".join(map(str, args.tournament_ids))},
    )

    config = load_config(args.config)
    engine = standings_create_engine(args.db_url)
    if args.create_tables:
        standings_create_all(engine)

    calculator = TeamRankingCalculator(
        SqlRoundSource(engine),
        SqlRankingStore(engine),
        config=config.ranking,
        mapping_config=config.mapping,
    )

    tournament_ids = list(dict.fromkeys(args.tournament_ids))
    if args.week is not None or args.cumulative:
        week = CUMULATIVE if args.cumulative else args.week
        summaries = {
            tournament_id: _single_scope_summary(calculator, tournament_id, week)
            for tournament_id in tournament_ids
        }
    else:
        summaries = calculator.recalculate_tournaments(
            tournament_ids, max_workers=args.workers
        )

    frames = [summary.to_dataframe() for summary in summaries.values()]
    report = pl.concat(frames) if frames else pl.DataFrame()
    with pl.Config(tbl_rows=-1, tbl_cols=-1):
        print(report)

    failed = [tid for tid, summary in summaries.items() if not summary.ok]
    if failed:
        log.error("Recalculation finished with failures for tournaments %s", failed)
        return 1
    log.info(
        "Recalculation complete for %d tournament(s); %d ranking rows written",
        len(summaries),
        sum(summary.total_rankings for summary in summaries.values()),
    )
    return 0


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
