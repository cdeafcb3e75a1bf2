"""Configuration dataclasses for team mapping and standings calculation."""

from __future__ import annotations

import os
from dataclasses import dataclass, field, fields
from typing import Any, Mapping, Optional

from standings.core.constants import DEFAULT_MAX_WORKERS, DEFAULT_MIN_CONFIDENCE
from standings.core.types import GameMode


@dataclass
class MappingConfig:
    """Configuration for roster-overlap team mapping."""

    # Compare player names exactly instead of ignoring case
    case_sensitive_names: bool = False

    # Viable candidates must reach this confidence
    min_confidence: float = DEFAULT_MIN_CONFIDENCE

    def __post_init__(self) -> None:
        if not 0.0 <= self.min_confidence <= 1.0:
            raise ValueError(
                f"min_confidence must be within [0, 1], got {self.min_confidence}"
            )


@dataclass
class RankingConfig:
    """Configuration for standings calculation."""

    # Forces a game mode instead of the tournament's stored one
    game_mode: Optional[GameMode] = None

    # Tier 3 direction among teams tied on points and rounds tied.
    # False keeps the documented order (more rounds lost ranks higher).
    fewer_losses_rank_higher: bool = False

    # Parallelism across tournaments; weeks are always sequential
    max_workers: int = DEFAULT_MAX_WORKERS

    def __post_init__(self) -> None:
        if self.game_mode is not None:
            self.game_mode = GameMode.parse(self.game_mode)
        if self.max_workers < 1:
            raise ValueError(f"max_workers must be >= 1, got {self.max_workers}")


@dataclass
class EngineConfig:
    """Full engine configuration."""

    mapping: MappingConfig = field(default_factory=MappingConfig)
    ranking: RankingConfig = field(default_factory=RankingConfig)

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> EngineConfig:
        """Build a config from a nested mapping (e.g. parsed YAML).

        Unknown keys are rejected so typos surface early.
        """
        data = dict(data or {})
        unknown = set(data) - {"mapping", "ranking"}
        if unknown:
            raise ValueError(f"Unknown config sections: {sorted(unknown)}")
        return cls(
            mapping=_build(MappingConfig, data.get("mapping")),
            ranking=_build(RankingConfig, data.get("ranking")),
        )

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> EngineConfig:
        """Build a config from ``STANDINGS_*`` environment variables.

        Recognized variables:
          - STANDINGS_CASE_SENSITIVE_NAMES
          - STANDINGS_MIN_CONFIDENCE
          - STANDINGS_GAME_MODE
          - STANDINGS_FEWER_LOSSES_RANK_HIGHER
          - STANDINGS_MAX_WORKERS
        """
        env = os.environ if environ is None else environ
        mapping: dict[str, Any] = {}
        ranking: dict[str, Any] = {}
        if env.get("STANDINGS_CASE_SENSITIVE_NAMES"):
            mapping["case_sensitive_names"] = _truthy(
                env["STANDINGS_CASE_SENSITIVE_NAMES"]
            )
        if env.get("STANDINGS_MIN_CONFIDENCE"):
            mapping["min_confidence"] = float(env["STANDINGS_MIN_CONFIDENCE"])
        if env.get("STANDINGS_GAME_MODE"):
            ranking["game_mode"] = env["STANDINGS_GAME_MODE"]
        if env.get("STANDINGS_FEWER_LOSSES_RANK_HIGHER"):
            ranking["fewer_losses_rank_higher"] = _truthy(
                env["STANDINGS_FEWER_LOSSES_RANK_HIGHER"]
            )
        if env.get("STANDINGS_MAX_WORKERS"):
            ranking["max_workers"] = int(env["STANDINGS_MAX_WORKERS"])
        return cls.from_dict({"mapping": mapping, "ranking": ranking})


def _truthy(value: str) -> bool:
    return str(value).strip().lower() in {"1", "true", "yes", "on"}


def _build(config_cls, values: Optional[Mapping[str, Any]]):
    values = dict(values or {})
    known = {f.name for f in fields(config_cls)}
    unknown = set(values) - known
    if unknown:
        raise ValueError(
            f"Unknown {config_cls.__name__} options: {sorted(unknown)}"
        )
    return config_cls(**values)
