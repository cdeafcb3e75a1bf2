"""Structured decision events emitted by the mapping and ranking components.

The engine only produces events; where they end up is decided by the sink
passed in by the caller. The default sink writes them to the
``standings.events`` logger.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Optional

from standings.core.constants import CUMULATIVE_LABEL
from standings.core.logging import get_logger

# Event kinds
CANDIDATE_EVALUATED = "candidate_evaluated"
MAPPING_RESOLVED = "mapping_resolved"
MAPPING_FAILED = "mapping_failed"
MAPPING_OVERRIDDEN = "mapping_overridden"
TEAM_STATISTICS = "team_statistics"
RANK_ASSIGNED = "rank_assigned"
SCOPE_REPLACED = "scope_replaced"
SCOPE_CLEARED = "scope_cleared"

_WARNING_KINDS = {MAPPING_FAILED}
_DEBUG_KINDS = {CANDIDATE_EVALUATED, TEAM_STATISTICS}


@dataclass(frozen=True)
class DecisionEvent:
    kind: str
    tournament_id: Optional[int] = None
    week: Optional[str] = None
    round_id: Optional[str] = None
    team_id: Optional[int] = None
    data: dict[str, Any] = field(default_factory=dict)

    def as_fields(self) -> dict[str, Any]:
        """Flatten identifiers and payload into one ordered mapping."""
        fields: dict[str, Any] = {}
        if self.tournament_id is not None:
            fields["tournament_id"] = self.tournament_id
        if self.tournament_id is not None or self.week is not None:
            fields["week"] = self.week if self.week is not None else CUMULATIVE_LABEL
        if self.round_id is not None:
            fields["round_id"] = self.round_id
        if self.team_id is not None:
            fields["team_id"] = self.team_id
        fields.update(self.data)
        return fields


class LoggingEventSink:
    """Writes events as ``kind | key=value ...`` log lines."""

    def __init__(self, logger: Optional[logging.Logger] = None) -> None:
        self.logger = logger or get_logger("events")

    def emit(self, event: DecisionEvent) -> None:
        if event.kind in _WARNING_KINDS:
            level = logging.WARNING
        elif event.kind in _DEBUG_KINDS:
            level = logging.DEBUG
        else:
            level = logging.INFO
        if not self.logger.isEnabledFor(level):
            return
        rendered = " ".join(
            f"{key}={value}" for key, value in event.as_fields().items()
        )
        self.logger.log(level, "%s | %s", event.kind, rendered)


class RecordingEventSink:
    """Keeps every emitted event in memory."""

    def __init__(self) -> None:
        self.events: list[DecisionEvent] = []
        self._lock = threading.Lock()

    def emit(self, event: DecisionEvent) -> None:
        with self._lock:
            self.events.append(event)

    def of_kind(self, kind: str) -> list[DecisionEvent]:
        return [event for event in self.events if event.kind == kind]


class NullEventSink:
    def emit(self, event: DecisionEvent) -> None:
        return None
