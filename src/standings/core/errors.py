"""Exception types raised by the standings engine.

Mapping failures are not exceptions: they are returned as ``TeamMapping``
values with a failure reason. Only malformed input and data-access problems
are raised.
"""

from __future__ import annotations


class StandingsError(Exception):
    """Base class for all errors raised by the standings package."""


class InvalidRoundError(StandingsError, ValueError):
    """A round record violates a structural invariant."""


class MappingOverrideError(StandingsError, ValueError):
    """A manual team mapping names teams that cannot be assigned."""


class DataAccessError(StandingsError):
    """The round source or ranking store failed.

    Fatal for the scope being calculated. The original exception is kept as
    ``__cause__``.
    """

    def __init__(
        self,
        message: str,
        *,
        tournament_id: int | None = None,
        week: str | None = None,
    ) -> None:
        super().__init__(message)
        self.tournament_id = tournament_id
        self.week = week
