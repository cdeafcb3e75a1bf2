"""Team identity resolution from roster overlap."""

from standings.mapping.overlap import (
    OverlapCandidate,
    candidates_to_dataframe,
    match_roster_overlap,
    normalize_player_name,
)
from standings.mapping.resolver import MappingReport, TeamMappingResolver

__all__ = [
    "OverlapCandidate",
    "candidates_to_dataframe",
    "match_roster_overlap",
    "normalize_player_name",
    "MappingReport",
    "TeamMappingResolver",
]
