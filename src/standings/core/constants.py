"""
Default parameters for team mapping and standings calculation.

Centralizes the scoring constants and defaults shared by the mapping
resolver, the ranking calculator and the CLI.
"""

# =============================================================================
# Scope labels
# =============================================================================

# Label used in logs and events for the all-weeks scope (stored as NULL)
CUMULATIVE_LABEL = "cumulative"

# =============================================================================
# Team Mapping
# =============================================================================

# A mapping needs two distinguishable teams
MIN_VIABLE_TEAMS: int = 2

# Confidence floor for viable candidates (0.0 = any unambiguous candidate)
DEFAULT_MIN_CONFIDENCE: float = 0.0

# Confidence reported for manually overridden mappings
OVERRIDE_CONFIDENCE: float = 1.0

# =============================================================================
# Scoring
# =============================================================================

# CTF match points
CTF_POINTS_PER_VICTORY: int = 3
CTF_POINTS_PER_TIE: int = 1

# =============================================================================
# Execution
# =============================================================================

# Worker threads when recalculating several tournaments at once
DEFAULT_MAX_WORKERS: int = 4
