from __future__ import annotations

import os


def _default_schema() -> str:
    schema = (
        os.getenv("STANDINGS_DB_SCHEMA", "standings").strip() or "standings"
    )
    # Only plain identifiers are interpolated into DDL
    if not schema.replace("_", "").isalnum():
        return "standings"
    return schema


# Database schema holding the standings tables
SCHEMA: str = _default_schema()
