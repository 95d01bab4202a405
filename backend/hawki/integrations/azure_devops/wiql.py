"""WIQL query construction for work-item id selection."""

from __future__ import annotations

import datetime as dt
from typing import Iterable, Sequence


def escape_wiql_literal(value: str) -> str:
    """Double single quotes so the value can sit inside a '...' WIQL literal."""
    return (value or "").replace("'", "''")


def _quoted(value: str) -> str:
    return f"'{escape_wiql_literal(value)}'"


def active_iteration_paths(iteration_paths: Iterable[str | None], team_iteration_paths: Iterable[str | None]) -> list[str]:
    seen: set[str] = set()
    for path in [*iteration_paths, *team_iteration_paths]:
        value = (path or "").strip()
        if value:
            seen.add(value)
    return sorted(seen)


def build_work_item_query(
    project_name: str,
    *,
    iteration_paths: Sequence[str] | None = None,
    changed_since: dt.datetime | dt.date | None = None,
) -> str:
    parts = [
        "SELECT [System.Id]",
        "FROM WorkItems",
        f"WHERE [System.TeamProject] = {_quoted(project_name)}",
    ]
    if iteration_paths:
        joined = ", ".join(_quoted(path) for path in iteration_paths)
        parts.append(f"AND [System.IterationPath] IN ({joined})")
    if changed_since is not None:
        # WIQL rejects time components unless timePrecision is enabled.
        parts.append(f"AND [System.ChangedDate] >= '{changed_since.strftime('%Y-%m-%d')}'")
    parts.append("ORDER BY [System.Id]")
    return "\n".join(parts)


def chunk_ids(ids: Sequence[int], size: int) -> list[list[int]]:
    if size < 1:
        raise ValueError("chunk size must be positive")
    values = list(ids)
    return [values[start : start + size] for start in range(0, len(values), size)]
