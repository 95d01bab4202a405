"""Flattening of classification-node trees into iteration records."""

from __future__ import annotations

import datetime as dt
import logging
from dataclasses import dataclass, field
from typing import Any

from hawki.integrations.azure_devops.payloads import ClassificationNodePayload

logger = logging.getLogger(__name__)

PATH_SEPARATOR = "\\"


@dataclass
class FlatIteration:
    identifier: str | None
    name: str | None
    path: str
    node_id: int | None
    project_id: str | None
    url: str | None = None
    start_date: dt.date | None = None
    end_date: dt.date | None = None
    time_frame: str | None = None
    attributes: dict[str, Any] = field(default_factory=dict)

    def missing_fields(self) -> list[str]:
        required = {
            "identifier": self.identifier,
            "name": self.name,
            "node_id": self.node_id,
            "project_id": self.project_id,
        }
        return [name for name, value in required.items() if value in (None, "")]


def _join(prefix: str, name: str | None) -> str:
    if not name:
        return prefix
    return f"{prefix}{PATH_SEPARATOR}{name}" if prefix else name


def _as_date(value: dt.datetime | None) -> dt.date | None:
    return value.date() if value is not None else None


def flatten_iteration_tree(
    root: ClassificationNodePayload,
    *,
    project_id: str | None,
    prefix: str = "",
) -> list[FlatIteration]:
    """Pre-order walk producing one record per node, path = ancestor names joined by backslash.

    A node that has neither identifier nor name emits nothing, but its
    children are still visited under the current prefix.
    """
    records: list[FlatIteration] = []
    path = _join(prefix, root.name)

    if root.identifier or root.name:
        dates = root.dates
        records.append(
            FlatIteration(
                identifier=root.identifier,
                name=root.name,
                path=path,
                node_id=root.id,
                project_id=project_id,
                url=root.url,
                start_date=_as_date(dates.start_date),
                end_date=_as_date(dates.finish_date),
                time_frame=dates.time_frame,
                attributes=dict(root.attributes or {}),
            )
        )
    else:
        logger.debug("Skipping classification node without identifier or name under %r", prefix)

    for child in root.children:
        records.extend(flatten_iteration_tree(child, project_id=project_id, prefix=path))
    return records


def partition_valid(records: list[FlatIteration]) -> tuple[list[FlatIteration], list[FlatIteration]]:
    valid: list[FlatIteration] = []
    rejected: list[FlatIteration] = []
    for record in records:
        missing = record.missing_fields()
        if missing:
            logger.warning("Iteration %s missing required fields: %s", record.identifier or record.path, ", ".join(missing))
            rejected.append(record)
        else:
            valid.append(record)
    return valid, rejected
