"""In-memory ledger of resources created during one deployment run."""

from __future__ import annotations

import logging
from typing import Optional

from ..models.resource_record import ResourceKind, ResourceRecord

logger = logging.getLogger(__name__)


class ResourceTracker:
    """Resource tracker.

    Keeps one append-only sequence of records per resource kind. Records are
    never deduplicated: a provisioner registers a resource only after it has
    a single confirmed create or reuse outcome.

    Not thread-safe. One tracker belongs to exactly one orchestrator run.
    """

    def __init__(self) -> None:
        self._records: dict[ResourceKind, list[ResourceRecord]] = {kind: [] for kind in ResourceKind}

    def register(self, kind: ResourceKind, identifier: str, reused: bool = False) -> ResourceRecord:
        """Append a record for a created (or adopted) resource.

        Args:
            kind: Resource kind
            identifier: Provider identifier
            reused: True if the resource already existed

        Returns:
            The new record
        """
        record = ResourceRecord(kind=kind, identifier=identifier, reused=reused)
        self._records[kind].append(record)
        logger.debug(f"Tracking {kind.value} {identifier}")
        return record

    def all(self, kind: ResourceKind) -> tuple[ResourceRecord, ...]:
        """Records of one kind, in registration order."""
        return tuple(self._records[kind])

    def identifiers(self, kind: ResourceKind) -> list[str]:
        return [record.identifier for record in self._records[kind]]

    def is_empty(self, kind: Optional[ResourceKind] = None) -> bool:
        """Check whether nothing (of one kind, or at all) is tracked."""
        if kind is not None:
            return not self._records[kind]
        return not any(self._records.values())

    def counts(self) -> dict[ResourceKind, int]:
        return {kind: len(records) for kind, records in self._records.items()}

    def snapshot(self) -> dict[ResourceKind, tuple[ResourceRecord, ...]]:
        """Immutable copy of every sequence, for results and reports."""
        return {kind: tuple(records) for kind, records in self._records.items()}

    def __len__(self) -> int:
        return sum(len(records) for records in self._records.values())
