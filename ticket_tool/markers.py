"""Stores for the "marked invoiced" group ids.

A group id is marked when its invoice has been issued. Local and shared
stores can both exist; membership in either one counts.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Iterable, Sequence

from ticket_tool.models import InvoiceGroup
from ticket_tool.ports import MarkerStore

logger = logging.getLogger(__name__)


class MemoryMarkerStore:
    def __init__(self, group_ids: Iterable[str] = ()):
        self._ids = set(group_ids)

    def is_marked(self, group_id: str) -> bool:
        return group_id in self._ids

    def mark(self, group_id: str) -> None:
        self._ids.add(group_id)

    def unmark(self, group_id: str) -> None:
        self._ids.discard(group_id)

    @property
    def group_ids(self) -> frozenset[str]:
        return frozenset(self._ids)


class JsonFileMarkerStore:
    """Marker set persisted as a JSON array; last writer wins."""

    def __init__(self, path: str | Path):
        self.path = Path(path)

    def _load(self) -> set[str]:
        if not self.path.exists():
            return set()
        try:
            data = json.loads(self.path.read_text(encoding='utf-8'))
        except json.JSONDecodeError:
            logger.warning("Ignoring unreadable marker file %s", self.path)
            return set()
        return {str(v) for v in data} if isinstance(data, list) else set()

    def _save(self, ids: set[str]) -> None:
        self.path.write_text(json.dumps(sorted(ids), indent=2), encoding='utf-8')

    def is_marked(self, group_id: str) -> bool:
        return group_id in self._load()

    def mark(self, group_id: str) -> None:
        ids = self._load()
        ids.add(group_id)
        self._save(ids)

    def unmark(self, group_id: str) -> None:
        ids = self._load()
        ids.discard(group_id)
        self._save(ids)


class UnionMarkerStore:
    """Marked if any store says so; writes go to every store."""

    def __init__(self, stores: Sequence[MarkerStore]):
        self.stores = list(stores)

    def is_marked(self, group_id: str) -> bool:
        return any(store.is_marked(group_id) for store in self.stores)

    def mark(self, group_id: str) -> None:
        for store in self.stores:
            store.mark(group_id)

    def unmark(self, group_id: str) -> None:
        for store in self.stores:
            store.unmark(group_id)


def split_by_marker(
    groups: Sequence[InvoiceGroup],
    store: MarkerStore,
) -> tuple[list[InvoiceGroup], list[InvoiceGroup]]:
    """(pending, invoiced) in the original group order."""
    pending: list[InvoiceGroup] = []
    invoiced: list[InvoiceGroup] = []
    for group in groups:
        (invoiced if store.is_marked(group.group_id) else pending).append(group)
    return pending, invoiced
