"""Track which task produces and which tasks consume each data type.

When a task requires a tag that another task produces, the manager adds a
KNOWLEDGE edge from the consumer to the producer. KNOWLEDGE edges are
advisory and never gate readiness.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable, Optional

from loguru import logger


@dataclass
class KnowledgeEntry:
    producer: Optional[str] = None
    consumers: list[str] = field(default_factory=list)
    # Earlier producers replaced by a later one, oldest first
    overwritten: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class KnowledgeLink:
    consumer: str
    producer: str
    data_type: str


class KnowledgeTracker:
    def __init__(self) -> None:
        self._entries: dict[str, KnowledgeEntry] = {}

    def _entry(self, data_type: str) -> KnowledgeEntry:
        return self._entries.setdefault(data_type, KnowledgeEntry())

    def register(self, task_id: str, produces: Iterable[str], requires: Iterable[str]) -> list[KnowledgeLink]:
        """Record a task's tags and return the KNOWLEDGE links to synthesize.

        A second producer of the same tag replaces the first (last writer
        wins); the replacement is logged and kept for diagnostics.
        """
        for data_type in produces:
            entry = self._entry(data_type)
            if entry.producer and entry.producer != task_id:
                logger.warning(
                    "Knowledge producer for '{}' replaced: {} -> {}",
                    data_type,
                    entry.producer,
                    task_id,
                )
                entry.overwritten.append(entry.producer)
            entry.producer = task_id

        links: list[KnowledgeLink] = []
        for data_type in requires:
            entry = self._entry(data_type)
            if task_id not in entry.consumers:
                entry.consumers.append(task_id)
            if entry.producer and entry.producer != task_id:
                links.append(KnowledgeLink(consumer=task_id, producer=entry.producer, data_type=data_type))
        return links

    def producer_of(self, data_type: str) -> Optional[str]:
        entry = self._entries.get(data_type)
        return entry.producer if entry else None

    def consumers_of(self, data_type: str) -> list[str]:
        entry = self._entries.get(data_type)
        return list(entry.consumers) if entry else []

    def conflicting_producers(self) -> dict[str, list[str]]:
        """Tags that had more than one producer, mapped to all producers in order."""
        return {
            data_type: entry.overwritten + ([entry.producer] if entry.producer else [])
            for data_type, entry in self._entries.items()
            if entry.overwritten
        }

    def to_dict(self) -> dict[str, dict[str, Any]]:
        return {
            data_type: {"producer": entry.producer, "consumers": list(entry.consumers)}
            for data_type, entry in self._entries.items()
        }
