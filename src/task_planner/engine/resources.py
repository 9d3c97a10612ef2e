"""Resource ledger: which task currently holds each resource.

The ledger is bookkeeping only. The engine consults it when deciding
readiness but never takes a lock on a task's behalf; callers record and
release holders explicitly through the manager.
"""

from __future__ import annotations

from typing import Iterator, Optional


class ResourceLedger:
    def __init__(self) -> None:
        self._holders: dict[str, str] = {}

    def __contains__(self, resource: object) -> bool:
        return resource in self._holders

    def __len__(self) -> int:
        return len(self._holders)

    def acquire(self, resource: str, task_id: str) -> Optional[str]:
        """Record ``task_id`` as holder; returns the previous holder, if any."""
        previous = self._holders.get(resource)
        self._holders[resource] = task_id
        return previous

    def release(self, resource: str, task_id: Optional[str] = None) -> bool:
        """Drop the holder of ``resource``.

        With ``task_id`` set, the resource is released only if that task
        holds it. Returns True when a holder was removed.
        """
        holder = self._holders.get(resource)
        if holder is None:
            return False
        if task_id is not None and holder != task_id:
            return False
        del self._holders[resource]
        return True

    def holder(self, resource: str) -> Optional[str]:
        return self._holders.get(resource)

    def is_free_for(self, resource: str, task_id: str) -> bool:
        holder = self._holders.get(resource)
        return holder is None or holder == task_id

    def held_by(self, task_id: str) -> list[str]:
        return [res for res, holder in self._holders.items() if holder == task_id]

    def items(self) -> Iterator[tuple[str, str]]:
        return iter(list(self._holders.items()))
