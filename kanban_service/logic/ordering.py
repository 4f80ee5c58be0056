"""Ordered collection manager (Kanban task and column ordering).

The manager is the single authority for ``position`` and group membership of
ordered records. After every committed operation the members of a group hold
positions ``0..n-1`` exactly once; readers never observe a partial renumber
because each operation runs as one transaction under the group lock.

Positions are 0-based.
"""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass
from typing import Callable, Optional, Sequence

from sqlalchemy.engine import Connection

from kanban_service.logic.access_guard import AccessGuard
from kanban_service.logic.errors import Conflict, InvalidOrderSet, NotFound, PermissionDenied
from kanban_service.logic.position_store import PositionStore


@dataclass(frozen=True)
class Placement:
    record_id: str
    parent_key: str
    position: int


def clamp_index(index: Optional[int], size: int) -> int:
    """Clamp an insertion index into ``[0, size]``; None means append."""
    if index is None:
        return size
    return max(0, min(int(index), size))


def _pairs(ids: Sequence[str]) -> list[tuple[str, int]]:
    return [(rid, idx) for idx, rid in enumerate(ids)]


def _contiguous(rows: Sequence[tuple[str, int]]) -> bool:
    return [pos for _, pos in rows] == list(range(len(rows)))


class OrderedCollectionManager:
    def __init__(
        self,
        store: PositionStore,
        guard: AccessGuard,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.store = store
        self.guard = guard
        self.log = logger or logging.getLogger(__name__)

    # ------------------------------------------------------------------
    # Preconditions
    # ------------------------------------------------------------------
    def _require_parent(self, conn: Connection, parent_key: str) -> None:
        if not self.store.parent_exists(conn, parent_key):
            raise NotFound(f"group {parent_key!r} not found", group=parent_key)

    def authorize(self, actor: Optional[str], *parent_keys: str) -> None:
        for key in dict.fromkeys(parent_keys):
            if not self.guard.can_mutate(actor, key):
                self.log.warning("ordering.denied actor=%s group=%s", actor, key)
                raise PermissionDenied(
                    f"actor {actor!r} may not modify group {key!r}",
                    actor=actor,
                    group=key,
                )

    def _locate(self, record_id: str) -> str:
        with self.store.engine.connect() as conn:
            parent_key = self.store.group_of(conn, record_id)
        if parent_key is None:
            raise NotFound(f"record {record_id!r} not found", record_id=record_id)
        return parent_key

    def _check_parent(self, parent_key: str) -> None:
        with self.store.engine.connect() as conn:
            self._require_parent(conn, parent_key)

    @staticmethod
    def _validate_order(parent_key: str, current: Sequence[str], ordered_ids: Sequence[str]) -> None:
        counts = Counter(ordered_ids)
        duplicates = [rid for rid, n in counts.items() if n > 1]
        current_set = set(current)
        missing = [rid for rid in current if rid not in counts]
        foreign = [rid for rid in counts if rid not in current_set]
        if duplicates or missing or foreign:
            raise InvalidOrderSet(
                f"order for group {parent_key!r} does not match its current members",
                missing=missing,
                foreign=foreign,
                duplicates=duplicates,
                group=parent_key,
            )

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------
    def read_group(self, parent_key: str) -> list[str]:
        """Return the member ids of ``parent_key`` in display order."""
        with self.store.engine.connect() as conn:
            return [rid for rid, _ in self.store.read_group(conn, parent_key)]

    def reorder(self, parent_key: str, ordered_ids: Sequence[str], actor: Optional[str]) -> None:
        """Replace the whole order of ``parent_key`` with ``ordered_ids``.

        ``ordered_ids`` must list every current member exactly once and
        nothing else; membership is checked under the group lock, so a caller
        holding a stale snapshot gets ``InvalidOrderSet`` and should refetch.
        An empty list is only accepted for an empty group.
        """
        ordered_ids = [str(rid) for rid in ordered_ids]
        self._check_parent(parent_key)
        self.authorize(actor, parent_key)

        with self.store.locked([parent_key]) as conn:
            self._require_parent(conn, parent_key)
            rows = self.store.read_group(conn, parent_key)
            before = [rid for rid, _ in rows]
            self._validate_order(parent_key, before, ordered_ids)
            if before == ordered_ids and _contiguous(rows):
                self.log.info("ordering.reorder.noop group=%s size=%s", parent_key, len(before))
                return
            self.store.write_positions(conn, parent_key, _pairs(ordered_ids))

        self.log.info(
            "ordering.reorder group=%s actor=%s before=%s after=%s",
            parent_key,
            actor,
            before,
            ordered_ids,
        )

    def move(
        self,
        record_id: str,
        target_parent_key: str,
        target_index: Optional[int],
        actor: Optional[str],
        on_move: Optional[Callable[[Connection, str], None]] = None,
    ) -> Placement:
        """Relocate one record to ``target_index`` of ``target_parent_key``.

        The index refers to the target group's membership after the record has
        left its old place and is clamped into range. The source group is
        compacted in the same transaction. ``on_move(conn, record_id)`` runs
        last in that transaction, so edits riding along with the move commit
        or roll back together with it.
        """
        source_key = self._locate(record_id)
        self._check_parent(target_parent_key)
        self.authorize(actor, source_key, target_parent_key)

        with self.store.locked([source_key, target_parent_key]) as conn:
            current_source = self.store.group_of(conn, record_id)
            if current_source is None:
                raise NotFound(f"record {record_id!r} not found", record_id=record_id)
            if current_source != source_key:
                # Moved elsewhere after we looked it up; that group is not locked
                raise Conflict(
                    f"record {record_id!r} changed group concurrently; retry",
                    record_id=record_id,
                )
            self._require_parent(conn, target_parent_key)

            source_rows = self.store.read_group(conn, source_key)
            source_ids = [rid for rid, _ in source_rows]
            remaining = [rid for rid in source_ids if rid != record_id]

            if source_key == target_parent_key:
                index = clamp_index(target_index, len(remaining))
                final = list(remaining)
                final.insert(index, record_id)
                if final != source_ids or not _contiguous(source_rows):
                    self.store.write_positions(conn, source_key, _pairs(final))
                target_ids = final
            else:
                target_rows = self.store.read_group(conn, target_parent_key)
                target_before = [rid for rid, _ in target_rows]
                index = clamp_index(target_index, len(target_before))
                self.store.write_positions(conn, source_key, _pairs(remaining))
                # Park the record past the target's tail, then renumber the target
                parked = max((pos for _, pos in target_rows), default=-1) + 1
                self.store.set_group(conn, record_id, target_parent_key, parked)
                target_ids = list(target_before)
                target_ids.insert(index, record_id)
                self.store.write_positions(conn, target_parent_key, _pairs(target_ids))
            if on_move is not None:
                on_move(conn, record_id)

        self.log.info(
            "ordering.move id=%s actor=%s from=%s to=%s index=%s after=%s",
            record_id,
            actor,
            source_key,
            target_parent_key,
            index,
            target_ids,
        )
        return Placement(record_id=record_id, parent_key=target_parent_key, position=index)

    def insert(
        self,
        parent_key: str,
        create: Callable[[Connection, int], str],
        actor: Optional[str],
        index: Optional[int] = None,
    ) -> Placement:
        """Create a record through ``create`` and place it in ``parent_key``.

        ``create(conn, tail_position)`` must insert the row at the given tail
        position within the open transaction and return its id. The record is
        then moved to ``index`` (clamped; None appends).
        """
        self._check_parent(parent_key)
        self.authorize(actor, parent_key)

        with self.store.locked([parent_key]) as conn:
            self._require_parent(conn, parent_key)
            rows = self.store.read_group(conn, parent_key)
            existing = [rid for rid, _ in rows]
            if not _contiguous(rows):
                self.store.write_positions(conn, parent_key, _pairs(existing))
            record_id = str(create(conn, len(existing)))
            position = clamp_index(index, len(existing))
            if position != len(existing):
                final = list(existing)
                final.insert(position, record_id)
                self.store.write_positions(conn, parent_key, _pairs(final))

        self.log.info(
            "ordering.insert id=%s actor=%s group=%s position=%s",
            record_id,
            actor,
            parent_key,
            position,
        )
        return Placement(record_id=record_id, parent_key=parent_key, position=position)

    def remove(
        self,
        record_id: str,
        actor: Optional[str] = None,
        on_delete: Optional[Callable[[Connection, str], None]] = None,
    ) -> Placement:
        """Delete a record and compact the positions of its former group.

        ``on_delete(conn, record_id)`` runs inside the same transaction just
        before the row is deleted, for dependent cleanup. When ``actor`` is
        None the access check is skipped (internal cascades).
        Returns the placement the record held before deletion.
        """
        parent_key = self._locate(record_id)
        if actor is not None:
            self.authorize(actor, parent_key)

        with self.store.locked([parent_key]) as conn:
            current = self.store.group_of(conn, record_id)
            if current is None:
                raise NotFound(f"record {record_id!r} not found", record_id=record_id)
            if current != parent_key:
                raise Conflict(
                    f"record {record_id!r} changed group concurrently; retry",
                    record_id=record_id,
                )
            before = [rid for rid, _ in self.store.read_group(conn, parent_key)]
            former_position = before.index(record_id)
            if on_delete is not None:
                on_delete(conn, record_id)
            self.store.delete_row(conn, record_id)
            remaining = [rid for rid in before if rid != record_id]
            self.store.write_positions(conn, parent_key, _pairs(remaining))

        self.log.info(
            "ordering.remove id=%s actor=%s group=%s after=%s",
            record_id,
            actor,
            parent_key,
            remaining,
        )
        return Placement(record_id=record_id, parent_key=parent_key, position=former_position)


__all__ = ["OrderedCollectionManager", "Placement", "clamp_index"]
