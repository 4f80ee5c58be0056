"""Position storage adapter for ordered groups.

Translates ordering operations into SQL against a table whose rows carry a
group key and an integer position. The store enforces nothing beyond what the
schema does (``UNIQUE(group, position)``); membership and contiguity rules
belong to ``OrderedCollectionManager``.

Writes are two-phase: the whole group is first shifted above its current
maximum, then final positions are assigned, so the unique constraint never
sees a transient duplicate mid-renumber.
"""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Iterable, Iterator, Optional, Sequence, Tuple

from sqlalchemy import text as sql_text
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import DBAPIError, IntegrityError

from kanban_service.logic.errors import Conflict, InvariantViolation, Timeout

logger = logging.getLogger(__name__)

# PostgreSQL SQLSTATEs surfaced as transient contention
_PG_LOCK_NOT_AVAILABLE = "55P03"
_PG_QUERY_CANCELED = "57014"
_PG_SERIALIZATION_FAILURE = "40001"
_PG_DEADLOCK_DETECTED = "40P01"


@dataclass(frozen=True)
class GroupTable:
    """Describes where a family of ordered records lives."""

    table: str
    group_column: str
    parent_table: str
    id_column: str = "id"
    position_column: str = "position"
    parent_id_column: str = "id"


TASKS_BY_COLUMN = GroupTable(table="kanban_tasks", group_column="column_id", parent_table="kanban_columns")
COLUMNS_BY_PROJECT = GroupTable(table="kanban_columns", group_column="project_id", parent_table="projects")


@dataclass
class _LockEntry:
    lock: threading.Lock = field(default_factory=threading.Lock)
    users: int = 0


class _GroupLocks:
    """Process-local mutexes keyed by (table, group key).

    Entries are reference counted and dropped once no caller holds or waits
    on them, so the registry does not grow with the number of groups seen.
    """

    def __init__(self) -> None:
        self._mutex = threading.Lock()
        self._locks: dict[tuple[str, str], _LockEntry] = {}

    def _checkout(self, key: tuple[str, str]) -> threading.Lock:
        with self._mutex:
            entry = self._locks.setdefault(key, _LockEntry())
            entry.users += 1
            return entry.lock

    def _checkin(self, key: tuple[str, str]) -> None:
        with self._mutex:
            entry = self._locks.get(key)
            if entry is None:
                return
            entry.users -= 1
            if entry.users <= 0:
                del self._locks[key]

    @contextmanager
    def hold(self, keys: Sequence[tuple[str, str]], timeout_s: float) -> Iterator[None]:
        # Sorted acquisition keeps two multi-group callers from deadlocking
        ordered = sorted(set(keys))
        acquired: list[tuple[tuple[str, str], threading.Lock]] = []
        try:
            for key in ordered:
                lock = self._checkout(key)
                if not lock.acquire(timeout=timeout_s):
                    self._checkin(key)
                    raise Timeout(
                        f"timed out waiting for group {key[1]!r}",
                        table=key[0],
                        group=key[1],
                    )
                acquired.append((key, lock))
            yield
        finally:
            for key, lock in reversed(acquired):
                lock.release()
                self._checkin(key)


_GROUP_LOCKS = _GroupLocks()


def _pgcode(exc: DBAPIError) -> Optional[str]:
    return getattr(getattr(exc, "orig", None), "pgcode", None)


class PositionStore:
    """SQL-backed store of (id, group, position) rows for one ``GroupTable``."""

    def __init__(
        self,
        engine: Engine,
        table: GroupTable,
        lock_timeout_ms: int = 5000,
    ) -> None:
        self.engine = engine
        self.table = table
        self.lock_timeout_ms = int(lock_timeout_ms)

    # ------------------------------------------------------------------
    # Transactions and locking
    # ------------------------------------------------------------------
    @contextmanager
    def hold_groups(self, parent_keys: Iterable[str]) -> Iterator[None]:
        """Hold the process-local locks of the given groups, without a transaction.

        Lets a caller that mutates another table (a column delete cascading to
        its tasks) exclude every operation on these groups meanwhile.
        """
        keys = [(self.table.table, str(k)) for k in parent_keys]
        with _GROUP_LOCKS.hold(keys, self.lock_timeout_ms / 1000.0):
            yield

    @contextmanager
    def locked(self, parent_keys: Iterable[str]) -> Iterator[Connection]:
        """Open one transaction holding exclusive access to the given groups.

        Commits on normal exit and rolls back on any exception. Driver errors
        are translated into ``Timeout``, ``Conflict`` or ``InvariantViolation``.
        """
        keys = [(self.table.table, str(k)) for k in parent_keys]
        with self.hold_groups(k for _, k in keys):
            try:
                with self.engine.begin() as conn:
                    self._lock_parent_rows(conn, [k for _, k in keys])
                    yield conn
            except IntegrityError as exc:
                logger.error(
                    "position_invariant_violation table=%s groups=%s",
                    self.table.table,
                    [k for _, k in keys],
                    exc_info=True,
                )
                raise InvariantViolation(
                    "storage rejected position write",
                    table=self.table.table,
                ) from exc
            except DBAPIError as exc:
                translated = self._translate(exc, [k for _, k in keys])
                if translated is None:
                    raise
                raise translated from exc

    def _lock_parent_rows(self, conn: Connection, parent_keys: Sequence[str]) -> None:
        if conn.dialect.name != "postgresql":
            return
        conn.execute(sql_text(f"SET LOCAL lock_timeout = {self.lock_timeout_ms}"))
        t = self.table
        for key in sorted(set(parent_keys)):
            conn.execute(
                sql_text(
                    f"SELECT 1 FROM {t.parent_table} WHERE {t.parent_id_column} = :pid FOR UPDATE"
                ),
                {"pid": key},
            )

    def _translate(self, exc: DBAPIError, groups: Sequence[str]):
        code = _pgcode(exc)
        if code in (_PG_LOCK_NOT_AVAILABLE, _PG_QUERY_CANCELED):
            logger.warning("position_lock_timeout table=%s groups=%s", self.table.table, list(groups))
            return Timeout("timed out waiting for group lock", table=self.table.table)
        if code in (_PG_SERIALIZATION_FAILURE, _PG_DEADLOCK_DETECTED):
            logger.warning("position_write_conflict table=%s groups=%s code=%s", self.table.table, list(groups), code)
            return Conflict("concurrent update on group; retry", table=self.table.table)
        if "database is locked" in str(getattr(exc, "orig", exc)).lower():
            logger.warning("position_lock_timeout table=%s groups=%s", self.table.table, list(groups))
            return Timeout("timed out waiting for database lock", table=self.table.table)
        return None

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------
    def parent_exists(self, conn: Connection, parent_key: str) -> bool:
        t = self.table
        row = conn.execute(
            sql_text(f"SELECT 1 FROM {t.parent_table} WHERE {t.parent_id_column} = :pid LIMIT 1"),
            {"pid": parent_key},
        ).fetchone()
        return row is not None

    def group_of(self, conn: Connection, record_id: str) -> Optional[str]:
        t = self.table
        row = conn.execute(
            sql_text(f"SELECT {t.group_column} FROM {t.table} WHERE {t.id_column} = :rid"),
            {"rid": record_id},
        ).fetchone()
        return str(row[0]) if row is not None else None

    def read_group(self, conn: Connection, parent_key: str) -> list[Tuple[str, int]]:
        t = self.table
        rows = conn.execute(
            sql_text(
                f"SELECT {t.id_column}, {t.position_column} FROM {t.table} "
                f"WHERE {t.group_column} = :pid "
                f"ORDER BY {t.position_column} ASC, {t.id_column} ASC"
            ),
            {"pid": parent_key},
        ).fetchall()
        return [(str(r[0]), int(r[1])) for r in rows]

    # ------------------------------------------------------------------
    # Writes (caller owns the transaction)
    # ------------------------------------------------------------------
    def write_positions(
        self,
        conn: Connection,
        parent_key: str,
        pairs: Sequence[Tuple[str, int]],
    ) -> None:
        """Assign the given positions to members of ``parent_key``.

        Every id must currently belong to ``parent_key``; a row that does not
        match aborts the transaction with ``InvariantViolation``.
        """
        t = self.table
        row = conn.execute(
            sql_text(
                f"SELECT COALESCE(MAX({t.position_column}), -1), COUNT(*) FROM {t.table} "
                f"WHERE {t.group_column} = :pid"
            ),
            {"pid": parent_key},
        ).fetchone()
        current_max = int(row[0]) if row and row[0] is not None else -1
        count = int(row[1]) if row and row[1] is not None else 0
        shift = max(current_max + 1, count, len(pairs), 1)

        # Phase 1: move the group clear of every final value
        conn.execute(
            sql_text(
                f"UPDATE {t.table} SET {t.position_column} = {t.position_column} + :shift "
                f"WHERE {t.group_column} = :pid"
            ),
            {"shift": shift, "pid": parent_key},
        )
        # Phase 2: final positions
        for record_id, position in pairs:
            result = conn.execute(
                sql_text(
                    f"UPDATE {t.table} SET {t.position_column} = :pos "
                    f"WHERE {t.id_column} = :rid AND {t.group_column} = :pid"
                ),
                {"pos": int(position), "rid": record_id, "pid": parent_key},
            )
            if result.rowcount != 1:
                logger.error(
                    "position_write_missing_row table=%s group=%s id=%s",
                    t.table,
                    parent_key,
                    record_id,
                )
                raise InvariantViolation(
                    f"record {record_id!r} is not a member of group {parent_key!r}",
                    table=t.table,
                )

    def set_group(self, conn: Connection, record_id: str, parent_key: str, position: int) -> None:
        t = self.table
        conn.execute(
            sql_text(
                f"UPDATE {t.table} SET {t.group_column} = :pid, {t.position_column} = :pos "
                f"WHERE {t.id_column} = :rid"
            ),
            {"pid": parent_key, "pos": int(position), "rid": record_id},
        )

    def delete_row(self, conn: Connection, record_id: str) -> None:
        t = self.table
        conn.execute(
            sql_text(f"DELETE FROM {t.table} WHERE {t.id_column} = :rid"),
            {"rid": record_id},
        )


__all__ = [
    "GroupTable",
    "PositionStore",
    "TASKS_BY_COLUMN",
    "COLUMNS_BY_PROJECT",
]
