"""In-memory store adapter: deterministic store for development and testing.

Behaves like the hosted store (per-row atomic writes, no transactions) and can
be told to fail or stall specific operations, so partial-failure paths can be
exercised without a network.
"""

import asyncio
import copy
from dataclasses import dataclass, field
from typing import Any
from uuid import uuid4

import structlog

from shared.store.port import RecordNotFound, Store, StoreError, Table

logger = structlog.get_logger(__name__)

WRITE_OPERATIONS = ("create", "update")


@dataclass
class Fault:
    """A configured failure or delay for matching store calls."""

    table: str
    operation: str
    record_id: str | None = None
    when: dict[str, Any] | None = None
    times: int | None = None
    error: str = "Store unavailable"
    latency: float | None = None

    def matches(self, table: str, operation: str, record_id: str | None, record: dict | None) -> bool:
        if self.table not in (table, "*") or self.operation not in (operation, "*"):
            return False
        if self.record_id is not None and self.record_id != record_id:
            return False
        if self.when is not None:
            if record is None:
                return False
            return all(record.get(k) == v for k, v in self.when.items())
        return True


@dataclass(frozen=True)
class WriteEntry:
    table: str
    operation: str
    record_id: str


@dataclass
class _State:
    tables: dict[str, dict[str, dict]] = field(default_factory=dict)
    faults: list[Fault] = field(default_factory=list)
    journal: list[WriteEntry] = field(default_factory=list)


def _sort_key(column: str):
    def key(row):
        value = row.get(column)
        return (value is None, value)

    return key


class InMemoryTable(Table):
    def __init__(self, name: str, state: _State):
        self.name = name
        self._state = state

    @property
    def _rows(self) -> dict[str, dict]:
        return self._state.tables.setdefault(self.name, {})

    async def _check_faults(self, operation: str, record_id: str | None = None, record: dict | None = None):
        for fault in list(self._state.faults):
            if not fault.matches(self.name, operation, record_id, record):
                continue
            if fault.times is not None:
                fault.times -= 1
                if fault.times <= 0:
                    self._state.faults.remove(fault)
            if fault.latency is not None:
                await asyncio.sleep(fault.latency)
                continue
            raise StoreError(f"{fault.error} ({self.name}.{operation})", table=self.name)

    async def get(self, record_id: str) -> dict[str, Any]:
        await self._check_faults("get", record_id=record_id)
        row = self._rows.get(str(record_id))
        if row is None:
            raise RecordNotFound(self.name, record_id)
        return copy.deepcopy(row)

    async def get_many(self, filters=None, order_by=None, limit=None, offset=0) -> list[dict[str, Any]]:
        await self._check_faults("get_many", record=filters)
        rows = [r for r in self._rows.values() if all(r.get(k) == v for k, v in (filters or {}).items())]

        columns = [order_by] if isinstance(order_by, str) else list(order_by or [])
        # Stable sorts applied from the least significant column
        for column in reversed(columns):
            descending = column.startswith("-")
            rows.sort(key=_sort_key(column.lstrip("-")), reverse=descending)

        rows = rows[offset:]
        if limit is not None:
            rows = rows[:limit]
        return [copy.deepcopy(r) for r in rows]

    async def create(self, record: dict[str, Any]) -> dict[str, Any]:
        await self._check_faults("create", record_id=record.get("id"), record=record)
        row = copy.deepcopy(record)
        row["id"] = str(row.get("id") or uuid4())
        if row["id"] in self._rows:
            raise StoreError(f"Duplicate key {row['id']!r} in {self.name}", table=self.name)
        self._rows[row["id"]] = row
        self._state.journal.append(WriteEntry(self.name, "create", row["id"]))
        return copy.deepcopy(row)

    async def update(self, record_id: str, fields: dict[str, Any]) -> dict[str, Any]:
        await self._check_faults("update", record_id=record_id, record=fields)
        row = self._rows.get(str(record_id))
        if row is None:
            raise RecordNotFound(self.name, record_id)
        row.update(copy.deepcopy({k: v for k, v in fields.items() if k != "id"}))
        self._state.journal.append(WriteEntry(self.name, "update", str(record_id)))
        return copy.deepcopy(row)

    async def count(self, filters=None) -> int:
        await self._check_faults("count", record=filters)
        return sum(1 for r in self._rows.values() if all(r.get(k) == v for k, v in (filters or {}).items()))


class InMemoryStore(Store):
    """Dict-backed store. Not shared between instances."""

    def __init__(self):
        self._state = _State()

    def table(self, name: str) -> InMemoryTable:
        return InMemoryTable(name, self._state)

    # -------------------------------------------------------------------
    # Test and development helpers
    # -------------------------------------------------------------------
    def seed(self, table: str, rows: list[dict[str, Any]]) -> None:
        """Insert rows directly, bypassing faults and the write journal."""
        target = self._state.tables.setdefault(table, {})
        for row in rows:
            stored = copy.deepcopy(row)
            stored["id"] = str(stored.get("id") or uuid4())
            target[stored["id"]] = stored

    def rows(self, table: str) -> list[dict[str, Any]]:
        return [copy.deepcopy(r) for r in self._state.tables.get(table, {}).values()]

    @property
    def journal(self) -> list[WriteEntry]:
        return list(self._state.journal)

    def writes(self, table: str | None = None) -> list[WriteEntry]:
        return [w for w in self._state.journal if table is None or w.table == table]

    def fail(
        self,
        table: str,
        operation: str = "*",
        *,
        record_id: str | None = None,
        when: dict[str, Any] | None = None,
        times: int | None = None,
        error: str = "Store unavailable",
    ) -> Fault:
        """Make matching calls raise ``StoreError``."""
        fault = Fault(table, operation, record_id=record_id, when=when, times=times, error=error)
        self._state.faults.append(fault)
        return fault

    def stall(self, table: str, operation: str, seconds: float, *, record_id: str | None = None) -> Fault:
        """Delay matching calls by ``seconds`` before they run."""
        fault = Fault(table, operation, record_id=record_id, latency=seconds)
        self._state.faults.append(fault)
        return fault

    def reset_faults(self) -> None:
        self._state.faults.clear()
        logger.debug("Store faults cleared")
