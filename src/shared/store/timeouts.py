"""Time-bounded store wrapper.

Wraps any ``Store`` so every call carries a deadline. An expired call raises
``StoreTimeout``, which callers handle like any other ``StoreError``.
"""

import asyncio

from shared.store.port import Store, StoreTimeout, Table


class TimeoutTable(Table):
    def __init__(self, inner: Table, timeout: float):
        self._inner = inner
        self._timeout = timeout
        self.name = inner.name

    async def _bounded(self, operation: str, awaitable):
        try:
            async with asyncio.timeout(self._timeout):
                return await awaitable
        except TimeoutError as exc:
            raise StoreTimeout(
                f"{self.name}.{operation} timed out after {self._timeout}s",
                table=self.name,
            ) from exc

    async def get(self, record_id):
        return await self._bounded("get", self._inner.get(record_id))

    async def get_many(self, filters=None, order_by=None, limit=None, offset=0):
        return await self._bounded("get_many", self._inner.get_many(filters, order_by, limit, offset))

    async def create(self, record):
        return await self._bounded("create", self._inner.create(record))

    async def update(self, record_id, fields):
        return await self._bounded("update", self._inner.update(record_id, fields))

    async def count(self, filters=None):
        return await self._bounded("count", self._inner.count(filters))


class TimeoutStore(Store):
    def __init__(self, inner: Store, timeout: float):
        self._inner = inner
        self.timeout = timeout

    def table(self, name: str) -> TimeoutTable:
        return TimeoutTable(self._inner.table(name), self.timeout)
