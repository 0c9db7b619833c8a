"""Store port: abstract interface to the remote record store.

The storefront keeps its data in a hosted relational store that offers
per-table CRUD and nothing more: no cross-table transactions, single-row
write atomicity only. Domain code programs against this port; adapters are
chosen by whoever constructs the orchestrator.

Rows travel as plain dicts keyed by column name. Every row has an ``id``.
"""

from abc import ABC, abstractmethod
from typing import Any


class StoreError(Exception):
    """Generic transport or storage failure."""

    def __init__(self, message: str, table: str | None = None):
        super().__init__(message)
        self.table = table


class RecordNotFound(StoreError):
    def __init__(self, table: str, record_id: str):
        super().__init__(f"No record {record_id!r} in {table}", table=table)
        self.record_id = record_id


class StoreTimeout(StoreError):
    """A store call did not finish within its time budget."""


class Table(ABC):
    """CRUD access to one table."""

    name: str

    @abstractmethod
    async def get(self, record_id: str) -> dict[str, Any]:
        """Return the row with ``record_id`` or raise ``RecordNotFound``."""
        ...

    @abstractmethod
    async def get_many(
        self,
        filters: dict[str, Any] | None = None,
        order_by: str | list[str] | None = None,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[dict[str, Any]]:
        """Return rows whose columns equal every value in ``filters``.

        ``order_by`` takes column names; a leading ``-`` sorts descending.
        """
        ...

    @abstractmethod
    async def create(self, record: dict[str, Any]) -> dict[str, Any]:
        """Insert ``record`` and return the stored representation."""
        ...

    @abstractmethod
    async def update(self, record_id: str, fields: dict[str, Any]) -> dict[str, Any]:
        """Set ``fields`` on one row and return the stored representation."""
        ...

    @abstractmethod
    async def count(self, filters: dict[str, Any] | None = None) -> int:
        ...


class Store(ABC):
    """A set of tables."""

    @abstractmethod
    def table(self, name: str) -> Table:
        ...
