"""Typed repositories over the store port.

A ``Record`` is a pydantic model bound to a table. ``repository_for`` gives
the domain code typed CRUD over the untyped rows the store returns.
"""

from enum import Enum
from typing import Any, ClassVar, Generic, TypeVar

from pydantic import BaseModel, ConfigDict

from shared.store.port import Store


class Record(BaseModel):
    """Base for every stored row."""

    table_name: ClassVar[str]

    model_config = ConfigDict(use_enum_values=True, validate_assignment=True)

    id: str | None = None


R = TypeVar("R", bound=Record)


def _column_value(value: Any) -> Any:
    return value.value if isinstance(value, Enum) else value


def _columns(values: dict[str, Any]) -> dict[str, Any]:
    return {k: _column_value(v) for k, v in values.items()}


class Repository(Generic[R]):
    def __init__(self, store: Store, model: type[R]):
        self.model = model
        self.table = store.table(model.table_name)

    async def get(self, record_id: str) -> R:
        return self.model.model_validate(await self.table.get(record_id))

    async def find(
        self,
        order_by: str | list[str] | None = None,
        limit: int | None = None,
        offset: int = 0,
        **filters: Any,
    ) -> list[R]:
        rows = await self.table.get_many(_columns(filters), order_by=order_by, limit=limit, offset=offset)
        return [self.model.model_validate(row) for row in rows]

    async def first(self, order_by: str | list[str] | None = None, **filters: Any) -> R | None:
        found = await self.find(order_by=order_by, limit=1, **filters)
        return found[0] if found else None

    async def add(self, record: R) -> R:
        row = record.model_dump(exclude={"id"} if record.id is None else set())
        return self.model.model_validate(await self.table.create(row))

    async def update(self, record_id: str, **fields: Any) -> R:
        return self.model.model_validate(await self.table.update(record_id, _columns(fields)))

    async def count(self, **filters: Any) -> int:
        return await self.table.count(_columns(filters))


def repository_for(store: Store, model: type[R]) -> Repository[R]:
    return Repository(store, model)
