"""Customer record: the storefront's profile for an authenticated user.

Authentication lives elsewhere; the only link is ``auth_user_id``, the
principal identifier the auth provider hands to the app.
"""

from datetime import UTC, datetime
from typing import ClassVar

from pydantic import Field

from shared.store.repository import Record


class Customer(Record):
    table_name: ClassVar[str] = "customers"

    auth_user_id: str = Field(min_length=1)
    name: str | None = None
    email: str | None = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
