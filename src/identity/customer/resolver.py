"""Customer resolver: maps an authenticated principal to its customer record."""

import structlog

from identity.customer.customer import Customer
from shared.errors import CustomerNotFound
from shared.store.port import Store, StoreError
from shared.store.repository import repository_for

logger = structlog.get_logger(__name__)


class CustomerResolver:
    def __init__(self, store: Store):
        self.customers = repository_for(store, Customer)

    async def resolve(self, principal: str | None) -> Customer:
        """Return the customer owning ``principal`` or raise ``CustomerNotFound``."""
        if not principal:
            raise CustomerNotFound(principal, "no principal supplied")

        try:
            customer = await self.customers.first(auth_user_id=principal)
        except StoreError as exc:
            logger.error("Customer lookup failed", principal=principal, error=str(exc))
            raise CustomerNotFound(principal, str(exc)) from exc

        if customer is None:
            raise CustomerNotFound(principal)
        return customer
