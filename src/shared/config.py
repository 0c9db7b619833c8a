"""Runtime settings for the fulfillment flow.

Values are read from ``STOREFRONT_*`` environment variables (or a ``.env``
file). Components take a ``FulfillmentSettings`` instance explicitly;
``get_settings()`` is only a convenience for hosts that want one shared copy.
"""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class FulfillmentSettings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="STOREFRONT_", env_file=".env", extra="ignore")

    environment: str = Field(default="development")
    log_level: str | None = Field(default=None)

    # Delayed transitions, in seconds
    shipment_delivery_delay: float = Field(default=180.0, ge=0)
    return_approval_delay: float = Field(default=180.0, ge=0)
    return_refund_delay: float = Field(default=5.0, ge=0)

    # Store access
    store_timeout: float = Field(default=10.0, gt=0)
    max_concurrency: int = Field(default=8, ge=1)

    tracking_prefix: str = Field(default="SIM", min_length=1, max_length=8)

    # When true, a second return for an order line is refused while one is open
    enforce_single_open_return: bool = Field(default=False)


@lru_cache
def get_settings() -> FulfillmentSettings:
    return FulfillmentSettings()
