"""Storefront settings.

One ``StorefrontSettings`` object is created per session and passed to the
persistence gateway and the session. Values can be supplied directly or
through ``STOREFRONT_*`` environment variables.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from storefront.shared.pricing import FlatDeliveryFee, PricingPolicy


class StorefrontSettings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="STOREFRONT_", extra="ignore")

    # Namespace for every stored document; empty means no prefix
    app_id: str = Field(default="", description="Application id the user documents are namespaced under")

    # Pricing
    tax_rate: float = Field(default=0.08, ge=0.0)
    delivery_fee: float = Field(default=5.00, ge=0.0)

    # Persistence
    write_max_attempts: int = Field(default=3, ge=1, description="Attempts per document write, first one included")
    write_backoff_base: float = Field(default=1.0, ge=0.0, description="Seconds waited after the first failed attempt")
    start_timeout: float = Field(default=10.0, gt=0.0, description="Seconds to wait for the first cart snapshot")

    @property
    def namespace(self) -> str:
        """Key prefix derived from ``app_id``, with path separators neutralized."""
        app_id = self.app_id.replace("/", "-").replace("\\", "-")
        return f"artifacts/{app_id}/" if app_id else ""

    def pricing_policy(self) -> PricingPolicy:
        return PricingPolicy(tax_rate=self.tax_rate, fee_schedule=FlatDeliveryFee(fee=self.delivery_fee))
