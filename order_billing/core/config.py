from __future__ import annotations

from decimal import Decimal
from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_OPERATOR_API_KEY = "ob-operator-dev-key"
DEFAULT_ADMIN_API_KEY = "ob-admin-dev-key"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_prefix="BILLING_", extra="ignore")

    app_name: str = "Order Billing"
    env: str = "dev"
    log_level: str = "INFO"

    database_url: str = "sqlite+pysqlite:///./billing.db"
    seed_defaults_on_startup: bool = False

    plenty_base_url: str = "https://example.my.plentysystems.com"
    plenty_username: str = ""
    plenty_password: str = ""
    plenty_timeout_seconds: int = 30
    plenty_max_retries: int = 3
    plenty_retry_delay_ms: int = 1000
    plenty_items_per_page: int = 250
    # 23h; upstream tokens are valid for 24h
    plenty_token_ttl_seconds: int = 82800
    plenty_lookup_ttl_seconds: int = 86400

    billable_order_types: list[int] = Field(default_factory=lambda: [1])
    tablet_variation_ids: list[int] = Field(default_factory=lambda: [1139])
    status_filter_enabled: bool = True
    billable_status_min: Decimal = Decimal("7.0")
    billable_status_max: Decimal = Decimal("8.0")
    shipping_rate_ttl_seconds: int = 3600

    management_fee_rate: Decimal = Field(default=Decimal("0.08"), description="Fee on country totals + variable charges")
    inbound_pallet_rate: Decimal = Decimal("6.00")
    pallet_storage_rate: Decimal = Decimal("12.00")
    return_rate: Decimal = Decimal("3.00")
    reset_tablet_rate: Decimal = Decimal("5.55")

    auth_enabled: bool = True
    operator_api_key: str = DEFAULT_OPERATOR_API_KEY
    admin_api_key: str = DEFAULT_ADMIN_API_KEY
    operator_actor_id: str = "operator-001"
    admin_actor_id: str = "admin-001"

    def model_post_init(self, __context) -> None:
        if self.env.lower() == "dev":
            return

        insecure_items: list[str] = []
        if self.operator_api_key == DEFAULT_OPERATOR_API_KEY:
            insecure_items.append("BILLING_OPERATOR_API_KEY")
        if self.admin_api_key == DEFAULT_ADMIN_API_KEY:
            insecure_items.append("BILLING_ADMIN_API_KEY")
        if not self.plenty_username or not self.plenty_password:
            insecure_items.append("BILLING_PLENTY_USERNAME/BILLING_PLENTY_PASSWORD")

        if insecure_items:
            raise ValueError(
                "default or missing credentials are not allowed outside dev mode; set env vars: "
                + ", ".join(sorted(insecure_items))
            )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
