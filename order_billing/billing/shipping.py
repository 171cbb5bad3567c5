from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session

from order_billing.billing.money import ZERO, to_money
from order_billing.core.cache import InMemoryCache, get_cache, shipping_rate_key
from order_billing.core.config import Settings, get_settings
from order_billing.persistence.models import ShippingRateModel

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ShippingRate:
    id: int
    country_id: int | None
    country_name: str
    amount: Decimal
    carrier: str

    @classmethod
    def from_model(cls, row: ShippingRateModel) -> ShippingRate:
        return cls(
            id=row.id,
            country_id=row.plenty_country_id,
            country_name=row.country_name,
            amount=to_money(row.amount),
            carrier=row.carrier,
        )


class ShippingRateLookup:
    def __init__(self, session: Session, cache: InMemoryCache | None = None, settings: Settings | None = None):
        self.session = session
        self.cache = cache or get_cache()
        self.settings = settings or get_settings()

    def _load(self, country_id: int) -> ShippingRate | None:
        row = self.session.scalar(
            select(ShippingRateModel)
            .where(ShippingRateModel.plenty_country_id == country_id)
            .where(ShippingRateModel.is_active.is_(True))
            .limit(1)
        )
        return ShippingRate.from_model(row) if row is not None else None

    def get_by_country_id(self, country_id: int | None) -> ShippingRate | None:
        if country_id is None:
            return None
        return self.cache.remember(
            shipping_rate_key(country_id),
            self.settings.shipping_rate_ttl_seconds,
            lambda: self._load(country_id),
        )

    def get_amount_by_country_id(self, country_id: int | None) -> Decimal:
        rate = self.get_by_country_id(country_id)
        return rate.amount if rate is not None else ZERO

    def active_rates(self) -> list[ShippingRate]:
        rows = self.session.scalars(
            select(ShippingRateModel)
            .where(ShippingRateModel.is_active.is_(True))
            .order_by(ShippingRateModel.country_name.asc())
        ).all()
        return [ShippingRate.from_model(row) for row in rows]

    def clear_cache(self) -> int:
        country_ids = self.session.scalars(select(ShippingRateModel.plenty_country_id)).all()
        cleared = 0
        for country_id in country_ids:
            if country_id is None:
                continue
            if self.cache.forget(shipping_rate_key(country_id)):
                cleared += 1
        logger.info("shipping rate cache cleared: rates=%s evicted=%s", len(country_ids), cleared)
        return cleared
