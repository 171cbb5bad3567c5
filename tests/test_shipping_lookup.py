from __future__ import annotations

from decimal import Decimal

from order_billing.billing.shipping import ShippingRateLookup
from order_billing.core.cache import shipping_rate_key
from order_billing.persistence.models import ShippingRateModel


def test_rate_is_served_from_cache_until_ttl(seeded, cache, clock):
    lookup = ShippingRateLookup(seeded, cache=cache)

    rate = lookup.get_by_country_id(23)
    assert rate is not None
    assert rate.country_name == "Poland"
    assert rate.amount == Decimal("7.09")
    assert cache.has(shipping_rate_key(23))

    row = seeded.query(ShippingRateModel).filter_by(plenty_country_id=23).one()
    row.amount = Decimal("9.99")
    seeded.flush()
    assert lookup.get_amount_by_country_id(23) == Decimal("7.09")

    clock.advance(3600)
    assert lookup.get_amount_by_country_id(23) == Decimal("9.99")


def test_missing_or_absent_country_costs_nothing(seeded, cache):
    lookup = ShippingRateLookup(seeded, cache=cache)

    assert lookup.get_by_country_id(None) is None
    assert lookup.get_amount_by_country_id(None) == Decimal("0.00")
    assert lookup.get_amount_by_country_id(1) == Decimal("0.00")
    assert not cache.has(shipping_rate_key(1))


def test_inactive_rate_is_ignored(seeded, cache):
    row = seeded.query(ShippingRateModel).filter_by(plenty_country_id=41).one()
    row.is_active = False
    seeded.flush()

    lookup = ShippingRateLookup(seeded, cache=cache)

    assert lookup.get_by_country_id(41) is None
    assert "Romania" not in [r.country_name for r in lookup.active_rates()]


def test_clear_cache_evicts_every_cached_rate(seeded, cache):
    lookup = ShippingRateLookup(seeded, cache=cache)
    lookup.get_by_country_id(23)
    lookup.get_by_country_id(6)

    assert lookup.clear_cache() == 2
    assert not cache.has(shipping_rate_key(23))
    assert not cache.has(shipping_rate_key(6))
    assert lookup.clear_cache() == 0
