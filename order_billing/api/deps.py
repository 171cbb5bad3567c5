from __future__ import annotations

from typing import Generator

from fastapi import Depends
from sqlalchemy.orm import Session

from order_billing.billing.charges import ChargeEngine
from order_billing.billing.shipping import ShippingRateLookup
from order_billing.core.cache import InMemoryCache, get_cache
from order_billing.core.config import get_settings
from order_billing.orders.aggregator import OrderAggregator
from order_billing.persistence.pg import get_session
from order_billing.plenty.client import PlentyClient


def get_plenty_client(cache: InMemoryCache = Depends(get_cache)) -> Generator[PlentyClient, None, None]:
    with PlentyClient(settings=get_settings(), cache=cache) as client:
        yield client


def get_shipping_lookup(
    session: Session = Depends(get_session),
    cache: InMemoryCache = Depends(get_cache),
) -> ShippingRateLookup:
    return ShippingRateLookup(session, cache=cache, settings=get_settings())


def get_charge_engine(
    session: Session = Depends(get_session),
    shipping: ShippingRateLookup = Depends(get_shipping_lookup),
) -> ChargeEngine:
    return ChargeEngine(session, shipping)


def get_aggregator(
    client: PlentyClient = Depends(get_plenty_client),
    engine: ChargeEngine = Depends(get_charge_engine),
) -> OrderAggregator:
    return OrderAggregator(client, engine, settings=get_settings())
