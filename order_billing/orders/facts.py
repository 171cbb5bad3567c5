from __future__ import annotations

from decimal import Decimal
from typing import Iterable

from order_billing.plenty.schemas import Order


def count_order_quantity(order: Order) -> int:
    """Units of real products in the order; shipping and discount lines are skipped."""
    return sum(int(item.quantity) for item in order.order_items if item.is_billable_product)


def count_tablets(order: Order, tablet_variation_ids: Iterable[int]) -> int:
    tablet_ids = set(tablet_variation_ids)
    return sum(int(item.quantity) for item in order.order_items if item.item_variation_id in tablet_ids)


def is_billable_status(order: Order, status_min: Decimal, status_max: Decimal) -> bool:
    return status_min <= order.status_id < status_max


def filter_billable(orders: Iterable[Order], status_min: Decimal, status_max: Decimal) -> list[Order]:
    return [order for order in orders if is_billable_status(order, status_min, status_max)]
