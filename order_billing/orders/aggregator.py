from __future__ import annotations

import calendar
import logging
from dataclasses import dataclass, field
from datetime import date, datetime, time, timezone
from decimal import Decimal

from order_billing.billing.charges import ChargeEngine, ChargeLine
from order_billing.billing.money import ZERO, to_money
from order_billing.core.config import Settings, get_settings
from order_billing.orders.facts import count_order_quantity, count_tablets, filter_billable
from order_billing.plenty.client import PlentyClient
from order_billing.plenty.schemas import Order, OrderCountries

logger = logging.getLogger(__name__)

UNKNOWN_COUNTRY = "Unknown"


def month_bounds(year: int, month: int) -> tuple[datetime, datetime]:
    last_day = calendar.monthrange(year, month)[1]
    start = datetime.combine(date(year, month, 1), time.min, tzinfo=timezone.utc)
    end = datetime.combine(date(year, month, last_day), time(23, 59, 59), tzinfo=timezone.utc)
    return start, end


@dataclass
class OrderBilling:
    order: Order
    countries: OrderCountries
    total_quantity: int
    tablet_count: int
    charges: Decimal
    charges_itemized: list[ChargeLine] = field(default_factory=list)

    @property
    def gross_total(self) -> Decimal:
        amount = self.order.primary_amount
        return to_money(amount.gross_total) if amount is not None else ZERO

    @property
    def currency(self) -> str | None:
        amount = self.order.primary_amount
        return amount.currency if amount is not None else None

    def to_dict(self) -> dict:
        payload = self.order.model_dump(mode="json", by_alias=True)
        payload.update(
            {
                "countries": self.countries.model_dump(),
                "total_quantity": self.total_quantity,
                "tablet_count": self.tablet_count,
                "charges": self.charges,
                "charges_itemized": [line.to_dict() for line in self.charges_itemized],
            }
        )
        return payload


@dataclass
class CountryGroup:
    country_name: str
    country_id: int | None
    orders: list[OrderBilling] = field(default_factory=list)
    order_count: int = 0
    total_quantity: int = 0
    total_tablets: int = 0
    total_charges: Decimal = ZERO
    total_gross: Decimal = ZERO
    currency: str | None = None
    currencies: list[str] = field(default_factory=list)

    @property
    def currency_conflict(self) -> bool:
        return len(self.currencies) > 1

    def add(self, billing: OrderBilling) -> None:
        self.orders.append(billing)
        self.order_count += 1
        self.total_quantity += billing.total_quantity
        self.total_tablets += billing.tablet_count
        self.total_charges = to_money(self.total_charges + billing.charges)
        self.total_gross = to_money(self.total_gross + billing.gross_total)

        currency = billing.currency
        if currency and currency not in self.currencies:
            self.currencies.append(currency)
            if self.currency is None:
                self.currency = currency
            else:
                logger.warning(
                    "mixed currencies in country group: country=%s currencies=%s order_id=%s",
                    self.country_name,
                    ",".join(self.currencies),
                    billing.order.id,
                )

    def to_dict(self) -> dict:
        return {
            "country_name": self.country_name,
            "country_id": self.country_id,
            "orders": [billing.to_dict() for billing in self.orders],
            "order_count": self.order_count,
            "total_quantity": self.total_quantity,
            "total_tablets": self.total_tablets,
            "total_charges": self.total_charges,
            "total_gross": self.total_gross,
            "currency": self.currency,
            "currencies": list(self.currencies),
            "currency_conflict": self.currency_conflict,
        }


@dataclass
class MonthlyOrderSummary:
    year: int
    month: int
    groups: list[CountryGroup]
    total_orders: int
    fetched_orders: int

    @property
    def total_charges(self) -> Decimal:
        return to_money(sum((group.total_charges for group in self.groups), ZERO))


class OrderAggregator:
    def __init__(self, client: PlentyClient, engine: ChargeEngine, settings: Settings | None = None):
        self.client = client
        self.engine = engine
        self.settings = settings or get_settings()

    def select_billable(self, orders: list[Order]) -> list[Order]:
        if not self.settings.status_filter_enabled:
            return list(orders)
        return filter_billable(orders, self.settings.billable_status_min, self.settings.billable_status_max)

    def summarize_order(self, order: Order, *, itemize: bool = False) -> OrderBilling:
        countries = self.client.extract_order_countries(order)
        total_quantity = count_order_quantity(order)
        tablet_count = count_tablets(order, self.settings.tablet_variation_ids)
        country_id = countries.delivery_country_id
        charges = self.engine.calculate_order_total_with_shipping(total_quantity, tablet_count, country_id)
        itemized = (
            self.engine.get_order_charges_itemized(total_quantity, tablet_count, country_id) if itemize else []
        )
        return OrderBilling(
            order=order,
            countries=countries,
            total_quantity=total_quantity,
            tablet_count=tablet_count,
            charges=charges,
            charges_itemized=itemized,
        )

    def group_by_country(self, orders: list[Order], *, itemize: bool = False) -> list[CountryGroup]:
        groups: dict[int | None, CountryGroup] = {}
        for order in orders:
            billing = self.summarize_order(order, itemize=itemize)
            country_id = billing.countries.delivery_country_id
            group = groups.get(country_id)
            if group is None:
                group = CountryGroup(
                    country_name=billing.countries.delivery_country_name or UNKNOWN_COUNTRY,
                    country_id=country_id,
                )
                groups[country_id] = group
            group.add(billing)

        return sorted(
            groups.values(),
            key=lambda g: (-g.order_count, g.country_name, g.country_id if g.country_id is not None else -1),
        )

    def fetch_billable_orders(self, year: int, month: int) -> tuple[list[Order], int]:
        start, end = month_bounds(year, month)
        fetched = self.client.get_orders_for_date_range(start, end, self.settings.billable_order_types)
        return self.select_billable(fetched), len(fetched)

    def build_month(self, year: int, month: int, *, itemize: bool = False) -> MonthlyOrderSummary:
        billable, fetched_count = self.fetch_billable_orders(year, month)
        groups = self.group_by_country(billable, itemize=itemize)
        logger.info(
            "monthly orders aggregated: year=%s month=%s fetched=%s billable=%s countries=%s",
            year,
            month,
            fetched_count,
            len(billable),
            len(groups),
        )
        return MonthlyOrderSummary(
            year=year,
            month=month,
            groups=groups,
            total_orders=len(billable),
            fetched_orders=fetched_count,
        )
