from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Generic, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

PRODUCT_ITEM_TYPE = 1
BILLING_ADDRESS_TYPE = 1
DELIVERY_ADDRESS_TYPE = 2

T = TypeVar("T")


class PlentyRecord(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class OrderItem(PlentyRecord):
    id: Optional[int] = None
    # 1 = product, 6 = shipping costs, others are discounts/coupons etc.
    type_id: int = 0
    item_variation_id: int = 0
    quantity: Decimal = Decimal("1")
    order_item_name: Optional[str] = None

    @property
    def is_billable_product(self) -> bool:
        return self.type_id == PRODUCT_ITEM_TYPE and self.item_variation_id > 0


class Address(PlentyRecord):
    id: int
    country_id: Optional[int] = None
    name1: Optional[str] = None
    town: Optional[str] = None
    postal_code: Optional[str] = None


class AddressRelation(PlentyRecord):
    type_id: Optional[int] = None
    address_id: Optional[int] = None


class OrderAmount(PlentyRecord):
    currency: Optional[str] = None
    gross_total: Decimal = Decimal("0")
    net_total: Decimal = Decimal("0")
    is_system_currency: Optional[bool] = None


class Order(PlentyRecord):
    id: int
    type_id: Optional[int] = None
    status_id: Decimal = Decimal("0")
    status_name: Optional[str] = None
    plenty_id: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    order_items: list[OrderItem] = Field(default_factory=list)
    addresses: list[Address] = Field(default_factory=list)
    address_relations: list[AddressRelation] = Field(default_factory=list)
    amounts: list[OrderAmount] = Field(default_factory=list)

    @property
    def primary_amount(self) -> OrderAmount | None:
        return self.amounts[0] if self.amounts else None


class OrderStatus(PlentyRecord):
    status_id: Decimal
    names: dict[str, str] = Field(default_factory=dict)
    color: Optional[str] = None

    @property
    def display_name(self) -> str:
        return self.names.get("en") or self.names.get("de") or "Unknown"


class Country(PlentyRecord):
    id: int
    name: Optional[str] = None
    iso_code2: Optional[str] = Field(default=None, alias="isoCode2")
    active: Optional[bool] = None


class Variation(PlentyRecord):
    id: int
    item_id: Optional[int] = None
    name: Optional[str] = None
    number: Optional[str] = None
    is_active: bool = False

    @property
    def label(self) -> str:
        return self.name or self.number or "-"


class Page(PlentyRecord, Generic[T]):
    page: int = 1
    totals_count: Optional[int] = None
    # A page without the flag ends pagination.
    is_last_page: bool = True
    entries: list[T] = Field(default_factory=list)


class OrderCountries(BaseModel):
    billing_country_id: Optional[int] = None
    billing_country_name: Optional[str] = None
    delivery_country_id: Optional[int] = None
    delivery_country_name: Optional[str] = None
