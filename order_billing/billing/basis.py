from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OrderFacts:
    total_quantity: int = 0
    tablet_count: int = 0
    delivery_country_id: int | None = None

    def __post_init__(self) -> None:
        if self.total_quantity < 0 or self.tablet_count < 0:
            raise ValueError("order quantities must be non-negative")


class CalculationBasis(str, Enum):
    """How a rule's unit amount scales with the facts of one order."""

    FLAT = "flat"
    PER_ITEM = "per_item"
    PER_ADDITIONAL_ITEM = "per_additional_item"
    PER_TABLET = "per_tablet"

    def units(self, facts: OrderFacts) -> int:
        if self is CalculationBasis.FLAT:
            return 1
        if self is CalculationBasis.PER_ITEM:
            return facts.total_quantity
        if self is CalculationBasis.PER_ADDITIONAL_ITEM:
            return max(0, facts.total_quantity - 1)
        if self is CalculationBasis.PER_TABLET:
            return facts.tablet_count
        raise AssertionError(f"unhandled calculation basis: {self!r}")

    @property
    def always_itemized(self) -> bool:
        return self is CalculationBasis.FLAT

    @classmethod
    def parse(cls, value: str | None) -> CalculationBasis:
        try:
            return cls(value)
        except ValueError:
            logger.warning("unknown calculation basis, treating as flat: basis=%s", value)
            return cls.FLAT


class ChargeType(str, Enum):
    PER_ORDER = "per_order"
    MONTHLY = "monthly"
