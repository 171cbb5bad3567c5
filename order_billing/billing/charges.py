from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session

from order_billing.billing.basis import CalculationBasis, ChargeType, OrderFacts
from order_billing.billing.money import sum_money, to_money
from order_billing.billing.shipping import ShippingRateLookup
from order_billing.persistence.models import ChargeRuleModel

SHIPPING_SLUG = "shipping"


@dataclass(frozen=True)
class ChargeRule:
    id: int
    name: str
    slug: str
    amount: Decimal
    charge_type: ChargeType
    basis: CalculationBasis

    @classmethod
    def from_model(cls, row: ChargeRuleModel) -> ChargeRule:
        return cls(
            id=row.id,
            name=row.name,
            slug=row.slug,
            amount=to_money(row.amount),
            charge_type=ChargeType(row.charge_type),
            basis=CalculationBasis.parse(row.calculation_basis),
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "slug": self.slug,
            "amount": self.amount,
            "charge_type": self.charge_type.value,
            "calculation_basis": self.basis.value,
        }


@dataclass(frozen=True)
class ChargeLine:
    name: str
    slug: str
    unit_amount: Decimal
    quantity: int
    total: Decimal
    calculation_basis: str

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "slug": self.slug,
            "unit_amount": self.unit_amount,
            "quantity": self.quantity,
            "total": self.total,
            "calculation_basis": self.calculation_basis,
        }


class ChargeEngine:
    """Per-order and monthly charges from the active charge rules.

    Rules are read once per engine instance; build a new engine per request
    so edits made in between are picked up.
    """

    def __init__(self, session: Session, shipping: ShippingRateLookup):
        self.session = session
        self.shipping = shipping
        self._rules: dict[ChargeType, list[ChargeRule]] = {}

    def _active_rules(self, charge_type: ChargeType) -> list[ChargeRule]:
        if charge_type not in self._rules:
            rows = self.session.scalars(
                select(ChargeRuleModel)
                .where(ChargeRuleModel.is_active.is_(True))
                .where(ChargeRuleModel.charge_type == charge_type.value)
                .order_by(ChargeRuleModel.id.asc())
            ).all()
            self._rules[charge_type] = [ChargeRule.from_model(row) for row in rows]
        return self._rules[charge_type]

    def per_order_rules(self) -> list[ChargeRule]:
        return self._active_rules(ChargeType.PER_ORDER)

    def monthly_rules(self) -> list[ChargeRule]:
        return self._active_rules(ChargeType.MONTHLY)

    @staticmethod
    def calculate_charge_amount(rule: ChargeRule, facts: OrderFacts) -> Decimal:
        return to_money(rule.amount * rule.basis.units(facts))

    def calculate_order_total(self, total_quantity: int, tablet_count: int = 0) -> Decimal:
        facts = OrderFacts(total_quantity=total_quantity, tablet_count=tablet_count)
        return sum_money(self.calculate_charge_amount(rule, facts) for rule in self.per_order_rules())

    def calculate_order_total_with_shipping(
        self,
        total_quantity: int,
        tablet_count: int = 0,
        delivery_country_id: int | None = None,
    ) -> Decimal:
        total = self.calculate_order_total(total_quantity, tablet_count)
        return to_money(total + self.shipping.get_amount_by_country_id(delivery_country_id))

    def get_order_charges_itemized(
        self,
        total_quantity: int,
        tablet_count: int = 0,
        delivery_country_id: int | None = None,
    ) -> list[ChargeLine]:
        facts = OrderFacts(total_quantity, tablet_count, delivery_country_id)
        lines: list[ChargeLine] = []
        for rule in self.per_order_rules():
            units = rule.basis.units(facts)
            if units <= 0 and not rule.basis.always_itemized:
                continue
            lines.append(
                ChargeLine(
                    name=rule.name,
                    slug=rule.slug,
                    unit_amount=rule.amount,
                    quantity=units,
                    total=self.calculate_charge_amount(rule, facts),
                    calculation_basis=rule.basis.value,
                )
            )

        rate = self.shipping.get_by_country_id(delivery_country_id)
        if rate is not None:
            lines.append(
                ChargeLine(
                    name=f"Shipping ({rate.country_name})",
                    slug=SHIPPING_SLUG,
                    unit_amount=rate.amount,
                    quantity=1,
                    total=rate.amount,
                    calculation_basis=CalculationBasis.FLAT.value,
                )
            )
        return lines

    def calculate_monthly_total(self) -> Decimal:
        return sum_money(rule.amount for rule in self.monthly_rules())
