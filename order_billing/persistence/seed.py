from __future__ import annotations

from decimal import Decimal

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from order_billing.persistence.models import ChargeRuleModel, ShippingRateModel

DEFAULT_CHARGES: list[dict] = [
    {
        "name": "Warehouse Processing Charge",
        "slug": "warehouse_processing",
        "amount": Decimal("0.25"),
        "charge_type": "per_order",
        "calculation_basis": "flat",
    },
    {
        "name": "Picking Charge",
        "slug": "picking_charge",
        "amount": Decimal("1.62"),
        "charge_type": "per_order",
        "calculation_basis": "flat",
    },
    {
        "name": "Second Pick",
        "slug": "second_pick",
        "amount": Decimal("0.30"),
        "charge_type": "per_order",
        "calculation_basis": "per_additional_item",
    },
    {
        "name": "Pack Shipment",
        "slug": "pack_shipment",
        "amount": Decimal("0.71"),
        "charge_type": "per_order",
        "calculation_basis": "flat",
    },
    {
        "name": "Packaging Material",
        "slug": "packaging_material",
        "amount": Decimal("0.45"),
        "charge_type": "per_order",
        "calculation_basis": "flat",
    },
    {
        "name": "Technology Fee",
        "slug": "technology_fee",
        "amount": Decimal("0.50"),
        "charge_type": "per_order",
        "calculation_basis": "flat",
    },
    {
        "name": "Tablet Configuration",
        "slug": "tablet_configuration",
        "amount": Decimal("5.55"),
        "charge_type": "per_order",
        "calculation_basis": "per_tablet",
    },
    # monthly charges stay outside the management fee base
    {
        "name": "Portal",
        "slug": "portal",
        "amount": Decimal("75.00"),
        "charge_type": "monthly",
        "calculation_basis": "flat",
    },
    {
        "name": "Account Management Fee",
        "slug": "account_management_fee",
        "amount": Decimal("1200.00"),
        "charge_type": "monthly",
        "calculation_basis": "flat",
    },
]

OBSOLETE_CHARGE_SLUGS = ["shipping_charge", "kinara_storage", "equipment_inbound_fee"]

DEFAULT_SHIPPING_RATES: list[dict] = [
    {"country_name": "Poland", "plenty_country_id": 23, "amount": Decimal("7.09"), "carrier": "FedEx Economy"},
    {"country_name": "Romania", "plenty_country_id": 41, "amount": Decimal("11.71"), "carrier": "FedEx Economy"},
    {"country_name": "Latvia", "plenty_country_id": 18, "amount": Decimal("12.66"), "carrier": "FedEx Economy"},
    {"country_name": "Bulgaria", "plenty_country_id": 44, "amount": Decimal("12.19"), "carrier": "FedEx Economy"},
    {"country_name": "Czech Republic", "plenty_country_id": 6, "amount": Decimal("8.00"), "carrier": "FedEx Economy"},
]


def seed_default_charges(session: Session) -> dict[str, int]:
    removed = session.execute(
        delete(ChargeRuleModel).where(ChargeRuleModel.slug.in_(OBSOLETE_CHARGE_SLUGS))
    ).rowcount or 0

    created = 0
    updated = 0
    for values in DEFAULT_CHARGES:
        rule = session.scalar(select(ChargeRuleModel).where(ChargeRuleModel.slug == values["slug"]))
        if rule is None:
            session.add(ChargeRuleModel(is_active=True, **values))
            created += 1
            continue
        for field, value in values.items():
            setattr(rule, field, value)
        updated += 1
    session.flush()
    return {"created": created, "updated": updated, "removed": removed}


def seed_default_shipping_rates(session: Session) -> dict[str, int]:
    created = 0
    updated = 0
    for values in DEFAULT_SHIPPING_RATES:
        rate = session.scalar(
            select(ShippingRateModel).where(ShippingRateModel.plenty_country_id == values["plenty_country_id"])
        )
        if rate is None:
            session.add(ShippingRateModel(is_active=True, **values))
            created += 1
            continue
        for field, value in values.items():
            setattr(rate, field, value)
        updated += 1
    session.flush()
    return {"created": created, "updated": updated}
