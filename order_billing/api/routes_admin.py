from __future__ import annotations

import logging
from decimal import Decimal

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy import select
from sqlalchemy.orm import Session

from order_billing.api.deps import get_shipping_lookup
from order_billing.billing.basis import CalculationBasis, ChargeType
from order_billing.billing.shipping import ShippingRateLookup
from order_billing.core.cache import shipping_rate_key
from order_billing.core.security import Actor, require_admin
from order_billing.persistence.models import ChargeRuleModel, ShippingRateModel
from order_billing.persistence.pg import get_session

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"])


class ChargeRuleIn(BaseModel):
    name: str = Field(min_length=1, max_length=128)
    slug: str = Field(min_length=1, max_length=64, pattern=r"^[a-z0-9_]+$")
    amount: Decimal = Field(ge=0, max_digits=10, decimal_places=2)
    charge_type: ChargeType = ChargeType.PER_ORDER
    calculation_basis: CalculationBasis = CalculationBasis.FLAT
    is_active: bool = True


class ChargeRuleUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=128)
    amount: Decimal | None = Field(default=None, ge=0, max_digits=10, decimal_places=2)
    charge_type: ChargeType | None = None
    calculation_basis: CalculationBasis | None = None
    is_active: bool | None = None


class ShippingRateIn(BaseModel):
    country_name: str = Field(min_length=1, max_length=128)
    plenty_country_id: int | None = Field(default=None, ge=1)
    amount: Decimal = Field(ge=0, max_digits=8, decimal_places=2)
    carrier: str = Field(default="FedEx Economy", min_length=1, max_length=64)
    is_active: bool = True


class ShippingRateUpdate(BaseModel):
    country_name: str | None = Field(default=None, min_length=1, max_length=128)
    plenty_country_id: int | None = Field(default=None, ge=1)
    amount: Decimal | None = Field(default=None, ge=0, max_digits=8, decimal_places=2)
    carrier: str | None = Field(default=None, min_length=1, max_length=64)
    is_active: bool | None = None


def _charge_payload(row: ChargeRuleModel) -> dict:
    return {
        "id": row.id,
        "name": row.name,
        "slug": row.slug,
        "amount": row.amount,
        "charge_type": row.charge_type,
        "calculation_basis": row.calculation_basis,
        "is_active": row.is_active,
    }


def _rate_payload(row: ShippingRateModel) -> dict:
    return {
        "id": row.id,
        "country_name": row.country_name,
        "plenty_country_id": row.plenty_country_id,
        "amount": row.amount,
        "carrier": row.carrier,
        "is_active": row.is_active,
    }


def _get_charge(session: Session, charge_id: int) -> ChargeRuleModel:
    row = session.get(ChargeRuleModel, charge_id)
    if row is None:
        raise HTTPException(status_code=404, detail="charge rule not found")
    return row


def _get_rate(session: Session, rate_id: int) -> ShippingRateModel:
    row = session.get(ShippingRateModel, rate_id)
    if row is None:
        raise HTTPException(status_code=404, detail="shipping rate not found")
    return row


def _ensure_country_free(session: Session, country_id: int | None, rate_id: int | None = None) -> None:
    if country_id is None:
        return
    existing = session.scalar(select(ShippingRateModel).where(ShippingRateModel.plenty_country_id == country_id))
    if existing is not None and existing.id != rate_id:
        raise HTTPException(status_code=409, detail=f"shipping rate for country {country_id} already exists")


def _forget_rate(shipping: ShippingRateLookup, *country_ids: int | None) -> None:
    for country_id in country_ids:
        if country_id is not None:
            shipping.cache.forget(shipping_rate_key(country_id))


# -- charge rules -------------------------------------------------------


@router.get("/charges")
def list_charges(
    actor: Actor = Depends(require_admin),
    session: Session = Depends(get_session),
):
    rows = session.scalars(select(ChargeRuleModel).order_by(ChargeRuleModel.id.asc())).all()
    return {"count": len(rows), "charges": [_charge_payload(row) for row in rows]}


@router.post("/charges", status_code=201)
def create_charge(
    payload: ChargeRuleIn,
    actor: Actor = Depends(require_admin),
    session: Session = Depends(get_session),
):
    if session.scalar(select(ChargeRuleModel).where(ChargeRuleModel.slug == payload.slug)) is not None:
        raise HTTPException(status_code=409, detail=f"charge rule '{payload.slug}' already exists")

    row = ChargeRuleModel(
        name=payload.name,
        slug=payload.slug,
        amount=payload.amount,
        charge_type=payload.charge_type.value,
        calculation_basis=payload.calculation_basis.value,
        is_active=payload.is_active,
    )
    session.add(row)
    session.flush()
    logger.info("charge rule created: actor=%s slug=%s amount=%s", actor.id, row.slug, row.amount)
    return _charge_payload(row)


@router.patch("/charges/{charge_id}")
def update_charge(
    charge_id: int,
    payload: ChargeRuleUpdate,
    actor: Actor = Depends(require_admin),
    session: Session = Depends(get_session),
):
    row = _get_charge(session, charge_id)
    changes = payload.model_dump(exclude_unset=True)
    for name, value in changes.items():
        if value is None:
            continue
        if isinstance(value, (ChargeType, CalculationBasis)):
            value = value.value
        setattr(row, name, value)
    session.flush()
    logger.info("charge rule updated: actor=%s slug=%s fields=%s", actor.id, row.slug, sorted(changes))
    return _charge_payload(row)


@router.delete("/charges/{charge_id}")
def delete_charge(
    charge_id: int,
    actor: Actor = Depends(require_admin),
    session: Session = Depends(get_session),
):
    row = _get_charge(session, charge_id)
    slug = row.slug
    session.delete(row)
    session.flush()
    logger.info("charge rule deleted: actor=%s slug=%s", actor.id, slug)
    return {"deleted": True, "id": charge_id}


# -- shipping rates -----------------------------------------------------


@router.get("/shipping-rates")
def list_shipping_rates(
    actor: Actor = Depends(require_admin),
    session: Session = Depends(get_session),
):
    rows = session.scalars(select(ShippingRateModel).order_by(ShippingRateModel.country_name.asc())).all()
    return {"count": len(rows), "rates": [_rate_payload(row) for row in rows]}


@router.post("/shipping-rates", status_code=201)
def create_shipping_rate(
    payload: ShippingRateIn,
    actor: Actor = Depends(require_admin),
    session: Session = Depends(get_session),
    shipping: ShippingRateLookup = Depends(get_shipping_lookup),
):
    _ensure_country_free(session, payload.plenty_country_id)
    row = ShippingRateModel(**payload.model_dump())
    session.add(row)
    session.flush()
    _forget_rate(shipping, row.plenty_country_id)
    logger.info(
        "shipping rate created: actor=%s country=%s country_id=%s amount=%s",
        actor.id,
        row.country_name,
        row.plenty_country_id,
        row.amount,
    )
    return _rate_payload(row)


@router.patch("/shipping-rates/{rate_id}")
def update_shipping_rate(
    rate_id: int,
    payload: ShippingRateUpdate,
    actor: Actor = Depends(require_admin),
    session: Session = Depends(get_session),
    shipping: ShippingRateLookup = Depends(get_shipping_lookup),
):
    row = _get_rate(session, rate_id)
    changes = payload.model_dump(exclude_unset=True)
    if "plenty_country_id" in changes:
        _ensure_country_free(session, changes["plenty_country_id"], rate_id=row.id)

    previous_country_id = row.plenty_country_id
    for name, value in changes.items():
        if value is None and name != "plenty_country_id":
            continue
        setattr(row, name, value)
    session.flush()
    _forget_rate(shipping, previous_country_id, row.plenty_country_id)
    logger.info("shipping rate updated: actor=%s country=%s fields=%s", actor.id, row.country_name, sorted(changes))
    return _rate_payload(row)


@router.delete("/shipping-rates/{rate_id}")
def delete_shipping_rate(
    rate_id: int,
    actor: Actor = Depends(require_admin),
    session: Session = Depends(get_session),
    shipping: ShippingRateLookup = Depends(get_shipping_lookup),
):
    row = _get_rate(session, rate_id)
    country_id = row.plenty_country_id
    session.delete(row)
    session.flush()
    _forget_rate(shipping, country_id)
    logger.info("shipping rate deleted: actor=%s country_id=%s", actor.id, country_id)
    return {"deleted": True, "id": rate_id}


@router.post("/shipping-rates/cache/clear")
def clear_shipping_cache(
    actor: Actor = Depends(require_admin),
    shipping: ShippingRateLookup = Depends(get_shipping_lookup),
):
    return {"cleared": shipping.clear_cache()}
