from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional

from sqlalchemy import Boolean, DateTime, Index, Integer, Numeric, String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    pass


class ChargeRuleModel(Base):
    __tablename__ = "charge_rules"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    slug: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    # per_order | monthly
    charge_type: Mapped[str] = mapped_column(String(16), nullable=False, default="per_order")
    # flat | per_item | per_additional_item | per_tablet
    calculation_basis: Mapped[str] = mapped_column(String(32), nullable=False, default="flat")
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)


class ShippingRateModel(Base):
    __tablename__ = "shipping_rates"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    country_name: Mapped[str] = mapped_column(String(128), nullable=False)
    plenty_country_id: Mapped[Optional[int]] = mapped_column(Integer, unique=True, nullable=True)
    amount: Mapped[Decimal] = mapped_column(Numeric(8, 2), nullable=False)
    carrier: Mapped[str] = mapped_column(String(64), nullable=False, default="FedEx Economy")
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)


Index("ix_charge_rules_type_active", ChargeRuleModel.charge_type, ChargeRuleModel.is_active)
Index("ix_shipping_rates_country_active", ShippingRateModel.plenty_country_id, ShippingRateModel.is_active)
