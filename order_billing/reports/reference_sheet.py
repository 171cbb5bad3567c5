from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Any

from openpyxl.utils import get_column_letter
from pydantic import BaseModel, Field

from order_billing.billing.charges import SHIPPING_SLUG, ChargeRule
from order_billing.billing.money import ZERO, sum_money, to_money
from order_billing.core.config import Settings, get_settings
from order_billing.orders.aggregator import CountryGroup

MONEY_FORMAT = "#,##0.00"
SECTION_FILL = "E0E0E0"
HEADER_FILL = "F0F0F0"
GRAND_TOTAL_FILL = "90EE90"


class VariableChargeInputs(BaseModel):
    warehouse_workers_hours: Decimal = Field(default=Decimal("0"), ge=0)
    warehouse_workers_rate: Decimal = Field(default=Decimal("0"), ge=0)
    inbound_pallets: Decimal = Field(default=Decimal("0"), ge=0)
    pallet_storage_count: Decimal = Field(default=Decimal("0"), ge=0)
    returns_count: Decimal = Field(default=Decimal("0"), ge=0)
    reset_tablet_count: Decimal = Field(default=Decimal("0"), ge=0)


@dataclass
class Cell:
    value: Any
    bold: bool = False
    size: int | None = None
    fill: str | None = None
    number_format: str | None = None


@dataclass
class VariableCharge:
    key: str
    label: str
    description: str
    total: Decimal


@dataclass
class CountryTotal:
    country_name: str
    country_id: int | None
    total: Decimal
    ref: str


@dataclass
class ReferenceSheetTotals:
    country_totals: list[CountryTotal]
    variable_charges: list[VariableCharge]
    subtotal_before_fee: Decimal
    fee_rate: Decimal
    fee: Decimal
    subtotal_after_fee: Decimal
    fixed_charges_total: Decimal
    grand_total: Decimal

    def to_dict(self) -> dict:
        return {
            "country_totals": [
                {"country_name": c.country_name, "country_id": c.country_id, "total": c.total}
                for c in self.country_totals
            ],
            "variable_charges": [
                {"key": c.key, "label": c.label, "description": c.description, "total": c.total}
                for c in self.variable_charges
            ],
            "subtotal_before_fee": self.subtotal_before_fee,
            "fee_rate": self.fee_rate,
            "fee": self.fee,
            "subtotal_after_fee": self.subtotal_after_fee,
            "fixed_charges_total": self.fixed_charges_total,
            "grand_total": self.grand_total,
        }


@dataclass
class ReferenceSheet:
    title: str
    cells: dict[str, Cell] = field(default_factory=dict)
    totals: ReferenceSheetTotals | None = None

    def put(self, ref: str, value: Any, **style: Any) -> None:
        self.cells[ref] = Cell(value=value, **style)

    def value(self, ref: str) -> Any:
        cell = self.cells.get(ref)
        return cell.value if cell is not None else None

    def find(self, value: Any) -> str | None:
        for ref, cell in self.cells.items():
            if cell.value == value:
                return ref
        return None


def _fmt(value: Decimal) -> str:
    normalized = value.normalize()
    return format(normalized, "f") if normalized == normalized.to_integral() else str(value)


def _variable_charges(inputs: VariableChargeInputs, settings: Settings) -> list[VariableCharge]:
    charges = [
        VariableCharge(
            key="warehouse",
            label="Warehouse workers",
            description=f"{_fmt(inputs.warehouse_workers_hours)} hrs @ €{_fmt(inputs.warehouse_workers_rate)}",
            total=to_money(inputs.warehouse_workers_hours * inputs.warehouse_workers_rate),
        ),
        VariableCharge(
            key="inbound",
            label="Inbound Pallet",
            description=f"{_fmt(inputs.inbound_pallets)} pallets @ €{_fmt(settings.inbound_pallet_rate)}",
            total=to_money(inputs.inbound_pallets * settings.inbound_pallet_rate),
        ),
        VariableCharge(
            key="pallet",
            label="Pallet storage / month",
            description=f"{_fmt(inputs.pallet_storage_count)} pallets @ €{_fmt(settings.pallet_storage_rate)}",
            total=to_money(inputs.pallet_storage_count * settings.pallet_storage_rate),
        ),
        VariableCharge(
            key="returns",
            label="Returns",
            description=f"{_fmt(inputs.returns_count)} returns @ €{_fmt(settings.return_rate)}",
            total=to_money(inputs.returns_count * settings.return_rate),
        ),
    ]
    if inputs.reset_tablet_count > 0:
        charges.append(
            VariableCharge(
                key="reset",
                label="Reset tablet",
                description=f"{_fmt(inputs.reset_tablet_count)} resets @ €{_fmt(settings.reset_tablet_rate)}",
                total=to_money(inputs.reset_tablet_count * settings.reset_tablet_rate),
            )
        )
    return charges


def _line_total(lines, slug: str) -> Decimal:
    for line in lines:
        if line.slug == slug:
            return line.total
    return ZERO


def build_reference_sheet(
    groups: list[CountryGroup],
    per_order_rules: list[ChargeRule],
    monthly_rules: list[ChargeRule],
    inputs: VariableChargeInputs,
    year: int,
    month: int,
    settings: Settings | None = None,
) -> ReferenceSheet:
    """Lay out the monthly reference sheet as cells and formulas.

    Country groups are expected to carry itemized charges and are written in
    the order given. The fee applies to country totals plus variable charges;
    fixed monthly charges are added after the fee.
    """
    cfg = settings or get_settings()
    sheet = ReferenceSheet(title="Reference Sheet")
    row = 1

    sheet.put(f"A{row}", "Reference Sheet", bold=True, size=16)
    row += 2
    sheet.put(f"A{row}", date(year, month, 1).strftime("%B %Y"), bold=True, size=14)
    row += 2

    headers = ["Order No", "Qty", "Tablets", *[rule.name for rule in per_order_rules], "Shipping", "Total"]
    total_col = get_column_letter(len(headers))
    # one entry per group; names repeat when several countries are unresolved
    country_totals: list[CountryTotal] = []

    for group in groups:
        sheet.put(f"A{row}", group.country_name, bold=True, size=12, fill=SECTION_FILL)
        row += 1

        for index, header in enumerate(headers, start=1):
            sheet.put(f"{get_column_letter(index)}{row}", header, bold=True, fill=HEADER_FILL)
        row += 1

        first_order_row = row
        for billing in group.orders:
            values: list[Any] = [billing.order.id, billing.total_quantity, billing.tablet_count]
            for rule in per_order_rules:
                amount = _line_total(billing.charges_itemized, rule.slug)
                values.append(amount if amount > 0 else "-")
            shipping = _line_total(billing.charges_itemized, SHIPPING_SLUG)
            values.append(shipping if shipping > 0 else "-")
            values.append(billing.charges)

            for index, value in enumerate(values, start=1):
                money = isinstance(value, Decimal)
                sheet.put(
                    f"{get_column_letter(index)}{row}",
                    value,
                    number_format=MONEY_FORMAT if money else None,
                )
            row += 1
        last_order_row = row - 1

        sheet.put(f"A{row}", "Subtotal", bold=True)
        sheet.put(
            f"{total_col}{row}",
            f"=SUM({total_col}{first_order_row}:{total_col}{last_order_row})",
            bold=True,
            number_format=MONEY_FORMAT,
        )
        country_totals.append(
            CountryTotal(
                country_name=group.country_name,
                country_id=group.country_id,
                total=group.total_charges,
                ref=f"{total_col}{row}",
            )
        )
        row += 2

    sheet.put(f"A{row}", "Country Totals", bold=True, size=12)
    row += 1
    country_totals_start = row
    for country in country_totals:
        sheet.put(f"A{row}", country.country_name)
        sheet.put(f"B{row}", f"={country.ref}", number_format=MONEY_FORMAT)
        row += 1
    country_totals_end = row - 1
    row += 2

    for col, label in (("A", "Variable Charges"), ("B", "Input"), ("C", "Total")):
        sheet.put(f"{col}{row}", label, bold=True, fill=SECTION_FILL)
    row += 1

    variable_charges = _variable_charges(inputs, cfg)
    variable_rows: list[int] = []
    for charge in variable_charges:
        variable_rows.append(row)
        sheet.put(f"A{row}", charge.label)
        sheet.put(f"B{row}", charge.description)
        sheet.put(f"C{row}", charge.total, number_format=MONEY_FORMAT)
        row += 1
    row += 1

    subtotal_row = row
    variable_refs = "+".join(f"C{r}" for r in variable_rows)
    if country_totals:
        base_formula = f"=SUM(B{country_totals_start}:B{country_totals_end})+{variable_refs}"
    else:
        base_formula = f"={variable_refs}"
    sheet.put(f"A{row}", "Subtotal (before management fee)", bold=True)
    sheet.put(f"B{row}", base_formula, bold=True, number_format=MONEY_FORMAT)
    row += 2

    fee_rate = cfg.management_fee_rate
    fee_row = row
    sheet.put(f"A{row}", f"Management fee ({_fmt(fee_rate * 100)}%)")
    sheet.put(f"B{row}", f"=B{subtotal_row}*{fee_rate}", number_format=MONEY_FORMAT)
    row += 2

    after_fee_row = row
    sheet.put(f"A{row}", "Subtotal after management fee", bold=True)
    sheet.put(f"B{row}", f"=B{subtotal_row}+B{fee_row}", bold=True, number_format=MONEY_FORMAT)
    row += 2

    sheet.put(f"A{row}", "Fixed Charges (excluded from management fee)", bold=True, fill=SECTION_FILL)
    sheet.put(f"B{row}", None, fill=SECTION_FILL)
    row += 1
    fixed_start = row
    for rule in monthly_rules:
        sheet.put(f"A{row}", rule.name)
        sheet.put(f"B{row}", rule.amount, number_format=MONEY_FORMAT)
        row += 1
    fixed_end = row - 1
    row += 1

    if monthly_rules:
        grand_formula = f"=B{after_fee_row}+SUM(B{fixed_start}:B{fixed_end})"
    else:
        grand_formula = f"=B{after_fee_row}"
    sheet.put(f"A{row}", "GRAND TOTAL", bold=True, size=14, fill=GRAND_TOTAL_FILL)
    sheet.put(f"B{row}", grand_formula, bold=True, size=14, fill=GRAND_TOTAL_FILL, number_format=MONEY_FORMAT)

    subtotal = sum_money([*(c.total for c in country_totals), *(c.total for c in variable_charges)])
    fee = to_money(subtotal * fee_rate)
    after_fee = to_money(subtotal + fee)
    fixed_total = sum_money(rule.amount for rule in monthly_rules)
    sheet.totals = ReferenceSheetTotals(
        country_totals=country_totals,
        variable_charges=variable_charges,
        subtotal_before_fee=subtotal,
        fee_rate=fee_rate,
        fee=fee,
        subtotal_after_fee=after_fee,
        fixed_charges_total=fixed_total,
        grand_total=to_money(after_fee + fixed_total),
    )
    return sheet


def reference_sheet_filename(year: int, month: int) -> str:
    return f"reference-sheet-{year}-{month:02d}.xlsx"
