from dataclasses import dataclass
from typing import Any, Optional

from ..models.breakdown import (
    CHARGE_CATEGORIES,
    SALES_TAX_SLOTS,
    ChargeLine,
    Charges,
    SalesTaxes,
    SalesTaxLine,
)
from .numeric import to_number_or_zero


@dataclass
class ChargeCalculation:
    """Resolved charges/taxes for one item total, before deductions."""

    item_total: float
    charges: Charges
    sales_taxes: SalesTaxes
    charges_total: float
    taxable_base: float
    tax_total: float


def resolve_amount(base: float, percentage: Optional[float], amount: Optional[float]) -> Optional[float]:
    """
    A percentage, when set, is applied to the base; otherwise the entered
    amount is kept as-is (None stays None). Percentage 0 yields 0.
    """
    if percentage is not None:
        return base * percentage / 100
    return amount


def calculate_charges(item_total: float, charges: Any, hide_charges: bool = False) -> Charges:
    """Resolve each charge category against the item total."""
    if hide_charges:
        return Charges()

    source = Charges.model_validate(charges)
    resolved = {}
    for category in CHARGE_CATEGORIES:
        line = source.line(category)
        resolved[category] = ChargeLine(
            percentage=line.percentage,
            amount=resolve_amount(item_total, line.percentage, line.amount),
            taxable=line.taxable,
        )
    return Charges(**resolved)


def charges_total(charges: Charges) -> float:
    return sum((charges.line(c).amount or 0.0 for c in CHARGE_CATEGORIES), 0.0)


def taxable_base(item_total: float, charges: Charges) -> float:
    """Item total plus exactly the charges flagged taxable."""
    taxable = (charges.line(c) for c in CHARGE_CATEGORIES)
    return item_total + sum((line.amount or 0.0 for line in taxable if line.taxable), 0.0)


def calculate_sales_taxes(base: float, sales_taxes: Any) -> SalesTaxes:
    """Both slots apply to the same base; they are never compounded."""
    source = SalesTaxes.model_validate(sales_taxes)
    resolved = {}
    for slot in SALES_TAX_SLOTS:
        line = source.line(slot)
        resolved[slot] = SalesTaxLine(
            percentage=line.percentage,
            amount=resolve_amount(base, line.percentage, line.amount),
        )
    return SalesTaxes(**resolved)


def tax_total(sales_taxes: SalesTaxes) -> float:
    return sum((sales_taxes.line(s).amount or 0.0 for s in SALES_TAX_SLOTS), 0.0)


def calculate_charges_and_taxes(
    item_total: Any,
    charges: Any = None,
    sales_taxes: Any = None,
    hide_charges: bool = False,
) -> ChargeCalculation:
    """
    Charges first (percentages of the item total), then the taxable base,
    then both sales taxes against that base.

    `charges` / `sales_taxes` may be models or raw mappings in the stored
    breakdown shape; raw values go through the numeric normalizer.
    """
    total = to_number_or_zero(item_total)
    resolved_charges = calculate_charges(total, charges, hide_charges)
    base = taxable_base(total, resolved_charges)
    resolved_taxes = calculate_sales_taxes(base, sales_taxes)

    return ChargeCalculation(
        item_total=total,
        charges=resolved_charges,
        sales_taxes=resolved_taxes,
        charges_total=charges_total(resolved_charges),
        taxable_base=base,
        tax_total=tax_total(resolved_taxes),
    )
