"""
Proportional allocation of a document's charges and taxes to its lines.

Read-only reporting: a line's expected (landed) cost is its own total plus
its share of every charge and of the combined sales taxes, the share being
the line's fraction of the item total. Missing, zero or negative item
totals allocate nothing; nothing here raises or returns NaN/Infinity.
"""

import math
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Optional

from ..models.breakdown import FinancialBreakdown, as_mapping
from ..models.line_item import DocumentKind, line_total_of
from .decorator import CHARGE_FIELD_PREFIXES, SALES_TAX_FIELD_PREFIXES, flatten_breakdown, parse_breakdown
from .numeric import to_boolean, to_number_or_null, to_number_or_zero


def is_active(item: Any) -> bool:
    """Rows flagged is_active = false are soft-deleted and take no part in totals."""
    data = item.model_dump() if hasattr(item, "model_dump") else as_mapping(item)
    value = data.get("is_active")
    return True if value is None else to_boolean(value)


@dataclass
class AllocationBasis:
    item_total: float = 0.0
    freight: float = 0.0
    packing: float = 0.0
    custom_duties: float = 0.0
    other: float = 0.0
    # sales tax 1 + sales tax 2, allocated as one figure
    sales_tax: float = 0.0

    @property
    def charges_total(self) -> float:
        return self.freight + self.packing + self.custom_duties + self.other

    @classmethod
    def from_breakdown(cls, breakdown: Any) -> "AllocationBasis":
        fb = breakdown if isinstance(breakdown, FinancialBreakdown) else parse_breakdown(breakdown)
        return cls(
            item_total=fb.totals.item_total or 0.0,
            freight=fb.charges.freight.amount or 0.0,
            packing=fb.charges.packing.amount or 0.0,
            custom_duties=fb.charges.custom_duties.amount or 0.0,
            other=fb.charges.other.amount or 0.0,
            sales_tax=(fb.sales_taxes.sales_tax_1.amount or 0.0) + (fb.sales_taxes.sales_tax_2.amount or 0.0),
        )

    @classmethod
    def from_record(
        cls,
        record: Any,
        items: Optional[Iterable[Any]] = None,
        kind: DocumentKind = "MATERIAL",
        prefix: str = "po",
    ) -> "AllocationBasis":
        """
        Basis from a document record, decorated (flat) or as stored.

        Flat fields on the record win over the stored breakdown. The item
        total comes from the flat item_total, then the stored
        totals.item_total; only when both are missing (decorated purchase
        orders) is it re-derived from the active items given.
        """
        data = as_mapping(record)
        breakdown = parse_breakdown(data.get("financial_breakdown"))
        flat = flatten_breakdown(breakdown)
        for prefixes in list(CHARGE_FIELD_PREFIXES.values()) + list(SALES_TAX_FIELD_PREFIXES.values()):
            for alias in prefixes:
                value = to_number_or_null(data.get(f"{alias}_amount"))
                if value is not None:
                    flat[f"{prefixes[0]}_amount"] = value
                    break

        item_total = to_number_or_null(data.get("item_total"))
        if item_total is None:
            item_total = breakdown.totals.item_total
        if item_total is None and items is not None:
            item_total = sum((line_total_of(item, kind, prefix) for item in items if is_active(item)), 0.0)

        return cls(
            item_total=item_total or 0.0,
            freight=to_number_or_zero(flat.get("freight_charges_amount")),
            packing=to_number_or_zero(flat.get("packing_charges_amount")),
            custom_duties=to_number_or_zero(flat.get("custom_duties_amount")),
            other=to_number_or_zero(flat.get("other_charges_amount")),
            sales_tax=to_number_or_zero(flat.get("sales_tax_1_amount"))
            + to_number_or_zero(flat.get("sales_tax_2_amount")),
        )


@dataclass
class ExpectedCost:
    line_total: float
    freight: float
    packing: float
    custom_duties: float
    other: float
    sales_tax: float

    @property
    def expected_cost(self) -> float:
        return self.line_total + self.freight + self.packing + self.custom_duties + self.other + self.sales_tax


def item_share(line_total: float, item_total: float, amount: float) -> float:
    """(line_total / item_total) * amount, or 0 when item_total is not positive."""
    if not item_total or item_total <= 0:
        return 0.0
    share = (line_total / item_total) * amount
    return share if math.isfinite(share) else 0.0


def expected_cost_breakdown(
    item: Any,
    basis: AllocationBasis,
    kind: DocumentKind = "MATERIAL",
    prefix: str = "po",
) -> ExpectedCost:
    line_total = line_total_of(item, kind, prefix)
    return ExpectedCost(
        line_total=line_total,
        freight=item_share(line_total, basis.item_total, basis.freight),
        packing=item_share(line_total, basis.item_total, basis.packing),
        custom_duties=item_share(line_total, basis.item_total, basis.custom_duties),
        other=item_share(line_total, basis.item_total, basis.other),
        sales_tax=item_share(line_total, basis.item_total, basis.sales_tax),
    )


def expected_line_cost(item: Any, basis: AllocationBasis, kind: DocumentKind = "MATERIAL", prefix: str = "po") -> float:
    return expected_cost_breakdown(item, basis, kind, prefix).expected_cost


def total_expected_costs(
    document: Any,
    kind: DocumentKind = "MATERIAL",
    prefix: str = "po",
    items_field: str = "items",
) -> float:
    """Sum of expected line costs over document[items_field]; 0 without items."""
    data = as_mapping(document)
    items = data.get(items_field)
    if not isinstance(items, list) or not items:
        return 0.0
    basis = AllocationBasis.from_record(data, items, kind, prefix)
    return sum((expected_line_cost(item, basis, kind, prefix) for item in items if is_active(item)), 0.0)


def allocate_by_cost_code(
    items: Iterable[Any],
    kind: DocumentKind = "MATERIAL",
    prefix: str = "po",
    charges_and_taxes: Any = 0,
) -> Dict[str, float]:
    """
    Roll line totals up by cost code, each cost code also taking its
    proportional share of the document's charges + taxes. Lines without a
    cost code take no part, including in the share denominator.
    """
    amounts: Dict[str, float] = {}
    for item in items or ():
        data = item.model_dump() if hasattr(item, "model_dump") else as_mapping(item)
        cost_code = data.get("cost_code_uuid")
        if not cost_code or not is_active(item):
            continue
        amounts[cost_code] = amounts.get(cost_code, 0.0) + line_total_of(item, kind, prefix)

    total = sum(amounts.values(), 0.0)
    extra = to_number_or_zero(charges_and_taxes)
    return {code: amount + item_share(amount, total, extra) for code, amount in amounts.items()}
