import logging
from dataclasses import dataclass
from typing import Any, Dict, List

from ..models.breakdown import CHARGE_CATEGORIES, SALES_TAX_SLOTS, FinancialBreakdown, as_mapping
from ..models.document import DocumentProfile
from ..models.line_item import DocumentKind, LineItem
from .charges import ChargeCalculation, calculate_charges_and_taxes
from .decorator import build_breakdown_from_fields, flatten_breakdown
from .numeric import to_number_or_null, to_number_or_zero
from .sanitizer import (
    advance_payment_total,
    holdback_release_total,
    holdback_retainage_total,
    sanitize_attachments,
    sanitize_items,
)
from .totals import ReconciledTotals, read_persisted_override, reconcile_totals

logger = logging.getLogger(__name__)

ADVANCE_PAYMENT_INVOICE_TYPE = "AGAINST_ADVANCE_PAYMENT"


@dataclass
class BreakdownResult:
    breakdown: FinancialBreakdown
    calculation: ChargeCalculation
    totals: ReconciledTotals


@dataclass
class RecomputedDocument:
    record: Dict[str, Any]
    kind: DocumentKind
    items: List[LineItem]
    result: BreakdownResult


def compute_breakdown(
    item_total: Any,
    charges: Any = None,
    sales_taxes: Any = None,
    *,
    hide_charges: bool = False,
    allow_edit_total: bool = False,
    total_field: str = "total_po_amount",
    advance_payment_deduction: Any = 0,
    holdback_deduction: Any = 0,
    persisted_override: Any = None,
) -> BreakdownResult:
    """
    Item total + charge/tax inputs -> the canonical breakdown to persist.

    The document total lands in totals[total_field]. Editable-total
    documents also carry the override under total_invoice_amount and
    amount so it survives the next load.
    """
    calculation = calculate_charges_and_taxes(item_total, charges, sales_taxes, hide_charges)
    totals = reconcile_totals(
        calculation.item_total,
        calculation.charges_total,
        calculation.tax_total,
        advance_payment_deduction=advance_payment_deduction,
        holdback_deduction=holdback_deduction,
        allow_edit_total=allow_edit_total,
        persisted_override=persisted_override,
    )

    totals_block: Dict[str, Any] = {
        "item_total": calculation.item_total,
        "charges_total": calculation.charges_total,
        "tax_total": calculation.tax_total,
        total_field: totals.document_total,
    }
    if allow_edit_total:
        totals_block["total_invoice_amount"] = totals.override
        totals_block["amount"] = totals.override

    breakdown = FinancialBreakdown(
        charges=calculation.charges,
        sales_taxes=calculation.sales_taxes,
        totals=totals_block,
    )
    return BreakdownResult(breakdown=breakdown, calculation=calculation, totals=totals)


def build_labor_breakdown(labor_total: Any, total_field: str = "total_po_amount") -> FinancialBreakdown:
    """
    Labor documents carry no charges or taxes: every slot is present with
    a 0 percentage and no amount, and the document total is the labor total.
    """
    total = to_number_or_zero(labor_total)
    totals: Dict[str, Any] = {
        "item_total": total,
        "charges_total": 0.0,
        "tax_total": 0.0,
        total_field: total,
    }
    if total_field == "total_co_amount":
        # change-order readers still fall back to total_po_amount
        totals["total_po_amount"] = total

    return FinancialBreakdown(
        charges={c: {"percentage": 0, "amount": None, "taxable": False} for c in CHARGE_CATEGORIES},
        sales_taxes={s: {"percentage": 0, "amount": None} for s in SALES_TAX_SLOTS},
        totals=totals,
    )


def document_kind(document: Any, profile: DocumentProfile) -> DocumentKind:
    if not profile.kind_field:
        return "MATERIAL"
    value = as_mapping(document).get(profile.kind_field)
    if value is not None and str(value).strip().upper() == "LABOR":
        return "LABOR"
    return "MATERIAL"


def items_key(profile: DocumentProfile, kind: DocumentKind) -> str:
    if kind == "LABOR":
        return f"labor_{profile.prefix}_items"
    return f"{profile.prefix}_items"


def items_total(items: List[LineItem], prefix: str = "po") -> float:
    return sum((item.line_amount(prefix) for item in items if item.is_active), 0.0)


def resolve_deductions(document: Any) -> Dict[str, float]:
    """
    Deductions for a document: explicit amounts win, otherwise they are
    summed from the advance-payment / holdback cost-code rows.
    """
    data = as_mapping(document)
    advance = to_number_or_null(data.get("advance_payment_deduction"))
    if advance is None:
        advance = advance_payment_total(data.get("advance_payment_cost_codes"))
    holdback = to_number_or_null(data.get("holdback_deduction"))
    if holdback is None:
        holdback = holdback_retainage_total(data.get("holdback_cost_codes"))
    return {"advance_payment_deduction": advance, "holdback_deduction": holdback}


def _is_advance_payment_invoice(data: Dict[str, Any], profile: DocumentProfile) -> bool:
    invoice_type = data.get("invoice_type") or data.get("invoiceType")
    return profile.hide_charges and str(invoice_type or "").upper() == ADVANCE_PAYMENT_INVOICE_TYPE


def recompute_document(document: Any, profile: DocumentProfile) -> RecomputedDocument:
    """
    Rebuild a document's breakdown from its current header, charge/tax
    fields and line items. Runs on every save; the returned record carries
    the sanitized items, the canonical breakdown and its flat fields.
    """
    data = dict(as_mapping(document))
    kind = document_kind(data, profile)
    key = items_key(profile, kind)
    items = sanitize_items(data.get(key), kind, profile.prefix)
    item_total = items_total(items, profile.prefix)

    deductions = resolve_deductions(data)
    if _is_advance_payment_invoice(data, profile):
        # the advance rows are what this invoice bills, not a deduction from it
        rows = data.get("advance_payment_cost_codes")
        if isinstance(rows, list) and rows:
            item_total = advance_payment_total(rows)
        else:
            item_total = to_number_or_zero(data.get("amount"))
        deductions["advance_payment_deduction"] = 0.0

    if kind == "LABOR":
        result = BreakdownResult(
            breakdown=build_labor_breakdown(item_total, profile.total_field),
            calculation=calculate_charges_and_taxes(item_total, hide_charges=True),
            totals=reconcile_totals(item_total, 0, 0),
        )
    else:
        stored = build_breakdown_from_fields(data, profile.total_field)
        override = None
        if profile.allow_edit_total:
            # an edited header total wins over the one saved in the breakdown
            override = to_number_or_null(data.get(profile.total_field))
            if override is None:
                override = read_persisted_override(stored)
        result = compute_breakdown(
            item_total,
            stored.charges,
            stored.sales_taxes,
            hide_charges=profile.hide_charges,
            allow_edit_total=profile.allow_edit_total,
            total_field=profile.total_field,
            persisted_override=override,
            **deductions,
        )

    calculation = result.calculation
    data.update(flatten_breakdown(result.breakdown))
    data.update(
        item_total=calculation.item_total,
        charges_total=calculation.charges_total,
        tax_total=calculation.tax_total,
    )
    data[profile.total_field] = result.totals.document_total
    data[key] = [item.to_record(profile.prefix) for item in items]
    data["attachments"] = sanitize_attachments(data.get("attachments"))
    # released retainage is reported alongside the totals, never deducted
    data["holdback_release_total"] = holdback_release_total(data.get("holdback_cost_codes"))
    data["financial_breakdown"] = result.breakdown.to_storage()
    data.pop("financialBreakdown", None)

    logger.debug(
        "Recomputed %s %s: items=%s total=%s",
        profile.name,
        data.get("uuid"),
        calculation.item_total,
        result.totals.document_total,
    )
    return RecomputedDocument(record=data, kind=kind, items=items, result=result)
