import logging
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

from ..models.breakdown import Totals
from .decorator import parse_breakdown
from .numeric import to_number_or_null, to_number_or_zero

logger = logging.getLogger(__name__)

OVERRIDE_KEYS = ("total_invoice_amount", "amount")


@dataclass
class ReconciledTotals:
    computed_total: float
    deductions: float
    final_total: float
    # manual override in effect (editable-total documents only)
    override: Optional[float]
    # value for the document's designated total field
    document_total: Optional[float]
    # prefill for the editable total; None means the field starts empty
    editable_total: Optional[float]

    @property
    def override_applied(self) -> bool:
        return self.override is not None


def read_persisted_override(breakdown: Any) -> Optional[float]:
    """
    The manually entered total saved with a breakdown, if any.

    totals.total_invoice_amount wins, totals.amount is the fallback. An
    explicit 0 is a real override; only a missing value means "never set".
    """
    totals = parse_breakdown(breakdown).totals
    for key in OVERRIDE_KEYS:
        value = totals.get(key)
        if value is not None:
            return value
    return None


def reconcile_totals(
    item_total: Any,
    charges_total: Any,
    tax_total: Any,
    advance_payment_deduction: Any = 0,
    holdback_deduction: Any = 0,
    allow_edit_total: bool = False,
    persisted_override: Any = None,
) -> ReconciledTotals:
    """
    Combine the three sums and the deductions into the payable total.

    final_total = max(0, items + charges + taxes - advance - holdback)

    Documents that allow editing their total (partial-payment invoices)
    keep a persisted override as their total; otherwise they start with an
    empty edit field. All other documents always carry final_total and
    never consult an override.
    """
    computed = to_number_or_zero(item_total) + to_number_or_zero(charges_total) + to_number_or_zero(tax_total)
    deductions = to_number_or_zero(advance_payment_deduction) + to_number_or_zero(holdback_deduction)
    final_total = max(0.0, computed - deductions)

    if not allow_edit_total:
        return ReconciledTotals(
            computed_total=computed,
            deductions=deductions,
            final_total=final_total,
            override=None,
            document_total=final_total,
            editable_total=None,
        )

    override = to_number_or_null(persisted_override)
    if override is not None and override != final_total:
        logger.debug("Keeping manual total %s over computed %s", override, final_total)
    return ReconciledTotals(
        computed_total=computed,
        deductions=deductions,
        final_total=final_total,
        override=override,
        document_total=override,
        editable_total=override,
    )


def apply_total_edit(document: Mapping[str, Any], value: Any, total_field: str = "amount") -> Dict[str, Any]:
    """
    Record a user-edited total on an editable-total document.

    The value is written to the document's total field and to the
    breakdown totals (total_invoice_amount and amount) so the next load
    reads the same override back. Returns a new document dict.
    """
    number = to_number_or_null(value)
    breakdown = parse_breakdown(document.get("financial_breakdown"))

    totals = breakdown.totals.model_dump()
    totals.update({"total_invoice_amount": number, "amount": number, total_field: number})
    breakdown = breakdown.model_copy(update={"totals": Totals.model_validate(totals)})

    updated = dict(document)
    updated[total_field] = number
    updated["financial_breakdown"] = breakdown.to_storage()
    return updated
