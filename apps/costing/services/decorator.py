"""
Breakdown storage adapter and read-side decoration.

A document's financial breakdown is stored as one JSON blob. Depending on
the driver and on how old the row is, it comes back as a dict, a JSON
string, or under legacy key names; `parse_breakdown` is the single place
that turns any of those into a FinancialBreakdown.

Decoration flattens the blob into the per-field names forms work with.
Charge and tax leaves are read through from storage. Summary totals are
only read through for document types whose profile trusts them; the rest
get None so they are recomputed from the current line items instead of
showing a figure that went stale after an item edit.
"""

import json
import logging
from typing import Any, Dict, Mapping, Tuple

from ..models.breakdown import (
    CHARGE_CATEGORIES,
    SALES_TAX_SLOTS,
    FinancialBreakdown,
    as_mapping,
    first_present,
)
from ..models.document import DocumentProfile
from .numeric import to_number_or_null

logger = logging.getLogger(__name__)

# canonical flat prefix per charge category, then accepted aliases
CHARGE_FIELD_PREFIXES: Dict[str, Tuple[str, ...]] = {
    "freight": ("freight_charges",),
    "packing": ("packing_charges",),
    "custom_duties": ("custom_duties", "custom_duties_charges"),
    "other": ("other_charges",),
}

SALES_TAX_FIELD_PREFIXES: Dict[str, Tuple[str, ...]] = {
    "sales_tax_1": ("sales_tax_1", "sales_tax1"),
    "sales_tax_2": ("sales_tax_2", "sales_tax2"),
}

SUMMARY_KEYS = ("item_total", "charges_total", "tax_total")
TOTAL_KEYS = ("total_po_amount", "total_co_amount", "total_invoice_amount")

FINANCIAL_KEYS = (
    SUMMARY_KEYS
    + TOTAL_KEYS
    + tuple(
        f"{prefix}_{suffix}"
        for prefixes in CHARGE_FIELD_PREFIXES.values()
        for prefix in prefixes
        for suffix in ("percentage", "amount", "taxable")
    )
    + tuple(
        f"{prefix}_{suffix}"
        for prefixes in SALES_TAX_FIELD_PREFIXES.values()
        for prefix in prefixes
        for suffix in ("percentage", "amount")
    )
    + ("financial_breakdown",)
)


def parse_breakdown(raw: Any) -> FinancialBreakdown:
    """
    Parse-or-passthrough for a stored breakdown.

    Accepts a FinancialBreakdown, a mapping, or a JSON string (also a
    string that was JSON-encoded twice). Malformed or non-object input is
    logged and treated as an empty breakdown; this never raises.
    """
    if isinstance(raw, FinancialBreakdown):
        return raw.model_copy(deep=True)

    for _ in range(2):
        if isinstance(raw, bytes):
            raw = raw.decode("utf-8", errors="replace")
        if not isinstance(raw, str):
            break
        if not raw.strip():
            return FinancialBreakdown()
        try:
            raw = json.loads(raw)
        except ValueError:
            logger.warning("Malformed financial_breakdown JSON; using an empty breakdown.")
            return FinancialBreakdown()

    if not isinstance(raw, Mapping):
        if raw is not None:
            logger.warning("financial_breakdown is a %s, not an object; using an empty breakdown.", type(raw).__name__)
        return FinancialBreakdown()

    return FinancialBreakdown.model_validate(raw)


def flatten_breakdown(breakdown: FinancialBreakdown) -> Dict[str, Any]:
    """Charge and tax leaves under their canonical flat field names."""
    flat: Dict[str, Any] = {}
    for category in CHARGE_CATEGORIES:
        prefix = CHARGE_FIELD_PREFIXES[category][0]
        line = breakdown.charges.line(category)
        flat[f"{prefix}_percentage"] = line.percentage
        flat[f"{prefix}_amount"] = line.amount
        flat[f"{prefix}_taxable"] = line.taxable
    for slot in SALES_TAX_SLOTS:
        prefix = SALES_TAX_FIELD_PREFIXES[slot][0]
        line = breakdown.sales_taxes.line(slot)
        flat[f"{prefix}_percentage"] = line.percentage
        flat[f"{prefix}_amount"] = line.amount
    return flat


def has_financial_payload(payload: Any) -> bool:
    data = as_mapping(payload)
    return any(key in data for key in FINANCIAL_KEYS)


def canonical_field_names(payload: Any) -> Dict[str, Any]:
    """
    Copy of a flat payload with alias spellings (custom_duties_charges_*,
    sales_taxN_*) renamed to their canonical field names. A canonical key
    sent alongside its alias wins; an alias sent alone is kept even when None.
    """
    data = dict(as_mapping(payload))
    prefix_groups = list(CHARGE_FIELD_PREFIXES.values()) + list(SALES_TAX_FIELD_PREFIXES.values())
    for prefixes in prefix_groups:
        canonical = prefixes[0]
        for alias in prefixes[1:]:
            for suffix in ("percentage", "amount", "taxable"):
                key = f"{alias}_{suffix}"
                if key not in data:
                    continue
                value = data.pop(key)
                data.setdefault(f"{canonical}_{suffix}", value)
    return data


def _flat_value(payload: Mapping[str, Any], prefixes: Tuple[str, ...], suffix: str) -> Any:
    return first_present(payload, *(f"{prefix}_{suffix}" for prefix in prefixes))


def build_breakdown_from_fields(payload: Any, total_field: str = "total_po_amount") -> FinancialBreakdown:
    """
    Breakdown for a save payload.

    A `financial_breakdown` sent along with the payload wins (object or
    string). Otherwise the breakdown is assembled from the flat form fields,
    accepting the custom_duties_charges_* and sales_taxN_* spellings as
    aliases of the canonical names.
    """
    data = as_mapping(payload)
    stored = first_present(data, "financial_breakdown", "financialBreakdown")
    if stored is not None:
        return parse_breakdown(stored)

    charges = {
        category: {
            "percentage": _flat_value(data, prefixes, "percentage"),
            "amount": _flat_value(data, prefixes, "amount"),
            "taxable": _flat_value(data, prefixes, "taxable"),
        }
        for category, prefixes in CHARGE_FIELD_PREFIXES.items()
    }
    sales_taxes = {
        slot: {
            "percentage": _flat_value(data, prefixes, "percentage"),
            "amount": _flat_value(data, prefixes, "amount"),
        }
        for slot, prefixes in SALES_TAX_FIELD_PREFIXES.items()
    }
    totals = {key: data.get(key) for key in SUMMARY_KEYS}
    totals[total_field] = data.get(total_field)
    for key in TOTAL_KEYS:
        if key in data:
            totals[key] = data[key]

    return FinancialBreakdown(charges=charges, sales_taxes=sales_taxes, totals=totals)


def decorate_record(record: Any, profile: DocumentProfile) -> Dict[str, Any]:
    """
    Flatten a stored document for display. Returns a new dict; the input
    record is not modified.
    """
    decorated = dict(as_mapping(record))
    breakdown = parse_breakdown(first_present(decorated, "financial_breakdown", "financialBreakdown"))
    decorated.pop("financialBreakdown", None)

    decorated.update(flatten_breakdown(breakdown))

    display_total_key = profile.stored_total_keys[0]
    if profile.trust_stored_totals:
        totals = breakdown.totals
        for key in SUMMARY_KEYS:
            decorated[key] = totals.get(key)
        decorated[display_total_key] = next(
            (totals.get(key) for key in profile.stored_total_keys if totals.get(key) is not None),
            None,
        )
    else:
        # must be recomputed live from the line items, never read from storage
        for key in SUMMARY_KEYS + (display_total_key,):
            decorated[key] = None

    for field in profile.numeric_header_fields:
        decorated[field] = to_number_or_null(decorated.get(field))

    if not isinstance(decorated.get("attachments"), list):
        decorated["attachments"] = []
    if profile.removed_items_field and not isinstance(decorated.get(profile.removed_items_field), list):
        decorated[profile.removed_items_field] = []

    decorated["financial_breakdown"] = breakdown.to_storage()
    return decorated
