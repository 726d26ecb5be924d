"""
Line-item sanitizing.

Frontend payloads arrive in whatever shape the form that produced them
used: fields may sit on the item itself, inside its `metadata` bag, or
only be derivable from another field. Each canonical field is described by
a FieldRule listing its sources in order of precedence, so the precedence
is declared once per field instead of being buried in chained lookups.

All sanitizers are pure and total: `{}` produces a fully populated record.
"""

from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from ..models.breakdown import as_mapping
from ..models.line_item import (
    AdvancePaymentCostCode,
    DocumentKind,
    HoldbackCostCode,
    InvoiceLineItem,
    LaborLineItem,
    LineItem,
    MaterialLineItem,
)
from .numeric import to_number_or_null

METADATA_PREFIX = "metadata."


def to_text(value: Any) -> str:
    return value if isinstance(value, str) else str(value)


@dataclass(frozen=True)
class FieldRule:
    """
    Sources for one canonical field, highest precedence first.

    Candidates are property names on the raw item; a "metadata." prefix
    looks the name up in the item's metadata bag instead. The first source
    holding a value wins and is passed through `coerce`.
    """

    target: str
    candidates: Tuple[str, ...]
    default: Any = None
    coerce: Optional[Callable[[Any], Any]] = None
    blank_is_missing: bool = False

    def resolve(self, item: Mapping[str, Any], metadata: Mapping[str, Any]) -> Any:
        for candidate in self.candidates:
            if candidate.startswith(METADATA_PREFIX):
                value = metadata.get(candidate[len(METADATA_PREFIX):])
            else:
                value = item.get(candidate)
            if value is None or (self.blank_is_missing and value == ""):
                continue
            if self.coerce is None:
                return value
            coerced = self.coerce(value)
            return self.default if coerced is None else coerced
        return self.default


def text_rule(target: str, *candidates: str, default: Any = None, blank_is_missing: bool = False) -> FieldRule:
    return FieldRule(target, candidates, default=default, coerce=to_text, blank_is_missing=blank_is_missing)


def number_rule(target: str, *candidates: str) -> FieldRule:
    return FieldRule(target, candidates, coerce=to_number_or_null)


def apply_rules(rules: Sequence[FieldRule], item: Mapping[str, Any], metadata: Mapping[str, Any]) -> Dict[str, Any]:
    return {rule.target: rule.resolve(item, metadata) for rule in rules}


COST_CODE_RULES: Tuple[FieldRule, ...] = (
    text_rule("cost_code_uuid", "cost_code_uuid", "metadata.cost_code_uuid"),
    text_rule("cost_code_label", "cost_code_label", "metadata.cost_code_label", "metadata.cost_code"),
    text_rule("cost_code_number", "cost_code_number", "metadata.cost_code_number"),
    text_rule("cost_code_name", "cost_code_name", "metadata.cost_code_name"),
    text_rule("division_name", "division_name", "metadata.division_name"),
)

UNIT_RULES: Tuple[FieldRule, ...] = (
    text_rule("unit_uuid", "unit_uuid", "uom_uuid", "metadata.unit_uuid"),
    text_rule("unit_label", "unit_label", "uom_label", "metadata.unit_label", "metadata.unit"),
)

MATERIAL_RULES: Tuple[FieldRule, ...] = COST_CODE_RULES + UNIT_RULES + (
    text_rule("uuid", "uuid", "id"),
    text_rule("source", "source"),
    text_rule("item_type_uuid", "item_type_uuid"),
    text_rule("item_type_label", "item_type_label", "metadata.item_type_label"),
    text_rule("item_uuid", "item_uuid"),
    # description is the last-resort display name
    text_rule("item_name", "name", "item_name", "metadata.item_name", "description", default=""),
    text_rule("description", "description", default=""),
    text_rule("model_number", "model_number", "metadata.model_number", default=""),
    text_rule("location_uuid", "location_uuid"),
    text_rule("location_label", "location", "location_label", "metadata.location_display"),
    number_rule("total", "total"),
)

INVOICE_RULES: Tuple[FieldRule, ...] = UNIT_RULES + (
    text_rule("po_item_uuid", "po_item_uuid", blank_is_missing=True),
    text_rule("cost_code_uuid", "cost_code_uuid", blank_is_missing=True),
    text_rule("cost_code_label", "cost_code_label", "metadata.cost_code_label"),
    text_rule("cost_code_number", "cost_code_number", "metadata.cost_code_number"),
    text_rule("cost_code_name", "cost_code_name", "metadata.cost_code_name"),
    text_rule("division_name", "division_name", "metadata.division_name"),
    text_rule("item_type_uuid", "item_type_uuid", blank_is_missing=True),
    text_rule("item_type_label", "item_type_label", "metadata.item_type_label"),
    text_rule("item_uuid", "item_uuid", blank_is_missing=True),
    text_rule("item_name", "item_name", "metadata.item_name", "description", default=""),
    text_rule("description", "description", default=""),
    text_rule("model_number", "model_number", "metadata.model_number", default=""),
    text_rule("location_uuid", "location_uuid", blank_is_missing=True),
    text_rule("location_label", "location", "location_label", "metadata.location_label"),
    number_rule("invoice_quantity", "invoice_quantity"),
    number_rule("invoice_unit_price", "invoice_unit_price"),
    number_rule("invoice_total", "invoice_total"),
)

LABOR_RULES: Tuple[FieldRule, ...] = COST_CODE_RULES + (
    text_rule("uuid", "uuid", "id"),
    text_rule("description", "description", default=""),
    number_rule("po_amount", "po_amount"),
    number_rule("co_amount", "co_amount"),
)


def material_amount_rules(prefix: str) -> Tuple[FieldRule, ...]:
    return (
        number_rule("quantity", f"{prefix}_quantity"),
        number_rule("unit_price", f"{prefix}_unit_price"),
        number_rule("line_total", f"{prefix}_total"),
    )


def resolve_metadata(item: Mapping[str, Any], *keys: str) -> Dict[str, Any]:
    for key in keys or ("metadata", "display_metadata", "displayMetadata"):
        value = item.get(key)
        if isinstance(value, Mapping):
            return dict(value)
    return {}


def resolve_order_index(item: Mapping[str, Any], index: int) -> int:
    number = to_number_or_null(item.get("order_index"))
    return index if number is None else int(number)


def resolve_approval_checks(item: Mapping[str, Any]) -> List[Any]:
    # the form sends approval_checks, stored rows carry approval_checks_uuids
    for key in ("approval_checks", "approval_checks_uuids"):
        value = item.get(key)
        if isinstance(value, (list, tuple)) and len(value) > 0:
            return list(value)
    return []


def sanitize_material_item(raw: Any, index: int, prefix: str = "po") -> MaterialLineItem:
    item = as_mapping(raw)
    metadata = resolve_metadata(item)
    values = apply_rules(MATERIAL_RULES + material_amount_rules(prefix), item, metadata)
    values.update(
        order_index=resolve_order_index(item, index),
        approval_checks_uuids=resolve_approval_checks(item),
        metadata=metadata,
        is_active=True,
    )
    return MaterialLineItem(**values)


def sanitize_labor_item(raw: Any, index: int, prefix: str = "po") -> LaborLineItem:
    item = as_mapping(raw)
    metadata = resolve_metadata(item)
    values = apply_rules(LABOR_RULES, item, metadata)
    if prefix != "co":
        values["co_amount"] = None
    values.update(order_index=resolve_order_index(item, index), metadata=metadata, is_active=True)
    return LaborLineItem(**values)


def sanitize_invoice_item(raw: Any, index: int) -> InvoiceLineItem:
    item = as_mapping(raw)
    metadata = resolve_metadata(item, "metadata")
    values = apply_rules(INVOICE_RULES, item, metadata)
    values.update(order_index=resolve_order_index(item, index), metadata=metadata, is_active=True)
    return InvoiceLineItem(**values)


def sanitize_items(raw_items: Any, kind: DocumentKind = "MATERIAL", prefix: str = "po") -> List[LineItem]:
    """Sanitize a whole item list; order_index defaults to list position."""
    if not isinstance(raw_items, (list, tuple)):
        return []
    if prefix == "invoice":
        return [sanitize_invoice_item(raw, index) for index, raw in enumerate(raw_items)]
    if kind == "LABOR":
        return [sanitize_labor_item(raw, index, prefix) for index, raw in enumerate(raw_items)]
    return [sanitize_material_item(raw, index, prefix) for index, raw in enumerate(raw_items)]


def sanitize_attachments(attachments: Any) -> List[Any]:
    """Drop in-memory upload payloads before an attachments list is stored."""
    if not isinstance(attachments, list):
        return []
    cleaned = []
    for attachment in attachments:
        if isinstance(attachment, Mapping):
            cleaned.append({k: v for k, v in attachment.items() if k not in ("file", "fileData")})
        else:
            cleaned.append(attachment)
    return cleaned


def _first_truthy(item: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        value = item.get(key)
        if value:
            return value
    return None


def _cost_code_fields(item: Mapping[str, Any]) -> Dict[str, Any]:
    fields = {}
    for key in ("cost_code_uuid", "cost_code_label", "cost_code_number", "cost_code_name", "gl_account_uuid"):
        value = _first_truthy(item, key)
        fields[key] = None if value is None else to_text(value)
    metadata = item.get("metadata")
    fields["metadata"] = dict(metadata) if isinstance(metadata, Mapping) and metadata else {}
    return fields


def _amount(item: Mapping[str, Any], camel: str, snake: str) -> float:
    return to_number_or_null(_first_truthy(item, camel, snake)) or 0.0


def sanitize_advance_payment_cost_code(raw: Any) -> AdvancePaymentCostCode:
    item = as_mapping(raw)
    return AdvancePaymentCostCode(
        **_cost_code_fields(item),
        total_amount=_amount(item, "totalAmount", "total_amount"),
        advance_amount=_amount(item, "advanceAmount", "advance_amount"),
    )


def sanitize_holdback_cost_code(raw: Any) -> HoldbackCostCode:
    item = as_mapping(raw)
    return HoldbackCostCode(
        **_cost_code_fields(item),
        total_amount=_amount(item, "totalAmount", "total_amount"),
        retainage_amount=_amount(item, "retainageAmount", "retainage_amount"),
        release_amount=_amount(item, "releaseAmount", "release_amount"),
    )


def _rows(rows: Any) -> List[Any]:
    return list(rows) if isinstance(rows, (list, tuple)) else []


def advance_payment_total(rows: Iterable[Any]) -> float:
    """Advance already paid against the order: the advance-payment deduction."""
    return sum((sanitize_advance_payment_cost_code(row).advance_amount for row in _rows(rows)), 0.0)


def holdback_retainage_total(rows: Iterable[Any]) -> float:
    """Amount retained across cost codes: the holdback deduction."""
    return sum((sanitize_holdback_cost_code(row).retainage_amount for row in _rows(rows)), 0.0)


def holdback_release_total(rows: Iterable[Any]) -> float:
    return sum((sanitize_holdback_cost_code(row).release_amount for row in _rows(rows)), 0.0)
