from datetime import datetime
from typing import Dict, Literal, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

DocumentStatus = Literal["Draft", "Ready", "Approved", "Rejected"]


class AuditEntry(BaseModel):
    timestamp: datetime
    user: Optional[str] = None
    action: str
    description: str = ""


class DocumentProfile(BaseModel):
    """
    How one document type uses the breakdown engine.

    The engine only looks at these flags; it has no notion of "purchase
    order" or "invoice" of its own.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    # column prefix of item quantities/totals: po_quantity, co_total, invoice_total, ...
    prefix: str
    total_field: str
    # where the grand total sits inside breakdown.totals, first match wins
    stored_total_keys: Tuple[str, ...]
    hide_charges: bool = False
    allow_edit_total: bool = False
    trust_stored_totals: bool = False
    removed_items_field: Optional[str] = None
    numeric_header_fields: Tuple[str, ...] = ()
    # MATERIAL / LABOR discriminator column, None when items are always material
    kind_field: Optional[str] = None

    table: str
    material_items_table: str
    labor_items_table: Optional[str] = None
    parent_column: str


PURCHASE_ORDER = DocumentProfile(
    name="purchase_order",
    prefix="po",
    total_field="total_po_amount",
    stored_total_keys=("total_po_amount",),
    removed_items_field="removed_po_items",
    kind_field="po_type",
    table="purchase_order_forms",
    material_items_table="purchase_order_items_list",
    labor_items_table="labor_purchase_order_items_list",
    parent_column="purchase_order_uuid",
)

CHANGE_ORDER = DocumentProfile(
    name="change_order",
    prefix="co",
    total_field="total_co_amount",
    stored_total_keys=("total_co_amount", "total_po_amount"),
    trust_stored_totals=True,
    removed_items_field="removed_co_items",
    kind_field="co_type",
    table="change_orders",
    material_items_table="change_order_items_list",
    labor_items_table="labor_change_order_items_list",
    parent_column="change_order_uuid",
)

VENDOR_INVOICE = DocumentProfile(
    name="vendor_invoice",
    prefix="invoice",
    total_field="amount",
    stored_total_keys=("total_invoice_amount", "amount"),
    allow_edit_total=True,
    trust_stored_totals=True,
    numeric_header_fields=("amount", "holdback"),
    table="vendor_invoices",
    material_items_table="purchase_order_invoice_items_list",
    parent_column="vendor_invoice_uuid",
)

ADVANCE_PAYMENT_INVOICE = VENDOR_INVOICE.model_copy(
    update={"name": "advance_payment_invoice", "hide_charges": True, "allow_edit_total": False}
)

PROFILES: Dict[str, DocumentProfile] = {
    profile.name: profile
    for profile in (PURCHASE_ORDER, CHANGE_ORDER, VENDOR_INVOICE, ADVANCE_PAYMENT_INVOICE)
}


class StatusChange(BaseModel):
    status: DocumentStatus
    user: Optional[str] = None
    description: str = Field("", description="Free-text reason recorded in the audit log")
