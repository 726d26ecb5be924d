from typing import Any, Dict, List, Literal, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from ..services.numeric import to_number_or_zero

DocumentKind = Literal["MATERIAL", "LABOR"]


class CostCodeRef(BaseModel):
    model_config = ConfigDict(protected_namespaces=())

    cost_code_uuid: Optional[str] = None
    cost_code_label: Optional[str] = None
    cost_code_number: Optional[str] = None
    cost_code_name: Optional[str] = None
    division_name: Optional[str] = None


class MaterialLineItem(CostCodeRef):
    """Canonical material line as stored under a purchase or change order."""

    uuid: Optional[str] = None
    order_index: int
    source: Optional[str] = None

    item_type_uuid: Optional[str] = None
    item_type_label: Optional[str] = None
    item_uuid: Optional[str] = None
    item_name: str = ""
    description: str = ""
    model_number: str = ""

    location_uuid: Optional[str] = None
    location_label: Optional[str] = None
    unit_uuid: Optional[str] = None
    unit_label: Optional[str] = None

    quantity: Optional[float] = None
    unit_price: Optional[float] = None
    line_total: Optional[float] = None
    total: Optional[float] = None

    approval_checks_uuids: List[Any] = Field(default_factory=list)
    metadata: Dict[str, Any] = Field(default_factory=dict)
    is_active: bool = True

    def line_amount(self, prefix: str = "po") -> float:
        # stored line total wins; otherwise quantity x unit price
        if self.line_total is not None:
            return self.line_total
        return (self.quantity or 0.0) * (self.unit_price or 0.0)

    def to_record(self, prefix: str = "po") -> Dict[str, Any]:
        """Row shape for the items table: quantities are stored under both names."""
        record = self.model_dump(exclude={"line_total"})
        record[f"{prefix}_quantity"] = self.quantity
        record[f"{prefix}_unit_price"] = self.unit_price
        record[f"{prefix}_total"] = self.line_total
        return record


class LaborLineItem(CostCodeRef):
    """Labor line: a budgeted amount and, on change orders, the change amount."""

    uuid: Optional[str] = None
    order_index: int
    description: str = ""
    po_amount: Optional[float] = None
    co_amount: Optional[float] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)
    is_active: bool = True

    def line_amount(self, prefix: str = "po") -> float:
        amount = self.co_amount if prefix == "co" else self.po_amount
        return amount or 0.0

    def to_record(self, prefix: str = "po") -> Dict[str, Any]:
        exclude = set() if prefix == "co" else {"co_amount"}
        return self.model_dump(exclude=exclude)


class InvoiceLineItem(CostCodeRef):
    """Vendor-invoice line, optionally pointing back at the PO line it bills."""

    order_index: int
    po_item_uuid: Optional[str] = None

    item_type_uuid: Optional[str] = None
    item_type_label: Optional[str] = None
    item_uuid: Optional[str] = None
    item_name: str = ""
    description: str = ""
    model_number: str = ""

    location_uuid: Optional[str] = None
    location_label: Optional[str] = None
    unit_uuid: Optional[str] = None
    unit_label: Optional[str] = None

    invoice_quantity: Optional[float] = None
    invoice_unit_price: Optional[float] = None
    invoice_total: Optional[float] = None

    metadata: Dict[str, Any] = Field(default_factory=dict)
    is_active: bool = True

    def line_amount(self, prefix: str = "invoice") -> float:
        if self.invoice_total is not None:
            return self.invoice_total
        return (self.invoice_quantity or 0.0) * (self.invoice_unit_price or 0.0)

    def to_record(self, prefix: str = "invoice") -> Dict[str, Any]:
        return self.model_dump()


LineItem = Union[MaterialLineItem, LaborLineItem, InvoiceLineItem]


class AdvancePaymentCostCode(CostCodeRef):
    gl_account_uuid: Optional[str] = None
    total_amount: float = 0.0
    advance_amount: float = 0.0
    metadata: Dict[str, Any] = Field(default_factory=dict)


class HoldbackCostCode(CostCodeRef):
    gl_account_uuid: Optional[str] = None
    total_amount: float = 0.0
    retainage_amount: float = 0.0
    release_amount: float = 0.0
    metadata: Dict[str, Any] = Field(default_factory=dict)


def line_total_of(item: Union[LineItem, Mapping[str, Any]], kind: DocumentKind = "MATERIAL", prefix: str = "po") -> float:
    """
    An item's contribution to its document's item total.

    Accepts a sanitized model or a raw row as read back from storage. Raw
    rows use the prefixed column names ({prefix}_total, {prefix}_quantity,
    {prefix}_amount, ...). Never raises; unusable values count as 0.
    """
    if isinstance(item, BaseModel):
        return item.line_amount(prefix)
    if not isinstance(item, Mapping):
        return 0.0

    if kind == "LABOR":
        return to_number_or_zero(item.get(f"{prefix}_amount"))

    total = item.get(f"{prefix}_total")
    if total is not None and total != "":
        return to_number_or_zero(total)
    quantity = item.get(f"{prefix}_quantity", item.get("quantity"))
    unit_price = item.get(f"{prefix}_unit_price", item.get("unit_price"))
    return to_number_or_zero(quantity) * to_number_or_zero(unit_price)
