from typing import Any, Dict, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from ..services.numeric import to_boolean, to_number_or_null

CHARGE_CATEGORIES = ("freight", "packing", "custom_duties", "other")
SALES_TAX_SLOTS = ("sales_tax_1", "sales_tax_2")


def as_mapping(data: Any) -> Mapping[str, Any]:
    """Unwrap models and replace anything that is not a mapping with {}."""
    if isinstance(data, BaseModel):
        return data.model_dump()
    if isinstance(data, Mapping):
        return data
    return {}


def first_present(data: Mapping[str, Any], *keys: str) -> Any:
    """Value of the first key that is present and not None."""
    for key in keys:
        value = data.get(key)
        if value is not None:
            return value
    return None


def _drop_none(values: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in values.items() if v is not None}


class ChargeLine(BaseModel):
    percentage: Optional[float] = None
    amount: Optional[float] = None
    taxable: bool = False

    @model_validator(mode="before")
    @classmethod
    def _coerce(cls, data: Any) -> Dict[str, Any]:
        data = as_mapping(data)
        return {
            "percentage": to_number_or_null(data.get("percentage")),
            "amount": to_number_or_null(data.get("amount")),
            "taxable": to_boolean(data.get("taxable")),
        }


class SalesTaxLine(BaseModel):
    percentage: Optional[float] = None
    amount: Optional[float] = None

    @model_validator(mode="before")
    @classmethod
    def _coerce(cls, data: Any) -> Dict[str, Any]:
        data = as_mapping(data)
        return {
            "percentage": to_number_or_null(data.get("percentage")),
            "amount": to_number_or_null(data.get("amount")),
        }


class Charges(BaseModel):
    freight: ChargeLine = Field(default_factory=ChargeLine)
    packing: ChargeLine = Field(default_factory=ChargeLine)
    custom_duties: ChargeLine = Field(default_factory=ChargeLine)
    other: ChargeLine = Field(default_factory=ChargeLine)

    # older rows stored customs under "custom"
    @model_validator(mode="before")
    @classmethod
    def _legacy_keys(cls, data: Any) -> Dict[str, Any]:
        data = as_mapping(data)
        return _drop_none({
            "freight": data.get("freight"),
            "packing": data.get("packing"),
            "custom_duties": first_present(data, "custom_duties", "custom"),
            "other": data.get("other"),
        })

    def line(self, category: str) -> ChargeLine:
        return getattr(self, category)


class SalesTaxes(BaseModel):
    sales_tax_1: SalesTaxLine = Field(default_factory=SalesTaxLine)
    sales_tax_2: SalesTaxLine = Field(default_factory=SalesTaxLine)

    @model_validator(mode="before")
    @classmethod
    def _legacy_keys(cls, data: Any) -> Dict[str, Any]:
        data = as_mapping(data)
        return _drop_none({
            "sales_tax_1": first_present(data, "sales_tax_1", "salesTax1"),
            "sales_tax_2": first_present(data, "sales_tax_2", "salesTax2"),
        })

    def line(self, slot: str) -> SalesTaxLine:
        return getattr(self, slot)


class Totals(BaseModel):
    """
    Aggregate figures of a breakdown.

    Besides the three sums, a totals block carries the document-specific
    grand total under its own key (total_po_amount, total_co_amount,
    total_invoice_amount, amount); those land in the model extras.
    """

    model_config = ConfigDict(extra="allow")

    item_total: Optional[float] = None
    charges_total: Optional[float] = None
    tax_total: Optional[float] = None

    @model_validator(mode="before")
    @classmethod
    def _coerce(cls, data: Any) -> Dict[str, Any]:
        data = as_mapping(data)
        return {str(key): to_number_or_null(value) for key, value in data.items()}

    def get(self, key: str) -> Optional[float]:
        if key in type(self).model_fields:
            return getattr(self, key)
        return (self.model_extra or {}).get(key)


class FinancialBreakdown(BaseModel):
    charges: Charges = Field(default_factory=Charges)
    sales_taxes: SalesTaxes = Field(default_factory=SalesTaxes)
    totals: Totals = Field(default_factory=Totals)

    @model_validator(mode="before")
    @classmethod
    def _legacy_keys(cls, data: Any) -> Dict[str, Any]:
        data = as_mapping(data)
        return _drop_none({
            "charges": first_present(data, "charges", "charges_breakdown"),
            "sales_taxes": first_present(data, "sales_taxes", "salesTaxes", "taxes"),
            "totals": first_present(data, "totals", "total_breakdown"),
        })

    def to_storage(self) -> Dict[str, Any]:
        """Plain dict written back to the JSON column (never a string)."""
        return self.model_dump()
