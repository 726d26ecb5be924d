from typing import Any, Dict, List, Literal

from fastapi import APIRouter, Body, HTTPException
from pydantic import BaseModel, Field

from ..models.breakdown import Charges, SalesTaxes
from ..models.document import PROFILES
from ..services.allocation import (
    AllocationBasis,
    allocate_by_cost_code,
    expected_cost_breakdown,
    total_expected_costs,
)
from ..services.decorator import decorate_record
from ..services.engine import compute_breakdown

router = APIRouter(prefix="/breakdowns", tags=["breakdowns"])


class ComputeRequest(BaseModel):
    # numbers may arrive as strings ("1,000"); the engine normalizes them
    item_total: Any = None
    charges: Charges = Field(default_factory=Charges)
    sales_taxes: SalesTaxes = Field(default_factory=SalesTaxes)
    hide_charges: bool = False
    allow_edit_total: bool = False
    total_field: str = "total_po_amount"
    advance_payment_deduction: Any = None
    holdback_deduction: Any = None
    persisted_override: Any = None


class ExpectedCostsRequest(BaseModel):
    document: Dict[str, Any] = Field(default_factory=dict)
    items: List[Dict[str, Any]] = Field(default_factory=list)
    kind: Literal["MATERIAL", "LABOR"] = "MATERIAL"
    prefix: str = "po"


@router.post("/compute")
def compute(req: ComputeRequest = Body(...)):
    result = compute_breakdown(
        req.item_total,
        req.charges,
        req.sales_taxes,
        hide_charges=req.hide_charges,
        allow_edit_total=req.allow_edit_total,
        total_field=req.total_field,
        advance_payment_deduction=req.advance_payment_deduction,
        holdback_deduction=req.holdback_deduction,
        persisted_override=req.persisted_override,
    )
    totals = result.totals
    return {
        "financial_breakdown": result.breakdown.to_storage(),
        "computed_total": totals.computed_total,
        "deductions": totals.deductions,
        "final_total": totals.final_total,
        "document_total": totals.document_total,
        "editable_total": totals.editable_total,
    }


@router.post("/decorate/{document_type}")
def decorate(document_type: str, record: Dict[str, Any] = Body(...)):
    profile = PROFILES.get(document_type)
    if profile is None:
        raise HTTPException(status_code=404, detail=f"Unknown document type: {document_type}")
    return decorate_record(record, profile)


# Per-item landed cost report
@router.post("/expected-costs")
def expected_costs(req: ExpectedCostsRequest = Body(...)):
    basis = AllocationBasis.from_record(req.document, req.items, req.kind, req.prefix)
    lines = []
    for item in req.items:
        cost = expected_cost_breakdown(item, basis, req.kind, req.prefix)
        lines.append({
            "uuid": item.get("uuid"),
            "line_total": cost.line_total,
            "freight": cost.freight,
            "packing": cost.packing,
            "custom_duties": cost.custom_duties,
            "other": cost.other,
            "sales_tax": cost.sales_tax,
            "expected_cost": cost.expected_cost,
        })
    document = {**req.document, "items": req.items}
    return {
        "items": lines,
        "total_expected_costs": total_expected_costs(document, req.kind, req.prefix),
        "cost_codes": allocate_by_cost_code(
            req.items, req.kind, req.prefix, basis.charges_total + basis.sales_tax
        ),
    }
