import pytest

from apps.costing.models.document import (
    ADVANCE_PAYMENT_INVOICE,
    CHANGE_ORDER,
    PURCHASE_ORDER,
    VENDOR_INVOICE,
)
from apps.costing.services.engine import (
    build_labor_breakdown,
    compute_breakdown,
    document_kind,
    items_key,
    recompute_document,
    resolve_deductions,
)

CHARGES = {"freight": {"percentage": 5, "taxable": True}, "packing": {"percentage": 3}}
TAXES = {"sales_tax_1": {"percentage": 10}, "sales_tax_2": {"percentage": 5}}


def test_compute_breakdown_writes_document_total():
    result = compute_breakdown(1000, CHARGES, TAXES)
    totals = result.breakdown.totals
    assert totals.item_total == 1000
    assert totals.charges_total == pytest.approx(80)
    assert totals.tax_total == pytest.approx(157.5)
    assert totals.get("total_po_amount") == pytest.approx(1237.5)


def test_compute_breakdown_with_deduction():
    result = compute_breakdown(1000, CHARGES, TAXES, advance_payment_deduction=250)
    assert result.totals.final_total == pytest.approx(987.5)
    assert result.breakdown.totals.get("total_po_amount") == pytest.approx(987.5)


def test_hidden_charges():
    result = compute_breakdown(200, CHARGES, {"sales_tax_1": {"percentage": 8.5}}, hide_charges=True, total_field="amount")
    assert result.calculation.charges_total == 0
    assert result.calculation.tax_total == pytest.approx(17)
    assert result.totals.final_total == pytest.approx(217)


def test_editable_total_keeps_override():
    result = compute_breakdown(
        5000, None, {"sales_tax_1": {"percentage": 13}},
        allow_edit_total=True, total_field="amount", persisted_override=6000,
    )
    totals = result.breakdown.totals
    assert result.totals.final_total == pytest.approx(5650)
    assert totals.get("amount") == 6000
    assert totals.get("total_invoice_amount") == 6000


def test_breakdown_output_is_an_object():
    stored = compute_breakdown("1,000", CHARGES, TAXES).breakdown.to_storage()
    assert isinstance(stored, dict)
    assert set(stored) == {"charges", "sales_taxes", "totals"}


def test_labor_breakdown():
    breakdown = build_labor_breakdown("1500", "total_co_amount")
    assert breakdown.charges.freight.percentage == 0
    assert breakdown.charges.freight.amount is None
    assert breakdown.sales_taxes.sales_tax_2.percentage == 0
    assert breakdown.totals.item_total == 1500
    assert breakdown.totals.charges_total == 0
    assert breakdown.totals.tax_total == 0
    assert breakdown.totals.get("total_co_amount") == 1500
    assert breakdown.totals.get("total_po_amount") == 1500


def test_document_kind_and_items_key():
    assert document_kind({"po_type": "labor"}, PURCHASE_ORDER) == "LABOR"
    assert document_kind({"po_type": None}, PURCHASE_ORDER) == "MATERIAL"
    assert document_kind({"po_type": "LABOR"}, VENDOR_INVOICE) == "MATERIAL"
    assert items_key(CHANGE_ORDER, "LABOR") == "labor_co_items"
    assert items_key(VENDOR_INVOICE, "MATERIAL") == "invoice_items"


def test_resolve_deductions():
    assert resolve_deductions({"advance_payment_deduction": "100", "holdback_cost_codes": [{"retainageAmount": 40}]}) == {
        "advance_payment_deduction": 100,
        "holdback_deduction": 40,
    }
    assert resolve_deductions({}) == {"advance_payment_deduction": 0, "holdback_deduction": 0}


def test_recompute_purchase_order():
    document = {
        "uuid": "po-1",
        "po_type": "MATERIAL",
        "freight_charges_percentage": "5",
        "freight_charges_taxable": True,
        "packing_charges_percentage": 3,
        "sales_tax_1_percentage": 10,
        "sales_tax_2_percentage": 5,
        "po_items": [
            {"po_quantity": 4, "po_unit_price": 100, "description": "Rebar"},
            {"po_quantity": "6", "po_unit_price": "100"},
        ],
        "attachments": [{"url": "q.pdf", "file": b"..."}],
    }
    recomputed = recompute_document(document, PURCHASE_ORDER)
    record = recomputed.record

    assert recomputed.kind == "MATERIAL"
    assert record["item_total"] == 1000
    assert record["charges_total"] == pytest.approx(80)
    assert record["tax_total"] == pytest.approx(157.5)
    assert record["total_po_amount"] == pytest.approx(1237.5)
    assert record["freight_charges_amount"] == pytest.approx(50)
    assert record["po_items"][0]["item_name"] == "Rebar"
    assert record["po_items"][1]["order_index"] == 1
    assert record["attachments"] == [{"url": "q.pdf"}]
    assert record["financial_breakdown"]["totals"]["total_po_amount"] == pytest.approx(1237.5)
    assert "po_items" in document and document["po_items"][0] == {"po_quantity": 4, "po_unit_price": 100, "description": "Rebar"}


def test_recompute_uses_stored_leaves_when_no_flat_fields():
    document = {
        "financial_breakdown": '{"charges": {"other": {"amount": 25}}, "sales_taxes": {}, "totals": {}}',
        "co_items": [{"co_total": 500}],
    }
    record = recompute_document(document, CHANGE_ORDER).record
    assert record["item_total"] == 500
    assert record["other_charges_amount"] == 25
    assert record["total_co_amount"] == pytest.approx(525)


def test_recompute_labor_change_order():
    document = {"co_type": "LABOR", "labor_co_items": [{"po_amount": 900, "co_amount": 300}, {"co_amount": "200"}]}
    recomputed = recompute_document(document, CHANGE_ORDER)
    record = recomputed.record
    assert recomputed.kind == "LABOR"
    assert record["item_total"] == 500
    assert record["total_co_amount"] == 500
    assert record["financial_breakdown"]["totals"]["total_po_amount"] == 500
    assert record["charges_total"] == 0
    assert record["tax_total"] == 0


def test_recompute_invoice_keeps_manual_amount():
    document = {
        "amount": "6000",
        "invoice_items": [{"invoice_quantity": 10, "invoice_unit_price": 500}],
        "sales_tax_1_percentage": 13,
    }
    result = recompute_document(document, VENDOR_INVOICE)
    assert result.result.totals.final_total == pytest.approx(5650)
    assert result.record["amount"] == 6000
    assert result.record["financial_breakdown"]["totals"]["total_invoice_amount"] == 6000


def test_recompute_invoice_without_override_leaves_total_empty():
    document = {"invoice_items": [{"invoice_total": 100}]}
    result = recompute_document(document, VENDOR_INVOICE)
    assert result.record["amount"] is None
    assert result.result.totals.final_total == 100


def test_recompute_invoice_nets_holdback():
    document = {
        "invoice_items": [{"invoice_total": 1000}],
        "holdback_cost_codes": [{"retainageAmount": 100}],
        "total_invoice_amount": None,
    }
    result = recompute_document(document, VENDOR_INVOICE)
    assert result.result.totals.final_total == 900


def test_recompute_advance_payment_invoice():
    document = {
        "invoice_type": "AGAINST_ADVANCE_PAYMENT",
        "advance_payment_cost_codes": [{"advanceAmount": 300}, {"advance_amount": 200}],
        "freight_charges_percentage": 10,
        "sales_tax_1_percentage": 10,
    }
    record = recompute_document(document, ADVANCE_PAYMENT_INVOICE).record
    assert record["item_total"] == 500
    assert record["charges_total"] == 0
    assert record["tax_total"] == pytest.approx(50)
    assert record["amount"] == pytest.approx(550)


def test_recompute_never_raises_on_garbage():
    record = recompute_document({"po_items": "nope", "financial_breakdown": "{{", "freight_charges_amount": "x"}, PURCHASE_ORDER).record
    assert record["item_total"] == 0
    assert record["total_po_amount"] == 0
    assert record["po_items"] == []


def test_recompute_reports_released_holdback():
    document = {
        "invoice_items": [{"invoice_total": 1000}],
        "holdback_cost_codes": [{"retainageAmount": 100, "releaseAmount": 40}, {"release_amount": "10"}],
    }
    record = recompute_document(document, VENDOR_INVOICE).record
    assert record["holdback_release_total"] == 50
    assert recompute_document({}, PURCHASE_ORDER).record["holdback_release_total"] == 0
