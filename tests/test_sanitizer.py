from apps.costing.models.line_item import InvoiceLineItem, LaborLineItem, MaterialLineItem
from apps.costing.services.sanitizer import (
    advance_payment_total,
    holdback_release_total,
    holdback_retainage_total,
    sanitize_advance_payment_cost_code,
    sanitize_attachments,
    sanitize_holdback_cost_code,
    sanitize_invoice_item,
    sanitize_items,
    sanitize_labor_item,
    sanitize_material_item,
)


def test_empty_material_item_is_fully_populated():
    item = sanitize_material_item({}, 3)
    assert isinstance(item, MaterialLineItem)
    assert item.order_index == 3
    assert item.item_name == ""
    assert item.description == ""
    assert item.model_number == ""
    assert item.approval_checks_uuids == []
    assert item.metadata == {}
    assert item.quantity is None
    assert item.line_amount() == 0.0
    assert item.is_active is True


def test_non_mapping_input_is_treated_as_empty():
    item = sanitize_material_item("garbage", 0)
    assert item.order_index == 0
    assert item.item_name == ""


def test_item_name_precedence():
    assert sanitize_material_item({"name": "A", "item_name": "B"}, 0).item_name == "A"
    assert sanitize_material_item({"item_name": "B", "metadata": {"item_name": "C"}}, 0).item_name == "B"
    assert sanitize_material_item({"metadata": {"item_name": "C"}, "description": "D"}, 0).item_name == "C"
    assert sanitize_material_item({"description": "D"}, 0).item_name == "D"


def test_metadata_fallbacks():
    item = sanitize_material_item(
        {"display_metadata": {"cost_code_label": "03 Concrete", "unit": "EA", "location_display": "Level 2"}},
        0,
    )
    assert item.cost_code_label == "03 Concrete"
    assert item.unit_label == "EA"
    assert item.location_label == "Level 2"


def test_numeric_fields_are_normalized():
    item = sanitize_material_item({"po_quantity": "2", "po_unit_price": "1,250.00", "order_index": "7"}, 0)
    assert item.quantity == 2.0
    assert item.unit_price == 1250.0
    assert item.order_index == 7
    assert item.line_amount() == 2500.0


def test_stored_line_total_wins():
    item = sanitize_material_item({"po_quantity": 2, "po_unit_price": 10, "po_total": 25}, 0)
    assert item.line_amount() == 25.0


def test_change_order_prefix():
    item = sanitize_material_item({"co_quantity": 3, "co_unit_price": 4, "po_quantity": 100}, 0, prefix="co")
    assert item.line_amount("co") == 12.0
    record = item.to_record("co")
    assert record["co_quantity"] == 3.0
    assert record["co_total"] is None


def test_approval_checks_first_non_empty():
    assert sanitize_material_item({"approval_checks": ["a"], "approval_checks_uuids": ["b"]}, 0).approval_checks_uuids == ["a"]
    assert sanitize_material_item({"approval_checks": [], "approval_checks_uuids": ["b"]}, 0).approval_checks_uuids == ["b"]
    assert sanitize_material_item({"approval_checks": None}, 0).approval_checks_uuids == []


def test_labor_item():
    item = sanitize_labor_item({"po_amount": "500", "co_amount": "50", "cost_code_uuid": "cc-1"}, 0)
    assert isinstance(item, LaborLineItem)
    assert item.po_amount == 500.0
    assert item.co_amount is None
    assert item.line_amount("po") == 500.0

    co_item = sanitize_labor_item({"po_amount": "500", "co_amount": "50"}, 0, prefix="co")
    assert co_item.line_amount("co") == 50.0
    assert "co_amount" in co_item.to_record("co")
    assert "co_amount" not in item.to_record("po")


def test_invoice_item_blank_ids_are_null():
    item = sanitize_invoice_item({"po_item_uuid": "", "cost_code_uuid": "", "invoice_quantity": "4", "invoice_unit_price": 2.5}, 1)
    assert isinstance(item, InvoiceLineItem)
    assert item.po_item_uuid is None
    assert item.cost_code_uuid is None
    assert item.line_amount() == 10.0


def test_sanitize_items_dispatch():
    assert sanitize_items(None) == []
    assert sanitize_items("nope") == []
    assert isinstance(sanitize_items([{}], "LABOR", "po")[0], LaborLineItem)
    assert isinstance(sanitize_items([{}], "MATERIAL", "invoice")[0], InvoiceLineItem)
    items = sanitize_items([{}, {}], "MATERIAL", "po")
    assert [item.order_index for item in items] == [0, 1]


def test_sanitize_attachments():
    assert sanitize_attachments(None) == []
    assert sanitize_attachments({"url": "x"}) == []
    cleaned = sanitize_attachments([{"url": "a.pdf", "file": object(), "fileData": "..."}, "b.pdf"])
    assert cleaned == [{"url": "a.pdf"}, "b.pdf"]


def test_cost_code_rows_accept_camel_and_snake_case():
    advance = sanitize_advance_payment_cost_code({"advanceAmount": "100", "total_amount": 400})
    assert advance.advance_amount == 100.0
    assert advance.total_amount == 400.0

    holdback = sanitize_holdback_cost_code({"retainage_amount": 30, "releaseAmount": "10"})
    assert holdback.retainage_amount == 30.0
    assert holdback.release_amount == 10.0
    assert sanitize_holdback_cost_code({}).total_amount == 0.0


def test_cost_code_totals():
    assert advance_payment_total([{"advanceAmount": 100}, {"advance_amount": "50"}, {}]) == 150.0
    assert advance_payment_total(None) == 0.0
    rows = [{"retainageAmount": 20, "releaseAmount": 5}, {"retainage_amount": 30}]
    assert holdback_retainage_total(rows) == 50.0
    assert holdback_release_total(rows) == 5.0
