import logging
from typing import Any, Dict

from fastapi import APIRouter, Body, HTTPException
from psycopg import Error as DatabaseError, connect

from ..models.document import PROFILES, DocumentProfile, StatusChange
from ..repos.documents import (
    get_document as repo_get_document,
    list_line_items,
    replace_line_items,
    update_breakdown,
    update_status,
)
from ..services.decorator import (
    canonical_field_names,
    decorate_record,
    flatten_breakdown,
    has_financial_payload,
    parse_breakdown,
)
from ..services.engine import document_kind, items_key, recompute_document
from ..services.lifecycle import (
    InvalidStatusTransition,
    append_audit_entry,
    collect_removed_items,
    transition_status,
)
from ..services.numeric import to_number_or_null
from ..services.totals import apply_total_edit, read_persisted_override
from ..settings import settings

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/documents", tags=["documents"])

# Terminal documents are read-only
LOCKED_STATUSES = {"Approved", "Rejected"}

def get_conn():
    conn = connect(settings.DATABASE_URL)
    if settings.ORG_ID:
        with conn.cursor() as cur:
            cur.execute("SELECT set_config('app.org_id', %s, true)", (settings.ORG_ID,))
    return conn


def _profile(document_type: str) -> DocumentProfile:
    profile = PROFILES.get(document_type)
    if profile is None:
        raise HTTPException(status_code=404, detail=f"Unknown document type: {document_type}")
    return profile


def _merge_for_save(stored: Dict[str, Any], payload: Dict[str, Any], profile: DocumentProfile) -> Dict[str, Any]:
    """
    Stored document under the payload.

    Without flat financial fields the stored breakdown is reused as-is.
    Otherwise the stored leaves are flattened and the payload's fields
    (alias spellings included) are laid on top.
    """
    payload = canonical_field_names(payload)
    if profile.allow_edit_total and profile.total_field in payload:
        stored = apply_total_edit(stored, payload[profile.total_field], profile.total_field)

    if "financial_breakdown" in payload or not has_financial_payload(payload):
        return {**stored, **payload}

    breakdown = parse_breakdown(stored.get("financial_breakdown"))
    merged = {**flatten_breakdown(breakdown), **stored, **payload}
    merged.pop("financial_breakdown", None)
    if profile.allow_edit_total and merged.get(profile.total_field) is None:
        merged["total_invoice_amount"] = read_persisted_override(breakdown)
    return merged


@router.get("/{document_type}/{uuid}")
def get_document(document_type: str, uuid: str):
    profile = _profile(document_type)
    conn = get_conn()
    try:
        with conn:
            doc = repo_get_document(conn, profile, uuid)
            if not doc:
                raise HTTPException(status_code=404, detail="Document not found")
            kind = document_kind(doc, profile)
            items = list_line_items(conn, profile, uuid, kind)
    except DatabaseError as e:
        logger.exception("Loading %s %s failed", profile.name, uuid)
        raise HTTPException(status_code=502, detail=f"DB read failed: {e}")
    finally:
        conn.close()

    decorated = decorate_record(doc, profile)
    decorated[items_key(profile, kind)] = items
    return decorated


# Replace-all save: sanitize the items, recompute the breakdown and persist both
@router.put("/{document_type}/{uuid}")
def save_document(document_type: str, uuid: str, payload: Dict[str, Any] = Body(...)):
    profile = _profile(document_type)
    conn = get_conn()
    try:
        with conn:
            stored = repo_get_document(conn, profile, uuid)
            if not stored:
                raise HTTPException(status_code=404, detail="Document not found")
            if stored.get("status") in LOCKED_STATUSES:
                raise HTTPException(status_code=409, detail=f"Document is {stored['status']}")

            merged = _merge_for_save(stored, payload, profile)
            kind = document_kind(merged, profile)
            key = items_key(profile, kind)
            previous = list_line_items(conn, profile, uuid, kind)
            if key not in payload:
                merged[key] = previous

            record = recompute_document(merged, profile).record

            fields: Dict[str, Any] = {
                "attachments": record["attachments"],
                "audit_log": append_audit_entry(
                    stored.get("audit_log"), payload.get("user"), "updated", f"{profile.name} saved"
                ),
            }
            if profile.removed_items_field:
                fields[profile.removed_items_field] = collect_removed_items(
                    previous, record[key], stored.get(profile.removed_items_field)
                )
                record[profile.removed_items_field] = fields[profile.removed_items_field]
            for field in profile.numeric_header_fields:
                if field in payload:
                    fields[field] = to_number_or_null(payload[field])
            record["audit_log"] = fields["audit_log"]

            update_breakdown(
                conn, profile, uuid, record["financial_breakdown"], record[profile.total_field], fields
            )
            replace_line_items(conn, profile, uuid, record[key], kind)
    except DatabaseError as e:
        logger.exception("Saving %s %s failed", profile.name, uuid)
        raise HTTPException(status_code=502, detail=f"DB write failed: {e}")
    finally:
        conn.close()

    decorated = decorate_record(record, profile)
    decorated[key] = record[key]
    return decorated


@router.post("/{document_type}/{uuid}/status")
def change_status(document_type: str, uuid: str, change: StatusChange = Body(...)):
    profile = _profile(document_type)
    conn = get_conn()
    try:
        with conn:
            doc = repo_get_document(conn, profile, uuid)
            if not doc:
                raise HTTPException(status_code=404, detail="Document not found")
            try:
                status = transition_status(doc.get("status"), change.status)
            except InvalidStatusTransition as e:
                raise HTTPException(status_code=409, detail=str(e))
            audit_log = doc.get("audit_log")
            if status != doc.get("status"):
                audit_log = append_audit_entry(
                    audit_log, change.user, f"status:{status}", change.description
                )
                update_status(conn, profile, uuid, status, audit_log)
    except DatabaseError as e:
        logger.exception("Status change of %s %s failed", profile.name, uuid)
        raise HTTPException(status_code=502, detail=f"DB write failed: {e}")
    finally:
        conn.close()

    return {"uuid": uuid, "status": status, "audit_log": audit_log or []}
