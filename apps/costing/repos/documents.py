from typing import Any, Dict, List, Optional

from psycopg import Connection
from psycopg.types.json import Jsonb

from ..models.document import DocumentProfile

# Columns a document save may write; anything else in `fields` is ignored.
WRITABLE_COLUMNS = {
    "status",
    "audit_log",
    "attachments",
    "removed_po_items",
    "removed_co_items",
    "invoice_type",
    "holdback",
    "total_po_amount",
    "total_co_amount",
    "amount",
}
JSON_COLUMNS = {"financial_breakdown", "audit_log", "attachments", "removed_po_items", "removed_co_items"}


def _rows(cur) -> List[Dict[str, Any]]:
    columns = [c[0] for c in cur.description]
    return [dict(zip(columns, row)) for row in cur.fetchall()]


def _items_table(profile: DocumentProfile, kind: str) -> str:
    if kind == "LABOR" and profile.labor_items_table:
        return profile.labor_items_table
    return profile.material_items_table


# Fetches a single document header row. Returns None if not found.
def get_document(conn: Connection, profile: DocumentProfile, uuid: str) -> Optional[Dict[str, Any]]:
    with conn.cursor() as cur:
        cur.execute(f"SELECT * FROM {profile.table} WHERE uuid = %s", (uuid,))
        row = cur.fetchone()
        if not row:
            return None
        columns = [c[0] for c in cur.description]
        return dict(zip(columns, row))


# Active line items of a document in display order.
def list_line_items(conn: Connection, profile: DocumentProfile, uuid: str, kind: str = "MATERIAL") -> List[Dict[str, Any]]:
    with conn.cursor() as cur:
        cur.execute(
            f"""
            SELECT * FROM {_items_table(profile, kind)}
            WHERE {profile.parent_column} = %s AND is_active = true
            ORDER BY order_index
            """,
            (uuid,),
        )
        return _rows(cur)


# Writes the recomputed breakdown (always as a JSON object, never a string),
# the document total and any whitelisted extra fields.
# Returns True if a row was updated, False if no such document exists.
def update_breakdown(
    conn: Connection,
    profile: DocumentProfile,
    uuid: str,
    breakdown: Dict[str, Any],
    total: Optional[float],
    fields: Optional[Dict[str, Any]] = None,
) -> bool:
    assignments = ["financial_breakdown = %s", f"{profile.total_field} = %s"]
    values: List[Any] = [Jsonb(breakdown), total]
    for k, v in (fields or {}).items():
        if k not in WRITABLE_COLUMNS or k == profile.total_field:
            continue
        assignments.append(f"{k} = %s")
        values.append(Jsonb(v) if k in JSON_COLUMNS else v)
    with conn.cursor() as cur:
        cur.execute(
            f"UPDATE {profile.table} SET {', '.join(assignments)}, updated_at = now() WHERE uuid = %s",
            (*values, uuid),
        )
        return cur.rowcount > 0


# Status and audit log only; the breakdown is left untouched.
def update_status(conn: Connection, profile: DocumentProfile, uuid: str, status: str, audit_log: List[Dict[str, Any]]) -> bool:
    with conn.cursor() as cur:
        cur.execute(
            f"UPDATE {profile.table} SET status = %s, audit_log = %s, updated_at = now() WHERE uuid = %s",
            (status, Jsonb(audit_log), uuid),
        )
        return cur.rowcount > 0


# Replaces all line items of a document. Caller owns the transaction so the
# delete and the inserts land together.
def replace_line_items(
    conn: Connection,
    profile: DocumentProfile,
    uuid: str,
    items: List[Dict[str, Any]],
    kind: str = "MATERIAL",
) -> None:
    table = _items_table(profile, kind)
    with conn.cursor() as cur:
        cur.execute(f"DELETE FROM {table} WHERE {profile.parent_column} = %s", (uuid,))
        if not items:
            return
        columns = [profile.parent_column] + [c for c in items[0] if c != profile.parent_column]
        # new lines have no uuid yet
        placeholders = ", ".join(
            "COALESCE(%(uuid)s, gen_random_uuid())" if c == "uuid" else f"%({c})s" for c in columns
        )
        cur.executemany(
            f"INSERT INTO {table} ({', '.join(columns)}) VALUES ({placeholders})",
            [
                {
                    **{c: None for c in columns},
                    **{k: (Jsonb(v) if isinstance(v, (dict, list)) else v) for k, v in item.items() if k in columns},
                    profile.parent_column: uuid,
                }
                for item in items
            ],
        )
