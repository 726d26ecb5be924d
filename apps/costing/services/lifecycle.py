import logging
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

from ..models.breakdown import as_mapping
from ..models.document import AuditEntry

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS: Dict[str, tuple] = {
    "Draft": ("Ready",),
    "Ready": ("Approved", "Rejected"),
    "Approved": (),
    "Rejected": (),
}


class InvalidStatusTransition(ValueError):
    def __init__(self, current: str, target: str):
        super().__init__(f"Cannot move a document from {current!r} to {target!r}")
        self.current = current
        self.target = target


def transition_status(current: Optional[str], target: str) -> str:
    """
    Validate a status change and return the new status.

    Documents without a status are treated as drafts. Re-applying the
    current status is a no-op. Approved and Rejected are final.
    """
    current = current or "Draft"
    if target not in ALLOWED_TRANSITIONS:
        raise InvalidStatusTransition(current, target)
    if current == target:
        return current
    if target not in ALLOWED_TRANSITIONS.get(current, ()):
        raise InvalidStatusTransition(current, target)
    return target


def append_audit_entry(
    log: Any,
    user: Optional[str],
    action: str,
    description: str = "",
    timestamp: Optional[datetime] = None,
) -> List[Dict[str, Any]]:
    """Return a new audit log with one entry appended; existing entries are kept as-is."""
    entries = list(log) if isinstance(log, list) else []
    entry = AuditEntry(
        timestamp=timestamp or datetime.now(timezone.utc),
        user=user,
        action=action,
        description=description,
    )
    entries.append(entry.model_dump(mode="json"))
    return entries


def _uuid_of(item: Any) -> Optional[str]:
    uuid = as_mapping(item).get("uuid")
    return str(uuid) if uuid else None


def collect_removed_items(
    previous: Optional[Iterable[Any]],
    current: Optional[Iterable[Any]],
    already_removed: Any = None,
) -> List[Any]:
    """
    Items present before a replace-all save but missing after it, appended
    to the already-recorded removals. Items without a uuid were never
    persisted and are not recorded; each uuid is recorded once.
    """
    removed = list(already_removed) if isinstance(already_removed, list) else []
    seen = {uuid for uuid in map(_uuid_of, removed) if uuid}
    kept = {uuid for uuid in map(_uuid_of, current or ()) if uuid}

    for item in previous or ():
        uuid = _uuid_of(item)
        if not uuid or uuid in kept or uuid in seen:
            continue
        removed.append(dict(as_mapping(item)))
        seen.add(uuid)

    if len(removed) > len(already_removed or []):
        logger.debug("Recorded %d removed item(s)", len(removed) - len(already_removed or []))
    return removed
