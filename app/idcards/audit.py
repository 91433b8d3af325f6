import json
from typing import Any

from app.idcards.models import WorkflowEvent
from app.idcards.store import RecordStore, RecordTable


def record_event(
    tx: RecordStore,
    *,
    action: str,
    register_number: str,
    entity_type: str | None = None,
    entity_id: str | None = None,
    reason: str | None = None,
    metadata: dict[str, Any] | None = None,
) -> WorkflowEvent:
    """
    Append-only workflow event helper. Pass the unit of work of the change being
    recorded so the event commits (or rolls back) with it.
    """
    return tx.insert(
        RecordTable.EVENTS,
        {
            "action": action,
            "register_number": register_number,
            "entity_type": entity_type,
            "entity_id": entity_id,
            "reason": reason,
            "metadata_json": json.dumps(metadata, sort_keys=True, default=str) if metadata else None,
        },
    )
