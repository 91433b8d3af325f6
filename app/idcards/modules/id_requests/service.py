from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from app.idcards.audit import record_event
from app.idcards.errors import NotFoundError, ValidationError
from app.idcards.models import utcnow
from app.idcards.modules.id_requests.status import PROBE_ORDER, STATE_TABLES, RequestState
from app.idcards.modules.id_requests.utils import (
    clean_text,
    holder_payload,
    require_register_number,
    sanitize_upload_filename,
)
from app.idcards.store import RecordStore, RecordTable

if TYPE_CHECKING:
    from app.idcards.modules.id_requests.models import AcceptedIdCard, IdCardRequest, RejectedIdCard

logger = logging.getLogger(__name__)

DEFAULT_MAX_ATTACHMENT_BYTES = 5 * 1024 * 1024

# Administrative moves between active tables. Anything else is rejected.
ALLOWED_TRANSITIONS: dict[RequestState, tuple[RequestState, ...]] = {
    RequestState.PENDING: (RequestState.QUEUED, RequestState.ACCEPTED, RequestState.REJECTED),
    RequestState.QUEUED: (RequestState.ACCEPTED, RequestState.REJECTED),
}


@dataclass(frozen=True)
class Attachment:
    data: bytes
    content_type: str
    filename: str


def validate_submission(payload: dict) -> list[str]:
    """Validate a request submission. Returns list of errors."""
    errors = []
    if not clean_text(payload.get("register_number")):
        errors.append("registerNumber is required.")
    if not clean_text(payload.get("name")):
        errors.append("name is required.")
    return errors


def submit_request(
    store: RecordStore,
    payload: dict,
    *,
    attachment: Attachment | None = None,
    max_attachment_bytes: int = DEFAULT_MAX_ATTACHMENT_BYTES,
    log: logging.Logger | None = None,
) -> "IdCardRequest":
    """
    Create the Pending row for a submission.

    A duplicate register number raises ConflictError; two racing submissions are
    settled by the unique index and the loser gets the same ConflictError.
    """
    log = log or logger
    errors = validate_submission(payload)
    if errors:
        raise ValidationError(" ".join(errors))

    rn = require_register_number(payload.get("register_number"))
    now = utcnow()
    record = {"register_number": rn, **holder_payload(payload), "created_at": now, "last_updated": now}

    if attachment is not None and attachment.data:
        if len(attachment.data) > max_attachment_bytes:
            raise ValidationError(f"Photo too large. Maximum size is {max_attachment_bytes} bytes.", field="photo")
        record.update(
            {
                "photo_data": attachment.data,
                "photo_content_type": clean_text(attachment.content_type) or "application/octet-stream",
                "photo_filename": sanitize_upload_filename(attachment.filename),
            }
        )

    with store.transaction() as tx:
        row = tx.insert(RecordTable.PENDING, record)
        record_event(
            tx,
            action="request.submit",
            register_number=rn,
            entity_type="IdCardRequest",
            entity_id=str(row.id),
            metadata={"name": row.name, "has_photo": row.has_photo},
        )
    log.info("REQUEST: submitted register_number=%s id=%s", rn, row.id)
    return row


def list_requests(store: RecordStore) -> list["IdCardRequest"]:
    """All pending submissions, newest first. Photo bytes are not loaded."""
    return store.find_all(RecordTable.PENDING)


def get_request(store: RecordStore, register_number: str | None) -> "IdCardRequest":
    rn = require_register_number(register_number)
    row = store.find_one(RecordTable.PENDING, rn)
    if row is None:
        raise NotFoundError("Application not found.", identifier=rn)
    return row


def get_attachment(store: RecordStore, register_number: str | None) -> Attachment:
    row = get_request(store, register_number)
    data = store.load_column(RecordTable.PENDING, row.id, "photo_data")
    if not data:
        raise NotFoundError("No photo uploaded for this application.", identifier=row.register_number)
    return Attachment(
        data=data,
        content_type=row.photo_content_type or "application/octet-stream",
        filename=row.photo_filename or "photo.bin",
    )


def set_status(
    store: RecordStore,
    register_number: str | None,
    status: str | None,
    *,
    reason: str | None = None,
    log: logging.Logger | None = None,
) -> "IdCardRequest":
    """Annotate the Pending row's status label in place. Table membership is unchanged."""
    log = log or logger
    rn = require_register_number(register_number)
    new_status = clean_text(status)
    if not new_status:
        raise ValidationError("status is required", field="status")

    with store.transaction() as tx:
        current = tx.find_one(RecordTable.PENDING, rn)
        if current is None:
            raise NotFoundError("Application not found.", identifier=rn)
        old_status = current.status
        row = tx.update(RecordTable.PENDING, rn, {"status": new_status, "last_updated": utcnow()})
        record_event(
            tx,
            action="request.status",
            register_number=rn,
            entity_type="IdCardRequest",
            entity_id=str(row.id),
            reason=reason,
            metadata={"old": old_status, "new": new_status},
        )
    log.info("REQUEST: status register_number=%s %s -> %s", rn, old_status, new_status)
    return row


def is_queued(store: RecordStore, register_number: str | None) -> bool:
    return store.exists(RecordTable.PRINT_QUEUE, require_register_number(register_number))


def is_accepted(store: RecordStore, register_number: str | None) -> bool:
    return store.exists(RecordTable.ACCEPTED, require_register_number(register_number))


def is_rejected(store: RecordStore, register_number: str | None) -> bool:
    return store.exists(RecordTable.REJECTED, require_register_number(register_number))


def get_rejection(store: RecordStore, register_number: str | None) -> "RejectedIdCard":
    rn = require_register_number(register_number)
    row = store.find_one(RecordTable.REJECTED, rn)
    if row is None:
        raise NotFoundError("No rejected ID card found for this user.", identifier=rn)
    return row


def list_accepted_for(store: RecordStore, register_number: str | None) -> list["AcceptedIdCard"]:
    return store.find_many(RecordTable.ACCEPTED, require_register_number(register_number))


def advance_request(
    store: RecordStore,
    register_number: str | None,
    target: RequestState | str,
    *,
    reason: str | None = None,
    log: logging.Logger | None = None,
):
    """
    Move a live request to the next active table in one transaction.

    The source is the highest-precedence table currently holding the register
    number. Its holder attributes are copied into the target table and the source
    row is deleted before the target row is inserted, so the register number is
    never live in two tables once this commits.
    """
    log = log or logger
    rn = require_register_number(register_number)
    try:
        target = RequestState(target)
    except ValueError:
        raise ValidationError(f"Unknown target state: {target!r}", field="target")

    with store.transaction() as tx:
        source = next((st for st in PROBE_ORDER if tx.exists(STATE_TABLES[st], rn)), RequestState.NONE)
        if source == RequestState.NONE:
            raise NotFoundError("No live request found for this register number.", identifier=rn)
        if target not in ALLOWED_TRANSITIONS.get(source, ()):
            raise ValidationError(f"Cannot move a request from {source.value} to {target.value}.", field="target")

        src_row = tx.find_one(STATE_TABLES[source], rn)
        record = {"register_number": rn, **src_row.holder_fields(), "created_at": utcnow()}
        tx.delete(STATE_TABLES[source], src_row.id)
        row = tx.insert(STATE_TABLES[target], record)
        record_event(
            tx,
            action="request.transition",
            register_number=rn,
            entity_type=type(row).__name__,
            entity_id=str(row.id),
            reason=reason,
            metadata={"from": source.value, "to": target.value, "source_id": src_row.id},
        )
    log.info("REQUEST: transition register_number=%s %s -> %s", rn, source.value, target.value)
    return row
