"""
Archive (transfer-to-history) engine.

Each source row is moved on its own: the history copy and the delete of the
source row commit together in one transaction. The copy is also keyed by
source_ref ("<provenance>:<source row id>"), so re-running a transfer for a row
that already has a history copy only finishes the delete and never writes a
second copy.
"""
from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from app.idcards.audit import record_event
from app.idcards.errors import ConflictError, NotFoundError, TransferIncompleteError
from app.idcards.models import utcnow
from app.idcards.modules.id_requests.utils import require_register_number
from app.idcards.store import RecordStore, RecordTable

if TYPE_CHECKING:
    from app.idcards.modules.archive.models import AcceptedHistory, RejectedHistory

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ArchivePolicy:
    provenance: str
    source_table: RecordTable
    history_table: RecordTable


ACCEPTED_ARCHIVE = ArchivePolicy("accepted", RecordTable.ACCEPTED, RecordTable.ACCEPTED_HISTORY)
REJECTED_ARCHIVE = ArchivePolicy("rejected", RecordTable.REJECTED, RecordTable.REJECTED_HISTORY)


@dataclass(frozen=True)
class TransferResult:
    success: bool
    transferred_count: int
    message: str

    def as_dict(self) -> dict:
        return {"success": self.success, "transferred_count": self.transferred_count, "message": self.message}


def build_source_ref(provenance: str, row_id: int) -> str:
    return f"{provenance}:{row_id}"


def build_history_record(row: Any, policy: ArchivePolicy) -> dict:
    now = utcnow()
    copied_at = max(now, row.created_at) if row.created_at else now
    return {
        "register_number": row.register_number,
        **row.holder_fields(),
        "created_at": row.created_at,
        "copied_at": copied_at,
        "provenance": policy.provenance,
        "source_ref": build_source_ref(policy.provenance, row.id),
    }


class _SourceGone(Exception):
    pass


def archive_row(store: RecordStore, row: Any, policy: ArchivePolicy, *, log: logging.Logger | None = None) -> bool:
    """
    Copy one active row into its history table and delete it, atomically.

    Returns False when the source row was already gone (archived by a concurrent
    call); nothing is written in that case.
    """
    log = log or logger
    try:
        with store.transaction() as tx:
            history, created = tx.insert_if_absent(policy.history_table, build_history_record(row, policy), key="source_ref")
            if not tx.delete(policy.source_table, row.id):
                # Roll back the copy: the row belongs to whoever deleted it.
                raise _SourceGone()
            record_event(
                tx,
                action=f"archive.{policy.provenance}",
                register_number=row.register_number,
                entity_type=type(history).__name__,
                entity_id=str(history.id),
                metadata={"source_id": row.id, "source_ref": history.source_ref, "copy_reused": not created},
            )
    except (_SourceGone, ConflictError):
        log.warning("ARCHIVE: %s row id=%s already archived concurrently", policy.provenance, row.id)
        return False
    log.info("ARCHIVE: %s row id=%s register_number=%s -> history id=%s", policy.provenance, row.id, row.register_number, history.id)
    return True


def transfer_accepted_to_history(
    store: RecordStore,
    register_number: str | None,
    *,
    max_workers: int = 4,
    log: logging.Logger | None = None,
) -> int:
    """
    Archive every Accepted row for a register number. Returns the number moved.

    Rows are independent: they run on a bounded pool (serially when the store
    only supports a single writer) and a failure on one row does not undo the
    others.
    """
    log = log or logger
    rn = require_register_number(register_number)
    rows = store.find_many(ACCEPTED_ARCHIVE.source_table, rn)
    if not rows:
        raise NotFoundError("No accepted ID cards found for this user.", identifier=rn)

    workers = 1 if getattr(store, "serial_writes", False) else max(1, min(max_workers, len(rows)))
    log.info("ARCHIVE: accepted register_number=%s rows=%d workers=%d", rn, len(rows), workers)

    outcomes: list[bool | BaseException] = []
    if workers == 1:
        for row in rows:
            try:
                outcomes.append(archive_row(store, row, ACCEPTED_ARCHIVE, log=log))
            except Exception as e:
                outcomes.append(e)
    else:
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="archive") as pool:
            futures = [pool.submit(archive_row, store, row, ACCEPTED_ARCHIVE, log=log) for row in rows]
            for fut in futures:
                exc = fut.exception()
                outcomes.append(exc if exc is not None else fut.result())

    transferred = sum(1 for o in outcomes if o is True)
    failures = [o for o in outcomes if isinstance(o, BaseException)]
    if failures:
        log.error(
            "ARCHIVE: accepted register_number=%s transferred=%d failed=%d first_error=%s",
            rn,
            transferred,
            len(failures),
            failures[0],
        )
        raise TransferIncompleteError(
            f"Transferred {transferred} of {len(rows)} accepted ID cards; {len(failures)} failed.",
            identifier=rn,
            transferred_count=transferred,
            failed_count=len(failures),
        ) from failures[0]
    if transferred == 0:
        raise NotFoundError("No accepted ID cards found for this user.", identifier=rn)

    log.info("ARCHIVE: accepted register_number=%s transferred=%d", rn, transferred)
    return transferred


def transfer_rejected_to_history(
    store: RecordStore,
    register_number: str | None,
    *,
    log: logging.Logger | None = None,
) -> TransferResult:
    log = log or logger
    rn = require_register_number(register_number)
    row = store.find_one(REJECTED_ARCHIVE.source_table, rn)
    if row is None or not archive_row(store, row, REJECTED_ARCHIVE, log=log):
        raise NotFoundError("No rejected ID card found for this user.", identifier=rn)
    return TransferResult(success=True, transferred_count=1, message="Successfully transferred rejected ID card to history.")


def list_accepted_history_for(store: RecordStore, register_number: str | None) -> list["AcceptedHistory"]:
    return store.find_many(RecordTable.ACCEPTED_HISTORY, require_register_number(register_number))


def list_rejected_history_for(store: RecordStore, register_number: str | None) -> list["RejectedHistory"]:
    return store.find_many(RecordTable.REJECTED_HISTORY, require_register_number(register_number))
