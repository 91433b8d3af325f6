"""
Record store over the workflow tables.

Every table is keyed by register number. Pending, PrintQueue, Rejected and the
registry hold at most one row per register number; Accepted and the two history
tables may hold many. Rows are deleted by their internal id, never by register
number, so duplicates in the multi-row tables are never removed by accident.
"""
from __future__ import annotations

import enum
import logging
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.idcards.db import build_sessionmaker
from app.idcards.errors import ConflictError, StoreError, ValidationError, WorkflowError


class RecordTable(str, enum.Enum):
    PENDING = "pending"
    PRINT_QUEUE = "print_queue"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    ACCEPTED_HISTORY = "accepted_history"
    REJECTED_HISTORY = "rejected_history"
    REGISTRY = "registry"
    EVENTS = "events"


ACTIVE_TABLES = (RecordTable.PENDING, RecordTable.PRINT_QUEUE, RecordTable.ACCEPTED, RecordTable.REJECTED)
HISTORY_TABLES = (RecordTable.ACCEPTED_HISTORY, RecordTable.REJECTED_HISTORY)
UNIQUE_TABLES = frozenset({RecordTable.PENDING, RecordTable.PRINT_QUEUE, RecordTable.REJECTED, RecordTable.REGISTRY})

# Accepted rows may coexist with a new request from the same holder.
NON_BLOCKING_TABLES = frozenset({RecordTable.ACCEPTED})

CONFLICT_MESSAGES = {
    RecordTable.PENDING: "An application with this register number already exists.",
    RecordTable.PRINT_QUEUE: "This register number is already in the print queue.",
    RecordTable.REJECTED: "A rejected ID card already exists for this register number.",
    RecordTable.REGISTRY: "This register number is already registered.",
}


def model_for(table: RecordTable) -> type:
    from app.idcards.models import WorkflowEvent
    from app.idcards.modules.archive.models import AcceptedHistory, RejectedHistory
    from app.idcards.modules.id_requests.models import AcceptedIdCard, IdCardRequest, PrintQueueEntry, RejectedIdCard
    from app.idcards.modules.registry.models import RegisteredNumber

    return {
        RecordTable.PENDING: IdCardRequest,
        RecordTable.PRINT_QUEUE: PrintQueueEntry,
        RecordTable.ACCEPTED: AcceptedIdCard,
        RecordTable.REJECTED: RejectedIdCard,
        RecordTable.ACCEPTED_HISTORY: AcceptedHistory,
        RecordTable.REJECTED_HISTORY: RejectedHistory,
        RecordTable.REGISTRY: RegisteredNumber,
        RecordTable.EVENTS: WorkflowEvent,
    }[RecordTable(table)]


class RecordStore:
    def insert(self, table: RecordTable, record: dict[str, Any]) -> Any:
        raise NotImplementedError

    def insert_if_absent(self, table: RecordTable, record: dict[str, Any], *, key: str) -> tuple[Any, bool]:
        raise NotImplementedError

    def find_one(self, table: RecordTable, register_number: str) -> Any | None:
        raise NotImplementedError

    def find_many(self, table: RecordTable, register_number: str) -> list[Any]:
        raise NotImplementedError

    def find_all(self, table: RecordTable) -> list[Any]:
        raise NotImplementedError

    def exists(self, table: RecordTable, register_number: str) -> bool:
        raise NotImplementedError

    def update(self, table: RecordTable, register_number: str, patch: dict[str, Any]) -> Any | None:
        raise NotImplementedError

    def delete(self, table: RecordTable, row_ref: int) -> bool:
        raise NotImplementedError

    def load_column(self, table: RecordTable, row_ref: int, column: str) -> Any:
        raise NotImplementedError

    @contextmanager
    def transaction(self) -> Iterator["RecordStore"]:
        raise NotImplementedError
        yield  # pragma: no cover


class SqlUnitOfWork(RecordStore):
    """Store operations bound to one open session. Commit/rollback belongs to the caller."""

    def __init__(self, s: Session, *, exclusive_active_tables: bool = False) -> None:
        self.s = s
        self.exclusive_active_tables = exclusive_active_tables

    def _query_by_number(self, table: RecordTable, register_number: str):
        model = model_for(table)
        return (
            self.s.query(model)
            .filter(model.register_number == register_number)
            .order_by(model.created_at.desc(), model.id.desc())
        )

    def _conflict(self, table: RecordTable, register_number: str) -> ConflictError:
        return ConflictError(CONFLICT_MESSAGES[table], identifier=register_number, table=table.value)

    def _check_exclusive(self, table: RecordTable, register_number: str) -> None:
        for other in ACTIVE_TABLES:
            if other == table or other in NON_BLOCKING_TABLES:
                continue
            if self.exists(other, register_number):
                raise ConflictError(
                    f"Register number {register_number} already has a live request ({other.value}).",
                    identifier=register_number,
                    table=table.value,
                )

    def insert(self, table: RecordTable, record: dict[str, Any]) -> Any:
        table = RecordTable(table)
        model = model_for(table)
        register_number = record.get("register_number")
        if not register_number:
            raise ValidationError("register_number is required.", field="register_number")

        if table in UNIQUE_TABLES and self.exists(table, register_number):
            raise self._conflict(table, register_number)
        if self.exclusive_active_tables and table in ACTIVE_TABLES:
            self._check_exclusive(table, register_number)

        row = model(**record)
        self.s.add(row)
        try:
            self.s.flush()
        except IntegrityError as e:
            # Lost a race with a concurrent insert of the same register number.
            if table in UNIQUE_TABLES:
                raise self._conflict(table, register_number) from e
            raise
        return row

    def insert_if_absent(self, table: RecordTable, record: dict[str, Any], *, key: str) -> tuple[Any, bool]:
        table = RecordTable(table)
        model = model_for(table)
        existing = self.s.query(model).filter(getattr(model, key) == record[key]).one_or_none()
        if existing is not None:
            return existing, False
        row = model(**record)
        self.s.add(row)
        try:
            self.s.flush()
        except IntegrityError as e:
            raise ConflictError(f"{table.value} row {record[key]!r} was written concurrently.", table=table.value) from e
        return row, True

    def find_one(self, table: RecordTable, register_number: str) -> Any | None:
        return self._query_by_number(table, register_number).first()

    def find_many(self, table: RecordTable, register_number: str) -> list[Any]:
        return self._query_by_number(table, register_number).all()

    def find_all(self, table: RecordTable) -> list[Any]:
        model = model_for(table)
        return self.s.query(model).order_by(model.created_at.desc(), model.id.desc()).all()

    def exists(self, table: RecordTable, register_number: str) -> bool:
        model = model_for(table)
        return self.s.query(model.id).filter(model.register_number == register_number).first() is not None

    def update(self, table: RecordTable, register_number: str, patch: dict[str, Any]) -> Any | None:
        model = model_for(table)
        columns = set(model.__table__.columns.keys())
        unknown = sorted(k for k in patch if k not in columns or k in ("id", "register_number"))
        if unknown:
            raise ValidationError(f"Cannot update field(s): {', '.join(unknown)}")

        row = self.find_one(table, register_number)
        if row is None:
            return None
        for k, v in patch.items():
            setattr(row, k, v)
        self.s.flush()
        return row

    def delete(self, table: RecordTable, row_ref: int) -> bool:
        row = self.s.get(model_for(table), row_ref)
        if row is None:
            return False
        self.s.delete(row)
        self.s.flush()
        return True

    def load_column(self, table: RecordTable, row_ref: int, column: str) -> Any:
        model = model_for(table)
        return self.s.query(getattr(model, column)).filter(model.id == row_ref).scalar()

    @contextmanager
    def transaction(self) -> Iterator["SqlUnitOfWork"]:
        # Already inside one.
        yield self


class SqlRecordStore(RecordStore):
    """
    SQLAlchemy-backed store. Each call runs in its own short-lived session, so the
    store is safe to share between worker threads; `transaction()` groups calls.
    """

    def __init__(self, engine: Engine, *, exclusive_active_tables: bool = False, logger: logging.Logger | None = None) -> None:
        self.engine = engine
        self.exclusive_active_tables = exclusive_active_tables
        self.logger = logger or logging.getLogger(__name__)
        self._sessionmaker = build_sessionmaker(engine)

    @property
    def serial_writes(self) -> bool:
        """SQLite allows a single writer; transfers should not fan out against it."""
        return self.engine.dialect.name == "sqlite"

    @contextmanager
    def transaction(self) -> Iterator[SqlUnitOfWork]:
        s: Session = self._sessionmaker()
        try:
            yield SqlUnitOfWork(s, exclusive_active_tables=self.exclusive_active_tables)
            s.commit()
        except WorkflowError:
            s.rollback()
            raise
        except SQLAlchemyError as e:
            s.rollback()
            self.logger.exception("Record store operation failed: %s", e)
            raise StoreError("Record store operation failed.") from e
        except Exception:
            s.rollback()
            raise
        finally:
            s.close()

    def insert(self, table: RecordTable, record: dict[str, Any]) -> Any:
        with self.transaction() as uow:
            return uow.insert(table, record)

    def insert_if_absent(self, table: RecordTable, record: dict[str, Any], *, key: str) -> tuple[Any, bool]:
        with self.transaction() as uow:
            return uow.insert_if_absent(table, record, key=key)

    def find_one(self, table: RecordTable, register_number: str) -> Any | None:
        with self.transaction() as uow:
            return uow.find_one(table, register_number)

    def find_many(self, table: RecordTable, register_number: str) -> list[Any]:
        with self.transaction() as uow:
            return uow.find_many(table, register_number)

    def find_all(self, table: RecordTable) -> list[Any]:
        with self.transaction() as uow:
            return uow.find_all(table)

    def exists(self, table: RecordTable, register_number: str) -> bool:
        with self.transaction() as uow:
            return uow.exists(table, register_number)

    def update(self, table: RecordTable, register_number: str, patch: dict[str, Any]) -> Any | None:
        with self.transaction() as uow:
            return uow.update(table, register_number, patch)

    def delete(self, table: RecordTable, row_ref: int) -> bool:
        with self.transaction() as uow:
            return uow.delete(table, row_ref)

    def load_column(self, table: RecordTable, row_ref: int, column: str) -> Any:
        with self.transaction() as uow:
            return uow.load_column(table, row_ref, column)
