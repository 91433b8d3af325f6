from __future__ import annotations

import csv
import io
import logging
from dataclasses import dataclass

from app.idcards.errors import ConflictError, ValidationError
from app.idcards.modules.id_requests.utils import normalize_login_number
from app.idcards.store import RecordStore, RecordTable

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RegistryImportResult:
    added: int
    skipped: int


def registry_contains(store: RecordStore, register_number: str | None) -> bool:
    """Login check: is this register number on the allowlist?"""
    rn = normalize_login_number(register_number)
    if not rn:
        raise ValidationError("Register number is required.", field="register_number")
    return store.exists(RecordTable.REGISTRY, rn)


def add_registrant(store: RecordStore, register_number: str | None):
    rn = normalize_login_number(register_number)
    if not rn:
        raise ValidationError("Register number is required.", field="register_number")
    return store.insert(RecordTable.REGISTRY, {"register_number": rn})


def import_registry(store: RecordStore, numbers, *, log: logging.Logger | None = None) -> RegistryImportResult:
    """Idempotent bulk add; blanks and numbers already registered are skipped."""
    log = log or logger
    added = skipped = 0
    for raw in numbers:
        rn = normalize_login_number(raw)
        if not rn:
            skipped += 1
            continue
        try:
            add_registrant(store, rn)
            added += 1
        except ConflictError:
            skipped += 1
    log.info("REGISTRY: import added=%d skipped=%d", added, skipped)
    return RegistryImportResult(added=added, skipped=skipped)


def read_registry_csv(text: str) -> list[str]:
    """
    Register numbers from CSV text. Uses a "registerNumber"/"register_number"
    column when there is a header, otherwise the first column.
    """
    rows = list(csv.reader(io.StringIO(text)))
    if not rows:
        return []
    header = [h.strip().lower() for h in rows[0]]
    for name in ("registernumber", "register_number"):
        if name in header:
            idx = header.index(name)
            return [r[idx] for r in rows[1:] if len(r) > idx]
    return [r[0] for r in rows if r]
