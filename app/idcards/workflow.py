from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field

from app.idcards.modules.archive import service as archive
from app.idcards.modules.id_requests import service as requests_service
from app.idcards.modules.id_requests.service import Attachment
from app.idcards.modules.id_requests.status import RequestState, StatusView, build_probe_pool, resolve_status
from app.idcards.modules.registry import service as registry
from app.idcards.store import RecordStore


@dataclass
class IdCardWorkflow:
    """
    The operations the request gateway calls. Holds the store and the injected
    logger so callers never reach for module-level globals.
    """

    store: RecordStore
    log: logging.Logger = field(default_factory=lambda: logging.getLogger("app.idcards.workflow"))
    transfer_max_workers: int = 4
    resolver_max_workers: int = 4
    max_attachment_bytes: int = requests_service.DEFAULT_MAX_ATTACHMENT_BYTES
    probe_pool: ThreadPoolExecutor | None = field(default=None, repr=False)

    def __post_init__(self) -> None:
        # One bounded pool for every status query, sized once from config.
        if self.probe_pool is None:
            self.probe_pool = build_probe_pool(self.resolver_max_workers)

    def close(self) -> None:
        if self.probe_pool is not None:
            self.probe_pool.shutdown(wait=True)

    @classmethod
    def from_config(cls, store: RecordStore, config: dict, log: logging.Logger | None = None) -> "IdCardWorkflow":
        return cls(
            store=store,
            log=log or logging.getLogger("app.idcards.workflow"),
            transfer_max_workers=int(config.get("TRANSFER_MAX_WORKERS") or 4),
            resolver_max_workers=int(config.get("RESOLVER_MAX_WORKERS") or 4),
            max_attachment_bytes=int(config.get("MAX_ATTACHMENT_BYTES") or requests_service.DEFAULT_MAX_ATTACHMENT_BYTES),
        )

    # ---------- Registry ----------
    def registry_contains(self, register_number: str | None) -> bool:
        return registry.registry_contains(self.store, register_number)

    def add_registrant(self, register_number: str | None):
        return registry.add_registrant(self.store, register_number)

    def import_registry(self, numbers) -> registry.RegistryImportResult:
        return registry.import_registry(self.store, numbers, log=self.log)

    # ---------- Requests ----------
    def submit_request(self, payload: dict, *, attachment: Attachment | None = None):
        return requests_service.submit_request(
            self.store,
            payload,
            attachment=attachment,
            max_attachment_bytes=self.max_attachment_bytes,
            log=self.log,
        )

    def list_requests(self):
        return requests_service.list_requests(self.store)

    def get_request(self, register_number: str | None):
        return requests_service.get_request(self.store, register_number)

    def get_attachment(self, register_number: str | None) -> Attachment:
        return requests_service.get_attachment(self.store, register_number)

    def set_status(self, register_number: str | None, status: str | None, *, reason: str | None = None):
        return requests_service.set_status(self.store, register_number, status, reason=reason, log=self.log)

    def advance_request(self, register_number: str | None, target: RequestState | str, *, reason: str | None = None):
        return requests_service.advance_request(self.store, register_number, target, reason=reason, log=self.log)

    def is_queued(self, register_number: str | None) -> bool:
        return requests_service.is_queued(self.store, register_number)

    def is_accepted(self, register_number: str | None) -> bool:
        return requests_service.is_accepted(self.store, register_number)

    def is_rejected(self, register_number: str | None) -> bool:
        return requests_service.is_rejected(self.store, register_number)

    def get_rejection(self, register_number: str | None):
        return requests_service.get_rejection(self.store, register_number)

    def resolve_status(self, register_number: str | None) -> StatusView:
        return resolve_status(self.store, register_number, executor=self.probe_pool, log=self.log)

    # ---------- Accepted / history ----------
    def list_accepted_for(self, register_number: str | None):
        return requests_service.list_accepted_for(self.store, register_number)

    def list_accepted_history_for(self, register_number: str | None):
        return archive.list_accepted_history_for(self.store, register_number)

    def list_rejected_history_for(self, register_number: str | None):
        return archive.list_rejected_history_for(self.store, register_number)

    def transfer_accepted_to_history(self, register_number: str | None) -> int:
        return archive.transfer_accepted_to_history(
            self.store,
            register_number,
            max_workers=self.transfer_max_workers,
            log=self.log,
        )

    def transfer_rejected_to_history(self, register_number: str | None) -> archive.TransferResult:
        return archive.transfer_rejected_to_history(self.store, register_number, log=self.log)
