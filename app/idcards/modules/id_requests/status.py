"""
Derived request status.

A request's lifecycle state is not stored anywhere: it follows from which active
table currently holds the register number. The four tables are probed together
and the results are resolved in a fixed precedence (Pending, PrintQueue,
Accepted, Rejected), so an identifier that is (wrongly) live in two tables
still resolves deterministically.
"""
from __future__ import annotations

import enum
import logging
from concurrent.futures import Executor, ThreadPoolExecutor
from dataclasses import asdict, dataclass

from app.idcards.modules.id_requests.utils import require_register_number
from app.idcards.store import RecordStore, RecordTable

logger = logging.getLogger(__name__)

SUBMIT_LABEL = "Submit Request"
ALREADY_SUBMITTED_LABEL = "Request already submitted"
REJECTED_LABEL = "Request rejected"


class RequestState(str, enum.Enum):
    PENDING = "pending"
    QUEUED = "queued"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    NONE = "none"


# Precedence order: first present wins.
PROBE_ORDER = (RequestState.PENDING, RequestState.QUEUED, RequestState.ACCEPTED, RequestState.REJECTED)

STATE_TABLES = {
    RequestState.PENDING: RecordTable.PENDING,
    RequestState.QUEUED: RecordTable.PRINT_QUEUE,
    RequestState.ACCEPTED: RecordTable.ACCEPTED,
    RequestState.REJECTED: RecordTable.REJECTED,
}


@dataclass(frozen=True)
class StatusRule:
    status: str
    form_enabled: bool
    button_text: str


STATUS_RULES = {
    RequestState.PENDING: StatusRule("under-review", False, ALREADY_SUBMITTED_LABEL),
    RequestState.QUEUED: StatusRule("approved-printing", False, ALREADY_SUBMITTED_LABEL),
    # Re-submission is allowed once a card is ready for pickup.
    RequestState.ACCEPTED: StatusRule("ready-pickup", True, SUBMIT_LABEL),
    RequestState.REJECTED: StatusRule("rejected", False, REJECTED_LABEL),
    RequestState.NONE: StatusRule("none", True, SUBMIT_LABEL),
}


@dataclass(frozen=True)
class PresenceFlags:
    has_id_card_request: bool = False
    is_printing: bool = False
    is_ready_for_pickup: bool = False
    is_rejected: bool = False

    @classmethod
    def from_states(cls, present: dict[RequestState, bool]) -> "PresenceFlags":
        return cls(
            has_id_card_request=bool(present.get(RequestState.PENDING)),
            is_printing=bool(present.get(RequestState.QUEUED)),
            is_ready_for_pickup=bool(present.get(RequestState.ACCEPTED)),
            is_rejected=bool(present.get(RequestState.REJECTED)),
        )

    def is_present(self, state: RequestState) -> bool:
        return {
            RequestState.PENDING: self.has_id_card_request,
            RequestState.QUEUED: self.is_printing,
            RequestState.ACCEPTED: self.is_ready_for_pickup,
            RequestState.REJECTED: self.is_rejected,
        }.get(state, False)


@dataclass(frozen=True)
class StatusView:
    register_number: str
    state: RequestState
    status: str
    form_enabled: bool
    button_text: str
    details: PresenceFlags

    def as_dict(self) -> dict:
        return {
            "register_number": self.register_number,
            "state": self.state.value,
            "status": self.status,
            "form_enabled": self.form_enabled,
            "button_text": self.button_text,
            "details": asdict(self.details),
        }


def derive_state(flags: PresenceFlags) -> RequestState:
    for state in PROBE_ORDER:
        if flags.is_present(state):
            return state
    return RequestState.NONE


def build_view(register_number: str, flags: PresenceFlags) -> StatusView:
    state = derive_state(flags)
    rule = STATUS_RULES[state]
    return StatusView(
        register_number=register_number,
        state=state,
        status=rule.status,
        form_enabled=rule.form_enabled,
        button_text=rule.button_text,
        details=flags,
    )


def build_probe_pool(max_workers: int = 4) -> ThreadPoolExecutor:
    return ThreadPoolExecutor(max_workers=max(1, min(max_workers, len(PROBE_ORDER))), thread_name_prefix="status-probe")


def probe_tables(
    store: RecordStore,
    register_number: str,
    *,
    max_workers: int = 4,
    executor: Executor | None = None,
) -> PresenceFlags:
    """
    Issue the four presence probes concurrently and join them. Uses `executor`
    when given (shared, long-lived); otherwise a pool scoped to this call.
    """
    if executor is None:
        with build_probe_pool(max_workers) as pool:
            return probe_tables(store, register_number, executor=pool)
    futures = {state: executor.submit(store.exists, STATE_TABLES[state], register_number) for state in PROBE_ORDER}
    present = {state: fut.result() for state, fut in futures.items()}
    return PresenceFlags.from_states(present)


def resolve_status(
    store: RecordStore,
    register_number: str | None,
    *,
    max_workers: int = 4,
    executor: Executor | None = None,
    log: logging.Logger | None = None,
) -> StatusView:
    log = log or logger
    rn = require_register_number(register_number)
    view = build_view(rn, probe_tables(store, rn, max_workers=max_workers, executor=executor))
    log.debug("STATUS: register_number=%s state=%s details=%s", rn, view.state.value, asdict(view.details))
    return view
