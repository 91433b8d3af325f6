"""Tests for the derived request status."""
import pytest

from app.idcards import create_app
from app.idcards.db import session_scope
from app.idcards.errors import ConflictError, ValidationError
from app.idcards.models import Base
from app.idcards.modules.id_requests.models import AcceptedIdCard, IdCardRequest, PrintQueueEntry, RejectedIdCard
from app.idcards.modules.id_requests.status import PresenceFlags, RequestState, build_view, derive_state, resolve_status


@pytest.fixture()
def app(tmp_path, monkeypatch):
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path/'test.db'}")
    monkeypatch.setenv("ENV", "test")
    for k in ("EXCLUSIVE_ACTIVE_TABLES", "TRANSFER_MAX_WORKERS", "RESOLVER_MAX_WORKERS", "MAX_ATTACHMENT_BYTES"):
        monkeypatch.delenv(k, raising=False)

    app = create_app()
    Base.metadata.create_all(bind=app.extensions["sqlalchemy_engine"])
    return app


@pytest.fixture()
def wf(app):
    return app.extensions["idcard_workflow"]


def _seed(app, *rows):
    with session_scope(app) as s:
        s.add_all(rows)


class TestDeriveState:
    """Precedence resolution is pure and needs no database."""

    def test_nothing_present(self):
        assert derive_state(PresenceFlags()) == RequestState.NONE

    def test_single_tables(self):
        assert derive_state(PresenceFlags(has_id_card_request=True)) == RequestState.PENDING
        assert derive_state(PresenceFlags(is_printing=True)) == RequestState.QUEUED
        assert derive_state(PresenceFlags(is_ready_for_pickup=True)) == RequestState.ACCEPTED
        assert derive_state(PresenceFlags(is_rejected=True)) == RequestState.REJECTED

    def test_precedence_when_overlapping(self):
        everything = PresenceFlags(True, True, True, True)
        assert derive_state(everything) == RequestState.PENDING
        assert derive_state(PresenceFlags(is_printing=True, is_rejected=True)) == RequestState.QUEUED
        assert derive_state(PresenceFlags(is_ready_for_pickup=True, is_rejected=True)) == RequestState.ACCEPTED

    def test_view_labels(self):
        v = build_view("X1", PresenceFlags(is_rejected=True))
        assert (v.status, v.form_enabled, v.button_text) == ("rejected", False, "Request rejected")
        v = build_view("X1", PresenceFlags(is_ready_for_pickup=True))
        assert (v.status, v.form_enabled, v.button_text) == ("ready-pickup", True, "Submit Request")


@pytest.mark.parametrize(
    "row_cls,status,form_enabled,button_text",
    [
        (IdCardRequest, "under-review", False, "Request already submitted"),
        (PrintQueueEntry, "approved-printing", False, "Request already submitted"),
        (AcceptedIdCard, "ready-pickup", True, "Submit Request"),
        (RejectedIdCard, "rejected", False, "Request rejected"),
    ],
)
def test_status_for_each_active_table(app, wf, row_cls, status, form_enabled, button_text):
    _seed(app, row_cls(register_number="21CS010", name="A"))
    view = wf.resolve_status("21CS010")
    assert view.status == status
    assert view.form_enabled is form_enabled
    assert view.button_text == button_text
    assert sum(view.as_dict()["details"].values()) == 1


def test_status_none_when_absent(wf):
    view = wf.resolve_status("21CS404")
    assert view.state == RequestState.NONE
    assert view.status == "none"
    assert view.form_enabled is True
    assert view.button_text == "Submit Request"
    assert view.as_dict()["details"] == {
        "has_id_card_request": False,
        "is_printing": False,
        "is_ready_for_pickup": False,
        "is_rejected": False,
    }


def test_pending_wins_over_accepted(app, wf):
    _seed(
        app,
        IdCardRequest(register_number="21CS011", name="A"),
        AcceptedIdCard(register_number="21CS011", name="A"),
    )
    view = wf.resolve_status("21CS011")
    assert view.status == "under-review"
    assert view.details.has_id_card_request is True
    assert view.details.is_ready_for_pickup is True


def test_identifier_is_trimmed(app, wf):
    _seed(app, PrintQueueEntry(register_number="21CS012"))
    assert wf.resolve_status("  21CS012 ").status == "approved-printing"


def test_blank_identifier_rejected(wf):
    with pytest.raises(ValidationError):
        wf.resolve_status("   ")


def test_serial_probes_match_concurrent(app, wf):
    _seed(app, RejectedIdCard(register_number="21CS013", name="A"))
    assert resolve_status(wf.store, "21CS013", max_workers=1).status == "rejected"
    assert wf.resolve_status("21CS013").status == "rejected"


def test_status_queries_share_one_pool(app, wf, monkeypatch):
    pool = wf.probe_pool
    submitted = []
    real_submit = pool.submit

    def counting_submit(fn, *args, **kwargs):
        submitted.append(args)
        return real_submit(fn, *args, **kwargs)

    monkeypatch.setattr(pool, "submit", counting_submit)
    wf.resolve_status("21CS016")
    wf.resolve_status("21CS017")
    assert wf.probe_pool is pool
    assert len(submitted) == 8

    wf.close()
    with pytest.raises(RuntimeError):
        pool.submit(len, "x")


def test_worked_example(app, wf):
    wf.submit_request({"register_number": "21CS001", "name": "A"})
    assert wf.resolve_status("21CS001").status == "under-review"

    row = wf.get_request("21CS001")
    _seed(app, AcceptedIdCard(register_number="21CS001", name="A"))
    with session_scope(app) as s:
        s.delete(s.get(IdCardRequest, row.id))
    assert wf.resolve_status("21CS001").status == "ready-pickup"

    assert wf.transfer_accepted_to_history("21CS001") == 1
    assert wf.list_accepted_for("21CS001") == []
    assert len(wf.list_accepted_history_for("21CS001")) == 1




@pytest.fixture()
def exclusive_wf(tmp_path, monkeypatch):
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path/'excl.db'}")
    monkeypatch.setenv("ENV", "test")
    monkeypatch.setenv("EXCLUSIVE_ACTIVE_TABLES", "1")
    app = create_app()
    Base.metadata.create_all(bind=app.extensions["sqlalchemy_engine"])
    return app, app.extensions["idcard_workflow"]


def test_exclusive_mode_allows_resubmit_after_pickup(exclusive_wf):
    app, wf = exclusive_wf
    _seed(app, AcceptedIdCard(register_number="21CS014", name="A"))
    view = wf.resolve_status("21CS014")
    assert (view.status, view.form_enabled, view.button_text) == ("ready-pickup", True, "Submit Request")

    wf.submit_request({"register_number": "21CS014", "name": "A"})
    assert wf.resolve_status("21CS014").status == "under-review"

    wf.advance_request("21CS014", "queued")
    assert wf.resolve_status("21CS014").status == "approved-printing"
    assert len(wf.list_accepted_for("21CS014")) == 1


def test_exclusive_mode_blocks_resubmit_while_rejected(exclusive_wf):
    app, wf = exclusive_wf
    _seed(app, RejectedIdCard(register_number="21CS015", name="A"))
    assert wf.resolve_status("21CS015").form_enabled is False
    with pytest.raises(ConflictError):
        wf.submit_request({"register_number": "21CS015", "name": "A"})
    assert wf.resolve_status("21CS015").status == "rejected"
