"""Tests for request submission, status edits and administrative moves."""
import json

import pytest

from app.idcards import create_app
from app.idcards.db import session_scope
from app.idcards.errors import ConflictError, NotFoundError, ValidationError
from app.idcards.models import Base, WorkflowEvent
from app.idcards.modules.id_requests.models import AcceptedIdCard, IdCardRequest, PrintQueueEntry, RejectedIdCard
from app.idcards.modules.id_requests.service import Attachment
from app.idcards.store import SqlUnitOfWork


@pytest.fixture()
def app(tmp_path, monkeypatch):
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path/'test.db'}")
    monkeypatch.setenv("ENV", "test")
    monkeypatch.setenv("MAX_ATTACHMENT_BYTES", "1024")
    for k in ("EXCLUSIVE_ACTIVE_TABLES", "TRANSFER_MAX_WORKERS", "RESOLVER_MAX_WORKERS"):
        monkeypatch.delenv(k, raising=False)

    app = create_app()
    Base.metadata.create_all(bind=app.extensions["sqlalchemy_engine"])
    return app


@pytest.fixture()
def wf(app):
    return app.extensions["idcard_workflow"]


def _payload(**overrides):
    payload = {
        "register_number": "21CS001",
        "name": "Asha Rao",
        "dob": "2003-04-01",
        "department": "CSE",
        "year": "3",
        "section": "B",
        "library_code": "LIB-77",
        "reason": "Lost card",
    }
    payload.update(overrides)
    return payload


def _actions(app):
    with session_scope(app) as s:
        return [e.action for e in s.query(WorkflowEvent).order_by(WorkflowEvent.id.asc()).all()]


def test_submit_then_get(wf):
    row = wf.submit_request(_payload())
    assert row.id is not None
    assert row.status == "pending"

    got = wf.get_request("21CS001")
    assert got.name == "Asha Rao"
    assert got.library_code == "LIB-77"
    assert got.created_at is not None
    assert got.last_updated is not None


def test_submit_duplicate_conflicts(wf):
    wf.submit_request(_payload())
    with pytest.raises(ConflictError) as exc:
        wf.submit_request(_payload(name="Someone Else"))
    assert "already exists" in str(exc.value)
    assert len(wf.list_requests()) == 1


@pytest.mark.parametrize("missing", ["register_number", "name"])
def test_submit_requires_fields(wf, missing):
    with pytest.raises(ValidationError):
        wf.submit_request(_payload(**{missing: "  "}))
    assert wf.list_requests() == []


def test_submit_strips_values(wf):
    wf.submit_request(_payload(register_number=" 21CS002 ", section="  "))
    row = wf.get_request("21CS002")
    assert row.register_number == "21CS002"
    assert row.section is None


def test_get_missing_raises(wf):
    with pytest.raises(NotFoundError):
        wf.get_request("21CS999")


def test_list_newest_first_without_photo_bytes(wf):
    wf.submit_request(_payload(register_number="21CS001"), attachment=Attachment(b"\x89PNG-data", "image/png", "me.png"))
    wf.submit_request(_payload(register_number="21CS002"))

    rows = wf.list_requests()
    assert [r.register_number for r in rows] == ["21CS002", "21CS001"]

    first = rows[1].as_dict()
    assert first["photo"] == {"content_type": "image/png", "original_name": "me.png"}
    assert "photo_data" not in first
    assert rows[0].as_dict()["photo"] is None


def test_attachment_round_trip(wf):
    wf.submit_request(_payload(), attachment=Attachment(b"abc", "image/jpeg", "../../etc/passwd.jpg"))
    att = wf.get_attachment("21CS001")
    assert att.data == b"abc"
    assert att.content_type == "image/jpeg"
    assert att.filename == "etc_passwd.jpg"


def test_attachment_missing(wf):
    wf.submit_request(_payload())
    with pytest.raises(NotFoundError):
        wf.get_attachment("21CS001")


def test_attachment_size_cap(wf):
    with pytest.raises(ValidationError):
        wf.submit_request(_payload(), attachment=Attachment(b"x" * 2048, "image/png", "big.png"))


def test_set_status_updates_in_place(wf):
    created = wf.submit_request(_payload())
    updated = wf.set_status("21CS001", "approved", reason="Docs verified")
    assert updated.id == created.id
    assert updated.status == "approved"
    assert updated.last_updated >= created.last_updated
    assert wf.get_request("21CS001").status == "approved"
    # Annotation only: still Pending.
    assert wf.resolve_status("21CS001").status == "under-review"


def test_set_status_missing_and_blank(wf):
    with pytest.raises(NotFoundError):
        wf.set_status("21CS404", "approved")
    wf.submit_request(_payload())
    with pytest.raises(ValidationError):
        wf.set_status("21CS001", "  ")


def test_presence_checks(app, wf):
    with session_scope(app) as s:
        s.add_all(
            [
                PrintQueueEntry(register_number="Q1"),
                AcceptedIdCard(register_number="A1", name="A"),
                RejectedIdCard(register_number="R1", name="R"),
            ]
        )
    assert wf.is_queued("Q1") and not wf.is_queued("A1")
    assert wf.is_accepted("A1") and not wf.is_accepted("R1")
    assert wf.is_rejected("R1") and not wf.is_rejected("Q1")


def test_get_rejection(app, wf):
    with session_scope(app) as s:
        s.add(RejectedIdCard(register_number="R2", name="R", reason="Blurred photo"))
    assert wf.get_rejection("R2").reason == "Blurred photo"
    with pytest.raises(NotFoundError):
        wf.get_rejection("R3")


def test_list_accepted_for_returns_all_rows(app, wf):
    with session_scope(app) as s:
        s.add_all([AcceptedIdCard(register_number="A2", name="first"), AcceptedIdCard(register_number="A2", name="second")])
    names = [r.name for r in wf.list_accepted_for("A2")]
    assert sorted(names) == ["first", "second"]


def test_advance_pending_to_print_queue_then_accepted(wf):
    wf.submit_request(_payload())
    queued = wf.advance_request("21CS001", "queued", reason="Approved for printing")
    assert isinstance(queued, PrintQueueEntry)
    assert queued.name == "Asha Rao"
    assert wf.resolve_status("21CS001").status == "approved-printing"
    with pytest.raises(NotFoundError):
        wf.get_request("21CS001")

    accepted = wf.advance_request("21CS001", "accepted")
    assert isinstance(accepted, AcceptedIdCard)
    assert accepted.department == "CSE"
    view = wf.resolve_status("21CS001")
    assert view.status == "ready-pickup"
    assert view.details.is_printing is False


def test_advance_rejects_illegal_moves(app, wf):
    with pytest.raises(NotFoundError):
        wf.advance_request("21CS001", "accepted")

    wf.submit_request(_payload())
    with pytest.raises(ValidationError):
        wf.advance_request("21CS001", "pending")
    with pytest.raises(ValidationError):
        wf.advance_request("21CS001", "archived")

    wf.advance_request("21CS001", "rejected")
    with pytest.raises(ValidationError):
        wf.advance_request("21CS001", "accepted")
    assert wf.resolve_status("21CS001").status == "rejected"


def test_advance_conflict_rolls_back(app, wf):
    with session_scope(app) as s:
        s.add(RejectedIdCard(register_number="21CS001", name="old"))
    wf.submit_request(_payload())
    with pytest.raises(ConflictError):
        wf.advance_request("21CS001", "rejected")
    # The Pending row survives the failed move.
    assert wf.get_request("21CS001").name == "Asha Rao"


def test_workflow_events_recorded(app, wf):
    wf.submit_request(_payload())
    wf.set_status("21CS001", "checked")
    wf.advance_request("21CS001", "accepted")
    assert _actions(app) == ["request.submit", "request.status", "request.transition"]

    with session_scope(app) as s:
        ev = s.query(WorkflowEvent).filter(WorkflowEvent.action == "request.transition").one()
        assert json.loads(ev.metadata_json)["from"] == "pending"
        assert ev.register_number == "21CS001"


def test_failed_submit_records_no_event(app, wf):
    wf.submit_request(_payload())
    with pytest.raises(ConflictError):
        wf.submit_request(_payload())
    assert _actions(app) == ["request.submit"]
    with session_scope(app) as s:
        assert s.query(IdCardRequest).count() == 1


def test_racing_submissions_conflict_at_the_unique_index(app, wf, monkeypatch):
    wf.submit_request(_payload())
    # The second writer's pre-check misses the first row, as in a true race.
    with monkeypatch.context() as m:
        m.setattr(SqlUnitOfWork, "exists", lambda self, table, register_number: False)
        with pytest.raises(ConflictError) as exc:
            wf.submit_request(_payload(name="Second Writer"))
    assert str(exc.value) == "An application with this register number already exists."

    assert wf.get_request("21CS001").name == "Asha Rao"
    assert _actions(app) == ["request.submit"]
