"""Timesheet finalization, approval, rejection and unlock."""

import os
from pathlib import Path
from types import SimpleNamespace

from conftest import assign, day_at, signature_data_url
from holitime import clock, storage, timesheets
from holitime.extensions import db
from holitime.models import AssignedPersonnel, Notification, RoleCode, Shift, Timesheet, TimesheetStatus, User


def _ts(app, ts_id):
    with app.app_context():
        ts = db.session.get(Timesheet, ts_id)
        return SimpleNamespace(**ts.to_dict(with_entries=True), manager_notes_raw=ts.manager_notes)


def _approve(client, ts_id, approval_type, **body):
    return client.post(f"/api/timesheets/{ts_id}/approve", json={"approval_type": approval_type, **body})


# ---------- hours / report ----------

def test_worker_hours_split_regular_and_overtime():
    e = lambda n, a, b: SimpleNamespace(entry_number=n, clock_in=day_at(a), clock_out=day_at(b))
    hours = timesheets.worker_hours([e(1, 8, 12), e(2, 13, 18)])
    assert hours == {"total": 9.0, "regular": 8.0, "overtime": 1.0}
    open_entry = SimpleNamespace(entry_number=3, clock_in=day_at(18), clock_out=None)
    assert timesheets.worker_hours([e(1, 8, 10), open_entry])["total"] == 2.0


def test_finalize_snapshots_entries(app, ts_id):
    with app.app_context():
        ts = db.session.get(Timesheet, ts_id)
        assert ts.status == TimesheetStatus.PENDING_COMPANY_APPROVAL
        assert [(e.user_name, e.entry_number) for e in ts.entries] == [("Wes Worker", 1), ("Wes Worker", 2)]
        assert ts.shift.status == "Completed"
        assert ts.unsigned_excel_key and ts.unsigned_pdf_key

        report = timesheets.build_report(ts)
        rows = {w["name"]: w for w in report["workers"]}
        assert set(rows) == {"Chris Chief", "Wes Worker", "Fay Forklift"}
        wes = rows["Wes Worker"]
        assert wes["role_name"] == "Stage Hand"
        assert wes["initials"] == "WW"
        assert wes["pairs"] == [(day_at(8), day_at(12)), (day_at(13), day_at(19))]
        assert (wes["regular"], wes["overtime"]) == (8.0, 2.0)
        assert report["totals"] == {"regular": 8.0, "overtime": 2.0}


def test_finalize_notifies_company_users(app, world, ts_id):
    with app.app_context():
        notes = Notification.query.filter_by(user_id=world.client_user).all()
        assert [n.type for n in notes] == ["TIMESHEET_READY"]
        assert Notification.query.filter_by(user_id=world.other_client).count() == 0


# ---------- approval ----------

def test_company_approval_requires_signature(as_user, ts_id):
    resp = _approve(as_user("client"), ts_id, "client")
    assert resp.status_code == 400
    assert resp.get_json()["error"]["code"] == "SIGNATURE_REQUIRED"


def test_company_then_manager_approval(app, world, as_user, ts_id):
    client = as_user("client")
    resp = _approve(client, ts_id, "client", signature=signature_data_url(), notes="Looks right")
    assert resp.status_code == 200
    data = resp.get_json()["data"]
    assert data["status"] == TimesheetStatus.PENDING_MANAGER_APPROVAL
    assert data["has_company_signature"] is True
    assert data["files"]["signed_excel"] is True
    assert data["files"]["signed_pdf"] is True
    with app.app_context():
        assert Notification.query.filter_by(user_id=world.admin, type="TIMESHEET_PENDING_MANAGER").count() == 1

    resp = _approve(as_user("admin"), ts_id, "manager")
    assert resp.status_code == 200
    assert resp.get_json()["data"]["status"] == TimesheetStatus.COMPLETED
    with app.app_context():
        assert Notification.query.filter_by(user_id=world.chief, type="TIMESHEET_COMPLETED").count() == 1


def test_manager_approval_is_admin_only(as_user, ts_id):
    _approve(as_user("client"), ts_id, "client", signature=signature_data_url())
    resp = _approve(as_user("staff"), ts_id, "manager")
    assert resp.status_code == 403


def test_manager_approval_out_of_order(as_user, ts_id):
    resp = _approve(as_user("admin"), ts_id, "manager")
    assert resp.status_code == 400
    assert resp.get_json()["error"]["code"] == "INVALID_STATUS"


def test_admin_override_walks_both_stages(app, as_user, ts_id):
    client = as_user("admin")
    resp = _approve(client, ts_id, "admin")
    assert resp.get_json()["data"]["status"] == TimesheetStatus.PENDING_MANAGER_APPROVAL
    assert resp.get_json()["data"]["company_notes"] == "Admin Override"
    resp = _approve(client, ts_id, "admin", notes="ok")
    assert resp.get_json()["data"]["status"] == TimesheetStatus.COMPLETED
    assert _approve(client, ts_id, "admin").status_code == 400


def test_other_company_cannot_see_timesheet(as_user, ts_id):
    client = as_user("other_client")
    assert client.get(f"/api/timesheets/{ts_id}").status_code == 403
    assert _approve(client, ts_id, "client", signature=signature_data_url()).status_code == 403


def test_get_timesheet_includes_report(as_user, ts_id):
    resp = as_user("chief").get(f"/api/timesheets/{ts_id}")
    assert resp.status_code == 200
    data = resp.get_json()["data"]
    assert len(data["entries"]) == 2
    wes = next(w for w in data["report"]["workers"] if w["name"] == "Wes Worker")
    assert wes["pairs"][0]["clock_in"] == day_at(8).isoformat()


def test_list_is_scoped(as_user, ts_id):
    assert len(as_user("client").get("/api/timesheets").get_json()["data"]) == 1
    assert as_user("other_client").get("/api/timesheets").get_json()["data"] == []
    resp = as_user("admin").get("/api/timesheets?status=COMPLETED")
    assert resp.get_json()["data"] == []
    assert resp.get_json()["meta"]["pagination"]["total"] == 0
    assert as_user("admin").get("/api/timesheets?status=bogus").status_code == 400


# ---------- reject / unlock ----------

def test_client_rejection_notifies_workers_and_admins(app, world, as_user, ts_id):
    resp = as_user("client").post(f"/api/timesheets/{ts_id}/reject", json={"reason": "Hours are wrong"})
    assert resp.status_code == 200
    data = resp.get_json()["data"]
    assert data["status"] == TimesheetStatus.REJECTED
    assert data["rejection_reason"] == "Hours are wrong"
    with app.app_context():
        for uid in (world.w1, world.w2, world.chief, world.admin):
            assert Notification.query.filter_by(user_id=uid, type="TIMESHEET_REJECTED").count() == 1


def test_employee_cannot_reject(as_user, ts_id):
    resp = as_user("w1").post(f"/api/timesheets/{ts_id}/reject", json={"reason": "no"})
    assert resp.status_code == 403


def test_reject_needs_a_reason(as_user, ts_id):
    resp = as_user("admin").post(f"/api/timesheets/{ts_id}/reject", json={})
    assert resp.status_code == 400
    assert resp.get_json()["error"]["code"] == "VALIDATION_ERROR"


def test_completed_timesheet_is_locked_until_unlocked(app, as_user, ts_id):
    client = as_user("admin")
    _approve(client, ts_id, "admin")
    _approve(client, ts_id, "admin")
    assert client.post(f"/api/timesheets/{ts_id}/reject", json={"reason": "late"}).status_code == 400

    with app.app_context():
        shift_id = db.session.get(Timesheet, ts_id).shift_id
    resp = client.post(f"/api/shifts/{shift_id}/finalize-timesheet")
    assert resp.status_code == 409
    assert resp.get_json()["error"]["code"] == "TIMESHEET_LOCKED"

    resp = client.post(f"/api/timesheets/{ts_id}/unlock", json={"reason": "Fix rate"})
    assert resp.status_code == 200
    data = _ts(app, ts_id)
    assert data.status == TimesheetStatus.DRAFT
    assert data.has_company_signature is False
    assert not any(data.files.values())
    assert data.manager_notes_raw.startswith("UNLOCKED BY ADMIN: Ada Admin")
    assert "Reason: Fix rate" in data.manager_notes_raw

    resp = client.post(f"/api/shifts/{shift_id}/finalize-timesheet")
    assert resp.status_code == 200
    assert resp.get_json()["data"]["status"] == TimesheetStatus.PENDING_COMPANY_APPROVAL


def test_unlock_is_admin_only(as_user, ts_id):
    client = as_user("admin")
    _approve(client, ts_id, "admin")
    _approve(client, ts_id, "admin")
    resp = as_user("staff").post(f"/api/timesheets/{ts_id}/unlock", json={"reason": "x"})
    assert resp.status_code == 403


def test_unlock_only_from_completed(as_user, ts_id):
    resp = as_user("admin").post(f"/api/timesheets/{ts_id}/unlock", json={"reason": "x"})
    assert resp.status_code == 400


# ---------- staffing after submission ----------

def test_staffing_is_frozen_while_timesheet_is_submitted(as_user, world, ts_id):
    client = as_user("admin")
    resp = client.post(f"/api/shifts/{world.shift}/assign-worker", json={"user_id": world.outsider_chief})
    assert resp.status_code == 409
    assert resp.get_json()["error"]["code"] == "TIMESHEET_LOCKED"

    resp = client.post(f"/api/shifts/{world.shift}/sync-import", json={
        "workers": [{"user_id": world.w1, "role_code": "SH", "clock_in_time": day_at(9).isoformat()}],
    })
    assert resp.status_code == 409
    assert resp.get_json()["error"]["code"] == "TIMESHEET_LOCKED"

    resp = client.delete(f"/api/shifts/{world.shift}/assigned/{world.cc_ap}")
    assert resp.get_json()["error"]["code"] == "TIMESHEET_LOCKED"

    _approve(client, ts_id, "admin")
    resp = client.post(f"/api/shifts/{world.shift}/assign-worker", json={"user_id": world.outsider_chief})
    assert resp.status_code == 409

    client.post(f"/api/timesheets/{ts_id}/reject", json={"reason": "Missing a rigger"})
    resp = client.post(f"/api/shifts/{world.shift}/assign-worker", json={"user_id": world.outsider_chief})
    assert resp.status_code == 201


def test_approval_refused_while_a_worker_is_clocked_in(app, as_user, world, ts_id):
    with app.app_context():
        shift = db.session.get(Shift, world.shift)
        late = assign(shift, db.session.get(User, world.outsider_chief), RoleCode.GL)
        clock.clock_in(late, now=day_at(20))
        db.session.commit()

    resp = _approve(as_user("admin"), ts_id, "admin")
    assert resp.status_code == 400
    error = resp.get_json()["error"]
    assert error["code"] == "FINALIZATION_BLOCKED"
    assert [d["user_id"] for d in error["details"]] == [world.outsider_chief]

    resp = _approve(as_user("client"), ts_id, "client", signature=signature_data_url())
    assert resp.get_json()["error"]["code"] == "FINALIZATION_BLOCKED"
    assert _ts(app, ts_id).status == TimesheetStatus.PENDING_COMPANY_APPROVAL


def test_refinalize_after_rejection_drops_old_approval(app, as_user, world, ts_id):
    _approve(as_user("client"), ts_id, "client", signature=signature_data_url(), notes="Signed off")
    client = as_user("admin")
    client.post(f"/api/timesheets/{ts_id}/reject", json={"reason": "Wrong break times"})
    with app.app_context():
        signed_path = storage.path_for(db.session.get(Timesheet, ts_id).signed_excel_key)
    assert os.path.isfile(signed_path)

    resp = client.post(f"/api/shifts/{world.shift}/finalize-timesheet")
    assert resp.status_code == 200
    data = resp.get_json()["data"]
    assert data["status"] == TimesheetStatus.PENDING_COMPANY_APPROVAL
    assert data["has_company_signature"] is False
    assert data["company_approved_at"] is None
    assert data["company_approved_by"] is None
    assert data["company_notes"] is None
    assert data["files"] == {"unsigned_excel": True, "signed_excel": False, "unsigned_pdf": True, "signed_pdf": False}
    assert not os.path.exists(signed_path)

    resp = client.get(f"/api/timesheets/{ts_id}/excel")
    assert "-signed" not in resp.headers["Content-Disposition"]


def test_files_are_written_only_after_commit(app, world):
    with app.app_context():
        for ap_id in (world.cc_ap, world.ap1):
            clock.end_shift(db.session.get(AssignedPersonnel, ap_id), now=day_at(16))
        clock.mark_no_show(db.session.get(AssignedPersonnel, world.ap2))
        shift = db.session.get(Shift, world.shift)
        ts = timesheets.finalize(shift, db.session.get(User, world.chief), now=day_at(16, 30))
        assert not any(ts.file_keys().values())
        db.session.rollback()
        assert db.session.get(Shift, world.shift).timesheet is None
    assert list(Path(app.config["EXPORT_DIR"]).rglob("*.*")) == []
