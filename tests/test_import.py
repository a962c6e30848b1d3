"""Sync-import of a shift's staffing."""

import pytest

from conftest import day_at
from holitime.extensions import db
from holitime.models import Shift, ShiftStatus, WorkerStatus

pytestmark = pytest.mark.api


def _row(user_id, role_code="SH", clock_in=None, clock_out=None, **kw):
    row = {"user_id": user_id, "role_code": role_code, **kw}
    if clock_in is not None:
        row["clock_in_time"] = clock_in.isoformat()
    if clock_out is not None:
        row["clock_out_time"] = clock_out.isoformat()
    return row


def _import(client, world, workers, **body):
    return client.post(f"/api/shifts/{world.shift}/sync-import", json={"workers": workers, **body})


def test_import_replaces_staffing(app, as_user, world):
    client = as_user("staff")
    workers = [
        _row(world.chief, "CC", day_at(7), day_at(15)),
        _row(world.w1, "SH", day_at(8), day_at(12)),
        _row(world.w1, "SH", day_at(13), day_at(17)),
        _row(world.w2, "FO", day_at(8)),
    ]
    resp = _import(client, world, workers)
    assert resp.status_code == 200
    data = resp.get_json()["data"]
    assert data["workers_processed"] == 4
    assert data["assigned_personnel_created"] == 3
    assert data["time_entries_created"] == 4
    assert data["worker_requirements"]["CC"] == 1
    assert data["worker_requirements"]["SH"] == 1
    assert data["worker_requirements"]["FO"] == 1
    assert data["warnings"] == []

    with app.app_context():
        shift = db.session.get(Shift, world.shift)
        by_user = {ap.user_id: ap for ap in shift.assigned_personnel}
        assert [e.entry_number for e in by_user[world.w1].time_entries] == [1, 2]
        assert by_user[world.w1].status == WorkerStatus.CLOCKED_OUT
        assert by_user[world.w2].status == WorkerStatus.CLOCKED_IN
        assert by_user[world.w2].active_entry is not None


def test_import_without_crew_chief_warns(as_user, world):
    resp = _import(as_user("staff"), world, [_row(world.w1, "SH")])
    data = resp.get_json()["data"]
    assert data["worker_requirements"]["CC"] == 1
    assert data["warnings"]
    assert data["time_entries_created"] == 0


def test_import_moves_pending_shift_to_active(app, as_user, world):
    with app.app_context():
        db.session.get(Shift, world.shift).status = ShiftStatus.PENDING
        db.session.commit()
    resp = _import(as_user("staff"), world, [_row(world.w1)])
    assert resp.get_json()["data"]["shift_status"] == ShiftStatus.ACTIVE


def test_import_refuses_to_overwrite(as_user, world):
    resp = _import(as_user("staff"), world, [_row(world.w1)], overwrite_existing=False)
    assert resp.status_code == 409
    assert resp.get_json()["error"]["details"]["existing_personnel_count"] == 3


def test_import_unknown_users(as_user, world):
    resp = _import(as_user("staff"), world, [_row(world.w1), _row(9999), _row(8888)])
    assert resp.status_code == 400
    error = resp.get_json()["error"]
    assert error["code"] == "USERS_NOT_FOUND"
    assert error["details"]["missing_user_ids"] == [8888, 9999]


def test_import_rejects_bad_rows(as_user, world):
    client = as_user("staff")
    backwards = _row(world.w1, "SH", day_at(12), day_at(8))
    assert _import(client, world, [backwards]).status_code == 400
    assert _import(client, world, []).status_code == 400

    two_open = [_row(world.w1, "SH", day_at(8)), _row(world.w1, "SH", day_at(9))]
    resp = _import(client, world, two_open)
    assert resp.status_code == 400
    assert resp.get_json()["error"]["details"] == {"user_id": world.w1, "role_code": "SH"}

    four = [_row(world.w1, "SH", day_at(h), day_at(h, 30)) for h in (8, 9, 10, 11)]
    assert _import(client, world, four).status_code == 400


def test_import_is_for_managers(as_user, world):
    assert _import(as_user("w1"), world, [_row(world.w1)]).status_code == 403


def test_preview(as_user, world):
    resp = as_user("chief").get(f"/api/shifts/{world.shift}/sync-import")
    assert resp.status_code == 200
    data = resp.get_json()["data"]
    assert data["current_worker_counts"]["CC"] == 1
    assert data["assigned_personnel_count"] == 3
    assert data["time_entries_count"] == 0
