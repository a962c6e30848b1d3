# -*- coding: utf-8 -*-
"""Clock actions on a shift's workers. Every state change goes through holitime.clock."""
from __future__ import annotations

import logging

from flask import Blueprint
from flask_login import current_user

from ... import clock, importer, timesheets
from ...acl import require_manage_shift, require_view_shift
from ...api import ok, parse_body
from ...extensions import db
from ...queries import get_assignment, get_shift
from ...schemas import ClockInIn, SyncImportIn, WorkerActionIn
from ...security import api_login_required

logger = logging.getLogger(__name__)

bp = Blueprint("staffing", __name__, url_prefix="/api/shifts")


def _managed_shift(shift_id: int):
    shift = get_shift(shift_id)
    require_manage_shift(current_user, shift)
    return shift


def _worker_response(shift, ap, message, **extra):
    data = {
        "worker": clock.describe(ap),
        "worker_status": shift.worker_status_summary(),
        "can_finalize": clock.can_finalize(shift),
    }
    data.update(extra)
    return ok(data, message=message)


@bp.route("/<int:shift_id>/clock-in", methods=["POST"])
@api_login_required
def clock_in(shift_id: int):
    shift = _managed_shift(shift_id)
    data = parse_body(ClockInIn)
    ap = get_assignment(shift, data.worker_id)
    entry = clock.clock_in(ap, entry_number=data.entry_number)
    db.session.commit()
    return _worker_response(shift, ap, "Worker clocked in", time_entry=entry.to_dict())


@bp.route("/<int:shift_id>/clock-out", methods=["POST"])
@api_login_required
def clock_out(shift_id: int):
    shift = _managed_shift(shift_id)
    ap = get_assignment(shift, parse_body(WorkerActionIn).worker_id)
    entry = clock.clock_out(ap)
    db.session.commit()
    return _worker_response(shift, ap, "Worker clocked out", time_entry=entry.to_dict())


@bp.route("/<int:shift_id>/start-break", methods=["POST"])
@api_login_required
def start_break(shift_id: int):
    shift = _managed_shift(shift_id)
    ap = get_assignment(shift, parse_body(WorkerActionIn).worker_id)
    entry = clock.start_break(ap)
    db.session.commit()
    return _worker_response(shift, ap, "Worker on break", time_entry=entry.to_dict())


@bp.route("/<int:shift_id>/end-worker-shift", methods=["POST"])
@api_login_required
def end_worker_shift(shift_id: int):
    shift = _managed_shift(shift_id)
    ap = get_assignment(shift, parse_body(WorkerActionIn).worker_id)
    clock.end_shift(ap)
    ts = timesheets.maybe_auto_finalize(shift, current_user)
    db.session.commit()
    if ts is not None and timesheets.sync_files(ts):
        db.session.commit()
    return _worker_response(
        shift, ap, "Worker shift ended",
        all_workers_ended=clock.can_finalize(shift),
        timesheet_id=ts.id if ts else None,
    )


@bp.route("/<int:shift_id>/mark-no-show", methods=["POST"])
@api_login_required
def mark_no_show(shift_id: int):
    shift = _managed_shift(shift_id)
    ap = get_assignment(shift, parse_body(WorkerActionIn).worker_id)
    clock.mark_no_show(ap)
    db.session.commit()
    return _worker_response(shift, ap, "Worker marked as no-show")


@bp.route("/<int:shift_id>/master-start-break", methods=["POST"])
@api_login_required
def master_start_break(shift_id: int):
    shift = _managed_shift(shift_id)
    workers = clock.start_break_all(shift)
    db.session.commit()
    return ok(
        {"affected_workers": len(workers), "workers": [clock.describe(ap) for ap in workers]},
        message=f"Break started for {len(workers)} workers",
    )


@bp.route("/<int:shift_id>/master-end-shift", methods=["POST"])
@api_login_required
def master_end_shift(shift_id: int):
    shift = _managed_shift(shift_id)
    workers = clock.end_shift_all(shift)
    db.session.commit()
    return ok(
        {
            "affected_workers": len(workers),
            "workers": [clock.describe(ap) for ap in workers],
            "can_finalize": clock.can_finalize(shift),
        },
        message=f"Shift ended for {len(workers)} workers",
    )


@bp.route("/<int:shift_id>/finalize-timesheet", methods=["POST"])
@api_login_required
def finalize_timesheet(shift_id: int):
    shift = _managed_shift(shift_id)
    ts = timesheets.finalize(shift, current_user)
    db.session.commit()
    if timesheets.sync_files(ts):
        db.session.commit()
    return ok(ts.to_dict(), message="Timesheet finalized and submitted for approval")


@bp.route("/<int:shift_id>/sync-import", methods=["POST"])
@api_login_required
def sync_import(shift_id: int):
    shift = _managed_shift(shift_id)
    result = importer.sync_import(shift, parse_body(SyncImportIn))
    db.session.commit()
    return ok(result, message="Shift synchronized with imported data")


@bp.route("/<int:shift_id>/sync-import", methods=["GET"])
@api_login_required
def sync_import_preview(shift_id: int):
    shift = get_shift(shift_id)
    require_view_shift(current_user, shift)
    return ok(importer.preview(shift))
