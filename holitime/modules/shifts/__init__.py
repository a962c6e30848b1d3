# -*- coding: utf-8 -*-
from __future__ import annotations

import logging
from datetime import date, datetime

from flask import Blueprint, request
from flask_login import current_user

from ...acl import can_manage_shift, require_manage_shift, require_view_shift
from ...api import ok, parse_body
from ...cache import get_cached, make_key, set_cached
from ...clock import describe
from ...errors import BadRequest, Conflict, NotFound
from ...extensions import db
from ...models import AssignedPersonnel, Job, Shift, User, UserRole
from ...queries import apply_shift_filters, get_assignment, get_shift, ordered, visible_shifts
from ...schemas import AssignWorkerIn, ShiftIn, ShiftUpdate, WorkerRequirementsIn, shift_window
from ...security import api_login_required, roles_required
from ...timesheets import require_open_timesheet

logger = logging.getLogger(__name__)

bp = Blueprint("shifts", __name__, url_prefix="/api/shifts")


def _check_job(job_id: int) -> Job:
    job = db.session.get(Job, job_id)
    if job is None:
        raise BadRequest("Job not found", details={"job_id": job_id})
    return job


def shift_payload(shift: Shift) -> dict:
    data = shift.to_dict(with_personnel=True)
    data["assigned_personnel"] = [describe(ap) for ap in shift.assigned_personnel]
    data["permissions"] = {"can_manage": can_manage_shift(current_user, shift)}
    return data


def create_shift_from(data: ShiftIn) -> Shift:
    _check_job(data.job_id)
    shift = Shift(
        job_id=data.job_id,
        date=data.date,
        start_time=data.start_time,
        end_time=data.end_time,
        requested_workers=data.requested_workers,
        status=data.status,
        location=data.location,
        description=data.description,
        notes=data.notes,
    )
    for field, value in data.as_columns().items():
        setattr(shift, field, value)
    db.session.add(shift)
    db.session.commit()
    logger.info("Shift %s created for job %s", shift.id, shift.job_id)
    return shift


def update_shift_from(shift: Shift, data: ShiftUpdate) -> Shift:
    changes = data.model_dump(exclude_unset=True)
    if changes.get("job_id") is not None:
        _check_job(changes["job_id"])

    if {"date", "start_time", "end_time"} & changes.keys():
        day = changes.get("date") or shift.date
        start = changes.get("start_time") or shift.start_time
        end = changes.get("end_time") or shift.end_time
        if "date" in changes:
            # keep the wall-clock times when only the day moves
            if changes.get("start_time") is None:
                start = shift.start_time.time()
            if changes.get("end_time") is None:
                end = shift.end_time.time()
        start, end = shift_window(day, start, end)
        if end <= start:
            raise BadRequest("end_time must be after start_time", code="VALIDATION_ERROR")
        shift.date, shift.start_time, shift.end_time = day, start, end

    for field in ("job_id", "requested_workers", "status", "location", "description", "notes"):
        if field in changes and not (changes[field] is None and field in ("job_id", "status")):
            setattr(shift, field, changes[field])
    for field, value in data.as_columns().items():
        setattr(shift, field, value)
    db.session.commit()
    return shift


def delete_shift_row(shift: Shift) -> None:
    if any(ap.time_entries for ap in shift.assigned_personnel):
        raise Conflict("Shift has recorded time entries and cannot be deleted")
    db.session.delete(shift)
    db.session.commit()
    logger.info("Shift %s deleted", shift.id)


# --- listing ---

@bp.route("", methods=["GET"])
@api_login_required
def list_shifts():
    key = make_key("shifts", current_user.id, request.query_string)
    cached = get_cached(key)
    if cached is not None:
        return ok(cached, cached=True)
    q = apply_shift_filters(visible_shifts(current_user), request.args)
    shifts = ordered(q, request.args.get("sort_order", "asc")).all()
    now = datetime.utcnow()
    data = set_cached(key, [s.to_dict(now=now) for s in shifts])
    return ok(data, cached=False)


@bp.route("/today", methods=["GET"])
@api_login_required
def today():
    q = visible_shifts(current_user).filter(Shift.date == date.today())
    return ok([s.to_dict(with_personnel=True) for s in ordered(q).all()])


@bp.route("", methods=["POST"])
@roles_required(UserRole.ADMIN, UserRole.STAFF)
def create_shift():
    shift = create_shift_from(parse_body(ShiftIn))
    return ok(shift.to_dict(with_personnel=True), status=201, message="Shift created")


# --- single shift ---

@bp.route("/<int:shift_id>", methods=["GET"])
@api_login_required
def get_one(shift_id: int):
    shift = get_shift(shift_id)
    require_view_shift(current_user, shift)
    return ok(shift_payload(shift))


@bp.route("/<int:shift_id>", methods=["PUT"])
@roles_required(UserRole.ADMIN, UserRole.STAFF)
def update_one(shift_id: int):
    shift = update_shift_from(get_shift(shift_id), parse_body(ShiftUpdate))
    return ok(shift.to_dict(with_personnel=True), message="Shift updated")


@bp.route("/<int:shift_id>", methods=["DELETE"])
@roles_required(UserRole.ADMIN, UserRole.STAFF)
def delete_one(shift_id: int):
    delete_shift_row(get_shift(shift_id))
    return ok({"id": shift_id}, message="Shift deleted")


@bp.route("/<int:shift_id>/worker-requirements", methods=["GET"])
@api_login_required
def get_requirements(shift_id: int):
    shift = get_shift(shift_id)
    require_view_shift(current_user, shift)
    return ok({"requirements": shift.worker_requirements(), "fulfillment": shift.fulfillment()})


@bp.route("/<int:shift_id>/worker-requirements", methods=["PUT"])
@api_login_required
def put_requirements(shift_id: int):
    shift = get_shift(shift_id)
    require_manage_shift(current_user, shift)
    data = parse_body(WorkerRequirementsIn)
    for field, value in data.as_columns().items():
        setattr(shift, field, value)
    db.session.commit()
    return ok({"requirements": shift.worker_requirements(), "fulfillment": shift.fulfillment()})


# --- assignment ---

@bp.route("/<int:shift_id>/assigned", methods=["GET"])
@api_login_required
def assigned(shift_id: int):
    shift = get_shift(shift_id)
    require_view_shift(current_user, shift)
    return ok([describe(ap) for ap in shift.assigned_personnel])


@bp.route("/<int:shift_id>/assign-worker", methods=["POST"])
@api_login_required
def assign_worker(shift_id: int):
    shift = get_shift(shift_id)
    require_manage_shift(current_user, shift)
    require_open_timesheet(shift, "changing staffing")
    data = parse_body(AssignWorkerIn)

    if data.user_id is not None:
        user = db.session.get(User, data.user_id)
        if user is None or not user.is_active:
            raise NotFound("User not found")
        if any(ap.user_id == user.id for ap in shift.assigned_personnel):
            raise Conflict("User is already assigned to this shift")

    action = "created"
    if data.replace_assignment_id is not None:
        old = get_assignment(shift, data.replace_assignment_id)
        if old.time_entries:
            raise Conflict("Cannot replace an assignment with existing time entries")
        shift.assigned_personnel.remove(old)
        db.session.flush()
        action = "replaced"

    ap = AssignedPersonnel(user_id=data.user_id, role_code=data.role_code)
    shift.assigned_personnel.append(ap)
    db.session.commit()
    logger.info("Shift %s: assignment %s %s (user=%s role=%s)", shift.id, ap.id, action, ap.user_id, ap.role_code)
    return ok({"assignment": describe(ap), "action": action}, status=201)


@bp.route("/<int:shift_id>/assigned/<int:assignment_id>", methods=["DELETE"])
@api_login_required
def unassign(shift_id: int, assignment_id: int):
    shift = get_shift(shift_id)
    require_manage_shift(current_user, shift)
    require_open_timesheet(shift, "changing staffing")
    ap = get_assignment(shift, assignment_id)
    if ap.time_entries:
        raise Conflict("Cannot remove a worker with recorded time entries")
    shift.assigned_personnel.remove(ap)
    db.session.commit()
    return ok({"id": assignment_id}, message="Worker removed from shift")


@bp.route("/<int:shift_id>/check-conflicts", methods=["POST"])
@api_login_required
def check_conflicts(shift_id: int):
    shift = get_shift(shift_id)
    require_view_shift(current_user, shift)
    payload = request.get_json(silent=True) or {}
    user_id = payload.get("user_id")
    if not isinstance(user_id, int):
        raise BadRequest("user_id is required", code="VALIDATION_ERROR")
    rows = (
        db.session.query(AssignedPersonnel, Shift)
        .join(Shift, AssignedPersonnel.shift_id == Shift.id)
        .filter(
            AssignedPersonnel.user_id == user_id,
            Shift.id != shift.id,
            Shift.start_time < shift.end_time,
            Shift.end_time > shift.start_time,
        )
        .all()
    )
    conflicts = [
        {
            "shift_id": other.id,
            "start_time": other.start_time.isoformat(),
            "end_time": other.end_time.isoformat(),
            "role_code": ap.role_code,
        }
        for ap, other in rows
    ]
    return ok({"has_conflicts": bool(conflicts), "conflicts": conflicts})
