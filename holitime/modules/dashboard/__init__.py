# -*- coding: utf-8 -*-
from __future__ import annotations

from datetime import date, datetime, timedelta

from flask import Blueprint
from flask_login import current_user
from sqlalchemy import func

from ...acl import scope_jobs_query, scope_timesheets_query
from ...api import ok
from ...cache import get_cached, make_key, set_cached
from ...extensions import db
from ...models import AssignedPersonnel, Job, JobStatus, Shift, ShiftStatus, Timesheet, TimesheetStatus, UserRole, WorkerStatus
from ...queries import ordered, visible_shifts
from ...security import api_login_required

bp = Blueprint("dashboard", __name__, url_prefix="/api/dashboard")

UPCOMING_DAYS = 7


def _timesheet_counts(user) -> dict:
    q = scope_timesheets_query(db.session.query(Timesheet.status, func.count(Timesheet.id)), user)
    counts = {status: 0 for status in TimesheetStatus.ALL}
    for status, n in q.group_by(Timesheet.status).all():
        counts[status] = n
    return counts


def _summary(user) -> dict:
    today = date.today()
    now = datetime.utcnow()
    shifts = visible_shifts(user)
    upcoming = ordered(
        shifts.filter(Shift.date >= today, Shift.date <= today + timedelta(days=UPCOMING_DAYS))
        .filter(Shift.status != ShiftStatus.CANCELLED)
    ).all()
    todays = [s for s in upcoming if s.date == today]

    data = {
        "role": user.role,
        "today": {
            "shifts": len(todays),
            "ongoing": sum(1 for s in todays if s.display_status(now) == "Ongoing"),
        },
        "upcoming_shifts": [s.to_dict(now=now) for s in upcoming[:20]],
        "understaffed": [
            {"id": s.id, "date": s.date.isoformat(), "fulfillment": s.fulfillment()}
            for s in upcoming if s.fulfillment()["status"] == "critical"
        ],
        "timesheets": _timesheet_counts(user),
        "active_jobs": scope_jobs_query(Job.query, user).filter(Job.status == JobStatus.ACTIVE).count(),
    }

    if user.role in UserRole.MANAGERS:
        data["workers_clocked_in"] = (
            AssignedPersonnel.query.filter(AssignedPersonnel.status == WorkerStatus.CLOCKED_IN).count()
        )
    elif user.role == UserRole.COMPANY_USER:
        data["awaiting_my_approval"] = data["timesheets"][TimesheetStatus.PENDING_COMPANY_APPROVAL]
    else:
        mine = (
            AssignedPersonnel.query.join(Shift, AssignedPersonnel.shift_id == Shift.id)
            .filter(AssignedPersonnel.user_id == user.id, Shift.date >= today)
            .order_by(Shift.date, Shift.start_time)
            .all()
        )
        data["my_assignments"] = [
            {"shift_id": ap.shift_id, "date": ap.shift.date.isoformat(), "role_code": ap.role_code, "status": ap.status}
            for ap in mine
        ]
    return data


@bp.route("", methods=["GET"])
@api_login_required
def index():
    key = make_key("dashboard", current_user.id)
    cached = get_cached(key)
    if cached is not None:
        return ok(cached, cached=True)
    return ok(set_cached(key, _summary(current_user)), cached=False)
