# -*- coding: utf-8 -*-
"""Shift filters shared by the list endpoints."""
from __future__ import annotations

from datetime import date

from sqlalchemy import or_

from .acl import scope_shifts_query
from .errors import BadRequest, NotFound
from .extensions import db
from .models import AssignedPersonnel, Company, Job, Shift, ShiftStatus


def _parse_date(name: str, raw: str | None) -> date | None:
    if not raw:
        return None
    try:
        return date.fromisoformat(raw[:10])
    except ValueError:
        raise BadRequest(f"Invalid date for '{name}', expected YYYY-MM-DD", code="VALIDATION_ERROR")


def visible_shifts(user):
    return scope_shifts_query(Shift.query, user)


def apply_shift_filters(query, args):
    """Filters: date, from, to, status, job_id, company_id, search."""
    day = _parse_date("date", args.get("date"))
    if day:
        query = query.filter(Shift.date == day)
    d_from = _parse_date("from", args.get("from"))
    if d_from:
        query = query.filter(Shift.date >= d_from)
    d_to = _parse_date("to", args.get("to"))
    if d_to:
        query = query.filter(Shift.date <= d_to)

    status = args.get("status")
    if status and status.lower() != "all":
        if status not in ShiftStatus.ALL:
            raise BadRequest(f"Unknown shift status '{status}'", code="VALIDATION_ERROR")
        query = query.filter(Shift.status == status)

    job_id = args.get("job_id", type=int)
    if job_id:
        query = query.filter(Shift.job_id == job_id)
    company_id = args.get("company_id", type=int)
    if company_id:
        query = query.filter(Shift.job.has(Job.company_id == company_id))

    search = (args.get("search") or "").strip()
    if search:
        like = f"%{search}%"
        query = query.filter(or_(
            Shift.location.ilike(like),
            Shift.description.ilike(like),
            Shift.job.has(Job.name.ilike(like)),
            Shift.job.has(Job.company.has(Company.name.ilike(like))),
        ))
    return query


def ordered(query, sort_order: str = "asc"):
    if (sort_order or "asc").lower() == "desc":
        return query.order_by(Shift.date.desc(), Shift.start_time.desc())
    return query.order_by(Shift.date.asc(), Shift.start_time.asc())


def get_shift(shift_id: int) -> Shift:
    shift = db.session.get(Shift, shift_id)
    if shift is None:
        raise NotFound("Shift not found")
    return shift


def get_assignment(shift: Shift, worker_id: int) -> AssignedPersonnel:
    ap = db.session.get(AssignedPersonnel, worker_id)
    if ap is None or ap.shift_id != shift.id:
        raise NotFound("Worker assignment not found on this shift")
    return ap
