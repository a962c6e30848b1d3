# -*- coding: utf-8 -*-
"""
Timesheet workflow.

    finalize -> PENDING_COMPANY_APPROVAL -> PENDING_MANAGER_APPROVAL -> COMPLETED
                        \\______________ reject ______________/
    unlock: COMPLETED -> DRAFT (admin only)

Routes commit; everything here mutates, flushes and notifies. Export files
are written by sync_files once the route has committed.
"""
from __future__ import annotations

import logging
from collections import OrderedDict
from datetime import datetime
from typing import Iterable

from flask import current_app
from sqlalchemy.exc import IntegrityError

from . import acl, storage
from .clock import finalization_blockers
from .errors import BadRequest, Conflict, Forbidden
from .exports import build_pdf_bytes, build_workbook_bytes, signature_png
from .extensions import db
from .models import (
    RoleCode,
    ShiftStatus,
    Timesheet,
    TimesheetEntry,
    TimesheetStatus,
    User,
    UserRole,
    notify,
)
from .models.mixins import iso

logger = logging.getLogger(__name__)

REGULAR_HOURS = 8
MAX_PAIRS = 3


# --- hours ---

def worker_hours(entries: Iterable) -> dict:
    """Hours over closed entries (first three by entry number); over 8 is overtime."""
    closed = sorted(
        (e for e in entries if e.clock_in is not None and e.clock_out is not None),
        key=lambda e: e.entry_number or 1,
    )[:MAX_PAIRS]
    total = sum(max((e.clock_out - e.clock_in).total_seconds(), 0) for e in closed) / 3600.0
    return {
        "total": round(total, 2),
        "regular": round(min(total, REGULAR_HOURS), 2),
        "overtime": round(max(total - REGULAR_HOURS, 0), 2),
    }


def _initials(name: str) -> str:
    return "".join(p[0] for p in (name or "").split() if p).upper()


# --- report (input of both exporters) ---

def _worker_rows(ts: Timesheet) -> list[dict]:
    groups: "OrderedDict[tuple, dict]" = OrderedDict()
    if ts.entries:
        for e in ts.entries:
            key = (e.user_id, e.role_code)
            g = groups.setdefault(key, {"name": e.user_name, "role_code": e.role_code, "entries": []})
            g["entries"].append(e)
    for ap in ts.shift.assigned_personnel:
        if ap.user_id is None:
            continue
        key = (ap.user_id, ap.role_code)
        g = groups.setdefault(key, {"name": ap.user.name, "role_code": ap.role_code, "entries": []})
        if not ts.entries:
            g["entries"].extend(ap.time_entries)

    rows = []
    for g in groups.values():
        entries = sorted(g["entries"], key=lambda e: e.entry_number or 1)
        hours = worker_hours(entries)
        rows.append({
            "name": g["name"],
            "role_code": g["role_code"],
            "role_name": RoleCode.name_of(g["role_code"]),
            "initials": _initials(g["name"]),
            "pairs": [(e.clock_in, e.clock_out) for e in entries[:MAX_PAIRS]],
            "total": hours["total"],
            "regular": hours["regular"],
            "overtime": hours["overtime"],
        })
    return rows


def build_report(ts: Timesheet) -> dict:
    shift = ts.shift
    job = shift.job
    company = job.company
    workers = _worker_rows(ts)
    return {
        "timesheet_id": ts.id,
        "status": ts.status,
        "company": {
            "name": company.name,
            "address": company.address,
            "phone": company.phone,
            "email": company.email,
            "website": company.website,
        },
        "job": {
            "id": job.id,
            "name": job.name,
            "description": job.description,
            "budget": job.budget,
            "start_date": job.start_date,
            "end_date": job.end_date,
            "location": job.location,
        },
        "shift": {
            "id": shift.id,
            "date": shift.date,
            "start_time": shift.start_time,
            "end_time": shift.end_time,
            "location": shift.location,
            "description": shift.description,
            "notes": shift.notes,
        },
        "client_contact": company.name,
        "workers": workers,
        "totals": {
            "regular": round(sum(w["regular"] for w in workers), 2),
            "overtime": round(sum(w["overtime"] for w in workers), 2),
        },
    }


def report_json(ts: Timesheet) -> dict:
    report = build_report(ts)
    for w in report["workers"]:
        w["pairs"] = [{"clock_in": iso(a), "clock_out": iso(b)} for a, b in w["pairs"]]
    for section in ("job", "shift"):
        report[section] = {k: iso(v) if hasattr(v, "isoformat") else v for k, v in report[section].items()}
    return report


# --- files ---

def _file_key(ts: Timesheet, kind: str, ext: str) -> str:
    return f"timesheets/{ts.id}/{kind}.{ext}"


def generate_files(ts: Timesheet, signed: bool = False) -> bool:
    """Render xlsx + pdf into storage. Failures are logged and reported as False."""
    kind = "signed" if signed else "unsigned"
    try:
        report = build_report(ts)
        signature = signature_png(ts.company_signature) if signed else None
        if signed and ts.company_signature and signature is None:
            logger.warning("Timesheet %s: signature could not be decoded", ts.id)
        xlsx = build_workbook_bytes(report, current_app.config.get("TIMESHEET_TEMPLATE_PATH"), signature)
        pdf = build_pdf_bytes(report, signature)
        xlsx_key = storage.save(_file_key(ts, kind, "xlsx"), xlsx)
        pdf_key = storage.save(_file_key(ts, kind, "pdf"), pdf)
    except Exception:
        logger.warning("Could not generate %s files for timesheet %s", kind, ts.id, exc_info=True)
        return False
    if signed:
        ts.signed_excel_key, ts.signed_pdf_key = xlsx_key, pdf_key
    else:
        ts.unsigned_excel_key, ts.unsigned_pdf_key = xlsx_key, pdf_key
    return True


def sync_files(ts: Timesheet) -> bool:
    """Bring stored exports in line with a committed timesheet.

    Routes call this after their commit; nothing is written for a rolled back change.
    Missing exports are rendered, exports the timesheet no longer carries
    (unsigned ones on a DRAFT, signed ones without a company signature) are
    deleted. Returns True when file keys changed and need committing.
    """
    changed = False
    for kind, wanted in (
        ("unsigned", ts.status != TimesheetStatus.DRAFT),
        ("signed", bool(ts.company_signature)),
    ):
        keys = (f"{kind}_excel_key", f"{kind}_pdf_key")
        if wanted:
            if not all(getattr(ts, k) for k in keys):
                changed = generate_files(ts, signed=kind == "signed") or changed
            continue
        for ext in ("xlsx", "pdf"):
            storage.delete(_file_key(ts, kind, ext))
        if any(getattr(ts, k) for k in keys):
            for k in keys:
                setattr(ts, k, None)
            changed = True
    return changed


# --- notifications ---

def _active_users(**filters):
    return User.query.filter_by(is_active=True, **filters).all()


def _notify_company(ts: Timesheet, type_: str, title: str, message: str) -> None:
    company_id = ts.shift.job.company_id
    for u in _active_users(company_id=company_id, role=UserRole.COMPANY_USER):
        notify(u.id, type_, title, message, timesheet_id=ts.id, shift_id=ts.shift_id)


def _notify_admins(ts: Timesheet, type_: str, title: str, message: str) -> None:
    for u in _active_users(role=UserRole.ADMIN):
        notify(u.id, type_, title, message, timesheet_id=ts.id, shift_id=ts.shift_id)


def _label(ts: Timesheet) -> str:
    shift = ts.shift
    return f"{shift.job.name} on {shift.date.strftime('%b %d, %Y')}"


# --- workflow ---

def _check_blockers(shift, message: str) -> None:
    blockers = finalization_blockers(shift)
    if blockers:
        raise BadRequest(
            message,
            code="FINALIZATION_BLOCKED",
            details=[
                {"worker_id": ap.id, "user_id": ap.user_id, "name": ap.user.name if ap.user else None, "status": ap.status}
                for ap in blockers
            ],
        )


def require_open_timesheet(shift, action: str) -> None:
    """Staffing is frozen while the shift's timesheet is submitted or completed."""
    ts = shift.timesheet
    if ts is not None and ts.status in TimesheetStatus.FINALIZED:
        raise Conflict(
            f"Timesheet is {ts.status}; reject or unlock it before {action}",
            code="TIMESHEET_LOCKED",
            details={"timesheet_id": ts.id, "status": ts.status},
        )


def _clear_approvals(ts: Timesheet) -> None:
    # manager_notes stays: it carries the unlock audit trail
    ts.company_signature = None
    ts.company_approved_at = None
    ts.company_approved_by = None
    ts.company_notes = None
    ts.manager_approved_at = None
    ts.manager_approved_by = None
    ts.clear_files()


def finalize(shift, user, now: datetime | None = None) -> Timesheet:
    now = now or datetime.utcnow()
    _check_blockers(shift, "All workers must end their shift or be marked no-show before finalizing")

    ts = shift.timesheet
    if ts is not None and ts.status == TimesheetStatus.COMPLETED:
        raise Conflict("Timesheet is completed; unlock it before finalizing again", code="TIMESHEET_LOCKED")
    if ts is None:
        ts = Timesheet(shift=shift)
        db.session.add(ts)

    _clear_approvals(ts)
    ts.entries.clear()
    for ap in shift.assigned_personnel:
        if ap.user_id is None:
            continue
        for e in ap.time_entries:
            ts.entries.append(TimesheetEntry(
                user_id=ap.user_id,
                user_name=ap.user.name,
                role_on_shift=ap.role_name,
                role_code=ap.role_code,
                entry_number=e.entry_number,
                clock_in=e.clock_in,
                clock_out=e.clock_out,
                break_start=e.break_start,
                break_end=e.break_end,
                notes=e.notes,
            ))

    ts.status = TimesheetStatus.PENDING_COMPANY_APPROVAL
    ts.submitted_by = user.id
    ts.submitted_at = now
    ts.rejection_reason = None
    ts.rejected_at = None
    ts.rejected_by = None
    shift.status = ShiftStatus.COMPLETED
    try:
        db.session.flush()
    except IntegrityError as exc:
        db.session.rollback()
        raise Conflict("Timesheet was finalized by another request") from exc

    _notify_company(
        ts, "TIMESHEET_READY", "Timesheet ready for approval",
        f"The timesheet for {_label(ts)} is ready for your review and signature.",
    )
    logger.info("Timesheet %s finalized for shift %s by user %s", ts.id, shift.id, user.id)
    return ts


def maybe_auto_finalize(shift, user, now: datetime | None = None) -> Timesheet | None:
    """Finalize once the last worker is done, unless a timesheet already exists."""
    if shift.timesheet is not None:
        return None
    if not any(ap.user_id for ap in shift.assigned_personnel):
        return None
    if finalization_blockers(shift):
        return None
    return finalize(shift, user, now)


def _company_approve(ts, user, signature, notes, now):
    ts.company_signature = signature
    ts.company_approved_at = now
    ts.company_approved_by = user.id
    ts.company_notes = notes
    ts.status = TimesheetStatus.PENDING_MANAGER_APPROVAL
    db.session.flush()
    _notify_admins(
        ts, "TIMESHEET_PENDING_MANAGER", "Timesheet awaiting final approval",
        f"The timesheet for {_label(ts)} was approved by the client and needs final approval.",
    )


def _manager_approve(ts, user, notes, now):
    ts.manager_approved_at = now
    ts.manager_approved_by = user.id
    ts.manager_notes = notes
    ts.status = TimesheetStatus.COMPLETED
    db.session.flush()
    if ts.submitted_by:
        notify(
            ts.submitted_by, "TIMESHEET_COMPLETED", "Timesheet approved",
            f"The timesheet for {_label(ts)} has been fully approved.",
            timesheet_id=ts.id, shift_id=ts.shift_id,
        )


_ACTIVE_WORKERS = "Workers on this shift are still active; end their shift or mark them no-show before approving"


def approve(ts: Timesheet, user, approval_type: str, signature: str | None = None,
            notes: str | None = None, now: datetime | None = None) -> Timesheet:
    now = now or datetime.utcnow()

    if approval_type in ("client", "company"):
        if not acl.can_company_approve(user, ts):
            raise Forbidden("You cannot approve this timesheet for the client")
        if ts.status != TimesheetStatus.PENDING_COMPANY_APPROVAL:
            raise BadRequest("Timesheet is not awaiting company approval", code="INVALID_STATUS")
        if not signature:
            raise BadRequest("A signature is required for client approval", code="SIGNATURE_REQUIRED")
        _check_blockers(ts.shift, _ACTIVE_WORKERS)
        _company_approve(ts, user, signature, notes, now)

    elif approval_type == "manager":
        if not acl.can_manager_approve(user, ts):
            raise Forbidden("Only administrators can give final approval")
        if ts.status != TimesheetStatus.PENDING_MANAGER_APPROVAL:
            raise BadRequest("Timesheet is not awaiting manager approval", code="INVALID_STATUS")
        _check_blockers(ts.shift, _ACTIVE_WORKERS)
        _manager_approve(ts, user, notes, now)

    elif approval_type == "admin":
        if not acl.is_admin(user):
            raise Forbidden("Admin access required")
        if ts.status in (TimesheetStatus.PENDING_COMPANY_APPROVAL, TimesheetStatus.PENDING_MANAGER_APPROVAL):
            _check_blockers(ts.shift, _ACTIVE_WORKERS)
        if ts.status == TimesheetStatus.PENDING_COMPANY_APPROVAL:
            override = "Admin Override" if not signature else None
            company_notes = " - ".join(p for p in (override, notes) if p) or None
            _company_approve(ts, user, signature, company_notes, now)
        elif ts.status == TimesheetStatus.PENDING_MANAGER_APPROVAL:
            _manager_approve(ts, user, notes, now)
        else:
            raise BadRequest("Timesheet is not awaiting approval", code="INVALID_STATUS")

    else:
        raise BadRequest(f"Unknown approval type: {approval_type}")

    logger.info("Timesheet %s %s approval by user %s -> %s", ts.id, approval_type, user.id, ts.status)
    return ts


def reject(ts: Timesheet, user, reason: str, notes: str | None = None, now: datetime | None = None) -> Timesheet:
    if not acl.can_reject(user, ts):
        raise Forbidden("You cannot reject this timesheet")
    if ts.status in (TimesheetStatus.COMPLETED, TimesheetStatus.REJECTED):
        raise BadRequest(f"Cannot reject a timesheet in status {ts.status}", code="INVALID_STATUS")

    ts.status = TimesheetStatus.REJECTED
    ts.rejection_reason = reason
    ts.rejected_at = now or datetime.utcnow()
    ts.rejected_by = user.id
    if notes:
        if user.role == UserRole.COMPANY_USER:
            ts.company_notes = notes
        else:
            ts.manager_notes = notes
    db.session.flush()

    message = f"The timesheet for {_label(ts)} was rejected by {user.name}. Reason: {reason}"
    notified = set()
    for ap in ts.shift.assigned_personnel:
        if ap.user_id and ap.user_id not in notified:
            notified.add(ap.user_id)
            notify(ap.user_id, "TIMESHEET_REJECTED", "Timesheet rejected", message,
                   timesheet_id=ts.id, shift_id=ts.shift_id)
    if user.role == UserRole.COMPANY_USER:
        _notify_admins(ts, "TIMESHEET_REJECTED", "Timesheet rejected by client", message)

    logger.info("Timesheet %s rejected by user %s", ts.id, user.id)
    return ts


def unlock(ts: Timesheet, user, reason: str, notes: str | None = None, now: datetime | None = None) -> Timesheet:
    if not acl.is_admin(user):
        raise Forbidden("Admin access required")
    if ts.status != TimesheetStatus.COMPLETED:
        raise BadRequest("Only completed timesheets can be unlocked", code="INVALID_STATUS")
    now = now or datetime.utcnow()

    ts.status = TimesheetStatus.DRAFT
    _clear_approvals(ts)
    audit = f"UNLOCKED BY ADMIN: {user.name} ({user.email}) on {now.isoformat()}\nReason: {reason}"
    if notes:
        audit += f"\nNotes: {notes}"
    ts.manager_notes = audit
    db.session.flush()

    company_user = User.query.filter_by(
        company_id=ts.shift.job.company_id, role=UserRole.COMPANY_USER, is_active=True
    ).first()
    notify(
        company_user.id if company_user else user.id,
        "TIMESHEET_UNLOCKED",
        "Timesheet Unlocked",
        f"Timesheet for {_label(ts)} has been unlocked by admin {user.name}. Reason: {reason}",
        timesheet_id=ts.id,
        shift_id=ts.shift_id,
    )
    logger.info("Timesheet %s unlocked by admin %s", ts.id, user.id)
    return ts
