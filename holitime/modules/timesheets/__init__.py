# -*- coding: utf-8 -*-
from __future__ import annotations

import logging
from io import BytesIO

from flask import Blueprint, current_app, request, send_file
from flask_login import current_user

from ... import storage, timesheets
from ...acl import require_view_timesheet, scope_timesheets_query
from ...api import arg_int, ok, pagination_meta, parse_body
from ...errors import BadRequest, NotFound
from ...exports import build_pdf_bytes, build_workbook_bytes, signature_png
from ...extensions import db
from ...models import Shift, Timesheet, TimesheetStatus
from ...schemas import ApproveIn, RejectIn, UnlockIn
from ...security import api_login_required

logger = logging.getLogger(__name__)

bp = Blueprint("timesheets", __name__, url_prefix="/api/timesheets")

XLSX_MIME = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def _get(timesheet_id: int) -> Timesheet:
    ts = db.session.get(Timesheet, timesheet_id)
    if ts is None:
        raise NotFound("Timesheet not found")
    require_view_timesheet(current_user, ts)
    return ts


def _filename(ts: Timesheet, ext: str, signed: bool) -> str:
    shift = ts.shift
    name = "".join(c if c.isalnum() else "-" for c in shift.job.name).strip("-") or "timesheet"
    suffix = "-signed" if signed else ""
    return f"timesheet-{name}-{shift.date.isoformat()}{suffix}.{ext}"


def _wants_signed(ts: Timesheet) -> bool:
    if request.args.get("signed") in ("0", "false"):
        return False
    return bool(ts.company_signature)


@bp.route("", methods=["GET"])
@api_login_required
def list_timesheets():
    q = scope_timesheets_query(Timesheet.query, current_user)
    status = request.args.get("status")
    if status and status.lower() != "all":
        if status not in TimesheetStatus.ALL:
            raise BadRequest(f"Unknown timesheet status '{status}'", code="VALIDATION_ERROR")
        q = q.filter(Timesheet.status == status)
    page = max(arg_int("page", 1), 1)
    limit = min(max(arg_int("limit", 50), 1), 100)
    total = q.count()
    rows = (
        q.join(Shift, Timesheet.shift_id == Shift.id)
        .order_by(Shift.date.desc(), Timesheet.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    data = []
    for ts in rows:
        item = ts.to_dict()
        item["shift"] = ts.shift.to_dict()
        data.append(item)
    return ok(data, pagination=pagination_meta(page, limit, total))


@bp.route("/<int:timesheet_id>", methods=["GET"])
@api_login_required
def get_timesheet(timesheet_id: int):
    ts = _get(timesheet_id)
    data = ts.to_dict(with_entries=True)
    data["report"] = timesheets.report_json(ts)
    return ok(data)


@bp.route("/<int:timesheet_id>/approve", methods=["POST"])
@api_login_required
def approve(timesheet_id: int):
    ts = _get(timesheet_id)
    data = parse_body(ApproveIn)
    timesheets.approve(ts, current_user, data.approval_type, data.signature, data.notes)
    db.session.commit()
    if timesheets.sync_files(ts):
        db.session.commit()
    return ok(ts.to_dict(), message="Timesheet approved")


@bp.route("/<int:timesheet_id>/reject", methods=["POST"])
@api_login_required
def reject(timesheet_id: int):
    ts = _get(timesheet_id)
    data = parse_body(RejectIn)
    timesheets.reject(ts, current_user, data.reason, data.notes)
    db.session.commit()
    return ok(ts.to_dict(), message="Timesheet rejected")


@bp.route("/<int:timesheet_id>/unlock", methods=["POST"])
@api_login_required
def unlock(timesheet_id: int):
    ts = _get(timesheet_id)
    data = parse_body(UnlockIn)
    timesheets.unlock(ts, current_user, data.reason, data.notes)
    db.session.commit()
    if timesheets.sync_files(ts):
        db.session.commit()
    return ok(ts.to_dict(), message="Timesheet unlocked successfully")


# --- downloads ---

@bp.route("/<int:timesheet_id>/excel", methods=["GET"])
@api_login_required
def excel(timesheet_id: int):
    ts = _get(timesheet_id)
    signed = _wants_signed(ts)
    key = ts.signed_excel_key if signed else ts.unsigned_excel_key
    if storage.exists(key):
        data = storage.read(key)
    else:
        signature = signature_png(ts.company_signature) if signed else None
        data = build_workbook_bytes(
            timesheets.build_report(ts), current_app.config.get("TIMESHEET_TEMPLATE_PATH"), signature
        )
    return send_file(
        BytesIO(data),
        mimetype=XLSX_MIME,
        as_attachment=True,
        download_name=_filename(ts, "xlsx", signed),
    )


@bp.route("/<int:timesheet_id>/pdf", methods=["GET"])
@api_login_required
def pdf(timesheet_id: int):
    ts = _get(timesheet_id)
    signed = _wants_signed(ts)
    key = ts.signed_pdf_key if signed else ts.unsigned_pdf_key
    if storage.exists(key):
        data = storage.read(key)
    else:
        signature = signature_png(ts.company_signature) if signed else None
        data = build_pdf_bytes(timesheets.build_report(ts), signature)
    return send_file(
        BytesIO(data),
        mimetype="application/pdf",
        as_attachment=request.args.get("inline") not in ("1", "true"),
        download_name=_filename(ts, "pdf", signed),
    )


@bp.route("/<int:timesheet_id>/files", methods=["GET"])
@api_login_required
def files(timesheet_id: int):
    ts = _get(timesheet_id)
    out = {}
    for name, key in ts.file_keys().items():
        out[name] = storage.signed_url(key) if storage.exists(key) else None
    return ok(out, expires_in=current_app.config.get("SIGNED_URL_MAX_AGE"))
