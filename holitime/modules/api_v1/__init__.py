# -*- coding: utf-8 -*-
"""Versioned shift API with pagination."""
from __future__ import annotations

from flask import Blueprint, request
from flask_login import current_user

from ...acl import require_view_shift
from ...api import arg_int, ok, pagination_meta, parse_body
from ...models import UserRole
from ...queries import apply_shift_filters, get_shift, ordered, visible_shifts
from ...schemas import ShiftIn, ShiftUpdate
from ...security import api_login_required, roles_required
from ..shifts import create_shift_from, delete_shift_row, shift_payload, update_shift_from

bp = Blueprint("api_v1", __name__, url_prefix="/api/v1")

MAX_LIMIT = 100


@bp.route("/shifts", methods=["GET"])
@api_login_required
def list_shifts():
    page = max(arg_int("page", 1), 1)
    limit = min(max(arg_int("limit", 20), 1), MAX_LIMIT)
    q = apply_shift_filters(visible_shifts(current_user), request.args)
    total = q.count()
    rows = (
        ordered(q, request.args.get("sort_order", "desc"))
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return ok([s.to_dict() for s in rows], pagination=pagination_meta(page, limit, total))


@bp.route("/shifts", methods=["POST"])
@roles_required(UserRole.ADMIN, UserRole.STAFF)
def create_shift():
    shift = create_shift_from(parse_body(ShiftIn))
    return ok(shift.to_dict(with_personnel=True), status=201, message="Shift created")


@bp.route("/shifts/<int:shift_id>", methods=["GET"])
@api_login_required
def get_one(shift_id: int):
    shift = get_shift(shift_id)
    require_view_shift(current_user, shift)
    return ok(shift_payload(shift))


@bp.route("/shifts/<int:shift_id>", methods=["PUT"])
@roles_required(UserRole.ADMIN, UserRole.STAFF)
def update_one(shift_id: int):
    shift = update_shift_from(get_shift(shift_id), parse_body(ShiftUpdate))
    return ok(shift.to_dict(with_personnel=True), message="Shift updated")


@bp.route("/shifts/<int:shift_id>", methods=["DELETE"])
@roles_required(UserRole.ADMIN, UserRole.STAFF)
def delete_one(shift_id: int):
    delete_shift_row(get_shift(shift_id))
    return ok({"id": shift_id}, message="Shift deleted")
