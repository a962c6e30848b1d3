# -*- coding: utf-8 -*-
from __future__ import annotations

import logging

from flask import Blueprint, request
from flask_login import current_user
from sqlalchemy.exc import IntegrityError

from ...api import ok, parse_body
from ...errors import BadRequest, Conflict, NotFound
from ...extensions import db
from ...models import Company, CrewChiefPermission, Job, PermissionType, Shift, User, UserRole
from ...schemas import PermissionIn
from ...security import roles_required

logger = logging.getLogger(__name__)

bp = Blueprint("permissions", __name__, url_prefix="/api/crew-chief-permissions")

_TARGET_MODEL = {
    PermissionType.CLIENT: Company,
    PermissionType.JOB: Job,
    PermissionType.SHIFT: Shift,
}


@bp.route("", methods=["GET"])
@roles_required(UserRole.ADMIN)
def list_permissions():
    q = CrewChiefPermission.query
    user_id = request.args.get("user_id", type=int)
    if user_id:
        q = q.filter(CrewChiefPermission.user_id == user_id)
    kind = request.args.get("permission_type")
    if kind:
        q = q.filter(CrewChiefPermission.permission_type == kind)
    target_id = request.args.get("target_id", type=int)
    if target_id:
        q = q.filter(CrewChiefPermission.target_id == target_id)
    return ok([p.to_dict() for p in q.order_by(CrewChiefPermission.id).all()])


@bp.route("", methods=["POST"])
@roles_required(UserRole.ADMIN)
def grant():
    data = parse_body(PermissionIn)
    if db.session.get(User, data.user_id) is None:
        raise BadRequest("User not found", details={"user_id": data.user_id})
    if db.session.get(_TARGET_MODEL[data.permission_type], data.target_id) is None:
        raise BadRequest(
            f"{data.permission_type.capitalize()} not found",
            details={"permission_type": data.permission_type, "target_id": data.target_id},
        )
    perm = CrewChiefPermission(
        user_id=data.user_id,
        permission_type=data.permission_type,
        target_id=data.target_id,
        granted_by=current_user.id,
    )
    db.session.add(perm)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise Conflict("Permission already granted")
    logger.info("Admin %s granted %s:%s to user %s", current_user.id, perm.permission_type, perm.target_id, perm.user_id)
    return ok(perm.to_dict(), status=201, message="Permission granted")


@bp.route("", methods=["DELETE"])
@roles_required(UserRole.ADMIN)
def revoke():
    payload = request.get_json(silent=True) or {}
    perm_id = payload.get("id") or request.args.get("id", type=int)
    if perm_id:
        perm = db.session.get(CrewChiefPermission, perm_id)
    else:
        data = PermissionIn.model_validate({**request.args.to_dict(), **payload})
        perm = CrewChiefPermission.query.filter_by(
            user_id=data.user_id, permission_type=data.permission_type, target_id=data.target_id
        ).first()
    if perm is None:
        raise NotFound("Permission not found")
    db.session.delete(perm)
    db.session.commit()
    logger.info("Admin %s revoked permission %s", current_user.id, perm.id)
    return ok({"id": perm.id}, message="Permission revoked")
