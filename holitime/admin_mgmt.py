# -*- coding: utf-8 -*-
from __future__ import annotations

import logging
from flask import Blueprint, request
from flask_login import current_user

from .api import arg_int, ok, pagination_meta, parse_body
from .cache import cache_stats, clear_cache
from .errors import BadRequest, Conflict, NotFound
from .extensions import db
from .models import Company, User, UserRole
from .schemas import PasswordResetIn, UserIn, UserUpdate
from .security import roles_required

logger = logging.getLogger(__name__)

bp = Blueprint("admin_mgmt", __name__, url_prefix="/api/admin")

# ---------- helpers ----------
def _get_user(user_id: int) -> User:
    u = db.session.get(User, user_id)
    if u is None:
        raise NotFound("User not found")
    return u

def _check_company(company_id):
    if company_id is not None and db.session.get(Company, company_id) is None:
        raise BadRequest("Company not found", details={"company_id": company_id})

def _email_taken(email: str, exclude_id: int | None = None) -> bool:
    q = User.query.filter(User.email == email)
    if exclude_id is not None:
        q = q.filter(User.id != exclude_id)
    return db.session.query(q.exists()).scalar()

# ---------- users ----------
@bp.route("/users", methods=["GET"])
@roles_required(UserRole.ADMIN)
def users():
    q = User.query
    role = request.args.get("role")
    if role:
        q = q.filter(User.role == role)
    search = (request.args.get("search") or "").strip()
    if search:
        like = f"%{search}%"
        q = q.filter(db.or_(User.name.ilike(like), User.email.ilike(like)))
    if request.args.get("active") in ("0", "false"):
        q = q.filter(User.is_active.is_(False))
    elif request.args.get("active") in ("1", "true"):
        q = q.filter(User.is_active.is_(True))

    page = max(arg_int("page", 1), 1)
    limit = min(max(arg_int("limit", 50), 1), 100)
    total = q.count()
    rows = q.order_by(User.name.asc()).offset((page - 1) * limit).limit(limit).all()
    return ok([u.to_dict() for u in rows], pagination=pagination_meta(page, limit, total))

@bp.route("/users", methods=["POST"])
@roles_required(UserRole.ADMIN)
def create_user():
    data = parse_body(UserIn)
    if _email_taken(data.email):
        raise Conflict("Email already in use", details={"email": data.email})
    _check_company(data.company_id)
    u = User(
        name=data.name,
        email=data.email,
        role=data.role,
        company_id=data.company_id,
        crew_chief_eligible=data.crew_chief_eligible,
        fork_operator_eligible=data.fork_operator_eligible,
        location=data.location,
        is_active=data.is_active,
    )
    u.set_password(data.password)
    db.session.add(u)
    db.session.commit()
    logger.info("Admin %s created user %s (%s)", current_user.id, u.id, u.role)
    return ok(u.to_dict(), status=201, message="User created")

@bp.route("/users/<int:user_id>", methods=["GET"])
@roles_required(UserRole.ADMIN)
def get_user(user_id: int):
    return ok(_get_user(user_id).to_dict())

@bp.route("/users/<int:user_id>", methods=["PUT"])
@roles_required(UserRole.ADMIN)
def update_user(user_id: int):
    u = _get_user(user_id)
    data = parse_body(UserUpdate)
    changes = data.model_dump(exclude_unset=True)
    if "email" in changes and changes["email"] and _email_taken(changes["email"], exclude_id=u.id):
        raise Conflict("Email already in use", details={"email": changes["email"]})
    if "company_id" in changes:
        _check_company(changes["company_id"])
    if u.id == current_user.id and changes.get("is_active") is False:
        raise BadRequest("You cannot deactivate your own account")
    for field, value in changes.items():
        if value is None and field not in ("company_id", "location"):
            continue
        setattr(u, field, value)
    db.session.commit()
    return ok(u.to_dict(), message="User updated")

@bp.route("/users/<int:user_id>", methods=["DELETE"])
@roles_required(UserRole.ADMIN)
def delete_user(user_id: int):
    u = _get_user(user_id)
    if u.id == current_user.id:
        raise BadRequest("You cannot delete your own account")
    # soft delete, time entries keep pointing at the user
    u.is_active = False
    db.session.commit()
    logger.info("Admin %s deactivated user %s", current_user.id, u.id)
    return ok({"id": u.id, "is_active": False}, message="User deactivated")

@bp.route("/users/<int:user_id>/reset-password", methods=["POST"])
@roles_required(UserRole.ADMIN)
def reset_password(user_id: int):
    u = _get_user(user_id)
    data = parse_body(PasswordResetIn)
    u.set_password(data.password)
    db.session.commit()
    logger.info("Admin %s reset password of user %s", current_user.id, u.id)
    return ok({"id": u.id}, message="Password reset")

# ---------- cache ----------
@bp.route("/clear-cache", methods=["POST"])
@roles_required(UserRole.ADMIN)
def clear_cache_view():
    n = clear_cache()
    logger.info("Admin %s cleared %d cache entries", current_user.id, n)
    resp, status = ok({"cleared": n}, message="Cache cleared")
    resp.headers["Cache-Control"] = "no-store, no-cache, must-revalidate, max-age=0"
    resp.headers["Pragma"] = "no-cache"
    resp.headers["Expires"] = "0"
    resp.headers["Clear-Site-Data"] = '"cache"'
    return resp, status

@bp.route("/cache", methods=["GET"])
@roles_required(UserRole.ADMIN)
def cache_view():
    return ok(cache_stats())
