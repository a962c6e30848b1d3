# -*- coding: utf-8 -*-

import logging
from flask import Blueprint, request
from flask_login import current_user, login_user, logout_user
from ..api import ok
from ..errors import Unauthorized
from ..models.user import User
from ..schemas import LoginIn
from ..security import api_login_required

logger = logging.getLogger(__name__)

auth_bp = Blueprint("auth", __name__)

@auth_bp.route("/login", methods=["POST"])
def login():
    # JSON body or a classic form post
    payload = request.get_json(silent=True) or request.form.to_dict()
    data = LoginIn.model_validate(payload)
    u = User.query.filter_by(email=data.email).first()
    if not u or not u.check_password(data.password):
        logger.info("Failed login for %s", data.email)
        raise Unauthorized("Invalid email or password", code="INVALID_CREDENTIALS")
    if not u.is_active:
        raise Unauthorized("Account is disabled", code="ACCOUNT_DISABLED")
    login_user(u, remember=True)
    logger.info("User %s logged in", u.id)
    return ok(u.to_dict(), message="Logged in")

@auth_bp.route("/logout", methods=["POST"])
@api_login_required
def logout():
    logout_user()
    return ok(None, message="Logged out")

@auth_bp.route("/api/auth/me")
@api_login_required
def me():
    data = current_user.to_dict()
    data["company_name"] = current_user.company.name if current_user.company else None
    return ok(data)
