# -*- coding: utf-8 -*-
from __future__ import annotations

from flask import Blueprint, request
from flask_login import current_user

from ...api import arg_int, ok
from ...errors import NotFound
from ...extensions import db
from ...models import Notification
from ...security import api_login_required

bp = Blueprint("notifications", __name__, url_prefix="/api/notifications")


@bp.route("", methods=["GET"])
@api_login_required
def list_notifications():
    q = Notification.query.filter(Notification.user_id == current_user.id)
    if request.args.get("unread") in ("1", "true"):
        q = q.filter(Notification.is_read.is_(False))
    limit = min(max(arg_int("limit", 50), 1), 200)
    rows = q.order_by(Notification.created_at.desc(), Notification.id.desc()).limit(limit).all()
    unread = Notification.query.filter_by(user_id=current_user.id, is_read=False).count()
    return ok([n.to_dict() for n in rows], unread=unread)


@bp.route("/<int:notification_id>/read", methods=["POST"])
@api_login_required
def mark_read(notification_id: int):
    n = db.session.get(Notification, notification_id)
    if n is None or n.user_id != current_user.id:
        raise NotFound("Notification not found")
    n.is_read = True
    db.session.commit()
    return ok(n.to_dict())


@bp.route("/read-all", methods=["POST"])
@api_login_required
def mark_all_read():
    n = (
        Notification.query
        .filter_by(user_id=current_user.id, is_read=False)
        .update({Notification.is_read: True}, synchronize_session=False)
    )
    db.session.commit()
    return ok({"updated": n})
