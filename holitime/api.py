# -*- coding: utf-8 -*-
"""JSON envelope helpers shared by every blueprint.

Success: {"success": true, "data": ..., "meta": {...}}
Error:   {"success": false, "error": {"code", "message", "details"?}, "meta": {...}}
"""
from __future__ import annotations

import math
import uuid
from datetime import datetime
from typing import Any, Type, TypeVar

from flask import g, jsonify, request
from pydantic import BaseModel

API_VERSION = "1.0"

S = TypeVar("S", bound=BaseModel)


def request_id() -> str:
    rid = getattr(g, "request_id", None)
    if not rid:
        rid = g.request_id = uuid.uuid4().hex[:16]
    return rid


def _meta(extra: dict[str, Any] | None = None) -> dict[str, Any]:
    meta = {
        "timestamp": datetime.utcnow().isoformat(timespec="seconds") + "Z",
        "request_id": request_id(),
        "version": API_VERSION,
    }
    if extra:
        meta.update(extra)
    return meta


def ok(data: Any = None, status: int = 200, message: str | None = None, **meta: Any):
    body: dict[str, Any] = {"success": True, "data": data, "meta": _meta(meta)}
    if message:
        body["message"] = message
    return jsonify(body), status


def fail(message: str, status: int = 400, code: str = "BAD_REQUEST", details: Any = None):
    error: dict[str, Any] = {"code": code, "message": message}
    if details is not None:
        error["details"] = details
    return jsonify({"success": False, "error": error, "meta": _meta()}), status


def pagination_meta(page: int, limit: int, total: int) -> dict[str, Any]:
    pages = math.ceil(total / limit) if limit else 0
    return {
        "page": page,
        "limit": limit,
        "total": total,
        "pages": pages,
        "has_next": page < pages,
        "has_prev": page > 1,
    }


def parse_body(schema: Type[S]) -> S:
    """Validate the JSON body against ``schema``; ValidationError becomes a 400."""
    payload = request.get_json(silent=True)
    if payload is None:
        payload = {}
    return schema.model_validate(payload)


def arg_int(name: str, default: int | None = None) -> int | None:
    raw = request.args.get(name)
    if raw in (None, ""):
        return default
    try:
        return int(raw)
    except ValueError:
        return default
