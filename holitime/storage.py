# -*- coding: utf-8 -*-
"""Export file storage under EXPORT_DIR, handed out through signed download URLs."""
from __future__ import annotations

import logging
import os

from flask import current_app, url_for
from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer
from werkzeug.security import safe_join

from .errors import Forbidden, NotFound

logger = logging.getLogger(__name__)

_SALT = "export-file"


def _root() -> str:
    root = current_app.config["EXPORT_DIR"]
    os.makedirs(root, exist_ok=True)
    return root


def _serializer() -> URLSafeTimedSerializer:
    return URLSafeTimedSerializer(current_app.config["SECRET_KEY"], salt=_SALT)


def path_for(key: str) -> str:
    path = safe_join(_root(), key)
    if path is None:
        raise NotFound("File not found")
    return path


def save(key: str, data: bytes) -> str:
    path = path_for(key)
    os.makedirs(os.path.dirname(path), exist_ok=True)
    with open(path, "wb") as fh:
        fh.write(data)
    logger.info("Stored %s (%d bytes)", key, len(data))
    return key


def read(key: str) -> bytes:
    path = path_for(key)
    if not os.path.isfile(path):
        raise NotFound("File not found")
    with open(path, "rb") as fh:
        return fh.read()


def exists(key: str | None) -> bool:
    if not key:
        return False
    path = safe_join(_root(), key)
    return path is not None and os.path.isfile(path)


def delete(key: str | None) -> None:
    if not exists(key):
        return
    os.remove(path_for(key))
    logger.info("Deleted %s", key)


# --- signed URLs ---

def make_token(key: str) -> str:
    return _serializer().dumps(key)


def signed_url(key: str) -> str:
    return url_for("files.download", token=make_token(key), _external=True)


def resolve_token(token: str) -> str:
    max_age = current_app.config.get("SIGNED_URL_MAX_AGE", 3600)
    try:
        return _serializer().loads(token, max_age=max_age)
    except SignatureExpired:
        raise Forbidden("Download link has expired", code="LINK_EXPIRED")
    except BadSignature:
        raise NotFound("File not found")
