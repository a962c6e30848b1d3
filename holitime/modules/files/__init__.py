# -*- coding: utf-8 -*-
from __future__ import annotations

import mimetypes
import os
from io import BytesIO

from flask import Blueprint, send_file

from ... import storage

bp = Blueprint("files", __name__, url_prefix="/files")


@bp.route("/<token>", methods=["GET"])
def download(token: str):
    """Signed download; the token is the only credential."""
    key = storage.resolve_token(token)
    data = storage.read(key)
    name = os.path.basename(key)
    mimetype = mimetypes.guess_type(name)[0] or "application/octet-stream"
    return send_file(BytesIO(data), mimetype=mimetype, as_attachment=True, download_name=name)
