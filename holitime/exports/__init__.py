"""Timesheet exports.

Both writers take the same plain report dict built by
``holitime.timesheets.build_report`` so they never touch the database.
"""
from __future__ import annotations

import base64
import binascii
from io import BytesIO

from PIL import Image, UnidentifiedImageError

from .excel import build_workbook_bytes
from .pdf import build_pdf_bytes

__all__ = ["build_workbook_bytes", "build_pdf_bytes", "signature_png"]


def signature_png(data_url: str | None) -> bytes | None:
    """Decode a ``data:image/...;base64,`` signature into PNG bytes, or None."""
    if not data_url:
        return None
    payload = data_url.split("base64,", 1)[-1]
    try:
        raw = base64.b64decode(payload, validate=True)
        with Image.open(BytesIO(raw)) as img:
            out = BytesIO()
            img.convert("RGBA").save(out, format="PNG")
            return out.getvalue()
    except (binascii.Error, UnidentifiedImageError, OSError, ValueError):
        return None
