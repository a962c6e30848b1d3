"""exports/excel.py

Fill the timesheet workbook with openpyxl.

The template (TIMESHEET_TEMPLATE_PATH) is used when present; otherwise a
blank workbook gets the same cell layout.
"""
from __future__ import annotations

import logging
import os
from io import BytesIO

from openpyxl import Workbook, load_workbook
from openpyxl.drawing.image import Image as XLImage
from openpyxl.styles import Font, PatternFill

logger = logging.getLogger(__name__)

CELLS = {
    "company_name": "A12",
    "company_address": "A13",
    "company_phone": "A14",
    "company_email": "A15",
    "company_website": "A16",
    "job_number": "B6",
    "job_name": "B7",
    "shift_location": "B8",
    "job_description": "B9",
    "job_budget": "B10",
    "job_start_date": "B11",
    "job_end_date": "B12",
    "shift_date": "E6",
    "shift_start_time": "E7",
    "shift_end_time": "E8",
    "shift_description": "E9",
    "shift_notes": "E10",
    "client_contact": "F12",
    "client_signature": "K12",
}

GRID_START_ROW = 15
NAME_COL = 3
WORKER_TYPE_COL = 4
INITIALS_COL = 5
FIRST_IN_COL = 6  # in/out pairs occupy 6..11
REGULAR_COL = 12
OT_COL = 13

DATE_FMT = "mm/dd/yyyy"
TIME_FMT = "h:mm AM/PM"
HOURS_FMT = "0.00"
TOTALS_FILL = PatternFill(fill_type="solid", fgColor="FFF0F0F0")


def _open_workbook(template_path: str | None) -> Workbook:
    if template_path and os.path.isfile(template_path):
        return load_workbook(template_path)
    return Workbook()


def _put(ws, ref, value, fmt=None):
    cell = ws[ref] if isinstance(ref, str) else ws.cell(row=ref[0], column=ref[1])
    cell.value = value
    if fmt and value is not None:
        cell.number_format = fmt
    return cell


def build_workbook(report: dict, template_path: str | None = None, signature: bytes | None = None) -> Workbook:
    wb = _open_workbook(template_path)
    ws = wb.worksheets[0]
    if template_path is None or not os.path.isfile(template_path):
        ws.title = "Timesheet"

    company = report["company"]
    _put(ws, CELLS["company_name"], company.get("name"))
    _put(ws, CELLS["company_address"], company.get("address") or "")
    _put(ws, CELLS["company_phone"], company.get("phone") or "")
    _put(ws, CELLS["company_email"], company.get("email") or "")
    _put(ws, CELLS["company_website"], company.get("website") or "")

    job = report["job"]
    _put(ws, CELLS["job_number"], job.get("id") or job.get("name"))
    _put(ws, CELLS["job_name"], job.get("name"))
    _put(ws, CELLS["job_description"], job.get("description") or "")
    _put(ws, CELLS["job_budget"], job.get("budget") or "")
    _put(ws, CELLS["job_start_date"], job.get("start_date"), DATE_FMT)
    _put(ws, CELLS["job_end_date"], job.get("end_date"), DATE_FMT)

    shift = report["shift"]
    _put(ws, CELLS["shift_location"], shift.get("location") or job.get("location") or "")
    _put(ws, CELLS["shift_date"], shift.get("date"), DATE_FMT)
    _put(ws, CELLS["shift_start_time"], shift.get("start_time"), TIME_FMT)
    _put(ws, CELLS["shift_end_time"], shift.get("end_time"), TIME_FMT)
    _put(ws, CELLS["shift_description"], shift.get("description") or "")
    _put(ws, CELLS["shift_notes"], shift.get("notes") or "")

    _put(ws, CELLS["client_contact"], report.get("client_contact") or "N/A")

    if signature:
        img = XLImage(BytesIO(signature))
        img.width, img.height = 150, 75
        ws.add_image(img, CELLS["client_signature"])

    workers = report["workers"]
    for i, w in enumerate(workers):
        row = GRID_START_ROW + i
        _put(ws, (row, NAME_COL), w["name"])
        _put(ws, (row, WORKER_TYPE_COL), w["role_name"])
        _put(ws, (row, INITIALS_COL), w["initials"])
        for n, (clock_in, clock_out) in enumerate(w["pairs"][:3]):
            col = FIRST_IN_COL + n * 2
            _put(ws, (row, col), clock_in, TIME_FMT)
            _put(ws, (row, col + 1), clock_out, TIME_FMT)
        _put(ws, (row, REGULAR_COL), w["regular"], HOURS_FMT)
        _put(ws, (row, OT_COL), w["overtime"], HOURS_FMT)

    if workers:
        row = GRID_START_ROW + len(workers)
        _put(ws, (row, WORKER_TYPE_COL), "TOTAL HOURS:")
        _put(ws, (row, REGULAR_COL), report["totals"]["regular"], HOURS_FMT)
        _put(ws, (row, OT_COL), report["totals"]["overtime"], HOURS_FMT)
        for col in range(NAME_COL, OT_COL + 1):
            cell = ws.cell(row=row, column=col)
            cell.font = Font(bold=True)
            cell.fill = TOTALS_FILL

    return wb


def build_workbook_bytes(report: dict, template_path: str | None = None, signature: bytes | None = None) -> bytes:
    wb = build_workbook(report, template_path, signature)
    bio = BytesIO()
    wb.save(bio)
    return bio.getvalue()
