"""Excel / PDF rendering, stored files and signed download links."""

from datetime import date, datetime
from io import BytesIO
from urllib.parse import urlparse

import pytest
from openpyxl import load_workbook

from conftest import signature_data_url
from holitime.exports import build_pdf_bytes, build_workbook_bytes, signature_png
from holitime.exports.excel import GRID_START_ROW, build_workbook


def sample_report(workers=None):
    day = date(2030, 5, 14)
    return {
        "timesheet_id": 1,
        "status": "PENDING_COMPANY_APPROVAL",
        "company": {"name": "Acme & Sons", "address": "1 Main", "phone": "555", "email": None, "website": None},
        "job": {"id": 7, "name": "Load-in", "description": None, "budget": "5000",
                "start_date": day, "end_date": None, "location": "Arena"},
        "shift": {"id": 3, "date": day, "start_time": datetime(2030, 5, 14, 8), "end_time": datetime(2030, 5, 14, 16),
                  "location": None, "description": "Stage build", "notes": None},
        "client_contact": "Acme & Sons",
        "workers": workers if workers is not None else [
            {"name": "Wes Worker", "role_code": "SH", "role_name": "Stage Hand", "initials": "WW",
             "pairs": [(datetime(2030, 5, 14, 8), datetime(2030, 5, 14, 12)),
                       (datetime(2030, 5, 14, 13), datetime(2030, 5, 14, 19))],
             "total": 10.0, "regular": 8.0, "overtime": 2.0},
            {"name": "Fay Forklift", "role_code": "FO", "role_name": "Fork Operator", "initials": "FF",
             "pairs": [], "total": 0.0, "regular": 0.0, "overtime": 0.0},
        ],
        "totals": {"regular": 8.0, "overtime": 2.0},
    }


def test_workbook_cell_layout():
    ws = build_workbook(sample_report()).worksheets[0]
    assert ws["A12"].value == "Acme & Sons"
    assert ws["B6"].value == 7
    assert ws["B7"].value == "Load-in"
    assert ws["B8"].value == "Arena"
    assert ws["E9"].value == "Stage build"
    assert ws["F12"].value == "Acme & Sons"

    row = GRID_START_ROW
    assert ws.cell(row=row, column=3).value == "Wes Worker"
    assert ws.cell(row=row, column=4).value == "Stage Hand"
    assert ws.cell(row=row, column=5).value == "WW"
    assert ws.cell(row=row, column=6).value == datetime(2030, 5, 14, 8)
    assert ws.cell(row=row, column=9).value == datetime(2030, 5, 14, 19)
    assert ws.cell(row=row, column=12).value == 8.0
    assert ws.cell(row=row, column=13).value == 2.0

    totals = GRID_START_ROW + 2
    assert ws.cell(row=totals, column=4).value == "TOTAL HOURS:"
    assert ws.cell(row=totals, column=12).value == 8.0
    assert ws.cell(row=totals, column=4).font.bold


def test_workbook_bytes_round_trip_with_signature():
    png = signature_png(signature_data_url())
    data = build_workbook_bytes(sample_report(), None, png)
    ws = load_workbook(BytesIO(data)).worksheets[0]
    assert ws.cell(row=GRID_START_ROW + 1, column=3).value == "Fay Forklift"


def test_empty_grid_has_no_totals_row():
    ws = build_workbook(sample_report(workers=[])).worksheets[0]
    assert ws.cell(row=GRID_START_ROW, column=4).value is None


def test_pdf_renders():
    assert build_pdf_bytes(sample_report()).startswith(b"%PDF")
    png = signature_png(signature_data_url())
    assert build_pdf_bytes(sample_report(), png).startswith(b"%PDF")


@pytest.mark.parametrize("value", [None, "", "data:image/png;base64,@@@", "data:image/png;base64,aGVsbG8="])
def test_bad_signatures_are_ignored(value):
    assert signature_png(value) is None


# ---------- through the API ----------

def test_excel_download(as_user, ts_id):
    resp = as_user("client").get(f"/api/timesheets/{ts_id}/excel")
    assert resp.status_code == 200
    assert resp.mimetype.endswith("spreadsheetml.sheet")
    assert "attachment" in resp.headers["Content-Disposition"]
    ws = load_workbook(BytesIO(resp.data)).worksheets[0]
    names = {ws.cell(row=GRID_START_ROW + i, column=3).value for i in range(3)}
    assert names == {"Chris Chief", "Wes Worker", "Fay Forklift"}


def test_pdf_download(as_user, ts_id):
    resp = as_user("chief").get(f"/api/timesheets/{ts_id}/pdf?inline=1")
    assert resp.status_code == 200
    assert resp.mimetype == "application/pdf"
    assert resp.data.startswith(b"%PDF")


def test_signed_links(client, as_user, ts_id):
    resp = as_user("admin").get(f"/api/timesheets/{ts_id}/files")
    body = resp.get_json()
    assert body["meta"]["expires_in"] == 3600
    links = body["data"]
    assert links["signed_excel"] is None
    assert links["unsigned_pdf"]

    client.post("/logout")
    path = urlparse(links["unsigned_pdf"]).path
    download = client.get(path)
    assert download.status_code == 200
    assert download.data.startswith(b"%PDF")

    assert client.get(path + "x").status_code == 404


def test_expired_link(app, client, as_user, ts_id):
    links = as_user("admin").get(f"/api/timesheets/{ts_id}/files").get_json()["data"]
    app.config["SIGNED_URL_MAX_AGE"] = -1
    resp = client.get(urlparse(links["unsigned_excel"]).path)
    assert resp.status_code == 403
    assert resp.get_json()["error"]["code"] == "LINK_EXPIRED"
