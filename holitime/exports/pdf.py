"""exports/pdf.py

Timesheet PDF rendered with reportlab: header facts, the worker grid with
three in/out pairs and a totals row, and the client signature once signed.
"""
from __future__ import annotations

from datetime import datetime
from io import BytesIO
from xml.sax.saxutils import escape

from reportlab.lib import colors
from reportlab.lib.pagesizes import landscape, letter
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.platypus import Image, Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle


def _d(v):
    return v.strftime("%m/%d/%Y") if v else "-"


def _t(v):
    return v.strftime("%I:%M %p").lstrip("0") if v else ""


def build_pdf_bytes(report: dict, signature: bytes | None = None) -> bytes:
    buffer = BytesIO()
    doc = SimpleDocTemplate(
        buffer,
        pagesize=landscape(letter),
        rightMargin=30,
        leftMargin=30,
        topMargin=30,
        bottomMargin=30,
        title=f"Timesheet {report['job'].get('name') or ''}".strip(),
    )

    styles = getSampleStyleSheet()
    styles.add(ParagraphStyle(
        name="Header",
        fontSize=16,
        leading=20,
        alignment=1,
        spaceAfter=12
    ))
    styles.add(ParagraphStyle(
        name="Small",
        fontSize=8,
        textColor=colors.grey
    ))

    company, job, shift = report["company"], report["job"], report["shift"]

    elements = []
    elements.append(Paragraph("Timesheet", styles["Header"]))

    facts = [
        ["Company", company.get("name") or "-", "Shift date", _d(shift.get("date"))],
        ["Job #", str(job.get("id") or "-"), "Start", _t(shift.get("start_time"))],
        ["Job", job.get("name") or "-", "End", _t(shift.get("end_time"))],
        ["Location", shift.get("location") or job.get("location") or "-", "Status", report.get("status") or "-"],
    ]
    elements.append(
        Table(
            facts,
            colWidths=[70, 250, 70, 200],
            hAlign="LEFT",
            style=TableStyle([
                ("FONTNAME", (0, 0), (0, -1), "Helvetica-Bold"),
                ("FONTNAME", (2, 0), (2, -1), "Helvetica-Bold"),
                ("FONTSIZE", (0, 0), (-1, -1), 9),
                ("VALIGN", (0, 0), (-1, -1), "TOP"),
            ])
        )
    )
    elements.append(Spacer(1, 14))

    grid = [["Name", "Worker Type", "Initials", "In 1", "Out 1", "In 2", "Out 2", "In 3", "Out 3", "Regular", "OT"]]
    for w in report["workers"]:
        pairs = list(w["pairs"][:3]) + [(None, None)] * (3 - min(len(w["pairs"]), 3))
        row = [w["name"], w["role_name"], w["initials"]]
        for clock_in, clock_out in pairs:
            row += [_t(clock_in), _t(clock_out)]
        row += [f"{w['regular']:.2f}", f"{w['overtime']:.2f}"]
        grid.append(row)
    totals = report["totals"]
    grid.append(["", "TOTAL HOURS:", "", "", "", "", "", "", "", f"{totals['regular']:.2f}", f"{totals['overtime']:.2f}"])

    elements.append(
        Table(
            grid,
            colWidths=[130, 100, 45, 52, 52, 52, 52, 52, 52, 50, 45],
            repeatRows=1,
            style=TableStyle([
                ("GRID", (0, 0), (-1, -1), 0.5, colors.grey),
                ("BACKGROUND", (0, 0), (-1, 0), colors.lightgrey),
                ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
                ("FONTSIZE", (0, 0), (-1, -1), 8),
                ("BACKGROUND", (0, -1), (-1, -1), colors.HexColor("#F0F0F0")),
                ("FONTNAME", (0, -1), (-1, -1), "Helvetica-Bold"),
                ("ALIGN", (3, 1), (-1, -1), "CENTER"),
            ])
        )
    )
    elements.append(Spacer(1, 16))

    elements.append(Paragraph(f"<b>Client contact:</b> {escape(report.get('client_contact') or 'N/A')}", styles["Normal"]))
    if signature:
        elements.append(Spacer(1, 6))
        elements.append(Paragraph("<b>Client signature:</b>", styles["Normal"]))
        elements.append(Image(BytesIO(signature), width=150, height=75, hAlign="LEFT"))
    elements.append(Spacer(1, 10))
    elements.append(
        Paragraph(
            f"Generated at: {datetime.utcnow().strftime('%Y-%m-%d %H:%M')} UTC",
            styles["Small"]
        )
    )

    doc.build(elements)
    return buffer.getvalue()
