
from ..extensions import db
from .mixins import TimestampMixin, iso


class TimesheetStatus:
    DRAFT = "DRAFT"
    PENDING_COMPANY_APPROVAL = "PENDING_COMPANY_APPROVAL"
    PENDING_MANAGER_APPROVAL = "PENDING_MANAGER_APPROVAL"
    COMPLETED = "COMPLETED"
    REJECTED = "REJECTED"

    ALL = (DRAFT, PENDING_COMPANY_APPROVAL, PENDING_MANAGER_APPROVAL, COMPLETED, REJECTED)
    FINALIZED = (PENDING_COMPANY_APPROVAL, PENDING_MANAGER_APPROVAL, COMPLETED)


class Timesheet(TimestampMixin, db.Model):
    __tablename__ = "timesheets"

    id = db.Column(db.Integer, primary_key=True)
    shift_id = db.Column(db.Integer, db.ForeignKey("shifts.id", ondelete="CASCADE"), nullable=False, unique=True)
    status = db.Column(db.String(32), nullable=False, default=TimesheetStatus.DRAFT, index=True)

    submitted_by = db.Column(db.Integer, db.ForeignKey("users.id"))
    submitted_at = db.Column(db.DateTime)

    company_signature = db.Column(db.Text)  # data:image/png;base64,...
    company_approved_at = db.Column(db.DateTime)
    company_approved_by = db.Column(db.Integer, db.ForeignKey("users.id"))
    company_notes = db.Column(db.Text)

    manager_approved_at = db.Column(db.DateTime)
    manager_approved_by = db.Column(db.Integer, db.ForeignKey("users.id"))
    manager_notes = db.Column(db.Text)

    rejection_reason = db.Column(db.Text)
    rejected_at = db.Column(db.DateTime)
    rejected_by = db.Column(db.Integer, db.ForeignKey("users.id"))

    unsigned_excel_key = db.Column(db.String(255))
    signed_excel_key = db.Column(db.String(255))
    unsigned_pdf_key = db.Column(db.String(255))
    signed_pdf_key = db.Column(db.String(255))

    shift = db.relationship("Shift", back_populates="timesheet")
    entries = db.relationship(
        "TimesheetEntry",
        back_populates="timesheet",
        cascade="all, delete-orphan",
        order_by="TimesheetEntry.id",
    )

    def file_keys(self) -> dict:
        return {
            "unsigned_excel": self.unsigned_excel_key,
            "signed_excel": self.signed_excel_key,
            "unsigned_pdf": self.unsigned_pdf_key,
            "signed_pdf": self.signed_pdf_key,
        }

    def clear_files(self) -> None:
        self.unsigned_excel_key = None
        self.signed_excel_key = None
        self.unsigned_pdf_key = None
        self.signed_pdf_key = None

    def to_dict(self, with_entries: bool = False) -> dict:
        data = {
            "id": self.id,
            "shift_id": self.shift_id,
            "status": self.status,
            "submitted_by": self.submitted_by,
            "submitted_at": iso(self.submitted_at),
            "has_company_signature": bool(self.company_signature),
            "company_approved_at": iso(self.company_approved_at),
            "company_approved_by": self.company_approved_by,
            "company_notes": self.company_notes,
            "manager_approved_at": iso(self.manager_approved_at),
            "manager_approved_by": self.manager_approved_by,
            "manager_notes": self.manager_notes,
            "rejection_reason": self.rejection_reason,
            "rejected_at": iso(self.rejected_at),
            "rejected_by": self.rejected_by,
            "files": {name: bool(key) for name, key in self.file_keys().items()},
        }
        if with_entries:
            data["entries"] = [e.to_dict() for e in self.entries]
        return data


class TimesheetEntry(db.Model):
    __tablename__ = "timesheet_entries"

    id = db.Column(db.Integer, primary_key=True)
    timesheet_id = db.Column(db.Integer, db.ForeignKey("timesheets.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"))
    user_name = db.Column(db.String(128), nullable=False)
    role_on_shift = db.Column(db.String(64))
    role_code = db.Column(db.String(8))
    entry_number = db.Column(db.Integer, nullable=False, default=1)
    clock_in = db.Column(db.DateTime)
    clock_out = db.Column(db.DateTime)
    break_start = db.Column(db.DateTime)
    break_end = db.Column(db.DateTime)
    notes = db.Column(db.Text)

    timesheet = db.relationship("Timesheet", back_populates="entries")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "user_name": self.user_name,
            "role_on_shift": self.role_on_shift,
            "role_code": self.role_code,
            "entry_number": self.entry_number,
            "clock_in": iso(self.clock_in),
            "clock_out": iso(self.clock_out),
            "break_start": iso(self.break_start),
            "break_end": iso(self.break_end),
            "notes": self.notes,
        }
