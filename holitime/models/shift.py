
from datetime import datetime
from ..extensions import db
from .mixins import TimestampMixin, iso


class ShiftStatus:
    PENDING = "Pending"
    ACTIVE = "Active"
    IN_PROGRESS = "InProgress"
    COMPLETED = "Completed"
    CANCELLED = "Cancelled"

    ALL = (PENDING, ACTIVE, IN_PROGRESS, COMPLETED, CANCELLED)


class WorkerStatus:
    ASSIGNED = "Assigned"
    CLOCKED_IN = "ClockedIn"
    ON_BREAK = "OnBreak"
    CLOCKED_OUT = "ClockedOut"
    SHIFT_ENDED = "ShiftEnded"
    NO_SHOW = "NoShow"

    ALL = (ASSIGNED, CLOCKED_IN, ON_BREAK, CLOCKED_OUT, SHIFT_ENDED, NO_SHOW)
    # statuses that let a timesheet be finalized
    DONE = (SHIFT_ENDED, NO_SHOW)


class RoleCode:
    CC = "CC"
    SH = "SH"
    FO = "FO"
    RFO = "RFO"
    RG = "RG"
    GL = "GL"

    ORDER = (CC, SH, FO, RFO, RG, GL)
    NAMES = {
        CC: "Crew Chief",
        SH: "Stage Hand",
        FO: "Fork Operator",
        RFO: "Reach Fork Operator",
        RG: "Rigger",
        GL: "General Labor",
    }
    # role code -> Shift column holding how many are required
    REQUIRED_FIELDS = {
        CC: "required_crew_chiefs",
        SH: "required_stagehands",
        FO: "required_fork_operators",
        RFO: "required_reach_fork_operators",
        RG: "required_riggers",
        GL: "required_general_laborers",
    }

    @classmethod
    def name_of(cls, code):
        return cls.NAMES.get(code, code)


class Shift(TimestampMixin, db.Model):
    __tablename__ = "shifts"

    id = db.Column(db.Integer, primary_key=True)
    job_id = db.Column(db.Integer, db.ForeignKey("jobs.id"), nullable=False, index=True)
    date = db.Column(db.Date, nullable=False, index=True)
    start_time = db.Column(db.DateTime, nullable=False)
    end_time = db.Column(db.DateTime, nullable=False)
    requested_workers = db.Column(db.Integer)
    status = db.Column(db.String(16), nullable=False, default=ShiftStatus.PENDING, index=True)
    location = db.Column(db.String(255))
    description = db.Column(db.Text)
    notes = db.Column(db.Text)

    required_crew_chiefs = db.Column(db.Integer, nullable=False, default=0)
    required_stagehands = db.Column(db.Integer, nullable=False, default=0)
    required_fork_operators = db.Column(db.Integer, nullable=False, default=0)
    required_reach_fork_operators = db.Column(db.Integer, nullable=False, default=0)
    required_riggers = db.Column(db.Integer, nullable=False, default=0)
    required_general_laborers = db.Column(db.Integer, nullable=False, default=0)

    job = db.relationship("Job", back_populates="shifts")
    assigned_personnel = db.relationship(
        "AssignedPersonnel",
        back_populates="shift",
        cascade="all, delete-orphan",
        order_by="AssignedPersonnel.id",
    )
    timesheet = db.relationship("Timesheet", back_populates="shift", uselist=False, cascade="all, delete-orphan")

    @property
    def company(self):
        return self.job.company if self.job else None

    def worker_requirements(self) -> dict:
        return {code: getattr(self, field) or 0 for code, field in RoleCode.REQUIRED_FIELDS.items()}

    def set_worker_requirements(self, counts: dict) -> None:
        for code, value in counts.items():
            field = RoleCode.REQUIRED_FIELDS.get(code)
            if field is not None and value is not None:
                setattr(self, field, int(value))

    @property
    def total_required(self) -> int:
        return sum(self.worker_requirements().values())

    @property
    def total_assigned(self) -> int:
        return sum(1 for ap in self.assigned_personnel if ap.user_id is not None)

    def fulfillment(self) -> dict:
        required = self.total_required
        assigned = self.total_assigned
        percentage = round(assigned / required * 100, 1) if required else 0
        if percentage >= 100:
            level = "full"
        elif percentage >= 80:
            level = "good"
        else:
            level = "critical"
        return {"total_required": required, "total_assigned": assigned, "percentage": percentage, "status": level}

    def worker_status_summary(self) -> dict:
        summary = {status: 0 for status in WorkerStatus.ALL}
        for ap in self.assigned_personnel:
            if ap.user_id is not None:
                summary[ap.status] = summary.get(ap.status, 0) + 1
        return summary

    def display_status(self, now=None) -> str:
        """Status as shown to people: Cancelled, Completed, Ongoing, Scheduled or Pending.

        A shift whose timesheet is finalized reads as Completed; otherwise the
        current time is compared with the shift window.
        """
        from .timesheet import TimesheetStatus

        now = now or datetime.utcnow()
        if self.status == ShiftStatus.CANCELLED:
            return "Cancelled"
        if self.timesheet is not None and self.timesheet.status in TimesheetStatus.FINALIZED:
            return "Completed"
        if self.start_time <= now <= self.end_time:
            return "Ongoing"
        if now < self.start_time:
            return "Scheduled"
        return "Pending"

    def to_dict(self, with_personnel: bool = False, now=None) -> dict:
        job = self.job
        data = {
            "id": self.id,
            "job_id": self.job_id,
            "job_name": job.name if job else None,
            "company_id": job.company_id if job else None,
            "company_name": job.company.name if job and job.company else None,
            "date": iso(self.date),
            "start_time": iso(self.start_time),
            "end_time": iso(self.end_time),
            "requested_workers": self.requested_workers,
            "status": self.status,
            "display_status": self.display_status(now),
            "location": self.location,
            "description": self.description,
            "notes": self.notes,
            "worker_requirements": self.worker_requirements(),
            "fulfillment": self.fulfillment(),
            "timesheet_id": self.timesheet.id if self.timesheet else None,
            "timesheet_status": self.timesheet.status if self.timesheet else None,
        }
        if with_personnel:
            data["assigned_personnel"] = [ap.to_dict() for ap in self.assigned_personnel]
            data["worker_status"] = self.worker_status_summary()
        return data


class AssignedPersonnel(TimestampMixin, db.Model):
    __tablename__ = "assigned_personnel"

    id = db.Column(db.Integer, primary_key=True)
    shift_id = db.Column(db.Integer, db.ForeignKey("shifts.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), index=True)  # NULL = open slot
    role_code = db.Column(db.String(8), nullable=False, default=RoleCode.SH)
    status = db.Column(db.String(16), nullable=False, default=WorkerStatus.ASSIGNED)

    shift = db.relationship("Shift", back_populates="assigned_personnel")
    user = db.relationship("User")
    time_entries = db.relationship(
        "TimeEntry",
        back_populates="assigned_personnel",
        cascade="all, delete-orphan",
        order_by="TimeEntry.entry_number",
    )

    @property
    def active_entry(self):
        for entry in self.time_entries:
            if entry.is_active:
                return entry
        return None

    @property
    def role_name(self) -> str:
        return RoleCode.name_of(self.role_code)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "shift_id": self.shift_id,
            "user_id": self.user_id,
            "user_name": self.user.name if self.user else None,
            "role_code": self.role_code,
            "role_name": self.role_name,
            "status": self.status,
            "time_entries": [e.to_dict() for e in self.time_entries],
        }


class TimeEntry(TimestampMixin, db.Model):
    __tablename__ = "time_entries"

    id = db.Column(db.Integer, primary_key=True)
    assigned_personnel_id = db.Column(
        db.Integer, db.ForeignKey("assigned_personnel.id", ondelete="CASCADE"), nullable=False, index=True
    )
    entry_number = db.Column(db.Integer, nullable=False, default=1)
    clock_in = db.Column(db.DateTime, nullable=False)
    clock_out = db.Column(db.DateTime)
    break_start = db.Column(db.DateTime)
    break_end = db.Column(db.DateTime)
    notes = db.Column(db.Text)
    verified = db.Column(db.Boolean, default=False, nullable=False)
    is_active = db.Column(db.Boolean, default=True, nullable=False)

    assigned_personnel = db.relationship("AssignedPersonnel", back_populates="time_entries")

    __table_args__ = (
        db.UniqueConstraint("assigned_personnel_id", "entry_number", name="uq_time_entry_number"),
        db.CheckConstraint("entry_number BETWEEN 1 AND 3", name="ck_time_entry_number_range"),
        # one open entry per assignment
        db.Index(
            "ix_time_entry_one_active",
            "assigned_personnel_id",
            unique=True,
            sqlite_where=db.text("is_active = 1"),
            postgresql_where=db.text("is_active"),
        ),
    )

    def hours(self) -> float:
        if self.clock_in is None or self.clock_out is None:
            return 0.0
        return max((self.clock_out - self.clock_in).total_seconds(), 0) / 3600.0

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "entry_number": self.entry_number,
            "clock_in": iso(self.clock_in),
            "clock_out": iso(self.clock_out),
            "break_start": iso(self.break_start),
            "break_end": iso(self.break_end),
            "notes": self.notes,
            "verified": self.verified,
            "is_active": self.is_active,
        }
