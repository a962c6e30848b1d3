
from ..extensions import db
from .mixins import TimestampMixin, iso


class JobStatus:
    PENDING = "Pending"
    ACTIVE = "Active"
    ON_HOLD = "OnHold"
    COMPLETED = "Completed"
    CANCELLED = "Cancelled"

    ALL = (PENDING, ACTIVE, ON_HOLD, COMPLETED, CANCELLED)


class Job(TimestampMixin, db.Model):
    __tablename__ = "jobs"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(180), nullable=False)
    description = db.Column(db.Text)
    status = db.Column(db.String(16), nullable=False, default=JobStatus.PENDING, index=True)
    start_date = db.Column(db.Date)
    end_date = db.Column(db.Date)
    location = db.Column(db.String(255))
    budget = db.Column(db.String(64))
    notes = db.Column(db.Text)
    company_id = db.Column(db.Integer, db.ForeignKey("companies.id"), nullable=False, index=True)

    company = db.relationship("Company", back_populates="jobs")
    shifts = db.relationship("Shift", back_populates="job", order_by="Shift.start_time")

    __table_args__ = (
        db.UniqueConstraint("name", "company_id", name="uq_job_name_company"),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "status": self.status,
            "start_date": iso(self.start_date),
            "end_date": iso(self.end_date),
            "location": self.location,
            "budget": self.budget,
            "notes": self.notes,
            "company_id": self.company_id,
            "company_name": self.company.name if self.company else None,
        }
