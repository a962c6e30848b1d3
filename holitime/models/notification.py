
from datetime import datetime
from ..extensions import db
from .mixins import iso


class Notification(db.Model):
    __tablename__ = "notifications"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    type = db.Column(db.String(48), nullable=False)
    title = db.Column(db.String(255), nullable=False)
    message = db.Column(db.Text, nullable=False)
    related_timesheet_id = db.Column(db.Integer, db.ForeignKey("timesheets.id", ondelete="SET NULL"))
    related_shift_id = db.Column(db.Integer, db.ForeignKey("shifts.id", ondelete="SET NULL"))
    is_read = db.Column(db.Boolean, default=False, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "type": self.type,
            "title": self.title,
            "message": self.message,
            "related_timesheet_id": self.related_timesheet_id,
            "related_shift_id": self.related_shift_id,
            "is_read": self.is_read,
            "created_at": iso(self.created_at),
        }


def notify(user_id, type_, title, message, timesheet_id=None, shift_id=None):
    n = Notification(
        user_id=user_id,
        type=type_,
        title=title,
        message=message,
        related_timesheet_id=timesheet_id,
        related_shift_id=shift_id,
    )
    db.session.add(n)
    return n
