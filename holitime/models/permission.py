
from datetime import datetime
from ..extensions import db


class PermissionType:
    CLIENT = "client"
    JOB = "job"
    SHIFT = "shift"

    ALL = (CLIENT, JOB, SHIFT)


class CrewChiefPermission(db.Model):
    __tablename__ = "crew_chief_permissions"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    permission_type = db.Column(db.String(16), nullable=False)  # client|job|shift
    target_id = db.Column(db.Integer, nullable=False)
    granted_by = db.Column(db.Integer, db.ForeignKey("users.id"))
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    user = db.relationship("User", foreign_keys=[user_id])

    __table_args__ = (
        db.UniqueConstraint("user_id", "permission_type", "target_id", name="uq_cc_permission"),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "user_name": self.user.name if self.user else None,
            "permission_type": self.permission_type,
            "target_id": self.target_id,
            "granted_by": self.granted_by,
        }
