
from datetime import datetime
from flask_login import UserMixin
from werkzeug.security import check_password_hash, generate_password_hash
from ..extensions import db, login_manager


class UserRole:
    STAFF = "Staff"
    ADMIN = "Admin"
    COMPANY_USER = "CompanyUser"
    CREW_CHIEF = "CrewChief"
    EMPLOYEE = "Employee"

    ALL = (STAFF, ADMIN, COMPANY_USER, CREW_CHIEF, EMPLOYEE)
    # roles that see and manage every shift
    MANAGERS = (ADMIN, STAFF)


class User(db.Model, UserMixin):
    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(128), nullable=False, index=True)
    email = db.Column(db.String(255), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(256))
    role = db.Column(db.String(32), nullable=False, default=UserRole.STAFF)  # Staff|Admin|CompanyUser|CrewChief|Employee
    company_id = db.Column(db.Integer, db.ForeignKey("companies.id", ondelete="SET NULL"), index=True)
    is_active = db.Column(db.Boolean, default=True, nullable=False)
    crew_chief_eligible = db.Column(db.Boolean, default=False, nullable=False)
    fork_operator_eligible = db.Column(db.Boolean, default=False, nullable=False)
    location = db.Column(db.String(255))
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    company = db.relationship("Company", back_populates="users")

    def set_password(self, password: str) -> None:
        self.password_hash = generate_password_hash(password)

    def check_password(self, password: str) -> bool:
        if not self.password_hash:
            return False
        return check_password_hash(self.password_hash, password)

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    @property
    def initials(self) -> str:
        return "".join(part[0] for part in (self.name or "").split() if part).upper()

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "role": self.role,
            "company_id": self.company_id,
            "is_active": self.is_active,
            "crew_chief_eligible": self.crew_chief_eligible,
            "fork_operator_eligible": self.fork_operator_eligible,
            "location": self.location,
        }


@login_manager.user_loader
def load_user(user_id):
    user = db.session.get(User, int(user_id))
    if user is None or not user.is_active:
        return None
    return user
