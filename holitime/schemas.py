"""
Request schemas for the JSON API.

Every write endpoint validates its body with one of these models through
``holitime.api.parse_body``; a ValidationError is answered with a 400
VALIDATION_ERROR envelope listing the offending fields.

Timestamps are stored naive in UTC, so aware datetimes are converted on the
way in.
"""
from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone
from typing import List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

RoleCodeLit = Literal["CC", "SH", "FO", "RFO", "RG", "GL"]
UserRoleLit = Literal["Staff", "Admin", "CompanyUser", "CrewChief", "Employee"]
ShiftStatusLit = Literal["Pending", "Active", "InProgress", "Completed", "Cancelled"]
JobStatusLit = Literal["Pending", "Active", "OnHold", "Completed", "Cancelled"]
ApprovalTypeLit = Literal["client", "company", "manager", "admin"]
PermissionTypeLit = Literal["client", "job", "shift"]

# a field named "date" shadows the type inside class bodies
Date = date


def naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def combine(day: date, value: Union[datetime, time, None]) -> Optional[datetime]:
    """Shift times may arrive as full datetimes or as a wall-clock time on ``day``."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return naive_utc(value)
    return datetime.combine(day, value)


def shift_window(day: date, start, end) -> tuple[datetime, datetime]:
    start_dt = combine(day, start)
    end_dt = combine(day, end)
    # "22:00"-"06:00" runs past midnight
    if isinstance(end, time) and not isinstance(end, datetime) and end_dt <= start_dt:
        end_dt += timedelta(days=1)
    return start_dt, end_dt


class Schema(BaseModel):
    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True)


# ---------- auth / users ----------

class LoginIn(Schema):
    email: str
    password: str = Field(..., min_length=1)

    @field_validator("email")
    @classmethod
    def lower_email(cls, v: str) -> str:
        return v.lower()


def _check_email(v: Optional[str]) -> Optional[str]:
    if v is None:
        return v
    v = v.lower()
    if "@" not in v or v.startswith("@") or v.endswith("@"):
        raise ValueError("invalid email address")
    return v


class UserIn(Schema):
    name: str = Field(..., min_length=1, max_length=128)
    email: str
    password: str = Field(..., min_length=6)
    role: UserRoleLit = "Employee"
    company_id: Optional[int] = None
    crew_chief_eligible: bool = False
    fork_operator_eligible: bool = False
    location: Optional[str] = None
    is_active: bool = True

    @field_validator("email")
    @classmethod
    def check_email(cls, v):
        return _check_email(v)


class UserUpdate(Schema):
    name: Optional[str] = Field(None, min_length=1, max_length=128)
    email: Optional[str] = None
    role: Optional[UserRoleLit] = None
    company_id: Optional[int] = None
    crew_chief_eligible: Optional[bool] = None
    fork_operator_eligible: Optional[bool] = None
    location: Optional[str] = None
    is_active: Optional[bool] = None

    @field_validator("email")
    @classmethod
    def check_email(cls, v):
        return _check_email(v)


class PasswordResetIn(Schema):
    password: str = Field(..., min_length=6)


# ---------- companies / jobs ----------

class CompanyIn(Schema):
    name: str = Field(..., min_length=1, max_length=180)
    address: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    website: Optional[str] = None
    description: Optional[str] = None
    is_active: bool = True


class CompanyUpdate(Schema):
    name: Optional[str] = Field(None, min_length=1, max_length=180)
    address: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    website: Optional[str] = None
    description: Optional[str] = None
    is_active: Optional[bool] = None


class JobIn(Schema):
    name: str = Field(..., min_length=1, max_length=180)
    company_id: int
    description: Optional[str] = None
    status: JobStatusLit = "Pending"
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    location: Optional[str] = None
    budget: Optional[str] = None
    notes: Optional[str] = None

    @model_validator(mode="after")
    def check_dates(self):
        if self.start_date and self.end_date and self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        return self


class JobUpdate(Schema):
    name: Optional[str] = Field(None, min_length=1, max_length=180)
    company_id: Optional[int] = None
    description: Optional[str] = None
    status: Optional[JobStatusLit] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    location: Optional[str] = None
    budget: Optional[str] = None
    notes: Optional[str] = None


# ---------- shifts ----------

class WorkerRequirementsIn(Schema):
    required_crew_chiefs: Optional[int] = Field(None, ge=0)
    required_stagehands: Optional[int] = Field(None, ge=0)
    required_fork_operators: Optional[int] = Field(None, ge=0)
    required_reach_fork_operators: Optional[int] = Field(None, ge=0)
    required_riggers: Optional[int] = Field(None, ge=0)
    required_general_laborers: Optional[int] = Field(None, ge=0)

    def as_columns(self) -> dict:
        return {k: v for k, v in self.model_dump().items() if v is not None}


class ShiftIn(WorkerRequirementsIn):
    job_id: int
    date: Date
    start_time: Union[datetime, time]
    end_time: Union[datetime, time]
    requested_workers: Optional[int] = Field(None, ge=0)
    status: ShiftStatusLit = "Pending"
    location: Optional[str] = None
    description: Optional[str] = None
    notes: Optional[str] = None

    @model_validator(mode="after")
    def check_window(self):
        start, end = shift_window(self.date, self.start_time, self.end_time)
        if end <= start:
            raise ValueError("end_time must be after start_time")
        self.start_time, self.end_time = start, end
        return self


class ShiftUpdate(WorkerRequirementsIn):
    job_id: Optional[int] = None
    date: Optional[Date] = None
    start_time: Optional[Union[datetime, time]] = None
    end_time: Optional[Union[datetime, time]] = None
    requested_workers: Optional[int] = Field(None, ge=0)
    status: Optional[ShiftStatusLit] = None
    location: Optional[str] = None
    description: Optional[str] = None
    notes: Optional[str] = None


class AssignWorkerIn(Schema):
    user_id: Optional[int] = None
    role_code: RoleCodeLit = "SH"
    replace_assignment_id: Optional[int] = None


# ---------- staffing ----------

class WorkerActionIn(Schema):
    worker_id: int = Field(..., description="AssignedPersonnel id")


class ClockInIn(WorkerActionIn):
    entry_number: Optional[int] = Field(None, ge=1, le=3)


class SyncWorkerIn(Schema):
    user_id: int
    role_code: RoleCodeLit = "SH"
    clock_in_time: Optional[datetime] = None
    clock_out_time: Optional[datetime] = None
    entry_number: Optional[int] = Field(None, ge=1, le=3)

    @field_validator("clock_in_time", "clock_out_time")
    @classmethod
    def to_utc(cls, v):
        return naive_utc(v)

    @model_validator(mode="after")
    def check_order(self):
        if self.clock_out_time is not None:
            if self.clock_in_time is None:
                raise ValueError("clock_out_time requires clock_in_time")
            if self.clock_out_time <= self.clock_in_time:
                raise ValueError("clock_out_time must be after clock_in_time")
        return self


class SyncImportIn(Schema):
    workers: List[SyncWorkerIn] = Field(..., min_length=1)
    overwrite_existing: bool = True


# ---------- timesheets ----------

class ApproveIn(Schema):
    approval_type: ApprovalTypeLit
    signature: Optional[str] = None
    notes: Optional[str] = None


class RejectIn(Schema):
    reason: str = Field(..., min_length=1)
    notes: Optional[str] = None


class UnlockIn(Schema):
    reason: str = Field(..., min_length=1)
    notes: Optional[str] = None


# ---------- permissions ----------

class PermissionIn(Schema):
    user_id: int
    permission_type: PermissionTypeLit
    target_id: int
