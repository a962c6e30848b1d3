from .company import Company
from .user import User, UserRole
from .job import Job, JobStatus
from .shift import AssignedPersonnel, RoleCode, Shift, ShiftStatus, TimeEntry, WorkerStatus
from .timesheet import Timesheet, TimesheetEntry, TimesheetStatus
from .permission import CrewChiefPermission, PermissionType
from .notification import Notification, notify

__all__ = [
    "Company",
    "User",
    "UserRole",
    "Job",
    "JobStatus",
    "Shift",
    "ShiftStatus",
    "AssignedPersonnel",
    "TimeEntry",
    "WorkerStatus",
    "RoleCode",
    "Timesheet",
    "TimesheetEntry",
    "TimesheetStatus",
    "CrewChiefPermission",
    "PermissionType",
    "Notification",
    "notify",
]
