# -*- coding: utf-8 -*-
from __future__ import annotations
from typing import Dict, Set
from sqlalchemy import false, or_, select
from .errors import Forbidden
from .extensions import db
from .models import (
    AssignedPersonnel,
    CrewChiefPermission,
    Job,
    PermissionType,
    RoleCode,
    Shift,
    Timesheet,
    UserRole,
)

# — roles —
def is_manager(user) -> bool:
    return getattr(user, "role", "") in UserRole.MANAGERS

def is_admin(user) -> bool:
    return getattr(user, "role", "") == UserRole.ADMIN

def _company_id_of(shift: Shift) -> int | None:
    return shift.job.company_id if shift.job else None

# — crew chief permissions —
def permission_targets(user) -> Dict[str, Set[int]]:
    out: Dict[str, Set[int]] = {t: set() for t in PermissionType.ALL}
    rows = db.session.execute(
        select(CrewChiefPermission.permission_type, CrewChiefPermission.target_id)
        .where(CrewChiefPermission.user_id == getattr(user, "id", 0))
    ).all()
    for kind, target in rows:
        out.setdefault(kind, set()).add(target)
    return out

def has_shift_permission(user, shift: Shift) -> bool:
    targets = permission_targets(user)
    return (
        shift.id in targets[PermissionType.SHIFT]
        or shift.job_id in targets[PermissionType.JOB]
        or _company_id_of(shift) in targets[PermissionType.CLIENT]
    )

# — assignment —
def assignment_for(user, shift: Shift) -> AssignedPersonnel | None:
    uid = getattr(user, "id", None)
    for ap in shift.assigned_personnel:
        if uid is not None and ap.user_id == uid:
            return ap
    return None

def is_assigned_to_shift(user, shift: Shift) -> bool:
    return assignment_for(user, shift) is not None

def is_crew_chief_on(user, shift: Shift) -> bool:
    uid = getattr(user, "id", None)
    if uid is None:
        return False
    return any(ap.user_id == uid and ap.role_code == RoleCode.CC for ap in shift.assigned_personnel)

# — shifts —
def can_manage_shift(user, shift: Shift) -> bool:
    """Clock actions, assignment, import and finalization."""
    if is_manager(user):
        return True
    return is_crew_chief_on(user, shift) or has_shift_permission(user, shift)

def can_view_shift(user, shift: Shift) -> bool:
    if is_manager(user):
        return True
    if getattr(user, "role", "") == UserRole.COMPANY_USER:
        return user.company_id is not None and user.company_id == _company_id_of(shift)
    return is_assigned_to_shift(user, shift) or has_shift_permission(user, shift)

def scope_shifts_query(query, user):
    """Restrict a Shift query to what ``user`` may see."""
    if is_manager(user):
        return query
    if getattr(user, "role", "") == UserRole.COMPANY_USER:
        if user.company_id is None:
            return query.filter(false())
        return query.filter(Shift.job.has(Job.company_id == user.company_id))

    targets = permission_targets(user)
    assigned = select(AssignedPersonnel.shift_id).where(AssignedPersonnel.user_id == user.id)
    conds = [Shift.id.in_(assigned)]
    if targets[PermissionType.SHIFT]:
        conds.append(Shift.id.in_(targets[PermissionType.SHIFT]))
    if targets[PermissionType.JOB]:
        conds.append(Shift.job_id.in_(targets[PermissionType.JOB]))
    if targets[PermissionType.CLIENT]:
        conds.append(Shift.job.has(Job.company_id.in_(targets[PermissionType.CLIENT])))
    return query.filter(or_(*conds))

def scope_jobs_query(query, user):
    if is_manager(user):
        return query
    if getattr(user, "role", "") == UserRole.COMPANY_USER:
        if user.company_id is None:
            return query.filter(false())
        return query.filter(Job.company_id == user.company_id)
    visible = scope_shifts_query(db.session.query(Shift.job_id), user)
    return query.filter(Job.id.in_(visible.scalar_subquery()))

# — timesheets —
def can_view_timesheet(user, ts: Timesheet) -> bool:
    return can_view_shift(user, ts.shift)

def can_company_approve(user, ts: Timesheet) -> bool:
    shift = ts.shift
    if is_admin(user):
        return True
    if getattr(user, "role", "") == UserRole.COMPANY_USER:
        return user.company_id is not None and user.company_id == _company_id_of(shift)
    return can_manage_shift(user, shift)

def can_manager_approve(user, ts: Timesheet) -> bool:
    return is_admin(user)

def can_reject(user, ts: Timesheet) -> bool:
    role = getattr(user, "role", "")
    if role == UserRole.ADMIN:
        return True
    if role == UserRole.COMPANY_USER:
        return user.company_id is not None and user.company_id == _company_id_of(ts.shift)
    if role == UserRole.CREW_CHIEF:
        return can_manage_shift(user, ts.shift)
    return False

def scope_timesheets_query(query, user):
    if is_manager(user):
        return query
    visible = scope_shifts_query(db.session.query(Shift.id), user)
    return query.filter(Timesheet.shift_id.in_(visible.scalar_subquery()))

# — guards used by the routes —
def require_view_shift(user, shift: Shift) -> None:
    if not can_view_shift(user, shift):
        raise Forbidden("You do not have access to this shift")

def require_manage_shift(user, shift: Shift) -> None:
    if not can_manage_shift(user, shift):
        raise Forbidden("You cannot manage this shift")

def require_view_timesheet(user, ts: Timesheet) -> None:
    if not can_view_timesheet(user, ts):
        raise Forbidden("You do not have access to this timesheet")
