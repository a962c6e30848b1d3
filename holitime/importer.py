# -*- coding: utf-8 -*-
"""Replace a shift's staffing with rows imported from an external sheet."""
from __future__ import annotations

import logging
from collections import OrderedDict
from typing import Dict, List, Tuple

from sqlalchemy.exc import IntegrityError

from .clock import MAX_TIME_ENTRIES, WorkerState, worker_state
from .errors import BadRequest, Conflict
from .extensions import db
from .models import (
    AssignedPersonnel,
    RoleCode,
    Shift,
    ShiftStatus,
    TimeEntry,
    User,
    WorkerStatus,
)
from .schemas import SyncImportIn, SyncWorkerIn
from .timesheets import require_open_timesheet

logger = logging.getLogger(__name__)

# imported entries decide the status the same way live clock actions do
_STATUS_FOR_STATE = {
    WorkerState.NOT_STARTED: WorkerStatus.ASSIGNED,
    WorkerState.CLOCKED_IN: WorkerStatus.CLOCKED_IN,
    WorkerState.CLOCKED_OUT: WorkerStatus.CLOCKED_OUT,
}


def _group(workers: List[SyncWorkerIn]) -> "OrderedDict[Tuple[int, str], List[SyncWorkerIn]]":
    groups: "OrderedDict[Tuple[int, str], List[SyncWorkerIn]]" = OrderedDict()
    for row in workers:
        groups.setdefault((row.user_id, row.role_code), []).append(row)
    return groups


def _check_group(user_id: int, role_code: str, rows: List[SyncWorkerIn]) -> List[SyncWorkerIn]:
    timed = [r for r in rows if r.clock_in_time is not None]
    where = {"user_id": user_id, "role_code": role_code}
    if len(timed) > MAX_TIME_ENTRIES:
        raise BadRequest(f"At most {MAX_TIME_ENTRIES} time entries per worker", details=where)
    numbers = [r.entry_number for r in timed if r.entry_number is not None]
    if len(numbers) != len(set(numbers)):
        raise BadRequest("Duplicate entry_number for worker", details=where)
    if sum(1 for r in timed if r.clock_out_time is None) > 1:
        raise BadRequest("Only one open time entry per worker", details=where)
    return sorted(timed, key=lambda r: r.clock_in_time)


def preview(shift: Shift) -> dict:
    current: Dict[str, int] = {code: 0 for code in RoleCode.ORDER}
    for ap in shift.assigned_personnel:
        current[ap.role_code] = current.get(ap.role_code, 0) + 1
    return {
        "shift_id": shift.id,
        "status": shift.status,
        "current_worker_counts": current,
        "worker_requirements": shift.worker_requirements(),
        "assigned_personnel_count": len(shift.assigned_personnel),
        "time_entries_count": sum(len(ap.time_entries) for ap in shift.assigned_personnel),
    }


def sync_import(shift: Shift, payload: SyncImportIn) -> dict:
    require_open_timesheet(shift, "importing")
    existing = len(shift.assigned_personnel)
    if existing and not payload.overwrite_existing:
        raise Conflict(
            "Shift already has assigned personnel. Set overwrite_existing to true to replace existing data.",
            details={"existing_personnel_count": existing},
        )

    user_ids = sorted({w.user_id for w in payload.workers})
    found = {uid for (uid,) in db.session.query(User.id).filter(User.id.in_(user_ids)).all()}
    missing = [uid for uid in user_ids if uid not in found]
    if missing:
        raise BadRequest("Some users not found", code="USERS_NOT_FOUND", details={"missing_user_ids": missing})

    groups = _group(payload.workers)
    checked = {key: _check_group(key[0], key[1], rows) for key, rows in groups.items()}

    for ap in list(shift.assigned_personnel):
        shift.assigned_personnel.remove(ap)
    db.session.flush()

    created: List[AssignedPersonnel] = []
    entries_created = 0
    counts: Dict[str, int] = {code: 0 for code in RoleCode.ORDER}
    for (user_id, role_code), rows in checked.items():
        ap = AssignedPersonnel(user_id=user_id, role_code=role_code)
        shift.assigned_personnel.append(ap)
        used = {r.entry_number for r in rows if r.entry_number is not None}
        free = (n for n in range(1, MAX_TIME_ENTRIES + 1) if n not in used)
        for r in rows:
            ap.time_entries.append(TimeEntry(
                entry_number=r.entry_number or next(free),
                clock_in=r.clock_in_time,
                clock_out=r.clock_out_time,
                is_active=r.clock_out_time is None,
            ))
            entries_created += 1
        ap.status = _STATUS_FOR_STATE[worker_state(ap)]
        counts[role_code] += 1
        created.append(ap)

    warnings = []
    if not counts[RoleCode.CC]:
        logger.warning("Shift %s imported without a crew chief", shift.id)
        warnings.append("No crew chief in imported data; one crew chief is still required")
    counts[RoleCode.CC] = 1
    shift.set_worker_requirements(counts)

    if shift.status == ShiftStatus.PENDING:
        shift.status = ShiftStatus.ACTIVE

    try:
        db.session.flush()
    except IntegrityError as exc:
        db.session.rollback()
        raise Conflict("Shift was changed by another request during import") from exc

    logger.info(
        "Shift %s sync-import: %d workers, %d time entries", shift.id, len(created), entries_created
    )
    return {
        "shift_id": shift.id,
        "workers_processed": len(payload.workers),
        "assigned_personnel_created": len(created),
        "time_entries_created": entries_created,
        "worker_requirements": shift.worker_requirements(),
        "shift_status": shift.status,
        "warnings": warnings,
    }
