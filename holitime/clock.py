# -*- coding: utf-8 -*-
"""
Worker clock state machine.

Every clock action on an AssignedPersonnel goes through this module. The
worker's state is derived from the assignment status and its time entries
(entries win for clocked in / clocked out), and ``TRANSITIONS`` is the only
place that says which action is legal from which state.

States::

    not_assigned   slot without a user, nothing allowed
    not_started    no entries yet
    clocked_in     one open entry
    clocked_out    entries exist, none open (ClockedOut or OnBreak)
    shift_ended    ShiftEnded, terminal
    no_show        NoShow, terminal

Callers own the transaction: functions here mutate and flush, the route
commits.
"""
from __future__ import annotations

import logging
from datetime import datetime
from typing import List, Optional

from flask import current_app
from sqlalchemy.exc import IntegrityError

from .errors import ClockConflict, ClockError
from .extensions import db
from .models import AssignedPersonnel, Shift, TimeEntry, WorkerStatus

logger = logging.getLogger(__name__)

MAX_TIME_ENTRIES = 3


class WorkerState:
    NOT_ASSIGNED = "not_assigned"
    NOT_STARTED = "not_started"
    CLOCKED_IN = "clocked_in"
    CLOCKED_OUT = "clocked_out"
    SHIFT_ENDED = "shift_ended"
    NO_SHOW = "no_show"


class Action:
    CLOCK_IN = "clock_in"
    CLOCK_OUT = "clock_out"
    START_BREAK = "start_break"
    END_SHIFT = "end_shift"
    NO_SHOW = "no_show"


S, A = WorkerState, Action

# (state, action) -> (next state, status written)
TRANSITIONS = {
    (S.NOT_STARTED, A.CLOCK_IN): (S.CLOCKED_IN, WorkerStatus.CLOCKED_IN),
    (S.NOT_STARTED, A.END_SHIFT): (S.SHIFT_ENDED, WorkerStatus.SHIFT_ENDED),
    (S.NOT_STARTED, A.NO_SHOW): (S.NO_SHOW, WorkerStatus.NO_SHOW),
    (S.CLOCKED_IN, A.CLOCK_OUT): (S.CLOCKED_OUT, WorkerStatus.CLOCKED_OUT),
    (S.CLOCKED_IN, A.START_BREAK): (S.CLOCKED_OUT, WorkerStatus.ON_BREAK),
    (S.CLOCKED_IN, A.END_SHIFT): (S.SHIFT_ENDED, WorkerStatus.SHIFT_ENDED),
    (S.CLOCKED_OUT, A.CLOCK_IN): (S.CLOCKED_IN, WorkerStatus.CLOCKED_IN),
    (S.CLOCKED_OUT, A.END_SHIFT): (S.SHIFT_ENDED, WorkerStatus.SHIFT_ENDED),
}

_REFUSALS = {
    S.NOT_ASSIGNED: "No worker is assigned to this slot",
    S.NO_SHOW: "Worker was marked as no-show",
    S.SHIFT_ENDED: "Worker's shift has already ended",
    S.CLOCKED_IN: "Worker is already clocked in",
    S.NOT_STARTED: "Worker has not clocked in",
    S.CLOCKED_OUT: "Worker is not clocked in",
}


def worker_state(ap: AssignedPersonnel) -> str:
    if ap.user_id is None:
        return S.NOT_ASSIGNED
    if ap.status == WorkerStatus.NO_SHOW:
        return S.NO_SHOW
    if ap.status == WorkerStatus.SHIFT_ENDED:
        return S.SHIFT_ENDED
    if ap.active_entry is not None:
        return S.CLOCKED_IN
    if ap.time_entries:
        return S.CLOCKED_OUT
    return S.NOT_STARTED


def allowed_actions(ap: AssignedPersonnel) -> List[str]:
    state = worker_state(ap)
    actions = [action for (src, action) in TRANSITIONS if src == state]
    if A.CLOCK_IN in actions and len(ap.time_entries) >= MAX_TIME_ENTRIES:
        actions.remove(A.CLOCK_IN)
    return actions


def describe(ap: AssignedPersonnel) -> dict:
    data = ap.to_dict()
    data["state"] = worker_state(ap)
    data["allowed_actions"] = allowed_actions(ap)
    return data


def _transition(ap: AssignedPersonnel, action: str) -> str:
    state = worker_state(ap)
    target = TRANSITIONS.get((state, action))
    if target is None:
        if action == A.NO_SHOW and state in (S.CLOCKED_IN, S.CLOCKED_OUT):
            message = "Worker already has time entries"
        else:
            message = _REFUSALS.get(state, "Action not allowed")
        raise ClockError(message, details={"state": state, "action": action, "worker_id": ap.id})
    _, status = target
    return status


def _flush() -> None:
    try:
        db.session.flush()
    except IntegrityError as exc:
        db.session.rollback()
        logger.warning("Clock conflict: %s", exc.orig)
        raise ClockConflict("Worker was updated by another request, reload and retry") from exc


def _min_period() -> int:
    return int(current_app.config.get("MIN_WORK_PERIOD_SECONDS", 60))


def _close_active(ap: AssignedPersonnel, now: datetime, enforce_minimum: bool) -> Optional[TimeEntry]:
    entry = ap.active_entry
    if entry is None:
        return None
    if enforce_minimum:
        if now <= entry.clock_in:
            raise ClockError("Clock-out time must be after clock-in time", details={"worker_id": ap.id})
        if (now - entry.clock_in).total_seconds() < _min_period():
            raise ClockError(
                "Time entry is shorter than the minimum work period",
                details={"worker_id": ap.id, "minimum_seconds": _min_period()},
            )
    entry.clock_out = max(now, entry.clock_in)
    entry.is_active = False
    return entry


# --- single worker ---

def clock_in(ap: AssignedPersonnel, now: datetime | None = None, entry_number: int | None = None) -> TimeEntry:
    status = _transition(ap, A.CLOCK_IN)
    if len(ap.time_entries) >= MAX_TIME_ENTRIES:
        raise ClockError(
            f"Maximum of {MAX_TIME_ENTRIES} time entries per shift reached",
            details={"worker_id": ap.id},
        )
    used = {e.entry_number for e in ap.time_entries}
    if entry_number is None:
        entry_number = min(n for n in range(1, MAX_TIME_ENTRIES + 1) if n not in used)
    elif not 1 <= entry_number <= MAX_TIME_ENTRIES:
        raise ClockError(f"entry_number must be between 1 and {MAX_TIME_ENTRIES}")
    elif entry_number in used:
        raise ClockError(f"Time entry {entry_number} already exists", details={"worker_id": ap.id})

    entry = TimeEntry(clock_in=now or datetime.utcnow(), entry_number=entry_number, is_active=True)
    ap.time_entries.append(entry)
    ap.status = status
    _flush()
    logger.info("Worker %s clocked in (assignment=%s entry=%s)", ap.user_id, ap.id, entry_number)
    return entry


def clock_out(ap: AssignedPersonnel, now: datetime | None = None) -> TimeEntry:
    status = _transition(ap, A.CLOCK_OUT)
    entry = _close_active(ap, now or datetime.utcnow(), enforce_minimum=True)
    ap.status = status
    _flush()
    logger.info("Worker %s clocked out (assignment=%s entry=%s)", ap.user_id, ap.id, entry.entry_number)
    return entry


def start_break(ap: AssignedPersonnel, now: datetime | None = None) -> TimeEntry:
    status = _transition(ap, A.START_BREAK)
    entry = _close_active(ap, now or datetime.utcnow(), enforce_minimum=True)
    ap.status = status
    _flush()
    logger.info("Worker %s on break (assignment=%s)", ap.user_id, ap.id)
    return entry


def end_shift(ap: AssignedPersonnel, now: datetime | None = None) -> Optional[TimeEntry]:
    status = _transition(ap, A.END_SHIFT)
    entry = _close_active(ap, now or datetime.utcnow(), enforce_minimum=False)
    ap.status = status
    _flush()
    logger.info("Worker %s shift ended (assignment=%s)", ap.user_id, ap.id)
    return entry


def mark_no_show(ap: AssignedPersonnel) -> None:
    ap.status = _transition(ap, A.NO_SHOW)
    _flush()
    logger.info("Worker %s marked no-show (assignment=%s)", ap.user_id, ap.id)


# --- whole shift ---

def start_break_all(shift: Shift, now: datetime | None = None) -> List[AssignedPersonnel]:
    """Send every clocked-in worker on break. Entries are closed as they stand."""
    now = now or datetime.utcnow()
    workers = [ap for ap in shift.assigned_personnel if worker_state(ap) == S.CLOCKED_IN]
    if not workers:
        raise ClockError("No workers are currently clocked in", details={"shift_id": shift.id})
    for ap in workers:
        ap.status = _transition(ap, A.START_BREAK)
        _close_active(ap, now, enforce_minimum=False)
    _flush()
    logger.info("Master break on shift %s: %d workers", shift.id, len(workers))
    return workers


def end_shift_all(shift: Shift, now: datetime | None = None) -> List[AssignedPersonnel]:
    now = now or datetime.utcnow()
    workers = [
        ap for ap in shift.assigned_personnel
        if ap.time_entries and worker_state(ap) in (S.CLOCKED_IN, S.CLOCKED_OUT)
    ]
    if not workers:
        raise ClockError("No workers to end shift for", details={"shift_id": shift.id})
    for ap in workers:
        ap.status = _transition(ap, A.END_SHIFT)
        _close_active(ap, now, enforce_minimum=False)
    _flush()
    logger.info("Master end shift on shift %s: %d workers", shift.id, len(workers))
    return workers


def finalization_blockers(shift: Shift) -> List[AssignedPersonnel]:
    return [
        ap for ap in shift.assigned_personnel
        if ap.user_id is not None and ap.status not in WorkerStatus.DONE
    ]


def can_finalize(shift: Shift) -> bool:
    return not finalization_blockers(shift)
