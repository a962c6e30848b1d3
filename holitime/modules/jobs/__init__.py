# -*- coding: utf-8 -*-
from __future__ import annotations

from flask import Blueprint, request
from flask_login import current_user
from sqlalchemy.exc import IntegrityError

from ...acl import scope_jobs_query, scope_shifts_query
from ...api import ok, parse_body
from ...errors import BadRequest, Conflict, Forbidden, NotFound
from ...extensions import db
from ...models import Company, Job, JobStatus, Shift, UserRole
from ...queries import ordered
from ...schemas import JobIn, JobUpdate
from ...security import api_login_required, roles_required

bp = Blueprint("jobs", __name__, url_prefix="/api/jobs")


def _get(job_id: int) -> Job:
    job = db.session.get(Job, job_id)
    if job is None:
        raise NotFound("Job not found")
    return job


def _visible(job: Job) -> Job:
    if scope_jobs_query(Job.query.filter(Job.id == job.id), current_user).first() is None:
        raise Forbidden("You do not have access to this job")
    return job


def _check_company(company_id: int) -> None:
    if db.session.get(Company, company_id) is None:
        raise BadRequest("Company not found", details={"company_id": company_id})


def _commit(job: Job) -> None:
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise Conflict("A job with this name already exists for the company", details={"name": job.name})


@bp.route("", methods=["GET"])
@api_login_required
def list_jobs():
    q = scope_jobs_query(Job.query, current_user)
    status = request.args.get("status")
    if status and status.lower() != "all":
        if status not in JobStatus.ALL:
            raise BadRequest(f"Unknown job status '{status}'", code="VALIDATION_ERROR")
        q = q.filter(Job.status == status)
    company_id = request.args.get("company_id", type=int)
    if company_id:
        q = q.filter(Job.company_id == company_id)
    search = (request.args.get("search") or "").strip()
    if search:
        q = q.filter(Job.name.ilike(f"%{search}%"))
    jobs = q.order_by(Job.start_date.desc(), Job.name).all()
    return ok([j.to_dict() for j in jobs])


@bp.route("", methods=["POST"])
@roles_required(UserRole.ADMIN, UserRole.STAFF)
def create_job():
    data = parse_body(JobIn)
    _check_company(data.company_id)
    job = Job(**data.model_dump())
    db.session.add(job)
    _commit(job)
    return ok(job.to_dict(), status=201, message="Job created")


@bp.route("/<int:job_id>", methods=["GET"])
@api_login_required
def get_job(job_id: int):
    job = _visible(_get(job_id))
    data = job.to_dict()
    data["shift_count"] = len(job.shifts)
    return ok(data)


@bp.route("/<int:job_id>", methods=["PUT"])
@roles_required(UserRole.ADMIN, UserRole.STAFF)
def update_job(job_id: int):
    job = _get(job_id)
    data = parse_body(JobUpdate)
    changes = data.model_dump(exclude_unset=True)
    if changes.get("company_id") is not None:
        _check_company(changes["company_id"])
    for field, value in changes.items():
        if value is None and field in ("name", "company_id", "status"):
            continue
        setattr(job, field, value)
    if job.start_date and job.end_date and job.end_date < job.start_date:
        raise BadRequest("end_date must not be before start_date", code="VALIDATION_ERROR")
    _commit(job)
    return ok(job.to_dict(), message="Job updated")


@bp.route("/<int:job_id>", methods=["DELETE"])
@roles_required(UserRole.ADMIN)
def delete_job(job_id: int):
    job = _get(job_id)
    if job.shifts:
        raise Conflict("Job still has shifts", details={"shifts": len(job.shifts)})
    db.session.delete(job)
    db.session.commit()
    return ok({"id": job_id}, message="Job deleted")


@bp.route("/<int:job_id>/shifts", methods=["GET"])
@api_login_required
def job_shifts(job_id: int):
    job = _visible(_get(job_id))
    q = scope_shifts_query(Shift.query.filter(Shift.job_id == job.id), current_user)
    shifts = ordered(q, request.args.get("sort_order", "asc")).all()
    return ok([s.to_dict() for s in shifts])
