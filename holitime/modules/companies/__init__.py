# -*- coding: utf-8 -*-
from __future__ import annotations

from flask import Blueprint, request
from flask_login import current_user
from sqlalchemy.exc import IntegrityError

from ...api import ok, parse_body
from ...errors import Conflict, Forbidden, NotFound
from ...extensions import db
from ...models import Company, UserRole
from ...schemas import CompanyIn, CompanyUpdate
from ...security import api_login_required, roles_required

bp = Blueprint("companies", __name__, url_prefix="/api/companies")


def _get(company_id: int) -> Company:
    c = db.session.get(Company, company_id)
    if c is None:
        raise NotFound("Company not found")
    return c


def _commit_unique(name: str):
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise Conflict("A company with this name already exists", details={"name": name})


@bp.route("", methods=["GET"])
@api_login_required
def list_companies():
    q = Company.query
    if current_user.role == UserRole.COMPANY_USER:
        q = q.filter(Company.id == current_user.company_id)
    elif current_user.role not in UserRole.MANAGERS:
        raise Forbidden("Insufficient permissions")
    search = (request.args.get("search") or "").strip()
    if search:
        q = q.filter(Company.name.ilike(f"%{search}%"))
    return ok([c.to_dict() for c in q.order_by(Company.name).all()])


@bp.route("", methods=["POST"])
@roles_required(UserRole.ADMIN)
def create_company():
    data = parse_body(CompanyIn)
    c = Company(**data.model_dump())
    db.session.add(c)
    _commit_unique(data.name)
    return ok(c.to_dict(), status=201, message="Company created")


@bp.route("/<int:company_id>", methods=["GET"])
@api_login_required
def get_company(company_id: int):
    c = _get(company_id)
    if current_user.role not in UserRole.MANAGERS and current_user.company_id != c.id:
        raise Forbidden("You do not have access to this company")
    data = c.to_dict()
    data["jobs"] = [j.to_dict() for j in c.jobs]
    return ok(data)


@bp.route("/<int:company_id>", methods=["PUT"])
@roles_required(UserRole.ADMIN)
def update_company(company_id: int):
    c = _get(company_id)
    data = parse_body(CompanyUpdate)
    for field, value in data.model_dump(exclude_unset=True).items():
        setattr(c, field, value)
    _commit_unique(c.name)
    return ok(c.to_dict(), message="Company updated")


@bp.route("/<int:company_id>", methods=["DELETE"])
@roles_required(UserRole.ADMIN)
def delete_company(company_id: int):
    c = _get(company_id)
    if c.jobs:
        raise Conflict("Company still has jobs", details={"jobs": len(c.jobs)})
    for u in c.users:
        u.company_id = None
    db.session.delete(c)
    db.session.commit()
    return ok({"id": company_id}, message="Company deleted")
