# -*- coding: utf-8 -*-
"""
Full reset of the SQLite database plus demo data, with verbose logs.

Run from the project root:
  python scripts/recreate_db.py
"""

from __future__ import annotations
import sys, traceback
from datetime import date, datetime, time, timedelta
from pathlib import Path
from typing import Optional
from sqlalchemy import text

# --- project path ---
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

print(f"[recreate] ROOT={ROOT}")
if not (ROOT / "holitime" / "__init__.py").exists():
    raise SystemExit("[recreate] error: holitime/__init__.py not found next to scripts/")

print("[recreate] importing app…")
from holitime import create_app  # type: ignore
from holitime.extensions import db  # type: ignore
from holitime.models import (  # type: ignore
    AssignedPersonnel,
    Company,
    CrewChiefPermission,
    Job,
    JobStatus,
    PermissionType,
    RoleCode,
    Shift,
    ShiftStatus,
    User,
    UserRole,
)


def _db_path_from_uri(uri: str) -> Optional[Path]:
    if uri.startswith("sqlite:///"):
        return Path(uri.replace("sqlite:///", "")).resolve()
    return None


def _cnt(table: str) -> int:
    return int(db.session.execute(text(f'SELECT COUNT(*) FROM "{table}"')).scalar() or 0)


def _user(name: str, email: str, role: str, password: str, **kw) -> User:
    u = User(name=name, email=email, role=role, **kw)
    u.set_password(password)
    return u


def main() -> int:
    print("[recreate] create_app()…")
    app = create_app()
    with app.app_context():
        uri = app.config.get("SQLALCHEMY_DATABASE_URI", "")
        print(f"[recreate] SQLALCHEMY_DATABASE_URI = {uri}")

        db_path = _db_path_from_uri(uri)
        if db_path:
            db_path.parent.mkdir(parents=True, exist_ok=True)
            if db_path.exists():
                print(f"[recreate] removing database file: {db_path}")
                db_path.unlink()
            else:
                print(f"[recreate] database file does not exist yet: {db_path}")
        else:
            print("[recreate] not sqlite, dropping all tables instead")
            db.drop_all()

        print("[recreate] creating tables…")
        db.create_all()

        # --- companies / jobs ---
        print("[recreate] adding companies and jobs…")
        acme = Company(name="Acme Productions", address="100 Main St", phone="555-0100", email="ops@acme.test")
        arena = Company(name="City Arena", address="1 Arena Way", phone="555-0200")
        db.session.add_all([acme, arena])
        db.session.flush()
        tour = Job(name="Spring Tour Load-in", company_id=acme.id, status=JobStatus.ACTIVE,
                   start_date=date.today(), end_date=date.today() + timedelta(days=14), location="City Arena")
        expo = Job(name="Trade Expo", company_id=arena.id, status=JobStatus.PENDING, location="Hall B")
        db.session.add_all([tour, expo])
        db.session.commit()
        print(f"[recreate] companies={_cnt('companies')} jobs={_cnt('jobs')}")

        # --- users ---
        print("[recreate] creating users…")
        admin = _user("Admin User", "admin@holitime.test", UserRole.ADMIN, "admin123")
        staff = _user("Sam Staff", "staff@holitime.test", UserRole.STAFF, "staff123")
        chief = _user("Chris Chief", "chief@holitime.test", UserRole.CREW_CHIEF, "chief123", crew_chief_eligible=True)
        client = _user("Cora Client", "client@acme.test", UserRole.COMPANY_USER, "client123", company_id=acme.id)
        workers = [
            _user(f"Worker {n}", f"worker{n}@holitime.test", UserRole.EMPLOYEE, "worker123",
                  fork_operator_eligible=(n % 2 == 0))
            for n in range(1, 5)
        ]
        db.session.add_all([admin, staff, chief, client, *workers])
        db.session.commit()
        print(f"[recreate] users={_cnt('users')}")

        # --- shifts ---
        print("[recreate] creating shifts…")
        for offset in range(3):
            day = date.today() + timedelta(days=offset)
            shift = Shift(
                job_id=tour.id,
                date=day,
                start_time=datetime.combine(day, time(8, 0)),
                end_time=datetime.combine(day, time(16, 0)),
                status=ShiftStatus.ACTIVE if offset == 0 else ShiftStatus.PENDING,
                location="City Arena",
                required_crew_chiefs=1,
                required_stagehands=2,
                required_fork_operators=1,
            )
            shift.assigned_personnel.append(AssignedPersonnel(user_id=chief.id, role_code=RoleCode.CC))
            shift.assigned_personnel.append(AssignedPersonnel(user_id=workers[0].id, role_code=RoleCode.SH))
            shift.assigned_personnel.append(AssignedPersonnel(user_id=workers[1].id, role_code=RoleCode.FO))
            shift.assigned_personnel.append(AssignedPersonnel(user_id=None, role_code=RoleCode.SH))
            db.session.add(shift)
        db.session.add(CrewChiefPermission(
            user_id=chief.id, permission_type=PermissionType.JOB, target_id=tour.id, granted_by=admin.id
        ))
        db.session.commit()
        print(f"[recreate] shifts={_cnt('shifts')} assignments={_cnt('assigned_personnel')}")

        print("\n[recreate] done.")
        print("Logins:")
        print("  admin@holitime.test  / admin123")
        print("  staff@holitime.test  / staff123")
        print("  chief@holitime.test  / chief123")
        print("  client@acme.test     / client123")
        if db_path:
            print(f"\nDatabase file: {db_path}")
        return 0


if __name__ == "__main__":
    try:
        sys.exit(main())
    except Exception:
        print("\n[recreate] ERROR:")
        traceback.print_exc()
        sys.exit(1)
