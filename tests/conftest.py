"""Pytest configuration and shared fixtures."""

import base64
from datetime import date, datetime, time, timedelta
from io import BytesIO
from types import SimpleNamespace

import pytest
from PIL import Image

from holitime import clock, create_app, timesheets
from holitime.cache import clear_cache
from holitime.config import TestConfig
from holitime.extensions import db
from holitime.models import (
    AssignedPersonnel,
    Company,
    Job,
    JobStatus,
    RoleCode,
    Shift,
    ShiftStatus,
    User,
    UserRole,
)

PASSWORD = "secret123"
SHIFT_DAY = date(2030, 5, 14)


def pytest_configure(config):
    config.addinivalue_line("markers", "api: tests that go through the HTTP client")


@pytest.fixture
def app(tmp_path):
    overrides = {k: getattr(TestConfig, k) for k in dir(TestConfig) if k.isupper()}
    overrides.update(
        EXPORT_DIR=str(tmp_path / "exports"),
        TIMESHEET_TEMPLATE_PATH=str(tmp_path / "missing-template.xlsx"),
    )
    app = create_app(overrides)
    with app.app_context():
        db.create_all()
    clear_cache()
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()
    clear_cache()


@pytest.fixture
def ctx(app):
    """App context for tests that work on models directly."""
    with app.app_context():
        yield
        db.session.rollback()


@pytest.fixture
def client(app):
    return app.test_client()


# ---------- factories (call inside an app context) ----------

def make_user(name, role=UserRole.EMPLOYEE, company=None, **kw):
    email = kw.pop("email", name.lower().replace(" ", ".") + "@example.test")
    u = User(name=name, email=email, role=role, company_id=company.id if company else None, **kw)
    u.set_password(PASSWORD)
    db.session.add(u)
    db.session.flush()
    return u


def make_shift(job, day=SHIFT_DAY, start=time(8, 0), end=time(16, 0), **kw):
    kw.setdefault("status", ShiftStatus.ACTIVE)
    shift = Shift(
        job_id=job.id,
        date=day,
        start_time=datetime.combine(day, start),
        end_time=datetime.combine(day, end),
        **kw,
    )
    db.session.add(shift)
    db.session.flush()
    return shift


def assign(shift, user, role_code=RoleCode.SH):
    ap = AssignedPersonnel(user_id=user.id if user else None, role_code=role_code)
    shift.assigned_personnel.append(ap)
    db.session.flush()
    return ap


def build_world():
    """One company with a job and a staffed shift, plus one user per role."""
    acme = Company(name="Acme Productions", address="100 Main St", phone="555-0100", email="ops@acme.test")
    other = Company(name="Other Co")
    db.session.add_all([acme, other])
    db.session.flush()
    job = Job(name="Spring Tour", company_id=acme.id, status=JobStatus.ACTIVE, location="City Arena")
    other_job = Job(name="Other Gig", company_id=other.id, status=JobStatus.ACTIVE)
    db.session.add_all([job, other_job])
    db.session.flush()

    admin = make_user("Ada Admin", UserRole.ADMIN)
    staff = make_user("Sam Staff", UserRole.STAFF)
    chief = make_user("Chris Chief", UserRole.CREW_CHIEF, crew_chief_eligible=True)
    outsider_chief = make_user("Olga Outsider", UserRole.CREW_CHIEF)
    client_user = make_user("Cora Client", UserRole.COMPANY_USER, company=acme)
    other_client = make_user("Otto Other", UserRole.COMPANY_USER, company=other)
    w1 = make_user("Wes Worker", UserRole.EMPLOYEE)
    w2 = make_user("Fay Forklift", UserRole.EMPLOYEE, fork_operator_eligible=True)

    shift = make_shift(job, required_crew_chiefs=1, required_stagehands=1, required_fork_operators=1)
    other_shift = make_shift(other_job)
    cc_ap = assign(shift, chief, RoleCode.CC)
    ap1 = assign(shift, w1, RoleCode.SH)
    ap2 = assign(shift, w2, RoleCode.FO)
    db.session.commit()

    return SimpleNamespace(
        acme=acme.id, other=other.id, job=job.id, other_job=other_job.id,
        admin=admin.id, staff=staff.id, chief=chief.id, outsider_chief=outsider_chief.id,
        client_user=client_user.id, other_client=other_client.id, w1=w1.id, w2=w2.id,
        shift=shift.id, other_shift=other_shift.id,
        cc_ap=cc_ap.id, ap1=ap1.id, ap2=ap2.id,
        emails={
            "admin": admin.email, "staff": staff.email, "chief": chief.email,
            "outsider_chief": outsider_chief.email, "client": client_user.email,
            "other_client": other_client.email, "w1": w1.email, "w2": w2.email,
        },
    )


@pytest.fixture
def world(app):
    with app.app_context():
        return build_world()


def login(client, email, password=PASSWORD):
    resp = client.post("/login", json={"email": email, "password": password})
    assert resp.status_code == 200, resp.get_json()
    return resp


@pytest.fixture
def as_user(client, world):
    """``as_user("admin")`` logs the client in as that seeded user and returns it."""
    def _as(who):
        client.post("/logout")
        login(client, world.emails[who])
        return client
    return _as


def day_at(hour, minute=0, day=SHIFT_DAY):
    return datetime.combine(day, time(hour, minute))


def hours(n):
    return timedelta(hours=n)


def signature_data_url():
    img = Image.new("RGBA", (40, 20), (0, 0, 0, 255))
    out = BytesIO()
    img.save(out, format="PNG")
    return "data:image/png;base64," + base64.b64encode(out.getvalue()).decode("ascii")


def finalize_shift(world):
    """Wes works 08:00-12:00 and 13:00-19:00, Fay is a no-show, the chief ends without clocking."""
    ap1 = db.session.get(AssignedPersonnel, world.ap1)
    clock.clock_in(ap1, now=day_at(8))
    clock.clock_out(ap1, now=day_at(12))
    clock.clock_in(ap1, now=day_at(13))
    clock.end_shift(ap1, now=day_at(19))
    clock.mark_no_show(db.session.get(AssignedPersonnel, world.ap2))
    clock.end_shift(db.session.get(AssignedPersonnel, world.cc_ap), now=day_at(19))
    shift = db.session.get(Shift, world.shift)
    ts = timesheets.finalize(shift, db.session.get(User, world.chief), now=day_at(19, 30))
    db.session.commit()
    timesheets.sync_files(ts)
    db.session.commit()
    return ts.id


@pytest.fixture
def ts_id(app, world):
    """A finalized timesheet awaiting company approval."""
    with app.app_context():
        return finalize_shift(world)
