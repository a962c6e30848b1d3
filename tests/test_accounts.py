"""Login, user administration, companies, jobs, notifications and dashboard."""

import pytest

from conftest import PASSWORD, login
from holitime.extensions import db
from holitime.models import User, notify

pytestmark = pytest.mark.api


# ---------- auth ----------

def test_login_and_me(client, world):
    resp = login(client, world.emails["client"])
    assert resp.get_json()["data"]["role"] == "CompanyUser"
    me = client.get("/api/auth/me").get_json()["data"]
    assert me["email"] == world.emails["client"]
    assert me["company_name"] == "Acme Productions"

    assert client.post("/logout").status_code == 200
    assert client.get("/api/auth/me").status_code == 401


def test_login_failures(app, client, world):
    resp = client.post("/login", json={"email": world.emails["w1"], "password": "wrong"})
    assert resp.status_code == 401
    assert resp.get_json()["error"]["code"] == "INVALID_CREDENTIALS"
    assert client.post("/login", json={"email": "x@y.z"}).status_code == 400

    with app.app_context():
        db.session.get(User, world.w1).is_active = False
        db.session.commit()
    resp = client.post("/login", json={"email": world.emails["w1"].upper(), "password": PASSWORD})
    assert resp.get_json()["error"]["code"] == "ACCOUNT_DISABLED"


def test_index(client):
    body = client.get("/").get_json()
    assert body["success"] is True
    assert body["data"] == {"service": "holitime", "authenticated": False}


def test_unknown_route_uses_envelope(client):
    resp = client.get("/api/nope")
    assert resp.status_code == 404
    assert resp.get_json()["success"] is False
    assert resp.get_json()["error"]["code"] == "NOT_FOUND"


# ---------- admin users ----------

def test_admin_user_lifecycle(client, as_user, world):
    admin = as_user("admin")
    resp = admin.post("/api/admin/users", json={
        "name": "Nina New", "email": "Nina@Example.test", "password": "hunter22",
        "role": "CrewChief", "crew_chief_eligible": True,
    })
    assert resp.status_code == 201
    user = resp.get_json()["data"]
    assert user["email"] == "nina@example.test"

    dup = admin.post("/api/admin/users", json={"name": "N", "email": "nina@example.test", "password": "hunter22"})
    assert dup.status_code == 409

    resp = admin.get("/api/admin/users?role=CrewChief&search=nina")
    assert [u["id"] for u in resp.get_json()["data"]] == [user["id"]]

    resp = admin.put(f"/api/admin/users/{user['id']}", json={"location": "Portland"})
    assert resp.get_json()["data"]["location"] == "Portland"

    assert admin.post(f"/api/admin/users/{user['id']}/reset-password", json={"password": "newpass1"}).status_code == 200
    assert admin.delete(f"/api/admin/users/{user['id']}").get_json()["data"]["is_active"] is False
    assert admin.delete(f"/api/admin/users/{world.admin}").status_code == 400

    client.post("/logout")
    resp = client.post("/login", json={"email": "nina@example.test", "password": "newpass1"})
    assert resp.get_json()["error"]["code"] == "ACCOUNT_DISABLED"


def test_admin_user_validation(as_user):
    admin = as_user("admin")
    resp = admin.post("/api/admin/users", json={"name": "X", "email": "not-an-email", "password": "hunter22"})
    assert resp.status_code == 400
    assert resp.get_json()["error"]["details"][0]["field"] == "email"
    assert admin.post("/api/admin/users", json={"name": "X", "email": "x@y.z", "password": "1"}).status_code == 400


def test_user_admin_is_admin_only(as_user):
    assert as_user("staff").get("/api/admin/users").status_code == 403


# ---------- companies / jobs ----------

def test_companies(as_user, world):
    admin = as_user("admin")
    resp = admin.post("/api/companies", json={"name": "New Co", "phone": "555-0300"})
    assert resp.status_code == 201
    company_id = resp.get_json()["data"]["id"]
    assert admin.post("/api/companies", json={"name": "New Co"}).status_code == 409
    assert admin.delete(f"/api/companies/{world.acme}").status_code == 409
    assert admin.delete(f"/api/companies/{company_id}").status_code == 200

    client = as_user("client")
    assert [c["id"] for c in client.get("/api/companies").get_json()["data"]] == [world.acme]
    assert client.get(f"/api/companies/{world.other}").status_code == 403
    assert as_user("w1").get("/api/companies").status_code == 403


def test_jobs(as_user, world):
    staff = as_user("staff")
    resp = staff.post("/api/jobs", json={
        "name": "Fall Tour", "company_id": world.acme, "start_date": "2030-09-01", "end_date": "2030-08-01",
    })
    assert resp.status_code == 400
    resp = staff.post("/api/jobs", json={"name": "Fall Tour", "company_id": world.acme})
    assert resp.status_code == 201
    job_id = resp.get_json()["data"]["id"]
    assert staff.post("/api/jobs", json={"name": "Fall Tour", "company_id": world.acme}).status_code == 409
    assert staff.put(f"/api/jobs/{job_id}", json={"status": "OnHold"}).get_json()["data"]["status"] == "OnHold"

    client = as_user("client")
    names = {j["name"] for j in client.get("/api/jobs").get_json()["data"]}
    assert names == {"Spring Tour", "Fall Tour"}
    assert client.get(f"/api/jobs/{world.other_job}").status_code == 403
    shifts = client.get(f"/api/jobs/{world.job}/shifts").get_json()["data"]
    assert [s["id"] for s in shifts] == [world.shift]

    assert as_user("admin").delete(f"/api/jobs/{world.job}").status_code == 409


# ---------- notifications / dashboard ----------

def test_notifications(app, as_user, world):
    with app.app_context():
        notify(world.w1, "TEST", "One", "first")
        notify(world.w1, "TEST", "Two", "second")
        notify(world.w2, "TEST", "Else", "not yours")
        db.session.commit()

    client = as_user("w1")
    body = client.get("/api/notifications").get_json()
    assert body["meta"]["unread"] == 2
    first_id = body["data"][0]["id"]
    assert client.post(f"/api/notifications/{first_id}/read").get_json()["data"]["is_read"] is True
    assert client.get("/api/notifications?unread=1").get_json()["meta"]["unread"] == 1
    assert client.post("/api/notifications/read-all").get_json()["data"]["updated"] == 1

    other = as_user("w2").get("/api/notifications").get_json()["data"]
    assert as_user("w1").post(f"/api/notifications/{other[0]['id']}/read").status_code == 404


@pytest.mark.parametrize("who,key", [
    ("admin", "workers_clocked_in"),
    ("client", "awaiting_my_approval"),
    ("w1", "my_assignments"),
])
def test_dashboard_per_role(as_user, world, who, key):
    body = as_user(who).get("/api/dashboard").get_json()
    assert body["success"] is True
    assert key in body["data"]
    assert "timesheets" in body["data"]
