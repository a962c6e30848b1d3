"""Response cache for shift lists and dashboards."""

from datetime import datetime, timedelta

from holitime import cache


def test_make_key_decodes_query_string():
    assert cache.make_key("shifts", 3, b"status=Active") == "shifts:3:status=Active"
    assert cache.make_key("dashboard", 3) == "dashboard:3:"


def test_set_get_and_expiry(app):
    with app.app_context():
        assert cache.set_cached("k", {"a": 1}) == {"a": 1}
        assert cache.get_cached("k") == {"a": 1}
        cache._CACHE["k"]["ts"] = datetime.utcnow() - timedelta(seconds=61)
        assert cache.cache_stats()["stale"] == 1
        assert cache.get_cached("k") is None
        assert "k" not in cache._CACHE


def test_clear_returns_count(app):
    with app.app_context():
        cache.set_cached("a", 1)
        cache.set_cached("b", 2)
        assert cache.clear_cache() == 2
        assert cache.cache_stats()["entries"] == 0


def test_shift_list_is_cached_until_a_write(as_user, world):
    client = as_user("admin")
    first = client.get("/api/shifts").get_json()
    assert first["meta"]["cached"] is False
    second = client.get("/api/shifts").get_json()
    assert second["meta"]["cached"] is True
    assert second["data"] == first["data"]

    client.put(f"/api/shifts/{world.shift}", json={"location": "Hall C"})
    third = client.get("/api/shifts").get_json()
    assert third["meta"]["cached"] is False
    assert {s["location"] for s in third["data"]} >= {"Hall C"}


def test_cache_is_per_user(as_user, world):
    as_user("admin").get("/api/shifts")
    resp = as_user("client").get("/api/shifts").get_json()
    assert resp["meta"]["cached"] is False
    assert [s["id"] for s in resp["data"]] == [world.shift]


def test_admin_clear_cache(as_user, world):
    client = as_user("admin")
    client.get("/api/dashboard")
    stats = client.get("/api/admin/cache").get_json()["data"]
    assert stats["entries"] == 1

    resp = client.post("/api/admin/clear-cache")
    assert resp.status_code == 200
    assert resp.headers["Cache-Control"].startswith("no-store")
    assert resp.get_json()["data"]["cleared"] == 1
    assert as_user("chief").post("/api/admin/clear-cache").status_code == 403
