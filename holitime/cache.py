from datetime import datetime, timedelta

from flask import current_app

_CACHE = {}


def _ttl():
    return timedelta(seconds=current_app.config.get("CACHE_TTL_SECONDS", 60))


def make_key(prefix, user_id, query_string=b""):
    if isinstance(query_string, bytes):
        query_string = query_string.decode("utf-8", "replace")
    return f"{prefix}:{user_id}:{query_string}"


def get_cached(key):
    entry = _CACHE.get(key)
    if not entry:
        return None

    if datetime.utcnow() - entry["ts"] > _ttl():
        del _CACHE[key]
        return None

    return entry["data"]


def set_cached(key, data):
    _CACHE[key] = {
        "data": data,
        "ts": datetime.utcnow()
    }
    return data


def clear_cache():
    n = len(_CACHE)
    _CACHE.clear()
    return n


def cache_stats():
    now = datetime.utcnow()
    ttl = _ttl()
    fresh = sum(1 for e in _CACHE.values() if now - e["ts"] <= ttl)
    return {
        "entries": len(_CACHE),
        "fresh": fresh,
        "stale": len(_CACHE) - fresh,
        "ttl_seconds": int(ttl.total_seconds()),
        "keys": sorted(_CACHE),
    }
