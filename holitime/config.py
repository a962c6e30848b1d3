
import os
from pathlib import Path
from dotenv import load_dotenv
load_dotenv()

BASE_DIR = Path(__file__).resolve().parent.parent  # <project>
INSTANCE_DIR = BASE_DIR / "instance"

def _default_sqlite_uri():
    return f"sqlite:///{(INSTANCE_DIR / 'holitime.db').as_posix()}"

def _int_env(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, default))
    except (TypeError, ValueError):
        return default

class Config:
    SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret")
    SQLALCHEMY_DATABASE_URI = os.getenv("DATABASE_URL") or _default_sqlite_uri()
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

    # seconds a cached shift list / dashboard stays fresh
    CACHE_TTL_SECONDS = _int_env("CACHE_TTL_SECONDS", 60)
    # shortest time entry clock-out will close
    MIN_WORK_PERIOD_SECONDS = _int_env("MIN_WORK_PERIOD_SECONDS", 60)

    EXPORT_DIR = os.getenv("EXPORT_DIR") or (INSTANCE_DIR / "exports").as_posix()
    TIMESHEET_TEMPLATE_PATH = os.getenv("TIMESHEET_TEMPLATE_PATH") or (
        BASE_DIR / "templates" / "timesheet-template.xlsx"
    ).as_posix()
    SIGNED_URL_MAX_AGE = _int_env("SIGNED_URL_MAX_AGE", 3600)

class TestConfig(Config):
    TESTING = True
    SECRET_KEY = "test-secret"
    SQLALCHEMY_DATABASE_URI = "sqlite://"
    MIN_WORK_PERIOD_SECONDS = 0
    LOG_LEVEL = "WARNING"

def ensure_instance(app):
    # Flask instance path
    os.makedirs(app.instance_path, exist_ok=True)
