import os
from pathlib import Path


BASE_DIR = Path(__file__).resolve().parent.parent


class Config:
    SECRET_KEY = os.environ.get("SECRET_KEY", "default-secret-key")
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", f"sqlite:///{BASE_DIR / 'smartmark.db'}"
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SCHEDULER_ENABLED = os.environ.get("SCHEDULER_ENABLED", "1") == "1"
    CHANGE_FEED_MAX_WAIT_SECONDS = float(
        os.environ.get("CHANGE_FEED_MAX_WAIT_SECONDS", "25")
    )
    CHANGE_EVENT_RETENTION_HOURS = int(
        os.environ.get("CHANGE_EVENT_RETENTION_HOURS", "24")
    )
    CHANGE_EVENT_SWEEP_INTERVAL_MINUTES = int(
        os.environ.get("CHANGE_EVENT_SWEEP_INTERVAL_MINUTES", "60")
    )


class TestConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    SCHEDULER_ENABLED = False
    CHANGE_FEED_MAX_WAIT_SECONDS = 0.0
