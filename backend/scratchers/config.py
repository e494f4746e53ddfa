# backend/scratchers/config.py
from __future__ import annotations
import os


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/scratchers.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///scratchers.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Physical dispensers per store (hard cap on slot numbers)
    SCRATCHER_MAX_SLOTS = int(os.environ.get("SCRATCHER_MAX_SLOTS", "32"))

    # Sold-ticket delta above which a slot is flagged for review
    SCRATCHER_JUMP_THRESHOLD = int(os.environ.get("SCRATCHER_JUMP_THRESHOLD", "100"))

    # Receipt photos land here; None means <instance_path>/receipts
    RECEIPT_STORAGE_DIR = os.environ.get("RECEIPT_STORAGE_DIR")
    MAX_CONTENT_LENGTH = int(os.environ.get("MAX_CONTENT_LENGTH", str(10 * 1024 * 1024)))

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")


class TestConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    RECEIPT_STORAGE_DIR = None
    LOG_LEVEL = "WARNING"
