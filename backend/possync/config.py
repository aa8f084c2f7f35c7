# backend/possync/config.py
from __future__ import annotations
import os


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/possync.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///possync.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Header set by the upstream auth layer with the trusted user id
    USER_ID_HEADER = os.environ.get("USER_ID_HEADER", "X-User-Id")

    # Voucher prefix used when the account has no company name
    DEFAULT_COMPANY_CODE = os.environ.get("DEFAULT_COMPANY_CODE", "GUR")

    # Max records per entity group in one push
    SYNC_MAX_BATCH_SIZE = int(os.environ.get("SYNC_MAX_BATCH_SIZE", "500"))

    # Whole-push retries on lock/deadlock errors
    SYNC_RETRY_ATTEMPTS = int(os.environ.get("SYNC_RETRY_ATTEMPTS", "3"))
