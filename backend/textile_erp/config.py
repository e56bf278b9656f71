# backend/textile_erp/config.py
from __future__ import annotations
import os


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/textile_erp.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location (e.g. mysql+pymysql://...)
        "sqlite:///textile_erp.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Invoice lines are deducted from this warehouse (the main store)
    DEFAULT_WAREHOUSE_ID = int(os.environ.get("DEFAULT_WAREHOUSE_ID", "1"))

    # Credit invoices fall due this many days after the invoice date
    CREDIT_TERM_DAYS = int(os.environ.get("CREDIT_TERM_DAYS", "30"))

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
