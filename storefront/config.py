"""
Configuration — Storefront Service
Everything is read from the environment (a local .env is loaded first).
"""

import json
import os
from dotenv import load_dotenv

load_dotenv()

DEFAULT_CATEGORY_ACCOUNTS = {
    "food": "acct_food123",
    "beverage": "acct_beverage456",
    "default": "acct_default789",
}


def _database_uri():
    if os.environ.get("DATABASE_URL"):
        return os.environ["DATABASE_URL"]
    db_user = os.environ.get("DB_USER", "storefront_user")
    db_pass = os.environ.get("DB_PASS", "password")
    db_host = os.environ.get("DB_HOST", "storefront-db")
    db_name = os.environ.get("DB_NAME", "storefront_db")
    return f"postgresql://{db_user}:{db_pass}@{db_host}/{db_name}"


def _category_accounts():
    raw = os.environ.get("STRIPE_CATEGORY_ACCOUNTS")
    if not raw:
        return dict(DEFAULT_CATEGORY_ACCOUNTS)
    accounts = json.loads(raw)
    if "default" not in accounts:
        raise ValueError("STRIPE_CATEGORY_ACCOUNTS must contain a 'default' account")
    return accounts


def _flag(name, default="false"):
    return os.environ.get(name, default).strip().lower() in ("1", "true", "yes", "on")


class Config:
    SQLALCHEMY_DATABASE_URI = _database_uri()
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-change-me")
    JWT_SECRET_KEY = os.environ.get("JWT_SECRET", "dev-secret-change-me")

    STRIPE_SECRET_KEY = os.environ.get("STRIPE_SECRET_KEY")
    STRIPE_WEBHOOK_SECRET = os.environ.get("STRIPE_WEBHOOK_SECRET", "whsec_test_secret")
    PAYMENT_CURRENCY = os.environ.get("PAYMENT_CURRENCY", "inr")
    CATEGORY_ACCOUNTS = _category_accounts()

    OTP_PROVIDER = os.environ.get("OTP_PROVIDER", "twilio")
    TWILIO_ACCOUNT_SID = os.environ.get("TWILIO_ACCOUNT_SID")
    TWILIO_AUTH_TOKEN = os.environ.get("TWILIO_AUTH_TOKEN")
    TWILIO_VERIFY_SERVICE_SID = os.environ.get("TWILIO_VERIFY_SERVICE_SID")
    TEMP_EMAIL_DOMAIN = os.environ.get("TEMP_EMAIL_DOMAIN", "ammasidli.in")

    # Off by default: status updates overwrite unconditionally.
    ENFORCE_STATUS_TRANSITIONS = _flag("ENFORCE_STATUS_TRANSITIONS")

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
