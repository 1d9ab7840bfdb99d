# backend/retoro/config.py
from __future__ import annotations
import os


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/retoro.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///retoro.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Sign in with Apple: identity token audience
    APPLE_BUNDLE_ID = os.environ.get("APPLE_BUNDLE_ID", "com.retoro.app")

    # Google OAuth (authorization-code exchange)
    GOOGLE_CLIENT_ID = os.environ.get("GOOGLE_CLIENT_ID")
    GOOGLE_CLIENT_SECRET = os.environ.get("GOOGLE_CLIENT_SECRET")
    GOOGLE_REDIRECT_URI = os.environ.get("GOOGLE_REDIRECT_URI")

    # Deep link the mobile app listens on after the Google web flow
    APP_CALLBACK_URL = os.environ.get("APP_CALLBACK_URL", "retoro://callback")

    # Exchange rates (static fallback table when no key is configured)
    EXCHANGE_RATE_API_KEY = os.environ.get("EXCHANGE_RATE_API_KEY")
    EXCHANGE_RATE_TTL_SECONDS = int(os.environ.get("EXCHANGE_RATE_TTL_SECONDS", "3600"))

    # Invoice parsing workflow
    N8N_INVOICE_WEBHOOK_URL = os.environ.get("N8N_INVOICE_WEBHOOK_URL")

    # Outbound email (Mailgun HTTP API)
    MAILGUN_API_KEY = os.environ.get("MAILGUN_API_KEY")
    MAILGUN_DOMAIN = os.environ.get("MAILGUN_DOMAIN")
    EMAIL_FROM = os.environ.get("EMAIL_FROM", "noreply@retoro.app")
    SUPPORT_EMAIL = os.environ.get("SUPPORT_EMAIL", "support@retoro.app")

    # Base URL used when building magic links
    PUBLIC_API_URL = os.environ.get("PUBLIC_API_URL", "http://localhost:5000")

    # Shared key for internal automation (x-api-key header)
    RETORO_API_KEY = os.environ.get("RETORO_API_KEY")

    HTTP_TIMEOUT_SECONDS = float(os.environ.get("HTTP_TIMEOUT_SECONDS", "15"))
