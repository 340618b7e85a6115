# backend/agriconnect/config.py
from __future__ import annotations
import os
from datetime import timedelta


def _env_flag(name: str, default: str) -> bool:
    return os.environ.get(name, default).strip().lower() in {"1", "true", "yes", "on"}


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # Session tokens are signed with JWT_SECRET (falls back to SECRET_KEY)
    JWT_SECRET = os.environ.get("JWT_SECRET") or SECRET_KEY
    JWT_ALGORITHM = os.environ.get("JWT_ALGORITHM", "HS256")
    REGISTER_TOKEN_TTL = timedelta(days=7)
    LOGIN_TOKEN_TTL = timedelta(days=30)

    # SQLite DB stored next to the instance by default, PostgreSQL in production
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL",
        "sqlite:///agriconnect.sqlite3",
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    BCRYPT_ROUNDS = int(os.environ.get("BCRYPT_ROUNDS", "12"))

    # Uploads: None means <instance_path>/uploads
    UPLOAD_FOLDER = os.environ.get("UPLOAD_FOLDER")
    UPLOAD_MAX_FILES = 5
    UPLOAD_MAX_FILE_BYTES = 2 * 1024 * 1024
    MAX_CONTENT_LENGTH = UPLOAD_MAX_FILES * UPLOAD_MAX_FILE_BYTES + 512 * 1024

    DEFAULT_PROVINCE = "Haut-Katanga"

    # Only buyers with a delivered order may review a product
    REVIEWS_REQUIRE_PURCHASE = _env_flag("REVIEWS_REQUIRE_PURCHASE", "true")

    CORS_ALLOWED_ORIGINS = [
        origin.strip()
        for origin in os.environ.get(
            "CORS_ALLOWED_ORIGINS",
            "http://localhost:5173,http://127.0.0.1:5173,http://localhost:5000",
        ).split(",")
        if origin.strip()
    ]

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()
