# backend/pos_api/config.py
from __future__ import annotations

import os
from flask import current_app
from dataclasses import dataclass
from decimal import Decimal
from typing import Mapping


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/pos.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///pos.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Sale pricing (proportions in [0, 1])
    POS_TAX_RATE = os.environ.get("POS_TAX_RATE", "0.16")
    POS_DEFAULT_DISCOUNT_RATE = os.environ.get("POS_DEFAULT_DISCOUNT_RATE", "0")

    # Auth
    SESSION_TTL_HOURS = int(os.environ.get("SESSION_TTL_HOURS", "24"))
    BCRYPT_ROUNDS = int(os.environ.get("BCRYPT_ROUNDS", "12"))

    # Comma-separated list of front-end origins allowed by CORS
    CORS_ORIGINS = os.environ.get(
        "CORS_ORIGINS",
        "http://localhost:5173,http://127.0.0.1:5173,http://localhost:4173,http://127.0.0.1:4173",
    )


@dataclass(frozen=True)
class PosSettings:
    """
    Immutable runtime settings handed to the services.

    Built once by create_app() from the Flask config; services never read
    environment variables or app.config directly.
    """
    tax_rate: Decimal = Decimal("0.16")
    default_discount_rate: Decimal = Decimal("0")
    session_ttl_hours: int = 24
    bcrypt_rounds: int = 12

    @classmethod
    def from_mapping(cls, config: Mapping) -> "PosSettings":
        tax_rate = Decimal(str(config.get("POS_TAX_RATE", "0.16")))
        discount_rate = Decimal(str(config.get("POS_DEFAULT_DISCOUNT_RATE", "0")))
        for name, rate in (("POS_TAX_RATE", tax_rate), ("POS_DEFAULT_DISCOUNT_RATE", discount_rate)):
            if rate < 0 or rate > 1:
                raise ValueError(f"{name} must be between 0 and 1")

        return cls(
            tax_rate=tax_rate,
            default_discount_rate=discount_rate,
            session_ttl_hours=int(config.get("SESSION_TTL_HOURS", 24)),
            bcrypt_rounds=int(config.get("BCRYPT_ROUNDS", 12)),
        )


def current_settings() -> PosSettings:
    """PosSettings of the running app (built once by create_app)."""
    return current_app.extensions["pos_settings"]
