"""Application settings and validation."""

import os
from pathlib import Path

BASE = Path(__file__).resolve().parent.parent

DEFAULT_JWT_SECRET = "change_me_for_prod"
EMAIL_BACKENDS = ("console", "resend")


class Settings:
    ENV: str
    DATABASE_URL: str
    JWT_SECRET: str
    JWT_ALGORITHM: str
    ALLOW_INSECURE_JWT: bool
    ALLOW_DEV_CORS: bool
    EMAIL_BACKEND: str
    RESEND_API_KEY: str
    EMAIL_FROM: str
    APP_NAME: str
    OTP_TTL_MINUTES: int
    OTP_MAX_ATTEMPTS: int
    SESSION_TTL_DAYS: int
    SHORT_SESSION_HOURS: int
    LOG_LEVEL: str

    def __init__(self):
        self.ENV = os.getenv("ENV", "dev").lower()
        self.DATABASE_URL = os.getenv("DATABASE_URL", f"sqlite:///{BASE / 'notes.db'}")
        self.JWT_SECRET = os.getenv("JWT_SECRET", DEFAULT_JWT_SECRET)
        self.JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
        self.ALLOW_INSECURE_JWT = os.getenv("ALLOW_INSECURE_JWT", "false").lower() == "true"
        self.ALLOW_DEV_CORS = os.getenv("ALLOW_DEV_CORS", "true").lower() == "true"
        self.EMAIL_BACKEND = os.getenv("EMAIL_BACKEND", "console").lower()
        self.RESEND_API_KEY = os.getenv("RESEND_API_KEY", "")
        self.EMAIL_FROM = os.getenv("EMAIL_FROM", "onboarding@resend.dev")
        self.APP_NAME = os.getenv("APP_NAME", "HD Notes")
        self.OTP_TTL_MINUTES = self._int_env("OTP_TTL_MINUTES", 10)
        self.OTP_MAX_ATTEMPTS = self._int_env("OTP_MAX_ATTEMPTS", 5)
        self.SESSION_TTL_DAYS = self._int_env("SESSION_TTL_DAYS", 30)
        self.SHORT_SESSION_HOURS = self._int_env("SHORT_SESSION_HOURS", 24)
        self.LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
        self._validate()

    @staticmethod
    def _int_env(name: str, default: int) -> int:
        raw = os.getenv(name, str(default))
        try:
            value = int(raw)
        except ValueError:
            raise RuntimeError(f"{name} must be an integer, got {raw!r}")
        if value <= 0:
            raise RuntimeError(f"{name} must be positive")
        return value

    def _validate(self):
        if self.ENV != "dev" and not self.ALLOW_INSECURE_JWT and self.JWT_SECRET == DEFAULT_JWT_SECRET:
            raise RuntimeError("JWT_SECRET must be set to a non-default value in non-dev environments")
        if self.EMAIL_BACKEND not in EMAIL_BACKENDS:
            raise RuntimeError(f"EMAIL_BACKEND must be one of {', '.join(EMAIL_BACKENDS)}")
        if self.EMAIL_BACKEND == "resend" and not self.RESEND_API_KEY:
            raise RuntimeError("RESEND_API_KEY is required when EMAIL_BACKEND=resend")


settings = Settings()
