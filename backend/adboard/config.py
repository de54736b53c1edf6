"""Application settings and validation."""

import os
from pathlib import Path

BACKEND_ROOT = Path(__file__).resolve().parent.parent


class Settings:
    ENV: str
    DATABASE_URL: str
    UPLOAD_ROOT: Path
    MAX_UPLOAD_BYTES: int
    CORS_ORIGINS: list
    SEED_DEMO_USERS: bool
    LOG_LEVEL: str

    def __init__(self):
        self.ENV = os.getenv("ENV", "dev").lower()
        self.DATABASE_URL = os.getenv("DATABASE_URL", f"sqlite:///{BACKEND_ROOT / 'adboard.db'}")
        self.UPLOAD_ROOT = Path(os.getenv("UPLOAD_ROOT", str(BACKEND_ROOT / "uploads"))).expanduser()
        self.MAX_UPLOAD_BYTES = int(os.getenv("MAX_UPLOAD_BYTES", str(10 * 1024 * 1024)))  # 10 MiB default
        self.CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "http://localhost:3000").split(",") if o.strip()]
        self.SEED_DEMO_USERS = os.getenv("SEED_DEMO_USERS", "true").lower() == "true"
        self.LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
        self._validate()

    def _validate(self):
        if self.MAX_UPLOAD_BYTES <= 0:
            raise RuntimeError("MAX_UPLOAD_BYTES must be a positive number of bytes")
        if self.ENV != "dev" and self.SEED_DEMO_USERS:
            raise RuntimeError("SEED_DEMO_USERS must be disabled in non-dev environments")


settings = Settings()
