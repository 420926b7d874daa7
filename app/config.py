import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping

PROJECT_ROOT = Path(__file__).resolve().parent.parent
_DURATION_RE = re.compile(r"^(\d+)\s*([smhd]?)$")
_DURATION_UNITS = {"": 1, "s": 1, "m": 60, "h": 3600, "d": 86400}


def parse_duration(raw: str) -> int:
    """Parse a lifetime like ``7d``, ``12h``, ``30m``, ``45s`` or plain seconds."""
    m = _DURATION_RE.match((raw or "").strip().lower())
    if not m:
        raise ValueError(f"invalid duration: {raw!r}")
    seconds = int(m.group(1)) * _DURATION_UNITS[m.group(2)]
    if seconds <= 0:
        raise ValueError(f"duration must be positive: {raw!r}")
    return seconds


@dataclass(frozen=True)
class Settings:
    jwt_secret: str
    upload_root: Path
    database_path: Path
    jwt_algorithm: str = "HS256"
    token_ttl_s: int = 7 * 86400
    max_upload_bytes: int = 10 * 1024 * 1024
    environment: str = "production"
    cors_origins: tuple[str, ...] = field(default=("*",))

    @property
    def debug(self) -> bool:
        return self.environment == "development"


def load_settings(environ: Mapping[str, str] | None = None) -> Settings:
    env = os.environ if environ is None else environ

    secret = (env.get("JWT_SECRET") or "").strip()
    if not secret:
        raise RuntimeError("JWT_SECRET is required")

    max_mb = int(env.get("MAX_FILE_SIZE_MB") or "10")
    if max_mb <= 0:
        raise ValueError("MAX_FILE_SIZE_MB must be positive")

    upload_root = Path(env.get("UPLOAD_PATH") or "uploads")
    if not upload_root.is_absolute():
        upload_root = PROJECT_ROOT / upload_root
    db_path = Path(env.get("DATABASE_PATH") or "data/portal.sqlite3")
    if not db_path.is_absolute():
        db_path = PROJECT_ROOT / db_path

    origins = tuple(
        o.strip() for o in (env.get("FRONTEND_URL") or "*").split(",") if o.strip()
    )

    return Settings(
        jwt_secret=secret,
        jwt_algorithm=(env.get("JWT_ALG") or "HS256").strip(),
        token_ttl_s=parse_duration(env.get("JWT_EXPIRES_IN") or "7d"),
        max_upload_bytes=max_mb * 1024 * 1024,
        upload_root=upload_root.resolve(),
        database_path=db_path.resolve(),
        environment=(env.get("APP_ENV") or "production").strip().lower(),
        cors_origins=origins or ("*",),
    )
