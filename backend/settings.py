"""Runtime configuration read from environment variables (and a local .env file)."""

import logging
import os
from dataclasses import dataclass, field

from dotenv import load_dotenv

logger = logging.getLogger("fambam.settings")

DEFAULT_CORS_ORIGINS = ["http://localhost:5173", "http://localhost:3000", "http://127.0.0.1:5173"]


@dataclass(frozen=True)
class Settings:
    cors_origins: list[str] = field(default_factory=lambda: list(DEFAULT_CORS_ORIGINS))
    log_level: str = "INFO"
    host: str = "0.0.0.0"
    port: int = 8000
    root_person_id: int | None = None
    seed_gedcom: str | None = None


def _optional_int(name: str) -> int | None:
    value = os.getenv(name, "").strip()
    if not value:
        return None
    try:
        return int(value)
    except ValueError:
        logger.warning(f"Ignoring {name}={value!r}: not an integer")
        return None


def load_settings() -> Settings:
    """Load settings, letting a .env file fill in unset variables."""
    load_dotenv()

    origins = os.getenv("FAMBAM_CORS_ORIGINS")
    return Settings(
        cors_origins=[o.strip() for o in origins.split(",") if o.strip()] if origins else list(DEFAULT_CORS_ORIGINS),
        log_level=os.getenv("FAMBAM_LOG_LEVEL", "INFO").upper(),
        host=os.getenv("FAMBAM_HOST", "0.0.0.0"),
        port=_optional_int("FAMBAM_PORT") or 8000,
        root_person_id=_optional_int("FAMBAM_ROOT_PERSON_ID"),
        seed_gedcom=os.getenv("FAMBAM_SEED_GEDCOM") or None,
    )
