import os
from dataclasses import dataclass
from typing import Mapping, Optional

from dotenv import load_dotenv

MEMORY_BACKEND = "memory"
FIRESTORE_BACKEND = "firestore"
BACKENDS = (MEMORY_BACKEND, FIRESTORE_BACKEND)


@dataclass(frozen=True)
class Settings:
    app_id: str = "default-app-id"
    backend: str = MEMORY_BACKEND
    currency: str = "QAR"
    log_level: str = "INFO"
    log_file: Optional[str] = None
    seed_path: Optional[str] = None
    credentials_path: Optional[str] = None


def load_settings(env: Optional[Mapping[str, str]] = None) -> Settings:
    """Read settings from the environment (and a .env file, if present)."""
    if env is None:
        load_dotenv()
        env = os.environ

    backend = env.get("FINANCE_BACKEND", MEMORY_BACKEND).strip().lower()
    if backend not in BACKENDS:
        raise RuntimeError(f"FINANCE_BACKEND must be one of {', '.join(BACKENDS)}, got {backend!r}")

    credentials = env.get("GOOGLE_APPLICATION_CREDENTIALS") or None
    if backend == FIRESTORE_BACKEND and not credentials:
        raise RuntimeError("GOOGLE_APPLICATION_CREDENTIALS not set (required by the firestore backend)")

    return Settings(
        app_id=env.get("FINANCE_APP_ID", "default-app-id"),
        backend=backend,
        currency=env.get("FINANCE_CURRENCY", "QAR"),
        log_level=env.get("FINANCE_LOG_LEVEL", "INFO").upper(),
        log_file=env.get("FINANCE_LOG_FILE") or None,
        seed_path=env.get("FINANCE_SEED_PATH") or None,
        credentials_path=credentials,
    )
