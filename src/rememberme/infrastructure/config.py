"""Runtime settings from the environment (and a repo-root .env), plus startup wiring.

Variables: REMEMBERME_BACKEND (memory | sqlite | neo4j), REMEMBERME_DB_PATH,
REMEMBERME_AUTH_PATH, REMEMBERME_PHONE_REGION, REMEMBERME_LOG_LEVEL,
NEO4J_URI, NEO4J_USER, NEO4J_PASSWORD, NEO4J_DATABASE.
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv
from neo4j import GraphDatabase

from rememberme.application import (
    AuthService,
    AuthSession,
    BiometricAuthenticator,
    KeyValueStore,
    PersonStore,
    RecordStore,
)
from rememberme.infrastructure.biometrics import UnavailableBiometrics
from rememberme.infrastructure.keyvalue import InMemoryKeyValueStore, JsonFileKeyValueStore
from rememberme.infrastructure.memory_store import InMemoryRecordStore
from rememberme.infrastructure.persistence.neo4j_store import Neo4jRecordStore
from rememberme.infrastructure.phone import phone_normalizer
from rememberme.infrastructure.sqlite_store import SQLiteRecordStore

logger = logging.getLogger(__name__)

REPO_ROOT = Path(__file__).resolve().parents[3]
DATA_DIR = Path.home() / ".rememberme"
BACKENDS = ("memory", "sqlite", "neo4j")
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def load_env() -> None:
    """Load .env from the repo root, or the working directory, if present."""
    for path in (REPO_ROOT / ".env", Path.cwd() / ".env"):
        if path.exists():
            load_dotenv(path)
            break


def configure_logging(level: str = "INFO") -> None:
    """For entry points only; the library itself never configures logging."""
    logging.basicConfig(format=LOG_FORMAT, level=getattr(logging, level.upper(), logging.INFO))


@dataclass(frozen=True)
class Settings:
    backend: str = "sqlite"
    db_path: Path = DATA_DIR / "RememberMe.db"
    auth_path: Path = DATA_DIR / "auth.json"
    phone_region: str | None = None
    log_level: str = "INFO"
    neo4j_uri: str = "bolt://localhost:7687"
    neo4j_user: str = "neo4j"
    neo4j_password: str = "password"
    neo4j_database: str | None = None

    def __post_init__(self):
        if self.backend not in BACKENDS:
            raise ValueError(f"Unknown backend {self.backend!r}; expected one of {BACKENDS}.")


def _env(name: str, default: str = "") -> str:
    return os.environ.get(name, default).strip()


def load_settings() -> Settings:
    load_env()
    return Settings(
        backend=_env("REMEMBERME_BACKEND", "sqlite").lower(),
        db_path=Path(_env("REMEMBERME_DB_PATH") or Settings.db_path).expanduser(),
        auth_path=Path(_env("REMEMBERME_AUTH_PATH") or Settings.auth_path).expanduser(),
        phone_region=_env("REMEMBERME_PHONE_REGION").upper() or None,
        log_level=_env("REMEMBERME_LOG_LEVEL", "INFO"),
        neo4j_uri=_env("NEO4J_URI", "bolt://localhost:7687"),
        neo4j_user=_env("NEO4J_USER", "neo4j"),
        neo4j_password=_env("NEO4J_PASSWORD", "password"),
        neo4j_database=_env("NEO4J_DATABASE") or None,
    )


def build_record_store(settings: Settings) -> RecordStore:
    if settings.backend == "memory":
        return InMemoryRecordStore()
    if settings.backend == "sqlite":
        return SQLiteRecordStore(settings.db_path)
    driver = GraphDatabase.driver(settings.neo4j_uri, auth=(settings.neo4j_user, settings.neo4j_password))
    return Neo4jRecordStore(driver, database=settings.neo4j_database)


def build_key_value_store(settings: Settings) -> KeyValueStore:
    if settings.backend == "memory":
        return InMemoryKeyValueStore()
    return JsonFileKeyValueStore(settings.auth_path)


def build_person_store(settings: Settings) -> PersonStore:
    return PersonStore(
        build_record_store(settings),
        normalize_phone=phone_normalizer(settings.phone_region),
    )


def build_auth_session(
    settings: Settings,
    biometrics: BiometricAuthenticator | None = None,
) -> AuthSession:
    """Wire an AuthSession for the configured backend. Starts locked (or uninitialized)."""
    auth = AuthService(build_key_value_store(settings), biometrics or UnavailableBiometrics())
    logger.info("Using %s backend", settings.backend)
    return AuthSession(auth, build_person_store(settings))
