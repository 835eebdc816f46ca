#!/usr/bin/env python3
"""Check that every stored record decrypts under the configured auth data.

Unlocks with the passcode (prompted), then decrypts every person card and
its notes and prints a summary. Exits non-zero on the first record that does
not decrypt. Run from repo root with .env (REMEMBERME_BACKEND,
REMEMBERME_DB_PATH, REMEMBERME_AUTH_PATH, and NEO4J_* for the graph backend).
Read-only.
"""
import getpass
import logging
import sys
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(REPO_ROOT / "src"))

from rememberme.application import AuthState  # noqa: E402
from rememberme.domain import CryptoError  # noqa: E402
from rememberme.infrastructure.config import (  # noqa: E402
    build_auth_session,
    configure_logging,
    load_settings,
)

logger = logging.getLogger("verify_store")


def main() -> int:
    settings = load_settings()
    configure_logging(settings.log_level)
    session = build_auth_session(settings)

    if session.state is AuthState.UNINITIALIZED:
        print("No passcode set up yet. Nothing to verify.")
        return 0

    store = session.unlock_with_passcode(getpass.getpass("Passcode: "))
    if store is None:
        print("Wrong passcode.", file=sys.stderr)
        return 1

    try:
        people = store.get_all_people()
        notes = 0
        for person in people:
            notes += len(store.get_notes(person.id))
    except CryptoError as e:
        logger.error("Stored data does not decrypt: %s", e)
        return 1
    finally:
        session.lock()

    print(f"OK: {len(people)} person card(s), {notes} note(s) decrypted ({settings.backend} backend).")
    return 0


if __name__ == "__main__":
    sys.exit(main())
