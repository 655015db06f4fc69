#!/usr/bin/env python3
"""
Prepare the Peer Relay database.

Creates the peer and message tables, then reports what the relay will see
at startup. With ``--check`` nothing is created; the exit status tells
whether the relay could start against the configured database.
"""

import argparse
import sys
from pathlib import Path

# Allow running from a source checkout without installing the package
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from peer_relay.core.config import settings
from peer_relay.core.security import generate_secure_secret_key
from peer_relay.core.utils.database_helpers import check_database_health, get_database_info
from peer_relay.db.init_db import init_database


def describe_database() -> bool:
    info = get_database_info()
    print(f"Backend:   {info['type']}")
    print(f"Version:   {info['version'] or 'unknown'}")
    if info["error"]:
        print(f"Cannot connect: {info['error']}")
        return False
    print(f"Tables:    {', '.join(sorted(info['tables'])) or '(none)'}")
    return True


def report_health() -> bool:
    health = check_database_health()
    print(f"Status:    {health['status']}")
    if health["last_error"]:
        print(f"Problem:   {health['last_error']}")
    return health["status"] == "healthy"


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description=__doc__.strip().splitlines()[0])
    parser.add_argument("--check", action="store_true", help="only inspect, do not create tables")
    args = parser.parse_args(argv)

    print("Peer Relay database setup")
    if not describe_database():
        return 1

    if not args.check:
        try:
            init_database()
        except Exception as e:
            print(f"Initialization failed: {e}")
            return 1
        print("Tables created.")

    healthy = report_health()

    if not settings.SECRET_KEY:
        print("\nSECRET_KEY is not set; the relay refuses every connection without it.")
        print(f"Generated suggestion: SECRET_KEY={generate_secure_secret_key()}")

    return 0 if healthy else 1


if __name__ == "__main__":
    sys.exit(main())
