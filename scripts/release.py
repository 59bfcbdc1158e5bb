"""
Release phase: migrate the schema to head, then run the idempotent seed.

Refuses to run without DATABASE_URL, and refuses SQLite when ENV=production.

Usage:
  python scripts/release.py [--skip-seed]
"""

from __future__ import annotations

import argparse
import os
import sys
from pathlib import Path


ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


def _database_url() -> str:
    url = (os.environ.get("DATABASE_URL") or "").strip()
    if not url:
        raise RuntimeError("Missing required environment variable DATABASE_URL.")
    env = (os.environ.get("ENV") or "").strip().lower()
    if env in ("prod", "production") and url.startswith("sqlite"):
        raise RuntimeError("Refusing to release against SQLite in production. Point DATABASE_URL at Postgres.")
    return url


def _migrate(db_url: str) -> None:
    from alembic import command
    from alembic.config import Config
    from alembic.script import ScriptDirectory

    cfg = Config(str(ROOT / "alembic.ini"))
    cfg.set_main_option("sqlalchemy.url", db_url)
    head = ScriptDirectory.from_config(cfg).get_current_head()
    print(f"Upgrading schema to {head}...", flush=True)
    command.upgrade(cfg, "head")


def run_release(*, seed: bool = True) -> None:
    db_url = _database_url()
    print("=== aigency release start ===", flush=True)
    _migrate(db_url)
    if seed:
        from scripts import init_db

        print("Seeding roles, admin user and reference data...", flush=True)
        init_db.seed_only(database_url=db_url)
    print("=== aigency release done ===", flush=True)


def main() -> None:
    ap = argparse.ArgumentParser(description="Run migrations and seed data before serving.")
    ap.add_argument("--skip-seed", action="store_true", help="Only run migrations.")
    args = ap.parse_args()
    run_release(seed=not args.skip_seed)


if __name__ == "__main__":
    main()
