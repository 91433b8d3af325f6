"""
Release phase: migrate the schema to head, then seed the login registry.

  python scripts/release.py

Reads DATABASE_URL (required), ENV, and REGISTRY_CSV / REGISTRY_NUMBERS for the seed.
"""

from __future__ import annotations

import logging
import os
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from alembic import command  # noqa: E402
from alembic.config import Config  # noqa: E402

from app.idcards.config import load_settings  # noqa: E402
from scripts import init_db  # noqa: E402

logger = logging.getLogger("idcards.release")


def alembic_config(database_url: str) -> Config:
    cfg = Config(str(ROOT / "alembic.ini"))
    cfg.set_main_option("script_location", str(ROOT / "migrations"))
    cfg.set_main_option("sqlalchemy.url", database_url)
    return cfg


def run_release() -> None:
    if not (os.environ.get("DATABASE_URL") or "").strip():
        raise RuntimeError("DATABASE_URL must be set for a release.")
    settings = load_settings()
    if settings.env.lower() in ("prod", "production") and settings.database_url.startswith("sqlite"):
        raise RuntimeError("DATABASE_URL must be Postgres in production (not sqlite).")

    logger.info("release: env=%s upgrading schema to head", settings.env)
    command.upgrade(alembic_config(settings.database_url), "head")

    csv_path = (os.environ.get("REGISTRY_CSV") or "").strip() or None
    result = init_db.seed_only(database_url=settings.database_url, csv_path=csv_path)
    logger.info("release: registry added=%d skipped=%d", result.added, result.skipped)


def main() -> None:
    logging.basicConfig(level=load_settings().log_level, format="%(levelname)s %(name)s: %(message)s")
    run_release()


if __name__ == "__main__":
    main()
