"""
Create tables (development) and seed the login registry.

Usage:
  python scripts/init_db.py --create-tables --csv regnumbers.csv
  python scripts/init_db.py 21CS001 21CS002

Seeding is idempotent: numbers already registered are skipped.
"""
import argparse
import os
import sys
from pathlib import Path

from sqlalchemy.engine import Engine

# Ensure repo root is on sys.path when running as a script (Windows-friendly).
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app.idcards.db import build_engine  # noqa: E402
from app.idcards.models import Base  # noqa: E402
from app.idcards.modules.registry.service import RegistryImportResult, import_registry, read_registry_csv  # noqa: E402
from app.idcards.store import SqlRecordStore  # noqa: E402


def create_tables(engine: Engine) -> None:
    Base.metadata.create_all(bind=engine)


def seed_only(*, database_url: str | None = None, numbers: list[str] | None = None, csv_path: str | None = None) -> RegistryImportResult:
    """
    Seed the registry from explicit numbers, a CSV file, and REGISTRY_NUMBERS
    (comma-separated) in that order.
    """
    db_url = (database_url or os.environ.get("DATABASE_URL") or "sqlite:///idcards.db").strip()
    to_add: list[str] = list(numbers or [])
    if csv_path:
        to_add.extend(read_registry_csv(Path(csv_path).read_text(encoding="utf-8-sig")))
    env_numbers = (os.environ.get("REGISTRY_NUMBERS") or "").strip()
    if env_numbers:
        to_add.extend(n for n in env_numbers.split(","))

    store = SqlRecordStore(build_engine(db_url))
    result = import_registry(store, to_add)
    print(f"Registry seeded: added={result.added} skipped={result.skipped}")
    return result


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="Initialise the ID card database and seed the login registry.")
    parser.add_argument("numbers", nargs="*", help="Register numbers to add to the registry.")
    parser.add_argument("--csv", dest="csv_path", help="CSV file of register numbers.")
    parser.add_argument("--database-url", help="Overrides DATABASE_URL.")
    parser.add_argument("--create-tables", action="store_true", help="Create tables directly (development only; use alembic otherwise).")
    args = parser.parse_args(argv)

    db_url = (args.database_url or os.environ.get("DATABASE_URL") or "sqlite:///idcards.db").strip()
    if args.create_tables:
        create_tables(build_engine(db_url))
        print("Tables created.")
    seed_only(database_url=db_url, numbers=args.numbers, csv_path=args.csv_path)


if __name__ == "__main__":
    main()
