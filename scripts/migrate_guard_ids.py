"""
Move guards to new primary keys (e.g. ids issued by an external identity provider).

Usage:
  python scripts/migrate_guard_ids.py mapping.csv [--dry-run]

mapping.csv has a header row and two columns: phone,new_id. Guards are
matched by phone digits. A failure on one guard is reported and the run
continues with the next.
"""

import argparse
import csv
import sys

from guard_training.db import SessionLocal
from guard_training.models.models import User
from guard_training.services.accounts import normalize_phone
from guard_training.services.identity import IdentityMigrationError, migrate_guard_identity


def read_mapping(path: str) -> dict:
    mapping = {}
    with open(path, newline="", encoding="utf-8-sig") as f:
        for row in csv.DictReader(f):
            phone = normalize_phone(row.get("phone"))
            new_id = (row.get("new_id") or "").strip()
            if phone and new_id:
                mapping[phone] = new_id
    return mapping


def migrate(path: str, dry_run: bool = False) -> int:
    mapping = read_mapping(path)
    db = SessionLocal()
    failures = 0
    try:
        guards = db.query(User).filter(User.role == "guard", User.phone.isnot(None)).all()
        print(f"Checking {len(guards)} guards against {len(mapping)} mappings...")
        for guard in guards:
            new_id = mapping.get(normalize_phone(guard.phone))
            if not new_id or new_id == guard.id:
                continue
            name = guard.name
            if dry_run:
                print(f"Would migrate {name} from {guard.id} to {new_id}")
                continue
            try:
                migrate_guard_identity(db, guard, new_id)
                print(f"Migrated {name} to {new_id}")
            except IdentityMigrationError as e:
                failures += 1
                print(f"Error migrating {name}: {e}")
    finally:
        db.close()
    print("Done." if not failures else f"Done with {failures} failure(s).")
    return failures


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[1])
    parser.add_argument("mapping")
    parser.add_argument("--dry-run", action="store_true")
    args = parser.parse_args()
    sys.exit(1 if migrate(args.mapping, args.dry_run) else 0)
