"""
Create or refresh the admin account from ADMIN_USERNAME / ADMIN_PASSWORD.

Usage:
  python scripts/seed_admin.py

This script is idempotent.
"""

from guard_training.db import Base, SessionLocal, engine
from guard_training.services.accounts import ensure_admin_user


def seed_admin():
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        admin = ensure_admin_user(db)
        print(f"Admin account ready: {admin.username}")
    except Exception as e:
        db.rollback()
        print(f"Error seeding admin account: {e}")
        raise
    finally:
        db.close()


if __name__ == "__main__":
    seed_admin()
