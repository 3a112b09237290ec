import structlog
from sqlalchemy.orm import Session

from ..models.models import FileObject, Notification, TrainingRecord, User


logger = structlog.get_logger(__name__)


class IdentityMigrationError(Exception):
    pass


def migrate_guard_identity(db: Session, guard: User, new_id: str) -> User:
    """
    Move a guard to a new primary key by duplicate-and-replace.

    The old row is renamed to free its unique username, a copy is inserted
    under new_id, notifications, records and uploads are re-linked, and the
    old row is deleted. Runs as one transaction; on failure nothing changes.
    """
    old_id = guard.id
    new_id = str(new_id)
    if not new_id:
        raise IdentityMigrationError("new id is empty")
    if new_id == old_id:
        return guard
    if db.get(User, new_id) is not None:
        raise IdentityMigrationError(f"id {new_id} is already in use")

    snapshot = {
        "username": guard.username,
        "password_hash": guard.password_hash,
        "name": guard.name,
        "phone": guard.phone,
        "role": guard.role,
        "company": guard.company,
        "site_id": guard.site_id,
        "created_at": guard.created_at,
        "last_login_at": guard.last_login_at,
    }
    try:
        guard.username = f"{snapshot['username']}_old_{old_id}"
        db.flush()

        replacement = User(id=new_id, **snapshot)
        db.add(replacement)
        db.flush()

        db.query(Notification).filter(Notification.guard_id == old_id).update(
            {Notification.guard_id: new_id}, synchronize_session=False
        )
        db.query(TrainingRecord).filter(TrainingRecord.guard_id == old_id).update(
            {TrainingRecord.guard_id: new_id}, synchronize_session=False
        )
        db.query(FileObject).filter(FileObject.created_by == old_id).update(
            {FileObject.created_by: new_id}, synchronize_session=False
        )
        db.expunge(guard)
        db.query(User).filter(User.id == old_id).delete(synchronize_session=False)
        db.commit()
    except Exception as e:
        db.rollback()
        logger.warning("guard_identity_migration_failed", guard_id=old_id, new_id=new_id, error=str(e))
        raise IdentityMigrationError(str(e)) from e

    db.refresh(replacement)
    logger.info("guard_identity_migrated", old_id=old_id, new_id=new_id)
    return replacement
