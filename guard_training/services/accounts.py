import re
from datetime import datetime
from typing import Optional

import structlog
from sqlalchemy.orm import Session

from ..auth.security import get_password_hash, verify_password
from ..config import settings
from ..models.models import User


logger = structlog.get_logger(__name__)


class DuplicateUsername(ValueError):
    pass


def normalize_phone(phone: Optional[str]) -> str:
    """Digits only; '010-1234-5678' -> '01012345678'."""
    return re.sub(r"\D", "", str(phone or ""))


def phone_last_four(phone: Optional[str]) -> Optional[str]:
    digits = normalize_phone(phone)
    return digits[-4:] if digits else None


def default_password(phone: Optional[str]) -> str:
    return phone_last_four(phone) or "0000"


def get_user_by_username(db: Session, username: str) -> Optional[User]:
    return db.query(User).filter(User.username == username).first()


def unique_username(db: Session, base: str) -> str:
    """First free username among base, base2, base3, ..."""
    candidate = base
    n = 2
    while get_user_by_username(db, candidate) is not None:
        candidate = f"{base}{n}"
        n += 1
    return candidate


def ensure_admin_user(db: Session) -> User:
    """Create or refresh the configured admin account."""
    admin = get_user_by_username(db, settings.admin_username)
    if admin is None:
        admin = User(
            username=settings.admin_username,
            name=settings.admin_username,
            password_hash=get_password_hash(settings.admin_password),
            role="admin",
            company=settings.admin_company,
        )
        db.add(admin)
        db.commit()
        db.refresh(admin)
        logger.info("admin_user_created", username=admin.username)
        return admin
    changed = False
    if admin.role != "admin":
        admin.role = "admin"
        changed = True
    if not verify_password(settings.admin_password, admin.password_hash):
        admin.password_hash = get_password_hash(settings.admin_password)
        changed = True
    if changed:
        db.commit()
        db.refresh(admin)
        logger.info("admin_user_updated", username=admin.username)
    return admin


def authenticate(db: Session, username: str, password: str, role: str) -> Optional[User]:
    """
    Resolve a login attempt. Guards may use the last four digits of their
    phone number or their stored password; the role must match the account.
    """
    user = get_user_by_username(db, username)
    if user is None or user.role != role:
        return None
    if role == "guard":
        last_four = phone_last_four(user.phone)
        if not ((last_four and password == last_four) or verify_password(password, user.password_hash)):
            return None
    elif not verify_password(password, user.password_hash):
        return None
    user.last_login_at = datetime.utcnow()
    db.commit()
    return user


def create_guard(
    db: Session,
    name: str,
    phone: Optional[str] = None,
    company: Optional[str] = None,
    site_id: Optional[str] = None,
    username: Optional[str] = None,
    password: Optional[str] = None,
    role: str = "guard",
) -> User:
    username = (username or name).strip()
    if get_user_by_username(db, username) is not None:
        raise DuplicateUsername(username)
    user = User(
        username=username,
        name=name.strip(),
        phone=phone or None,
        company=company,
        site_id=site_id or None,
        role=role,
        password_hash=get_password_hash(password or default_password(phone)),
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    logger.info("guard_created", user_id=user.id, company=company)
    return user


def update_guard(
    db: Session,
    guard: User,
    name: Optional[str] = None,
    phone: Optional[str] = None,
    company: Optional[str] = None,
    site_id: Optional[str] = None,
    clear_site: bool = False,
) -> User:
    if name:
        name = name.strip()
        if name != guard.username:
            other = get_user_by_username(db, name)
            if other is not None and other.id != guard.id:
                raise DuplicateUsername(name)
        guard.name = name
        guard.username = name
    if phone:
        guard.phone = phone
        guard.password_hash = get_password_hash(default_password(phone))
    if company:
        guard.company = company
    if site_id or clear_site:
        guard.site_id = site_id or None
    db.commit()
    db.refresh(guard)
    return guard
