import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import (
    String,
    DateTime,
    Boolean,
    ForeignKey,
    Integer,
    JSON,
    BigInteger,
    Text,
    Index,
)
from sqlalchemy.orm import relationship, Mapped, mapped_column

from ..db import Base


COMPANIES = ("mirae_abm", "dawon_pmc")
USER_ROLES = ("admin", "guard")
MATERIAL_TYPES = ("card", "video")


def uuid_pk() -> Mapped[str]:
    return mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))


class Site(Base):
    __tablename__ = "sites"

    id: Mapped[str] = uuid_pk()
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    company: Mapped[str] = mapped_column(String(20), nullable=False)  # mirae_abm|dawon_pmc
    address: Mapped[Optional[str]] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)

    guards = relationship("User", back_populates="site")


class User(Base):
    __tablename__ = "users"

    id: Mapped[str] = uuid_pk()
    username: Mapped[str] = mapped_column(String(100), unique=True, nullable=False, index=True)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    phone: Mapped[Optional[str]] = mapped_column(String(50), index=True)
    role: Mapped[str] = mapped_column(String(20), nullable=False, default="guard")  # admin|guard
    company: Mapped[Optional[str]] = mapped_column(String(20))
    site_id: Mapped[Optional[str]] = mapped_column(String(36), ForeignKey("sites.id", ondelete="SET NULL"))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    last_login_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    site = relationship("Site", back_populates="guards")
    training_records = relationship("TrainingRecord", back_populates="guard", passive_deletes=True)
    notifications = relationship("Notification", back_populates="guard", passive_deletes=True)


class TrainingMaterial(Base):
    __tablename__ = "training_materials"

    id: Mapped[str] = uuid_pk()
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    type: Mapped[str] = mapped_column(String(10), nullable=False)  # card|video
    month: Mapped[str] = mapped_column(String(10), nullable=False, default="수시")
    video_url: Mapped[Optional[str]] = mapped_column(Text)
    # Legacy rows may hold JSON-encoded strings instead of arrays; read through the content repository
    video_urls: Mapped[Optional[list]] = mapped_column(JSON)
    card_images: Mapped[Optional[list]] = mapped_column(JSON)
    audio_urls: Mapped[Optional[list]] = mapped_column(JSON)
    quizzes: Mapped[Optional[list]] = mapped_column(JSON)  # [{question, options, answer}]
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)

    training_records = relationship("TrainingRecord", back_populates="material", passive_deletes=True)
    notifications = relationship("Notification", back_populates="material", passive_deletes=True)


class TrainingRecord(Base):
    __tablename__ = "training_records"

    id: Mapped[str] = uuid_pk()
    guard_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    material_id: Mapped[str] = mapped_column(String(36), ForeignKey("training_materials.id", ondelete="CASCADE"), nullable=False, index=True)
    completed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    material_type: Mapped[str] = mapped_column(String(10), nullable=False)
    material_title: Mapped[str] = mapped_column(String(255), nullable=False)
    score: Mapped[Optional[int]] = mapped_column(Integer)
    passed: Mapped[Optional[bool]] = mapped_column(Boolean)

    guard = relationship("User", back_populates="training_records")
    material = relationship("TrainingMaterial", back_populates="training_records")

    __table_args__ = (
        Index("idx_training_records_completed", "completed_at"),
    )


class Notification(Base):
    """New-material notice for one guard"""
    __tablename__ = "notifications"

    id: Mapped[str] = uuid_pk()
    guard_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    material_id: Mapped[str] = mapped_column(String(36), ForeignKey("training_materials.id", ondelete="CASCADE"), nullable=False)
    is_read: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)

    guard = relationship("User", back_populates="notifications")
    material = relationship("TrainingMaterial", back_populates="notifications")

    __table_args__ = (
        Index("idx_notifications_guard_material", "guard_id", "material_id"),
    )


class FileObject(Base):
    __tablename__ = "file_objects"

    id: Mapped[str] = uuid_pk()
    provider: Mapped[str] = mapped_column(String(50), nullable=False)
    container: Mapped[str] = mapped_column(String(255), nullable=False)
    key: Mapped[str] = mapped_column(String(1024), nullable=False, index=True)
    size_bytes: Mapped[Optional[int]] = mapped_column(BigInteger)
    content_type: Mapped[Optional[str]] = mapped_column(String(255))
    original_name: Mapped[Optional[str]] = mapped_column(String(255))
    created_by: Mapped[Optional[str]] = mapped_column(String(36), ForeignKey("users.id", ondelete="SET NULL"))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)
