import os

os.environ.setdefault("JWT_SECRET", "test-secret")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("AUTO_CREATE_DB", "false")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from guard_training.auth.security import create_access_token, get_password_hash
from guard_training.config import settings
from guard_training.db import Base, get_db
from guard_training.main import app
from guard_training.models.models import Site, TrainingMaterial, User
from guard_training.playback.hub import hub


@pytest.fixture(scope="session")
def engine():
    engine = create_engine(
        "sqlite+pysqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    @event.listens_for(engine, "connect")
    def _enable_foreign_keys(dbapi_connection, _connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    return engine


@pytest.fixture()
def db_session(engine):
    Base.metadata.drop_all(engine)
    Base.metadata.create_all(engine)
    SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def client(db_session, tmp_path, monkeypatch):
    """Test client sharing the fixture database session."""
    monkeypatch.setattr(settings, "local_storage_dir", str(tmp_path / "storage"))

    def _get_db():
        yield db_session

    app.dependency_overrides[get_db] = _get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.pop(get_db, None)
        hub.clear()


def _headers(user: User) -> dict:
    return {"Authorization": f"Bearer {create_access_token(user.id, role=user.role)}"}


@pytest.fixture()
def admin_user(db_session):
    admin = User(
        username=settings.admin_username,
        name=settings.admin_username,
        password_hash=get_password_hash(settings.admin_password),
        role="admin",
        company="mirae_abm",
    )
    db_session.add(admin)
    db_session.commit()
    db_session.refresh(admin)
    return admin


@pytest.fixture()
def admin_headers(admin_user):
    return _headers(admin_user)


@pytest.fixture()
def site(db_session):
    site = Site(name="강남 센트럴", company="mirae_abm", address="서울 강남구")
    db_session.add(site)
    db_session.commit()
    db_session.refresh(site)
    return site


@pytest.fixture()
def guard(db_session, site):
    guard = User(
        username="김철수",
        name="김철수",
        phone="010-1234-5678",
        password_hash=get_password_hash("5678"),
        role="guard",
        company="mirae_abm",
        site_id=site.id,
    )
    db_session.add(guard)
    db_session.commit()
    db_session.refresh(guard)
    return guard


@pytest.fixture()
def guard_headers(guard):
    return _headers(guard)


@pytest.fixture()
def card_material(db_session):
    material = TrainingMaterial(
        title="화재 대응 요령",
        type="card",
        month="수시",
        card_images=["https://cdn.example.com/c1.png", "https://cdn.example.com/c2.png"],
        audio_urls=["https://cdn.example.com/c1.mp3", ""],
        quizzes=[
            {"question": "화재 신고 번호는?", "options": ["112", "119"], "answer": 1},
            {"question": "소화기 사용 첫 단계는?", "options": ["안전핀 뽑기", "손잡이 누르기"], "answer": 0},
        ],
    )
    db_session.add(material)
    db_session.commit()
    db_session.refresh(material)
    return material


@pytest.fixture()
def video_material(db_session):
    material = TrainingMaterial(
        title="순찰 기본 교육",
        type="video",
        month="3월",
        video_urls=["https://www.youtube.com/watch?v=dQw4w9WgXcQ", "https://cdn.example.com/patrol.mp4"],
        quizzes=[],
    )
    db_session.add(material)
    db_session.commit()
    db_session.refresh(material)
    return material
