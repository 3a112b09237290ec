import os

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from prometheus_fastapi_instrumentator import Instrumentator
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from slowapi.util import get_remote_address

from .config import settings
from .db import Base, SessionLocal, engine
from .logging import RequestIdMiddleware, setup_logging
from .auth.router import router as auth_router
from .routes.files import router as files_router
from .routes.guards import router as guards_router
from .routes.materials import router as materials_router
from .routes.notifications import router as notifications_router
from .routes.playback import router as playback_router
from .routes.records import router as records_router
from .routes.sites import router as sites_router
from .routes.stats import router as stats_router
from .playback.hub import hub
from .services.accounts import ensure_admin_user


def create_app() -> FastAPI:
    setup_logging()
    logger = structlog.get_logger("guard_training")
    app = FastAPI(title=settings.app_name)

    # Middlewares
    app.add_middleware(RequestIdMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    limiter = Limiter(key_func=get_remote_address, default_limits=[settings.rate_limit], enabled=settings.rate_limit_enabled)
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    app.add_middleware(SlowAPIMiddleware)

    # Routers
    app.include_router(auth_router)
    app.include_router(sites_router)
    app.include_router(guards_router)
    app.include_router(materials_router)
    app.include_router(records_router)
    app.include_router(notifications_router)
    app.include_router(stats_router)
    app.include_router(files_router)
    app.include_router(playback_router)

    # Metrics
    Instrumentator().instrument(app).expose(app)

    @app.get("/health")
    def health():
        return {"status": "ok", "open_playback_sessions": len(hub)}

    @app.on_event("startup")
    def _startup():
        # Ensure local SQLite directory exists
        if settings.database_url.startswith("sqlite:///./"):
            os.makedirs(os.path.dirname(settings.database_url[len("sqlite:///"):]) or ".", exist_ok=True)
        if settings.auto_create_db:
            Base.metadata.create_all(bind=engine)
            logger.info("startup_tables_verified")
        db = SessionLocal()
        try:
            ensure_admin_user(db)
        except Exception as e:
            db.rollback()
            logger.warning("startup_admin_seed_failed", error=str(e))
        finally:
            db.close()

    @app.on_event("shutdown")
    def _shutdown():
        hub.clear()

    return app


app = create_app()
