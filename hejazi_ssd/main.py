import os
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from prometheus_fastapi_instrumentator import Instrumentator
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from sqlalchemy import inspect
import structlog

from .config import settings
from .db import Base, engine
from .errors import register_exception_handlers
from .logging import setup_logging, RequestIdMiddleware
from .models import models  # noqa: F401  registers tables on Base.metadata
from .auth.router import router as auth_router
from .routes.users import router as users_router, files_router
from .routes.services import router as services_router
from .routes.permissions import router as permissions_router
from .routes.app_security import router as app_security_router
from .routes.evaluations import router as evaluations_router
from .routes.violations import router as violations_router
from .routes.inspections import router as inspections_router
from .routes.risks import router as risks_router


logger = structlog.get_logger(__name__)


def create_app() -> FastAPI:
    setup_logging()
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

    limiter = Limiter(key_func=get_remote_address, default_limits=[settings.rate_limit])
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    app.add_middleware(SlowAPIMiddleware)

    register_exception_handlers(app)

    # Routers
    app.include_router(auth_router)
    app.include_router(users_router)
    app.include_router(files_router)
    app.include_router(services_router)
    app.include_router(permissions_router)
    app.include_router(app_security_router)
    app.include_router(evaluations_router)
    app.include_router(violations_router)
    app.include_router(inspections_router)
    app.include_router(risks_router)

    # Metrics
    Instrumentator().instrument(app).expose(app)

    @app.get("/health")
    def health():
        return {"success": True, "status": "ok"}

    @app.on_event("startup")
    def _startup():
        # Ensure local SQLite directory exists
        if settings.database_url.startswith("sqlite:///./"):
            os.makedirs("var", exist_ok=True)
        if settings.auto_create_db:
            existing_tables = set(inspect(engine).get_table_names())
            missing = [t for t in Base.metadata.tables if t not in existing_tables]
            if missing:
                logger.info("creating_tables", tables=missing)
                Base.metadata.create_all(bind=engine)
        logger.info("startup_complete", environment=settings.environment)

    return app


app = create_app()
