"""
Main FastAPI application entry point
"""
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from jobtrail.api.routes import (api_monitoring, auth, external_advisors,
                                 health, jobs, metrics, profile, reports,
                                 users)
from jobtrail.core.config import get_settings
from jobtrail.core.database import get_session_local, init_db
from jobtrail.core.error_handlers import register_exception_handlers
from jobtrail.core.logging_config import LoggingConfig
from jobtrail.core.middleware import LoggingContextMiddleware
from jobtrail.core.middleware_metrics import MetricsMiddleware
from jobtrail.core.tracing import configure_tracing, shutdown_tracing
from jobtrail.services.auth_service import AuthService
from jobtrail.services.report_templates import seed_report_templates

# Configure logging first
LoggingConfig.configure()

logger = LoggingConfig.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create tables, purge expired sessions and seed report templates on startup"""
    settings = get_settings()
    logger.info(f"Starting {settings.app_name} in {settings.app_env} mode...")

    init_db()
    db = get_session_local()()
    try:
        AuthService(db).cleanup_expired_sessions()
        if settings.seed_report_templates:
            seed_report_templates(db)
    finally:
        db.close()

    yield

    logger.info(f"Shutting down {settings.app_name}...")
    shutdown_tracing()


_settings = get_settings()
app = FastAPI(
    title=_settings.app_name,
    description="Job application tracking, reports and advisor collaboration",
    version=_settings.app_version,
    lifespan=lifespan,
)

app.add_middleware(LoggingContextMiddleware)
app.add_middleware(MetricsMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=_settings.allowed_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)

app.include_router(health.router)
app.include_router(metrics.router)
app.include_router(auth.router)
app.include_router(users.router)
app.include_router(profile.router)
app.include_router(jobs.router)
app.include_router(reports.router)
app.include_router(reports.public_router)
app.include_router(external_advisors.router)
app.include_router(api_monitoring.router)

# Instrumentation adds middleware, so it must run before the app starts
configure_tracing(app)


@app.get("/api")
async def root():
    """Root API endpoint"""
    settings = get_settings()
    return {
        "name": settings.app_name,
        "version": settings.app_version,
        "status": "running",
        "environment": settings.app_env,
    }


def run():
    """Serve the API with uvicorn"""
    import uvicorn
    settings = get_settings()
    uvicorn.run(
        "jobtrail.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.app_env == "development",
    )


if __name__ == "__main__":
    run()
