import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app import config
from app.database import SessionLocal, init_db, session_scope
from app.dependencies import status_code_for
from app.lifecycle.engine import LifecycleEngine
from app.lifecycle.errors import LifecycleError
from app.lifecycle.notifications import NotificationFeed
from app.lifecycle.sweeper import ExpirySweeper
from app.services.lifecycle_store import LifecycleStore, persist_commits
from app.admin.routes import router as admin_router
from app.appointments.routes import router as appointments_router
from app.cases.routes import router as cases_router
from app.dashboard.routes import router as dashboard_router
from app.payments.routes import router as payments_router

logging.basicConfig(level=config.LOG_LEVEL)
logger = logging.getLogger(__name__)


def load_engine_from_database() -> LifecycleEngine:
    """Build an engine seeded from the database and persisting every commit back."""
    init_db()
    lifecycle = LifecycleEngine()
    with session_scope() as db:
        lifecycle.load(*LifecycleStore(db).load_all())
    lifecycle.subscribe(persist_commits(SessionLocal))
    return lifecycle


def create_app(lifecycle: Optional[LifecycleEngine] = None, run_sweeper: bool = True) -> FastAPI:
    if lifecycle is None:
        lifecycle = load_engine_from_database() if config.PERSIST_COMMITS else LifecycleEngine()

    notifications = NotificationFeed(currency=config.CURRENCY, limit=config.NOTIFICATION_LIMIT)
    notifications.attach(lifecycle)
    sweeper = ExpirySweeper(lifecycle, interval=config.SWEEP_INTERVAL_SECONDS)

    @asynccontextmanager
    async def lifespan(app):
        """Application lifespan events."""
        if run_sweeper:
            sweeper.start()
        yield
        await sweeper.stop()

    app = FastAPI(
        title="SL-LMS Lifecycle API",
        description="Appointment, case and payment lifecycle for the client/lawyer marketplace",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.engine = lifecycle
    app.state.notifications = notifications
    app.state.sweeper = sweeper

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(LifecycleError)
    async def lifecycle_error_handler(request: Request, exc: LifecycleError):
        logger.info("Rejected %s %s (%s): %s", request.method, request.url.path, exc.kind, exc.message)
        return JSONResponse(status_code=status_code_for(exc), content=exc.to_dict())

    # Include routers
    app.include_router(appointments_router)
    app.include_router(cases_router)
    app.include_router(payments_router)
    app.include_router(dashboard_router)
    app.include_router(admin_router)

    @app.get("/")
    def root():
        return {
            "message": "SL-LMS Lifecycle API",
            "version": "1.0.0",
            "status": "running"
        }

    @app.get("/health")
    def health_check():
        return {"status": "healthy", "sweeper_running": sweeper.running}

    return app


app = create_app()
