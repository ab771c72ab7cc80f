"""
FastAPI app entrypoint.

Builds the watch engine (store, notification emitter, auto-hold, scheduler) in the
lifespan, arms every active watch, and serves the watch / reservation / notification API.
"""
import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

# Load .env from backend/ before any app code
load_dotenv(Path(__file__).resolve().parent.parent / ".env")

from farewatch.api.routes import notifications, push, reservations, watches
from farewatch.config import settings
from farewatch.scheduler.watch_scheduler import WatchScheduler
from farewatch.services.auto_hold_service import AutoHoldOrchestrator
from farewatch.services.notify_service import NotificationEmitter
from farewatch.services.watch_service import WatchService
from farewatch.services.watch_store import SqlWatchStore

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    store = SqlWatchStore()
    emitter = NotificationEmitter()
    orchestrator = AutoHoldOrchestrator(store, emitter)
    scheduler = WatchScheduler(store, emitter, orchestrator)
    app.state.watch_store = store
    app.state.watch_scheduler = scheduler
    app.state.watch_service = WatchService(store, scheduler)

    scheduler.start()
    # Arm every active watch now instead of waiting for the first reconciliation tick.
    result = await scheduler.sync()
    logger.info("Watch engine ready: %s timer(s) armed", result["armed"])
    yield
    scheduler.shutdown()


app = FastAPI(title="Fare Watch", version="0.1.0", lifespan=lifespan)

# CORS: dev origins + optional CORS_ORIGINS env (comma-separated) for production frontend
_cors_origins = [
    "http://localhost:5173",
    "http://127.0.0.1:5173",
    "http://localhost:3000",
    "http://127.0.0.1:3000",
]
_cors_extra = os.getenv("CORS_ORIGINS", "")
if _cors_extra:
    _cors_origins.extend(o.strip() for o in _cors_extra.split(",") if o.strip())
app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(watches.router, tags=["watches"])
app.include_router(reservations.router, tags=["reservations"])
app.include_router(notifications.router, tags=["notifications"])
app.include_router(push.router, tags=["push"])


@app.get("/", include_in_schema=False)
def root():
    return {"message": "Fare Watch API", "docs": "/docs", "health": "/health"}


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}
