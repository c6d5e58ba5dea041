"""FastAPI application wiring for the workout service."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Response
from fastapi.middleware.cors import CORSMiddleware
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from pymongo import MongoClient

from .api.errors import register_error_handlers
from .api.routes import router as workouts_router
from .config import get_settings
from .domain.service import WorkoutService
from .repository import WorkoutPlanRepository, WorkoutRepository

settings = get_settings()

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialise shared resources (Mongo client, services) for the app lifecycle."""
    client: MongoClient = MongoClient(
        settings.mongodb_url,
        tz_aware=True,
        serverSelectionTimeoutMS=settings.mongodb_timeout_ms,
    )
    database = client[settings.mongodb_database]
    repository = WorkoutRepository(database)
    repository.ensure_indexes()
    app.state.mongo_client = client
    app.state.workout_service = WorkoutService(repository, WorkoutPlanRepository(database))
    logger.info("connected to mongodb database=%s", settings.mongodb_database)
    try:
        yield
    finally:
        client.close()


app = FastAPI(title=settings.app_name, version=settings.version, lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=list(settings.cors_origins),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    max_age=600,
)

register_error_handlers(app)


@app.get("/healthz", tags=["health"])
def healthz() -> dict[str, str]:
    """Return a minimal readiness indicator used by orchestration systems."""
    return {"status": "ok"}


@app.get("/metrics", tags=["health"])
def metrics() -> Response:
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)


app.include_router(workouts_router)
