import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from app.config import settings
from app.db import engine
from app.tracker import tables
from app.tracker.router import router as tracker_router

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_: FastAPI):
    if settings.create_schema_on_startup:
        logger.info("Creating entries/goals schema")
        await tables.create_all(engine)
    yield


app = FastAPI(title="WeightTracker", version="0.1.0", lifespan=lifespan)
app.include_router(tracker_router)


@app.get("/")
async def root() -> dict:
    return {
        "status": "ok",
        "docs": "/docs",
        "health": "/health",
        "tracker": {
            "entries": "/tracker/entries",
            "entry": "/tracker/entries/{id}",
            "goals": "/tracker/goals",
            "goal": "/tracker/goals/{id}",
            "goals_active": "/tracker/goals/active",
            "goals_history": "/tracker/goals/history",
            "profile": "/tracker/profile",
            "stats": "/tracker/stats",
        },
    }


@app.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok"}
