"""
rigwatch.api.main — FastAPI application entry point
=====================================================

Read-only browser for stored lobby snapshots.

Run with::

    uvicorn rigwatch.api.main:app --reload --port 8000
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI

load_dotenv()

from rigwatch.api.routes.lobbies import router as lobbies_router  # noqa: E402

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Rigwatch API started")
    yield
    logger.info("Rigwatch API shutting down")


app = FastAPI(
    title="Rigwatch Lobby API",
    version="1.0.0",
    lifespan=lifespan,
)

app.include_router(lobbies_router, prefix="/api")


@app.get("/api/health")
def health():
    return {"status": "ok"}
