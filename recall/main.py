"""Session Recall FastAPI app: main application entry point."""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from recall import config
from recall.db import connection, migrations
from recall.observability import initialize as initialize_observability, shutdown as shutdown_observability
from recall.routers.sessions import sessions_router

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("recall")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup / shutdown lifecycle."""
    logger.info("Session Recall starting up")
    initialize_observability(app)

    db = await connection.get_connection()
    await migrations.run_migrations(db)

    yield

    logger.info("Session Recall shutting down")
    shutdown_observability(app)
    await connection.close_connection()


app = FastAPI(
    title="Session Recall API",
    description="Search and sync prior coding-assistant sessions",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        config.FRONTEND_ORIGIN,
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(sessions_router)


@app.get("/api/health")
def health():
    """Health check endpoint."""
    return {
        "status": "ok",
        "db": "connected" if connection._connection else "disconnected",
    }
