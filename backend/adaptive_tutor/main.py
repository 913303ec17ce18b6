"""FastAPI application entry point."""
from __future__ import annotations

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger

from adaptive_tutor.api import concepts, gaps, graphs, practice
from adaptive_tutor.container import get_database, get_question_bank_service
from adaptive_tutor.core import config
from adaptive_tutor.core.logging import configure_logging
from adaptive_tutor.persistence.db import init_db

configure_logging(config.LOG_LEVEL)

# ------------------------------------------------------------------
# App creation
# ------------------------------------------------------------------
app = FastAPI(
    title="Adaptive Tutor API",
    description="Mastery tracking, spaced repetition and prerequisite graphs for one learner at a time",
    version="1.0.0",
)

# CORS: allow everything for local dev (restrict for production)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ------------------------------------------------------------------
# Startup / shutdown
# ------------------------------------------------------------------
@app.on_event("startup")
def on_startup():
    init_db(get_database())
    logger.info(f"Database ready at {config.DATABASE_PATH}")


@app.on_event("shutdown")
def on_shutdown():
    get_question_bank_service().shutdown(wait=False)


# ------------------------------------------------------------------
# Routers
# ------------------------------------------------------------------
app.include_router(concepts.router)
app.include_router(graphs.router)
app.include_router(practice.router)
app.include_router(gaps.router)
