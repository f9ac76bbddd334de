"""
FastAPI application factory and configuration.

This module creates the FastAPI application instance,
configures routes and lifespan events.
"""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from psycopg_pool import ConnectionPool

from src.adapters.repository.memory import InMemoryCodeStore, InMemoryRegistrationRepository
from src.adapters.repository.postgres import (
    PostgresCodeStore,
    PostgresRegistrationRepository,
    run_migrations,
)
from src.api.dependencies import build_matcher, build_verifier, build_workflow_factory
from src.api.registry import WorkflowRegistry
from src.api.v1 import router as v1_router
from src.config.settings import get_settings

logger = logging.getLogger(__name__)

# OpenAPI tags for documentation grouping
tags_metadata = [
    {
        "name": "v1",
        "description": "Identity-verification registration API v1 - phone code, "
        "document, biometric match and emergency contacts",
    },
]


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    FastAPI lifespan context manager.

    Manages application startup and shutdown:
    - Creates database connection pool and runs migrations (postgres backend)
    - Wires the verifier, matcher and repository into a workflow registry
    - Abandons live registrations and closes the pool on shutdown
    """
    settings = get_settings()

    logger.info("Starting application...")

    pool = None
    if settings.storage_backend == "postgres":
        logger.info("Connecting to database...")
        pool = ConnectionPool(
            conninfo=settings.database_url,
            min_size=settings.pool_min_size,
            max_size=settings.pool_max_size,
        )
        logger.info("Running database migrations...")
        run_migrations(pool)
        code_store = PostgresCodeStore(pool)
        repository = PostgresRegistrationRepository(pool)
    elif settings.storage_backend == "memory":
        logger.warning("Using in-memory storage; state is lost on restart")
        code_store = InMemoryCodeStore()
        repository = InMemoryRegistrationRepository()
    else:
        raise ValueError(f"Unsupported storage backend: {settings.storage_backend}")

    verifier = build_verifier(settings, code_store)
    matcher = build_matcher(settings)
    registry = WorkflowRegistry(
        build_workflow_factory(settings, verifier, matcher, repository),
        idle_ttl_seconds=settings.registration_idle_ttl_seconds,
    )

    # Store shared state in app state for dependency injection
    app.state.pool = pool
    app.state.registry = registry

    logger.info("Application startup complete")

    yield

    # Shutdown
    logger.info("Shutting down application...")
    registry.close_all()
    if pool is not None:
        pool.close()
        logger.info("Database connection pool closed")


app = FastAPI(
    title="idgate",
    description="Identity-verification registration API - gates registration on "
    "phone ownership, identity document, biometric match and emergency contacts",
    version="0.1.0",
    openapi_tags=tags_metadata,
    lifespan=lifespan,
)

# Include v1 API routes
app.include_router(v1_router, prefix="/v1")


@app.get("/health")
async def health_check(request: Request) -> dict[str, str]:
    """
    Health check endpoint with database validation.

    Returns 200 OK if application and database are healthy.
    Raises exception if database connection fails.
    """
    pool = getattr(request.app.state, "pool", None)
    if pool is not None:
        with pool.connection() as conn:
            conn.execute("SELECT 1")

    return {"status": "healthy"}
