"""
FastAPI application factory.

``create_app()`` wires the orchestrator, routers, error handlers and
lifespan events into a single ``FastAPI`` instance.

Manifesto:
    The app factory is the HTTP composition root. The orchestrator (and with
    it the one cache and one rate limiter of the process) is built here or
    injected, stored on ``app.state``, and closed by the lifespan on
    shutdown so the sweeper threads stop and in-flight upstream calls finish.

Tags:
    analysis-spine, api, app-factory, composition-root, FastAPI

Doc-Types:
    api-reference
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from analysis_spine import __version__
from analysis_spine.api.errors import unhandled_exception_handler
from analysis_spine.api.schemas import HealthResponse
from analysis_spine.core.errors import ConfigError
from analysis_spine.core.logging import get_logger
from analysis_spine.core.settings import OrchestrationSettings, get_settings
from analysis_spine.orchestration.analysis import AnalysisOrchestrator, Upstream
from analysis_spine.orchestration.factory import build_orchestrator

API_PREFIX = "/api/v1"

log = get_logger("analysis_spine.api")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan — startup / shutdown hooks."""
    log.info("analysis-spine API starting", version=app.version)
    yield
    log.info("analysis-spine API shutting down")
    await app.state.orchestrator.aclose()


def create_app(
    orchestrator: AnalysisOrchestrator | None = None,
    settings: OrchestrationSettings | None = None,
    *,
    upstream: Upstream | None = None,
) -> FastAPI:
    """Build and return a fully-configured FastAPI application.

    Parameters
    ----------
    orchestrator : AnalysisOrchestrator | None
        Pre-built orchestrator (tests inject one with fake stores).
    settings : OrchestrationSettings | None
        Used to build the orchestrator when none is given. Defaults to the
        cached singleton from :func:`get_settings`.
    upstream : Upstream | None
        Provider callable, required when ``orchestrator`` is not given.
    """
    if orchestrator is None:
        if upstream is None:
            raise ConfigError(
                "upstream",
                message="create_app needs an orchestrator or an upstream callable",
            )
        orchestrator = build_orchestrator(upstream, settings or get_settings())

    app = FastAPI(
        title="analysis-spine",
        version=__version__,
        lifespan=lifespan,
        docs_url=f"{API_PREFIX}/docs",
        openapi_url=f"{API_PREFIX}/openapi.json",
    )
    app.state.orchestrator = orchestrator

    # ── Exception handlers ───────────────────────────────────────────
    app.add_exception_handler(Exception, unhandled_exception_handler)

    # ── Routers ──────────────────────────────────────────────────────
    from analysis_spine.api.routers import admin, analyses

    app.include_router(analyses.router, prefix=API_PREFIX, tags=["analyses"])
    app.include_router(admin.router, prefix=API_PREFIX, tags=["admin"])

    # Root level for container healthchecks
    @app.get("/health", response_model=HealthResponse, tags=["health"])
    async def health() -> HealthResponse:
        return HealthResponse(version=__version__, pending_tasks=orchestrator.pending_tasks)

    return app
