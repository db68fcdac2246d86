"""
FastAPI dependency injection — the process-wide orchestrator.

Usage in routers::

    from analysis_spine.api.deps import Orchestrator

    @router.get("/things")
    def list_things(orchestrator: Orchestrator):
        ...
"""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends, Request

from analysis_spine.execution.rate_limit import UNKNOWN_IP, extract_client_ip
from analysis_spine.orchestration.analysis import AnalysisOrchestrator


def get_orchestrator(request: Request) -> AnalysisOrchestrator:
    """The orchestrator stored on ``app.state`` by ``create_app``."""
    return request.app.state.orchestrator


def get_client_ip(request: Request) -> str:
    """Client IP from proxy headers, falling back to the socket peer."""
    ip = extract_client_ip(request.headers)
    if ip == UNKNOWN_IP and request.client is not None:
        return request.client.host
    return ip


Orchestrator = Annotated[AnalysisOrchestrator, Depends(get_orchestrator)]
ClientIP = Annotated[str, Depends(get_client_ip)]
