"""API fixtures: an app around the shared fake-clock orchestrator."""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from analysis_spine.api.app import create_app

from fakes import ScriptedUpstream


@pytest.fixture
def upstream() -> ScriptedUpstream:
    return ScriptedUpstream([{"score": 82}])


@pytest.fixture
def orchestrator(make_orchestrator, upstream):
    return make_orchestrator(upstream)


@pytest.fixture
def client(orchestrator):
    with TestClient(create_app(orchestrator)) as test_client:
        yield test_client
