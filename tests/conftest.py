"""
Shared fixtures: a fresh engine per test, a context around it, the full
router, and an HTTP client over the FastAPI app.
"""

import pytest
from fastapi.testclient import TestClient

from diagram_controller.api import ApiContext, build_router
from diagram_controller.backend.main import create_app
from diagram_controller.host import ModelEngine


@pytest.fixture
def engine():
    return ModelEngine(project_name="Test")


@pytest.fixture
def ctx(engine):
    return ApiContext.create(engine, frame_margin=30)


@pytest.fixture(scope="session")
def router():
    return build_router()


@pytest.fixture
def call(ctx, router):
    """Dispatch one synchronous request through the router."""
    def _call(method, url, body=None):
        return router.dispatch(ctx, method, url, body)
    return _call


@pytest.fixture
def client(engine, router):
    app = create_app(engine=engine, router=router)
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def erd_diagram(call):
    """An ER diagram under a fresh data model."""
    result = call("POST", "/api/erd/diagrams", {"name": "Schema"})
    assert result["success"], result
    return result["data"]
