"""Tests for error translation and middleware."""

import pytest
from fastapi import FastAPI, HTTPException
from fastapi.testclient import TestClient
from pydantic import BaseModel

from dairycart.api.errors import install_error_handlers, status_code_for
from dairycart.api.middleware import setup_middleware
from dairycart.catalog.schemas import ProductRootUpdate
from dairycart.domain.exceptions import (
    DomainError,
    DuplicateNameError,
    InvariantViolationError,
    NotFoundError,
    SkuCollisionError,
    StorageFailureError,
)


class RenameRequest(BaseModel):
    name: str


def build_app() -> FastAPI:
    app = FastAPI()
    setup_middleware(app)
    install_error_handlers(app)

    @app.get("/roots/{root_id}")
    async def missing_root(root_id: int) -> dict:
        raise NotFoundError("product_root", root_id)

    @app.post("/options")
    async def duplicate_option() -> dict:
        raise DuplicateNameError("product_option", "Color", 1)

    @app.post("/bridges")
    async def bad_bridge() -> dict:
        raise InvariantViolationError("wrong value count", details={"expected": 2})

    @app.post("/materialize")
    async def timed_out() -> dict:
        raise StorageFailureError("materialize", "timed out after 30.0s")

    @app.patch("/roots/{root_id}")
    async def edit_root(root_id: int) -> dict:
        ProductRootUpdate.model_validate({"sku_prefix": "tee"})
        return {}

    @app.post("/rename")
    async def rename(body: RenameRequest) -> dict:
        return {"name": body.name}

    @app.get("/teapot")
    async def teapot() -> dict:
        raise HTTPException(status_code=418, detail={"error_code": "TEAPOT", "message": "short"})

    @app.get("/crash")
    async def crash() -> dict:
        raise RuntimeError("boom")

    return app


@pytest.fixture
def client() -> TestClient:
    """Create test client."""
    return TestClient(build_app(), raise_server_exceptions=False)


class TestStatusCodes:
    """Tests for the domain error to status code mapping."""

    @pytest.mark.parametrize(
        ("error", "expected"),
        [
            (NotFoundError("product", 1), 404),
            (DuplicateNameError("product_option", "Color", 1), 409),
            (SkuCollisionError(1, ["tshirt-red-s"]), 409),
            (InvariantViolationError("bad"), 400),
            (StorageFailureError("add_value", "down"), 500),
            (DomainError("other"), 400),
        ],
    )
    def test_status_code_for(self, error, expected) -> None:
        assert status_code_for(error) == expected


class TestErrorResponses:
    """Tests for the standard error body."""

    def test_not_found(self, client: TestClient) -> None:
        response = client.get("/roots/9", headers={"X-Request-ID": "req-123"})

        assert response.status_code == 404
        data = response.json()
        assert data["error_code"] == "NOT_FOUND"
        assert data["request_id"] == "req-123"
        assert {"field": "entity_id", "message": "9"} in data["details"]

    def test_conflict(self, client: TestClient) -> None:
        response = client.post("/options")
        assert response.status_code == 409
        assert response.json()["error_code"] == "CONFLICT"

    def test_invariant_violation(self, client: TestClient) -> None:
        response = client.post("/bridges")
        assert response.status_code == 400
        assert response.json()["details"] == [{"field": "expected", "message": "2"}]

    def test_storage_failure(self, client: TestClient) -> None:
        response = client.post("/materialize")
        assert response.status_code == 500
        assert response.json()["error_code"] == "STORAGE_FAILURE"

    def test_pydantic_validation_error(self, client: TestClient) -> None:
        """Model validation inside a handler is a 400, not a 500."""
        response = client.patch("/roots/1")
        assert response.status_code == 400
        data = response.json()
        assert data["error_code"] == "VALIDATION_ERROR"
        assert data["details"][0]["field"] == "sku_prefix"

    def test_request_validation_error(self, client: TestClient) -> None:
        response = client.post("/rename", json={})
        assert response.status_code == 400
        assert response.json()["error_code"] == "VALIDATION_ERROR"

    def test_http_exception(self, client: TestClient) -> None:
        response = client.get("/teapot")
        assert response.status_code == 418
        assert response.json()["error_code"] == "TEAPOT"

    def test_unhandled_exception(self, client: TestClient) -> None:
        response = client.get("/crash", headers={"X-Request-ID": "req-500"})
        assert response.status_code == 500
        data = response.json()
        assert data["error_code"] == "INTERNAL_ERROR"
        assert data["request_id"] == "req-500"


class TestRequestIdMiddleware:
    """Tests for request ID correlation middleware."""

    def test_generates_request_id_if_not_provided(self, client: TestClient) -> None:
        """Should generate request ID if not in request headers."""
        response = client.post("/rename", json={"name": "Colour"})
        assert response.status_code == 200
        # UUID format
        assert len(response.headers["X-Request-ID"]) == 36

    def test_uses_provided_request_id(self, client: TestClient) -> None:
        """Should use request ID from request headers."""
        response = client.post(
            "/rename",
            json={"name": "Colour"},
            headers={"X-Request-ID": "custom-request-id-12345"},
        )
        assert response.headers["X-Request-ID"] == "custom-request-id-12345"
