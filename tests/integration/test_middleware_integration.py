"""
Integration tests for the middleware components working together.
Tests end-to-end scenarios with a FastAPI application.
"""

import json
from unittest.mock import patch

import pytest
from fastapi import FastAPI, HTTPException, Request
from fastapi.testclient import TestClient
from sqlalchemy.exc import IntegrityError

from core.errors import EmployerBlocked, NotFound, TransactionAborted
from core.middleware import (
    ErrorHandlingMiddleware,
    StructuredLoggingMiddleware,
    setup_error_handlers,
    setup_logging,
)


class TestFullMiddlewareStack:
    """Test all middleware components working together."""

    @pytest.fixture
    def full_app(self):
        """Create FastAPI app with the same stack as the service."""
        app = FastAPI()

        setup_logging(log_level="INFO", json_logs=True)
        setup_error_handlers(app)

        app.add_middleware(ErrorHandlingMiddleware, debug=False)
        app.add_middleware(
            StructuredLoggingMiddleware,
            log_request_body=True,
            max_body_size=1024,
        )

        @app.get("/health")
        async def health():
            return {"status": "healthy"}

        @app.get("/api/jobs")
        async def jobs():
            return [{"id": "j1", "title": "Line Cook"}]

        @app.post("/api/auth/session")
        async def session(request: Request):
            await request.json()
            return {"access_token": "eyJ.issued.token"}

        @app.get("/api/error")
        async def error_endpoint():
            raise ValueError("Test error with password=secret123")

        @app.get("/api/db-error")
        async def db_error():
            raise IntegrityError("Duplicate key", None, None)

        @app.get("/api/blocked")
        async def blocked():
            raise EmployerBlocked("Fake company")

        @app.get("/api/missing")
        async def missing():
            raise NotFound("applications", "a1")

        @app.post("/api/apply")
        async def apply():
            raise TransactionAborted("apply_to_job", RuntimeError("token=abc123"))

        return app

    @pytest.fixture
    def client(self, full_app):
        return TestClient(full_app)

    def test_health_check_is_quiet(self, client):
        with patch('core.middleware.logging.logger') as mock_logger:
            response = client.get("/health")

        assert response.status_code == 200
        assert not mock_logger.info.called

    def test_successful_request_flow(self, client):
        with patch('core.middleware.logging.logger') as mock_logger:
            response = client.get("/api/jobs")

        assert response.status_code == 200
        assert "x-request-id" in response.headers
        assert mock_logger.info.call_count == 2

    def test_session_body_not_logged(self, client):
        data = {"user_id": "ana", "password": "MyP@ssw0rd123", "email": "ana@example.com"}

        with patch('core.middleware.logging.logger') as mock_logger:
            response = client.post("/api/auth/session", json=data)

        assert response.status_code == 200
        logged = str(mock_logger.info.call_args_list)
        assert "MyP@ssw0rd123" not in logged
        assert "ana@example.com" not in logged

    def test_error_is_sanitized_and_logged(self, client):
        with patch('core.middleware.logging.logger') as mock_logger:
            response = client.get("/api/error")

        assert response.status_code == 400
        data = response.json()
        assert data["error"]["code"] == "INVALID_INPUT"
        assert "secret123" not in json.dumps(data)
        assert mock_logger.warning.called

    def test_database_error_handling(self, client):
        response = client.get("/api/db-error")

        assert response.status_code == 409
        assert response.json()["error"]["code"] == "INTEGRITY_ERROR"

    def test_engine_errors_through_stack(self, client):
        assert client.get("/api/blocked").json()["error"]["details"] == {"reason": "Fake company"}
        assert client.get("/api/missing").status_code == 404

        aborted = client.post("/api/apply")
        assert aborted.status_code == 409
        assert "abc123" not in aborted.text

    def test_request_id_propagation(self, client):
        response = client.get("/api/jobs", headers={"x-request-id": "test-request-id-123"})
        assert response.headers["x-request-id"] == "test-request-id-123"


class TestSecurityCompliance:
    """Credentials and internals stay out of responses and logs."""

    @pytest.fixture
    def secure_app(self):
        app = FastAPI()

        setup_logging(log_level="INFO", json_logs=True)
        setup_error_handlers(app)

        app.add_middleware(ErrorHandlingMiddleware, debug=False)
        app.add_middleware(StructuredLoggingMiddleware, log_request_body=True)

        @app.post("/api/login")
        async def login(request: Request):
            body = await request.json()
            if body.get("password") == "correct":
                return {"token": "abc123"}
            raise HTTPException(status_code=401, detail="Invalid credentials")

        @app.get("/api/crash")
        async def crash():
            raise RuntimeError("connection string postgres://user:pw@db/app")

        return app

    def test_no_password_in_logs(self, secure_app):
        client = TestClient(secure_app)

        with patch('core.middleware.logging.logger') as mock_logger:
            client.post("/api/login", json={"user_id": "ana", "password": "MySecretPassword123"})

        assert "MySecretPassword123" not in str(mock_logger.info.call_args_list)
        assert "MySecretPassword123" not in str(mock_logger.warning.call_args_list)

    def test_no_stack_traces_in_production(self, secure_app):
        client = TestClient(secure_app)

        response = client.post("/api/login", json={"user_id": "ana", "password": "wrong"})

        assert response.status_code == 401
        dumped = json.dumps(response.json())
        assert "traceback" not in dumped.lower()
        assert ".py" not in dumped

    def test_unexpected_error_is_generic(self, secure_app):
        client = TestClient(secure_app, raise_server_exceptions=False)

        response = client.get("/api/crash")

        assert response.status_code == 500
        assert "postgres://" not in response.text
