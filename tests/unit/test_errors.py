"""Unit tests for the AppError hierarchy and the FastAPI error handlers."""

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from pydantic import BaseModel

from errors import (
    AppError,
    AuthenticationError,
    ConflictError,
    ErrorCode,
    ForbiddenError,
    NotFoundError,
    ServerError,
    ValidationError,
    register_error_handlers,
)


class TestAppErrorSubclasses:
    @pytest.mark.parametrize(
        "cls, status, code",
        [
            (ValidationError, 400, "validation_error"),
            (AuthenticationError, 401, "authentication_error"),
            (ForbiddenError, 403, "forbidden"),
            (NotFoundError, 404, "not_found"),
            (ConflictError, 409, "conflict"),
            (ServerError, 500, "internal_error"),
        ],
    )
    def test_status_and_default_code(self, cls, status, code):
        e = cls("boom")
        assert e.status_code == status
        assert e.error_code == code
        assert e.message == "boom"
        assert isinstance(e, AppError)

    def test_explicit_code_overrides_class_default(self):
        e = ConflictError("taken", code=ErrorCode.EMAIL_EXISTS)
        assert e.status_code == 409
        assert e.error_code is ErrorCode.EMAIL_EXISTS

    def test_explicit_code_does_not_leak_to_class(self):
        ForbiddenError("x", code=ErrorCode.ACCOUNT_INACTIVE)
        assert ForbiddenError("y").error_code is ErrorCode.FORBIDDEN


class TestAppErrorToDict:
    def test_basic(self):
        e = NotFoundError("user not found", code=ErrorCode.USER_NOT_FOUND)
        assert e.to_dict() == {"error": "user not found", "code": "user_not_found"}

    @pytest.mark.parametrize(
        "kwargs, key, value",
        [
            ({"field": "email"}, "field", "email"),
            ({"details": ["At least 6 characters"]}, "details", ["At least 6 characters"]),
        ],
        ids=["with_field", "with_details"],
    )
    def test_optional_key_present(self, kwargs, key, value):
        e = ValidationError("invalid", **kwargs)
        assert e.to_dict()[key] == value

    def test_no_optional_keys_when_absent(self):
        d = NotFoundError("missing").to_dict()
        assert "field" not in d
        assert "details" not in d


# ── handlers ─────────────────────────────────────────────────────────────────


class _Body(BaseModel):
    name: str


def _app() -> FastAPI:
    app = FastAPI()
    register_error_handlers(app)

    @app.get("/conflict")
    async def conflict():
        raise ConflictError("Email already registered", code=ErrorCode.EMAIL_EXISTS)

    @app.post("/body")
    async def body(payload: _Body):
        return {"ok": True}

    @app.get("/crash")
    async def crash():
        raise RuntimeError("secret internals")

    return app


class TestErrorHandlers:
    def test_app_error_rendered_with_code(self):
        with TestClient(_app()) as client:
            resp = client.get("/conflict")
        assert resp.status_code == 409
        assert resp.json() == {"error": "Email already registered", "code": "email_exists"}

    def test_request_validation_is_400(self):
        with TestClient(_app()) as client:
            resp = client.post("/body", json={})
        assert resp.status_code == 400
        body = resp.json()
        assert body["code"] == "validation_error"
        assert body["details"][0]["field"] == "name"

    def test_unhandled_exception_is_generic_500(self):
        with TestClient(_app(), raise_server_exceptions=False) as client:
            resp = client.get("/crash")
        assert resp.status_code == 500
        assert resp.json() == {
            "error": "An internal server error occurred.",
            "code": "internal_error",
        }
        assert "secret internals" not in resp.text
