"""Tests for core/auth.py."""

import pytest
from fastapi import HTTPException
from starlette.requests import Request

from core.auth import get_user_id_from_request, require_auth

pytestmark = pytest.mark.unit


def _request(user_id: str | None = None) -> Request:
    headers = []
    if user_id is not None:
        headers.append((b"x-user-id", user_id.encode()))
    return Request({"type": "http", "method": "GET", "path": "/", "headers": headers})


class TestGetUserId:
    def test_missing(self):
        assert get_user_id_from_request(_request()) is None

    def test_strips_whitespace(self):
        assert get_user_id_from_request(_request("  user_1  ")) == "user_1"

    def test_blank(self):
        assert get_user_id_from_request(_request("   ")) is None

    def test_too_long(self):
        assert get_user_id_from_request(_request("x" * 256)) is None


class TestRequireAuth:
    def test_sets_request_state(self):
        request = _request("user_1")
        assert require_auth(request) == "user_1"
        assert request.state.user_id == "user_1"

    def test_raises_401(self):
        with pytest.raises(HTTPException) as exc_info:
            require_auth(_request())
        assert exc_info.value.status_code == 401

