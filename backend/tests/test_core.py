"""Tests for request helpers, error rendering and report formatting."""

from datetime import UTC, datetime
from unittest.mock import MagicMock

import pytest
from fastapi import HTTPException
from starlette.datastructures import Headers

from app.core.auth import require_admin
from app.core.errors import (
    INTERNAL_ERROR_MESSAGE,
    MAX_ERROR_MESSAGE_LENGTH,
    PersistenceError,
    QuotaExceededError,
    truncate_error,
)
from app.core.request_context import get_client_ip, get_request_meta
from app.services.analytics_service import format_error_rate, round_ms, to_pln
from tests.conftest import ADMIN_TOKEN


def _request(headers: dict[str, str] | None = None, host: str | None = "192.0.2.10", query=None):
    request = MagicMock()
    request.headers = Headers(headers=headers or {})
    request.client = MagicMock(host=host) if host else None
    request.query_params = query or {}
    return request


class TestClientIp:
    def test_forwarded_for_first_entry(self):
        request = _request({"X-Forwarded-For": "203.0.113.1, 198.51.100.2"})
        assert get_client_ip(request) == "203.0.113.1"

    def test_socket_peer(self):
        assert get_client_ip(_request()) == "192.0.2.10"

    def test_unknown(self):
        assert get_client_ip(_request(host=None)) == "unknown"


class TestRequestMeta:
    def test_truncates_headers(self):
        meta = get_request_meta(
            _request(
                {
                    "User-Agent": "u" * 600,
                    "Referer": "r" * 600,
                    "Accept-Language": "a" * 300,
                }
            )
        )
        assert len(meta.user_agent) == 500
        assert len(meta.referer) == 500
        assert len(meta.accept_lang) == 200

    def test_origin_fallback(self):
        meta = get_request_meta(_request({"Origin": "https://app.example.test"}))
        assert meta.referer == "https://app.example.test"

    def test_missing_headers(self):
        meta = get_request_meta(_request())
        assert meta.user_agent == ""
        assert meta.referer == ""
        assert meta.accept_lang == ""


class TestRequireAdmin:
    def test_accepts_header(self):
        require_admin(_request({"X-Admin-Token": ADMIN_TOKEN}))

    def test_accepts_query(self):
        require_admin(_request(query={"token": ADMIN_TOKEN}))

    def test_rejects_mismatch(self):
        with pytest.raises(HTTPException) as exc_info:
            require_admin(_request({"X-Admin-Token": ADMIN_TOKEN + "x"}))
        assert exc_info.value.status_code == 401


class TestErrors:
    def test_truncate_error(self):
        assert len(truncate_error("e" * 2000)) == MAX_ERROR_MESSAGE_LENGTH
        assert truncate_error("short") == "short"

    def test_quota_error_carries_reset(self):
        reset_at = datetime(2026, 1, 1, tzinfo=UTC)
        assert QuotaExceededError(reset_at).reset_at == reset_at

    def test_persistence_error_is_opaque(self, client, monkeypatch):
        from app.services import generation_service

        def broken_admit(self, data, ip, meta):
            raise PersistenceError("database is locked")

        monkeypatch.setattr(generation_service.GenerationService, "admit", broken_admit)

        response = client.post(
            "/api/generate",
            json={"topic": "Kawa rano", "length": 1000, "fingerprint": "fp-test-0001"},
        )

        assert response.status_code == 500
        assert response.json() == {"error": INTERNAL_ERROR_MESSAGE}


class TestReportFormatting:
    def test_error_rate(self):
        assert format_error_rate(0, 0) == "0%"
        assert format_error_rate(1, 3) == "33.3%"
        assert format_error_rate(2, 2) == "100.0%"

    def test_to_pln(self, monkeypatch):
        from app.core.config import settings

        monkeypatch.setattr(settings, "USD_PLN_RATE", 4.0)
        assert to_pln(1.2345) == "4.94"

    def test_round_ms(self):
        assert round_ms(1499.5) == 1500
        assert round_ms(0) == 0
