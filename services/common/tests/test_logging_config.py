"""
Unit tests for logging configuration.

Tests the text renderer, service context extraction, request context
handling and the request logging middleware.
"""

import logging
from unittest.mock import MagicMock

import structlog
from fastapi import FastAPI
from fastapi.testclient import TestClient

from services.common.logging_config import (
    EnhancedTextRenderer,
    add_request_context,
    add_service_context,
    create_request_logging_middleware,
    get_logger,
    request_id_var,
    setup_service_logging,
    user_id_var,
)


class TestLoggingConfiguration:
    def setup_method(self):
        """Reset context variables and logging configuration."""
        request_id_var.set("uninitialized")
        user_id_var.set("anonymous")
        logging.getLogger().handlers.clear()
        structlog.reset_defaults()

    def test_add_request_context(self):
        request_id_var.set("req-123")
        user_id_var.set("owner-1")

        result = add_request_context(MagicMock(), "info", {"event": "test"})

        assert result["request_id"] == "req-123"
        assert result["user_id"] == "owner-1"

    def test_add_request_context_no_context(self):
        result = add_request_context(MagicMock(), "info", {"event": "test"})

        assert "request_id" not in result
        assert "user_id" not in result

    def test_service_name_extraction(self):
        result = add_service_context(
            MagicMock(), "info", {"logger": "services.booking.api.bookings"}
        )
        assert result["service"] == "booking"

        for name in ["services", "other.package.module", ""]:
            result = add_service_context(MagicMock(), "info", {"logger": name})
            assert "service" not in result

    def test_explicit_service_is_kept(self):
        result = add_service_context(
            MagicMock(),
            "info",
            {"logger": "services.booking.main", "service": "custom"},
        )

        assert result["service"] == "custom"

    def test_text_renderer(self):
        renderer = EnhancedTextRenderer("booking")
        event_dict = {
            "timestamp": "2025-01-06T08:00:00Z",
            "level": "warning",
            "logger": "services.booking.services.side_effects",
            "event": "Side effect failed",
            "request_id": "abcdef-1234",
            "user_id": "owner-1",
            "effect": "guest_confirmation",
            "details": {"attempt": 1},
        }

        result = renderer(MagicMock(), "warning", event_dict)

        assert result.startswith("2025-01-06T08:00:00Z [booking] [WARNING] [1234]")
        assert "booking.services.side_effects - Side effect failed" in result
        assert "| User: owner-1" in result
        assert "effect=guest_confirmation" in result
        assert "details={'attempt': 1}" in result

    def test_text_renderer_truncates_long_values(self):
        renderer = EnhancedTextRenderer("booking")

        result = renderer(
            MagicMock(),
            "info",
            {"event": "big", "payload": ["x" * 500]},
        )

        assert len(result) < 300

    def test_setup_service_logging_formats(self):
        for log_format in ("text", "json"):
            setup_service_logging(
                service_name="booking", log_level="DEBUG", log_format=log_format
            )
            request_id_var.set("req-123")

            get_logger("services.booking.main").info("Test message", field="value")

            assert logging.getLogger().level == logging.DEBUG


class TestRequestLoggingMiddleware:
    def setup_method(self):
        app = FastAPI()
        app.middleware("http")(create_request_logging_middleware())

        @app.get("/whoami")
        def whoami():
            return {"request_id": request_id_var.get(), "user_id": user_id_var.get()}

        self.client = TestClient(app)

    def test_request_id_is_propagated(self):
        response = self.client.get(
            "/whoami", headers={"X-Request-Id": "req-abc", "X-User-Id": "owner-1"}
        )

        assert response.headers["X-Request-Id"] == "req-abc"
        assert response.json() == {"request_id": "req-abc", "user_id": "owner-1"}

    def test_request_id_is_generated(self):
        response = self.client.get("/whoami")

        request_id = response.headers["X-Request-Id"]
        assert len(request_id) == 36
        assert response.json()["user_id"] == "anonymous"
