"""
Tests for structured logging infrastructure.

Tests:
- JSON and console output configuration
- Request context propagation
- PII redaction
- Correlation IDs on HTTP requests
- Operation context timing and storage metrics
"""

import logging

import pytest
from prometheus_client import REGISTRY

from crm.observability.logging import (
    OperationContext,
    RequestContext,
    add_exception_info,
    configure_logging,
    get_logger,
    redact_sensitive_fields,
    request_id_var,
    trace_id_var,
)
from crm.observability.logging_middleware import RequestLoggingFilter
from crm.observability.middleware import classify_error, normalize_endpoint


def test_configure_logging_json_output():
    """JSON logging can be configured."""
    configure_logging(log_level="INFO", json_output=True, colorized=False)

    logger = get_logger("test")
    logger.info("Test message", test_field="value")


def test_configure_logging_console_output():
    """Console logging can be configured."""
    configure_logging(log_level="INFO", json_output=False, colorized=False)

    logger = get_logger("test")
    logger.info("Test message", test_field="value")


def test_request_context():
    with RequestContext(request_id="req_123", trace_id="trace_456"):
        assert request_id_var.get() == "req_123"
        assert trace_id_var.get() == "trace_456"

    # Context is reset on exit
    assert request_id_var.get() is None
    assert trace_id_var.get() is None


def test_request_context_generates_ids():
    with RequestContext() as ctx:
        assert ctx.request_id.startswith("req_")
        assert ctx.trace_id.startswith("trace_")
        assert request_id_var.get() == ctx.request_id


def test_nested_request_context_restores_outer():
    with RequestContext(request_id="req_outer"):
        with RequestContext(request_id="req_inner"):
            assert request_id_var.get() == "req_inner"
        assert request_id_var.get() == "req_outer"


class TestRedaction:
    def test_email_keeps_domain_only(self):
        event = redact_sensitive_fields(None, "info", {"email": "ada@example.com"})

        assert event["email"] == "***@example.com"

    def test_phone_keeps_last_four(self):
        event = redact_sensitive_fields(None, "info", {"phone": "555-867-5309"})

        assert event["phone"] == "***5309"

    def test_credentials_redacted(self):
        event = redact_sensitive_fields(
            None,
            "info",
            {"password": "hunter2", "postgres_url": "postgresql://u:p@h/db", "name": "Ada"},
        )

        assert event["password"] == "***REDACTED***"
        assert event["postgres_url"] == "***REDACTED***"
        assert event["name"] == "Ada"


def test_add_exception_info():
    try:
        raise ValueError("boom")
    except ValueError as e:
        event = add_exception_info(None, "error", {"exc_info": (type(e), e, e.__traceback__)})

    assert event["exception_type"] == "ValueError"
    assert event["exception_message"] == "boom"


class TestOperationContext:
    def _sample(self, backend: str, operation: str, success: str) -> float:
        value = REGISTRY.get_sample_value(
            "crm_storage_operations_total",
            {"backend": backend, "operation": operation, "success": success},
        )
        return value or 0.0

    def test_success_is_counted(self):
        before = self._sample("unit", "lookup", "true")

        with OperationContext("lookup", backend="unit", customer_id=1):
            pass

        assert self._sample("unit", "lookup", "true") == before + 1

    def test_failure_is_counted_and_propagates(self):
        before = self._sample("unit", "explode", "false")

        with pytest.raises(RuntimeError):
            with OperationContext("explode", backend="unit"):
                raise RuntimeError("storage down")

        assert self._sample("unit", "explode", "false") == before + 1

    def test_without_backend_records_nothing(self):
        with OperationContext("plain"):
            pass

        assert REGISTRY.get_sample_value(
            "crm_storage_operations_total",
            {"backend": "None", "operation": "plain", "success": "true"},
        ) is None


class TestHttpLogging:
    def test_request_lines_are_logged(self, client, caplog):
        with caplog.at_level(logging.INFO):
            client.get("/api/customers", headers={"X-Request-ID": "req_logged"})

        assert "HTTP request completed" in caplog.text
        assert "req_logged" in caplog.text

    def test_health_checks_are_not_logged(self, client, caplog):
        with caplog.at_level(logging.INFO):
            client.get("/api/health")

        assert "HTTP request started" not in caplog.text

    def test_customer_email_is_redacted_in_logs(self, client, caplog):
        with caplog.at_level(logging.INFO):
            client.post("/api/customers", json={"name": "Ada", "email": "ada.secret@example.com"})

        assert "Customer created" in caplog.text
        assert "ada.secret@example.com" not in caplog.text
        assert "***@example.com" in caplog.text


def test_request_logging_filter():
    assert RequestLoggingFilter.should_log("/api/customers") is True
    assert RequestLoggingFilter.should_log("/api/health") is False
    assert RequestLoggingFilter.should_log("/metrics") is False


def test_normalize_endpoint():
    assert normalize_endpoint("/api/customers/42") == "/api/customers/{customer_id}"
    assert normalize_endpoint("/api/customers/42/addresses") == "/api/customers/{customer_id}/addresses"
    assert normalize_endpoint("/api/addresses/7") == "/api/addresses/{address_id}"
    assert normalize_endpoint("/api/customers") == "/api/customers"


def test_classify_error():
    from crm.errors import BadRequestError, NotFoundError
    from crm.storage import UniqueConstraintError

    assert classify_error(BadRequestError("x")) == "validation"
    assert classify_error(NotFoundError("x")) == "not_found"
    assert classify_error(UniqueConstraintError("x")) == "storage"
    assert classify_error(RuntimeError("x")) == "internal"
