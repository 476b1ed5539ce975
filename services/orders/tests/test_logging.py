import json
import logging

from shared.core.logging_config import SecretRedactionFilter, StructuredFormatter, set_request_context


def _record(msg, extra_fields=None):
    record = logging.LogRecord("orders", logging.INFO, __file__, 1, msg, None, None)
    if extra_fields is not None:
        record.extra_fields = extra_fields
    return record


def test_signatures_and_secrets_are_redacted():
    record = _record('webhook signature=abc123 "password": "hunter2"', {"razorpay_signature": "abc", "fixed": 3})
    SecretRedactionFilter().filter(record)
    assert "abc123" not in record.getMessage()
    assert "hunter2" not in record.getMessage()
    assert record.extra_fields == {"razorpay_signature": "***REDACTED***", "fixed": 3}


def test_formatter_emits_json_with_order_context():
    set_request_context(request_id="req-9", order_id="order-1")
    line = StructuredFormatter().format(_record("Order moved", {"to_status": "shipped"}))
    body = json.loads(line)
    assert body["message"] == "Order moved"
    assert body["trace"]["order_id"] == "order-1"
    assert body["custom"] == {"to_status": "shipped"}
