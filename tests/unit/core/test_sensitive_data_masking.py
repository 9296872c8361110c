import pytest

from config.settings import mask_sensitive_data

pytestmark = pytest.mark.unit


class TestSensitiveDataMasking:
    def test_email_masked(self):
        event_dict = {"event": "test", "contact": "amaka@example.com"}
        result = mask_sensitive_data(None, None, event_dict)
        assert "amaka@example.com" not in result["contact"]
        assert "***MASKED***" in result["contact"]

    def test_phone_masked(self):
        event_dict = {"event": "test", "phone": "+234 803 000 0001"}
        result = mask_sensitive_data(None, None, event_dict)
        assert "803 000 0001" not in result["phone"]
        assert "***MASKED***" in result["phone"]

    def test_password_masked(self):
        event_dict = {"event": "test", "data": "password='s3cret123'"}
        result = mask_sensitive_data(None, None, event_dict)
        assert "s3cret123" not in result["data"]
        assert "***MASKED***" in result["data"]

    def test_token_masked(self):
        event_dict = {"event": "test", "header": "token=abc123xyz"}
        result = mask_sensitive_data(None, None, event_dict)
        assert "abc123xyz" not in result["header"]

    def test_identifiers_unchanged(self):
        event_dict = {
            "event": "shipment.status_updated",
            "batch_number": "BCH-2024-001",
            "order_number": "NGE123456789",
        }
        result = mask_sensitive_data(None, None, event_dict)
        assert result["batch_number"] == "BCH-2024-001"
        assert result["order_number"] == "NGE123456789"
        assert result["event"] == "shipment.status_updated"
