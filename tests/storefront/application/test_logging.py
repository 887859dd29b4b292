"""Tests for logging configuration helpers."""

import structlog
from storefront.shared.session import Customer, UserSession
from storefront.utils.logging import get_log_level, mask_email, redact_card_numbers


class TestLogLevel:
    def test_test_environment_is_quiet(self, monkeypatch):
        monkeypatch.delenv("ENV", raising=False)
        monkeypatch.delenv("ENVIRONMENT", raising=False)
        monkeypatch.delenv("LOG_LEVEL", raising=False)
        monkeypatch.setenv("PROTEAN_ENV", "test")
        assert get_log_level() == "WARNING"

    def test_production_logs_info(self, monkeypatch):
        monkeypatch.delenv("LOG_LEVEL", raising=False)
        monkeypatch.setenv("ENVIRONMENT", "production")
        assert get_log_level() == "INFO"

    def test_explicit_level_wins(self, monkeypatch):
        monkeypatch.setenv("ENVIRONMENT", "production")
        monkeypatch.setenv("LOG_LEVEL", "DEBUG")
        assert get_log_level() == "DEBUG"


class TestCustomerContext:
    def test_sign_in_binds_and_sign_out_clears(self):
        session = UserSession()

        session.sign_in(Customer(user_id="user-001"))
        assert structlog.contextvars.get_contextvars()["user_id"] == "user-001"

        session.sign_out()
        assert "user_id" not in structlog.contextvars.get_contextvars()

    def test_customer_email_and_name_are_bound(self):
        session = UserSession()

        session.sign_in(Customer(user_id="user-001", email="ama@example.com", first_name="Ama", last_name="Mensah"))

        context = structlog.contextvars.get_contextvars()
        assert context["customer_email"] == "a***@example.com"
        assert context["customer_name"] == "Ama Mensah"

        session.sign_out()
        assert not {"customer_email", "customer_name"} & set(structlog.contextvars.get_contextvars())

    def test_sign_out_keeps_unrelated_context(self):
        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(request_id="req-1")
        session = UserSession()
        session.sign_in(Customer(user_id="user-001"))

        session.sign_out()

        assert structlog.contextvars.get_contextvars() == {"request_id": "req-1"}
        structlog.contextvars.clear_contextvars()


class TestRedaction:
    def test_mask_email(self):
        assert mask_email("kofi.boateng@example.com") == "k***@example.com"
        assert mask_email(None) is None
        assert mask_email("not-an-email") == "not-an-email"

    def test_card_numbers_keep_last_four_digits(self):
        event = {"event": "Card rejected", "card": "4242 4242 4242 4242", "phone": "+233 20 000 0000", "amount": 2327}

        redacted = redact_card_numbers(None, "warning", event)

        assert redacted["card"] == "**** 4242"
        assert redacted["phone"] == "+233 20 000 0000"
        assert redacted["amount"] == 2327
