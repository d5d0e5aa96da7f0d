"""Tests for the SMTP email service and order confirmation content."""

import smtplib
from unittest.mock import MagicMock, patch

from app.core.email import EmailService, send_order_confirmation

SNAPSHOT = {
    "id": 12,
    "order_number": "TTB17000000000001234",
    "delivery_name": "Asha Patel",
    "delivery_email": "asha@example.com",
    "total": "157.50",
    "address": "12 CG Road, Ahmedabad - 380009",
    "items": [{"item_name": "Regular Tummy Tikki Burger", "quantity": 2, "line_subtotal": "150.00"}],
}


class TestEmailService:
    def test_unconfigured_skips(self):
        assert EmailService().send("a@example.com", "Hi", "Body") is False

    @patch("app.core.email.smtplib.SMTP_SSL")
    def test_sends_over_ssl(self, smtp_ssl):
        server = MagicMock()
        smtp_ssl.return_value.__enter__.return_value = server
        service = EmailService(smtp_host="smtp.example.com", username="orders@example.com", password="pw")

        assert service.send("asha@example.com", "Hello", "Body", html_body="<p>Body</p>") is True
        server.login.assert_called_once_with("orders@example.com", "pw")
        server.sendmail.assert_called_once()
        assert server.sendmail.call_args.args[1] == "asha@example.com"

    @patch("app.core.email.smtplib.SMTP_SSL")
    def test_smtp_failure_is_logged_not_raised(self, smtp_ssl):
        smtp_ssl.return_value.__enter__.side_effect = smtplib.SMTPAuthenticationError(535, b"bad auth")
        service = EmailService(smtp_host="smtp.example.com", username="orders@example.com", password="pw")
        assert service.send("asha@example.com", "Hello", "Body") is False


class TestOrderConfirmation:
    def test_content(self):
        mailer = MagicMock(spec=EmailService)
        mailer.send.return_value = True

        assert send_order_confirmation(mailer, SNAPSHOT) is True
        kwargs = mailer.send.call_args.kwargs
        assert kwargs["to"] == "asha@example.com"
        assert kwargs["subject"] == "Order Confirmed! #TTB17000000000001234"
        assert "2x Regular Tummy Tikki Burger" in kwargs["body"]
        assert "Rs 157.50" in kwargs["body"]
        assert "/orders/12" in kwargs["body"]

    def test_no_address_no_email(self):
        mailer = MagicMock(spec=EmailService)
        assert send_order_confirmation(mailer, dict(SNAPSHOT, delivery_email=None)) is False
        mailer.send.assert_not_called()
