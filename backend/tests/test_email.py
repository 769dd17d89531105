"""
Unit tests for outbound email delivery.
"""
import smtplib
import pytest
from unittest.mock import patch, MagicMock

from utils.email import send_email, send_password_reset_email


@pytest.fixture
def smtp_server():
    server = MagicMock()
    server.__enter__.return_value = server
    return server


@pytest.fixture
def smtp_settings():
    with patch("utils.email.settings.SMTP_HOST", "smtp.example.com"), \
         patch("utils.email.settings.SMTP_FROM_EMAIL", "no-reply@example.com"), \
         patch("utils.email.settings.SMTP_USERNAME", "mailer"), \
         patch("utils.email.settings.SMTP_PASSWORD", "secret"):
        yield


@pytest.mark.unit
class TestSendEmail:

    def test_not_configured_returns_false(self):
        with patch("utils.email.smtplib.SMTP") as smtp:
            assert send_email("Subject", "a@example.com", "text", "<p>html</p>") is False
        smtp.assert_not_called()

    def test_starttls_and_login(self, smtp_settings, smtp_server):
        with patch("utils.email.smtplib.SMTP", return_value=smtp_server):
            assert send_email("Subject", "a@example.com", "text", "<p>html</p>") is True
        smtp_server.starttls.assert_called_once()
        smtp_server.login.assert_called_once_with("mailer", "secret")
        smtp_server.__exit__.assert_called_once()
        message = smtp_server.send_message.call_args.args[0]
        assert message["To"] == "a@example.com"
        assert message["From"] == "Eco Pulse <no-reply@example.com>"

    def test_smtp_failure_returns_false(self, smtp_settings):
        with patch("utils.email.smtplib.SMTP", side_effect=smtplib.SMTPConnectError(421, "busy")):
            assert send_email("Subject", "a@example.com", "text", "<p>html</p>") is False

    def test_reset_email_contains_code_and_expiry(self, smtp_settings):
        with patch("utils.email.send_email", return_value=True) as send:
            assert send_password_reset_email("a@example.com", "482913") is True
        subject, to_email, text, html = send.call_args.args
        assert to_email == "a@example.com"
        assert "482913" in text and "482913" in html
        assert "10 minutes" in text

    def test_login_failure_closes_connection(self, smtp_settings, smtp_server):
        smtp_server.login.side_effect = smtplib.SMTPAuthenticationError(535, b"bad credentials")
        with patch("utils.email.smtplib.SMTP", return_value=smtp_server):
            assert send_email("Subject", "a@example.com", "text", "<p>html</p>") is False
        smtp_server.__exit__.assert_called_once()
        smtp_server.send_message.assert_not_called()

    def test_starttls_failure_closes_connection(self, smtp_settings, smtp_server):
        smtp_server.starttls.side_effect = smtplib.SMTPNotSupportedError("STARTTLS extension not supported")
        with patch("utils.email.smtplib.SMTP", return_value=smtp_server):
            assert send_email("Subject", "a@example.com", "text", "<p>html</p>") is False
        smtp_server.__exit__.assert_called_once()
        smtp_server.login.assert_not_called()
