"""
Unit tests for the SendGrid email client.
"""
import logging
import pytest
from unittest.mock import patch

from src.core.notifications import EmailClient, EmailDeliveryError


class TestEmailClient:

    @pytest.mark.asyncio
    async def test_mock_mode_logs_instead_of_sending(self, caplog):
        client = EmailClient(api_key="")
        assert client.sg is None

        with caplog.at_level(logging.INFO, logger="src.core.notifications"):
            await client.send(["ops@example.com"], "Escrowise Report: users", "<p>hi</p>")
        assert "[MOCK EMAIL] To: ops@example.com | Subject: Escrowise Report: users" in caplog.text

    @pytest.mark.asyncio
    async def test_no_recipients_rejected(self):
        client = EmailClient(api_key="")
        with pytest.raises(EmailDeliveryError):
            await client.send(" , ", "subject", "<p></p>")

    @pytest.mark.asyncio
    async def test_sends_to_every_recipient(self):
        client = EmailClient(api_key="SG.test-key", from_email="reports@example.com")

        with patch.object(EmailClient, "_post", return_value=202) as mock_post:
            await client.send("a@example.com, b@example.com", "Escrowise Report: financial", "<p>ok</p>")

        mail = mock_post.call_args.args[0].get()
        recipients = [to["email"] for to in mail["personalizations"][0]["to"]]
        assert recipients == ["a@example.com", "b@example.com"]
        assert mail["subject"] == "Escrowise Report: financial"
        assert mail["content"][0] == {"type": "text/html", "value": "<p>ok</p>"}
        assert mail["from"]["email"] == "reports@example.com"

    @pytest.mark.asyncio
    async def test_non_2xx_status_raises(self):
        client = EmailClient(api_key="SG.test-key")

        with patch.object(EmailClient, "_post", return_value=500):
            with pytest.raises(EmailDeliveryError) as exc_info:
                await client.send(["ops@example.com"], "subject", "<p></p>")
        assert exc_info.value.status_code == 500

    @pytest.mark.asyncio
    async def test_transport_error_raises(self):
        client = EmailClient(api_key="SG.test-key")

        with patch.object(EmailClient, "_post", side_effect=ConnectionError("unreachable")):
            with pytest.raises(EmailDeliveryError) as exc_info:
                await client.send(["ops@example.com"], "subject", "<p></p>")
        assert "unreachable" in str(exc_info.value)

    def test_sendgrid_requests_carry_http_timeout(self):
        client = EmailClient(api_key="SG.test-key")
        assert client.sg.client.timeout == 30
