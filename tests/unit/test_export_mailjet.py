"""Unit tests for the Mailjet client and payload builder."""

from __future__ import annotations

import base64
import typing as typ

import pytest

from reportcourier.export import EmailMessage, MailjetClient, MailjetError
from reportcourier.export.email import InlineImage
from reportcourier.export.mailjet import build_send_payload
from tests.helpers.http_fakes import FakeRemote

if typ.TYPE_CHECKING:
    from reportcourier.export import ExportConfig


def _message(to_email: str = "ana@acme.test", *, image: bool = False) -> EmailMessage:
    return EmailMessage(
        to_email=to_email,
        to_name="Ana",
        subject="Report: Weekly Sales",
        html_body="<p>hi</p>",
        text_body="hi",
        inline_images=(InlineImage.png(b"png"),) if image else (),
    )


class TestBuildSendPayload:
    """Tests for build_send_payload."""

    def test_link_only_message(self) -> None:
        """Messages without images carry no attachment list."""
        payload = build_send_payload(
            _message(), sender_email="reports@acme.test", sender_name="Acme"
        )
        assert payload == {
            "Messages": [
                {
                    "From": {"Email": "reports@acme.test", "Name": "Acme"},
                    "To": [{"Email": "ana@acme.test", "Name": "Ana"}],
                    "Subject": "Report: Weekly Sales",
                    "HTMLPart": "<p>hi</p>",
                    "TextPart": "hi",
                }
            ]
        }, "unexpected payload"

    def test_inline_image(self) -> None:
        """Inline images are sent with their content id."""
        payload = build_send_payload(
            _message(image=True), sender_email="r@acme.test", sender_name="Acme"
        )
        messages = typ.cast("list[dict[str, typ.Any]]", payload["Messages"])
        attachment = messages[0]["InlinedAttachments"][0]
        assert attachment["ContentID"] == "report-image", "wrong content id"
        assert attachment["ContentType"] == "image/png", "wrong content type"
        assert base64.b64decode(attachment["Base64Content"]) == b"png"


class TestMailjetClient:
    """Tests for MailjetClient.send."""

    @pytest.mark.asyncio
    async def test_send_uses_basic_auth(self, export_config: ExportConfig) -> None:
        """Messages are posted with the API key pair."""
        remote = FakeRemote()
        client = MailjetClient(
            export_config.mailjet,
            sender_email="r@acme.test",
            sender_name="Acme",
            http_client=remote.client(),
        )

        await client.send(_message())

        request = remote.requests[0]
        expected = base64.b64encode(b"mj-key:mj-secret").decode()
        assert request.headers["Authorization"] == f"Basic {expected}", "no auth"
        assert len(remote.sent_messages) == 1, "message not sent"

    @pytest.mark.asyncio
    async def test_rejected_send(self, export_config: ExportConfig) -> None:
        """HTTP errors raise MailjetError with the status code."""
        remote = FakeRemote(failing_emails={"ana@acme.test"})
        client = MailjetClient(
            export_config.mailjet,
            sender_email="r@acme.test",
            sender_name="Acme",
            http_client=remote.client(),
        )

        with pytest.raises(MailjetError, match="Mailjet send failed: 500") as excinfo:
            await client.send(_message())

        assert excinfo.value.status_code == 500, "status code not kept"
