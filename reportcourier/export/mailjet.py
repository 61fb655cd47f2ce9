"""Mailjet v3.1 send API client."""

from __future__ import annotations

import typing as typ

import httpx

from reportcourier.export.errors import MailjetError

if typ.TYPE_CHECKING:
    from reportcourier.export.config import MailjetConfig
    from reportcourier.export.email import EmailMessage

_HTTP_ERROR_STATUS_THRESHOLD = 400


def build_send_payload(
    message: EmailMessage, *, sender_email: str, sender_name: str
) -> dict[str, object]:
    """Translate *message* into the Mailjet ``Messages`` envelope."""
    entry: dict[str, object] = {
        "From": {"Email": sender_email, "Name": sender_name},
        "To": [{"Email": message.to_email, "Name": message.to_name}],
        "Subject": message.subject,
        "HTMLPart": message.html_body,
        "TextPart": message.text_body,
    }
    if message.inline_images:
        entry["InlinedAttachments"] = [
            {
                "ContentType": image.content_type,
                "Filename": image.filename,
                "ContentID": image.content_id,
                "Base64Content": image.base64_content,
            }
            for image in message.inline_images
        ]
    return {"Messages": [entry]}


class MailjetClient:
    """Send rendered report emails through Mailjet.

    Parameters
    ----------
    config
        Mailjet credentials and endpoint.
    sender_email
        ``From`` address.
    sender_name
        ``From`` display name.
    http_client
        Optional httpx.AsyncClient for testing. If not provided, the
        instance creates and owns its own client.

    """

    def __init__(
        self,
        config: MailjetConfig,
        *,
        sender_email: str,
        sender_name: str,
        http_client: httpx.AsyncClient | None = None,
        timeout_s: float = 30.0,
    ) -> None:
        """Initialise the client with credentials and sender identity."""
        self._config = config
        self._sender_email = sender_email
        self._sender_name = sender_name
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(timeout=timeout_s)

    async def aclose(self) -> None:
        """Close any owned HTTP resources."""
        if self._owns_client:
            await self._client.aclose()

    async def send(self, message: EmailMessage) -> None:
        """Send one message.

        Raises
        ------
        MailjetError
            If the request cannot be delivered or Mailjet rejects it.

        """
        payload = build_send_payload(
            message, sender_email=self._sender_email, sender_name=self._sender_name
        )
        try:
            response = await self._client.post(
                self._config.endpoint,
                json=payload,
                auth=(self._config.api_key, self._config.secret_key),
            )
        except httpx.RequestError as exc:
            raise MailjetError.network_error(str(exc) or type(exc).__name__) from exc
        if response.status_code >= _HTTP_ERROR_STATUS_THRESHOLD:
            raise MailjetError.http_error(response.status_code, response.text)
