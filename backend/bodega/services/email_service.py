"""Bodega WMS - Outbound email over an HTTP mail API (SendGrid v3 payload)."""
import logging

import httpx

from bodega.config import get_settings
from bodega.core.exceptions import EmailDeliveryError

logger = logging.getLogger(__name__)


def _split_addresses(value: str | list[str] | None) -> list[str]:
    if not value:
        return []
    if isinstance(value, str):
        value = value.replace(";", ",").split(",")
    return [addr.strip() for addr in value if addr and addr.strip()]


class EmailService:

    def __init__(
        self,
        api_url: str,
        api_key: str | None,
        sender: str,
        timeout: float = 15.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.api_url = api_url
        self.api_key = api_key
        self.sender = sender
        self.timeout = timeout
        self._transport = transport

    @classmethod
    def from_settings(cls) -> "EmailService":
        settings = get_settings()
        return cls(settings.EMAIL_API_URL, settings.EMAIL_API_KEY, settings.EMAIL_FROM, settings.HTTP_TIMEOUT_SECONDS)

    def build_payload(self, to: list[str], cc: list[str], subject: str, html: str) -> dict:
        personalization: dict = {"to": [{"email": addr} for addr in to]}
        cc = [addr for addr in cc if addr not in to]
        if cc:
            personalization["cc"] = [{"email": addr} for addr in cc]
        return {
            "personalizations": [personalization],
            "from": {"email": self.sender},
            "subject": subject,
            "content": [{"type": "text/html", "value": html}],
        }

    async def send_email(
        self,
        to: str | list[str],
        subject: str,
        html: str,
        cc: str | list[str] | None = None,
    ) -> None:
        """Raises EmailDeliveryError; the caller decides what the operator sees."""
        recipients = _split_addresses(to)
        if not recipients:
            raise EmailDeliveryError("No hay destinatarios para el correo.")
        if not self.api_key:
            raise EmailDeliveryError("El servicio de correo no está configurado.")

        payload = self.build_payload(recipients, _split_addresses(cc), subject, html)
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(
                    self.api_url,
                    json=payload,
                    headers={"Authorization": f"Bearer {self.api_key}"},
                )
        except httpx.RequestError as exc:
            logger.error("Email API unreachable: %s", exc)
            raise EmailDeliveryError("No se pudo contactar el servicio de correo.") from exc

        if not 200 <= response.status_code < 300:
            logger.error("Email API returned %s: %s", response.status_code, response.text[:500])
            raise EmailDeliveryError(
                f"El servicio de correo respondió con estado {response.status_code}.",
                status=response.status_code,
            )
        logger.info("Email '%s' sent to %s", subject, ", ".join(recipients))
