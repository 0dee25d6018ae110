"""Email relay client used to notify admins.

    POST {notifier_url}/v1/messages
    {"from": "...", "to": "...", "subject": "...", "body": "..."}
    → 200 / 202

Any failure raises NotificationFailureError for that one recipient; the
escalation layer decides what a failure means for the run.
"""

import httpx

from agent_governance_monitor.errors import NotificationFailureError
from agent_governance_monitor.observability import get_logger

logger = get_logger(__name__)


class HttpEmailNotifier:
    """Sends plain-text notifications through the email relay.

    Args:
        notifier_url: Relay base URL.
        from_address: Sender address.
        api_key: Optional bearer token.
        timeout_seconds: Timeout for one delivery.
        transport: Optional httpx transport, used by tests.
    """

    def __init__(
        self,
        notifier_url: str,
        from_address: str,
        api_key: str = "",
        timeout_seconds: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._notifier_url = notifier_url.rstrip("/")
        self._from_address = from_address
        self._timeout_seconds = timeout_seconds
        self._transport = transport
        self._headers = {"Authorization": f"Bearer {api_key}"} if api_key else {}

    async def send(self, to: str, subject: str, body: str) -> None:
        """Deliver one notification.

        Args:
            to: Recipient address.
            subject: Subject line.
            body: Plain-text body.

        Raises:
            NotificationFailureError: If the relay is unreachable or rejects the message.
        """
        url = f"{self._notifier_url}/v1/messages"
        payload = {"from": self._from_address, "to": to, "subject": subject, "body": body}

        try:
            async with httpx.AsyncClient(
                timeout=self._timeout_seconds,
                headers=self._headers,
                transport=self._transport,
            ) as client:
                response = await client.post(url, json=payload)
        except httpx.RequestError as exc:
            raise NotificationFailureError(f"Notification relay error: {exc}", recipient=to)

        if response.status_code not in (200, 202):
            raise NotificationFailureError(
                f"Notification relay rejected message with status {response.status_code}",
                recipient=to,
            )
        logger.info("Notification delivered", recipient=to, subject=subject)
