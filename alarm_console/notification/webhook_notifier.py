from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Optional
from urllib.parse import urlparse

import requests
import structlog

from alarm_console.notification.base import NotificationEvent

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class WebhookConfig:
    """
    Configuration for webhook-based escalation notifications.

    Parameters
    ----------
    url
        Target webhook URL (http or https).
    timeout_s
        HTTP request timeout in seconds.
    verify_tls
        Whether to verify TLS certificates.
    auth_header
        Optional Authorization header value (e.g., Bearer token).

    Raises
    ------
    ValueError
        If ``url`` is not an absolute http(s) URL.
    """

    url: str
    timeout_s: float = 2.0
    verify_tls: bool = True
    auth_header: Optional[str] = None

    def __post_init__(self) -> None:
        parsed = urlparse(self.url)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ValueError(f"webhook url must be an absolute http(s) URL, got {self.url!r}")


class WebhookNotifier:
    """
    Delivers alarm notifications to a NOC webhook via HTTP POST.

    The JSON body is the event payload. The alarm id and event type travel
    as headers too, so receivers can route or deduplicate without parsing
    the body.

    Notes
    -----
    - This class performs side effects (network I/O).
    - HTTP errors are surfaced via ``raise_for_status()``; the notification
      worker owns retries.
    """

    def __init__(self, cfg: WebhookConfig):
        self._cfg = cfg

    def _headers(self, event: NotificationEvent) -> Dict[str, str]:
        headers = {"Content-Type": "application/json", "X-Alarm-Event": event.type}
        if event.source:
            headers["X-Alarm-Id"] = event.source
        if self._cfg.auth_header:
            headers["Authorization"] = self._cfg.auth_header
        return headers

    def notify(self, event: NotificationEvent) -> None:
        """
        Send a notification event to the configured webhook endpoint.

        Parameters
        ----------
        event
            Notification event whose payload will be sent as JSON.

        Raises
        ------
        requests.HTTPError
            If the HTTP response status indicates an error.
        requests.RequestException
            For network-related errors.
        """
        r = requests.post(
            self._cfg.url,
            json=event.payload,
            headers=self._headers(event),
            timeout=self._cfg.timeout_s,
            verify=self._cfg.verify_tls,
        )
        r.raise_for_status()
        logger.debug("webhook_delivered", alarm_id=event.source, status=r.status_code)
