"""Webhook reporter: POSTs the sanitized payload as JSON over HTTP."""

import logging
from typing import Mapping

import httpx

from bugreport.events.models import ReportEvent
from bugreport.reporters.base import BaseReporter

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10.0


class WebhookReporter(BaseReporter):
    """Delivers to an HTTP endpoint. Any non-2xx status or transport error is a failure."""

    def __init__(
        self,
        url: str,
        *,
        headers: Mapping[str, str] | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.url = url
        self.headers = {"Content-Type": "application/json", **dict(headers or {})}
        self.timeout = timeout
        self._transport = transport

    async def send(self, event: ReportEvent) -> bool:
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(
                    self.url, content=event.to_json().encode("utf-8"), headers=self.headers
                )
                response.raise_for_status()
        except httpx.HTTPStatusError as e:
            logger.warning(
                "Webhook rejected event %s: HTTP %s", event.id, e.response.status_code
            )
            return False
        except httpx.HTTPError as e:
            logger.warning("Webhook delivery failed for event %s: %s", event.id, e)
            return False
        return True
