"""Operator alerts for failed runs, delivered to a Discord webhook.

Delivery never raises: a run's outcome is already recorded in the ledger
before an alert is attempted, and an unreachable webhook must not change it.
"""

import asyncio
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any
from uuid import UUID

import httpx

from movie_engine.config import settings
from movie_engine.logging import get_logger

logger = get_logger(__name__)

FIELD_LIMIT = 200
DESCRIPTION_LIMIT = 4000
MAX_FIELDS = 25


class AlertSeverity(StrEnum):
    WARNING = "warning"  # run halted but provider jobs may still finish
    ERROR = "error"


SEVERITY_COLORS = {
    AlertSeverity.WARNING: 0xF39C12,
    AlertSeverity.ERROR: 0xE74C3C,
}


@dataclass
class Alert:
    title: str
    message: str
    severity: AlertSeverity = AlertSeverity.ERROR
    context: dict[str, Any] = field(default_factory=dict)
    movie_id: UUID | None = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))


def _field(name: str, value: Any) -> dict[str, Any]:
    text = str(value)
    if len(text) > FIELD_LIMIT:
        text = text[: FIELD_LIMIT - 3] + "..."
    return {"name": name, "value": text, "inline": True}


class AlertingService:
    def __init__(self, discord_webhook_url: str | None = None) -> None:
        self.discord_webhook_url = discord_webhook_url or settings.alert_discord_webhook_url

    def build_payload(self, alert: Alert) -> dict[str, Any]:
        fields = []
        if alert.movie_id:
            fields.append(_field("Movie ID", f"`{alert.movie_id}`"))
        fields.extend(
            _field(key.replace("_", " ").title(), value) for key, value in alert.context.items()
        )
        return {
            "embeds": [
                {
                    "title": f"[{alert.severity.value.upper()}] {alert.title}",
                    "description": alert.message[:DESCRIPTION_LIMIT],
                    "color": SEVERITY_COLORS[alert.severity],
                    "fields": fields[:MAX_FIELDS],
                    "timestamp": alert.timestamp.isoformat(),
                    "footer": {"text": "Movie Engine"},
                }
            ]
        }

    async def _post(self, client: httpx.AsyncClient, payload: dict[str, Any]) -> httpx.Response:
        response = await client.post(self.discord_webhook_url, json=payload)
        if response.status_code == 429:
            # Discord sends retry_after in seconds; one retry is enough for an alert
            try:
                retry_after = float(response.json().get("retry_after", 1.0))
            except ValueError:
                retry_after = 1.0
            await asyncio.sleep(min(retry_after, 5.0))
            response = await client.post(self.discord_webhook_url, json=payload)
        return response

    async def send_alert(self, alert: Alert) -> bool:
        """Deliver an alert; returns whether Discord accepted it."""
        if not self.discord_webhook_url:
            logger.debug("alert_skipped_no_webhook", title=alert.title)
            return False

        try:
            async with httpx.AsyncClient(timeout=10.0) as client:
                response = await self._post(client, self.build_payload(alert))
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.error("discord_alert_failed", title=alert.title, error=str(e))
            return False

        logger.info("discord_alert_sent", severity=alert.severity.value, title=alert.title)
        return True


_alerting_service: AlertingService | None = None


def get_alerting_service() -> AlertingService:
    global _alerting_service
    if _alerting_service is None:
        _alerting_service = AlertingService()
    return _alerting_service


async def alert_pipeline_failure(
    movie_id: UUID, stage: str, error_message: str, recoverable: bool = False
) -> bool:
    """Alert that a run failed at ``stage``.

    Recoverable failures (provider jobs still pending) are sent as warnings
    since the provider may yet deliver the assets.
    """
    if not settings.alert_on_pipeline_failure:
        return False

    context: dict[str, Any] = {"stage": stage}
    if recoverable:
        context["recoverable"] = "provider jobs still pending"
    alert = Alert(
        title=f"Movie pipeline failed at {stage}",
        message=error_message,
        severity=AlertSeverity.WARNING if recoverable else AlertSeverity.ERROR,
        context=context,
        movie_id=movie_id,
    )
    return await get_alerting_service().send_alert(alert)
