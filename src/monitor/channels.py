"""Notification channels — SNS and Discord delivery."""

from __future__ import annotations

import abc
import asyncio
import json
from typing import Any

import aiohttp
import boto3
import structlog

from src.core.config import AwsConfig, DiscordConfig, SnsConfig
from src.monitor.types import AlertMessage, AlertSeverity

logger = structlog.get_logger(__name__)

# Discord embed colours keyed by severity.
_DISCORD_COLORS: dict[AlertSeverity, int] = {
    AlertSeverity.LOW: 0x2ECC71,       # green
    AlertSeverity.MEDIUM: 0xF1C40F,    # yellow
    AlertSeverity.HIGH: 0xF39C12,      # orange
    AlertSeverity.CRITICAL: 0xE74C3C,  # red
}

# SNS rejects subjects longer than this.
_SNS_SUBJECT_MAX = 100


class NotificationChannel(abc.ABC):
    """Base class for alert delivery channels."""

    @abc.abstractmethod
    async def send(self, msg: AlertMessage) -> bool:
        """Send an alert message. Returns True on success."""

    @abc.abstractmethod
    async def close(self) -> None:
        """Release resources (HTTP sessions, etc.)."""


class SnsChannel(NotificationChannel):
    """Publishes alerts to an SNS topic as a subject plus a JSON document."""

    def __init__(
        self,
        config: SnsConfig,
        aws: AwsConfig | None = None,
        client: Any | None = None,
    ) -> None:
        self._topic_arn = config.topic_arn
        self._aws = aws or AwsConfig()
        self._client = client

    def _get_client(self) -> Any:
        if self._client is None:
            self._client = boto3.client(
                "sns",
                region_name=self._aws.region,
                endpoint_url=self._aws.endpoint_url,
            )
        return self._client

    async def send(self, msg: AlertMessage) -> bool:
        document = msg.raw or {
            "title": msg.title,
            "severity": msg.severity.name,
            "body": msg.body,
            "fields": msg.fields,
        }
        try:
            await asyncio.to_thread(
                self._get_client().publish,
                TopicArn=self._topic_arn,
                Subject=msg.title[:_SNS_SUBJECT_MAX],
                Message=json.dumps(document, indent=2, default=str),
            )
        except Exception:
            logger.exception("sns_send_error", topic_arn=self._topic_arn, title=msg.title)
            return False
        return True

    async def close(self) -> None:
        self._client = None


class DiscordChannel(NotificationChannel):
    """Delivers alerts via a Discord webhook with colour-coded embeds."""

    def __init__(self, config: DiscordConfig) -> None:
        self._webhook_url = config.webhook_url.get_secret_value()
        self._session: aiohttp.ClientSession | None = None

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
        return self._session

    async def send(self, msg: AlertMessage) -> bool:
        embed: dict[str, Any] = {
            "title": f"[{msg.severity.name}] {msg.title}",
            "color": _DISCORD_COLORS.get(msg.severity, 0x95A5A6),
        }
        if msg.body:
            embed["description"] = msg.body
        if msg.fields:
            embed["fields"] = [
                {"name": k, "value": v, "inline": True} for k, v in msg.fields.items()
            ]

        try:
            session = self._get_session()
            async with session.post(self._webhook_url, json={"embeds": [embed]}) as resp:
                if resp.status in (200, 204):
                    return True
                body = await resp.text()
                logger.warning("discord_send_failed", status=resp.status, body=body[:200])
                return False
        except Exception:
            logger.exception("discord_send_error")
            return False

    async def close(self) -> None:
        if self._session and not self._session.closed:
            await self._session.close()
            self._session = None
