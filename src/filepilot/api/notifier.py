"""Best-effort webhook notification when a file is shared.

Delivery is fire-and-forget: the share action never waits on it and a
failed POST is only logged.
"""
from __future__ import annotations

import os
import time
from pathlib import Path

import httpx

from ..observability import get_logger
from ..observability.metrics import SHARE_NOTIFICATIONS_TOTAL
from .config import FilePilotConfig
from .content_classifier import media_type_for
from .modules.share.schemas import ShareNotification

logger = get_logger(__name__)


def build_notification(token: str, path: Path, share_url: str) -> ShareNotification:
    try:
        file_size: int | None = os.stat(path).st_size
    except OSError:
        file_size = None
    return ShareNotification(
        file_id=token,
        file_name=path.name or 'unknown',
        file_path=str(path),
        share_url=share_url,
        file_size=file_size,
        mime_type=media_type_for(path),
        timestamp=int(time.time()),
    )


class ShareNotifier:
    """POST share notifications to the configured endpoint."""

    def __init__(
        self,
        config: FilePilotConfig,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.config = config
        self._transport = transport

    @property
    def enabled(self) -> bool:
        return self.config.notifications_active

    async def send(self, notification: ShareNotification) -> bool:
        """Deliver one notification. Returns True on a 2xx response.

        Never raises for delivery problems; they are logged and counted.
        """
        if not self.enabled:
            return False

        endpoint = self.config.notification_endpoint
        try:
            async with httpx.AsyncClient(
                timeout=self.config.notification_timeout,
                transport=self._transport,
            ) as client:
                response = await client.post(endpoint, json=notification.model_dump())
        except httpx.HTTPError as e:
            SHARE_NOTIFICATIONS_TOTAL.labels(outcome='error').inc()
            logger.warning(
                'share_notification_failed',
                endpoint=endpoint,
                file_id=notification.file_id,
                error=f'{type(e).__name__}: {e}',
            )
            return False

        if not response.is_success:
            SHARE_NOTIFICATIONS_TOTAL.labels(outcome='rejected').inc()
            logger.warning(
                'share_notification_failed',
                endpoint=endpoint,
                file_id=notification.file_id,
                status=response.status_code,
            )
            return False

        SHARE_NOTIFICATIONS_TOTAL.labels(outcome='delivered').inc()
        logger.info('share_notification_sent', endpoint=endpoint, file_id=notification.file_id)
        return True
