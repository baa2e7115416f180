# src/meu_schedule/connectors/matrix_notifier.py

from __future__ import annotations

import logging

from nio import AsyncClient, RoomSendError

from ..core.errors import NotificationUnavailable
from ..core.ports import PermissionState

logger = logging.getLogger(__name__)


class MatrixNotifier:
    """
    Delivers reminders as m.text messages to one Matrix room.

    Permission is "granted" once a client with an access token and a target room are
    attached; attach() is called by the runner after create_matrix_client().
    """

    def __init__(self, room_id: str | None = None, client: AsyncClient | None = None) -> None:
        self._room_id = (room_id or "").strip()
        self._client = client

    def attach(self, client: AsyncClient | None) -> None:
        self._client = client

    @property
    def client(self) -> AsyncClient | None:
        return self._client

    @property
    def permission_state(self) -> PermissionState:
        if not self._room_id:
            return PermissionState.DENIED
        if self._client is None or not getattr(self._client, "access_token", None):
            return PermissionState.UNDETERMINED
        return PermissionState.GRANTED

    def request_permission(self) -> PermissionState:
        # Logging in is the runner's job; nothing to prompt for here.
        return self.permission_state

    async def fire(self, title: str, body: str) -> None:
        if self.permission_state != PermissionState.GRANTED or self._client is None:
            raise NotificationUnavailable("Matrix client is not ready")

        text = f"{title}\n{body}" if body else title
        resp = await self._client.room_send(
            room_id=self._room_id,
            message_type="m.room.message",
            content={"msgtype": "m.text", "body": text},
            ignore_unverified_devices=True,
        )
        if isinstance(resp, RoomSendError):
            logger.error("Matrix reminder send failed room=%s: %s", self._room_id, resp.message)
            return
        logger.info("Reminder sent to Matrix room %s", self._room_id)

    async def close(self) -> None:
        if self._client is not None:
            await self._client.close()
            self._client = None
