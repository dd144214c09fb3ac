# src/anytask/connectors/matrix_notifier.py

from __future__ import annotations

import contextlib
import logging

from nio import AsyncClient, RoomSendResponse, SyncResponse

from .matrix_client import create_matrix_client

logger = logging.getLogger(__name__)


class MatrixNotifier:
    """
    OutboundMessenger that posts reminders into a Matrix room.

    The client is created lazily on first send. Without a configured room the
    first joined room is used.
    """

    def __init__(self, settings) -> None:
        self._settings = settings
        self._client: AsyncClient | None = None
        self._default_room = (getattr(settings, "matrix_room_id", "") or "").strip()
        self._synced = False
        if not self._default_room:
            logger.warning("ANYTASK_MATRIX_ROOM_ID is not set; reminders go to the first joined room.")

    async def _get_client(self) -> AsyncClient:
        if self._client is None:
            self._client = await create_matrix_client(self._settings)
            if self._client is None:
                raise RuntimeError("Matrix client is not available")
        return self._client

    async def send_text(self, *, text: str, room_id: str | None = None) -> None:
        client = await self._get_client()

        target = (room_id or self._default_room or "").strip()
        if not target:
            target = await self._first_joined_room(client)
        if not target:
            raise RuntimeError("No Matrix room to deliver reminders to")

        resp = await client.room_send(
            room_id=target,
            message_type="m.room.message",
            content={"msgtype": "m.text", "body": text},
            ignore_unverified_devices=True,
        )
        if not isinstance(resp, RoomSendResponse):
            raise RuntimeError(f"Matrix room_send failed: {resp!r}")
        logger.debug("Reminder posted to %s", target)

    async def _first_joined_room(self, client: AsyncClient) -> str:
        """
        A restored session has not synced, so client.rooms starts empty; one
        full-state sync fills it.
        """
        if not client.rooms and not self._synced:
            resp = await client.sync(timeout=0, full_state=True)
            if not isinstance(resp, SyncResponse):
                raise RuntimeError(f"Matrix sync failed: {resp!r}")
            self._synced = True
        return next(iter(client.rooms), "")

    async def close(self) -> None:
        if self._client is not None:
            with contextlib.suppress(Exception):
                await self._client.close()
            self._client = None
