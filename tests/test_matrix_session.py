# tests/test_matrix_session.py

from __future__ import annotations

from pathlib import Path
from types import SimpleNamespace

import pytest
from nio import RoomSendResponse

from anytask.connectors import matrix_notifier
from anytask.connectors.matrix_client import MatrixSession, create_matrix_client, session_path
from anytask.connectors.matrix_notifier import MatrixNotifier


def test_session_round_trip(tmp_path: Path) -> None:
    path = tmp_path / "matrix_store" / "session.json"
    MatrixSession(access_token="tok", user_id="@bot:example.org", device_id="DEV").save(path)

    assert MatrixSession.load(path) == MatrixSession("tok", "@bot:example.org", "DEV")


def test_incomplete_or_broken_session_is_ignored(tmp_path: Path) -> None:
    path = tmp_path / "session.json"
    assert MatrixSession.load(path) is None

    path.write_text('{"access_token": "tok"}', "utf-8")
    assert MatrixSession.load(path) is None

    path.write_text("not json", "utf-8")
    assert MatrixSession.load(path) is None


@pytest.mark.asyncio
async def test_unconfigured_client_is_not_created(tmp_path: Path) -> None:
    settings = SimpleNamespace(matrix_homeserver="", matrix_user_id="", matrix_store_path=tmp_path)
    assert session_path(settings) == tmp_path / "session.json"
    assert await create_matrix_client(settings) is None


class FakeSync:
    pass


class FakeNioClient:
    """Restored session: no rooms known until the first sync."""

    def __init__(self) -> None:
        self.rooms: dict[str, object] = {}
        self.syncs = 0
        self.sent: list[tuple[str, str]] = []

    async def sync(self, *, timeout: int, full_state: bool):
        self.syncs += 1
        self.rooms["!home:example.org"] = object()
        return FakeSync()

    async def room_send(self, *, room_id, message_type, content, ignore_unverified_devices):
        self.sent.append((room_id, content["body"]))
        return RoomSendResponse(event_id="$1", room_id=room_id)


@pytest.mark.asyncio
async def test_notifier_syncs_once_to_find_a_room(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.setattr(matrix_notifier, "SyncResponse", FakeSync)
    notifier = MatrixNotifier(SimpleNamespace(matrix_room_id="", matrix_store_path=tmp_path))
    client = FakeNioClient()
    notifier._client = client

    await notifier.send_text(text="Home: Pay rent")
    await notifier.send_text(text="Home: Water plants")

    assert client.syncs == 1
    assert client.sent == [("!home:example.org", "Home: Pay rent"), ("!home:example.org", "Home: Water plants")]


@pytest.mark.asyncio
async def test_notifier_with_room_id_does_not_sync(tmp_path: Path) -> None:
    notifier = MatrixNotifier(SimpleNamespace(matrix_room_id="!ops:example.org", matrix_store_path=tmp_path))
    client = FakeNioClient()
    notifier._client = client

    await notifier.send_text(text="ping")

    assert client.syncs == 0
    assert client.sent == [("!ops:example.org", "ping")]
