# src/anytask/connectors/matrix_client.py

"""
matrix-nio client for reminder delivery.

Only sending is needed, so there is no sync loop and no E2EE store. The access
token is kept in <matrix_store_path>/session.json after the first password
login; that file holds credentials and lives under the local data dir.
"""

from __future__ import annotations

import json
import logging
from dataclasses import asdict, dataclass
from pathlib import Path

from nio import AsyncClient, AsyncClientConfig, LoginResponse

from ..widget.shared_defaults import atomic_write_json

logger = logging.getLogger(__name__)

SESSION_FILE = "session.json"


@dataclass(frozen=True, slots=True)
class MatrixSession:
    access_token: str
    user_id: str
    device_id: str

    @staticmethod
    def load(path: Path) -> MatrixSession | None:
        """None when the file is absent or incomplete; the caller falls back to a login."""
        if not path.exists():
            return None
        try:
            data = json.loads(path.read_text("utf-8"))
        except (OSError, ValueError):
            logger.warning("Unreadable Matrix session file %s", path, exc_info=True)
            return None
        if not isinstance(data, dict):
            return None
        values = [str(data.get(k) or "") for k in ("access_token", "user_id", "device_id")]
        if not all(values):
            logger.warning("Matrix session file %s is missing fields", path)
            return None
        return MatrixSession(*values)

    def save(self, path: Path) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        atomic_write_json(path, asdict(self))

    def apply(self, client: AsyncClient) -> None:
        client.access_token = self.access_token
        client.user_id = self.user_id
        client.device_id = self.device_id


def session_path(settings) -> Path:
    store_dir = Path(getattr(settings, "matrix_store_path", Path(".local/anytask/matrix_store")))
    return store_dir / SESSION_FILE


async def _login(client: AsyncClient, settings) -> MatrixSession | None:
    password = (getattr(settings, "matrix_password", "") or "").strip()
    if not password:
        logger.error(
            "No Matrix session and ANYTASK_MATRIX_PASSWORD is empty; "
            "set it once so a session can be created."
        )
        return None

    device_name = f"{getattr(settings, 'app_name', 'AnyTask')} reminders"
    logger.info("Logging in to Matrix (device_name=%r)", device_name)
    resp = await client.login(password=password, device_name=device_name)
    if not isinstance(resp, LoginResponse):
        logger.error("Matrix login failed: %r", resp)
        return None
    return MatrixSession(access_token=resp.access_token, user_id=resp.user_id, device_id=resp.device_id)


async def create_matrix_client(settings) -> AsyncClient | None:
    homeserver = (getattr(settings, "matrix_homeserver", "") or "").strip()
    user_id = (getattr(settings, "matrix_user_id", "") or "").strip()
    if not homeserver or not user_id:
        logger.error("Matrix is not configured: set ANYTASK_MATRIX_HOMESERVER and ANYTASK_MATRIX_USER_ID")
        return None

    client = AsyncClient(
        homeserver,
        user_id,
        config=AsyncClientConfig(encryption_enabled=False, store_sync_tokens=False),
    )

    path = session_path(settings)
    session = MatrixSession.load(path)
    if session is not None:
        session.apply(client)
        logger.info("Matrix session restored for %s", session.user_id)
        return client

    session = await _login(client, settings)
    if session is None:
        await client.close()
        return None

    try:
        session.save(path)
        logger.info("Matrix session saved to %s", path)
    except OSError:
        logger.exception("Failed to write Matrix session file %s", path)
    return client
