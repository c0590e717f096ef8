"""Session persistence boundary and its file-backed implementation."""

import logging
import os
import tempfile
from pathlib import Path
from typing import Protocol

import yaml

from nexus.models import Session

logger = logging.getLogger(__name__)

TOKEN_KEY = "token"
DEPLOYMENT_CODE_KEY = "deploymentCode"
LOCK_KEY = "isTokenLocked"


class SessionStore(Protocol):
    """Key-value credential storage consumed by the agent."""

    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...

    def remove(self, key: str) -> None: ...


def load_session(store: SessionStore) -> Session | None:
    """Read the stored session, or None unless both token and code exist."""
    token = store.get(TOKEN_KEY)
    deployment_code = store.get(DEPLOYMENT_CODE_KEY)
    if not token or not deployment_code:
        return None
    return Session(
        token=token,
        deployment_code=deployment_code,
        lock_flag=(store.get(LOCK_KEY) or "").lower() == "true",
    )


def save_session(store: SessionStore, session: Session) -> None:
    store.set(TOKEN_KEY, session.token)
    store.set(DEPLOYMENT_CODE_KEY, session.deployment_code)
    store.set(LOCK_KEY, "true" if session.lock_flag else "false")


def clear_session(store: SessionStore) -> None:
    """Remove token and deployment code and reset the lock flag."""
    store.remove(TOKEN_KEY)
    store.remove(DEPLOYMENT_CODE_KEY)
    store.set(LOCK_KEY, "false")


class FileSessionStore:
    """YAML file holding string key-value pairs.

    Writes go through a temporary file and an atomic rename so a killed
    process never leaves a half-written session behind.
    """

    def __init__(self, path: Path) -> None:
        self.path = Path(path).expanduser()

    def _read(self) -> dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except (yaml.YAMLError, OSError) as e:
            logger.warning("Failed to read session file %s: %s", self.path, e)
            return {}
        if not isinstance(data, dict):
            return {}
        return {str(k): str(v) for k, v in data.items() if v is not None}

    def _write(self, data: dict[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=self.path.parent, prefix=".session-")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                yaml.safe_dump(data, f, default_flow_style=False)
            os.chmod(tmp_name, 0o600)
            os.replace(tmp_name, self.path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    def get(self, key: str) -> str | None:
        return self._read().get(key)

    def set(self, key: str, value: str) -> None:
        data = self._read()
        data[key] = value
        self._write(data)

    def remove(self, key: str) -> None:
        data = self._read()
        if data.pop(key, None) is not None:
            self._write(data)
