"""Side-channel storage for broker access and refresh tokens."""

import json
import logging
import os
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, Optional

from ..broker.models import AuthSession, BrokerId

logger = logging.getLogger(__name__)


def access_token_key(broker_id) -> str:
    return f"{BrokerId.parse(broker_id).value}-access-token"


def refresh_token_key(broker_id) -> str:
    return f"{BrokerId.parse(broker_id).value}-refresh-token"


class CredentialStore(ABC):
    """Key-value store for broker tokens.

    Tokens are stored without expiry; whoever reads one must treat it as
    "try it and see".
    """

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        pass

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        pass

    @abstractmethod
    def remove(self, key: str) -> None:
        pass

    def get_access_token(self, broker_id) -> Optional[str]:
        return self.get(access_token_key(broker_id))

    def get_refresh_token(self, broker_id) -> Optional[str]:
        return self.get(refresh_token_key(broker_id))

    def save_session(self, broker_id, session: AuthSession) -> None:
        """Store the tokens of a session, dropping a stale refresh token."""
        self.set(access_token_key(broker_id), session.access_token)
        if session.refresh_token:
            self.set(refresh_token_key(broker_id), session.refresh_token)
        else:
            self.remove(refresh_token_key(broker_id))

    def clear(self, broker_id) -> None:
        """Forget every token of a broker."""
        self.remove(access_token_key(broker_id))
        self.remove(refresh_token_key(broker_id))


class InMemoryCredentialStore(CredentialStore):
    """Process-local token store."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._values: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._values.get(key)

    def set(self, key: str, value: str) -> None:
        self._values[key] = value

    def remove(self, key: str) -> None:
        self._values.pop(key, None)


class JsonFileCredentialStore(CredentialStore):
    """Token store backed by a JSON file readable only by the owner."""

    def __init__(self, path: str):
        self.path = Path(path).expanduser()
        self._lock = threading.Lock()

    def _read(self) -> Dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                values = json.load(f)
        except (OSError, ValueError) as e:
            logger.error(f"Could not read credential store {self.path}: {e}")
            return {}
        return values if isinstance(values, dict) else {}

    def _write(self, values: Dict[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd = os.open(str(self.path), os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(values, f)

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            return self._read().get(key)

    def set(self, key: str, value: str) -> None:
        with self._lock:
            values = self._read()
            values[key] = value
            self._write(values)

    def remove(self, key: str) -> None:
        with self._lock:
            values = self._read()
            if key in values:
                del values[key]
                self._write(values)
