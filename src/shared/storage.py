"""Local key/value storage for best-effort client-side caches.

Two keys are used by the storefront: ``cart-storage`` (the cart snapshot) and
``auth-storage`` (the signed-in user). Neither is a source of truth once the
session is authenticated, so read and write failures are logged and otherwise
ignored.
"""

import json
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any

import structlog

logger = structlog.get_logger(__name__)

CART_STORAGE_KEY = "cart-storage"
AUTH_STORAGE_KEY = "auth-storage"


class LocalStore(ABC):
    """Abstract interface for persisted JSON documents keyed by name."""

    @abstractmethod
    def get(self, key: str) -> dict[str, Any] | None:
        """Return the stored document, or None when absent or unreadable."""
        ...

    @abstractmethod
    def set(self, key: str, value: dict[str, Any]) -> None: ...

    @abstractmethod
    def remove(self, key: str) -> None: ...


class MemoryStore(LocalStore):
    """Store that keeps documents in memory (tests, ephemeral sessions)."""

    def __init__(self, initial: dict[str, dict[str, Any]] | None = None) -> None:
        self.documents: dict[str, dict[str, Any]] = dict(initial or {})

    def get(self, key: str) -> dict[str, Any] | None:
        document = self.documents.get(key)
        # Hand out a copy so callers never alias stored state
        return json.loads(json.dumps(document)) if document is not None else None

    def set(self, key: str, value: dict[str, Any]) -> None:
        self.documents[key] = json.loads(json.dumps(value))

    def remove(self, key: str) -> None:
        self.documents.pop(key, None)


class JsonFileStore(LocalStore):
    """Store that writes one ``<key>.json`` file per key under a directory."""

    def __init__(self, directory: Path | str) -> None:
        self.directory = Path(directory)

    def _path(self, key: str) -> Path:
        return self.directory / f"{key}.json"

    def get(self, key: str) -> dict[str, Any] | None:
        path = self._path(key)
        if not path.exists():
            return None
        try:
            document = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning("Discarding unreadable local document", key=key, error=str(e))
            return None
        return document if isinstance(document, dict) else None

    def set(self, key: str, value: dict[str, Any]) -> None:
        path = self._path(key)
        tmp = path.with_suffix(".json.tmp")
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            tmp.write_text(json.dumps(value, indent=2), encoding="utf-8")
            tmp.replace(path)
        except OSError as e:
            logger.warning("Failed to persist local document", key=key, error=str(e))

    def remove(self, key: str) -> None:
        try:
            self._path(key).unlink(missing_ok=True)
        except OSError as e:
            logger.warning("Failed to remove local document", key=key, error=str(e))
