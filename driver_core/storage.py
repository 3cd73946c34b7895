"""Persistence backends for the driver ledger core services.

Each backend is a small key-value store: a resource name maps to one JSON
document that is always read and written whole.
"""

from __future__ import annotations

import copy
import json
import logging
from pathlib import Path
from typing import Any, Dict

from .exceptions import PersistenceError

logger = logging.getLogger(__name__)


class JSONStorage:
    """Simple file-based JSON storage with crash-safe writes."""

    def __init__(self, base_path: Path) -> None:
        self._base_path = base_path
        self._base_path.mkdir(parents=True, exist_ok=True)

    def load(self, resource: str, default: Any) -> Any:
        path = self._base_path / resource
        if not path.exists():
            return copy.deepcopy(default)
        try:
            with path.open("r", encoding="utf-8") as handle:
                payload = json.load(handle)
        except json.JSONDecodeError as exc:
            raise PersistenceError(f"Corrupted JSON data in {path}") from exc
        except OSError as exc:
            raise PersistenceError(f"Unable to read from {path}") from exc

        if not isinstance(payload, type(default)):
            raise PersistenceError(
                f"Expected {type(default).__name__} payload in {path}"
            )
        logger.debug("Loaded %s from %s", resource, path)
        return payload

    def save(self, resource: str, payload: Any) -> None:
        path = self._base_path / resource
        temp_path = path.with_suffix(path.suffix + ".tmp")
        try:
            with temp_path.open("w", encoding="utf-8") as handle:
                json.dump(payload, handle, indent=2, ensure_ascii=False)
                handle.flush()
        except OSError as exc:
            raise PersistenceError(f"Unable to write to {temp_path}") from exc
        # Atomic rename on POSIX.
        temp_path.replace(path)
        logger.debug("Saved %s to %s", resource, path)


class MemoryStorage:
    """In-process storage with the same contract, for tests and embedding."""

    def __init__(self) -> None:
        self._documents: Dict[str, Any] = {}

    def load(self, resource: str, default: Any) -> Any:
        return copy.deepcopy(self._documents.get(resource, default))

    def save(self, resource: str, payload: Any) -> None:
        # Round-trip through JSON so callers see exactly what a file would hold.
        self._documents[resource] = json.loads(json.dumps(payload))
