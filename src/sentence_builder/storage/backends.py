"""Key/value persistence: JSON files (primary) with an in-memory fallback."""

import fcntl
import json
import os
import re
import tempfile
from pathlib import Path
from typing import Any, Protocol

import structlog

from sentence_builder.errors import PersistenceError

logger = structlog.get_logger()

_SAFE_KEY = re.compile(r"[^A-Za-z0-9_.-]")


class StorageBackend(Protocol):
    def load(self, key: str) -> Any | None: ...

    def save(self, key: str, value: Any) -> None: ...

    def remove(self, key: str) -> None: ...


class JsonFileBackend:
    """One JSON document per key (fcntl.flock + atomic write).

    Args:
        directory: Directory holding the ``<key>.json`` files.
    """

    def __init__(self, directory: Path):
        self.directory = Path(directory)

    def _path(self, key: str) -> Path:
        return self.directory / f"{_SAFE_KEY.sub('_', key)}.json"

    def load(self, key: str) -> Any | None:
        path = self._path(key)
        if not path.exists():
            return None
        try:
            with open(path, encoding="utf-8") as f:
                fcntl.flock(f, fcntl.LOCK_SH)
                data = json.load(f)
                fcntl.flock(f, fcntl.LOCK_UN)
        except (OSError, ValueError) as e:
            raise PersistenceError(f"Failed to read {key}: {e}") from e
        return data

    def save(self, key: str, value: Any) -> None:
        path = self._path(key)
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            lock_path = path.with_suffix(".lock")
            with open(lock_path, "w") as lock_file:
                fcntl.flock(lock_file, fcntl.LOCK_EX)
                tmp = tempfile.NamedTemporaryFile(
                    "w", dir=self.directory, delete=False, suffix=".json", encoding="utf-8"
                )
                try:
                    with tmp:
                        json.dump(value, tmp, default=str)
                    os.replace(tmp.name, path)
                except Exception:
                    Path(tmp.name).unlink(missing_ok=True)
                    raise
        except (OSError, TypeError, ValueError) as e:
            raise PersistenceError(f"Failed to write {key}: {e}") from e

    def remove(self, key: str) -> None:
        try:
            self._path(key).unlink(missing_ok=True)
        except OSError as e:
            raise PersistenceError(f"Failed to remove {key}: {e}") from e


class MemoryBackend:
    """Synchronous process-local store used when the primary is unavailable."""

    def __init__(self) -> None:
        self._data: dict[str, str] = {}

    def load(self, key: str) -> Any | None:
        raw = self._data.get(key)
        return json.loads(raw) if raw is not None else None

    def save(self, key: str, value: Any) -> None:
        self._data[key] = json.dumps(value, default=str)

    def remove(self, key: str) -> None:
        self._data.pop(key, None)


class PersistenceAdapter:
    """Primary backend with fallback on failure.

    Failures never propagate: they are logged and the fallback is used, so a
    broken disk degrades durability but not the in-memory state.

    Args:
        primary: Durable backend.
        fallback: Synchronous backend used when the primary raises.
    """

    def __init__(self, primary: StorageBackend, fallback: StorageBackend | None = None):
        self.primary = primary
        self.fallback = fallback if fallback is not None else MemoryBackend()

    def load(self, key: str) -> Any | None:
        try:
            value = self.primary.load(key)
        except PersistenceError as e:
            logger.warning("persistence_load_fallback", key=key, error=str(e))
            return self._fallback_load(key)
        if value is None:
            # Written to the fallback while the primary was failing
            return self._fallback_load(key)
        return value

    def save(self, key: str, value: Any) -> None:
        try:
            self.primary.save(key, value)
        except PersistenceError as e:
            logger.warning("persistence_save_fallback", key=key, error=str(e))
            self._fallback_call("save", key, value)

    def remove(self, key: str) -> None:
        try:
            self.primary.remove(key)
        except PersistenceError as e:
            logger.warning("persistence_remove_fallback", key=key, error=str(e))
        self._fallback_call("remove", key)

    def _fallback_load(self, key: str) -> Any | None:
        try:
            return self.fallback.load(key)
        except Exception:
            logger.exception("persistence_fallback_failed", key=key, op="load")
            return None

    def _fallback_call(self, op: str, *args: Any) -> None:
        try:
            getattr(self.fallback, op)(*args)
        except Exception:
            logger.exception("persistence_fallback_failed", key=args[0], op=op)
