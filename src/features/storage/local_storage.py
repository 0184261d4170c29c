"""JSON-file key/value store whose helpers never raise."""

import json
import os
import tempfile
from pathlib import Path
from typing import Any, TypeVar

import structlog
from pydantic import ValidationError

from src.settings import get_settings


logger = structlog.get_logger()

T = TypeVar("T")

_CHECK_KEY = "__storage_test__"
_MISSING = object()


class LocalStorage:
    """Key/value store persisted as a single JSON object.

    Every read loads the file and every write rewrites it through a
    temporary file, so concurrent processes never see partial writes.
    """

    def __init__(self, path: Path) -> None:
        """Initialize the store.

        Args:
            path: Location of the JSON file; created on first write.
        """
        self._path = path
        self._log = logger.bind(component="storage", path=str(path))

    @property
    def path(self) -> Path:
        """Return the backing file path."""
        return self._path

    def _read_all(self) -> dict[str, Any]:
        if not self._path.exists():
            return {}
        data = json.loads(self._path.read_text(encoding="utf-8"))
        if not isinstance(data, dict):
            msg = f"Storage file does not hold a JSON object: {self._path}"
            raise ValueError(msg)
        return data

    def _write_all(self, data: dict[str, Any]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        encoded = json.dumps(data, indent=2, ensure_ascii=False)
        fd, tmp_name = tempfile.mkstemp(dir=self._path.parent, suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(encoded)
            Path(tmp_name).replace(self._path)
        except OSError:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    def get_item(self, key: str, default: Any = None) -> Any:
        """Return the stored value, or ``default`` when the key is absent.

        A stored JSON null is returned as None, not replaced by the default.

        Raises:
            OSError: If the file cannot be read.
            ValueError: If the file is not a JSON object.
        """
        return self._read_all().get(key, default)

    def set_item(self, key: str, value: Any) -> None:
        """Store a JSON-serializable value.

        Raises:
            OSError: If the file cannot be written.
            TypeError: If the value is not JSON-serializable.
            ValueError: If the existing file is not a JSON object.
        """
        data = self._read_all()
        data[key] = value
        self._write_all(data)

    def remove_item(self, key: str) -> None:
        """Delete a key if present."""
        data = self._read_all()
        if key in data:
            del data[key]
            self._write_all(data)

    def is_available(self) -> bool:
        """Check that the store can be written and read back."""
        try:
            self.set_item(_CHECK_KEY, _CHECK_KEY)
            ok = self.get_item(_CHECK_KEY) == _CHECK_KEY
            self.remove_item(_CHECK_KEY)
        except (OSError, ValueError, TypeError) as exc:
            self._log.warning("storage_unavailable", error=str(exc))
            return False
        return ok


def default_storage() -> LocalStorage | None:
    """Build the store at the configured path.

    Returns:
        LocalStorage, or None when settings cannot be loaded.
    """
    try:
        return LocalStorage(get_settings().storage_path)
    except ValidationError as exc:
        logger.warning("storage_settings_invalid", component="storage", error=str(exc))
        return None


def is_storage_available(storage: LocalStorage | None = None) -> bool:
    """Check whether values can be persisted.

    Args:
        storage: Store to check; the configured store by default.

    Returns:
        True if a test value round-trips.
    """
    storage = storage or default_storage()
    return storage is not None and storage.is_available()


def safe_get_item(key: str, default: T, storage: LocalStorage | None = None) -> Any | T:
    """Read a value, returning ``default`` on any storage failure.

    Args:
        key: Key to read.
        default: Value returned when the key is missing or storage fails.
        storage: Store to read from; the configured store by default.

    Returns:
        Stored value or ``default``.
    """
    storage = storage or default_storage()
    if storage is None:
        return default
    try:
        value = storage.get_item(key, _MISSING)
    except (OSError, ValueError) as exc:
        logger.warning(
            "storage_read_failed", component="storage", key=key, error=str(exc)
        )
        return default
    return default if value is _MISSING else value


def safe_set_item(key: str, value: Any, storage: LocalStorage | None = None) -> bool:
    """Write a value, returning False instead of raising on failure.

    Args:
        key: Key to write.
        value: JSON-serializable value.
        storage: Store to write to; the configured store by default.

    Returns:
        True if the value was persisted.
    """
    storage = storage or default_storage()
    if storage is None:
        return False
    try:
        storage.set_item(key, value)
    except (OSError, ValueError, TypeError) as exc:
        logger.warning(
            "storage_write_failed", component="storage", key=key, error=str(exc)
        )
        return False
    return True
