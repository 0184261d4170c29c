"""Safe client-side persistence."""

from src.features.storage.local_storage import (
    LocalStorage,
    is_storage_available,
    safe_get_item,
    safe_set_item,
)


__all__ = ["LocalStorage", "is_storage_available", "safe_get_item", "safe_set_item"]
