import os

from app.storage.base import Storage, StorageError


class LocalStorage(Storage):
    """Filesystem storage served by a static file host under `public_base_url`."""

    def __init__(self, base_path: str, public_base_url: str):
        self.base_path = os.path.abspath(base_path)
        self.public_base_url = public_base_url.rstrip("/")

    def _full_path(self, path: str) -> str:
        full = os.path.abspath(os.path.join(self.base_path, path))
        if not full.startswith(self.base_path + os.sep):
            raise StorageError(f"Path escapes storage root: {path}")
        return full

    def save(self, path: str, content: bytes, content_type: str) -> str:
        full = self._full_path(path)
        try:
            os.makedirs(os.path.dirname(full), exist_ok=True)
            with open(full, "wb") as f:
                f.write(content)
        except OSError as e:
            raise StorageError(f"Failed to write {path}: {e}") from e
        return f"{self.public_base_url}/{path}"

    def delete(self, path: str) -> None:
        full = self._full_path(path)
        try:
            if os.path.isfile(full):
                os.remove(full)
        except OSError as e:
            raise StorageError(f"Failed to delete {path}: {e}") from e
