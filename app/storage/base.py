from abc import ABC, abstractmethod


class StorageError(Exception):
    pass


class Storage(ABC):
    @abstractmethod
    def save(self, path: str, content: bytes, content_type: str) -> str:
        """Write content under a relative path; returns a durable URL."""
        raise NotImplementedError

    @abstractmethod
    def delete(self, path: str) -> None:
        raise NotImplementedError


def get_storage(settings) -> Storage:
    """Storage backend selected by STORAGE_BACKEND."""
    if settings.storage_backend == "supabase":
        from app.storage.supabase import SupabaseStorage

        return SupabaseStorage(
            base_url=settings.supabase_url,
            service_key=settings.supabase_service_key,
            bucket=settings.supabase_gifs_bucket,
            timeout=settings.supabase_timeout,
        )
    if settings.storage_backend == "local":
        from app.storage.local import LocalStorage

        return LocalStorage(settings.storage_base_path, settings.storage_public_base_url)
    raise ValueError(f"Unknown storage backend: {settings.storage_backend}")
