"""
Supabase Storage over its REST API (httpx), public bucket URLs.
"""
import httpx

from app.storage.base import Storage, StorageError


class SupabaseStorage(Storage):
    def __init__(
        self,
        base_url: str,
        service_key: str,
        bucket: str,
        timeout: float = 30.0,
        transport: httpx.BaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.service_key = service_key
        self.bucket = bucket
        self._client = httpx.Client(timeout=timeout, transport=transport)

    def _headers(self, content_type: str | None = None) -> dict:
        headers = {
            "Authorization": f"Bearer {self.service_key}",
            "apikey": self.service_key,
        }
        if content_type:
            headers["Content-Type"] = content_type
        return headers

    def public_url(self, path: str) -> str:
        return f"{self.base_url}/storage/v1/object/public/{self.bucket}/{path}"

    def save(self, path: str, content: bytes, content_type: str) -> str:
        if not (self.base_url and self.service_key):
            raise StorageError("Supabase storage not configured")
        try:
            response = self._client.post(
                f"{self.base_url}/storage/v1/object/{self.bucket}/{path}",
                headers=self._headers(content_type),
                content=content,
            )
        except httpx.HTTPError as e:
            raise StorageError(f"Supabase upload failed: {e}") from e
        if response.status_code >= 400:
            raise StorageError(f"Supabase upload error {response.status_code}: {response.text[:300]}")
        return self.public_url(path)

    def delete(self, path: str) -> None:
        try:
            response = self._client.request(
                "DELETE",
                f"{self.base_url}/storage/v1/object/{self.bucket}",
                headers=self._headers("application/json"),
                json={"prefixes": [path]},
            )
        except httpx.HTTPError as e:
            raise StorageError(f"Supabase delete failed: {e}") from e
        if response.status_code >= 400:
            raise StorageError(f"Supabase delete error {response.status_code}: {response.text[:300]}")
