"""Client for the platform's object store (car photos)."""

from __future__ import annotations

import logging
from types import TracebackType
from typing import Any
from urllib.parse import quote

import httpx

from carmarket.config import settings
from carmarket.utils.exceptions import StorageError

logger = logging.getLogger(__name__)


class StorageClient:
    """HTTP client for one storage bucket.

    Use as an async context manager to share one ``httpx.AsyncClient`` for
    the lifetime of the application::

        async with StorageClient() as storage:
            await storage.upload("car-id/1700000000000-0.jpg", data, "image/jpeg")

    Without the context manager a fresh client is opened per request.
    """

    def __init__(
        self,
        base_url: str | None = None,
        api_key: str | None = None,
        bucket: str | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._base_url = (base_url or settings.platform_url).rstrip("/")
        key = api_key or settings.platform_service_key or settings.platform_anon_key
        self._headers = {"apikey": key, "Authorization": f"Bearer {key}"}
        self.bucket = bucket or settings.storage_bucket
        self._shared_http = http_client
        self._owns_http = False

    # -- async context manager -------------------------------------------------

    async def __aenter__(self) -> StorageClient:
        if self._shared_http is None:
            self._shared_http = httpx.AsyncClient(timeout=settings.platform_timeout_seconds)
            self._owns_http = True
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        if self._owns_http and self._shared_http is not None:
            await self._shared_http.aclose()
            self._shared_http = None
            self._owns_http = False

    # -- public API ------------------------------------------------------------

    def get_public_url(self, path: str) -> str:
        """Public URL of a stored object. No request is made."""
        return (
            f"{self._base_url}/storage/v1/object/public/"
            f"{self.bucket}/{quote(path)}"
        )

    async def upload(self, path: str, content: bytes, content_type: str | None = None) -> str:
        """Store *content* under *path*; refuses to overwrite an existing object."""
        headers = {
            **self._headers,
            "Content-Type": content_type or "application/octet-stream",
            "x-upsert": "false",
        }
        await self._request(
            "POST",
            f"/storage/v1/object/{self.bucket}/{quote(path)}",
            content=content,
            headers=headers,
        )
        logger.info("Uploaded %s (%d bytes) to bucket %s", path, len(content), self.bucket)
        return path

    async def remove(self, paths: list[str]) -> None:
        if not paths:
            return
        await self._request(
            "DELETE",
            f"/storage/v1/object/{self.bucket}",
            json={"prefixes": paths},
            headers=self._headers,
        )
        logger.info("Removed %d object(s) from bucket %s", len(paths), self.bucket)

    # -- internals -------------------------------------------------------------

    async def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        url = f"{self._base_url}{path}"
        try:
            if self._shared_http is not None:
                response = await self._shared_http.request(method, url, **kwargs)
            else:
                async with httpx.AsyncClient(timeout=settings.platform_timeout_seconds) as http:
                    response = await http.request(method, url, **kwargs)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise StorageError(
                f"Storage returned {e.response.status_code} for {method} {path}: "
                f"{e.response.text[:200]}"
            ) from e
        except httpx.HTTPError as e:
            raise StorageError(f"Storage unreachable: {e}") from e
        return response
