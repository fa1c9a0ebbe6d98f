"""Object storage for courier photo evidence.

Objects are uploaded with an HTTP PUT to ``{storage_base_url}/{object_name}``.
Without a base URL (local development) they are written under
``storage_local_dir`` instead.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from pathlib import Path

import httpx

from staffbot.config import settings

logger = logging.getLogger(__name__)


def object_name_for(order_id: str, extension: str = "jpg") -> str:
    """Unique object key grouping an order's photos."""
    return f"courier-photos/{order_id}/{uuid.uuid4().hex}.{extension}"


class PhotoStorage:
    """Uploads photo bytes and returns the public URL of the stored object."""

    def __init__(self) -> None:
        self._base_url = settings.storage.storage_base_url.rstrip("/")
        self._token = settings.storage.storage_token
        self._public_url = (settings.storage.storage_public_url or self._base_url).rstrip("/")
        self._local_dir = Path(settings.storage.storage_local_dir)
        self._timeout = httpx.Timeout(settings.storage.storage_timeout, connect=5.0)

    @property
    def _bypass_mode(self) -> bool:
        return not self._base_url

    async def upload(self, data: bytes, object_name: str, content_type: str = "image/jpeg") -> str | None:
        """Store *data* under *object_name*. Returns its URL, or None if the upload failed."""
        if self._bypass_mode:
            return await self._write_local(data, object_name)

        headers = {"Content-Type": content_type}
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"

        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                response = await client.put(f"{self._base_url}/{object_name}", content=data, headers=headers)
                response.raise_for_status()

        except httpx.HTTPStatusError as exc:
            logger.warning("Storage HTTP error %s uploading %s", exc.response.status_code, object_name)
            return None

        except httpx.HTTPError:
            logger.exception("Storage upload failed for %s", object_name)
            return None

        logger.info("Uploaded %s (%d bytes)", object_name, len(data))
        return f"{self._public_url}/{object_name}"

    async def _write_local(self, data: bytes, object_name: str) -> str | None:
        path = self._local_dir / object_name
        try:
            await asyncio.to_thread(_write_file, path, data)
        except OSError:
            logger.exception("Local storage write failed for %s", path)
            return None

        logger.debug("Storage bypass mode: wrote %s", path)
        return path.resolve().as_uri()


def _write_file(path: Path, data: bytes) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(data)


# Module-level singleton
photo_storage = PhotoStorage()
