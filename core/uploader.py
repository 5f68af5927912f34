"""
core/uploader.py -- Image host adapter (Cloudinary REST upload API).

Used endpoint:
- POST https://api.cloudinary.com/v1_1/{cloud_name}/image/upload
      multipart form: file, api_key, timestamp, signature, folder[, upload_preset]
      -> {"secure_url": "https://res.cloudinary.com/...", ...}

Requests are signed: SHA-1 over the signed parameters sorted by name and
joined as key=value pairs with '&', followed by the API secret.

upload_many() sends every file concurrently and joins on all of them. The
returned URLs are in submission order. One failed upload fails the batch.

Layer rule: core/ may not import from api/, auth/, or market/.
"""

from __future__ import annotations

import asyncio
import hashlib
import logging
import time
from dataclasses import dataclass
from typing import Any, Optional

import httpx

logger = logging.getLogger("automarket.uploader")

_UPLOAD_URL = "https://api.cloudinary.com/v1_1/{cloud_name}/image/upload"


# Upload failures are explicit and separable from other runtime errors.
class UploadError(RuntimeError):
    pass


@dataclass
class ImageFile:
    """One file payload received from a multipart request."""

    filename: str
    content: bytes
    content_type: str = "application/octet-stream"


class ImageUploader:
    """Thin async client for the image host.

    transport is injectable so tests can substitute httpx.MockTransport for
    the network.

    Usage:
        uploader = ImageUploader("demo", "key", "secret")
        urls = await uploader.upload_many([ImageFile("a.jpg", data, "image/jpeg")])
    """

    def __init__(
        self,
        cloud_name: str,
        api_key: str,
        api_secret: str,
        upload_preset: str = "",
        folder: str = "vehicles",
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.cloud_name = cloud_name
        self.api_key = api_key
        self.api_secret = api_secret
        self.upload_preset = upload_preset
        self.folder = folder
        self.timeout = timeout
        self._transport = transport

    @property
    def configured(self) -> bool:
        return bool(self.cloud_name and self.api_key and self.api_secret)

    @property
    def upload_url(self) -> str:
        return _UPLOAD_URL.format(cloud_name=self.cloud_name)

    def _sign(self, params: dict[str, Any]) -> str:
        """Return the hex SHA-1 signature for `params` (empty values skipped)."""
        payload = "&".join(f"{k}={params[k]}" for k in sorted(params) if params[k] not in (None, ""))
        return hashlib.sha1((payload + self.api_secret).encode("utf-8")).hexdigest()  # nosec B324 -- host-mandated

    def _form_fields(self) -> dict[str, str]:
        params: dict[str, Any] = {"timestamp": int(time.time())}
        if self.folder:
            params["folder"] = self.folder
        if self.upload_preset:
            params["upload_preset"] = self.upload_preset
        fields = {k: str(v) for k, v in params.items()}
        fields["api_key"] = self.api_key
        fields["signature"] = self._sign(params)
        return fields

    async def _upload_one(self, client: httpx.AsyncClient, image: ImageFile) -> str:
        try:
            resp = await client.post(
                self.upload_url,
                data=self._form_fields(),
                files={"file": (image.filename, image.content, image.content_type)},
            )
        except httpx.HTTPError as e:
            raise UploadError(f"Image upload request failed for {image.filename}: {e}") from e

        if resp.status_code != 200:
            # Avoid dumping huge bodies; include a small snippet.
            raise UploadError(f"Image host rejected {image.filename}: {resp.status_code} {resp.text[:300]}")

        url = resp.json().get("secure_url")
        if not isinstance(url, str) or not url:
            raise UploadError(f"Image host returned no secure_url for {image.filename}.")
        return url

    async def upload_many(self, files: list[ImageFile]) -> list[str]:
        """Upload every file concurrently and return their public URLs in order.

        Raises UploadError if the host is not configured or any upload fails.
        All uploads are awaited before the first failure is reported.
        """
        if not files:
            return []
        if not self.configured:
            raise UploadError("Image host is not configured.")

        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            results = await asyncio.gather(
                *(self._upload_one(client, f) for f in files),
                return_exceptions=True,
            )

        for result in results:
            if isinstance(result, BaseException):
                logger.warning("Image batch failed (%d files): %s", len(files), result)
                if isinstance(result, UploadError):
                    raise result
                raise UploadError(str(result)) from result

        logger.info("Uploaded %d images to %s", len(results), self.cloud_name)
        return list(results)
