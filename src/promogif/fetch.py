"""Image resolution for the scene rasterizer.

Remote images are downloaded with httpx, optionally through the image proxy,
and decoded once per run. Local file paths are accepted as well so scenes can
be rendered offline.
"""

from __future__ import annotations

import io
import logging
from pathlib import Path
from urllib.parse import urlencode

import httpx
from PIL import Image

from .error_handling import ResourceLoadError

logger = logging.getLogger(__name__)

USER_AGENT = "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36"


def proxied_url(url: str, proxy_base: str) -> str:
    """Rewrite an external URL so it is fetched through the image proxy."""
    return f"{proxy_base.rstrip('/')}/proxy?{urlencode({'url': url})}"


class ImageFetcher:
    """Resolves scene image references to decoded RGBA images.

    Args:
        proxy_base: Base URL of an image proxy (``None`` fetches directly)
        timeout: Per-request timeout in seconds
        client: Pre-built httpx client, mainly for tests
    """

    def __init__(
        self,
        proxy_base: str | None = None,
        timeout: float = 30.0,
        client: httpx.AsyncClient | None = None,
    ):
        self.proxy_base = proxy_base
        self.timeout = timeout
        self._client = client
        self._owns_client = client is None
        self._cache: dict[str, Image.Image] = {}

    async def __aenter__(self) -> ImageFetcher:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    def clear(self) -> None:
        self._cache.clear()

    async def fetch(self, ref: str) -> Image.Image:
        """Return the decoded image for a URL or local path.

        Raises:
            ResourceLoadError: If the image cannot be fetched or decoded
        """
        cached = self._cache.get(ref)
        if cached is not None:
            return cached

        data = await self._read_bytes(ref)
        try:
            with Image.open(io.BytesIO(data)) as img:
                img.load()
                decoded = img.convert("RGBA")
        except Exception as e:
            raise ResourceLoadError(
                f"Could not decode image: {ref}", cause=e, context={"ref": ref}
            ) from e

        self._cache[ref] = decoded
        logger.debug(f"Loaded image {ref} ({decoded.width}x{decoded.height})")
        return decoded

    async def _read_bytes(self, ref: str) -> bytes:
        if not ref.startswith(("http://", "https://")):
            path = Path(ref)
            try:
                return path.read_bytes()
            except OSError as e:
                raise ResourceLoadError(
                    f"Could not read image file: {path}", cause=e, context={"ref": ref}
                ) from e

        url = proxied_url(ref, self.proxy_base) if self.proxy_base else ref
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self.timeout,
                follow_redirects=True,
                headers={"User-Agent": USER_AGENT},
            )
        try:
            response = await self._client.get(url)
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise ResourceLoadError(
                f"Failed to fetch image: {ref}", cause=e, context={"ref": ref}
            ) from e
        return response.content
