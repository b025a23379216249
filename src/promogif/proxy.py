"""Image proxy service.

Re-serves externally hosted images from the same origin as the renderer so
they can be drawn and read back without cross-origin restrictions.

    GET /proxy?url=<encoded url>

Responds with the upstream bytes and content type, a one-day public cache
lifetime and a permissive CORS header. A missing ``url`` is a 400 and any
upstream failure is a 500, both with a JSON ``{"error": ...}`` body.
"""

from __future__ import annotations

import logging

import httpx
from fastapi import FastAPI, Query
from fastapi.responses import JSONResponse, Response

from .fetch import USER_AGENT

logger = logging.getLogger(__name__)

CACHE_CONTROL = "public, max-age=86400"
DEFAULT_CONTENT_TYPE = "image/png"


def create_app(
    client: httpx.AsyncClient | None = None,
    timeout: float = 30.0,
) -> FastAPI:
    """Create the proxy application.

    Args:
        client: httpx client used for upstream requests (one is created per
            request when omitted)
        timeout: Upstream request timeout in seconds

    Returns:
        Configured FastAPI application
    """
    app = FastAPI(title="promogif image proxy", docs_url=None, redoc_url=None)

    @app.get("/proxy")
    async def proxy_image(url: str | None = Query(default=None)) -> Response:
        if not url:
            return JSONResponse({"error": "URL is required"}, status_code=400)

        try:
            if client is not None:
                upstream = await client.get(url, headers={"User-Agent": USER_AGENT})
            else:
                async with httpx.AsyncClient(timeout=timeout, follow_redirects=True) as session:
                    upstream = await session.get(url, headers={"User-Agent": USER_AGENT})
            upstream.raise_for_status()
        except httpx.HTTPError as e:
            logger.error(f"🚨 Proxy error for {url}: {e}")
            return JSONResponse({"error": "Failed to fetch image"}, status_code=500)

        return Response(
            content=upstream.content,
            media_type=upstream.headers.get("content-type", DEFAULT_CONTENT_TYPE),
            headers={
                "Cache-Control": CACHE_CONTROL,
                "Access-Control-Allow-Origin": "*",
            },
        )

    return app
