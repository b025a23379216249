"""Scene handle and the rasterizer contract.

The scene is a single-owner mutable object: the text, images and theme a user
configured, plus the clock value the animated parts are currently showing.
While a capture run owns the scene (``scene.locked``), content updates are
refused so every capture sees a consistent snapshot.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field, replace
from typing import Any, Protocol, runtime_checkable

import numpy as np

from .catalog import DEFAULT_STYLE, SceneStyle, SitePreset
from .config import DEFAULT_CAPTURE_CONFIG, CaptureConfig
from .error_handling import SceneLockedError

logger = logging.getLogger(__name__)

# RGB uint8 array of shape (height, width, 3)
PixelBuffer = np.ndarray


@dataclass(frozen=True)
class CaptureRequest:
    """Full-resolution bitmap dimensions requested from the rasterizer."""

    width: int
    height: int
    pixel_density: float = 1.0

    @classmethod
    def canonical(cls, capture: CaptureConfig = DEFAULT_CAPTURE_CONFIG) -> CaptureRequest:
        return cls(capture.WIDTH, capture.HEIGHT, capture.PIXEL_DENSITY)

    @property
    def pixel_size(self) -> tuple[int, int]:
        """Output bitmap size (width, height) after applying pixel density."""
        return (
            int(round(self.width * self.pixel_density)),
            int(round(self.height * self.pixel_density)),
        )


@dataclass(frozen=True)
class SlideshowImage:
    url: str
    name: str = ""


@dataclass(frozen=True)
class SceneContent:
    """Static, user-configured content of the promotional scene."""

    site_name: str = "Example Site"
    logo_url: str = ""
    background_url: str = ""
    header_text: str = "LINK ALTERNATIF"
    link_texts: tuple[str, ...] = ("www.example1.com", "www.example2.com")
    footer_text: str = 'KETIK "NAMA WEB" DI GOOGLE UNTUK MENEMUKAN LINK TERBARU'
    search_text: str = "NAMA WEB"
    modal_title: str = "Klik di sini"
    slideshow: tuple[SlideshowImage, ...] = ()
    modal_footer: str = "Silahkan clear cache atau menggunakan vpn"

    @property
    def visible_links(self) -> list[str]:
        """Link rows that are actually drawn (blank rows are skipped)."""
        return [text for text in self.link_texts if text.strip()]

    def image_urls(self) -> list[str]:
        """Every external image the scene may reference."""
        urls = [self.background_url, self.logo_url]
        urls.extend(image.url for image in self.slideshow)
        return [url for url in urls if url]


class Scene:
    """Mutable scene handle read by the rasterizer.

    The capture run is the only writer of ``clock_value`` while it holds the
    lock; ``update`` refuses content changes during that time.
    """

    def __init__(self, content: SceneContent | None = None, style: SceneStyle = DEFAULT_STYLE):
        self._content = content or SceneContent()
        self._style = style
        self._clock_value = 0
        self._locked = False
        self._rendered: asyncio.Event | None = None

    @property
    def content(self) -> SceneContent:
        return self._content

    @property
    def style(self) -> SceneStyle:
        return self._style

    @property
    def clock_value(self) -> int:
        return self._clock_value

    @property
    def locked(self) -> bool:
        return self._locked

    def update(self, style: SceneStyle | None = None, **changes: Any) -> None:
        """Change scene content or style.

        Raises:
            SceneLockedError: If a capture run currently owns the scene
        """
        if self._locked:
            raise SceneLockedError(
                "Scene parameters cannot change while a capture run is active",
                context={"fields": sorted(changes)},
            )
        if changes:
            self._content = replace(self._content, **changes)
        if style is not None:
            self._style = style

    def apply_site(self, site: SitePreset) -> None:
        """Switch to a site preset: its name and logo, its first exclusive
        background and its slideshow images. Fields the preset leaves empty
        keep their current values.

        Raises:
            SceneLockedError: If a capture run currently owns the scene
        """
        changes: dict[str, Any] = {"site_name": site.name}
        if site.logo:
            changes["logo_url"] = site.logo
        if site.backgrounds:
            changes["background_url"] = site.backgrounds[0]
        if site.slideshow_images:
            changes["slideshow"] = tuple(SlideshowImage(url) for url in site.slideshow_images)
        self.update(**changes)

    def lock(self) -> None:
        self._locked = True

    def unlock(self) -> None:
        self._locked = False

    def publish(self, clock_value: int) -> None:
        """Set the clock value every animated parameter is derived from."""
        self._clock_value = clock_value
        if self._rendered is not None:
            self._rendered.clear()

    def enable_render_signal(self) -> None:
        """Opt in to explicit render-complete notification.

        Once enabled, ``wait_rendered`` blocks after each ``publish`` until the
        rendering surface calls ``mark_rendered``.
        """
        if self._rendered is None:
            self._rendered = asyncio.Event()

    @property
    def has_render_signal(self) -> bool:
        return self._rendered is not None

    def mark_rendered(self) -> None:
        if self._rendered is not None:
            self._rendered.set()

    async def wait_rendered(self) -> None:
        if self._rendered is not None:
            await self._rendered.wait()


@runtime_checkable
class Rasterizer(Protocol):
    """Converts the current scene state into a fixed-resolution pixel buffer."""

    async def rasterize(self, scene: Scene, request: CaptureRequest) -> PixelBuffer:
        ...


@dataclass
class SceneSnapshot:
    """Plain-data view of the scene used for logging and run summaries."""

    site_name: str
    style_id: str
    clock_value: int
    image_urls: list[str] = field(default_factory=list)

    @classmethod
    def of(cls, scene: Scene) -> SceneSnapshot:
        return cls(
            site_name=scene.content.site_name,
            style_id=scene.style.id,
            clock_value=scene.clock_value,
            image_urls=scene.content.image_urls(),
        )
