"""Static catalogs for the promotional scene: colour themes, background
categories and per-site presets.

Site presets (name, logo, exclusive backgrounds, slideshow images) are loaded
from a JSON file with :func:`load_site_presets`::

    [{"id": "demo", "name": "DEMO SITE", "logo": "https://.../logo.png",
      "backgrounds": ["https://.../bg1.png"], "slideshow_images": []}]
"""

from __future__ import annotations

import random
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from PIL import ImageColor

from .error_handling import ConfigurationError
from .io import load_json


@dataclass(frozen=True)
class SceneStyle:
    """Colour theme applied to every element of the scene."""

    id: str
    name: str
    primary_color: str
    secondary_color: str
    background_color: str
    accent_color: str

    def rgb(self, role: str) -> tuple[int, int, int]:
        """Resolve a colour role (``primary``, ``secondary``, ...) to an RGB tuple."""
        value = getattr(self, f"{role}_color")
        return ImageColor.getrgb(value)[:3]


STYLES: list[SceneStyle] = [
    SceneStyle("galaxy", "Galaxy", "#00f0ff", "#ffd700", "#050b14", "#04c7d1"),
    SceneStyle("neon", "Neon Pink", "#ff00ff", "#00ff00", "#0a0a0a", "#ff0080"),
    SceneStyle("royal", "Royal Purple", "#ffd700", "#ff6b6b", "#1a1a2e", "#16213e"),
    SceneStyle("ocean", "Ocean Blue", "#00b4d8", "#90e0ef", "#03045e", "#0077b6"),
    SceneStyle("forest", "Forest Green", "#52b788", "#95d5b2", "#081c15", "#2d6a4f"),
    SceneStyle("sunset", "Sunset Orange", "#ff6b35", "#ffb627", "#1a0a00", "#f7931e"),
    SceneStyle("crimson", "Crimson Red", "#dc143c", "#ff6b6b", "#1a0505", "#b22234"),
    SceneStyle("midnight", "Midnight", "#6366f1", "#a5b4fc", "#0f0f23", "#4338ca"),
    SceneStyle("emerald", "Emerald", "#10b981", "#6ee7b7", "#021a0f", "#059669"),
    SceneStyle("amber", "Amber Gold", "#f59e0b", "#fcd34d", "#1a1400", "#d97706"),
]

DEFAULT_STYLE = STYLES[0]


def get_style(style_id: str) -> SceneStyle:
    """Look up a style by id.

    Raises:
        ConfigurationError: If no style has that id
    """
    for style in STYLES:
        if style.id == style_id:
            return style
    raise ConfigurationError(
        f"Unknown style '{style_id}', expected one of: {', '.join(s.id for s in STYLES)}"
    )


def shuffle_style(rng: random.Random | None = None) -> SceneStyle:
    """Pick a random style."""
    return (rng or random).choice(STYLES)


@dataclass(frozen=True)
class BackgroundCategory:
    """Named group of background images."""

    id: str
    name: str
    backgrounds: tuple[str, ...]


_BACKGROUND_CDN = "https://keren.sgp1.cdn.digitaloceanspaces.com/background"


def _numbered_backgrounds(stem: str, ext: str, count: int = 5) -> tuple[str, ...]:
    return tuple(f"{_BACKGROUND_CDN}/{stem}%20({i}).{ext}" for i in range(1, count + 1))


BACKGROUND_CATEGORIES: list[BackgroundCategory] = [
    BackgroundCategory("casino", "Casino", _numbered_backgrounds("casino", "png")),
    BackgroundCategory("cyber", "Cyber", _numbered_backgrounds("cyber", "jpg")),
    BackgroundCategory("cyberpunk", "Cyberpunk", _numbered_backgrounds("cyberpunk", "jpg")),
    BackgroundCategory("fantasy", "Fantasy", _numbered_backgrounds("fantasy", "jpg")),
    BackgroundCategory("galaxy", "Galaxy", _numbered_backgrounds("galaxy", "jpg")),
]


@dataclass(frozen=True)
class SitePreset:
    """Per-site defaults applied when a site is selected."""

    id: str
    name: str
    logo: str = ""
    backgrounds: tuple[str, ...] = ()
    slideshow_images: tuple[str, ...] = ()

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SitePreset:
        """Build a preset from one JSON entry.

        ``slideshowImages`` is accepted as an alias of ``slideshow_images``.

        Raises:
            ConfigurationError: If ``id`` or ``name`` is missing or a list field is malformed
        """
        if not isinstance(data, dict) or not data.get("id") or not data.get("name"):
            raise ConfigurationError(f"Site preset needs an 'id' and a 'name', got: {data!r}")
        slides = data.get("slideshow_images", data.get("slideshowImages", []))
        backgrounds = data.get("backgrounds", [])
        for key, value in (("backgrounds", backgrounds), ("slideshow_images", slides)):
            if not isinstance(value, list) or not all(isinstance(url, str) for url in value):
                raise ConfigurationError(
                    f"Site preset '{data['id']}' field '{key}' must be a list of URLs"
                )
        return cls(
            id=str(data["id"]),
            name=str(data["name"]),
            logo=str(data.get("logo", "")),
            backgrounds=tuple(backgrounds),
            slideshow_images=tuple(slides),
        )

    def exclusive_category(self) -> BackgroundCategory | None:
        """The site's own backgrounds as a category, if it has any."""
        if not self.backgrounds:
            return None
        return BackgroundCategory(f"exclusive-{self.id}", f"Exclusive {self.name}", self.backgrounds)


def load_site_presets(path: Path) -> dict[str, SitePreset]:
    """Load site presets from a JSON list, keyed by id.

    Raises:
        ConfigurationError: If the file cannot be read or is malformed
    """
    try:
        data = load_json(Path(path))
    except (OSError, ValueError) as e:
        raise ConfigurationError(
            f"Could not load site presets from {path}", cause=e, context={"path": str(path)}
        ) from e
    if not isinstance(data, list):
        raise ConfigurationError(f"Site presets file {path} must contain a JSON list")

    presets: dict[str, SitePreset] = {}
    for entry in data:
        preset = SitePreset.from_dict(entry)
        if preset.id in presets:
            raise ConfigurationError(f"Duplicate site preset id '{preset.id}' in {path}")
        presets[preset.id] = preset
    return presets


def get_site(presets: dict[str, SitePreset], site_id: str) -> SitePreset:
    """Look up a site preset by id.

    Raises:
        ConfigurationError: If no preset has that id
    """
    try:
        return presets[site_id]
    except KeyError:
        raise ConfigurationError(
            f"Unknown site '{site_id}', expected one of: {', '.join(presets) or '(none loaded)'}"
        ) from None


def background_categories_for(site: SitePreset | None = None) -> list[BackgroundCategory]:
    """Background categories offered for a site, its exclusive category first."""
    exclusive = site.exclusive_category() if site is not None else None
    return ([exclusive] if exclusive else []) + list(BACKGROUND_CATEGORIES)


def shuffle_background(site: SitePreset | None = None, rng: random.Random | None = None) -> str:
    """Pick a random background from every category offered for ``site``."""
    backgrounds = [url for category in background_categories_for(site) for url in category.backgrounds]
    return (rng or random).choice(backgrounds)
