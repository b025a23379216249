"""Configuration settings for promogif."""

from __future__ import annotations

import logging
import os
from collections.abc import Callable
from dataclasses import dataclass, fields, replace
from typing import Any

from .error_handling import ConfigurationError, log_warning_with_context

logger = logging.getLogger(__name__)

# Length of one animation loop in clock ticks (4 seconds at 30 fps)
ANIMATION_PERIOD = 120

# Quality scale shared with the encoder: 1 = best fidelity, 30 = smallest file
MIN_QUALITY = 1
MAX_QUALITY = 30

ENV_PREFIX = "PROMOGIF_CONFIG_"


@dataclass(frozen=True)
class CaptureConfig:
    """Canonical resolution every frame is rasterized at before downsampling."""

    WIDTH: int = 3200
    HEIGHT: int = 1600
    PIXEL_DENSITY: float = 1.0

    def __post_init__(self) -> None:
        if self.WIDTH <= 0 or self.HEIGHT <= 0:
            raise ConfigurationError(
                f"Capture resolution must be positive, got {self.WIDTH}x{self.HEIGHT}"
            )
        if self.PIXEL_DENSITY <= 0:
            raise ConfigurationError(
                f"PIXEL_DENSITY must be positive, got {self.PIXEL_DENSITY}"
            )

    @property
    def pixel_size(self) -> tuple[int, int]:
        """Size (width, height) of the bitmaps the rasterizer returns."""
        return (
            int(round(self.WIDTH * self.PIXEL_DENSITY)),
            int(round(self.HEIGHT * self.PIXEL_DENSITY)),
        )


@dataclass(frozen=True)
class OutputProfile:
    """Named bundle of target resolution and quality trade-off."""

    name: str
    width: int
    height: int
    quality: int = 20
    size_hint: str = ""

    def __post_init__(self) -> None:
        if self.width <= 0 or self.height <= 0:
            raise ConfigurationError(
                f"Profile '{self.name}' must have positive dimensions, got {self.width}x{self.height}"
            )
        if not MIN_QUALITY <= self.quality <= MAX_QUALITY:
            raise ConfigurationError(
                f"Profile '{self.name}' quality must be between {MIN_QUALITY} and {MAX_QUALITY}, got {self.quality}"
            )

    @property
    def dimensions(self) -> tuple[int, int]:
        return (self.width, self.height)

    def validate_against(self, capture: CaptureConfig) -> None:
        """Check that this profile can be produced from the captured bitmaps.

        The captured size includes the capture pixel density.

        Raises:
            ConfigurationError: If the target is larger than the captured
                bitmap or the aspect ratios differ
        """
        src_w, src_h = capture.pixel_size
        if self.width > src_w or self.height > src_h:
            raise ConfigurationError(
                f"Profile '{self.name}' ({self.width}x{self.height}) exceeds captured "
                f"bitmap size {src_w}x{src_h}"
            )
        if self.width * src_h != self.height * src_w:
            raise ConfigurationError(
                f"Profile '{self.name}' aspect ratio {self.width}:{self.height} does not "
                f"match captured bitmap aspect ratio {src_w}:{src_h}"
            )


OUTPUT_PROFILES: dict[str, OutputProfile] = {
    "small": OutputProfile("small", 640, 320, quality=20, size_hint="~1-2MB"),
    "medium": OutputProfile("medium", 960, 480, quality=20, size_hint="~2-4MB"),
    "large": OutputProfile("large", 1280, 640, quality=20, size_hint="~4-8MB"),
}


def get_output_profile(name: str) -> OutputProfile:
    """Look up an output profile by name.

    Raises:
        ConfigurationError: If the profile is unknown
    """
    try:
        return OUTPUT_PROFILES[name.lower()]
    except KeyError:
        raise ConfigurationError(
            f"Unknown output profile '{name}', expected one of: {', '.join(OUTPUT_PROFILES)}"
        ) from None


@dataclass(frozen=True)
class EncoderConfig:
    """Palette and worker settings for the GIF encoder."""

    # Smallest palette the quality scale is allowed to reach
    MIN_PALETTE_COLORS: int = 16
    # Palette shrinks by this many entries per quality step
    COLORS_PER_QUALITY_STEP: int = 8
    # Upper bound on pixels fed to palette construction
    MAX_PALETTE_SAMPLES: int = 1_000_000
    LOOP: int = 0

    def __post_init__(self) -> None:
        if not 2 <= self.MIN_PALETTE_COLORS <= 256:
            raise ConfigurationError(
                f"MIN_PALETTE_COLORS must be between 2 and 256, got {self.MIN_PALETTE_COLORS}"
            )
        if self.COLORS_PER_QUALITY_STEP < 0:
            raise ConfigurationError("COLORS_PER_QUALITY_STEP must be non-negative")
        if self.MAX_PALETTE_SAMPLES <= 0:
            raise ConfigurationError("MAX_PALETTE_SAMPLES must be positive")

    def palette_size(self, quality: int) -> int:
        """Palette size for a quality level; higher quality numbers mean fewer colours."""
        size = 256 - (quality - MIN_QUALITY) * self.COLORS_PER_QUALITY_STEP
        return max(self.MIN_PALETTE_COLORS, min(256, size))


@dataclass
class PipelineConfig:
    """Configuration surface consumed by the pipeline coordinator."""

    total_frames: int = 24
    frame_step_size: int = 5
    settle_delay_ms: int = 80
    frame_delay_ms: int = 80
    output_profile: str = "medium"
    workers: int = 2
    dither: bool = False
    # None disables the per-frame capture timeout
    frame_timeout_s: float | None = None
    descriptor: str = "link-alternatif"

    def __post_init__(self) -> None:
        if self.total_frames <= 0:
            raise ConfigurationError(f"total_frames must be positive, got {self.total_frames}")
        if self.frame_step_size <= 0:
            raise ConfigurationError(
                f"frame_step_size must be positive, got {self.frame_step_size}"
            )
        if self.settle_delay_ms < 0:
            raise ConfigurationError(
                f"settle_delay_ms must be non-negative, got {self.settle_delay_ms}"
            )
        if self.frame_delay_ms <= 0:
            raise ConfigurationError(
                f"frame_delay_ms must be positive, got {self.frame_delay_ms}"
            )
        if self.workers <= 0:
            raise ConfigurationError(f"workers must be positive, got {self.workers}")
        if self.frame_timeout_s is not None and self.frame_timeout_s <= 0:
            raise ConfigurationError(
                f"frame_timeout_s must be positive when set, got {self.frame_timeout_s}"
            )
        # Fails fast on unknown profile names
        get_output_profile(self.output_profile)

    @property
    def profile(self) -> OutputProfile:
        return get_output_profile(self.output_profile)

    @classmethod
    def env_overrides(cls) -> dict[str, Any]:
        """Read ``PROMOGIF_CONFIG_<FIELD>=value`` overrides from the environment.

        Values are converted to the field's type.

        Raises:
            ConfigurationError: If a value cannot be converted
        """
        known = {f.name: f for f in fields(cls)}
        overrides: dict[str, Any] = {}

        for env_key, env_value in os.environ.items():
            if not env_key.startswith(ENV_PREFIX):
                continue
            name = env_key[len(ENV_PREFIX):].lower()
            if name not in known:
                log_warning_with_context(
                    "Ignoring unknown config override", {"variable": env_key}, logger=logger
                )
                continue
            overrides[name] = _parse_env_value(env_key, env_value, str(known[name].type))
            logger.info(f"Applied environment override: {name} = {overrides[name]!r}")

        return overrides

    @classmethod
    def from_env(cls, base: PipelineConfig | None = None, **explicit: Any) -> PipelineConfig:
        """Layer environment overrides and explicit values over a base config.

        Precedence, lowest first: ``base``, ``PROMOGIF_CONFIG_<FIELD>``
        environment variables, ``explicit`` keyword values.

        Example: ``PROMOGIF_CONFIG_TOTAL_FRAMES=36``

        Args:
            base: Configuration to override (defaults to a fresh default config)
            **explicit: Field values that win over the environment

        Returns:
            New configuration with overrides applied

        Raises:
            ConfigurationError: If an override is malformed or the result is invalid
        """
        base = base or cls()
        overrides = {**cls.env_overrides(), **explicit}
        return replace(base, **overrides) if overrides else base


def _parse_bool(raw: str) -> bool:
    value = raw.lower()
    if value in ("true", "1", "yes", "on"):
        return True
    if value in ("false", "0", "no", "off"):
        return False
    raise ValueError(f"not a boolean: {raw!r}")


_ENV_PARSERS: dict[str, Callable[[str], Any]] = {
    "int": int,
    "float": float,
    "bool": _parse_bool,
    "str": str,
}


def _parse_env_value(env_key: str, raw: str, type_name: str) -> Any:
    """Convert an environment string to the annotated field type."""
    optional = type_name.endswith("| None")
    base_type = type_name.replace("| None", "").strip()
    raw = raw.strip()
    if optional and raw.lower() in ("", "none", "null"):
        return None
    try:
        return _ENV_PARSERS[base_type](raw)
    except (KeyError, ValueError) as e:
        raise ConfigurationError(
            f"Invalid value for {env_key}: {raw!r} (expected {base_type})",
            cause=e,
            context={"variable": env_key},
        ) from e


DEFAULT_CAPTURE_CONFIG = CaptureConfig()
DEFAULT_ENCODER_CONFIG = EncoderConfig()
