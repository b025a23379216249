"""promogif - animated promotional banner generator."""

__version__: str = "0.1.0"

from .catalog import STYLES, BackgroundCategory, SceneStyle, SitePreset, get_style, load_site_presets
from .clock import AnimationClock
from .config import OUTPUT_PROFILES, CaptureConfig, OutputProfile, PipelineConfig
from .coordinator import PipelineCoordinator, PipelineProgress, PipelineState
from .delivery import Artifact, DirectorySink, MemorySink, build_artifact_filename
from .downsample import downsample
from .encoder import EncodingSession, Frame, GifEncoder
from .error_handling import (
    ConfigurationError,
    EncodingError,
    PromoGifError,
    RasterizationError,
    ResourceLoadError,
)
from .render import PillowRasterizer
from .sampler import CancellationToken, FrameSampler
from .scene import CaptureRequest, Rasterizer, Scene, SceneContent, SlideshowImage

__all__ = [
    "AnimationClock",
    "Artifact",
    "BackgroundCategory",
    "CancellationToken",
    "CaptureConfig",
    "CaptureRequest",
    "ConfigurationError",
    "DirectorySink",
    "EncodingError",
    "EncodingSession",
    "Frame",
    "FrameSampler",
    "GifEncoder",
    "MemorySink",
    "OUTPUT_PROFILES",
    "OutputProfile",
    "PipelineConfig",
    "PipelineCoordinator",
    "PipelineProgress",
    "PillowRasterizer",
    "PipelineState",
    "PromoGifError",
    "RasterizationError",
    "Rasterizer",
    "ResourceLoadError",
    "STYLES",
    "Scene",
    "SceneContent",
    "SceneStyle",
    "SitePreset",
    "SlideshowImage",
    "build_artifact_filename",
    "downsample",
    "get_style",
    "load_site_presets",
]
