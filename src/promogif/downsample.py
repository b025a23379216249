"""Downsampling of full-resolution captures to the output profile size."""

from __future__ import annotations

import logging
from enum import Enum

import cv2
import numpy as np

from .error_handling import ConfigurationError

logger = logging.getLogger(__name__)


class InterpolationMethod(Enum):
    """Supported interpolation methods for resizing."""

    AREA = cv2.INTER_AREA
    LINEAR = cv2.INTER_LINEAR
    CUBIC = cv2.INTER_CUBIC
    LANCZOS4 = cv2.INTER_LANCZOS4
    NEAREST = cv2.INTER_NEAREST

    @classmethod
    def from_name(cls, name: str) -> InterpolationMethod:
        try:
            return cls[name.upper()]
        except KeyError:
            raise ConfigurationError(
                f"Unknown interpolation '{name}', expected one of: {', '.join(m.name.lower() for m in cls)}"
            ) from None


def downsample(
    buffer: np.ndarray,
    target_w: int,
    target_h: int,
    interpolation: InterpolationMethod = InterpolationMethod.AREA,
) -> np.ndarray:
    """Resample ``buffer`` down to ``target_w`` x ``target_h``.

    Area resampling averages every source pixel that falls into a target
    pixel, which keeps thin text strokes legible at small sizes. The input is
    never modified and the same input always yields the same output.

    Args:
        buffer: RGB uint8 array of shape (height, width, 3)
        target_w: Output width in pixels
        target_h: Output height in pixels
        interpolation: Resampling kernel

    Returns:
        New contiguous RGB uint8 array of shape (target_h, target_w, 3)

    Raises:
        ConfigurationError: If the target is larger than the source or the
            aspect ratios differ
        ValueError: If ``buffer`` is not an RGB image
    """
    if buffer.ndim != 3 or buffer.shape[2] != 3:
        raise ValueError(f"Expected an RGB buffer of shape (h, w, 3), got {buffer.shape}")
    if target_w <= 0 or target_h <= 0:
        raise ConfigurationError(f"Target size must be positive, got {target_w}x{target_h}")

    src_h, src_w = buffer.shape[:2]
    if target_w > src_w or target_h > src_h:
        raise ConfigurationError(
            f"Target {target_w}x{target_h} is larger than source {src_w}x{src_h}"
        )
    if target_w * src_h != target_h * src_w:
        raise ConfigurationError(
            f"Target aspect ratio {target_w}:{target_h} does not match source {src_w}:{src_h}"
        )

    if (target_w, target_h) == (src_w, src_h):
        return np.array(buffer, dtype=np.uint8, copy=True)

    resized = cv2.resize(
        np.ascontiguousarray(buffer, dtype=np.uint8),
        (target_w, target_h),
        interpolation=interpolation.value,
    )
    return np.ascontiguousarray(resized)
