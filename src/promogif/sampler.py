"""Frame sampler: drives the scene clock and captures settled frames."""

from __future__ import annotations

import asyncio
import logging

from .clock import AnimationClock
from .config import DEFAULT_CAPTURE_CONFIG, CaptureConfig
from .error_handling import (
    CaptureTimeoutError,
    PromoGifError,
    RasterizationError,
    RunCancelledError,
    handle_error,
)
from .scene import CaptureRequest, PixelBuffer, Rasterizer, Scene

logger = logging.getLogger(__name__)


class CancellationToken:
    """Cooperative cancellation flag checked at every suspension point."""

    def __init__(self) -> None:
        self._cancelled = False
        self.reason = ""

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self, reason: str = "cancelled") -> None:
        self._cancelled = True
        self.reason = reason

    def raise_if_cancelled(self) -> None:
        if self._cancelled:
            raise RunCancelledError(f"Run cancelled: {self.reason}")


class FrameSampler:
    """Advances the animation clock and captures the scene at a clock value.

    After publishing a clock value the sampler waits for the scene to settle:
    if the scene exposes a render-complete signal it waits for that, otherwise
    it sleeps for ``settle_delay_ms``.

    Args:
        scene: Scene handle the rasterizer reads
        rasterizer: Capture backend
        settle_delay_ms: Fallback wait after each clock change
        capture: Canonical capture resolution
        frame_timeout_s: Upper bound for settle + rasterize (None = unbounded)
        clock: Clock to drive (a fresh clock starting at 0 by default)
    """

    def __init__(
        self,
        scene: Scene,
        rasterizer: Rasterizer,
        settle_delay_ms: int = 80,
        capture: CaptureConfig = DEFAULT_CAPTURE_CONFIG,
        frame_timeout_s: float | None = None,
        clock: AnimationClock | None = None,
    ):
        self.scene = scene
        self.rasterizer = rasterizer
        self.settle_delay_ms = settle_delay_ms
        self.request = CaptureRequest.canonical(capture)
        self.frame_timeout_s = frame_timeout_s
        self.clock = clock or AnimationClock()

    def advance(self, step_size: int) -> None:
        self.clock.advance(step_size)

    async def capture_at(
        self, clock_value: int, token: CancellationToken | None = None
    ) -> PixelBuffer:
        """Publish ``clock_value`` to the scene, wait for it to settle and rasterize it.

        Raises:
            RunCancelledError: If ``token`` was cancelled before or during the capture
            CaptureTimeoutError: If the capture exceeded ``frame_timeout_s``
            ResourceLoadError: If an image used by the scene failed to load
            RasterizationError: If the rasterizer rejected the capture
        """
        token = token or CancellationToken()
        token.raise_if_cancelled()

        self.scene.publish(clock_value)
        try:
            if self.frame_timeout_s is None:
                buffer = await self._settle_and_rasterize(token)
            else:
                buffer = await asyncio.wait_for(
                    self._settle_and_rasterize(token), timeout=self.frame_timeout_s
                )
        except asyncio.TimeoutError as e:
            raise CaptureTimeoutError(
                f"Capture at clock value {clock_value} timed out after {self.frame_timeout_s}s",
                cause=e,
                context={"clock_value": clock_value},
            ) from e
        except PromoGifError:
            raise
        except Exception as e:
            handle_error(
                e,
                "capture frame",
                RasterizationError,
                context={"clock_value": clock_value},
                logger=logger,
            )

        token.raise_if_cancelled()
        self._check_buffer(buffer, clock_value)
        return buffer

    async def capture_next(self, token: CancellationToken | None = None) -> PixelBuffer:
        """Capture at the clock's current value."""
        return await self.capture_at(self.clock.value, token)

    async def _settle_and_rasterize(self, token: CancellationToken) -> PixelBuffer:
        if self.scene.has_render_signal:
            await self.scene.wait_rendered()
        elif self.settle_delay_ms > 0:
            await asyncio.sleep(self.settle_delay_ms / 1000)
        token.raise_if_cancelled()
        return await self.rasterizer.rasterize(self.scene, self.request)

    def _check_buffer(self, buffer: PixelBuffer, clock_value: int) -> None:
        expected_w, expected_h = self.request.pixel_size
        shape = getattr(buffer, "shape", None)
        if shape is None or len(shape) != 3 or shape[:2] != (expected_h, expected_w):
            raise RasterizationError(
                f"Rasterizer returned a buffer of shape {shape}, expected ({expected_h}, {expected_w}, 3)",
                context={"clock_value": clock_value},
            )
