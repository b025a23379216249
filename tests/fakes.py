"""Test doubles for the rasterizer contract."""

from __future__ import annotations

import asyncio

import numpy as np

from promogif.error_handling import RasterizationError
from promogif.scene import CaptureRequest, Scene


def solid_color_for(clock_value: int) -> tuple[int, int, int]:
    """Distinct colour per clock value so captured frames never repeat."""
    v = (clock_value * 2) % 256
    return (v, 64, 255 - v)


class FakeRasterizer:
    """Rasterizer returning a solid frame coloured by the scene's clock value.

    Args:
        fail_on_call: 1-based call number that raises instead of rendering
        error: Exception raised on the failing call
    """

    def __init__(self, fail_on_call: int | None = None, error: Exception | None = None):
        self.fail_on_call = fail_on_call
        self.error = error or RasterizationError("surface torn down mid-capture")
        self.calls = 0
        self.clock_values: list[int] = []
        self.requests: list[CaptureRequest] = []

    async def rasterize(self, scene: Scene, request: CaptureRequest) -> np.ndarray:
        self.calls += 1
        if self.fail_on_call is not None and self.calls == self.fail_on_call:
            raise self.error
        self.clock_values.append(scene.clock_value)
        self.requests.append(request)
        width, height = request.pixel_size
        frame = np.empty((height, width, 3), dtype=np.uint8)
        frame[...] = solid_color_for(scene.clock_value)
        return frame


class SlowRasterizer(FakeRasterizer):
    """FakeRasterizer that sleeps before every capture."""

    def __init__(self, delay_s: float, **kwargs):
        super().__init__(**kwargs)
        self.delay_s = delay_s

    async def rasterize(self, scene: Scene, request: CaptureRequest) -> np.ndarray:
        await asyncio.sleep(self.delay_s)
        return await super().rasterize(scene, request)
