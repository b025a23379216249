"""Shared fixtures for the promogif test-suite."""

from __future__ import annotations

import pytest
from PIL import Image

from promogif.config import CaptureConfig
from promogif.scene import Scene, SceneContent
from tests.fakes import FakeRasterizer


@pytest.fixture
def scene() -> Scene:
    return Scene(SceneContent(site_name="Galaxy Demo Site"))


@pytest.fixture
def fake_rasterizer() -> FakeRasterizer:
    return FakeRasterizer()


@pytest.fixture
def small_capture() -> CaptureConfig:
    """Reduced capture resolution that still fits every output profile."""
    return CaptureConfig(WIDTH=1280, HEIGHT=640)


@pytest.fixture
def image_file(tmp_path):
    """Write a small RGBA PNG and return its path."""

    def _make(name: str = "image.png", size=(40, 20), color=(200, 30, 30, 255)):
        path = tmp_path / name
        Image.new("RGBA", size, color).save(path)
        return path

    return _make
