"""Frame accumulation and animated GIF encoding.

An :class:`EncodingSession` collects downsampled frames in playback order.
Finalizing it builds one global palette from all frames, maps every frame
onto that palette in a small thread pool and writes a looping GIF.

Quality levels follow a 1-30 scale where higher numbers trade fidelity for
size: the palette gets smaller and palette construction samples fewer
pixels. Dithering is off by default because dither noise inflates the
compressed size noticeably on flat promotional artwork.
"""

from __future__ import annotations

import asyncio
import io
import logging
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field

import numpy as np
from PIL import Image

from .config import DEFAULT_ENCODER_CONFIG, MAX_QUALITY, MIN_QUALITY, EncoderConfig
from .error_handling import ConfigurationError, EncodingError, SessionStateError, error_context

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Frame:
    """Downsampled pixels plus how long they are shown."""

    pixels: np.ndarray
    delay_ms: int
    clock_value: int | None = None

    @property
    def size(self) -> tuple[int, int]:
        return (self.pixels.shape[1], self.pixels.shape[0])


@dataclass
class EncodingSession:
    """Mutable, single-use accumulation of frames for one GIF."""

    width: int
    height: int
    quality: int
    parallelism: int
    dither: bool = False
    frames: list[Frame] = field(default_factory=list)
    palette: list[int] | None = None
    finalized: bool = False
    byte_size: int | None = None
    encode_ms: float | None = None

    @property
    def frame_count(self) -> int:
        return len(self.frames)

    @property
    def total_duration_ms(self) -> int:
        return sum(frame.delay_ms for frame in self.frames)


class GifEncoder:
    """Opens sessions, appends frames and renders the final GIF bytes."""

    def __init__(self, config: EncoderConfig = DEFAULT_ENCODER_CONFIG):
        self.config = config

    def open(
        self,
        width: int,
        height: int,
        quality_level: int,
        parallelism: int = 2,
        dither: bool = False,
    ) -> EncodingSession:
        """Create an empty session for frames of ``width`` x ``height``.

        Raises:
            ConfigurationError: If any argument is out of range
        """
        if width <= 0 or height <= 0:
            raise ConfigurationError(f"Session size must be positive, got {width}x{height}")
        if not MIN_QUALITY <= quality_level <= MAX_QUALITY:
            raise ConfigurationError(
                f"quality_level must be between {MIN_QUALITY} and {MAX_QUALITY}, got {quality_level}"
            )
        if parallelism <= 0:
            raise ConfigurationError(f"parallelism must be positive, got {parallelism}")

        return EncodingSession(
            width=width,
            height=height,
            quality=quality_level,
            parallelism=parallelism,
            dither=dither,
        )

    def append_frame(
        self,
        session: EncodingSession,
        pixels: np.ndarray,
        delay_ms: int,
        clock_value: int | None = None,
    ) -> Frame:
        """Append a frame; call order is playback order.

        The pixels are copied and frozen, so callers may reuse their buffer.

        Raises:
            SessionStateError: If the session was already finalized
            EncodingError: If the frame does not match the session size
        """
        if session.finalized:
            raise SessionStateError("Cannot append to a finalized encoding session")
        if delay_ms <= 0:
            raise EncodingError(f"delay_ms must be positive, got {delay_ms}")
        expected = (session.height, session.width, 3)
        if pixels.shape != expected:
            raise EncodingError(
                f"Frame shape {pixels.shape} does not match session shape {expected}",
                context={"frame_index": session.frame_count},
            )

        owned = np.array(pixels, dtype=np.uint8, copy=True)
        owned.setflags(write=False)
        frame = Frame(pixels=owned, delay_ms=delay_ms, clock_value=clock_value)
        session.frames.append(frame)
        return frame

    async def finalize(self, session: EncodingSession) -> bytes:
        """Encode the session without blocking the event loop.

        Raises:
            SessionStateError: If the session was already finalized
            EncodingError: If the session has no frames or encoding fails
        """
        self._begin_finalize(session)
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self._encode, session)

    def finalize_sync(self, session: EncodingSession) -> bytes:
        """Blocking variant of :meth:`finalize`."""
        self._begin_finalize(session)
        return self._encode(session)

    def _begin_finalize(self, session: EncodingSession) -> None:
        if session.finalized:
            raise SessionStateError("Encoding session was already finalized")
        session.finalized = True
        if not session.frames:
            raise EncodingError("Cannot encode a session with zero frames")

    def _encode(self, session: EncodingSession) -> bytes:
        start = time.perf_counter()
        with error_context(
            "encode GIF",
            EncodingError,
            context={"frames": session.frame_count, "size": f"{session.width}x{session.height}"},
            logger=logger,
        ):
            palette_image = self.build_palette(session.frames, session.quality)
            session.palette = palette_image.getpalette()

            dither = Image.Dither.FLOYDSTEINBERG if session.dither else Image.Dither.NONE

            def remap(frame: Frame) -> Image.Image:
                rgb = Image.fromarray(np.asarray(frame.pixels))
                return rgb.quantize(palette=palette_image, dither=dither)

            with ThreadPoolExecutor(max_workers=session.parallelism) as pool:
                indexed = list(pool.map(remap, session.frames))

            buffer = io.BytesIO()
            indexed[0].save(
                buffer,
                format="GIF",
                save_all=True,
                append_images=indexed[1:],
                duration=[frame.delay_ms for frame in session.frames],
                loop=self.config.LOOP,
                optimize=False,
            )
            data = buffer.getvalue()

        session.byte_size = len(data)
        session.encode_ms = (time.perf_counter() - start) * 1000
        logger.info(
            f"Encoded {session.frame_count} frames at {session.width}x{session.height} "
            f"({len(data) / (1024 * 1024):.2f} MB, {session.encode_ms:.0f}ms)"
        )
        return data

    def build_palette(self, frames: list[Frame], quality: int) -> Image.Image:
        """Build one palette shared by every frame.

        Pixels are sampled with a stride equal to ``quality`` (and further
        thinned to at most ``MAX_PALETTE_SAMPLES``) and reduced with median cut.

        Returns:
            A 1x1 palette-mode image usable as ``Image.quantize(palette=...)``
        """
        stride = max(1, quality)
        samples = np.concatenate(
            [np.asarray(frame.pixels).reshape(-1, 3)[::stride] for frame in frames]
        )
        if len(samples) > self.config.MAX_PALETTE_SAMPLES:
            step = -(-len(samples) // self.config.MAX_PALETTE_SAMPLES)
            samples = samples[::step]

        colors = self.config.palette_size(quality)
        strip = Image.fromarray(np.ascontiguousarray(samples.reshape(1, -1, 3)))
        quantized = strip.quantize(colors=colors, method=Image.Quantize.MEDIANCUT)
        logger.debug(f"Built {colors}-colour palette from {len(samples)} sampled pixels")

        palette_image = Image.new("P", (1, 1))
        palette_image.putpalette(quantized.getpalette())
        return palette_image
