"""Pipeline coordinator: the capture → downsample → encode state machine.

States::

    IDLE → CAPTURING(i) → FINALIZING → DONE → IDLE
      └──────────┴─────────────┴──→ FAILED → IDLE

The coordinator is the single recovery point for every pipeline error. A
failed run delivers nothing, reports exactly one failure and leaves the
coordinator ready for the next run. A run started while another one is in
flight is ignored.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum

from .config import DEFAULT_CAPTURE_CONFIG, CaptureConfig, PipelineConfig
from .delivery import Artifact, ArtifactSink, MemorySink, build_artifact_filename
from .downsample import InterpolationMethod, downsample
from .encoder import EncodingSession, GifEncoder
from .error_handling import (
    PromoGifError,
    RunCancelledError,
    clean_error_message,
    handle_error,
    log_info_with_context,
    log_warning_with_context,
)
from .sampler import CancellationToken, FrameSampler
from .scene import Rasterizer, Scene, SceneSnapshot

logger = logging.getLogger(__name__)


class PipelineState(Enum):
    IDLE = "idle"
    CAPTURING = "capturing"
    FINALIZING = "finalizing"
    DONE = "done"
    FAILED = "failed"


@dataclass
class PipelineProgress:
    """Captured-frame counter for the active run."""

    frames_captured: int = 0
    frames_total: int = 0

    @property
    def percent(self) -> int:
        """Rounded completion percentage; 100 only once every frame is captured."""
        if self.frames_total <= 0:
            return 0
        value = round(self.frames_captured / self.frames_total * 100)
        if self.frames_captured < self.frames_total:
            value = min(value, 99)
        return value


@dataclass
class RunSummary:
    """Outcome of the most recent run."""

    succeeded: bool
    frames_appended: int
    clock_values: list[int] = field(default_factory=list)
    filename: str | None = None
    byte_size: int | None = None
    elapsed_s: float = 0.0
    error: str | None = None


ProgressListener = Callable[[int], None]
FailureListener = Callable[[PromoGifError], None]
StateListener = Callable[[PipelineState, int | None], None]


class PipelineCoordinator:
    """Drives a full GIF generation run over a scene.

    Args:
        scene: Scene handle; locked for the duration of a run
        rasterizer: Capture backend
        config: Frame count, stepping, timing and output profile
        sink: Receives the finished artifact (kept in memory by default)
        encoder: GIF encoder
        capture: Canonical capture resolution
        interpolation: Downsampling kernel
    """

    def __init__(
        self,
        scene: Scene,
        rasterizer: Rasterizer,
        config: PipelineConfig | None = None,
        sink: ArtifactSink | None = None,
        encoder: GifEncoder | None = None,
        capture: CaptureConfig = DEFAULT_CAPTURE_CONFIG,
        interpolation: InterpolationMethod = InterpolationMethod.AREA,
    ):
        self.scene = scene
        self.rasterizer = rasterizer
        self.config = config or PipelineConfig()
        self.sink = sink or MemorySink()
        self.encoder = encoder or GifEncoder()
        self.capture = capture
        self.interpolation = interpolation

        self._state = PipelineState.IDLE
        self._frame_index: int | None = None
        self._progress = PipelineProgress()
        self._session: EncodingSession | None = None
        self._token: CancellationToken | None = None
        self.last_run: RunSummary | None = None

        self._progress_listeners: list[ProgressListener] = []
        self._failure_listeners: list[FailureListener] = []
        self._state_listeners: list[StateListener] = []

    @property
    def state(self) -> PipelineState:
        return self._state

    @property
    def frame_index(self) -> int | None:
        """Index of the frame being captured while CAPTURING, otherwise None."""
        return self._frame_index

    @property
    def progress(self) -> PipelineProgress:
        return self._progress

    @property
    def is_busy(self) -> bool:
        return self._state in (PipelineState.CAPTURING, PipelineState.FINALIZING)

    def on_progress(self, listener: ProgressListener) -> None:
        self._progress_listeners.append(listener)

    def on_failure(self, listener: FailureListener) -> None:
        self._failure_listeners.append(listener)

    def on_state_change(self, listener: StateListener) -> None:
        self._state_listeners.append(listener)

    def cancel(self, reason: str = "cancelled by caller") -> bool:
        """Request cancellation of the active run.

        Returns:
            True if a run was active and has been asked to stop
        """
        if not self.is_busy or self._token is None:
            return False
        self._token.cancel(reason)
        logger.info(f"⏹️  Cancellation requested: {reason}")
        return True

    async def generate(self) -> Artifact | None:
        """Run the whole pipeline once.

        Returns:
            The delivered artifact, or None if the run failed or another run
            was already in progress
        """
        if self.is_busy:
            logger.warning("Generate ignored: a run is already in progress")
            return None

        config = self.config
        started = time.perf_counter()
        token = CancellationToken()
        self._token = token
        self._progress = PipelineProgress(0, config.total_frames)
        self._set_state(PipelineState.CAPTURING, 0)
        self.scene.lock()

        clock_values: list[int] = []
        try:
            profile = config.profile
            profile.validate_against(self.capture)
            width, height = profile.dimensions
            snapshot = SceneSnapshot.of(self.scene)
            log_info_with_context(
                f"🎞️  Generating {config.total_frames} frames at {width}x{height}",
                {
                    "profile": profile.name,
                    "step": config.frame_step_size,
                    "site": snapshot.site_name,
                    "style": snapshot.style_id,
                },
                logger=logger,
            )

            self._session = self.encoder.open(
                width, height, profile.quality, config.workers, config.dither
            )
            sampler = FrameSampler(
                self.scene,
                self.rasterizer,
                settle_delay_ms=config.settle_delay_ms,
                capture=self.capture,
                frame_timeout_s=config.frame_timeout_s,
            )

            for index in range(config.total_frames):
                self._set_state(PipelineState.CAPTURING, index)
                if index > 0:
                    sampler.advance(config.frame_step_size)
                clock_value = sampler.clock.value

                buffer = await sampler.capture_at(clock_value, token)
                scaled = downsample(buffer, width, height, self.interpolation)
                self.encoder.append_frame(
                    self._session, scaled, config.frame_delay_ms, clock_value=clock_value
                )
                clock_values.append(clock_value)
                self._report_progress(index + 1)

            self._set_state(PipelineState.FINALIZING)
            token.raise_if_cancelled()
            data = await self.encoder.finalize(self._session)
            token.raise_if_cancelled()

            artifact = Artifact(
                filename=build_artifact_filename(
                    self.scene.content.site_name, config.descriptor, width, height
                ),
                data=data,
            )
            self._set_state(PipelineState.DONE)
            self.sink.deliver(artifact)
        except asyncio.CancelledError:
            self._fail(RunCancelledError("Run task was cancelled"), clock_values, started)
            raise
        except PromoGifError as e:
            self._fail(e, clock_values, started)
            return None
        except Exception as e:
            error = handle_error(
                e, "generate GIF", PromoGifError, logger=logger, reraise=False
            )
            self._fail(error, clock_values, started)
            return None

        self.last_run = RunSummary(
            succeeded=True,
            frames_appended=len(clock_values),
            clock_values=clock_values,
            filename=artifact.filename,
            byte_size=len(artifact.data),
            elapsed_s=time.perf_counter() - started,
        )
        logger.info(
            f"✅ Delivered {artifact.filename} ({artifact.size_mb:.2f} MB) "
            f"in {self.last_run.elapsed_s:.1f}s"
        )
        self._reset()
        return artifact

    def _set_state(self, state: PipelineState, frame_index: int | None = None) -> None:
        self._state = state
        self._frame_index = frame_index if state is PipelineState.CAPTURING else None
        for listener in self._state_listeners:
            self._notify("state", listener, state, self._frame_index)

    def _report_progress(self, frames_captured: int) -> None:
        self._progress.frames_captured = frames_captured
        percent = self._progress.percent
        for listener in self._progress_listeners:
            self._notify("progress", listener, percent)

    def _notify(self, kind: str, listener: Callable[..., None], *args: object) -> None:
        """Call a listener; its exceptions are logged and never reach the run."""
        try:
            listener(*args)
        except Exception as e:
            log_warning_with_context(
                f"{kind.capitalize()} listener raised {type(e).__name__}: {e}",
                {"listener": getattr(listener, "__qualname__", repr(listener))},
                logger=logger,
            )

    def _fail(self, error: PromoGifError, clock_values: list[int], started: float) -> None:
        frames = self._session.frame_count if self._session is not None else 0
        self._set_state(PipelineState.FAILED)
        self.last_run = RunSummary(
            succeeded=False,
            frames_appended=frames,
            clock_values=clock_values,
            elapsed_s=time.perf_counter() - started,
            error=clean_error_message(str(error)),
        )
        logger.error(f"❌ GIF generation failed after {frames} frames: {error}")
        self._reset()
        for listener in self._failure_listeners:
            self._notify("failure", listener, error)

    def _reset(self) -> None:
        self.scene.unlock()
        self._token = None
        self._session = None
        self._progress = PipelineProgress()
        self._set_state(PipelineState.IDLE)
