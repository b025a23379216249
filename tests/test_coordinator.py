"""Tests for promogif.coordinator: full capture → downsample → encode runs."""

import asyncio
import io

import pytest
from PIL import Image

from promogif.clock import capture_schedule
from promogif.config import CaptureConfig, PipelineConfig
from promogif.coordinator import PipelineCoordinator, PipelineProgress, PipelineState
from promogif.delivery import MemorySink
from promogif.error_handling import (
    CaptureTimeoutError,
    ConfigurationError,
    PromoGifError,
    RasterizationError,
    RunCancelledError,
    SceneLockedError,
)
from tests.fakes import FakeRasterizer, SlowRasterizer, solid_color_for


def fast_config(**overrides) -> PipelineConfig:
    values = {"settle_delay_ms": 0, "output_profile": "medium"}
    values.update(overrides)
    return PipelineConfig(**values)


class Recorder:
    """Collects every coordinator notification."""

    def __init__(self, coordinator: PipelineCoordinator):
        self.progress: list[int] = []
        self.failures: list[PromoGifError] = []
        self.states: list[tuple[PipelineState, int | None]] = []
        coordinator.on_progress(self.progress.append)
        coordinator.on_failure(self.failures.append)
        coordinator.on_state_change(lambda state, index: self.states.append((state, index)))


@pytest.fixture
def make_coordinator(scene, small_capture):
    def _make(rasterizer=None, config=None, sink=None, capture=small_capture):
        return PipelineCoordinator(
            scene,
            rasterizer or FakeRasterizer(),
            config or fast_config(),
            sink=sink or MemorySink(),
            capture=capture,
        )

    return _make


class TestPipelineProgress:
    """Tests for PipelineProgress.percent."""

    def test_empty(self):
        assert PipelineProgress().percent == 0

    def test_rounds(self):
        assert PipelineProgress(1, 24).percent == 4
        assert PipelineProgress(12, 24).percent == 50

    def test_capped_until_last_frame(self):
        assert PipelineProgress(199, 200).percent == 99
        assert PipelineProgress(200, 200).percent == 100


class TestSuccessfulRun:
    """Tests for a run that completes."""

    @pytest.mark.asyncio
    async def test_default_run_produces_medium_gif(self, make_coordinator, fake_rasterizer):
        sink = MemorySink()
        coordinator = make_coordinator(rasterizer=fake_rasterizer, sink=sink)
        recorder = Recorder(coordinator)

        artifact = await coordinator.generate()

        assert artifact is not None
        assert sink.artifacts == [artifact]
        assert artifact.filename == "galaxy-demo-site-link-alternatif-960x480.gif"
        assert artifact.filename.endswith("-960x480.gif")
        with Image.open(io.BytesIO(artifact.data)) as gif:
            assert gif.size == (960, 480)
            assert gif.n_frames == 24

        assert fake_rasterizer.calls == 24
        assert all((r.width, r.height) == (1280, 640) for r in fake_rasterizer.requests)
        assert recorder.failures == []
        assert coordinator.last_run.succeeded is True
        assert coordinator.last_run.frames_appended == 24

    @pytest.mark.asyncio
    async def test_clock_values_follow_schedule(self, make_coordinator, fake_rasterizer):
        coordinator = make_coordinator(rasterizer=fake_rasterizer)
        await coordinator.generate()

        expected = capture_schedule(24, 5)
        assert expected[0] == 0
        assert expected[-1] == 115
        assert fake_rasterizer.clock_values == expected
        assert coordinator.last_run.clock_values == expected

    @pytest.mark.asyncio
    async def test_frames_in_capture_order(self, make_coordinator):
        coordinator = make_coordinator(config=fast_config(total_frames=6, frame_step_size=20))
        artifact = await coordinator.generate()

        with Image.open(io.BytesIO(artifact.data)) as gif:
            colors = []
            for index in range(gif.n_frames):
                gif.seek(index)
                colors.append(gif.convert("RGB").getpixel((10, 10)))
        assert colors == [solid_color_for(v) for v in capture_schedule(6, 20)]

    @pytest.mark.asyncio
    async def test_progress_monotonic_with_single_100(self, make_coordinator):
        coordinator = make_coordinator()
        recorder = Recorder(coordinator)

        await coordinator.generate()

        assert len(recorder.progress) == 24
        assert recorder.progress == sorted(recorder.progress)
        assert recorder.progress.count(100) == 1
        assert recorder.progress[-1] == 100

    @pytest.mark.asyncio
    async def test_state_sequence(self, make_coordinator):
        coordinator = make_coordinator(config=fast_config(total_frames=3))
        recorder = Recorder(coordinator)

        await coordinator.generate()

        states = [state for state, _ in recorder.states]
        assert states[0] is PipelineState.CAPTURING
        assert states[-3:] == [PipelineState.FINALIZING, PipelineState.DONE, PipelineState.IDLE]
        indices = [index for state, index in recorder.states if state is PipelineState.CAPTURING]
        assert sorted(set(indices)) == [0, 1, 2]
        assert PipelineState.FAILED not in states

    @pytest.mark.asyncio
    async def test_idle_and_unlocked_after_run(self, make_coordinator, scene):
        coordinator = make_coordinator(config=fast_config(total_frames=2))
        await coordinator.generate()

        assert coordinator.state is PipelineState.IDLE
        assert coordinator.frame_index is None
        assert coordinator.progress.percent == 0
        assert scene.locked is False

    @pytest.mark.asyncio
    async def test_runs_are_deterministic(self, make_coordinator):
        coordinator = make_coordinator(config=fast_config(total_frames=8))
        first = await coordinator.generate()
        second = await coordinator.generate()
        assert first.data == second.data

    @pytest.mark.asyncio
    async def test_small_profile(self, make_coordinator):
        coordinator = make_coordinator(config=fast_config(total_frames=4, output_profile="small"))
        artifact = await coordinator.generate()
        assert artifact.filename.endswith("-640x320.gif")
        with Image.open(io.BytesIO(artifact.data)) as gif:
            assert gif.size == (640, 320)


class TestFailedRun:
    """Tests for failure handling."""

    @pytest.mark.asyncio
    async def test_capture_failure_mid_run(self, make_coordinator, scene):
        sink = MemorySink()
        coordinator = make_coordinator(rasterizer=FakeRasterizer(fail_on_call=10), sink=sink)
        recorder = Recorder(coordinator)

        artifact = await coordinator.generate()

        assert artifact is None
        assert sink.artifacts == []
        assert len(recorder.failures) == 1
        assert isinstance(recorder.failures[0], RasterizationError)
        assert (PipelineState.FAILED, None) in recorder.states
        assert PipelineState.FINALIZING not in [s for s, _ in recorder.states]
        assert coordinator.last_run.succeeded is False
        assert coordinator.last_run.frames_appended == 9
        assert coordinator.state is PipelineState.IDLE
        assert coordinator.progress.percent == 0
        assert scene.locked is False

    @pytest.mark.asyncio
    async def test_new_run_after_failure(self, make_coordinator):
        coordinator = make_coordinator(
            rasterizer=FakeRasterizer(fail_on_call=2), config=fast_config(total_frames=3)
        )
        assert await coordinator.generate() is None

        coordinator.rasterizer = FakeRasterizer()
        artifact = await coordinator.generate()
        assert artifact is not None
        assert coordinator.last_run.succeeded is True

    @pytest.mark.asyncio
    async def test_profile_larger_than_capture_fails_run(self, make_coordinator):
        coordinator = make_coordinator(capture=CaptureConfig(WIDTH=640, HEIGHT=320))
        recorder = Recorder(coordinator)

        assert await coordinator.generate() is None
        assert len(recorder.failures) == 1
        assert isinstance(recorder.failures[0], ConfigurationError)
        assert coordinator.state is PipelineState.IDLE

    @pytest.mark.asyncio
    async def test_low_pixel_density_fails_before_capture(self, make_coordinator, fake_rasterizer):
        coordinator = make_coordinator(
            rasterizer=fake_rasterizer,
            capture=CaptureConfig(WIDTH=1280, HEIGHT=640, PIXEL_DENSITY=0.5),
        )
        recorder = Recorder(coordinator)

        assert await coordinator.generate() is None
        assert isinstance(recorder.failures[0], ConfigurationError)
        assert fake_rasterizer.calls == 0

    @pytest.mark.asyncio
    async def test_frame_timeout(self, make_coordinator):
        coordinator = make_coordinator(
            rasterizer=SlowRasterizer(delay_s=5),
            config=fast_config(total_frames=3, frame_timeout_s=0.05),
        )
        recorder = Recorder(coordinator)

        assert await coordinator.generate() is None
        assert len(recorder.failures) == 1
        assert isinstance(recorder.failures[0], CaptureTimeoutError)

    @pytest.mark.asyncio
    async def test_delivery_failure(self, make_coordinator):
        class BrokenSink:
            def deliver(self, artifact):
                raise OSError("disk full")

        coordinator = make_coordinator(sink=BrokenSink(), config=fast_config(total_frames=2))
        recorder = Recorder(coordinator)

        assert await coordinator.generate() is None
        assert len(recorder.failures) == 1
        assert "disk full" in str(recorder.failures[0])
        assert coordinator.state is PipelineState.IDLE


class TestConcurrencyAndCancellation:
    """Tests for the busy guard, scene locking and cancellation."""

    @pytest.mark.asyncio
    async def test_second_generate_is_ignored(self, make_coordinator, fake_rasterizer):
        coordinator = make_coordinator(
            rasterizer=fake_rasterizer, config=fast_config(total_frames=4, settle_delay_ms=5)
        )

        first, second = await asyncio.gather(coordinator.generate(), coordinator.generate())

        assert first is not None
        assert second is None
        assert fake_rasterizer.calls == 4
        assert len(coordinator.sink.artifacts) == 1

    @pytest.mark.asyncio
    async def test_scene_locked_during_run(self, make_coordinator, scene):
        coordinator = make_coordinator(config=fast_config(total_frames=3))
        errors = []

        def try_update(_percent):
            try:
                scene.update(site_name="Changed")
            except SceneLockedError as e:
                errors.append(e)

        coordinator.on_progress(try_update)
        await coordinator.generate()

        assert len(errors) == 3
        assert scene.content.site_name == "Galaxy Demo Site"
        scene.update(site_name="Changed")
        assert scene.content.site_name == "Changed"

    @pytest.mark.asyncio
    async def test_cancel(self, make_coordinator, scene):
        coordinator = make_coordinator(
            rasterizer=SlowRasterizer(delay_s=0.01), config=fast_config(total_frames=50)
        )
        recorder = Recorder(coordinator)

        task = asyncio.create_task(coordinator.generate())
        await asyncio.sleep(0.05)
        assert coordinator.cancel("user closed the dialog") is True

        assert await task is None
        assert len(recorder.failures) == 1
        assert isinstance(recorder.failures[0], RunCancelledError)
        assert coordinator.sink.artifacts == []
        assert scene.locked is False

    def test_cancel_when_idle(self, make_coordinator):
        assert make_coordinator().cancel() is False

    @pytest.mark.asyncio
    async def test_task_cancellation_resets(self, make_coordinator, scene):
        coordinator = make_coordinator(
            rasterizer=SlowRasterizer(delay_s=0.01), config=fast_config(total_frames=50)
        )
        recorder = Recorder(coordinator)

        task = asyncio.create_task(coordinator.generate())
        await asyncio.sleep(0.05)
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task
        assert coordinator.state is PipelineState.IDLE
        assert len(recorder.failures) == 1
        assert scene.locked is False

    @pytest.mark.asyncio
    async def test_cancel_while_finalizing(self, make_coordinator, scene):
        """Test that a cancel accepted during FINALIZING discards the encoded GIF."""
        coordinator = make_coordinator(config=fast_config(total_frames=3))
        recorder = Recorder(coordinator)
        accepted = []
        loop = asyncio.get_running_loop()

        def cancel_on_finalize(state, _index):
            if state is PipelineState.FINALIZING:
                loop.call_soon(lambda: accepted.append(coordinator.cancel("stop")))

        coordinator.on_state_change(cancel_on_finalize)

        assert await coordinator.generate() is None
        assert accepted == [True]
        assert coordinator.sink.artifacts == []
        assert len(recorder.failures) == 1
        assert isinstance(recorder.failures[0], RunCancelledError)
        assert PipelineState.DONE not in [state for state, _ in recorder.states]
        assert coordinator.state is PipelineState.IDLE
        assert scene.locked is False


class TestMisbehavingListeners:
    """Tests that listener exceptions never break recovery."""

    @pytest.mark.asyncio
    async def test_state_listener_raising_on_failure(self, make_coordinator, scene):
        coordinator = make_coordinator(
            rasterizer=FakeRasterizer(fail_on_call=2), config=fast_config(total_frames=3)
        )
        recorder = Recorder(coordinator)

        def explode_on_failed(state, _index):
            if state is PipelineState.FAILED:
                raise RuntimeError("listener bug")

        coordinator.on_state_change(explode_on_failed)

        assert await coordinator.generate() is None
        assert scene.locked is False
        assert coordinator.state is PipelineState.IDLE
        assert coordinator.is_busy is False
        assert len(recorder.failures) == 1

    @pytest.mark.asyncio
    async def test_failure_listeners_all_notified(self, make_coordinator, scene):
        coordinator = make_coordinator(
            rasterizer=FakeRasterizer(fail_on_call=1), config=fast_config(total_frames=2)
        )
        received = []

        def broken(_error):
            raise ValueError("listener bug")

        coordinator.on_failure(broken)
        coordinator.on_failure(received.append)

        assert await coordinator.generate() is None
        assert len(received) == 1
        assert scene.locked is False

    @pytest.mark.asyncio
    async def test_progress_listener_raising_does_not_abort_run(self, make_coordinator, caplog):
        coordinator = make_coordinator(config=fast_config(total_frames=3))

        def broken(_percent):
            raise RuntimeError("listener bug")

        coordinator.on_progress(broken)

        artifact = await coordinator.generate()
        assert artifact is not None
        assert "Progress listener raised RuntimeError: listener bug" in caplog.text
