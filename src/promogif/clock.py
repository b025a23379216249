"""Animation clock and the time-varying scene parameters derived from it.

Every animated property of the scene is a pure function of a single integer
clock value in ``[0, ANIMATION_PERIOD)``. Capturing the same clock value twice
therefore produces the same scene state.
"""

from __future__ import annotations

import math

from .config import ANIMATION_PERIOD

# Header wave: radians per clock tick and per character, amplitude in capture pixels
WAVE_TIME_FACTOR = 0.3
WAVE_CHAR_FACTOR = 0.3
WAVE_AMPLITUDE_PX = 20.0

# Ticks per blink phase (~0.5 s at 30 fps)
BLINK_TICKS = 15
# Ticks per slideshow image (~2 s at 30 fps)
SLIDESHOW_TICKS = 60


class AnimationClock:
    """Bounded cyclic frame index that advances by a caller-chosen step."""

    def __init__(self, period: int = ANIMATION_PERIOD, value: int = 0):
        if period <= 0:
            raise ValueError(f"period must be positive, got {period}")
        self.period = period
        self._value = value % period

    @property
    def value(self) -> int:
        return self._value

    def advance(self, step: int) -> int:
        """Move the clock forward by ``step`` ticks, wrapping at the period.

        Returns:
            The new clock value
        """
        if step < 0:
            raise ValueError(f"step must be non-negative, got {step}")
        self._value = (self._value + step) % self.period
        return self._value

    def reset(self) -> None:
        self._value = 0

    def __repr__(self) -> str:
        return f"AnimationClock(value={self._value}, period={self.period})"


def wave_offset(frame: int, char_index: int) -> float:
    """Vertical offset in capture pixels of one header character."""
    return math.sin(frame * WAVE_TIME_FACTOR + char_index * WAVE_CHAR_FACTOR) * WAVE_AMPLITUDE_PX


def blink_visible(frame: int) -> bool:
    """Whether blinking elements are in their highlighted phase."""
    return (frame // BLINK_TICKS) % 2 == 0


def slideshow_index(frame: int, image_count: int) -> int:
    """Index of the slideshow image shown at ``frame`` (0 when there are no images)."""
    if image_count <= 0:
        return 0
    return (frame // SLIDESHOW_TICKS) % image_count


def capture_schedule(total_frames: int, step: int, period: int = ANIMATION_PERIOD) -> list[int]:
    """Clock values visited by a run of ``total_frames`` captures.

    The first capture happens at clock value 0; each following capture is
    ``step`` ticks later, wrapping at ``period``.
    """
    return [(i * step) % period for i in range(total_frames)]
