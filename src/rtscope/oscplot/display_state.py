import time
from dataclasses import dataclass
from typing import Callable, Optional, Union

from loguru import logger


@dataclass(frozen=True)
class TimeWindow:
    """Half-open range ``[start, end)`` over grid time."""

    start: float
    end: float

    @property
    def width(self) -> float:
        return self.end - self.start

    @property
    def is_empty(self) -> bool:
        return self.end <= self.start

    def contains(self, t: float) -> bool:
        return self.start <= t < self.end

    def is_within(self, other: "TimeWindow", tolerance: float = 0.0) -> bool:
        """True if this window lies inside ``other`` (bounds inclusive, up to ``tolerance``)."""
        return (
            self.start >= other.start - tolerance and self.end <= other.end + tolerance
        )

    def clipped(self, other: "TimeWindow") -> "TimeWindow":
        """Intersect with ``other``."""
        return TimeWindow(max(self.start, other.start), min(self.end, other.end))

    def shifted(self, delta: float) -> "TimeWindow":
        return TimeWindow(self.start + delta, self.end + delta)

    def widened(self, delta: float) -> "TimeWindow":
        """Move both bounds outwards by ``delta`` (inwards if negative)."""
        return TimeWindow(self.start - delta, self.end + delta)


@dataclass(frozen=True)
class Live:
    """The visible window follows the wall clock."""


@dataclass(frozen=True)
class Frozen:
    """The visible window is pinned to the range captured at freeze time."""

    window: TimeWindow


FreezeState = Union[Live, Frozen]


def window_for(now: float, first_sample_time: float, divisions: float) -> TimeWindow:
    """
    Derive the live visible window.

    The right edge starts at the first sample and advances with elapsed time,
    so the newest data enters from the right.

    Parameters
    ----------
    now : float
        Elapsed wall-clock time since the first sample, in grid-time units.
    first_sample_time : float
        Timestamp of the first sample seen, in grid-time units.
    divisions : float
        Number of horizontal divisions (the window width).

    Returns
    -------
    TimeWindow
        ``[end - divisions, end)`` with ``end = first_sample_time + now``.
    """
    end = first_sample_time + now
    return TimeWindow(end - divisions, end)


class WindowSelector:
    """
    Manages the freeze state, the visible window and the regression sub-window.

    The sub-window exists only while frozen and is always kept inside the
    frozen visible window and no narrower than :attr:`min_width`.
    """

    # Sub-window adjustment steps, in grid-time units
    DEFAULT_RESOLUTION = 0.01
    DEFAULT_STEP_MULTIPLIER = 4.0
    # Minimum sub-window width, in multiples of the repeated step
    DEFAULT_MIN_WIDTH_FACTOR = 5.0
    # Relative slack when comparing a candidate against the frozen window
    EDGE_TOLERANCE = 1e-9

    def __init__(
        self,
        divisions: int,
        seconds_per_division: float,
        resolution: float = DEFAULT_RESOLUTION,
        step_multiplier: float = DEFAULT_STEP_MULTIPLIER,
        min_width_factor: float = DEFAULT_MIN_WIDTH_FACTOR,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialise the selector.

        Parameters
        ----------
        divisions : int
            Number of horizontal grid divisions (visible width in grid time).
        seconds_per_division : float
            Wall-clock seconds per grid division.
        resolution : float, default=0.01
            Sub-window step for a single key press.
        step_multiplier : float, default=4.0
            Step multiplier for a held (repeating) key.
        min_width_factor : float, default=5.0
            Minimum sub-window width as a multiple of ``resolution * step_multiplier``.
        clock : Callable[[], float], default=time.monotonic
            Wall-clock source in seconds.
        """
        self.divisions = divisions
        self.seconds_per_division = seconds_per_division
        self.resolution = resolution
        self.step_multiplier = step_multiplier
        self.min_width_factor = min_width_factor
        self._clock = clock

        self.state: FreezeState = Live()
        self.sub_window: Optional[TimeWindow] = None
        self._started_at: Optional[float] = None
        self._last_window: Optional[TimeWindow] = None

    @property
    def min_width(self) -> float:
        return self.resolution * self.step_multiplier * self.min_width_factor

    @property
    def is_frozen(self) -> bool:
        return isinstance(self.state, Frozen)

    def elapsed(self) -> float:
        """Grid time elapsed since the clock was started by the first frame with data."""
        now = self._clock()
        if self._started_at is None:
            self._started_at = now
            logger.debug(f"Started display clock at {now:.3f}")
        return (now - self._started_at) / self.seconds_per_division

    def visible_window(self, first_sample_time: float) -> TimeWindow:
        """
        Get the window to draw this frame.

        While frozen this is the captured window, unchanged.
        """
        if isinstance(self.state, Frozen):
            return self.state.window
        window = window_for(self.elapsed(), first_sample_time, self.divisions)
        self._last_window = window
        return window

    def freeze(self) -> bool:
        """
        Capture the last computed visible window and open a sub-window on it.

        Returns False if already frozen or nothing has been displayed yet.
        """
        if self.is_frozen:
            return False
        if self._last_window is None:
            logger.warning("Cannot freeze before the first window has been computed")
            return False
        self.state = Frozen(self._last_window)
        self.sub_window = self._last_window
        logger.info(
            f"Frozen at [{self._last_window.start:.3f}, {self._last_window.end:.3f})"
        )
        return True

    def unfreeze(self) -> None:
        """Return to live mode and drop the sub-window."""
        if self.is_frozen:
            logger.info("Resumed live display")
        self.state = Live()
        self.sub_window = None

    def toggle_freeze(self) -> bool:
        """Toggle freeze. Returns the new frozen state."""
        if self.is_frozen:
            self.unfreeze()
        else:
            self.freeze()
        return self.is_frozen

    def step(self, repeat: bool = False) -> float:
        return self.resolution * self.step_multiplier if repeat else self.resolution

    def _apply(self, candidate: TimeWindow, action: str) -> bool:
        if not isinstance(self.state, Frozen) or self.sub_window is None:
            return False
        visible = self.state.window
        # Step arithmetic drifts by a few ulps; snap back onto the frozen edges
        tolerance = self.EDGE_TOLERANCE * visible.width
        if not candidate.is_within(visible, tolerance):
            logger.debug(f"Rejected {action}: {candidate} leaves {visible}")
            return False
        candidate = candidate.clipped(visible)
        if candidate.width < self.min_width:
            logger.debug(
                f"Rejected {action}: width {candidate.width:.3f} below minimum {self.min_width:.3f}"
            )
            return False
        self.sub_window = candidate
        return True

    def pan(self, direction: int, repeat: bool = False) -> bool:
        """
        Shift the sub-window by one step.

        Parameters
        ----------
        direction : int
            -1 to move towards earlier time, +1 towards later time.
        repeat : bool, default=False
            Use the larger repeat step.

        Returns
        -------
        bool
            True if the sub-window moved.
        """
        if self.sub_window is None:
            return False
        delta = self.step(repeat) * (1 if direction > 0 else -1)
        return self._apply(self.sub_window.shifted(delta), "pan")

    def pan_left(self, repeat: bool = False) -> bool:
        return self.pan(-1, repeat)

    def pan_right(self, repeat: bool = False) -> bool:
        return self.pan(1, repeat)

    def widen(self, repeat: bool = False) -> bool:
        if self.sub_window is None:
            return False
        return self._apply(self.sub_window.widened(self.step(repeat)), "widen")

    def narrow(self, repeat: bool = False) -> bool:
        if self.sub_window is None:
            return False
        return self._apply(self.sub_window.widened(-self.step(repeat)), "narrow")

    def reset(self) -> None:
        """Reset to live mode with a fresh clock."""
        self.state = Live()
        self.sub_window = None
        self._started_at = None
        self._last_window = None
