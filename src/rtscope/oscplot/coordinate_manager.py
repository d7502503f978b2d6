from typing import Iterator, Optional, Sequence, Tuple

import numpy as np
from loguru import logger
from numba import njit
from numpy.polynomial import polynomial as P

from rtscope.oscplot.display_state import TimeWindow

RGBA = Tuple[float, float, float, float]
Vertex = Tuple[float, float, RGBA]


@njit
def _focus_alpha_numba(
    t: np.ndarray,
    start: float,
    end: float,
    use_window: bool,
    channel_focused: bool,
    alpha: float,
    dim_factor: float,
) -> np.ndarray:
    """
    Compute per-vertex alpha for the focus/dim rule using numba for speed.

    Parameters
    ----------
    t : np.ndarray
        Time array.
    start, end : float
        Sub-window bounds, half-open.
    use_window : bool
        Whether a sub-window is active.
    channel_focused : bool
        False if another channel holds the focus.
    alpha : float
        Base alpha of the channel color.
    dim_factor : float
        Alpha multiplier for de-emphasised vertices.

    Returns
    -------
    np.ndarray
        Alpha per vertex (float32).
    """
    out = np.empty(len(t), dtype=np.float32)
    dimmed = alpha * dim_factor

    for i in range(len(t)):
        focused = channel_focused
        if focused and use_window:
            focused = start <= t[i] < end
        out[i] = alpha if focused else dimmed

    return out


class VertexSequence:
    """
    Lazy, finite, restartable sequence of ``(x, y, rgba)`` vertices.

    Backed by float32 arrays; iteration builds the tuples on demand.
    """

    def __init__(self, xy: np.ndarray, rgba: np.ndarray):
        self._xy = np.asarray(xy, dtype=np.float32).reshape(-1, 2)
        self._rgba = np.asarray(rgba, dtype=np.float32).reshape(-1, 4)
        if len(self._xy) != len(self._rgba):
            raise ValueError(
                f"Positions and colors must have the same length. Got xy={len(self._xy)}, rgba={len(self._rgba)}"
            )

    def __iter__(self) -> Iterator[Vertex]:
        for (x, y), c in zip(self._xy, self._rgba):
            yield float(x), float(y), (float(c[0]), float(c[1]), float(c[2]), float(c[3]))

    def __len__(self) -> int:
        return len(self._xy)

    def as_arrays(self) -> Tuple[np.ndarray, np.ndarray]:
        """Get (positions Nx2, colors Nx4) for array-based renderers."""
        return self._xy, self._rgba


class VertexProjector:
    """
    Maps grid-time/value pairs into normalized device coordinates.

    The visible window's right edge maps to x = +1 and its left edge
    (``divisions`` earlier) to x = -1. Values map through the channel gain and
    the zero shift onto ``data_divisions`` vertical divisions spanning [-1, 1].
    """

    DEFAULT_DIM_FACTOR = 0.2
    DEFAULT_POLYNOMIAL_POINTS = 2000

    def __init__(
        self,
        time_divisions: int,
        data_divisions: int,
        zero_shift: float = 0.0,
        channel_gains: Optional[Sequence[float]] = None,
        dim_factor: float = DEFAULT_DIM_FACTOR,
        polynomial_points: int = DEFAULT_POLYNOMIAL_POINTS,
    ):
        """
        Initialise the projector.

        Parameters
        ----------
        time_divisions : int
            Horizontal grid divisions.
        data_divisions : int
            Vertical grid divisions.
        zero_shift : float, default=0.0
            Vertical offset of the zero line, in divisions.
        channel_gains : Optional[Sequence[float]], default=None
            Per-channel vertical scale. None means 1.0 for every channel.
        dim_factor : float, default=0.2
            Alpha multiplier for de-emphasised vertices.
        polynomial_points : int, default=2000
            Number of points used to draw a fitted polynomial.
        """
        self.time_divisions = time_divisions
        self.data_divisions = data_divisions
        self.zero_shift = zero_shift
        self.channel_gains = list(channel_gains) if channel_gains is not None else None
        self.dim_factor = dim_factor
        self.polynomial_points = polynomial_points

    @classmethod
    def from_config(cls, config, **kwargs) -> "VertexProjector":
        """Build a projector from a :class:`~rtscope.config.ScopeConfig`."""
        return cls(
            time_divisions=config.time.divisions,
            data_divisions=config.data.divisions,
            zero_shift=config.data.zero_shift,
            channel_gains=[c.gain for c in config.channels],
            **kwargs,
        )

    def gain(self, channel: Optional[int]) -> float:
        if channel is None or self.channel_gains is None:
            return 1.0
        return self.channel_gains[channel]

    def time_to_ndc(self, t: np.ndarray, anchor: float) -> np.ndarray:
        """Convert grid time to horizontal NDC, ``anchor`` being the right edge."""
        return 2.0 / self.time_divisions * (
            np.asarray(t, dtype=np.float64) - anchor + self.time_divisions / 2.0
        )

    def value_to_ndc(self, v: np.ndarray, channel: Optional[int] = None) -> np.ndarray:
        """Convert grid-unit values to vertical NDC."""
        return 2.0 / self.data_divisions * (
            np.asarray(v, dtype=np.float64) * self.gain(channel) + self.zero_shift
        )

    def project(
        self,
        t: np.ndarray,
        v: np.ndarray,
        anchor: float,
        channel: Optional[int] = None,
    ) -> np.ndarray:
        """Project time/value arrays to an Nx2 float32 array of NDC positions."""
        xy = np.empty((len(t), 2), dtype=np.float32)
        xy[:, 0] = self.time_to_ndc(t, anchor)
        xy[:, 1] = self.value_to_ndc(v, channel)
        return xy

    def project_channel(
        self,
        t: np.ndarray,
        v: np.ndarray,
        channel: int,
        anchor: float,
        rgba: RGBA,
        sub_window: Optional[TimeWindow] = None,
        focused_channel: Optional[int] = None,
    ) -> VertexSequence:
        """
        Project one channel's samples, dimming points outside the selection.

        Points outside the sub-window, or on a channel other than the focused
        one, keep their position with reduced alpha so the trace stays
        continuous.
        """
        t = np.asarray(t, dtype=np.float64)
        xy = self.project(t, v, anchor, channel)

        channel_focused = focused_channel is None or focused_channel == channel
        use_window = sub_window is not None
        start = sub_window.start if sub_window is not None else 0.0
        end = sub_window.end if sub_window is not None else 0.0

        colors = np.empty((len(t), 4), dtype=np.float32)
        colors[:, :3] = rgba[:3]
        colors[:, 3] = _focus_alpha_numba(
            t,
            start,
            end,
            use_window,
            channel_focused,
            float(rgba[3]),
            float(self.dim_factor),
        )
        return VertexSequence(xy, colors)

    def project_polynomial(
        self,
        coefficients: np.ndarray,
        sub_window: TimeWindow,
        anchor: float,
        rgba: RGBA,
        channel: Optional[int] = None,
    ) -> VertexSequence:
        """
        Sample a polynomial over exactly the sub-window and project it.

        ``coefficients`` are in grid units, lowest order first.
        """
        t = np.linspace(sub_window.start, sub_window.end, self.polynomial_points)
        v = P.polyval(t, np.asarray(coefficients, dtype=np.float64))
        xy = self.project(t, v, anchor, channel)
        colors = np.tile(np.asarray(rgba, dtype=np.float32), (len(t), 1))
        logger.debug(
            f"Projected polynomial over [{sub_window.start:.3f}, {sub_window.end:.3f}) with {len(t)} points"
        )
        return VertexSequence(xy, colors)

    def grid_vertices(self, rgba: RGBA) -> VertexSequence:
        """
        Line-pair vertices for the division grid, in NDC.

        Each consecutive pair of vertices is one line segment.
        """
        xy = []
        for i in range(self.time_divisions + 1):
            x = 2.0 / self.time_divisions * i - 1.0
            xy.extend([(x, -1.0), (x, 1.0)])
        for i in range(self.data_divisions + 1):
            y = 2.0 / self.data_divisions * i - 1.0
            xy.extend([(-1.0, y), (1.0, y)])
        colors = np.tile(np.asarray(rgba, dtype=np.float32), (len(xy), 1))
        return VertexSequence(np.array(xy), colors)
