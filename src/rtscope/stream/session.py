import sys
import time
from dataclasses import dataclass
from typing import Callable, Iterable, List, Optional, Sequence

import numpy as np
from loguru import logger

from rtscope.config import ScopeConfig
from rtscope.errors import DegenerateWindow, FitError
from rtscope.fitting.approximation import (
    FitSummary,
    FitType,
    fit,
    next_fit_type,
    summarize,
)
from rtscope.oscplot.coordinate_manager import VertexProjector, VertexSequence
from rtscope.oscplot.data_manager import SharedTimeSeriesStore, TimeSeriesStore
from rtscope.oscplot.display_state import TimeWindow, WindowSelector
from rtscope.stream.ingest import IngestionWorker


def configure_logging(log_level: str = "INFO") -> None:
    """
    Configure loguru logging with specified level.

    Parameters
    ----------
    log_level : str, default="INFO"
        Logging level: TRACE, DEBUG, INFO, SUCCESS, WARNING, ERROR, CRITICAL.
    """
    logger.remove()
    logger.add(
        sys.stderr,
        level=log_level.upper(),
        format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{thread.name}</cyan> | <level>{message}</level>",
        colorize=True,
    )


@dataclass
class Frame:
    """Everything the renderer needs for one frame, taken from one snapshot."""

    window: TimeWindow
    graphs: List[VertexSequence]
    overlay: Optional[VertexSequence]
    summary: Optional[FitSummary]
    sub_window: Optional[TimeWindow]


def _empty_vertices() -> VertexSequence:
    return VertexSequence(np.empty((0, 2)), np.empty((0, 4)))


class ScopeSession:
    """
    Ties the store, window selector, regression and projection together.

    The ingestion side calls :meth:`ingest` (directly or through an
    :class:`IngestionWorker`); the render side calls :meth:`frame` once per
    frame and forwards user actions (freeze, fit mode, focus, sub-window
    adjustment).
    """

    def __init__(
        self,
        config: ScopeConfig,
        clock: Callable[[], float] = time.monotonic,
        resolution: float = WindowSelector.DEFAULT_RESOLUTION,
        step_multiplier: float = WindowSelector.DEFAULT_STEP_MULTIPLIER,
        min_width_factor: float = WindowSelector.DEFAULT_MIN_WIDTH_FACTOR,
        dim_factor: float = VertexProjector.DEFAULT_DIM_FACTOR,
        polynomial_points: int = VertexProjector.DEFAULT_POLYNOMIAL_POINTS,
    ):
        """
        Initialise the session.

        Parameters
        ----------
        config : ScopeConfig
            Validated here; a structural problem raises ConfigMismatch.
        clock : Callable[[], float], default=time.monotonic
            Wall-clock source in seconds.
        resolution, step_multiplier, min_width_factor : float
            Sub-window adjustment tuning, see :class:`WindowSelector`.
        dim_factor : float, default=0.2
            Alpha multiplier for de-emphasised vertices.
        polynomial_points : int, default=2000
            Number of points used to draw the fit overlay.
        """
        config.validate()
        self.config = config
        self.store = SharedTimeSeriesStore(config.channel_count)
        self.selector = WindowSelector(
            config.time.divisions,
            config.time.seconds_per_division,
            resolution=resolution,
            step_multiplier=step_multiplier,
            min_width_factor=min_width_factor,
            clock=clock,
        )
        self.projector = VertexProjector.from_config(
            config, dim_factor=dim_factor, polynomial_points=polynomial_points
        )

        self.fit_type: Optional[FitType] = None
        self.focused_channel: Optional[int] = None
        self._summary: Optional[FitSummary] = None
        self._worker: Optional[IngestionWorker] = None

    # --- Inbound ---

    def ingest(self, timestamp: float, values: Sequence[float]) -> None:
        """Insert one sample (grid-time timestamp, grid-unit values)."""
        self.store.insert(timestamp, values)

    def start_ingestion(
        self,
        stream: Iterable[str],
        on_error: str = IngestionWorker.ON_ERROR_SKIP,
        warmup_lines: int = 0,
        join_timeout: float = IngestionWorker.DEFAULT_JOIN_TIMEOUT,
    ) -> IngestionWorker:
        """Start a background worker feeding ``stream`` into the store."""
        if self._worker is not None and self._worker.is_alive:
            raise RuntimeError("Ingestion is already running.")
        self._worker = IngestionWorker(
            stream,
            self.store,
            self.config,
            on_error=on_error,
            warmup_lines=warmup_lines,
            join_timeout=join_timeout,
        )
        self._worker.start()
        return self._worker

    def stop(self) -> bool:
        """Signal the ingestion worker to stop and join it. True if it exited."""
        if self._worker is None:
            return True
        return self._worker.stop()

    @property
    def worker(self) -> Optional[IngestionWorker]:
        return self._worker

    # --- User actions ---

    @property
    def is_frozen(self) -> bool:
        return self.selector.is_frozen

    def toggle_freeze(self) -> bool:
        """Freeze or resume. Resuming also disables the fit and clears its label."""
        frozen = self.selector.toggle_freeze()
        if not frozen:
            self.fit_type = None
            self._summary = None
        return frozen

    def cycle_fit_type(self) -> Optional[FitType]:
        """Cycle Off -> Constant -> Linear -> Quadratic -> Off. Only while frozen."""
        if not self.is_frozen:
            logger.debug("Fit mode can only change while frozen")
            return self.fit_type
        self.fit_type = next_fit_type(self.fit_type)
        if self.fit_type is None:
            self._summary = None
        logger.info(
            f"Fit mode: {self.fit_type.name.lower() if self.fit_type is not None else 'off'}"
        )
        return self.fit_type

    def focus(self, channel: Optional[int]) -> None:
        """Focus a channel (None to clear). Out-of-range channels are ignored."""
        if channel is not None and not 0 <= channel < self.config.channel_count:
            logger.debug(f"Ignoring focus on channel {channel}")
            return
        if channel != self.focused_channel:
            logger.info(
                f"Focused channel: {channel + 1 if channel is not None else 'none'}"
            )
        self.focused_channel = channel

    def pan_left(self, repeat: bool = False) -> bool:
        return self.selector.pan_left(repeat)

    def pan_right(self, repeat: bool = False) -> bool:
        return self.selector.pan_right(repeat)

    def widen(self, repeat: bool = False) -> bool:
        return self.selector.widen(repeat)

    def narrow(self, repeat: bool = False) -> bool:
        return self.selector.narrow(repeat)

    @property
    def fit_channel(self) -> Optional[int]:
        """Channel the overlay fits: the focused one, or the only one."""
        if self.focused_channel is not None:
            return self.focused_channel
        if self.config.channel_count == 1:
            return 0
        return None

    # --- Per-frame computation (called with the store held) ---

    def _graph(
        self, store: TimeSeriesStore, window: TimeWindow, channel: int
    ) -> VertexSequence:
        samples = store.range_query(window)
        return self.projector.project_channel(
            samples.times(),
            samples.values(channel),
            channel,
            window.end,
            self.config.channel_rgba(channel),
            sub_window=self.selector.sub_window,
            focused_channel=self.focused_channel,
        )

    def _overlay(
        self, store: TimeSeriesStore, window: TimeWindow
    ) -> Optional[VertexSequence]:
        sub_window = self.selector.sub_window
        channel = self.fit_channel
        if self.fit_type is None or sub_window is None or channel is None:
            return None

        try:
            result = fit(store, sub_window, self.fit_type.degree, channel)
        except FitError as e:
            logger.debug(f"No fit this frame: {e}")
            return None

        try:
            self._summary = summarize(result, channel)
        except DegenerateWindow as e:
            logger.debug(f"Keeping previous label: {e}")

        return self.projector.project_polynomial(
            result.coefficients,
            sub_window,
            window.end,
            self.config.fit_rgba,
            channel,
        )

    def _visible_window(self, store: TimeSeriesStore) -> Optional[TimeWindow]:
        first = store.first_time()
        if first is None:
            return None
        return self.selector.visible_window(first)

    def frame(self) -> Optional[Frame]:
        """
        Compute graphs, fit overlay and summary from one consistent snapshot.

        The store stays locked for the whole computation and is released
        before returning, so rendering happens without the lock.

        Returns
        -------
        Optional[Frame]
            None while the store is empty.
        """
        with self.store.snapshot() as store:
            window = self._visible_window(store)
            if window is None:
                return None
            graphs = [
                self._graph(store, window, i) for i in range(self.config.channel_count)
            ]
            overlay = self._overlay(store, window)

        return Frame(
            window=window,
            graphs=graphs,
            overlay=overlay,
            summary=self.fit_summary(),
            sub_window=self.selector.sub_window,
        )

    # --- Outbound ---

    def visible_graph_vertices(self, channel: int) -> VertexSequence:
        """Vertices of one channel over the visible window."""
        if not 0 <= channel < self.config.channel_count:
            raise ValueError(
                f"Invalid channel index: {channel}. Must be between 0 and {self.config.channel_count - 1}."
            )
        with self.store.snapshot() as store:
            window = self._visible_window(store)
            if window is None:
                return _empty_vertices()
            return self._graph(store, window, channel)

    def fit_overlay_vertices(self) -> Optional[VertexSequence]:
        """Vertices of the fitted polynomial over the sub-window, if a fit is active."""
        with self.store.snapshot() as store:
            window = self._visible_window(store)
            if window is None:
                return None
            return self._overlay(store, window)

    def fit_summary(self) -> Optional[FitSummary]:
        """Latest successful fit in its physical basis; kept across failed frames."""
        return self._summary
