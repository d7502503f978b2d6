from typing import List, Optional, Tuple

import matplotlib as mpl
import matplotlib.pyplot as plt
import numpy as np
from loguru import logger
from matplotlib.collections import LineCollection

from .coordinate_manager import VertexSequence

# Keys bound by the scope; removed from matplotlib's default keymaps
SCOPE_KEYS = {" ", "m", "h", "H", "j", "J", "k", "K", "l", "L", "q"} | {
    str(i) for i in range(10)
}


def _segments(vertices: VertexSequence) -> Tuple[np.ndarray, np.ndarray]:
    """
    Convert a vertex strip into line segments with per-segment colors.

    Each segment takes the color of its end vertex.
    """
    xy, rgba = vertices.as_arrays()
    if len(xy) < 2:
        return np.empty((0, 2, 2), dtype=np.float32), np.empty((0, 4), dtype=np.float32)
    return np.stack([xy[:-1], xy[1:]], axis=1), rgba[1:]


def _release_scope_keys() -> None:
    """Remove the scope's keys from matplotlib's default key bindings."""
    for name in list(mpl.rcParams.keys()):
        if name.startswith("keymap."):
            mpl.rcParams[name] = [k for k in mpl.rcParams[name] if k not in SCOPE_KEYS]


class LiveScopePlot:
    """
    Matplotlib front end for a :class:`~rtscope.stream.session.ScopeSession`.

    Draws the session's frames in normalized device coordinates on a
    fixed-rate timer and maps key presses to the session's user actions:

    - space: freeze / resume
    - m: cycle fit mode (off, constant, linear, quadratic), frozen only
    - h / l: move the fit window left / right
    - j / k: narrow / widen the fit window
    - shift + h/j/k/l: same with the larger repeat step
    - 1-9: focus a channel, 0: clear focus
    - q: quit
    """

    DEFAULT_INTERVAL_MS = 16
    DEFAULT_SIGNAL_LINE_WIDTH = 1.5
    DEFAULT_FIT_LINE_WIDTH = 2.0
    DEFAULT_GRID_LINE_WIDTH = 0.6

    def __init__(
        self,
        session,
        interval_ms: int = DEFAULT_INTERVAL_MS,
        figsize: Tuple[float, float] = (10, 6),
        signal_line_width: float = DEFAULT_SIGNAL_LINE_WIDTH,
        fit_line_width: float = DEFAULT_FIT_LINE_WIDTH,
        grid_line_width: float = DEFAULT_GRID_LINE_WIDTH,
    ):
        """
        Initialise the plot. Nothing is drawn until :meth:`render`.

        Parameters
        ----------
        session : ScopeSession
            Session providing frames and receiving user actions.
        interval_ms : int, default=16
            Refresh period of the render timer.
        figsize : Tuple[float, float], default=(10, 6)
            Figure size in inches.
        signal_line_width, fit_line_width, grid_line_width : float
            Line widths of channel traces, fit overlay and grid.
        """
        self.session = session
        self.config = session.config
        self.interval_ms = interval_ms
        self.figsize = figsize
        self.signal_line_width = signal_line_width
        self.fit_line_width = fit_line_width
        self.grid_line_width = grid_line_width

        self.fig: Optional[mpl.figure.Figure] = None
        self.ax: Optional[mpl.axes.Axes] = None
        self._grid: Optional[LineCollection] = None
        self._channel_lines: List[LineCollection] = []
        self._fit_line: Optional[LineCollection] = None
        self._timer = None
        self.frames_drawn = 0

    def render(self) -> None:
        """Create the figure, the static grid and the (empty) trace artists."""
        if self.fig is not None:
            logger.warning("Plot already rendered.")
            return

        _release_scope_keys()
        self.fig, self.ax = plt.subplots(figsize=self.figsize)
        background = self.config.background_color
        self.fig.patch.set_facecolor(background)
        self.ax.set_facecolor(background)
        self.ax.set_xlim(-1.0, 1.0)
        self.ax.set_ylim(-1.0, 1.0)
        self.ax.set_xticks([])
        self.ax.set_yticks([])
        # Square divisions
        self.ax.set_aspect(
            self.config.data.divisions / self.config.time.divisions, adjustable="box"
        )

        label_color = self.config.grid_rgba
        self.ax.set_title(self.config.label, color=label_color)
        self.ax.set_xlabel(self.config.time.label, color=label_color)
        self.ax.set_ylabel(self.config.data.label, color=label_color)

        grid_xy, grid_rgba = self.session.projector.grid_vertices(
            self.config.grid_rgba
        ).as_arrays()
        self._grid = LineCollection(
            grid_xy.reshape(-1, 2, 2),
            colors=grid_rgba[::2],
            linewidths=self.grid_line_width,
            zorder=1,
        )
        self.ax.add_collection(self._grid)

        for i in range(self.config.channel_count):
            line = LineCollection([], linewidths=self.signal_line_width, zorder=2)
            line.set_label(self.config.channel_name(i))
            self.ax.add_collection(line)
            self._channel_lines.append(line)

        self._fit_line = LineCollection([], linewidths=self.fit_line_width, zorder=3)
        self.ax.add_collection(self._fit_line)

        self.fig.canvas.mpl_connect("key_press_event", self._on_key_press)
        self.fig.canvas.mpl_connect("close_event", self._on_close)
        logger.info("Plot rendering complete.")

    @staticmethod
    def _update_line(line: LineCollection, vertices: VertexSequence) -> None:
        segments, colors = _segments(vertices)
        line.set_segments(segments)
        if len(segments) > 0:
            line.set_color(colors)

    def refresh(self) -> bool:
        """
        Draw the session's current frame.

        Returns
        -------
        bool
            False if there was nothing to draw yet.
        """
        if self.ax is None:
            logger.warning("Plot not rendered yet. Cannot refresh.")
            return False

        frame = self.session.frame()
        if frame is None:
            return False

        for line, graph in zip(self._channel_lines, frame.graphs):
            self._update_line(line, graph)

        if frame.overlay is not None:
            self._update_line(self._fit_line, frame.overlay)
            self._fit_line.set_visible(True)
        else:
            self._fit_line.set_visible(False)

        title = frame.summary.label if frame.summary is not None else self.config.label
        if self.ax.get_title() != title:
            self.ax.set_title(title, color=self.config.grid_rgba)

        self.frames_drawn += 1
        self.fig.canvas.draw_idle()
        return True

    def handle_key(self, key: Optional[str]) -> None:
        """Apply the scope action bound to ``key``."""
        if key is None:
            return
        session = self.session
        if key == " ":
            session.toggle_freeze()
        elif key == "m":
            session.cycle_fit_type()
        elif key in ("h", "H"):
            session.pan_left(repeat=key.isupper())
        elif key in ("l", "L"):
            session.pan_right(repeat=key.isupper())
        elif key in ("j", "J"):
            session.narrow(repeat=key.isupper())
        elif key in ("k", "K"):
            session.widen(repeat=key.isupper())
        elif key == "0":
            session.focus(None)
        elif key.isdigit():
            session.focus(int(key) - 1)
        elif key == "q":
            self.close()

    def _on_key_press(self, event) -> None:
        self.handle_key(event.key)

    def _on_close(self, event) -> None:
        if self._timer is not None:
            self._timer.stop()
        self.session.stop()
        logger.info(f"Plot closed after {self.frames_drawn} frames")

    def close(self) -> None:
        if self.fig is not None:
            plt.close(self.fig)

    def save(self, filepath: str) -> None:
        """Save the current frame to a file."""
        if self.fig is None:
            raise RuntimeError("Plot has not been initialized yet.")
        self.refresh()
        self.fig.savefig(filepath, facecolor=self.fig.get_facecolor())
        logger.info(f"Plot saved to {filepath}")

    def show(self) -> None:
        """Start the render timer and display the plot."""
        if self.fig is None:
            self.render()
        self._timer = self.fig.canvas.new_timer(interval=self.interval_ms)
        self._timer.add_callback(self.refresh)
        self._timer.start()
        plt.show()
