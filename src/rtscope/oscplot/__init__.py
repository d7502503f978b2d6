"""
Display-side components for rtscope.

This package contains the time-series store, the window selection logic,
the coordinate projection and the matplotlib front end.
"""

from rtscope.oscplot.coordinate_manager import VertexProjector, VertexSequence
from rtscope.oscplot.data_manager import SharedTimeSeriesStore, TimeSeriesStore
from rtscope.oscplot.display_state import TimeWindow, WindowSelector, window_for
from rtscope.oscplot.plot import LiveScopePlot

__all__ = [
    "LiveScopePlot",
    "TimeSeriesStore",
    "SharedTimeSeriesStore",
    "VertexProjector",
    "VertexSequence",
    "TimeWindow",
    "WindowSelector",
    "window_for",
]
