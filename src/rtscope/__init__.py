"""
rtscope: real-time oscilloscope-style plotting with windowed regression

Ingests a stream of timestamped multi-channel samples, keeps a time-ordered
history and overlays polynomial fits with propagated uncertainty on a frozen
time window.
"""

from rtscope.config import ChannelConfig, DataGrid, ScopeConfig, TimeGrid
from rtscope.errors import (
    ConfigMismatch,
    DegenerateWindow,
    FitError,
    InsufficientData,
    MalformedSample,
    ScopeError,
)
from rtscope.fitting.approximation import (
    FitSummary,
    FitType,
    RegressionResult,
    fit,
    polyfit,
    transform_coefficients,
)

# Import from oscplot subpackage
from rtscope.oscplot.coordinate_manager import VertexProjector, VertexSequence
from rtscope.oscplot.data_manager import SharedTimeSeriesStore, TimeSeriesStore
from rtscope.oscplot.display_state import TimeWindow, WindowSelector, window_for
from rtscope.oscplot.plot import LiveScopePlot

# Import from stream subpackage
from rtscope.stream.ingest import IngestionWorker
from rtscope.stream.session import ScopeSession, configure_logging

__all__ = [
    # Configuration and errors
    "ScopeConfig",
    "TimeGrid",
    "DataGrid",
    "ChannelConfig",
    "ScopeError",
    "ConfigMismatch",
    "MalformedSample",
    "FitError",
    "InsufficientData",
    "DegenerateWindow",
    # Display components
    "TimeSeriesStore",
    "SharedTimeSeriesStore",
    "TimeWindow",
    "WindowSelector",
    "window_for",
    "VertexProjector",
    "VertexSequence",
    "LiveScopePlot",
    # Regression
    "FitType",
    "FitSummary",
    "RegressionResult",
    "fit",
    "polyfit",
    "transform_coefficients",
    # Streaming
    "IngestionWorker",
    "ScopeSession",
    "configure_logging",
]
