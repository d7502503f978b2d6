"""
Configuration consumed by the rtscope core.

The core never reads configuration files itself; launchers build a
:class:`ScopeConfig` from a plain nested mapping (see ``scripts/run_live.py``).
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Tuple

from loguru import logger
from matplotlib.colors import to_rgba

from rtscope.errors import ConfigMismatch

RGBA = Tuple[float, float, float, float]

# Default colors for channels, cycled when a channel has none configured
DEFAULT_CHANNEL_COLORS = [
    "gold",
    "deepskyblue",
    "tomato",
    "limegreen",
    "violet",
    "orange",
    "cyan",
    "pink",
    "white",
]


@dataclass
class TimeGrid:
    """Horizontal axis: how raw timestamps map onto grid divisions."""

    divisions: int = 10
    seconds_per_division: float = 1.0
    raw_per_second: float = 1.0
    label: str = "t [s]"


@dataclass
class DataGrid:
    """Vertical axis layout."""

    divisions: int = 8
    zero_shift: float = 0.0
    label: str = "y"


@dataclass
class ChannelConfig:
    """
    Per-channel conversion from raw input values to grid units.

    ``gain`` is a display-only vertical scale applied by the projector.
    """

    raw_offset: float = 0.0
    raw_per_division: float = 1.0
    gain: float = 1.0
    color: Optional[str] = None
    name: Optional[str] = None


@dataclass
class ScopeConfig:
    """Aggregate configuration for a scope session."""

    time: TimeGrid = field(default_factory=TimeGrid)
    data: DataGrid = field(default_factory=DataGrid)
    channels: List[ChannelConfig] = field(default_factory=lambda: [ChannelConfig()])
    label: str = "rtscope"
    fit_color: str = "red"
    grid_color: str = "dimgray"
    background_color: str = "black"

    @property
    def channel_count(self) -> int:
        """Number of values expected per sample."""
        return len(self.channels)

    def channel_rgba(self, channel: int) -> RGBA:
        """Get the RGBA color of a channel."""
        if channel < 0 or channel >= self.channel_count:
            raise ValueError(
                f"Invalid channel index: {channel}. Must be between 0 and {self.channel_count - 1}."
            )
        color = self.channels[channel].color
        if color is None:
            color = DEFAULT_CHANNEL_COLORS[channel % len(DEFAULT_CHANNEL_COLORS)]
        return to_rgba(color)

    def channel_name(self, channel: int) -> str:
        name = self.channels[channel].name
        return name if name is not None else f"Channel {channel + 1}"

    @property
    def fit_rgba(self) -> RGBA:
        return to_rgba(self.fit_color)

    @property
    def grid_rgba(self) -> RGBA:
        return to_rgba(self.grid_color)

    def validate(self, expected_channels: Optional[int] = None) -> None:
        """
        Check the configuration for structural problems.

        Parameters
        ----------
        expected_channels : Optional[int], default=None
            Channel count announced by the data source, if known.

        Raises
        ------
        ConfigMismatch
            If no channels are configured or the announced channel count
            disagrees with the configured channels.
        ValueError
            If a grid or scale parameter is not strictly positive.
        """
        if self.channel_count == 0:
            raise ConfigMismatch("At least one channel must be configured.")
        if expected_channels is not None and expected_channels != self.channel_count:
            raise ConfigMismatch(
                f"Data configuration specifies {self.channel_count} channels, "
                f"but the source provides {expected_channels}."
            )
        if self.time.divisions <= 0 or self.data.divisions <= 0:
            raise ValueError(
                f"Grid divisions must be positive. Got time={self.time.divisions}, data={self.data.divisions}"
            )
        if self.time.seconds_per_division <= 0 or self.time.raw_per_second <= 0:
            raise ValueError(
                "seconds_per_division and raw_per_second must be positive. "
                f"Got {self.time.seconds_per_division} and {self.time.raw_per_second}"
            )
        for i, channel in enumerate(self.channels):
            if channel.raw_per_division == 0:
                raise ValueError(f"raw_per_division of channel {i} must be non-zero.")
            # Resolve colors up front
            self.channel_rgba(i)
        to_rgba(self.fit_color)
        to_rgba(self.grid_color)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ScopeConfig":
        """
        Build a configuration from a nested mapping.

        The expected layout mirrors the data configuration of the plotter::

            {
                "grid": {"label": ..., "time": {...}, "data": {...}},
                "channels": [{"raw_offset": ..., "raw_per_division": ...}, ...],
                "channel_count": 2,  # optional cross-check
                "colors": {"fit": ..., "grid": ..., "background": ...},
            }

        Raises
        ------
        ConfigMismatch
            If ``channel_count`` is given and does not match ``channels``.
        """
        grid: Dict[str, Any] = dict(data.get("grid", {}))
        time_grid = TimeGrid(**grid.get("time", {}))
        data_grid = DataGrid(**grid.get("data", {}))

        channel_count = data.get("channel_count")
        channel_defs = data.get("channels")
        if channel_defs is None:
            n_channels = channel_count if channel_count is not None else 1
            channels = [ChannelConfig() for _ in range(n_channels)]
        else:
            channels = [ChannelConfig(**c) for c in channel_defs]

        colors: Dict[str, Any] = dict(data.get("colors", {}))
        config = cls(
            time=time_grid,
            data=data_grid,
            channels=channels,
            label=grid.get("label", cls.label),
            fit_color=colors.get("fit", cls.fit_color),
            grid_color=colors.get("grid", cls.grid_color),
            background_color=colors.get("background", cls.background_color),
        )
        config.validate(expected_channels=channel_count)
        logger.debug(
            f"Loaded scope config: {config.channel_count} channels, "
            f"{time_grid.divisions}x{data_grid.divisions} divisions"
        )
        return config
