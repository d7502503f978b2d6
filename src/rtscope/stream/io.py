from typing import List, Sequence, Tuple

import numpy as np

from rtscope.config import ChannelConfig, ScopeConfig, TimeGrid
from rtscope.errors import ConfigMismatch, MalformedSample


def parse_line(line: str, channel_count: int) -> Tuple[float, List[float]]:
    """
    Parse one input line into a raw timestamp and raw channel values.

    Fields are separated by whitespace or commas; a trailing comma is allowed.

    Parameters
    ----------
    line : str
        Input line: raw timestamp followed by one value per channel.
    channel_count : int
        Number of channels expected.

    Returns
    -------
    Tuple[float, List[float]]
        Raw timestamp and raw values.

    Raises
    ------
    MalformedSample
        If the line is empty or a field is not a finite number.
    ConfigMismatch
        If the number of values differs from ``channel_count``.
    """
    fields = line.replace(",", " ").split()
    if not fields:
        raise MalformedSample("Empty input line")
    try:
        numbers = [float(f) for f in fields]
    except ValueError as e:
        raise MalformedSample(f"Cannot parse line {line.strip()!r}: {e}") from e
    if not np.all(np.isfinite(numbers)):
        raise MalformedSample(f"Non-finite field in line {line.strip()!r}")

    if len(numbers) - 1 != channel_count:
        raise ConfigMismatch(
            f"Data configuration specifies {channel_count} data inputs, but got {len(numbers) - 1}."
        )
    return numbers[0], numbers[1:]


def raw_time_to_grid(raw_time: float, time_grid: TimeGrid) -> float:
    """Convert a raw timestamp to grid-time units (one unit per division)."""
    return raw_time / time_grid.seconds_per_division / time_grid.raw_per_second


def raw_values_to_grid(
    raw_values: Sequence[float], channels: Sequence[ChannelConfig]
) -> List[float]:
    """Convert raw channel values to grid units using per-channel offset and scale."""
    return [
        (value - channel.raw_offset) / channel.raw_per_division
        for value, channel in zip(raw_values, channels)
    ]


def read_sample(line: str, config: ScopeConfig) -> Tuple[float, List[float]]:
    """
    Parse a line and convert it to grid units.

    Raises
    ------
    MalformedSample, ConfigMismatch
        See :func:`parse_line`.
    """
    raw_time, raw_values = parse_line(line, config.channel_count)
    return (
        raw_time_to_grid(raw_time, config.time),
        raw_values_to_grid(raw_values, config.channels),
    )
