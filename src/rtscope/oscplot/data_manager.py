import bisect
import threading
from contextlib import contextmanager
from typing import Iterator, List, Optional, Sequence, Tuple

import numpy as np
from loguru import logger

from rtscope.errors import ConfigMismatch
from rtscope.oscplot.display_state import TimeWindow

Sample = Tuple[float, Tuple[float, ...]]


class SampleRange:
    """
    Lazy, restartable view of the samples inside a time window.

    Iteration re-resolves the window against the store each time, so the view
    reflects the store's current contents. Consume it while holding the
    store's snapshot.
    """

    def __init__(self, store: "TimeSeriesStore", window: TimeWindow):
        self._store = store
        self.window = window

    def _bounds(self) -> Tuple[int, int]:
        return self._store._index_range(self.window)

    def __iter__(self) -> Iterator[Sample]:
        lo, hi = self._bounds()
        times = self._store._times
        rows = self._store._rows
        for i in range(lo, hi):
            yield times[i], rows[i]

    def __len__(self) -> int:
        lo, hi = self._bounds()
        return hi - lo

    def times(self) -> np.ndarray:
        """Timestamps in the window as a float64 array."""
        lo, hi = self._bounds()
        return np.asarray(self._store._times[lo:hi], dtype=np.float64)

    def values(self, channel: Optional[int] = None) -> np.ndarray:
        """
        Channel values in the window.

        Parameters
        ----------
        channel : Optional[int], default=None
            If given, return a 1D array for that channel, otherwise a 2D array
            of shape (samples, channels).
        """
        lo, hi = self._bounds()
        n_channels = self._store.channel_count
        if channel is not None:
            self._store._check_channel(channel)
            return np.fromiter(
                (row[channel] for row in self._store._rows[lo:hi]),
                dtype=np.float64,
                count=hi - lo,
            )
        return np.asarray(self._store._rows[lo:hi], dtype=np.float64).reshape(
            hi - lo, n_channels
        )


class TimeSeriesStore:
    """
    Ordered, append-only map from timestamp to per-channel value vector.

    Keys are unique; inserting at an existing timestamp replaces the stored
    values. Not synchronized on its own: share it through
    :class:`SharedTimeSeriesStore`.
    """

    def __init__(self, channel_count: int):
        """
        Initialise an empty store.

        Parameters
        ----------
        channel_count : int
            Number of values every sample must carry.
        """
        if channel_count < 1:
            raise ValueError(f"channel_count must be at least 1. Got {channel_count}")
        self.channel_count = channel_count
        self._times: List[float] = []
        self._rows: List[Tuple[float, ...]] = []

    def __len__(self) -> int:
        return len(self._times)

    def _check_channel(self, channel: int) -> None:
        if channel < 0 or channel >= self.channel_count:
            raise ValueError(
                f"Invalid channel index: {channel}. Must be between 0 and {self.channel_count - 1}."
            )

    def _index_range(self, window: TimeWindow) -> Tuple[int, int]:
        lo = bisect.bisect_left(self._times, window.start)
        hi = bisect.bisect_left(self._times, window.end, lo=lo)
        return lo, hi

    def insert(self, time: float, values: Sequence[float]) -> None:
        """
        Insert a sample, replacing any sample at the identical timestamp.

        In-order samples are appended in amortized O(1). An out-of-order
        sample finds its slot by bisection, then shifts the list tail.

        Raises
        ------
        ConfigMismatch
            If the number of values differs from the store's channel count.
        ValueError
            If the timestamp is not finite.
        """
        if len(values) != self.channel_count:
            raise ConfigMismatch(
                f"Store holds {self.channel_count} channels, but got {len(values)} values."
            )
        time = float(time)
        if not np.isfinite(time):
            raise ValueError(f"Timestamp must be finite. Got {time}")
        row = tuple(float(v) for v in values)

        # Live streams arrive in order, so appending is the common case
        if not self._times or time > self._times[-1]:
            self._times.append(time)
            self._rows.append(row)
            return

        idx = bisect.bisect_left(self._times, time)
        if idx < len(self._times) and self._times[idx] == time:
            logger.debug(f"Overwriting sample at t={time}")
            self._rows[idx] = row
        else:
            self._times.insert(idx, time)
            self._rows.insert(idx, row)

    def get(self, time: float) -> Optional[Tuple[float, ...]]:
        """Get the values stored at exactly ``time``, or None."""
        idx = bisect.bisect_left(self._times, time)
        if idx < len(self._times) and self._times[idx] == time:
            return self._rows[idx]
        return None

    def range_query(self, window: TimeWindow) -> SampleRange:
        """
        Get the samples with ``window.start <= t < window.end``.

        Returns
        -------
        SampleRange
            Lazy, restartable view in ascending time order.
        """
        return SampleRange(self, window)

    def first_time(self) -> Optional[float]:
        return self._times[0] if self._times else None

    def last_time(self) -> Optional[float]:
        return self._times[-1] if self._times else None

    def time_range(self) -> Tuple[float, float]:
        """
        Get the full time range of the data.

        Returns
        -------
        Tuple[float, float]
            First and last timestamp, or (0.0, 0.0) when empty.
        """
        if not self._times:
            return 0.0, 0.0
        return self._times[0], self._times[-1]


class SharedTimeSeriesStore:
    """
    Synchronized handle around a :class:`TimeSeriesStore`.

    The whole store is a single mutually-exclusive resource. ``insert`` holds
    the lock only for the insertion itself; the render path holds it for one
    frame's computation through :meth:`snapshot`, so a frame never mixes
    pre- and post-insert states.
    """

    def __init__(self, channel_count: int):
        self._store = TimeSeriesStore(channel_count)
        self._lock = threading.Lock()

    @property
    def channel_count(self) -> int:
        return self._store.channel_count

    def insert(self, time: float, values: Sequence[float]) -> None:
        """Insert a sample under the lock. See :meth:`TimeSeriesStore.insert`."""
        with self._lock:
            self._store.insert(time, values)

    @contextmanager
    def snapshot(self) -> Iterator[TimeSeriesStore]:
        """
        Hold exclusive access and yield the underlying store.

        Do not block on I/O inside the ``with`` block.
        """
        with self._lock:
            yield self._store

    def range_query(self, window: TimeWindow) -> List[Sample]:
        """Get a materialized copy of the samples inside ``window``."""
        with self._lock:
            return list(self._store.range_query(window))

    def __len__(self) -> int:
        with self._lock:
            return len(self._store)
