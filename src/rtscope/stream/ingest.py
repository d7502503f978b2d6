import threading
from typing import Iterable, Optional

from loguru import logger

from rtscope.config import ScopeConfig
from rtscope.errors import ConfigMismatch, MalformedSample, ScopeError
from rtscope.oscplot.data_manager import SharedTimeSeriesStore
from rtscope.stream.io import read_sample


class IngestionWorker:
    """
    Reads an input line stream and inserts the parsed samples into the store.

    The store lock is taken only for each insert, never across a read. The
    stop flag is checked between reads, so a worker blocked on a read exits
    once the next line (or end of stream) arrives.
    """

    ON_ERROR_SKIP = "skip"
    ON_ERROR_RAISE = "raise"
    DEFAULT_JOIN_TIMEOUT = 1.0

    def __init__(
        self,
        stream: Iterable[str],
        store: SharedTimeSeriesStore,
        config: ScopeConfig,
        on_error: str = ON_ERROR_SKIP,
        warmup_lines: int = 0,
        join_timeout: float = DEFAULT_JOIN_TIMEOUT,
    ):
        """
        Initialise the worker.

        Parameters
        ----------
        stream : Iterable[str]
            Line source, e.g. ``sys.stdin`` or an open file.
        store : SharedTimeSeriesStore
            Destination store.
        config : ScopeConfig
            Channel layout and raw-to-grid conversion.
        on_error : str, default="skip"
            "skip" logs and drops a malformed or mismatched line; "raise"
            stops ingestion and keeps the error in :attr:`error`.
        warmup_lines : int, default=0
            Number of leading lines to discard while the source stabilises.
        join_timeout : float, default=1.0
            Seconds :meth:`stop` waits for the thread to exit.
        """
        if on_error not in (self.ON_ERROR_SKIP, self.ON_ERROR_RAISE):
            raise ValueError(
                f"Invalid on_error policy: {on_error!r}. Must be 'skip' or 'raise'."
            )
        self.stream = stream
        self.store = store
        self.config = config
        self.on_error = on_error
        self.warmup_lines = warmup_lines
        self.join_timeout = join_timeout

        self.lines_read = 0
        self.samples_ingested = 0
        self.lines_skipped = 0
        self.error: Optional[BaseException] = None

        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def is_alive(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    @property
    def stop_requested(self) -> bool:
        return self._stop.is_set()

    def start(self) -> None:
        """Run the worker on a daemon thread."""
        if self.is_alive:
            return
        self._stop.clear()
        self._thread = threading.Thread(
            target=self._run_thread, name="IngestionWorker", daemon=True
        )
        self._thread.start()
        logger.info(f"Started ingestion (on_error={self.on_error})")

    def stop(self) -> bool:
        """
        Request shutdown and wait up to ``join_timeout`` for the thread.

        Returns
        -------
        bool
            True if the thread has exited.
        """
        self._stop.set()
        if self._thread is None:
            return True
        self._thread.join(timeout=self.join_timeout)
        if self._thread.is_alive():
            logger.warning(
                f"Ingestion thread still blocked on input after {self.join_timeout}s"
            )
            return False
        logger.info(
            f"Ingestion stopped: {self.samples_ingested} samples, {self.lines_skipped} lines skipped"
        )
        return True

    def raise_if_failed(self) -> None:
        """Re-raise the error that terminated the worker, if any."""
        if self.error is not None:
            raise self.error

    def _run_thread(self) -> None:
        try:
            self.run()
        except ScopeError as e:
            self.error = e
            logger.error(f"Ingestion aborted: {e}")
        except Exception as e:
            self.error = e
            logger.exception(f"Ingestion thread failed: {e}")

    def run(self) -> None:
        """
        Consume the stream in the calling thread until it ends or stop is requested.

        Raises
        ------
        MalformedSample, ConfigMismatch
            On a bad line when ``on_error`` is "raise".
        """
        for line in self.stream:
            if self._stop.is_set():
                break
            self.lines_read += 1
            if self.lines_read <= self.warmup_lines:
                continue
            if not line.strip():
                continue
            self.handle_line(line)
        else:
            logger.info("Input stream closed")

    def handle_line(self, line: str) -> bool:
        """
        Parse one line and insert it.

        Returns
        -------
        bool
            True if a sample was inserted, False if the line was skipped.
        """
        try:
            t, values = read_sample(line, self.config)
        except (MalformedSample, ConfigMismatch) as e:
            if self.on_error == self.ON_ERROR_RAISE:
                raise
            self.lines_skipped += 1
            logger.warning(f"Skipping line {self.lines_read}: {e}")
            return False

        self.store.insert(t, values)
        self.samples_ingested += 1
        return True
