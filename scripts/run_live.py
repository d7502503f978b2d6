import sys
from warnings import warn

import matplotlib as mpl

from rtscope import LiveScopePlot, ScopeConfig, ScopeSession, configure_logging

# --- User configuration dictionary ---
CONFIG = {
    "grid": {
        "label": "rtscope",
        "time": {
            "divisions": 10,  # horizontal divisions (visible width in grid time)
            "seconds_per_division": 0.5,  # wall-clock seconds per division
            "raw_per_second": 1000,  # raw timestamp ticks per second (ms timestamps)
            "label": "t [0.5 s/div]",
        },
        "data": {
            "divisions": 8,  # vertical divisions
            "zero_shift": 0.0,  # vertical position of the zero line, in divisions
            "label": "U [1 V/div]",
        },
    },
    "channels": [
        {"raw_offset": 512, "raw_per_division": 128, "name": "A0"},
        {"raw_offset": 512, "raw_per_division": 128, "name": "A1"},
    ],
    "colors": {"fit": "red", "grid": "dimgray", "background": "black"},
    "ON_ERROR": "skip",  # "skip" malformed lines or "raise" and stop ingesting
    "WARMUP_LINES": 10,  # leading lines discarded while the source stabilises
    "JOIN_TIMEOUT": 1.0,  # seconds to wait for the input thread on shutdown
    "REFRESH_MS": 16,  # render timer period
    "LOG_LEVEL": "INFO",  # logging level: DEBUG, INFO, SUCCESS, WARNING, ERROR, CRITICAL
}


def main() -> None:
    """
    Plot samples piped on stdin, e.g. ``python scripts/demo_sender.py | python scripts/run_live.py``.
    """
    configure_logging(CONFIG.get("LOG_LEVEL", "INFO"))

    config = ScopeConfig.from_dict(CONFIG)
    session = ScopeSession(config)
    session.start_ingestion(
        sys.stdin,
        on_error=CONFIG.get("ON_ERROR", "skip"),
        warmup_lines=CONFIG.get("WARMUP_LINES", 0),
        join_timeout=CONFIG.get("JOIN_TIMEOUT", 1.0),
    )

    plot = LiveScopePlot(session, interval_ms=CONFIG.get("REFRESH_MS", 16))
    try:
        plot.show()
    finally:
        session.stop()
    session.worker.raise_if_failed()


if __name__ == "__main__":
    # Set Matplotlib rcParams directly here
    for optn, val in {
        "backend": "QtAgg",
        "figure.dpi": 90,
        "font.family": ("sans-serif",),
        "font.size": 11,
        "axes.linewidth": 0.0,
        "axes.labelsize": 11,
    }.items():
        if isinstance(val, (list, tuple)):
            val = tuple(val)
        try:
            mpl.rcParams[optn] = val
        except KeyError:
            warn(f"mpl rcparams key '{optn}' not recognised as a valid rc parameter.")
    main()
