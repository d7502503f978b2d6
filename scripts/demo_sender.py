"""
Synthetic sample generator for trying the plotter without hardware.

Prints one line per sample to stdout in the plotter's input format:
a millisecond timestamp followed by one raw 10-bit reading per channel.
"""

import sys
import time

import numpy as np

SAMPLE_PERIOD = 0.01  # seconds between samples
NOISE = 4.0  # raw counts


def _demo_signal_sine(t: float) -> float:
    """Sine wave, period 4 s, centered on mid-scale."""
    return 512 + 300 * np.sin(2 * np.pi * t / 4)


def _demo_signal_parabola(t: float) -> float:
    """Repeating parabola, period 3 s."""
    phase = (t % 3) - 1.5
    return 200 + 250 * phase * phase


def main() -> None:
    rng = np.random.default_rng()
    start = time.monotonic()
    while True:
        t = time.monotonic() - start
        values = [
            _demo_signal_sine(t) + rng.normal(0, NOISE),
            _demo_signal_parabola(t) + rng.normal(0, NOISE),
        ]
        line = " ".join([str(int(t * 1000))] + [str(int(round(v))) for v in values])
        try:
            print(line, flush=True)
        except BrokenPipeError:
            break
        time.sleep(SAMPLE_PERIOD)


if __name__ == "__main__":
    main()
    sys.exit(0)
