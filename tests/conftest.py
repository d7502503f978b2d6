import matplotlib

matplotlib.use("Agg")

import pytest  # noqa: E402

from rtscope import ChannelConfig, ScopeConfig, ScopeSession, TimeGrid  # noqa: E402


class FakeClock:
    """Manually advanced wall clock, in seconds."""

    def __init__(self, start: float = 100.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def config():
    return ScopeConfig(
        time=TimeGrid(divisions=10, seconds_per_division=1.0, raw_per_second=1.0),
        channels=[ChannelConfig(), ChannelConfig()],
    )


@pytest.fixture
def session(config, clock):
    return ScopeSession(config, clock=clock)
