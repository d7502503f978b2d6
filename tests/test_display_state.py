import pytest

from rtscope import TimeWindow, WindowSelector, window_for
from rtscope.oscplot.display_state import Frozen, Live


def make_selector(clock, **kwargs):
    return WindowSelector(divisions=10, seconds_per_division=0.5, clock=clock, **kwargs)


def test_window_for_is_right_anchored():
    window = window_for(now=3.0, first_sample_time=5.0, divisions=10)
    assert window == TimeWindow(-2.0, 8.0)
    assert window.width == 10


def test_visible_window_follows_clock(clock):
    selector = make_selector(clock)
    assert selector.visible_window(0.0) == TimeWindow(-10.0, 0.0)
    clock.advance(1.0)  # two divisions at 0.5 s/div
    assert selector.visible_window(0.0) == TimeWindow(-8.0, 2.0)


def test_freeze_captures_window_verbatim(clock):
    selector = make_selector(clock)
    clock.advance(2.0)
    selector.visible_window(0.0)
    selector.visible_window(0.0)
    assert selector.freeze()
    captured = selector.visible_window(0.0)

    clock.advance(50.0)
    assert selector.visible_window(0.0) == captured
    assert selector.state == Frozen(captured)
    assert selector.sub_window == captured

    selector.unfreeze()
    assert selector.state == Live()
    assert selector.sub_window is None
    assert selector.visible_window(0.0) != captured


def test_freeze_before_first_window_is_rejected(clock):
    selector = make_selector(clock)
    assert not selector.freeze()
    assert not selector.is_frozen


def test_adjustments_require_freeze(clock):
    selector = make_selector(clock)
    selector.visible_window(0.0)
    assert not selector.pan_left()
    assert not selector.narrow()
    assert selector.sub_window is None


def test_pan_rejected_at_visible_edges(clock):
    selector = make_selector(clock)
    selector.visible_window(0.0)
    selector.freeze()
    visible = selector.state.window

    # Sub-window fills the visible window: no room to pan or widen
    assert not selector.pan_left()
    assert not selector.pan_right()
    assert not selector.widen()
    assert selector.sub_window == visible

    assert selector.narrow(repeat=True)
    assert selector.pan_right()
    assert selector.sub_window.end <= visible.end
    assert selector.sub_window.start >= visible.start


def test_narrow_stops_at_minimum_width(clock):
    selector = make_selector(clock, resolution=0.5, step_multiplier=2.0, min_width_factor=1.0)
    selector.visible_window(0.0)
    selector.freeze()
    assert selector.min_width == pytest.approx(1.0)

    while selector.narrow():
        pass
    assert selector.sub_window.width >= selector.min_width
    assert selector.sub_window.width - 2 * selector.step() < selector.min_width


@pytest.mark.parametrize(
    "actions",
    [
        ["narrow", "narrow", "pan_left", "pan_left", "widen", "widen", "widen"],
        ["narrow"] * 30 + ["pan_right"] * 300 + ["widen"] * 10,
        ["narrow"] * 100 + ["pan_left"] * 1000,
        ["widen", "pan_left", "narrow", "pan_right"] * 200,
    ],
)
def test_sub_window_stays_inside_bounds(clock, actions):
    selector = make_selector(clock, resolution=0.05)
    selector.visible_window(3.0)
    selector.freeze()
    visible = selector.state.window
    for action in actions:
        getattr(selector, action)(repeat=True)
        sub = selector.sub_window
        assert sub.is_within(visible)
        assert sub.width <= visible.width
        assert sub.width >= selector.min_width


def test_toggle_freeze_returns_state(clock):
    selector = make_selector(clock)
    selector.visible_window(0.0)
    assert selector.toggle_freeze() is True
    assert selector.toggle_freeze() is False


def test_time_window_helpers():
    w = TimeWindow(1.0, 3.0)
    assert w.contains(1.0)
    assert not w.contains(3.0)
    assert w.shifted(1.0) == TimeWindow(2.0, 4.0)
    assert w.widened(0.5) == TimeWindow(0.5, 3.5)
    assert TimeWindow(2.0, 2.0).is_empty
    assert TimeWindow(1.5, 2.5).is_within(w)


def test_widen_back_to_frozen_edges(clock):
    selector = make_selector(clock, resolution=0.1, step_multiplier=3.0)
    selector.visible_window(3.0)
    selector.freeze()
    visible = selector.state.window

    for _ in range(7):
        assert selector.narrow()
    for _ in range(7):
        assert selector.widen()
    assert selector.sub_window.is_within(visible)
    assert selector.sub_window.start == pytest.approx(visible.start)
    assert selector.sub_window.end == pytest.approx(visible.end)


def test_rounding_overshoot_snaps_to_frozen_edge(clock):
    selector = make_selector(clock, resolution=0.1)
    selector.visible_window(3.0)
    selector.freeze()
    visible = selector.state.window

    # A few ulps short of one step from the left edge
    selector.sub_window = TimeWindow(visible.start + 0.1 - 1e-13, visible.end - 0.1)
    assert selector.widen()
    assert selector.sub_window.start == visible.start
    assert selector.sub_window.is_within(visible)

    # A real overshoot is still rejected
    selector.sub_window = TimeWindow(visible.start + 0.05, visible.end - 0.1)
    assert not selector.widen()
