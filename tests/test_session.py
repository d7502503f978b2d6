import io

import numpy as np
import pytest

from rtscope import ScopeSession, TimeWindow
from rtscope.fitting.approximation import FitType


def fill(session, times, channels=(lambda t: 2 * t + 1, lambda t: 3.0)):
    for t in times:
        session.ingest(t, [f(t) for f in channels])


@pytest.fixture
def running(session, clock):
    """Session with 20 samples on [0, 10) and the visible window at [0, 10)."""
    fill(session, np.arange(0.0, 10.0, 0.5))
    session.frame()  # Starts the session clock
    clock.advance(10.0)
    return session


def test_frame_is_none_while_empty(session):
    assert session.frame() is None
    assert session.fit_overlay_vertices() is None
    assert len(session.visible_graph_vertices(0)) == 0


def test_visible_window_trails_clock(running, clock):
    frame = running.frame()
    assert frame.window == TimeWindow(0.0, 10.0)
    assert [len(g) for g in frame.graphs] == [20, 20]
    assert frame.overlay is None
    assert frame.summary is None

    clock.advance(5.0)
    frame = running.frame()
    assert frame.window == TimeWindow(5.0, 15.0)
    assert [len(g) for g in frame.graphs] == [10, 10]


def test_graph_vertices_in_device_coordinates(running):
    xy, rgba = running.visible_graph_vertices(0).as_arrays()
    assert np.all(xy[:, 0] >= -1.0) and np.all(xy[:, 0] < 1.0)
    assert xy[0, 0] == pytest.approx(-1.0)
    np.testing.assert_allclose(rgba[:, :3], np.tile(rgba[0, :3], (len(rgba), 1)))


def test_visible_graph_vertices_rejects_bad_channel(running):
    with pytest.raises(ValueError):
        running.visible_graph_vertices(2)


def test_freeze_holds_window(running, clock):
    assert running.toggle_freeze() is True
    clock.advance(3.0)
    assert running.frame().window == TimeWindow(0.0, 10.0)
    assert running.frame().sub_window == TimeWindow(0.0, 10.0)


def test_fit_mode_needs_freeze(running):
    assert running.cycle_fit_type() is None
    assert running.fit_type is None


def test_fit_needs_a_channel_when_several(running):
    running.toggle_freeze()
    running.cycle_fit_type()
    assert running.fit_type is FitType.CONSTANT
    assert running.fit_channel is None
    assert running.frame().overlay is None


def test_linear_fit_overlay_and_summary(running):
    running.toggle_freeze()
    running.focus(0)
    running.cycle_fit_type()
    running.cycle_fit_type()
    assert running.fit_type is FitType.LINEAR

    frame = running.frame()
    assert len(frame.overlay) == running.projector.polynomial_points
    summary = frame.summary
    assert summary.channel == 0
    assert summary.names == ("t₀", "k")
    np.testing.assert_allclose(summary.coefficients, [-0.5, 2.0], atol=1e-9)
    assert running.fit_summary() is summary


def test_overlay_follows_sub_window(running):
    running.toggle_freeze()
    running.focus(0)
    running.cycle_fit_type()
    running.narrow(repeat=True)
    sub = running.selector.sub_window
    xy, _ = running.fit_overlay_vertices().as_arrays()
    expected = running.projector.time_to_ndc([sub.start, sub.end], 10.0)
    np.testing.assert_allclose([xy[0, 0], xy[-1, 0]], expected, rtol=1e-6)


def test_undefined_physical_basis_keeps_previous_label(running):
    running.toggle_freeze()
    running.focus(0)
    running.cycle_fit_type()
    running.cycle_fit_type()
    first = running.frame().summary

    # Channel 1 is flat: the line fits but has no time intercept
    running.focus(1)
    frame = running.frame()
    assert frame.overlay is not None
    assert frame.summary is first


def test_insufficient_data_keeps_previous_label(config, clock):
    session = ScopeSession(
        config, clock=clock, resolution=1.0, step_multiplier=1.0, min_width_factor=1.0
    )
    fill(session, [0.0, 4.0, 8.0])
    session.frame()
    clock.advance(10.0)
    session.toggle_freeze()
    session.focus(0)
    session.cycle_fit_type()
    first = session.frame().summary
    assert first is not None

    # [1, 9) only holds two samples
    assert session.narrow()
    frame = session.frame()
    assert frame.overlay is None
    assert frame.summary is first


def test_unfreeze_clears_fit(running):
    running.toggle_freeze()
    running.focus(0)
    running.cycle_fit_type()
    running.frame()
    assert running.fit_summary() is not None

    assert running.toggle_freeze() is False
    assert running.fit_type is None
    assert running.fit_summary() is None
    assert running.frame().overlay is None


def test_cycling_back_to_off_clears_summary(running):
    running.toggle_freeze()
    running.focus(0)
    for _ in range(3):
        running.cycle_fit_type()
        running.frame()
    assert running.fit_type is FitType.QUADRATIC
    assert running.cycle_fit_type() is None
    assert running.fit_summary() is None


def test_focus_ignores_out_of_range(running):
    running.focus(1)
    running.focus(5)
    assert running.focused_channel == 1
    running.focus(None)
    assert running.focused_channel is None


def test_focus_dims_other_channels(running):
    running.focus(1)
    frame = running.frame()
    _, dimmed = frame.graphs[0].as_arrays()
    _, bright = frame.graphs[1].as_arrays()
    np.testing.assert_allclose(dimmed[:, 3], 0.2 * bright[:, 3], rtol=1e-6)


def test_adjustments_ignored_while_live(running):
    assert running.pan_left() is False
    assert running.widen() is False
    assert running.selector.sub_window is None


def test_start_ingestion_converts_and_stores(session):
    worker = session.start_ingestion(io.StringIO("0 1 2\n1 3 4\nbad\n2 5 6\n"))
    worker._thread.join(timeout=5.0)
    assert session.stop() is True
    assert session.worker is worker
    assert worker.lines_skipped == 1
    assert len(session.store) == 3
    with session.store.snapshot() as store:
        assert store.time_range() == (0.0, 2.0)


def test_non_finite_line_is_skipped(session, clock):
    worker = session.start_ingestion(io.StringIO("0 1 2\n1 3 4\nnan 5 6\n2 7 8\n"))
    worker._thread.join(timeout=5.0)
    assert worker.lines_skipped == 1

    session.frame()
    clock.advance(10.0)
    frame = session.frame()
    assert frame.window == TimeWindow(0.0, 10.0)
    assert [len(g) for g in frame.graphs] == [3, 3]
