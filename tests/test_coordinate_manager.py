import numpy as np
import pytest

from rtscope import TimeWindow, VertexProjector, VertexSequence

RED = (1.0, 0.0, 0.0, 1.0)


@pytest.fixture
def projector():
    return VertexProjector(time_divisions=10, data_divisions=8)


def test_time_maps_window_edges(projector):
    anchor = 25.0
    x = projector.time_to_ndc([anchor, anchor - 10.0, anchor - 5.0], anchor)
    np.testing.assert_allclose(x, [1.0, -1.0, 0.0])


def test_value_mapping_uses_gain_and_zero_shift():
    projector = VertexProjector(10, 8, zero_shift=1.0, channel_gains=[1.0, 2.0])
    np.testing.assert_allclose(projector.value_to_ndc([0.0, 3.0], 0), [0.25, 1.0])
    np.testing.assert_allclose(projector.value_to_ndc([1.5], 1), [1.0])
    # No channel means unit gain
    np.testing.assert_allclose(projector.value_to_ndc([3.0]), [1.0])


def test_projected_vertices_keep_color_without_selection(projector):
    t = np.array([1.0, 2.0, 3.0])
    vertices = projector.project_channel(t, [0.0, 4.0, -4.0], 0, 3.0, RED)
    assert len(vertices) == 3
    xs, ys, colors = zip(*vertices)
    assert xs[-1] == pytest.approx(1.0)
    assert ys == pytest.approx((0.0, 1.0, -1.0))
    assert all(c == RED for c in colors)


def test_vertices_outside_sub_window_are_dimmed(projector):
    t = np.array([0.0, 1.0, 2.0, 3.0])
    vertices = projector.project_channel(
        t, np.zeros(4), 0, 3.0, RED, sub_window=TimeWindow(1.0, 3.0)
    )
    alphas = [rgba[3] for _, _, rgba in vertices]
    np.testing.assert_allclose(alphas, [0.2, 1.0, 1.0, 0.2], rtol=1e-6)
    # Color channels unchanged
    assert all(rgba[:3] == RED[:3] for _, _, rgba in vertices)


def test_unfocused_channel_is_dimmed_everywhere(projector):
    t = np.array([0.0, 1.0, 2.0])
    vertices = projector.project_channel(
        t, np.zeros(3), 1, 2.0, RED, sub_window=TimeWindow(0.0, 3.0), focused_channel=0
    )
    _, rgba = vertices.as_arrays()
    np.testing.assert_allclose(rgba[:, 3], 0.2, rtol=1e-6)


def test_focused_channel_follows_sub_window(projector):
    t = np.array([0.0, 1.0, 2.0])
    vertices = projector.project_channel(
        t, np.zeros(3), 1, 2.0, RED, sub_window=TimeWindow(0.5, 1.5), focused_channel=1
    )
    _, rgba = vertices.as_arrays()
    np.testing.assert_allclose(rgba[:, 3], [0.2, 1.0, 0.2], rtol=1e-6)


def test_dim_factor_scales_base_alpha():
    projector = VertexProjector(10, 8, dim_factor=0.5)
    vertices = projector.project_channel(
        np.array([0.0]), np.zeros(1), 0, 0.0, (0.0, 1.0, 0.0, 0.8), focused_channel=2
    )
    _, rgba = vertices.as_arrays()
    assert rgba[0, 3] == pytest.approx(0.4)


def test_polynomial_spans_sub_window(projector):
    window = TimeWindow(-6.0, -2.0)
    vertices = projector.project_polynomial([1.0, 0.5], window, 0.0, RED)
    xy, rgba = vertices.as_arrays()
    assert len(vertices) == VertexProjector.DEFAULT_POLYNOMIAL_POINTS
    np.testing.assert_allclose(
        [xy[0, 0], xy[-1, 0]], projector.time_to_ndc([-6.0, -2.0], 0.0), rtol=1e-6
    )
    # y = 1 + 0.5 t at the edges
    np.testing.assert_allclose(
        [xy[0, 1], xy[-1, 1]], projector.value_to_ndc([-2.0, 0.0]), atol=1e-6
    )
    assert np.all(np.diff(xy[:, 0]) > 0)
    np.testing.assert_array_equal(rgba[:, 3], 1.0)


def test_polynomial_point_count_is_configurable():
    projector = VertexProjector(10, 8, polynomial_points=50)
    vertices = projector.project_polynomial([0.0], TimeWindow(0.0, 1.0), 1.0, RED)
    assert len(vertices) == 50


def test_vertex_sequence_is_restartable():
    vertices = VertexSequence(np.array([[0.0, 0.5], [1.0, -0.5]]), np.tile(RED, (2, 1)))
    assert list(vertices) == list(vertices)
    assert len(list(vertices)) == 2


def test_vertex_sequence_rejects_mismatched_lengths():
    with pytest.raises(ValueError):
        VertexSequence(np.zeros((3, 2)), np.zeros((2, 4)))


def test_grid_vertices_form_line_pairs(projector):
    xy, rgba = projector.grid_vertices(RED).as_arrays()
    # (10 + 1) vertical and (8 + 1) horizontal lines, two vertices each
    assert len(xy) == 2 * (11 + 9)
    assert np.all(np.abs(xy) <= 1.0)
    vertical = xy[: 2 * 11]
    np.testing.assert_allclose(vertical[0::2, 0], vertical[1::2, 0])
    np.testing.assert_allclose(vertical[::2, 0], np.linspace(-1.0, 1.0, 11), atol=1e-6)


def test_from_config(config):
    projector = VertexProjector.from_config(config, dim_factor=0.3)
    assert projector.time_divisions == config.time.divisions
    assert projector.data_divisions == config.data.divisions
    assert projector.dim_factor == 0.3
    assert projector.gain(1) == config.channels[1].gain
