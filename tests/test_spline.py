"""Tests for the coastersim spline module."""

import pytest
import numpy as np

from coastersim.track.spline import Node, Spline


def line_spline(count: int = 4, spacing: float = 1.0) -> Spline:
    spline = Spline()
    for i in range(count):
        spline.add_node(Node([i * spacing, 0.0, 0.0]))
    spline.rebuild_arc_length_lut()
    return spline


def wavy_loop(closed: bool = True) -> Spline:
    spline = Spline(closed=closed)
    for k in range(8):
        angle = 2.0 * np.pi * k / 8
        spline.add_node(Node([20.0 * np.cos(angle), 3.0 * np.sin(3 * angle), 12.0 * np.sin(angle)]))
    spline.rebuild_arc_length_lut()
    return spline


class TestSplineTopology:
    """Test node editing and segment layout."""

    def test_empty_spline(self):
        """Test empty spline has no segments and zero length."""
        spline = Spline()
        spline.rebuild_arc_length_lut()

        assert spline.node_count == 0
        assert spline.segment_count == 0
        assert spline.total_length == 0.0
        assert np.allclose(spline.get_position_at_s(3.0), [0.0, 0.0, 0.0])
        assert spline.locate_segment_by_s(3.0) == (0, 0.0)

    def test_segment_counts(self):
        """Test open splines lose the end nodes, closed ones do not."""
        spline = line_spline(6)
        assert spline.segment_count == 3

        spline.set_closed(True)
        assert spline.segment_count == 6

        small = Spline(closed=True)
        for i in range(3):
            small.add_node(Node([float(i), 0.0, 0.0]))
        assert small.segment_count == 0

    def test_node_editing(self):
        """Test insert, move and remove."""
        spline = line_spline(4)
        spline.insert_node(1, Node([0.5, 0.0, 0.0]))
        assert spline.node_count == 5
        assert np.allclose(spline.get_node(1).position, [0.5, 0.0, 0.0])

        spline.move_node(1, [0.5, 2.0, 0.0])
        assert np.allclose(spline.get_node(1).position, [0.5, 2.0, 0.0])

        spline.remove_node(1)
        assert spline.node_count == 4
        assert np.allclose(spline.get_node(1).position, [1.0, 0.0, 0.0])

    def test_get_node_returns_copy(self):
        """Test returned nodes do not alias internal storage."""
        spline = line_spline(4)
        node = spline.get_node(0)
        node.position[0] = 99.0

        assert spline.get_node(0).position[0] == 0.0

    def test_bad_indices_raise(self):
        """Test out-of-range indices raise IndexError."""
        spline = line_spline(4)

        with pytest.raises(IndexError):
            spline.get_node(4)
        with pytest.raises(IndexError):
            spline.move_node(-1, [0.0, 0.0, 0.0])
        with pytest.raises(IndexError):
            spline.get_position(1, 0.5)
        with pytest.raises(IndexError):
            spline.insert_node(6, Node())


class TestSplineEvaluation:
    """Test curve evaluation."""

    def test_colinear_midpoint(self):
        """Test evenly spaced colinear nodes interpolate linearly."""
        spline = line_spline(4)
        assert np.allclose(spline.get_position(0, 0.5), [1.5, 0.0, 0.0], atol=1e-6)

    def test_passes_through_anchors(self):
        """Test the curve interpolates its anchor nodes."""
        spline = wavy_loop()
        for seg in range(spline.segment_count):
            p1, p2 = spline.segment_anchors(seg)
            assert np.allclose(spline.get_position(seg, 0.0), p1, atol=1e-9)
            assert np.allclose(spline.get_position(seg, 1.0), p2, atol=1e-9)

    def test_parameter_is_clamped(self):
        """Test t outside [0, 1] is clamped."""
        spline = line_spline(4)
        assert np.allclose(spline.get_position(0, -1.0), spline.get_position(0, 0.0))
        assert np.allclose(spline.get_position(0, 2.0), spline.get_position(0, 1.0))

    def test_tangent_is_unit(self):
        """Test tangents are unit length everywhere."""
        spline = wavy_loop()
        for seg in range(spline.segment_count):
            for t in np.linspace(0.0, 1.0, 7):
                assert abs(np.linalg.norm(spline.get_tangent(seg, t)) - 1.0) < 1e-9

    def test_degenerate_tangent_falls_back(self):
        """Test coincident nodes still give a finite unit tangent."""
        spline = Spline()
        for _ in range(4):
            spline.add_node(Node([1.0, 1.0, 1.0]))
        tangent = spline.get_tangent(0, 0.5)

        assert np.all(np.isfinite(tangent))
        assert abs(np.linalg.norm(tangent) - 1.0) < 1e-9


class TestArcLength:
    """Test arc-length table and inversion."""

    def test_line_length(self):
        """Test a straight segment measures its chord."""
        spline = line_spline(4, spacing=2.0)
        assert abs(spline.total_length - 2.0) < 1e-6

    def test_total_is_sum_of_segments(self):
        """Test total length equals the sum of segment lengths."""
        spline = wavy_loop()
        lengths = [entry.length for entry in spline.lut]

        assert spline.has_valid_lut
        assert abs(spline.total_length - sum(lengths)) < 1e-9
        for seg in range(spline.segment_count):
            assert abs(spline.arc_length_at_segment_end(seg)
                       - spline.arc_length_at_segment_start(seg) - lengths[seg]) < 1e-9

    def test_position_at_s_on_line(self):
        """Test arc-length sampling on a straight line."""
        spline = line_spline(5)
        assert np.allclose(spline.get_position_at_s(0.25), [1.25, 0.0, 0.0], atol=1e-6)
        assert np.allclose(spline.get_position_at_s(1.5), [2.5, 0.0, 0.0], atol=1e-6)

    def test_open_path_clamps(self):
        """Test out-of-range s clamps on open paths."""
        spline = line_spline(5)
        assert np.allclose(spline.get_position_at_s(-3.0), [1.0, 0.0, 0.0], atol=1e-6)
        assert np.allclose(spline.get_position_at_s(50.0), [3.0, 0.0, 0.0], atol=1e-6)

    def test_closed_path_wraps(self):
        """Test s wraps on closed paths."""
        spline = wavy_loop()
        length = spline.total_length

        assert np.allclose(spline.get_position_at_s(0.0), spline.get_node(0).position, atol=1e-6)
        assert np.allclose(spline.get_position_at_s(length), spline.get_position_at_s(0.0), atol=1e-6)
        assert np.allclose(spline.get_position_at_s(length + 3.0), spline.get_position_at_s(3.0), atol=1e-6)

    def test_arc_length_is_uniform(self):
        """Test equal s steps give roughly equal distances."""
        spline = wavy_loop()
        s_values = np.linspace(0.0, spline.total_length, 200, endpoint=False)
        points = np.array([spline.get_position_at_s(s) for s in s_values])
        steps = np.linalg.norm(np.diff(points, axis=0), axis=1)
        expected = s_values[1] - s_values[0]

        assert np.all(np.abs(steps - expected) < 0.05 * expected)

    def test_tangent_at_s_is_unit(self):
        """Test arc-length tangents are unit length."""
        spline = wavy_loop(closed=False)
        for s in np.linspace(0.0, spline.total_length, 25):
            assert abs(np.linalg.norm(spline.get_tangent_at_s(s)) - 1.0) < 1e-9

    def test_locate_is_monotonic(self):
        """Test segment lookup is monotone and within bounds."""
        spline = wavy_loop()
        previous = -1
        for s in np.linspace(0.0, spline.total_length * 0.999, 100):
            seg, s_local = spline.locate_segment_by_s(s)
            seg_length = spline.lut[seg].length

            assert seg >= previous
            assert -1e-9 <= s_local <= seg_length + 1e-9
            previous = seg

    def test_segment_prefix_brackets_s(self):
        """Test the located segment starts at or before s."""
        spline = wavy_loop(closed=False)
        prefix = spline.segment_prefix

        assert prefix[0] == 0.0
        assert np.all(np.diff(prefix) >= 0.0)
        for s in np.linspace(0.0, spline.total_length, 60):
            seg, s_local = spline.locate_segment_by_s(s)
            assert prefix[seg] <= s + 1e-12
            assert prefix[seg] + s_local == pytest.approx(s)

    def test_zero_length_first_segment(self):
        """Test s = 0 resolves to segment 0 when that segment is degenerate."""
        spline = Spline()
        for p in ([-1.0, 0.0, 0.0], [0.0, 0.0, 0.0], [0.0, 0.0, 0.0], [1.0, 0.0, 0.0], [2.0, 0.0, 0.0]):
            spline.add_node(Node(p))
        spline.rebuild_arc_length_lut()

        assert spline.lut[0].length == 0.0
        assert spline.locate_segment_by_s(0.0) == (0, 0.0)
        assert spline.locate_segment_by_s(-2.0) == (0, 0.0)
        assert spline.locate_segment_by_s(0.5)[0] == 1

    def test_lut_samples(self):
        """Test LUT entries run from the segment start to its end."""
        spline = line_spline(4, spacing=2.0)
        samples = spline.lut[0].samples

        assert len(samples) == len(spline.lut[0].u)
        assert samples[0].u == 0.0
        assert samples[0].s == 0.0
        assert samples[-1].u == 1.0
        assert samples[-1].s == pytest.approx(spline.lut[0].length)
        assert np.allclose(samples[0].position, [2.0, 0.0, 0.0])
        assert np.allclose(samples[-1].position, [4.0, 0.0, 0.0])
        assert all(b.s >= a.s for a, b in zip(samples, samples[1:]))

    def test_stale_lut_after_edit(self):
        """Test edits invalidate the table until rebuilt."""
        spline = line_spline(4)
        spline.add_node(Node([4.0, 0.0, 0.0]))
        assert not spline.has_valid_lut

        spline.rebuild_arc_length_lut()
        assert spline.has_valid_lut


class TestNodeMapping:
    """Test node to arc-length mapping."""

    def test_s_at_node_open(self):
        """Test on-curve nodes map to segment boundaries."""
        spline = line_spline(5)

        assert not spline.is_node_on_curve(0)
        assert not spline.is_node_on_curve(4)
        assert spline.s_at_node(1) == 0.0
        assert abs(spline.s_at_node(2) - 1.0) < 1e-6
        assert abs(spline.s_at_node(3) - spline.total_length) < 1e-9

    def test_s_at_node_off_curve_raises(self):
        """Test end nodes of an open spline have no arc length."""
        spline = line_spline(5)
        with pytest.raises(IndexError):
            spline.s_at_node(0)

    def test_segment_lookup_by_node(self):
        """Test segment indices around a node."""
        spline = line_spline(5)
        assert spline.segment_index_starting_at_node(1) == 0
        assert spline.segment_index_ending_at_node(3) == 1

        spline.set_closed(True)
        assert spline.segment_index_starting_at_node(0) == 0
        assert spline.segment_index_ending_at_node(0) == 4

    def test_approximate_s_for_point(self):
        """Test closest-point search."""
        spline = line_spline(6)
        s = spline.approximate_s_for_point([2.5, 1.0, 0.0])
        assert abs(s - 1.5) < 0.05
