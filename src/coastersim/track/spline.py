"""
Spline - Centripetal Catmull-Rom curve with arc-length parametrization.

Contains:
- Editable node storage (open or closed)
- Curve evaluation in Hermite form
- Chord-length arc-length lookup table (LUT)
- Arc-length inversion with Newton refinement
- Node <-> arc-length mapping
"""

from dataclasses import dataclass, field
from typing import List, Tuple
import numpy as np

from coastersim.track.rotation import EPS, X_AXIS, normalize


ALPHA = 0.5             # Centripetal parametrization
NEWTON_ITERATIONS = 2
DEFAULT_LUT_SAMPLES = 64


@dataclass
class Node:
    """Spline control node."""
    position: np.ndarray = field(default_factory=lambda: np.zeros(3))
    roll: float = 0.0          # Bank angle in radians
    tension: float = 0.0       # Reserved shape parameters
    continuity: float = 0.0
    bias: float = 0.0

    def __post_init__(self):
        self.position = np.array(self.position, dtype=float).reshape(3)

    def copy(self) -> "Node":
        return Node(self.position.copy(), self.roll, self.tension, self.continuity, self.bias)


@dataclass
class ArcSample:
    """Single LUT entry."""
    u: float                   # Local curve parameter in [0, 1]
    s: float                   # Arc length from segment start to u
    position: np.ndarray       # C(u)


@dataclass
class SegmentLUT:
    """Arc-length table of one segment, stored column-wise."""
    u: np.ndarray
    s: np.ndarray
    positions: np.ndarray
    length: float = 0.0

    @property
    def samples(self) -> List[ArcSample]:
        """LUT entries as ArcSample records."""
        return [
            ArcSample(float(u), float(s), p)
            for u, s, p in zip(self.u, self.s, self.positions)
        ]


class Spline:
    """Centripetal Catmull-Rom spline over an editable node list.

    Segment ``i`` of an open spline spans anchors ``i+1`` and ``i+2`` with
    neighbours ``i`` and ``i+3``, so the first and last nodes only shape the
    curve. A closed spline has one segment per node: segment ``i`` spans
    anchors ``i`` and ``i+1`` (wrapping).

    Arc-length queries need ``rebuild_arc_length_lut()`` after every edit;
    the spline never rebuilds on its own.

    Usage:
        spline = Spline()
        for p in points:
            spline.add_node(Node(p))
        spline.rebuild_arc_length_lut()

        pos = spline.get_position_at_s(12.5)
    """

    def __init__(self, closed: bool = False):
        """Initialize an empty spline.

        Args:
            closed: Whether the path loops back onto its first node
        """
        self._nodes: List[Node] = []
        self._lut: List[SegmentLUT] = []
        self._seg_prefix: np.ndarray = np.zeros(0)
        self._closed = closed
        self._total_length: float = 0.0

    # ------------------------------------------------------------------
    # Node editing
    # ------------------------------------------------------------------

    @property
    def node_count(self) -> int:
        """Number of nodes."""
        return len(self._nodes)

    @property
    def nodes(self) -> List[Node]:
        """Copies of all nodes."""
        return [node.copy() for node in self._nodes]

    def _check_node(self, i: int, allow_end: bool = False) -> None:
        limit = len(self._nodes) + (1 if allow_end else 0)
        if not 0 <= i < limit:
            raise IndexError(f"node index {i} out of range ({len(self._nodes)} nodes)")

    def get_node(self, i: int) -> Node:
        """Get a copy of node i."""
        self._check_node(i)
        return self._nodes[i].copy()

    def add_node(self, node: Node) -> int:
        """Append a node.

        Returns:
            Index of the new node
        """
        self._nodes.append(node.copy())
        return len(self._nodes) - 1

    def insert_node(self, i: int, node: Node) -> None:
        """Insert a node before index i (i == node_count appends)."""
        self._check_node(i, allow_end=True)
        self._nodes.insert(i, node.copy())

    def move_node(self, i: int, position) -> None:
        """Move node i to a new position."""
        self._check_node(i)
        self._nodes[i].position = np.array(position, dtype=float).reshape(3)

    def remove_node(self, i: int) -> None:
        """Remove node i."""
        self._check_node(i)
        del self._nodes[i]

    def set_node_roll(self, i: int, roll: float) -> None:
        """Set the bank angle of node i in radians."""
        self._check_node(i)
        self._nodes[i].roll = float(roll)

    # ------------------------------------------------------------------
    # Topology
    # ------------------------------------------------------------------

    @property
    def is_closed(self) -> bool:
        return self._closed

    def set_closed(self, closed: bool) -> None:
        self._closed = bool(closed)

    @property
    def segment_count(self) -> int:
        """Number of curve segments."""
        n = len(self._nodes)
        if self._closed:
            return n if n >= 4 else 0
        return max(0, n - 3)

    def _check_segment(self, seg: int) -> None:
        count = self.segment_count
        if not 0 <= seg < count:
            raise IndexError(f"segment index {seg} out of range ({count} segments)")

    def _control_points(self, seg: int) -> Tuple[np.ndarray, np.ndarray, np.ndarray, np.ndarray]:
        """Neighbour, anchor, anchor, neighbour positions of a segment."""
        if self._closed:
            n = len(self._nodes)
            return tuple(self._nodes[(seg + k) % n].position for k in (-1, 0, 1, 2))
        return tuple(self._nodes[seg + k].position for k in range(4))

    def segment_anchors(self, seg: int) -> Tuple[np.ndarray, np.ndarray]:
        """Positions of the two nodes a segment runs between."""
        self._check_segment(seg)
        _, p1, p2, _ = self._control_points(seg)
        return p1.copy(), p2.copy()

    # ------------------------------------------------------------------
    # Curve evaluation
    # ------------------------------------------------------------------

    def _hermite_terms(self, seg: int):
        """Anchors, Hermite tangents and knot span of a segment."""
        p0, p1, p2, p3 = self._control_points(seg)

        t0 = 0.0
        t1 = t0 + float(np.linalg.norm(p1 - p0)) ** ALPHA
        t2 = t1 + float(np.linalg.norm(p2 - p1)) ** ALPHA
        t3 = t2 + float(np.linalg.norm(p3 - p2)) ** ALPHA
        dt = max(t2 - t1, EPS)

        m1 = (
            (p1 - p0) / max(t1 - t0, EPS)
            - (p2 - p0) / max(t2 - t0, EPS)
            + (p2 - p1) / max(t2 - t1, EPS)
        ) * dt
        m2 = (
            (p2 - p1) / max(t2 - t1, EPS)
            - (p3 - p1) / max(t3 - t1, EPS)
            + (p3 - p2) / max(t3 - t2, EPS)
        ) * dt
        return p1, p2, m1, m2, dt

    def _evaluate(self, seg: int, u) -> np.ndarray:
        """C(u) for a scalar or an array of local parameters."""
        p1, p2, m1, m2, _ = self._hermite_terms(seg)
        u = np.clip(np.asarray(u, dtype=float), 0.0, 1.0)
        u2 = u * u
        u3 = u2 * u
        h00 = 2 * u3 - 3 * u2 + 1
        h10 = u3 - 2 * u2 + u
        h01 = -2 * u3 + 3 * u2
        h11 = u3 - u2
        return (
            np.multiply.outer(h00, p1)
            + np.multiply.outer(h10, m1)
            + np.multiply.outer(h01, p2)
            + np.multiply.outer(h11, m2)
        )

    def _derivative_du(self, seg: int, u: float) -> np.ndarray:
        """dC/du of the Hermite blend."""
        p1, p2, m1, m2, _ = self._hermite_terms(seg)
        u = min(max(float(u), 0.0), 1.0)
        u2 = u * u
        dh00 = 6 * u2 - 6 * u
        dh10 = 3 * u2 - 4 * u + 1
        dh01 = -6 * u2 + 6 * u
        dh11 = 3 * u2 - 2 * u
        return dh00 * p1 + dh10 * m1 + dh01 * p2 + dh11 * m2

    def get_position(self, seg: int, t: float) -> np.ndarray:
        """Curve position on a segment.

        Args:
            seg: Segment index
            t: Local parameter, clamped to [0, 1]

        Returns:
            Position [x, y, z]
        """
        self._check_segment(seg)
        return self._evaluate(seg, float(t))

    def get_derivative(self, seg: int, t: float) -> np.ndarray:
        """Derivative with respect to the centripetal knot parameter."""
        self._check_segment(seg)
        _, _, _, _, dt = self._hermite_terms(seg)
        return self._derivative_du(seg, t) / dt

    def get_tangent(self, seg: int, t: float) -> np.ndarray:
        """Unit tangent on a segment.

        Degenerate derivatives fall back to the anchor chord, then the wide
        chord between the neighbours, then the X axis.
        """
        derivative = self.get_derivative(seg, t)
        length = float(np.linalg.norm(derivative))
        if length >= EPS:
            return derivative / length

        p0, p1, p2, p3 = self._control_points(seg)
        chord = p2 - p1
        if np.linalg.norm(chord) >= EPS:
            return normalize(chord)
        wide = p3 - p0
        if np.linalg.norm(wide) >= EPS:
            return normalize(wide)
        return X_AXIS.copy()

    # ------------------------------------------------------------------
    # Arc length
    # ------------------------------------------------------------------

    def rebuild_arc_length_lut(self, samples_per_segment: int = DEFAULT_LUT_SAMPLES) -> None:
        """Rebuild the chord-length table of every segment.

        Args:
            samples_per_segment: Uniform u steps per segment (at least 2)
        """
        self._lut = []
        count = self.segment_count
        if count == 0:
            self._seg_prefix = np.zeros(0)
            self._total_length = 0.0
            return

        samples = max(int(samples_per_segment), 2)
        u = np.linspace(0.0, 1.0, samples + 1)
        for seg in range(count):
            positions = self._evaluate(seg, u)
            steps = np.linalg.norm(np.diff(positions, axis=0), axis=1)
            steps[steps < EPS] = 0.0
            s = np.concatenate(([0.0], np.cumsum(steps)))
            self._lut.append(SegmentLUT(u=u.copy(), s=s, positions=positions, length=float(s[-1])))

        lengths = np.array([entry.length for entry in self._lut])
        self._seg_prefix = np.concatenate(([0.0], np.cumsum(lengths)[:-1]))
        self._total_length = float(self._seg_prefix[-1] + lengths[-1])

    @property
    def total_length(self) -> float:
        """Arc length of the whole path."""
        return self._total_length

    @property
    def has_valid_lut(self) -> bool:
        return bool(self._lut) and len(self._lut) == self.segment_count

    @property
    def lut(self) -> List[SegmentLUT]:
        return list(self._lut)

    @property
    def segment_prefix(self) -> np.ndarray:
        """Arc length at the start of each segment."""
        return self._seg_prefix.copy()

    def arc_length_at_segment_start(self, seg: int) -> float:
        if not 0 <= seg < len(self._lut):
            raise IndexError(f"segment index {seg} has no arc-length data")
        return float(self._seg_prefix[seg])

    def arc_length_at_segment_end(self, seg: int) -> float:
        return self.arc_length_at_segment_start(seg) + self._lut[seg].length

    def wrap_s(self, s: float) -> float:
        """Wrap (closed) or clamp (open) an arc length onto the path."""
        length = self._total_length
        if length <= 0.0:
            return 0.0
        if self._closed:
            s = float(s) % length
            return 0.0 if s >= length else s
        return min(max(float(s), 0.0), length)

    def locate_segment_by_s(self, s: float) -> Tuple[int, float]:
        """Find the segment containing an arc length.

        Args:
            s: Arc length from the path start

        Returns:
            Tuple of (segment_index, arc_length_within_segment)
        """
        if not self.has_valid_lut or self._total_length <= 0.0:
            return (0, 0.0)

        s = self.wrap_s(s)
        if s <= 0.0:
            return (0, 0.0)
        k = int(np.searchsorted(self._seg_prefix, s, side="right")) - 1
        k = min(max(k, 0), len(self._lut) - 1)
        return (k, s - float(self._seg_prefix[k]))

    def _u_at_local_s(self, seg: int, s_local: float) -> float:
        entry = self._lut[seg]
        if s_local <= 0.0:
            return 0.0
        if s_local >= entry.length:
            return 1.0

        i1 = int(np.searchsorted(entry.s, s_local, side="left"))
        i1 = min(max(i1, 1), len(entry.s) - 1)
        i0 = i1 - 1
        denom = max(entry.s[i1] - entry.s[i0], EPS)
        alpha = min(max((s_local - entry.s[i0]) / denom, 0.0), 1.0)
        u0 = entry.u[i0] + alpha * (entry.u[i1] - entry.u[i0])
        return self._refine_u_by_newton(seg, float(u0), s_local, NEWTON_ITERATIONS)

    def _refine_u_by_newton(self, seg: int, u: float, s_local: float, iterations: int) -> float:
        """Correct the linear LUT estimate of u against chord arc length."""
        entry = self._lut[seg]
        for _ in range(iterations):
            speed = float(np.linalg.norm(self._derivative_du(seg, u)))
            if speed < EPS:
                break

            position = self._evaluate(seg, u)
            i1 = int(np.searchsorted(entry.u, u, side="left"))
            if i1 > 0:
                s_approx = entry.s[i1 - 1] + np.linalg.norm(position - entry.positions[i1 - 1])
            else:
                s_approx = np.linalg.norm(position - entry.positions[0])

            u = min(max(u - (s_approx - s_local) / speed, 0.0), 1.0)
        return float(u)

    def _empty_position(self) -> np.ndarray:
        if self.segment_count > 0:
            return self._evaluate(0, 0.0)
        if self._nodes:
            return self._nodes[0].position.copy()
        return np.zeros(3)

    def get_position_at_s(self, s: float) -> np.ndarray:
        """Curve position at an arc length."""
        if not self.has_valid_lut:
            return self._empty_position()
        seg, s_local = self.locate_segment_by_s(s)
        return self._evaluate(seg, self._u_at_local_s(seg, s_local))

    def get_tangent_at_s(self, s: float) -> np.ndarray:
        """Unit tangent at an arc length."""
        if not self.has_valid_lut:
            if self.segment_count > 0:
                return self.get_tangent(0, 0.0)
            return X_AXIS.copy()
        seg, s_local = self.locate_segment_by_s(s)
        return self.get_tangent(seg, self._u_at_local_s(seg, s_local))

    # ------------------------------------------------------------------
    # Node <-> arc length
    # ------------------------------------------------------------------

    def is_node_on_curve(self, i: int) -> bool:
        """Whether node i is a segment anchor (the curve passes through it)."""
        self._check_node(i)
        if self._closed:
            return len(self._nodes) >= 4
        return self.segment_count > 0 and 0 < i < len(self._nodes) - 1

    def s_at_node(self, i: int) -> float:
        """Arc length at an on-curve node."""
        if not self.is_node_on_curve(i):
            raise IndexError(f"node {i} is not on the curve")
        if not self.has_valid_lut:
            return 0.0
        if self._closed:
            return float(self._seg_prefix[i])
        seg = i - 1
        if seg < len(self._lut):
            return float(self._seg_prefix[seg])
        return self._total_length

    def segment_index_starting_at_node(self, i: int) -> int:
        if not self.is_node_on_curve(i):
            raise IndexError(f"node {i} is not on the curve")
        if self._closed:
            return i
        if i - 1 >= self.segment_count:
            raise IndexError(f"node {i} ends the curve")
        return i - 1

    def segment_index_ending_at_node(self, i: int) -> int:
        if not self.is_node_on_curve(i):
            raise IndexError(f"node {i} is not on the curve")
        if self._closed:
            return (i - 1) % len(self._nodes)
        if i < 2:
            raise IndexError(f"node {i} starts the curve")
        return i - 2

    def approximate_s_for_point(self, point, step: float = 0.05) -> float:
        """Arc length of the curve point closest to an arbitrary point.

        Picks the closest LUT sample, then scans the neighbouring sample
        spacing in ``step`` increments.
        """
        if not self.has_valid_lut or self._total_length <= 0.0:
            return 0.0

        point = np.asarray(point, dtype=float)
        positions = np.concatenate([entry.positions for entry in self._lut])
        arc = np.concatenate([
            self._seg_prefix[k] + entry.s for k, entry in enumerate(self._lut)
        ])
        j = int(np.argmin(np.sum((positions - point) ** 2, axis=1)))

        lo = arc[max(j - 1, 0)]
        hi = arc[min(j + 1, len(arc) - 1)]
        best_s = float(arc[j])
        best_d2 = float(np.sum((positions[j] - point) ** 2))
        step = max(step, EPS)
        for s in np.arange(lo, hi + 0.5 * step, step):
            s = min(float(s), self._total_length)
            d2 = float(np.sum((self.get_position_at_s(s) - point) ** 2))
            if d2 < best_d2:
                best_d2 = d2
                best_s = s
        return self.wrap_s(best_s)
