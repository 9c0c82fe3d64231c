"""
Path sampler - Arc-length sampling with per-segment interpolation overrides.

Segments marked LINEAR are sampled as straight lines between their anchor
nodes (e.g. station platforms) without touching the node data.
"""

from dataclasses import dataclass
import logging
from typing import Sequence
import numpy as np

from coastersim.track.rotation import EPS, X_AXIS, normalize
from coastersim.track.spline import Spline
from coastersim.track.types import EdgeMeta, EdgeType

logger = logging.getLogger(__name__)


@dataclass
class Sample:
    """Position and unit tangent at an arc length."""
    position: np.ndarray
    tangent: np.ndarray


class PathSampler:
    """Samples a spline by arc length, honouring edge overrides.

    The sampler keeps references to the spline and the edge list; it sees
    later edits, but arc-length data is only as fresh as the spline's LUT.
    """

    def __init__(self, spline: Spline, edges: Sequence[EdgeMeta] = ()):
        """Initialize sampler.

        Args:
            spline: Curve to sample
            edges: Per-segment metadata (missing entries count as CATMULL_ROM)
        """
        self.spline = spline
        self.edges = edges

    @property
    def total_length(self) -> float:
        return self.spline.total_length

    @property
    def is_closed(self) -> bool:
        return self.spline.is_closed

    def edge_type(self, seg: int) -> EdgeType:
        """Effective interpolation mode of a segment."""
        if 0 <= seg < len(self.edges):
            return self.edges[seg].edge_type
        return EdgeType.CATMULL_ROM

    def sample_at_s(self, s: float) -> Sample:
        """Sample position and tangent at an arc length.

        Args:
            s: Arc length (wrapped on closed paths, clamped on open ones)

        Returns:
            Sample with unit tangent
        """
        spline = self.spline
        if spline.segment_count == 0 or not spline.has_valid_lut:
            position = spline.get_node(0).position if spline.node_count else np.zeros(3)
            return Sample(position, X_AXIS.copy())

        seg, s_local = spline.locate_segment_by_s(s)

        if self.edge_type(seg) is EdgeType.LINEAR:
            p1, p2 = spline.segment_anchors(seg)
            seg_length = spline.arc_length_at_segment_end(seg) - spline.arc_length_at_segment_start(seg)
            u = min(max(s_local / seg_length, 0.0), 1.0) if seg_length > EPS else 0.0
            return Sample(p1 + (p2 - p1) * u, normalize(p2 - p1))

        position = spline.get_position_at_s(s)
        tangent = spline.get_tangent_at_s(s)

        if not np.all(np.isfinite(tangent)) or np.dot(tangent, tangent) < EPS:
            probe = 1e-3 * max(1.0, spline.total_length)
            delta = spline.get_position_at_s(s + probe) - spline.get_position_at_s(s - probe)
            logger.debug(f"Repairing degenerate tangent at s={s:.3f} with central difference")
            tangent = normalize(delta)
        return Sample(position, tangent)
