"""
Frame builder - Rotation-minimizing frames along a sampled path.

Propagates an orthonormal (tangent, normal, binormal) basis by parallel
transport, then:
- Forces the normal toward world-up inside stations
- Feathers toward world-up just outside stations
- Applies authored roll around the tangent
- Closes the seam of looped paths
"""

import logging
from typing import List, Protocol, Tuple
import numpy as np

from coastersim.track.rotation import (
    EPS,
    Y_AXIS,
    normalize,
    orthonormalize,
    quat_from_basis,
    rotate_around_axis,
    up_reference,
)
from coastersim.track.sampler import PathSampler
from coastersim.track.types import Frame

logger = logging.getLogger(__name__)

DEFAULT_DS = 0.05
ANTIPARALLEL_COS = -0.9999


class FrameMetaSource(Protocol):
    """Station and roll queries consulted while building frames."""

    def is_in_station(self, s: float) -> bool:
        ...

    def station_edge_fade_weight(self, s: float) -> float:
        ...

    def manual_roll_at_s(self, s: float) -> float:
        ...


def _transport(
    prev_tangent: np.ndarray,
    prev_normal: np.ndarray,
    tangent: np.ndarray,
) -> Tuple[np.ndarray, np.ndarray]:
    """Carry the previous normal onto a new tangent with minimal twist.

    Returns:
        Tuple of (normal, binormal)
    """
    axis = np.cross(prev_tangent, tangent)
    sin_phi = float(np.linalg.norm(axis))
    cos_phi = float(np.clip(np.dot(prev_tangent, tangent), -1.0, 1.0))

    if sin_phi >= EPS:
        phi = np.arctan2(sin_phi, cos_phi)
        normal = rotate_around_axis(prev_normal, axis / sin_phi, phi)
    elif cos_phi < ANTIPARALLEL_COS:
        # Tangent reversed: flip instead of rotating about an undefined axis
        normal = -prev_normal
    else:
        normal = prev_normal
    return orthonormalize(tangent, normal)


class _FrameStepper:
    """Holds the transported (unrolled) basis between samples."""

    def __init__(self, up: np.ndarray, meta: FrameMetaSource | None):
        self.up = up
        self.meta = meta
        self.tangent: np.ndarray | None = None
        self.normal: np.ndarray | None = None

    def advance(self, position: np.ndarray, tangent: np.ndarray, s: float) -> Frame:
        tangent = normalize(tangent)
        if self.tangent is None:
            normal, binormal = up_reference(tangent, self.up)
        else:
            normal, binormal = _transport(self.tangent, self.normal, tangent)

        in_station = bool(self.meta.is_in_station(s)) if self.meta else False
        weight = 0.0
        if self.meta is not None and not in_station:
            weight = float(self.meta.station_edge_fade_weight(s))

        if in_station or weight > 0.0:
            level_normal, level_binormal = up_reference(tangent, self.up)
            if in_station:
                normal, binormal = level_normal, level_binormal
            else:
                blended = normal + (level_normal - normal) * weight
                normal, binormal = orthonormalize(tangent, normalize(blended, level_normal))

        self.tangent = tangent
        self.normal = normal

        if self.meta is not None and not in_station:
            roll = float(self.meta.manual_roll_at_s(s))
            if abs(roll) > EPS:
                normal, binormal = orthonormalize(tangent, rotate_around_axis(normal, tangent, roll))

        return Frame(
            position=np.array(position, dtype=float),
            tangent=tangent,
            normal=normal,
            binormal=binormal,
            s=float(s),
            orientation=quat_from_basis(tangent, normal, binormal),
        )


def build_frames(
    sampler: PathSampler,
    ds: float,
    up,
    meta: FrameMetaSource | None = None,
) -> List[Frame]:
    """Build the frame sequence of a path.

    Args:
        sampler: Arc-length sampler of the path
        ds: Spacing between frames in meters (non-positive uses 0.05)
        up: World-up reference vector
        meta: Optional station/roll source

    Returns:
        Frames with strictly increasing s, from 0 to the path length
        (empty for a zero-length path)
    """
    if ds <= 0.0:
        logger.warning(f"Frame spacing ds={ds} must be positive, using {DEFAULT_DS}")
        ds = DEFAULT_DS

    length = sampler.total_length
    if length <= 0.0:
        return []

    stepper = _FrameStepper(normalize(np.asarray(up, dtype=float), Y_AXIS), meta)

    frames: List[Frame] = []
    first = sampler.sample_at_s(0.0)
    frames.append(stepper.advance(first.position, first.tangent, 0.0))

    # Steps are k * ds rather than accumulated, the last one stretches to L
    k = 1
    while k * ds < length - 0.5 * ds:
        s = k * ds
        sample = sampler.sample_at_s(s)
        frames.append(stepper.advance(sample.position, sample.tangent, s))
        k += 1

    last = sampler.sample_at_s(length)
    frames.append(stepper.advance(last.position, last.tangent, length))

    if sampler.is_closed:
        end = frames[-1]
        end.normal = frames[0].normal.copy()
        end.binormal = frames[0].binormal.copy()
        end.orientation = quat_from_basis(end.tangent, end.normal, end.binormal)

    logger.debug(f"Built {len(frames)} frames over {length:.2f} m (ds={ds})")
    return frames
