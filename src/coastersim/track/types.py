"""
Track types - Shared data records for the track pipeline.

Defines:
- Edge (segment) interpolation overrides
- Node metadata (station markers)
- Roll keys
- Frames produced by the frame builder
"""

from dataclasses import dataclass, field
from enum import Enum
import numpy as np


class EdgeType(Enum):
    """Interpolation mode of a segment."""
    CATMULL_ROM = "catmull_rom"
    LINEAR = "linear"
    CIRCULAR = "circular"  # Reserved, samples as CATMULL_ROM
    HELIX = "helix"        # Reserved, samples as CATMULL_ROM


@dataclass
class EdgeMeta:
    """Per-segment metadata."""
    edge_type: EdgeType = EdgeType.CATMULL_ROM


@dataclass
class NodeMeta:
    """Per-node station markers."""
    station_start: bool = False
    station_end: bool = False
    station_length_m: float = 0.0  # Used by a lone station_start marker


@dataclass
class RollKey:
    """Authored bank angle at an arc length."""
    s: float = 0.0
    roll: float = 0.0  # Radians


def _unit_x() -> np.ndarray:
    return np.array([1.0, 0.0, 0.0])


def _unit_y() -> np.ndarray:
    return np.array([0.0, 1.0, 0.0])


def _unit_z() -> np.ndarray:
    return np.array([0.0, 0.0, 1.0])


def _identity_quat() -> np.ndarray:
    return np.array([1.0, 0.0, 0.0, 0.0])


@dataclass
class Frame:
    """Oriented sample of the track.

    The basis {tangent, normal, binormal} is orthonormal and right-handed
    (binormal = tangent x normal). ``orientation`` is the (w, x, y, z)
    quaternion of the rotation whose matrix columns are the basis vectors.
    """
    position: np.ndarray = field(default_factory=lambda: np.zeros(3))
    tangent: np.ndarray = field(default_factory=_unit_x)
    normal: np.ndarray = field(default_factory=_unit_y)
    binormal: np.ndarray = field(default_factory=_unit_z)
    s: float = 0.0
    orientation: np.ndarray = field(default_factory=_identity_quat)

    @property
    def basis(self) -> np.ndarray:
        """3x3 matrix with columns (tangent, normal, binormal)."""
        return np.column_stack((self.tangent, self.normal, self.binormal))

    def get_state(self) -> dict:
        """Get frame data as plain lists.

        Returns:
            Dictionary with frame vectors and arc length
        """
        return {
            "s": self.s,
            "position": self.position.tolist(),
            "tangent": self.tangent.tolist(),
            "normal": self.normal.tolist(),
            "binormal": self.binormal.tolist(),
            "orientation": self.orientation.tolist(),
        }
