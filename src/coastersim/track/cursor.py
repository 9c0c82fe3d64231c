"""
Frame cursor - Fast arc-length lookup into a prebuilt frame sequence.

Caches the last bracketing frame index so that per-tick queries with slowly
increasing s cost O(1) amortized.
"""

from dataclasses import dataclass, field
from typing import Sequence
import numpy as np

from coastersim.track.rotation import quat_slerp, quat_to_matrix
from coastersim.track.types import Frame


@dataclass
class Pose:
    """Interpolated position and orientation."""
    position: np.ndarray = field(default_factory=lambda: np.zeros(3))
    tangent: np.ndarray = field(default_factory=lambda: np.array([1.0, 0.0, 0.0]))
    normal: np.ndarray = field(default_factory=lambda: np.array([0.0, 1.0, 0.0]))
    binormal: np.ndarray = field(default_factory=lambda: np.array([0.0, 0.0, 1.0]))
    orientation: np.ndarray = field(default_factory=lambda: np.array([1.0, 0.0, 0.0, 0.0]))

    @property
    def basis(self) -> np.ndarray:
        """3x3 matrix with columns (tangent, normal, binormal)."""
        return np.column_stack((self.tangent, self.normal, self.binormal))


class FrameCursor:
    """Stateful sampler over a frame sequence.

    The cursor does not own the frames. Call ``reset`` whenever the owning
    track rebuilds, otherwise the cached index and sequence go stale.

    Usage:
        cursor = FrameCursor(track.frames, track.is_closed, track.total_length)
        pose = cursor.sample(car_s)
    """

    def __init__(
        self,
        frames: Sequence[Frame] | None = None,
        closed: bool = False,
        length: float = 0.0,
    ):
        self._frames: Sequence[Frame] = frames or []
        self._closed = closed
        self._length = length
        self._index = 0

    def reset(self, frames: Sequence[Frame] | None, closed: bool, length: float) -> None:
        """Point the cursor at a (re)built frame sequence."""
        self._frames = frames or []
        self._closed = closed
        self._length = length
        self._index = 0

    @property
    def index(self) -> int:
        """Index of the frame at or before the last query."""
        return self._index

    def _wrap(self, s: float) -> float:
        length = self._length
        if length <= 0.0:
            return 0.0
        if self._closed:
            s = s % length
            return 0.0 if s >= length else s
        return min(max(s, 0.0), length)

    def sample(self, s_query: float) -> Pose:
        """Interpolated pose at an arc length.

        Args:
            s_query: Arc length (wrapped on closed paths, clamped on open ones)

        Returns:
            Pose with lerped position and slerped orientation
        """
        frames = self._frames
        if not frames:
            return Pose()

        s = self._wrap(float(s_query))
        last = len(frames) - 1
        i = min(self._index, last)

        # A closed path wrapping back to the start restarts the scan
        if self._closed and s < frames[i].s - 0.5 * self._length:
            i = 0

        while i < last and s > frames[i + 1].s:
            i += 1
        while i > 0 and s < frames[i].s:
            i -= 1
        self._index = i

        a = frames[i]
        if i == last:
            return Pose(a.position.copy(), a.tangent.copy(), a.normal.copy(),
                        a.binormal.copy(), a.orientation.copy())
        b = frames[i + 1]

        denom = max(b.s - a.s, 1e-6)
        t = min(max((s - a.s) / denom, 0.0), 1.0)

        q = quat_slerp(a.orientation, b.orientation, t)
        rotation = quat_to_matrix(q)
        return Pose(
            position=a.position + (b.position - a.position) * t,
            tangent=rotation[:, 0],
            normal=rotation[:, 1],
            binormal=rotation[:, 2],
            orientation=q,
        )
