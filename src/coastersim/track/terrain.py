"""
Terrain - Height queries used to place authored nodes on the ground.

Terrain generation lives outside the track engine; anything exposing
``sample_height_bilinear(x, z)`` can be used.
"""

from typing import Protocol
import numpy as np


class HeightSampler(Protocol):
    """Ground height provider."""

    def sample_height_bilinear(self, x: float, z: float) -> float:
        ...


class HeightField:
    """Regular height grid with bilinear sampling.

    Heights are indexed ``heights[z, x]`` with one sample per ``cell_size``
    meters. Queries outside the grid clamp to the border.
    """

    def __init__(self, heights: np.ndarray, cell_size: float = 1.0):
        heights = np.asarray(heights, dtype=float)
        if heights.ndim != 2 or heights.size == 0:
            raise ValueError("heights must be a non-empty 2D array")
        if cell_size <= 0.0:
            raise ValueError("cell_size must be positive")
        self.heights = heights
        self.cell_size = cell_size

    @property
    def width(self) -> int:
        return self.heights.shape[1]

    @property
    def depth(self) -> int:
        return self.heights.shape[0]

    def _height(self, ix: int, iz: int) -> float:
        ix = min(max(ix, 0), self.width - 1)
        iz = min(max(iz, 0), self.depth - 1)
        return float(self.heights[iz, ix])

    def sample_height_bilinear(self, x: float, z: float) -> float:
        """Interpolated ground height at a world position.

        Args:
            x: World X coordinate
            z: World Z coordinate

        Returns:
            Height (Y) in meters
        """
        gx = x / self.cell_size
        gz = z / self.cell_size
        ix = int(np.floor(gx))
        iz = int(np.floor(gz))
        fx = gx - ix
        fz = gz - iz

        h00 = self._height(ix, iz)
        h10 = self._height(ix + 1, iz)
        h01 = self._height(ix, iz + 1)
        h11 = self._height(ix + 1, iz + 1)

        hx0 = h00 + (h10 - h00) * fx
        hx1 = h01 + (h11 - h01) * fx
        return hx0 + (hx1 - hx0) * fz


def snap_to_terrain(position, terrain: HeightSampler, clearance: float = 0.5) -> np.ndarray:
    """Place a position at terrain height plus clearance.

    Args:
        position: World position [x, y, z]
        terrain: Height provider
        clearance: Distance kept above the ground

    Returns:
        New position with Y replaced
    """
    snapped = np.array(position, dtype=float)
    snapped[1] = terrain.sample_height_bilinear(snapped[0], snapped[2]) + clearance
    return snapped
