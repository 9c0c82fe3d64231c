"""
Track generator - Procedural and preset coaster layouts.

Generates:
- Seeded closed or open node loops with radial and height jitter
- Optional terrain snapping and a start station
- The fixed demo coaster layout
"""

from dataclasses import dataclass
import logging
from typing import List
import numpy as np

from coastersim.track.component import TrackComponent, TrackConfig
from coastersim.track.terrain import HeightSampler

logger = logging.getLogger(__name__)


# Demo coaster: lift hill, drop, helix and return run
DEMO_LAYOUT: List[tuple] = [
    (110.0, 22.0, 29.0),
    (62.0, 18.0, 20.0),
    (56.0, 18.0, 21.0),
    (38.0, 18.0, 31.0),
    (43.0, 18.0, 45.0),
    (45.0, 20.0, 50.0),
    (88.0, 12.0, 55.0),
    (108.0, 14.0, 50.0),
    (132.0, 16.0, 47.0),
    (157.0, 22.0, 47.0),
    (176.0, 38.0, 49.0),
    (196.0, 58.0, 53.0),
    (209.0, 65.0, 67.0),
    (224.0, 70.0, 90.0),
    (224.0, 70.0, 93.0),
    (224.0, 63.0, 103.0),
    (220.0, 51.0, 112.0),
    (215.0, 29.0, 120.0),
    (206.0, 35.0, 121.0),
    (196.0, 39.0, 101.0),
    (199.0, 35.0, 95.0),
    (202.0, 29.0, 92.0),
    (232.0, 11.0, 87.0),
    (239.0, 15.0, 82.0),
    (236.0, 21.0, 62.0),
    (218.0, 24.0, 41.0),
    (182.0, 85.0, 37.0),
    (164.0, 85.0, 35.0),
    (157.0, 72.0, 34.0),
    (147.0, 29.0, 33.0),
    (137.0, 34.0, 32.0),
]


@dataclass
class GeneratorConfig:
    """Configuration for procedural track generation."""
    # Layout
    num_nodes: int = 12
    radius_m: float = 60.0
    aspect: float = 0.6               # Z radius relative to X radius
    radial_jitter: float = 0.2        # Fraction of the radius
    base_height_m: float = 20.0
    height_jitter_m: float = 12.0
    closed: bool = True

    # Banking
    max_roll_rad: float = 0.6

    # Start station on node 0 (0 = none)
    station_length_m: float = 0.0

    # Terrain
    clearance_m: float = 0.5

    # Frame spacing of generated tracks
    ds: float = 0.5

    # Random seed (None for random)
    seed: int | None = None


class TrackGenerator:
    """Procedural coaster track generator.

    Places nodes around a jittered ellipse, banks them into the turn and
    optionally drapes them over terrain.

    Usage:
        generator = TrackGenerator(GeneratorConfig(seed=7))
        track = generator.generate()
    """

    def __init__(self, config: GeneratorConfig | None = None):
        """Initialize generator with optional configuration.

        Args:
            config: Generator configuration. Uses defaults if None.
        """
        self.config = config or GeneratorConfig()
        self._rng = np.random.default_rng(self.config.seed)

    def generate(self, terrain: HeightSampler | None = None) -> TrackComponent:
        """Generate a new random track.

        Args:
            terrain: Optional ground; node heights become clearance above it

        Returns:
            Rebuilt TrackComponent
        """
        cfg = self.config
        count = max(cfg.num_nodes, 4)
        if count != cfg.num_nodes:
            logger.warning(f"num_nodes={cfg.num_nodes} is too small, using {count}")

        track = TrackComponent(TrackConfig(ds=cfg.ds))

        angles = np.linspace(0.0, 2.0 * np.pi, count, endpoint=False)
        radii = cfg.radius_m * (1.0 + self._rng.uniform(-cfg.radial_jitter, cfg.radial_jitter, count))
        heights = cfg.base_height_m + self._rng.uniform(-cfg.height_jitter_m, cfg.height_jitter_m, count)

        for angle, radius, height in zip(angles, radii, heights):
            position = (
                radius * np.cos(angle),
                height,
                radius * cfg.aspect * np.sin(angle),
            )
            roll = float(self._rng.uniform(0.0, cfg.max_roll_rad))
            track.add_node(position, roll=roll, terrain=terrain, clearance=cfg.clearance_m)

        if cfg.station_length_m > 0.0:
            track.set_node_station(0, start=True, length_m=cfg.station_length_m)
            track.set_node_roll(0, 0.0)

        if cfg.closed:
            track.set_closed(True)
        track.rebuild()

        logger.info(f"Generated track: {track.node_count} nodes, {track.total_length:.1f} m")
        return track

    def generate_with_seed(self, seed: int, terrain: HeightSampler | None = None) -> TrackComponent:
        """Generate a track with a specific seed.

        Args:
            seed: Random seed for reproducibility
            terrain: Optional ground to snap onto

        Returns:
            Rebuilt TrackComponent
        """
        self._rng = np.random.default_rng(seed)
        return self.generate(terrain)

    @staticmethod
    def demo_layout(ds: float = 0.05, closed: bool = True) -> TrackComponent:
        """Build the demo coaster.

        Args:
            ds: Frame spacing in meters
            closed: Whether to close the loop

        Returns:
            Rebuilt TrackComponent
        """
        track = TrackComponent(TrackConfig(ds=ds))
        for position in DEMO_LAYOUT:
            track.add_node(position)
        track.set_closed(closed)
        track.rebuild()
        return track
