"""
Car - Coaster train integrated along the track's arc length.

Per fixed substep:
- Gravity projected on the track tangent
- Quadratic air drag
- Rolling friction with static hold
- Optional external acceleration (lift chains, boosters)
- Optional minimum-speed assist
"""

from dataclasses import dataclass
import logging
from typing import Any, Callable, Dict, Optional, Tuple
import numpy as np

from coastersim.track.component import TrackComponent
from coastersim.track.cursor import FrameCursor
from coastersim.track.rotation import Y_AXIS, normalize

logger = logging.getLogger(__name__)

TIME_EPS = 1e-9


@dataclass
class CarConfig:
    """Car physics configuration."""
    mass_kg: float = 400.0
    gravity: float = 9.81
    mu_roll: float = 0.002             # Rolling friction coefficient
    k_air: float = 0.02                # Drag coefficient (N per (m/s)^2)
    v_max: float = 550.0               # Speed limit (m/s)
    v_stop_eps: float = 0.02           # Below this the car may come to rest
    up: Tuple[float, float, float] = (0.0, 1.0, 0.0)

    # Time stepping
    substep: float = 1.0 / 240.0
    max_substeps: int = 240            # Per update call

    # Minimum-speed assist
    min_speed_enabled: bool = False
    min_speed: float = 20.0
    min_speed_end_margin_m: float = 5.0  # No assist this close to open ends

    # Facing direction hysteresis (m/s, applied to -v)
    backwards_on: float = 0.12
    backwards_off: float = 0.08

    initial_speed: float = 15.0


@dataclass
class CarState:
    """Current position along the track."""
    s: float = 0.0             # Arc length (m)
    v: float = 0.0             # Signed speed along the tangent (m/s)


class Car:
    """Single coaster car riding a TrackComponent.

    The car samples the track's frames through a cursor. The cursor is reset
    on ``bind_track``/``on_track_rebuilt``, and automatically when the
    track's frame list is replaced by a rebuild.

    Usage:
        car = Car()
        car.bind_track(track)
        car.kick(30.0)
        car.update(1.0 / 60.0, track)
        pos = car.position
    """

    def __init__(self, config: CarConfig | None = None, car_id: int = 0):
        """Initialize car with optional configuration.

        Args:
            config: Car configuration. Uses defaults if None.
            car_id: Unique identifier for this car instance
        """
        self.config = config or CarConfig()
        self.car_id = car_id

        self.state = CarState(v=self.config.initial_speed)
        self.extra_accel: Optional[Callable[[float, float], float]] = None

        self._up = normalize(np.asarray(self.config.up, dtype=float), Y_AXIS)
        self._cursor = FrameCursor()
        self._bound_frames = None
        self._accumulator = 0.0

        self._position = np.zeros(3)
        self._orientation = np.eye(3)
        self._backwards = False

    @property
    def s(self) -> float:
        return self.state.s

    @property
    def v(self) -> float:
        return self.state.v

    @property
    def position(self) -> np.ndarray:
        """World position from the last update."""
        return self._position.copy()

    @property
    def orientation(self) -> np.ndarray:
        """3x3 matrix with columns (forward, normal, binormal)."""
        return self._orientation.copy()

    @property
    def is_backwards(self) -> bool:
        """Whether the car is rolling backwards (with hysteresis)."""
        return self._backwards

    def kick(self, v0: float) -> None:
        """Set speed along the track in m/s."""
        self.state.v = float(v0)

    def bind_track(self, track: TrackComponent) -> None:
        """Attach to a track and sample the starting pose."""
        self.on_track_rebuilt(track)
        self._accumulator = 0.0

    def on_track_rebuilt(self, track: TrackComponent) -> None:
        """Re-sync with a rebuilt track (cursor reset, s re-wrapped)."""
        self._cursor.reset(track.frames, track.is_closed, track.total_length)
        self._bound_frames = track.frames
        self.state.s = self._wrap(self.state.s, track)
        self._update_pose(track)
        logger.debug(f"Car {self.car_id} synced to track ({len(track.frames)} frames)")

    def _wrap(self, s: float, track: TrackComponent) -> float:
        length = track.total_length
        if length <= 0.0:
            return 0.0
        if track.is_closed:
            s = s % length
            return 0.0 if s >= length else s
        return min(max(s, 0.0), length)

    def update(self, dt: float, track: TrackComponent) -> None:
        """Advance by dt seconds in fixed substeps.

        Args:
            dt: Frame time in seconds
            track: Track the car rides on
        """
        if dt <= 0.0:
            return
        if track.frames is not self._bound_frames:
            self.on_track_rebuilt(track)

        h = self.config.substep
        self._accumulator += dt
        steps = 0
        while self._accumulator >= h - TIME_EPS and steps < self.config.max_substeps:
            self._substep(h, track)
            self._accumulator -= h
            steps += 1

        if self._accumulator >= h - TIME_EPS:
            logger.debug(f"Car {self.car_id} dropped {self._accumulator:.4f} s after {steps} substeps")
            self._accumulator = 0.0

        self._update_pose(track)

    def _substep(self, h: float, track: TrackComponent) -> None:
        cfg = self.config
        length = track.total_length
        if length <= 0.0 or not track.frames:
            return

        s = self.state.s
        v = self.state.v
        pose = self._cursor.sample(s)

        a_drive = -cfg.gravity * float(np.dot(pose.tangent, self._up))
        if self.extra_accel is not None:
            a_drive += float(self.extra_accel(s, v))

        a_drag = -(cfg.k_air / cfg.mass_kg) * v * abs(v)

        # Rolling friction: kinetic while moving, static hold at rest
        ceiling = cfg.mu_roll * cfg.gravity
        if abs(v) > cfg.v_stop_eps:
            a_fric = -ceiling * np.sign(v)
        elif abs(a_drive) <= ceiling:
            a_fric = -a_drive
        else:
            a_fric = -ceiling * np.sign(a_drive)

        v += (a_drive + a_drag + a_fric) * h
        v = min(max(v, -cfg.v_max), cfg.v_max)
        if abs(v) < cfg.v_stop_eps and abs(a_drive) <= ceiling:
            v = 0.0

        # Assist only tops up forward motion; a car rolling back is left alone
        if cfg.min_speed_enabled and 0.0 <= v < cfg.min_speed and self._assist_allowed(s, length, track.is_closed):
            v = cfg.min_speed

        s += v * h
        if track.is_closed:
            s = s % length
            if s >= length:
                s = 0.0
        elif s < 0.0:
            s, v = 0.0, 0.0
        elif s > length:
            s, v = length, 0.0

        self.state.s = s
        self.state.v = v

        if not self._backwards and v < -cfg.backwards_on:
            self._backwards = True
        elif self._backwards and v > -cfg.backwards_off:
            self._backwards = False

    def _assist_allowed(self, s: float, length: float, closed: bool) -> bool:
        if closed:
            return True
        margin = self.config.min_speed_end_margin_m
        return margin < s < length - margin

    def _update_pose(self, track: TrackComponent) -> None:
        if track.frames:
            pose = self._cursor.sample(self.state.s)
            position, tangent, normal, binormal = pose.position, pose.tangent, pose.normal, pose.binormal
        else:
            frame = track.frame_at_s(self.state.s)
            position, tangent, normal, binormal = frame.position, frame.tangent, frame.normal, frame.binormal

        if self._backwards:
            tangent, binormal = -tangent, -binormal
        self._position = np.array(position, dtype=float)
        self._orientation = np.column_stack((tangent, normal, binormal))

    def get_state(self) -> Dict[str, Any]:
        """Get car state.

        Returns:
            Dictionary with car state
        """
        return {
            "car_id": self.car_id,
            "s": self.state.s,
            "v": self.state.v,
            "speed_kmh": abs(self.state.v) * 3.6,
            "position": self._position.tolist(),
            "backwards": self._backwards,
        }
