"""
Simulator - Main simulation loop and controller.

Provides:
- High-level simulation control
- Time stepping
- Multi-car management on one track
- Track rebuild propagation to cars
"""

from dataclasses import dataclass
import logging
import time
from typing import Any, Callable, Dict, List, Optional

from coastersim.car.car import Car, CarConfig
from coastersim.track.component import TrackComponent

logger = logging.getLogger(__name__)


@dataclass
class SimulatorConfig:
    """Simulator configuration."""
    # Time stepping
    fixed_dt: float = 1.0 / 60.0     # Default frame time
    max_dt: float = 0.1              # Longer frames are clamped
    real_time: bool = False          # Run in real-time or as fast as possible

    # Simulation limits
    max_time: float = 0.0            # Stop after this many seconds (0 = unlimited)


class Simulator:
    """Coaster simulator.

    Owns a track and the cars riding it. Edits to the track go through
    ``rebuild_track()`` so every car's cursor is re-synced.

    Usage:
        sim = Simulator()
        sim.set_track(TrackGenerator.demo_layout())
        sim.spawn_cars(3, spacing_m=20.0)
        sim.start()

        while sim.is_running:
            states = sim.step()
    """

    def __init__(self, config: SimulatorConfig | None = None):
        """Initialize simulator.

        Args:
            config: Simulator configuration. Uses defaults if None.
        """
        self.config = config or SimulatorConfig()

        self._track: Optional[TrackComponent] = None
        self._cars: List[Car] = []
        self._time = 0.0
        self._frame = 0

        self._running: bool = False
        self._paused: bool = False

        self._pre_step_callbacks: List[Callable] = []
        self._post_step_callbacks: List[Callable] = []

        self._last_real_time: float = 0.0

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def is_paused(self) -> bool:
        return self._paused

    @property
    def time(self) -> float:
        """Current simulation time."""
        return self._time

    @property
    def frame(self) -> int:
        return self._frame

    @property
    def track(self) -> Optional[TrackComponent]:
        return self._track

    @property
    def cars(self) -> List[Car]:
        return list(self._cars)

    def set_track(self, track: TrackComponent) -> None:
        """Set the track, rebuilding it if needed.

        Args:
            track: Track to ride on
        """
        self._track = track
        self.rebuild_track()

    def rebuild_track(self) -> bool:
        """Rebuild the track and re-sync all cars.

        Returns:
            True if the track has frames
        """
        if self._track is None:
            raise RuntimeError("No track set")

        ok = self._track.rebuild()
        for car in self._cars:
            car.on_track_rebuilt(self._track)
        logger.info(
            f"Track rebuilt: {len(self._track.frames)} frames, "
            f"{self._track.total_length:.1f} m, {len(self._cars)} cars"
        )
        return ok

    def add_car(self, car: Car) -> int:
        """Add a car to the simulation.

        Args:
            car: Car to add

        Returns:
            Car ID
        """
        self._cars.append(car)
        if self._track is not None:
            car.bind_track(self._track)
        return car.car_id

    def spawn_cars(
        self,
        count: int,
        spacing_m: float = 10.0,
        config: CarConfig | None = None,
    ) -> List[int]:
        """Spawn cars behind each other.

        Args:
            count: Number of cars to spawn
            spacing_m: Arc-length gap between cars
            config: Configuration shared by the new cars

        Returns:
            List of car IDs
        """
        first_id = max((car.car_id for car in self._cars), default=-1) + 1
        ids = []
        for i in range(count):
            car = Car(config, car_id=first_id + i)
            car.state.s = i * spacing_m
            ids.append(self.add_car(car))
        return ids

    def get_car(self, car_id: int) -> Optional[Car]:
        """Get car by ID."""
        for car in self._cars:
            if car.car_id == car_id:
                return car
        return None

    def add_pre_step_callback(self, callback: Callable) -> None:
        """Add callback called before each step.

        Args:
            callback: Function taking (simulator, dt) arguments
        """
        self._pre_step_callbacks.append(callback)

    def add_post_step_callback(self, callback: Callable) -> None:
        """Add callback called after each step.

        Args:
            callback: Function taking (simulator, dt) arguments
        """
        self._post_step_callbacks.append(callback)

    def start(self) -> None:
        """Start the simulation."""
        if self._track is None:
            raise RuntimeError("No track set")

        self._running = True
        self._paused = False
        self._last_real_time = time.time()

    def stop(self) -> None:
        """Stop the simulation."""
        self._running = False

    def pause(self) -> None:
        """Pause the simulation."""
        self._paused = True

    def resume(self) -> None:
        """Resume the simulation."""
        self._paused = False
        self._last_real_time = time.time()

    def step(self, dt: float | None = None) -> Dict[int, Dict[str, Any]]:
        """Advance simulation by one frame.

        Args:
            dt: Frame time (uses fixed_dt if None, clamped to max_dt)

        Returns:
            Dictionary mapping car_id to car state
        """
        if not self._running or self._paused:
            return {}

        dt = self.config.fixed_dt if dt is None else dt
        if dt > self.config.max_dt:
            logger.debug(f"Clamping frame time {dt:.3f} s to {self.config.max_dt} s")
            dt = self.config.max_dt

        if self.config.real_time:
            elapsed = time.time() - self._last_real_time
            if elapsed < dt:
                time.sleep(dt - elapsed)
            self._last_real_time = time.time()

        for callback in self._pre_step_callbacks:
            callback(self, dt)

        states = {}
        for car in self._cars:
            car.update(dt, self._track)
            states[car.car_id] = car.get_state()

        self._time += dt
        self._frame += 1

        if self.config.max_time > 0.0 and self._time >= self.config.max_time:
            self.stop()

        for callback in self._post_step_callbacks:
            callback(self, dt)

        return states

    def step_until(
        self,
        condition: Callable[["Simulator"], bool],
        dt: float | None = None,
        max_steps: int = 100000,
    ) -> int:
        """Step simulation until condition is met.

        Args:
            condition: Function returning True when should stop
            dt: Frame time per step
            max_steps: Maximum steps to take

        Returns:
            Number of steps taken
        """
        steps = 0
        while self._running and steps < max_steps:
            if condition(self):
                break
            self.step(dt)
            steps += 1
        return steps

    def reset(self, keep_cars: bool = False) -> None:
        """Reset time and optionally remove cars.

        Args:
            keep_cars: Keep current cars (moved back to the track start)
        """
        if keep_cars:
            for car in self._cars:
                car.state.s = 0.0
                car.kick(car.config.initial_speed)
                if self._track is not None:
                    car.bind_track(self._track)
        else:
            self._cars.clear()

        self._time = 0.0
        self._frame = 0
        self._running = False
        self._paused = False

    def get_state(self) -> Dict[str, Any]:
        """Get complete simulation state.

        Returns:
            Dictionary containing simulation state
        """
        return {
            "config": {
                "fixed_dt": self.config.fixed_dt,
                "max_dt": self.config.max_dt,
                "real_time": self.config.real_time,
            },
            "time": self._time,
            "frame": self._frame,
            "running": self._running,
            "paused": self._paused,
            "cars": {car.car_id: car.get_state() for car in self._cars},
            "track": self._track.get_state() if self._track else None,
        }
