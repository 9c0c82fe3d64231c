"""Tests for the coastersim simulation module."""

import pytest
import numpy as np

from coastersim import Car, Simulator, TrackComponent, __version__
from coastersim.car.car import CarConfig
from coastersim.simulation.simulator import SimulatorConfig
from coastersim.track.component import TrackConfig


def loop_track() -> TrackComponent:
    track = TrackComponent(TrackConfig(closed=True))
    for k in range(8):
        angle = 2.0 * np.pi * k / 8
        track.add_node([30.0 * np.cos(angle), 0.0, 30.0 * np.sin(angle)])
    return track


class TestSimulator:
    """Test simulator control."""

    def test_simulator_creation(self):
        """Test simulator initializes correctly."""
        sim = Simulator()

        assert sim.time == 0.0
        assert sim.track is None
        assert sim.cars == []
        assert not sim.is_running
        assert __version__ == "0.1.0"

    def test_start_requires_track(self):
        """Test starting without a track fails."""
        with pytest.raises(RuntimeError):
            Simulator().start()

    def test_set_track_rebuilds(self):
        """Test setting a track builds its frames."""
        sim = Simulator()
        sim.set_track(loop_track())

        assert len(sim.track.frames) > 0

    def test_step_when_stopped(self):
        """Test stepping a stopped simulation does nothing."""
        sim = Simulator()
        sim.set_track(loop_track())

        assert sim.step() == {}
        assert sim.time == 0.0

    def test_step_moves_cars(self):
        """Test stepping advances time and cars."""
        sim = Simulator()
        sim.set_track(loop_track())
        ids = sim.spawn_cars(2, spacing_m=15.0)
        sim.start()

        states = sim.step(0.05)

        assert ids == [0, 1]
        assert set(states) == {0, 1}
        assert sim.time == pytest.approx(0.05)
        assert sim.frame == 1
        assert states[0]["s"] > 0.0
        assert states[1]["s"] > 15.0

    def test_dt_is_clamped(self):
        """Test long frames are clamped to max_dt."""
        sim = Simulator(SimulatorConfig(max_dt=0.1))
        sim.set_track(loop_track())
        sim.start()
        sim.step(1.0)

        assert sim.time == pytest.approx(0.1)

    def test_max_time_stops(self):
        """Test the simulation stops at max_time."""
        sim = Simulator(SimulatorConfig(max_time=0.5))
        sim.set_track(loop_track())
        sim.start()

        steps = sim.step_until(lambda s: False, dt=0.1)

        assert not sim.is_running
        assert steps == 5

    def test_callbacks(self):
        """Test pre and post step callbacks."""
        calls = []
        sim = Simulator()
        sim.set_track(loop_track())
        sim.add_pre_step_callback(lambda s, dt: calls.append(("pre", dt)))
        sim.add_post_step_callback(lambda s, dt: calls.append(("post", dt)))
        sim.start()
        sim.step(0.02)

        assert calls == [("pre", 0.02), ("post", 0.02)]

    def test_pause(self):
        """Test pausing stops time."""
        sim = Simulator()
        sim.set_track(loop_track())
        sim.start()
        sim.pause()
        sim.step(0.05)
        assert sim.time == 0.0

        sim.resume()
        sim.step(0.05)
        assert sim.time == pytest.approx(0.05)


class TestTrackEditing:
    """Test track rebuilds during a simulation."""

    def test_rebuild_track_resyncs_cars(self):
        """Test cars follow a shortened track."""
        sim = Simulator()
        sim.set_track(loop_track())
        car = Car(CarConfig(initial_speed=0.0, mu_roll=0.0, k_air=0.0))
        car.state.s = 150.0
        sim.add_car(car)

        for k in range(8):
            angle = 2.0 * np.pi * k / 8
            sim.track.move_node(k, [10.0 * np.cos(angle), 0.0, 10.0 * np.sin(angle)])
        assert sim.rebuild_track()

        assert 0.0 <= car.s < sim.track.total_length
        assert np.allclose(car.position, sim.track.frame_at_s(car.s).position, atol=1e-3)

    def test_rebuild_without_track(self):
        """Test rebuilding without a track fails."""
        with pytest.raises(RuntimeError):
            Simulator().rebuild_track()


class TestStateAndReset:
    """Test state reporting and reset."""

    def test_get_state(self):
        """Test state dictionary."""
        sim = Simulator()
        sim.set_track(loop_track())
        sim.spawn_cars(1)
        state = sim.get_state()

        assert state["time"] == 0.0
        assert state["track"]["closed"]
        assert 0 in state["cars"]

    def test_get_car(self):
        """Test car lookup by ID."""
        sim = Simulator()
        sim.set_track(loop_track())
        sim.spawn_cars(3)

        assert sim.get_car(2).car_id == 2
        assert sim.get_car(9) is None

    def test_reset_keep_cars(self):
        """Test reset returns cars to the start."""
        sim = Simulator()
        sim.set_track(loop_track())
        sim.spawn_cars(2, spacing_m=5.0)
        sim.start()
        sim.step(0.1)

        sim.reset(keep_cars=True)

        assert sim.time == 0.0
        assert all(car.s == 0.0 for car in sim.cars)
        assert all(car.v == car.config.initial_speed for car in sim.cars)

    def test_reset_removes_cars(self):
        """Test reset clears cars by default."""
        sim = Simulator()
        sim.set_track(loop_track())
        sim.spawn_cars(2)
        sim.reset()

        assert sim.cars == []
