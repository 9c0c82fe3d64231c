"""Tests for the coastersim car module."""

import pytest
import numpy as np

from coastersim.car.car import Car, CarConfig
from coastersim.track.component import TrackComponent, TrackConfig


def make_track(points, closed: bool = False, ds: float = 0.25) -> TrackComponent:
    track = TrackComponent(TrackConfig(closed=closed, ds=ds))
    for p in points:
        track.add_node(p)
    track.rebuild()
    return track


def flat_track(count: int = 8) -> TrackComponent:
    return make_track([[i * 5.0, 0.0, 0.0] for i in range(count)])


def slope_track(rise: float, count: int = 10) -> TrackComponent:
    return make_track([[i * 2.0, i * rise, 0.0] for i in range(count)])


def square_loop() -> TrackComponent:
    return make_track([[0, 0, 0], [10, 0, 0], [10, 0, 10], [0, 0, 10]], closed=True)


FRICTIONLESS = dict(mu_roll=0.0, k_air=0.0)


class TestCarBasics:
    """Test car setup and pose."""

    def test_defaults(self):
        """Test default physical constants."""
        car = Car()
        assert car.config.mass_kg == 400.0
        assert car.config.substep == pytest.approx(1.0 / 240.0)
        assert car.v == 15.0
        assert car.s == 0.0

    def test_kick(self):
        """Test kick sets the speed."""
        car = Car()
        car.kick(100.0)
        assert car.v == 100.0

    def test_bind_track_sets_pose(self):
        """Test binding samples the starting pose."""
        track = flat_track()
        car = Car()
        car.state.s = 4.0
        car.bind_track(track)

        assert np.allclose(car.position, [9.0, 0.0, 0.0], atol=1e-6)
        assert np.allclose(car.orientation, np.eye(3), atol=1e-6)

    def test_bind_track_rewraps_s(self):
        """Test s is clamped onto an open track."""
        track = flat_track()
        car = Car()
        car.state.s = 1000.0
        car.bind_track(track)

        assert car.s == pytest.approx(track.total_length)

    def test_update_without_frames(self):
        """Test a car on an unbuilt track stays put."""
        track = TrackComponent()
        track.add_node([0.0, 0.0, 0.0])
        car = Car()
        car.bind_track(track)
        car.update(0.1, track)

        assert car.s == 0.0
        assert car.v == 15.0


class TestCarPhysics:
    """Test integration along the track."""

    def test_rest_on_flat_frictionless_track(self):
        """Test a car at rest on a level track stays at rest."""
        track = flat_track()
        car = Car(CarConfig(initial_speed=0.0, **FRICTIONLESS))
        car.bind_track(track)

        for _ in range(120):
            car.update(1.0 / 60.0, track)
            assert car.v == 0.0
        assert car.s == 0.0

    def test_constant_speed_without_losses(self):
        """Test a frictionless car coasts at constant speed."""
        track = flat_track()
        car = Car(CarConfig(initial_speed=5.0, **FRICTIONLESS))
        car.bind_track(track)
        car.update(1.0, track)

        assert car.v == pytest.approx(5.0)
        assert car.s == pytest.approx(5.0, abs=0.03)

    def test_losses_slow_the_car(self):
        """Test drag and rolling friction reduce speed."""
        track = flat_track()
        car = Car(CarConfig(initial_speed=10.0))
        car.bind_track(track)
        car.update(1.0, track)

        assert car.v < 10.0
        expected = 10.0 - (0.002 * 9.81 + 0.02 / 400.0 * 100.0)
        assert car.v == pytest.approx(expected, abs=1e-3)

    def test_downhill_accelerates(self):
        """Test gravity pulls the car down a slope."""
        track = slope_track(-1.0)
        car = Car(CarConfig(initial_speed=0.0))
        car.bind_track(track)
        car.update(0.5, track)

        slope_accel = 9.81 / np.sqrt(5.0)
        assert car.v > 0.0
        assert car.v == pytest.approx(slope_accel * 0.5, rel=0.02)

    def test_static_friction_holds(self):
        """Test a gentle slope below the friction ceiling holds the car."""
        track = make_track([[i * 10.0, -i * 0.01, 0.0] for i in range(6)])
        car = Car(CarConfig(initial_speed=0.0))
        car.bind_track(track)
        car.state.s = 10.0

        for _ in range(60):
            car.update(1.0 / 60.0, track)
        assert car.v == 0.0
        assert car.s == 10.0

    def test_speed_limit(self):
        """Test speed is clamped to v_max."""
        track = flat_track()
        car = Car(CarConfig(initial_speed=0.0, v_max=30.0))
        car.extra_accel = lambda s, v: 1000.0
        car.bind_track(track)
        car.update(0.2, track)

        assert car.v == pytest.approx(30.0)

    def test_extra_accel_receives_state(self):
        """Test the external acceleration hook sees s and v."""
        seen = []

        def booster(s, v):
            seen.append((s, v))
            return 0.0

        track = flat_track()
        car = Car(CarConfig(initial_speed=3.0, **FRICTIONLESS))
        car.extra_accel = booster
        car.bind_track(track)
        car.update(1.0 / 60.0, track)

        assert len(seen) == 4
        assert seen[0] == (0.0, 3.0)

    def test_substep_accumulator(self):
        """Test short frames accumulate into whole substeps."""
        track = flat_track()
        car = Car(CarConfig(initial_speed=2.4, **FRICTIONLESS))
        car.bind_track(track)

        car.update(0.002, track)
        assert car.s == 0.0

        car.update(0.003, track)
        assert car.s == pytest.approx(2.4 / 240.0)

    def test_max_substeps_drops_time(self):
        """Test long frames are capped."""
        track = flat_track()
        car = Car(CarConfig(initial_speed=1.0, max_substeps=10, **FRICTIONLESS))
        car.bind_track(track)
        car.update(1.0, track)

        assert car.s == pytest.approx(10.0 / 240.0)


class TestTrackEnds:
    """Test open-end stops and loop wrapping."""

    def test_open_end_hard_stop(self):
        """Test the car stops at the end of an open track."""
        track = flat_track()
        car = Car(CarConfig(initial_speed=20.0, **FRICTIONLESS))
        car.bind_track(track)

        for _ in range(60):
            car.update(0.1, track)

        assert car.s == pytest.approx(track.total_length)
        assert car.v == 0.0

    def test_rolls_back_and_stops_at_start(self):
        """Test a car failing a climb rolls back to the start."""
        track = slope_track(1.0)
        car = Car(CarConfig(initial_speed=3.0))
        car.bind_track(track)

        for _ in range(300):
            car.update(1.0 / 60.0, track)

        assert car.s == 0.0
        assert car.v == 0.0

    def test_closed_loop_wraps(self):
        """Test s stays in [0, L) while circling a loop."""
        track = square_loop()
        length = track.total_length
        car = Car(CarConfig(initial_speed=10.0))
        car.bind_track(track)

        wrapped = False
        previous = car.s
        for _ in range(2000):
            car.update(1.0 / 60.0, track)
            assert 0.0 <= car.s < length
            if car.s < previous:
                wrapped = True
                break
            previous = car.s

        assert wrapped
        assert car.v > 9.0

    def test_min_speed_assist(self):
        """Test the assist keeps the car at the minimum speed."""
        track = square_loop()
        car = Car(CarConfig(initial_speed=0.0, min_speed_enabled=True, min_speed=20.0))
        car.bind_track(track)
        car.update(0.5, track)

        assert car.v == pytest.approx(20.0)
        assert car.s > 0.0

    def test_min_speed_leaves_backwards_car(self):
        """Test the assist does not reverse a car rolling backwards."""
        track = square_loop()
        car = Car(CarConfig(initial_speed=-5.0, min_speed_enabled=True, **FRICTIONLESS))
        car.bind_track(track)
        car.update(1.0 / 240.0, track)

        assert car.v == pytest.approx(-5.0)
        assert car.s > track.total_length - 0.1

    def test_min_speed_not_near_open_ends(self):
        """Test the assist is off near open ends."""
        track = flat_track()
        car = Car(CarConfig(initial_speed=0.0, min_speed_enabled=True, **FRICTIONLESS))
        car.bind_track(track)
        car.update(0.5, track)

        assert car.v == 0.0


class TestOrientation:
    """Test car orientation output."""

    def test_orientation_matches_frame(self):
        """Test orientation columns are the frame basis."""
        track = square_loop()
        car = Car(CarConfig(initial_speed=7.0))
        car.bind_track(track)
        car.update(0.75, track)

        frame = track.frame_at_s(car.s)
        assert np.allclose(car.position, frame.position, atol=1e-3)
        assert np.allclose(car.orientation[:, 0], frame.tangent, atol=1e-3)
        assert np.allclose(car.orientation[:, 1], frame.normal, atol=1e-3)

    def test_backwards_flip(self):
        """Test rolling backwards flips the forward axis."""
        track = slope_track(1.0)
        car = Car(CarConfig(initial_speed=0.0))
        car.state.s = 10.0
        car.bind_track(track)
        car.update(0.2, track)

        assert car.v < -0.12
        assert car.is_backwards
        tangent = np.array([2.0, 1.0, 0.0]) / np.sqrt(5.0)
        assert np.allclose(car.orientation[:, 0], -tangent, atol=1e-6)
        assert np.linalg.det(car.orientation) > 0.0

    def test_backwards_hysteresis(self):
        """Test the facing flag only clears above the off threshold."""
        track = flat_track()
        car = Car(CarConfig(initial_speed=-1.0, **FRICTIONLESS))
        car.state.s = 10.0
        car.bind_track(track)
        car.update(1.0 / 240.0, track)
        assert car.is_backwards

        car.kick(-0.1)
        car.update(1.0 / 240.0, track)
        assert car.is_backwards

        car.kick(-0.05)
        car.update(1.0 / 240.0, track)
        assert not car.is_backwards


class TestTrackRebuilds:
    """Test car behaviour across track rebuilds."""

    def test_rebuild_is_picked_up(self):
        """Test the car re-syncs when the frame list is replaced."""
        track = flat_track()
        car = Car(CarConfig(initial_speed=0.0, **FRICTIONLESS))
        car.state.s = 20.0
        car.bind_track(track)

        for i in range(track.node_count):
            track.move_node(i, [i * 2.0, 0.0, 0.0])
        track.rebuild()
        car.update(1.0 / 60.0, track)

        assert car.s == pytest.approx(track.total_length)
        assert np.allclose(car.position, track.frames[-1].position, atol=1e-6)

    def test_get_state(self):
        """Test state dictionary."""
        car = Car(CarConfig(initial_speed=10.0), car_id=3)
        state = car.get_state()

        assert state["car_id"] == 3
        assert state["speed_kmh"] == pytest.approx(36.0)
        assert not state["backwards"]
