#!/usr/bin/env python3
"""
Basic Simulation Example

This example demonstrates how to:
1. Build the demo coaster layout
2. Create a car and launch it on the track
3. Run a simulation loop
4. Read the car's position and orientation

Run with: python run_simulation.py
"""

import logging

from coastersim import Simulator, Car
from coastersim.track import TrackGenerator
from coastersim.car import CarConfig


def main():
    logging.basicConfig(level=logging.INFO)

    print("=" * 60)
    print("CoasterSim Basic Simulation Example")
    print("=" * 60)

    # Step 1: Build a track
    print("\n1. Building demo track...")
    track = TrackGenerator.demo_layout(ds=0.05)

    print(f"   Nodes: {track.node_count}")
    print(f"   Length: {track.total_length:.0f} meters")
    print(f"   Frames: {len(track.frames)}")

    # Step 2: Create simulator and add a car
    print("\n2. Setting up simulation...")
    sim = Simulator()
    sim.set_track(track)

    car = Car(CarConfig(min_speed_enabled=True, min_speed=20.0))
    car.kick(100.0)
    car_id = sim.add_car(car)
    print(f"   Added car with ID: {car_id}")

    # Step 3: Run simulation
    print("\n3. Running simulation (600 steps at 60Hz = 10 seconds)...")
    sim.start()

    for step in range(600):
        sim.step(1.0 / 60.0)

        if (step + 1) % 120 == 0:
            state = car.get_state()
            print(f"   t={sim.time:5.1f} s: s = {state['s']:7.1f} m, "
                  f"speed = {state['speed_kmh']:6.1f} km/h")

    # Step 4: Final pose
    print("\n4. Final pose:")
    x, y, z = car.position
    forward = car.orientation[:, 0]
    up = car.orientation[:, 1]
    print(f"   Position: ({x:.1f}, {y:.1f}, {z:.1f})")
    print(f"   Forward:  ({forward[0]:.2f}, {forward[1]:.2f}, {forward[2]:.2f})")
    print(f"   Up:       ({up[0]:.2f}, {up[1]:.2f}, {up[2]:.2f})")
    print(f"   Rolling backwards: {car.is_backwards}")

    print("\n" + "=" * 60)
    print("Simulation complete!")
    print("=" * 60)


if __name__ == "__main__":
    main()
