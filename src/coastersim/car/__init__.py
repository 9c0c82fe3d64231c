"""
Car module - Coaster car physics along the track.

This module contains:
- Car: Arc-length integrator with gravity, drag and rolling friction
- CarConfig: Physical constants and assists
- CarState: Position and speed along the track
"""

from coastersim.car.car import Car, CarConfig, CarState

__all__ = [
    "Car",
    "CarConfig",
    "CarState",
]
