#!/usr/bin/env python3
"""
Track Generation Example

This example demonstrates how to:
1. Generate tracks with different configurations
2. Use seeds for reproducible tracks
3. Drape a track over terrain with a station
4. Author roll, stations and straight segments by hand

Run with: python generate_tracks.py
"""

import numpy as np

from coastersim.track import (
    HeightField,
    RollEasing,
    TrackComponent,
    TrackConfig,
    TrackGenerator,
)
from coastersim.track.generator import GeneratorConfig


def generate_default_track():
    """Generate a track with default settings."""
    print("=" * 60)
    print("1. Default Track Generation")
    print("=" * 60)

    track = TrackGenerator().generate()

    print(f"\nNodes: {track.node_count}")
    print(f"Length: {track.total_length:.0f} m")
    print(f"Is closed: {track.is_closed}")
    return track


def generate_seeded_tracks():
    """Generate reproducible tracks using seeds."""
    print("\n" + "=" * 60)
    print("2. Seeded Track Generation (Reproducible)")
    print("=" * 60)

    generator = TrackGenerator()
    track1 = generator.generate_with_seed(12345)
    track2 = generator.generate_with_seed(12345)
    track3 = generator.generate_with_seed(99999)

    print(f"\nTrack A length: {track1.total_length:.2f} m")
    print(f"Track B length: {track2.total_length:.2f} m")
    print(f"Same layout: {track1.total_length == track2.total_length}")
    print(f"Different seed length: {track3.total_length:.2f} m")


def generate_terrain_track():
    """Generate a track following rolling terrain."""
    print("\n" + "=" * 60)
    print("3. Terrain-Following Track with Station")
    print("=" * 60)

    x = np.linspace(0.0, 4.0 * np.pi, 64)
    heights = 5.0 * np.add.outer(np.sin(x), np.cos(x))
    terrain = HeightField(heights, cell_size=4.0)

    config = GeneratorConfig(
        seed=7,
        num_nodes=16,
        radius_m=80.0,
        station_length_m=20.0,
        clearance_m=2.0,
    )
    track = TrackGenerator(config).generate(terrain)

    print(f"\nLength: {track.total_length:.0f} m")
    print(f"Stations: {[(round(a, 1), round(b, 1)) for a, b in track.stations]}")
    heights = [node.position[1] for node in track.spline.nodes]
    print(f"Node heights: {min(heights):.1f} .. {max(heights):.1f} m")


def author_track():
    """Build a small open track by hand."""
    print("\n" + "=" * 60)
    print("4. Hand-Authored Track")
    print("=" * 60)

    track = TrackComponent(TrackConfig(ds=0.25))
    for p in ([0, 10, 0], [20, 10, 0], [40, 8, 5], [55, 4, 20], [60, 3, 40], [55, 5, 60], [40, 6, 70]):
        track.add_node(p)

    # Level platform, banked turn, straight tail
    track.set_node_station(1, start=True, end=False, length_m=15.0)
    track.spread_roll(3, 5, 0.0, 0.7, RollEasing.SMOOTHSTEP)
    track.linearize_tail(1)
    track.rebuild()

    print(f"\nSegments: {track.segment_count}")
    print(f"Length: {track.total_length:.1f} m")
    for s in np.linspace(0.0, track.total_length, 6):
        frame = track.frame_at_s(s)
        bank = np.degrees(np.arctan2(frame.normal[2], frame.normal[1]))
        print(f"  s={s:6.1f}  pos=({frame.position[0]:5.1f}, {frame.position[1]:4.1f}, "
              f"{frame.position[2]:5.1f})  station={track.is_in_station(s)}  bank~{bank:5.1f} deg")


def main():
    print("CoasterSim Track Generation Examples\n")

    generate_default_track()
    generate_seeded_tracks()
    generate_terrain_track()
    author_track()

    print("\n" + "=" * 60)
    print("All examples complete!")
    print("=" * 60)


if __name__ == "__main__":
    main()
