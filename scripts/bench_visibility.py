#!/usr/bin/env python3
"""Benchmark view mesh construction across mesh resolutions.

Usage (from the repo root):
    python scripts/bench_visibility.py                      # built-in scene, 3 iterations
    python scripts/bench_visibility.py -n 5                 # 5 iterations
    python scripts/bench_visibility.py -r 0.5 1 4           # chosen resolutions
    python scripts/bench_visibility.py --scene scene.json   # time a scene file
"""

import argparse
import statistics
import sys
import time
from pathlib import Path

# Add repo root to path
SCRIPT_DIR = Path(__file__).resolve().parent
REPO_DIR = SCRIPT_DIR.parent
sys.path.insert(0, str(REPO_DIR))

from fieldview.scene import Obstacle, SegmentScene  # noqa: E402
from fieldview.scene_io import SceneFile, load_scene  # noqa: E402
from fieldview.types import FovParams  # noqa: E402
from fieldview.visibility import compute_visibility_polygon  # noqa: E402


def _builtin_scene() -> SceneFile:
    """A row of pillars, a wall and a rock in front of the origin."""
    scene = SegmentScene()
    for i in range(12):
        scene.add_obstacle(
            Obstacle.box(
                f"pillar{i}",
                -11.0 + 2.0 * i,
                6.0 + (i % 4),
                1.0,
                1.0,
                rotation_deg=i * 30.0,
            )
        )
    scene.add_obstacle(Obstacle.box("wall_n", 0.0, 18.0, 20.0, 1.0))
    scene.add_obstacle(Obstacle.circle("rock", -5.0, 12.0, 2.0))
    params = FovParams(
        view_radius=20.0,
        view_angle=120.0,
        edge_resolve_iterations=6,
        edge_distance_threshold=0.5,
    )
    return SceneFile(params=params, scene=scene)


def main():
    parser = argparse.ArgumentParser(
        description="Benchmark field-of-view mesh construction"
    )
    parser.add_argument(
        "-n",
        "--iterations",
        type=int,
        default=3,
        help="Number of iterations per resolution (default: 3)",
    )
    parser.add_argument(
        "-r",
        "--resolutions",
        type=float,
        nargs="+",
        default=[0.25, 1.0, 4.0],
        help="mesh_resolution values to time (default: 0.25 1 4)",
    )
    parser.add_argument("--scene", help="Scene .json file to time")
    args = parser.parse_args()

    scene_file = load_scene(args.scene) if args.scene else _builtin_scene()
    observer = scene_file.observer()

    print(f"Benchmark: {len(scene_file.scene.obstacles)} obstacles")
    print(f"Iterations: {args.iterations}")
    print()

    for resolution in args.resolutions:
        scene_file.params.mesh_resolution = resolution
        # Warmup
        mesh = compute_visibility_polygon(
            observer, scene_file.params, scene_file.scene
        )
        times_ms = []
        for _ in range(args.iterations):
            start = time.perf_counter()
            compute_visibility_polygon(
                observer, scene_file.params, scene_file.scene
            )
            times_ms.append((time.perf_counter() - start) * 1000)

        median = statistics.median(times_ms)
        print(
            f"  resolution {resolution:g}: {len(mesh.vertices)} vertices, "
            f"median {median:.2f} ms"
        )


if __name__ == "__main__":
    main()
