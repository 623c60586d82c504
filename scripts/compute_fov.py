#!/usr/bin/env python3
"""Evaluate a scene file and print the view mesh and target scan as JSON.

Usage (from the repo root):
    python scripts/compute_fov.py scene.json                  # mesh + targets
    python scripts/compute_fov.py scene.json --heading 45     # override heading
    python scripts/compute_fov.py scene.json --targets-only
    python scripts/compute_fov.py scene.json -v               # debug logging
"""

import argparse
import json
import logging
import sys
from pathlib import Path

# Add repo root to path
SCRIPT_DIR = Path(__file__).resolve().parent
REPO_DIR = SCRIPT_DIR.parent
sys.path.insert(0, str(REPO_DIR))

from fieldview.scene_io import load_scene  # noqa: E402
from fieldview.visibility import (  # noqa: E402
    compute_visibility_polygon,
    scan_targets,
)


def main():
    parser = argparse.ArgumentParser(
        description="Compute a field-of-view mesh for a scene file"
    )
    parser.add_argument("scene", help="Path to a scene .json file")
    parser.add_argument(
        "--heading",
        type=float,
        default=None,
        help="Override the observer heading in degrees",
    )
    parser.add_argument(
        "--resolution",
        type=float,
        default=None,
        help="Override mesh_resolution (samples per degree)",
    )
    parser.add_argument(
        "--targets-only",
        action="store_true",
        help="Skip the mesh and only report target visibility",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Debug logging"
    )
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        scene_file = load_scene(args.scene)
    except (OSError, ValueError) as e:
        print(f"Could not load {args.scene}: {e}", file=sys.stderr)
        sys.exit(1)

    if args.heading is not None:
        scene_file.heading_deg = args.heading
    if args.resolution is not None:
        scene_file.params.mesh_resolution = args.resolution
    observer = scene_file.observer()

    out = {}
    if not args.targets_only:
        mesh = compute_visibility_polygon(
            observer, scene_file.params, scene_file.scene
        )
        out["mesh"] = mesh.to_dict()
        out["area"] = mesh.area()
    out["targets"] = scan_targets(
        observer, scene_file.params, scene_file.scene
    ).to_dict()

    print(json.dumps(out, indent=2))


if __name__ == "__main__":
    main()
