"""Load and save scene files.

A scene file is JSON with four top-level keys, all optional:

    {
      "params":    {"view_radius": 10, "view_angle": 90, ...},
      "observer":  {"position": [x, y, z], "heading_deg": 0},
      "obstacles": [{"id": "wall", "type": "box", "x": 0, "z": 5,
                     "width": 4, "depth": 1}, ...],
      "targets":   [{"id": "t1", "position": [x, y, z], "layer": 0}, ...]
    }

Obstacle entries take ``"type"`` of ``box``, ``circle`` or ``polygon`` (see
``Obstacle.from_dict``). Saved files always write obstacles as polygons.

Used by ``scripts/compute_fov.py`` and ``scripts/bench_visibility.py``.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path

from .scene import SegmentScene
from .types import FovParams, Observer


@dataclass
class SceneFile:
    params: FovParams = field(default_factory=FovParams)
    scene: SegmentScene = field(default_factory=SegmentScene)
    position: tuple[float, float, float] = (0.0, 0.0, 0.0)
    heading_deg: float = 0.0

    def observer(self) -> Observer:
        return self.params.observer(self.position, self.heading_deg)

    @staticmethod
    def from_dict(d: dict) -> SceneFile:
        obs = d.get("observer") or {}
        x, y, z = obs.get("position", (0.0, 0.0, 0.0))
        return SceneFile(
            params=FovParams.from_dict(d.get("params")),
            scene=SegmentScene.from_dict(d),
            position=(float(x), float(y), float(z)),
            heading_deg=float(obs.get("heading_deg", 0.0)),
        )

    def to_dict(self) -> dict:
        d = {
            "params": self.params.to_dict(),
            "observer": {
                "position": list(self.position),
                "heading_deg": self.heading_deg,
            },
        }
        d.update(self.scene.to_dict())
        return d


def load_scene(path: Path | str) -> SceneFile:
    """Load a scene JSON file.

    Raises ValueError for non-JSON extensions or invalid content.
    """
    path = Path(path)
    if path.suffix.lower() != ".json":
        raise ValueError(f"Unsupported file extension: {path}")
    with open(path) as f:
        data = json.load(f)
    if not isinstance(data, dict):
        raise ValueError(f"Invalid scene file {path}: expected a JSON object")
    try:
        return SceneFile.from_dict(data)
    except (KeyError, TypeError, AttributeError, ValueError) as e:
        raise ValueError(f"Invalid scene file {path}: {e!r}") from e


def save_scene(scene_file: SceneFile, path: Path | str) -> None:
    """Write a scene to a JSON file.

    Creates parent directories if they don't exist.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w") as f:
        json.dump(scene_file.to_dict(), f, indent=2)
        f.write("\n")
