"""Per-observer component that keeps the last view mesh and visible targets.

The pure functions in ``visibility.py`` do the work; this class only decides
when to call them. The host loop is expected to call ``late_update`` every
frame (the fan tracks the observer continuously) and ``update`` with the
frame's elapsed time, which re-scans targets each time ``scan_interval``
seconds have accumulated. No threads or timers are involved: time only
advances when the host says so.
"""

from __future__ import annotations

import logging
from typing import Callable

from .scene import QueryService
from .types import FovParams, Observer, Target, TargetScan, ViewMesh
from .visibility import compute_visibility_polygon, scan_targets

logger = logging.getLogger(__name__)


class FieldOfView:
    def __init__(
        self,
        params: FovParams,
        scene: QueryService | None = None,
        on_scan: Callable[[TargetScan], None] | None = None,
    ) -> None:
        params.validate()
        self.params = params
        self.scene = scene
        self.on_scan = on_scan
        self.mesh = ViewMesh()
        self.visible_targets: list[Target] = []
        self.last_scan: TargetScan | None = None
        self._elapsed = 0.0

    def observer(self, position, heading_deg: float = 0.0) -> Observer:
        return self.params.observer(position, heading_deg)

    def late_update(self, observer: Observer) -> ViewMesh:
        """Rebuild the view mesh for this frame."""
        self.mesh = compute_visibility_polygon(
            observer, self.params, self.scene
        )
        return self.mesh

    def update(self, observer: Observer, dt: float) -> bool:
        """Advance the scan clock by ``dt`` seconds.

        Returns True if a target scan ran. At most one scan runs per call,
        however large ``dt`` is; leftover time carries into the next call.
        """
        self._elapsed += dt
        if self._elapsed < self.params.scan_interval:
            return False
        self._elapsed -= self.params.scan_interval
        if self._elapsed >= self.params.scan_interval:
            self._elapsed %= self.params.scan_interval
        self.scan(observer)
        return True

    def scan(self, observer: Observer) -> TargetScan:
        """Re-scan targets now, replacing the visible set."""
        result = scan_targets(observer, self.params, self.scene)
        self.last_scan = result
        self.visible_targets = list(result.visible)
        logger.debug(
            "Visible targets: %s", [t.id for t in self.visible_targets]
        )
        if self.on_scan is not None:
            self.on_scan(result)
        return result
