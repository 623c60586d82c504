"""Tests for the bundled query-service scene."""

import math

import pytest

from fieldview.scene import EmptyScene, Obstacle, SegmentScene
from fieldview.types import Target


def _wall_scene():
    # 4 wide, 1 deep, front face at z=5
    return SegmentScene(obstacles=[Obstacle.box("wall", 0.0, 5.5, 4.0, 1.0)])


class TestObstacleShapes:
    def test_box_has_four_edges(self):
        assert len(Obstacle.box("b", 0, 0, 2, 2).edges()) == 4

    def test_circle_vertex_count(self):
        """quad_segs segments per quarter circle, closing point dropped."""
        obs = Obstacle.circle("c", 1.0, 2.0, 3.0, quad_segs=8)
        assert len(obs.vertices) == 32
        for x, z in obs.vertices:
            assert ((x - 1.0) ** 2 + (z - 2.0) ** 2) ** 0.5 == pytest.approx(
                3.0
            )

    def test_polygon_too_few_vertices(self):
        with pytest.raises(ValueError):
            Obstacle.polygon("p", [(0, 0), (1, 1)])

    def test_polygon_self_intersecting(self):
        with pytest.raises(ValueError):
            Obstacle.polygon("p", [(0, 0), (2, 2), (2, 0), (0, 2)])

    def test_from_dict_box(self):
        obs = Obstacle.from_dict(
            {"id": "b", "type": "box", "x": 1, "z": 2, "width": 2, "depth": 2}
        )
        xs = sorted(v[0] for v in obs.vertices)
        assert xs[0] == pytest.approx(0.0)
        assert xs[-1] == pytest.approx(2.0)

    def test_from_dict_unknown_type(self):
        with pytest.raises(ValueError):
            Obstacle.from_dict({"id": "x", "type": "cone"})

    def test_layer_out_of_range(self):
        with pytest.raises(ValueError, match="layer"):
            Obstacle.box("b", 0, 0, 1, 1, layer=32)
        with pytest.raises(ValueError, match="layer"):
            Obstacle.box("b", 0, 0, 1, 1, layer=-1)

    def test_direct_construction_needs_three_vertices(self):
        with pytest.raises(ValueError):
            Obstacle("p", [(0.0, 0.0), (1.0, 0.0)])


def _overlapping_boxes(layer_b=0):
    # a covers z in [4, 6], b covers z in [5.5, 7.5], both x in [-2, 2]
    return SegmentScene(
        obstacles=[
            Obstacle.box("a", 0.0, 5.0, 4.0, 2.0),
            Obstacle.box("b", 0.0, 6.5, 4.0, 2.0, layer=layer_b),
        ]
    )


def _perimeter(segments):
    return sum(math.hypot(x2 - x1, z2 - z1) for x1, z1, x2, z2 in segments)


class TestMergedFootprints:
    def test_overlap_merged_into_one_outline(self):
        segs = _overlapping_boxes().segments()
        assert _perimeter(segs) == pytest.approx(2 * (4.0 + 3.5))
        for x1, z1, x2, z2 in segs:
            mid_x = (x1 + x2) / 2
            mid_z = (z1 + z2) / 2
            assert abs(mid_x) == pytest.approx(2.0) or mid_z in (4.0, 7.5)

    def test_interior_edges_do_not_block(self):
        hit = _overlapping_boxes().raycast((0, 0, 4.5), (0, 0, 1), 10.0)
        assert hit.distance == pytest.approx(3.0)
        assert hit.obstacle_id == "b"

    def test_front_face_keeps_its_id(self):
        hit = _overlapping_boxes().raycast((0, 0, 0), (0, 0, 1), 10.0)
        assert hit.distance == pytest.approx(4.0)
        assert hit.obstacle_id == "a"

    def test_different_layers_stay_separate(self):
        scene = _overlapping_boxes(layer_b=1)
        assert _perimeter(scene.segments()) == pytest.approx(24.0)
        hit = scene.raycast((0, 0, 4.5), (0, 0, 1), 10.0)
        assert hit.distance == pytest.approx(1.0)
        assert hit.obstacle_id == "b"

    def test_disjoint_boxes_keep_both_outlines(self):
        scene = SegmentScene(
            obstacles=[
                Obstacle.box("a", 0.0, 5.0, 2.0, 2.0),
                Obstacle.box("b", 10.0, 5.0, 2.0, 2.0),
            ]
        )
        assert _perimeter(scene.segments()) == pytest.approx(16.0)
        hit = scene.raycast((10, 0, 0), (0, 0, 1), 10.0)
        assert hit.obstacle_id == "b"


class TestRaycast:
    def test_hit_front_face(self):
        hit = _wall_scene().raycast((0, 0, 0), (0, 0, 1), 10.0)
        assert hit is not None
        assert hit.distance == pytest.approx(5.0)
        assert hit.point == pytest.approx((0.0, 0.0, 5.0))
        assert hit.obstacle_id == "wall"

    def test_miss_beside(self):
        assert _wall_scene().raycast((0, 0, 0), (1, 0, 0), 10.0) is None

    def test_beyond_max_distance(self):
        assert _wall_scene().raycast((0, 0, 0), (0, 0, 1), 4.9) is None

    def test_nearest_of_two(self):
        scene = _wall_scene()
        scene.add_obstacle(Obstacle.box("near", 0.0, 2.5, 4.0, 1.0))
        hit = scene.raycast((0, 0, 0), (0, 0, 1), 10.0)
        assert hit.obstacle_id == "near"
        assert hit.distance == pytest.approx(2.0)

    def test_unnormalized_direction(self):
        hit = _wall_scene().raycast((0, 0, 0), (0, 0, 3), 10.0)
        assert hit.distance == pytest.approx(5.0)

    def test_elevated_ray_distance_is_3d(self):
        """Footprints extend along Y, so a rising ray still hits."""
        hit = _wall_scene().raycast((0, 0, 0), (0, 1, 1), 10.0)
        assert hit is not None
        assert hit.distance == pytest.approx(5.0 * 2**0.5)
        assert hit.point == pytest.approx((0.0, 5.0, 5.0))

    def test_vertical_ray_misses(self):
        assert _wall_scene().raycast((0, 0, 0), (0, 1, 0), 10.0) is None

    def test_zero_direction_misses(self):
        assert _wall_scene().raycast((0, 0, 0), (0, 0, 0), 10.0) is None

    def test_mask_excludes_layer(self):
        scene = SegmentScene(
            obstacles=[Obstacle.box("w", 0.0, 5.5, 4.0, 1.0, layer=2)]
        )
        assert scene.raycast((0, 0, 0), (0, 0, 1), 10.0, mask=0b001) is None
        assert scene.raycast((0, 0, 0), (0, 0, 1), 10.0, mask=0b100)

    def test_remove_obstacle(self):
        scene = _wall_scene()
        assert scene.raycast((0, 0, 0), (0, 0, 1), 10.0) is not None
        scene.remove_obstacle("wall")
        assert scene.raycast((0, 0, 0), (0, 0, 1), 10.0) is None

    def test_from_inside_hits_own_outline(self):
        hit = _wall_scene().raycast((0, 0, 5.5), (0, 0, 1), 10.0)
        assert hit.distance == pytest.approx(0.5)

    def test_list_cleared_directly(self):
        scene = _wall_scene()
        assert scene.raycast((0, 0, 0), (0, 0, 1), 10.0) is not None
        scene.obstacles.clear()
        assert scene.raycast((0, 0, 0), (0, 0, 1), 10.0) is None

    def test_list_appended_directly(self):
        scene = _wall_scene()
        scene.raycast((0, 0, 0), (0, 0, 1), 10.0)
        scene.obstacles.append(Obstacle.box("near", 0.0, 2.5, 4.0, 1.0))
        hit = scene.raycast((0, 0, 0), (0, 0, 1), 10.0)
        assert hit.obstacle_id == "near"

    def test_list_replaced(self):
        scene = _wall_scene()
        scene.raycast((0, 0, 0), (0, 0, 1), 10.0)
        scene.obstacles = [Obstacle.box("far", 0.0, 8.5, 4.0, 1.0)]
        hit = scene.raycast((0, 0, 0), (0, 0, 1), 10.0)
        assert hit.distance == pytest.approx(8.0)


class TestOverlap:
    def _scene(self):
        return SegmentScene(
            targets=[
                Target("a", (1.0, 0.0, 1.0)),
                Target("far", (20.0, 0.0, 0.0)),
                Target("b", (0.0, 3.0, 0.0)),
                Target("other_layer", (0.0, 0.0, 2.0), layer=1),
            ]
        )

    def test_radius_and_order(self):
        found = self._scene().overlap((0, 0, 0), 5.0, mask=0b1)
        assert [t.id for t in found] == ["a", "b"]

    def test_boundary_inclusive(self):
        found = self._scene().overlap((0, 0, 0), 3.0, mask=0b1)
        assert "b" in [t.id for t in found]

    def test_mask_selects_layer(self):
        found = self._scene().overlap((0, 0, 0), 5.0, mask=0b10)
        assert [t.id for t in found] == ["other_layer"]

    def test_remove_target(self):
        scene = self._scene()
        scene.remove_target("a")
        assert [t.id for t in scene.overlap((0, 0, 0), 5.0)] == [
            "b",
            "other_layer",
        ]

    def test_empty(self):
        assert SegmentScene().overlap((0, 0, 0), 5.0) == []

    def test_list_popped_directly(self):
        scene = self._scene()
        assert len(scene.overlap((0, 0, 0), 5.0)) == 3
        scene.targets.pop()
        assert [t.id for t in scene.overlap((0, 0, 0), 5.0)] == ["a", "b"]

    def test_list_cleared_directly(self):
        scene = self._scene()
        scene.overlap((0, 0, 0), 5.0)
        scene.targets.clear()
        assert scene.overlap((0, 0, 0), 5.0) == []


class TestEmptyScene:
    def test_nothing_there(self):
        scene = EmptyScene()
        assert list(scene.overlap((0, 0, 0), 100.0, 1)) == []
        assert scene.raycast((0, 0, 0), (0, 0, 1), 100.0, 1) is None
