"""Tests for scene nodes, rest poses, world transforms and rig config loading."""

import json
import logging
import math

import pytest

from motionkin.scene.nodes import SceneNode, capture_rest_pose, index_nodes_by_name, reset_to_rest
from motionkin.scene.rig_config import ROOT_NAME, build_scene_from_rig, demo_scene, load_rig_config
from motionkin.scene.transforms import euler_xyz_to_mat4, transform_point, world_positions


def _chain():
    root = SceneNode("Scene")
    a = root.add(SceneNode("A"))
    b = a.add(SceneNode("B"))
    c = root.add(SceneNode("C"))
    return root, a, b, c


# ---------------------------------------------------------------------------
# Nodes and indexing
# ---------------------------------------------------------------------------


class TestNodes:
    def test_defaults(self):
        n = SceneNode("N")
        assert n.position.as_tuple() == (0.0, 0.0, 0.0)
        assert n.rotation.as_tuple() == (0.0, 0.0, 0.0)
        assert n.scale.as_tuple() == (1.0, 1.0, 1.0)

    def test_traverse_parent_first(self):
        root, a, b, c = _chain()
        assert [n.name for n in root.traverse()] == ["Scene", "A", "B", "C"]

    def test_add_reparents(self):
        root, a, b, c = _chain()
        c.add(b)
        assert b.parent is c
        assert b not in a.children

    def test_index_by_name(self):
        root, a, b, c = _chain()
        idx = index_nodes_by_name(root)
        assert idx["B"] is b
        assert set(idx) == {"Scene", "A", "B", "C"}

    def test_index_later_duplicate_wins(self):
        root = SceneNode("Scene")
        first = root.add(SceneNode("Dup"))
        second = first.add(SceneNode("Dup"))
        assert index_nodes_by_name(root)["Dup"] is second

    def test_rest_pose_round_trip(self):
        root, a, b, c = _chain()
        a.position.set(1.0, 2.0, 3.0)
        idx = index_nodes_by_name(root)
        rest = capture_rest_pose(idx)
        a.position.set(9.0, 9.0, 9.0)
        b.rotation.set(1.0, 0.0, 0.0)
        assert reset_to_rest(idx, rest) == 4
        assert a.position.as_tuple() == (1.0, 2.0, 3.0)
        assert b.rotation.as_tuple() == (0.0, 0.0, 0.0)

    def test_reset_skips_missing_nodes(self):
        root, a, b, c = _chain()
        rest = capture_rest_pose(index_nodes_by_name(root))
        assert reset_to_rest({"A": a}, rest) == 1


# ---------------------------------------------------------------------------
# Transforms
# ---------------------------------------------------------------------------


class TestTransforms:
    def test_rotation_z_quarter_turn(self):
        M = euler_xyz_to_mat4(0.0, 0.0, math.pi / 2)
        assert transform_point(M, (1.0, 0.0, 0.0)) == pytest.approx((0.0, 1.0, 0.0), abs=1e-12)

    def test_rotation_x_quarter_turn(self):
        M = euler_xyz_to_mat4(math.pi / 2, 0.0, 0.0)
        assert transform_point(M, (0.0, 1.0, 0.0)) == pytest.approx((0.0, 0.0, 1.0), abs=1e-12)

    def test_world_positions_accumulate_parents(self):
        root, a, b, c = _chain()
        a.position.set(0.0, 1.0, 0.0)
        b.position.set(0.0, 2.0, 0.0)
        c.position.set(5.0, 0.0, 0.0)
        pos = world_positions(root)
        assert pos["B"] == pytest.approx((0.0, 3.0, 0.0))
        assert pos["C"] == pytest.approx((5.0, 0.0, 0.0))

    def test_parent_rotation_and_scale_carry_to_child(self):
        root, a, b, c = _chain()
        a.rotation.set(0.0, 0.0, math.pi / 2)
        a.scale.set(2.0, 2.0, 2.0)
        b.position.set(1.0, 0.0, 0.0)
        assert world_positions(root)["B"] == pytest.approx((0.0, 2.0, 0.0), abs=1e-12)


# ---------------------------------------------------------------------------
# Rig config
# ---------------------------------------------------------------------------


class TestRigConfig:
    def test_build_hierarchy_out_of_order(self):
        cfg = {
            "nodes": [
                {"name": "Head", "parent": "Arm", "position": [0, 1, 0]},
                {"name": "Arm", "parent": "Base", "rotation_deg": [0, 0, 90]},
                {"name": "Base", "scale": [2, 2, 2]},
            ]
        }
        root = build_scene_from_rig(cfg)
        idx = index_nodes_by_name(root)
        assert root.name == ROOT_NAME
        assert idx["Head"].parent is idx["Arm"]
        assert idx["Arm"].parent is idx["Base"]
        assert idx["Base"].parent is root
        assert idx["Arm"].rotation.z == pytest.approx(math.pi / 2)
        assert idx["Base"].scale.as_tuple() == (2.0, 2.0, 2.0)

    def test_missing_parent_attaches_to_root(self, caplog):
        logger = logging.getLogger("motionkin.test")
        with caplog.at_level(logging.WARNING, logger="motionkin.test"):
            root = build_scene_from_rig({"nodes": [{"name": "Orphan", "parent": "Nobody"}]}, logger=logger)
        assert index_nodes_by_name(root)["Orphan"].parent is root
        assert "not found" in caplog.text

    def test_cycle_broken_at_root(self):
        root = build_scene_from_rig(
            {"nodes": [{"name": "A", "parent": "B"}, {"name": "B", "parent": "A"}]}
        )
        names = [n.name for n in root.traverse()]
        assert sorted(names) == ["A", "B", "Scene"]

    def test_bad_entries_skipped(self):
        root = build_scene_from_rig(
            {"nodes": ["junk", {"name": ""}, {"name": "Ok", "position": "nope"}]}
        )
        idx = index_nodes_by_name(root)
        assert set(idx) == {ROOT_NAME, "Ok"}
        assert idx["Ok"].position.as_tuple() == (0.0, 0.0, 0.0)

    def test_load_missing_file_returns_none(self, tmp_path):
        assert load_rig_config(tmp_path / "absent.json") is None

    def test_load_non_object_returns_none(self, tmp_path):
        p = tmp_path / "rig.json"
        p.write_text("[1, 2, 3]", encoding="utf-8")
        assert load_rig_config(p) is None

    def test_load_valid(self, tmp_path):
        p = tmp_path / "rig.json"
        p.write_text(json.dumps({"nodes": [{"name": "Base"}]}), encoding="utf-8")
        cfg = load_rig_config(p)
        assert cfg == {"nodes": [{"name": "Base"}]}

    def test_demo_scene_stacks_modules(self):
        pos = world_positions(demo_scene())
        assert pos["Module_A"] == pytest.approx((0.0, 0.5, 0.0))
        assert pos["Module_B"] == pytest.approx((0.0, 1.5, 0.0))
        assert pos["Module_C"] == pytest.approx((0.0, 2.5, 0.0))
