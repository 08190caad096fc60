# motionkin/scene/rig_config.py
from __future__ import annotations

import json
import math
from pathlib import Path
from typing import Any, Dict, Optional, Union

from .nodes import SceneNode


ROOT_NAME = "Scene"


def load_rig_config(path: Union[str, Path], logger=None) -> Optional[Dict[str, Any]]:
    """
    Read a rig config JSON. A missing or unreadable file is not an error for the
    viewer: it is logged as a warning and None is returned.
    """
    path = Path(path)
    try:
        obj = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        if logger:
            logger.warning("[scene] Unable to load rig config %s: %r", path, e)
        return None
    if not isinstance(obj, dict):
        if logger:
            logger.warning("[scene] Rig config %s is not a JSON object", path)
        return None
    return obj


def _vec3(raw: Any, default: tuple[float, float, float]) -> tuple[float, float, float]:
    try:
        x, y, z = raw
        return (float(x), float(y), float(z))
    except (TypeError, ValueError):
        return default


def build_scene_from_rig(cfg: Dict[str, Any], logger=None) -> SceneNode:
    """
    cfg format:
      {"nodes": [{"name": "Arm", "parent": "Base",
                  "position": [x,y,z], "rotation_deg": [x,y,z], "scale": [x,y,z]}, ...]}
    Parents may be listed after their children. A node whose parent is missing
    (or unnamed) hangs off the root.
    """
    root = SceneNode(ROOT_NAME)
    entries = cfg.get("nodes") or []
    if not isinstance(entries, list):
        entries = []

    # first pass: nodes
    by_name: Dict[str, SceneNode] = {}
    parents: Dict[str, Optional[str]] = {}
    for e in entries:
        if not isinstance(e, dict):
            continue
        name = str(e.get("name") or "").strip()
        if not name:
            continue
        n = SceneNode(name)
        n.position.set(*_vec3(e.get("position"), (0.0, 0.0, 0.0)))
        rx, ry, rz = _vec3(e.get("rotation_deg"), (0.0, 0.0, 0.0))
        n.rotation.set(math.radians(rx), math.radians(ry), math.radians(rz))
        n.scale.set(*_vec3(e.get("scale"), (1.0, 1.0, 1.0)))
        if name in by_name and logger:
            logger.warning("[scene] duplicate node name %r in rig config; keeping the last", name)
        by_name[name] = n
        p = e.get("parent")
        parents[name] = str(p) if p else None

    # second pass: hierarchy
    for name, n in by_name.items():
        pname = parents.get(name)
        parent = by_name.get(pname) if pname else None
        if pname and parent is None and logger:
            logger.warning("[scene] node %r: parent %r not found, attaching to root", name, pname)
        if parent is None or _would_cycle(parent, n):
            root.add(n)
        else:
            parent.add(n)

    return root


def _would_cycle(parent: SceneNode, child: SceneNode) -> bool:
    cur: Optional[SceneNode] = parent
    while cur is not None:
        if cur is child:
            return True
        cur = cur.parent
    return False


def demo_scene() -> SceneNode:
    """Three stacked modules, matching the names used in the sample motion CSV."""
    return build_scene_from_rig(
        {
            "nodes": [
                {"name": "Module_A", "position": [0.0, 0.5, 0.0]},
                {"name": "Module_B", "parent": "Module_A", "position": [0.0, 1.0, 0.0]},
                {"name": "Module_C", "parent": "Module_B", "position": [0.0, 1.0, 0.0]},
            ]
        }
    )
