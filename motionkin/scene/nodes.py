from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional


Vec3 = tuple[float, float, float]


@dataclass
class Vec3Ref:
    x: float = 0.0
    y: float = 0.0
    z: float = 0.0

    def set(self, x: float, y: float, z: float) -> None:
        self.x, self.y, self.z = float(x), float(y), float(z)

    def as_tuple(self) -> Vec3:
        return (self.x, self.y, self.z)


@dataclass(eq=False)
class SceneNode:
    """
    Named transform node. `rotation` holds Euler XYZ angles in radians.
    """
    name: str
    position: Vec3Ref = field(default_factory=Vec3Ref)
    rotation: Vec3Ref = field(default_factory=Vec3Ref)
    scale: Vec3Ref = field(default_factory=lambda: Vec3Ref(1.0, 1.0, 1.0))
    parent: Optional["SceneNode"] = field(default=None, repr=False)
    children: List["SceneNode"] = field(default_factory=list, repr=False)

    def add(self, child: "SceneNode") -> "SceneNode":
        if child.parent is not None:
            child.parent.children.remove(child)
        child.parent = self
        self.children.append(child)
        return child

    def traverse(self) -> Iterator["SceneNode"]:
        # depth-first, parent before children
        stack = [self]
        while stack:
            n = stack.pop()
            yield n
            stack.extend(reversed(n.children))


def index_nodes_by_name(root: SceneNode) -> Dict[str, SceneNode]:
    """Name -> node for every named node under root. Later duplicates win."""
    out: Dict[str, SceneNode] = {}
    for n in root.traverse():
        if n.name:
            out[n.name] = n
    return out


@dataclass(frozen=True)
class RestPose:
    position: Vec3
    rotation: Vec3
    scale: Vec3


def capture_rest_pose(index: Dict[str, SceneNode]) -> Dict[str, RestPose]:
    return {
        name: RestPose(n.position.as_tuple(), n.rotation.as_tuple(), n.scale.as_tuple())
        for name, n in index.items()
    }


def reset_to_rest(index: Dict[str, SceneNode], rest: Dict[str, RestPose]) -> int:
    """Restore captured rest transforms. Returns how many nodes were reset."""
    count = 0
    for name, rp in rest.items():
        n = index.get(name)
        if n is None:
            continue
        n.position.set(*rp.position)
        n.rotation.set(*rp.rotation)
        n.scale.set(*rp.scale)
        count += 1
    return count
