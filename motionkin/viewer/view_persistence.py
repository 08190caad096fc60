# motionkin/viewer/view_persistence.py
from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional


def default_persistence_path(rig_config_path: Optional[Path]) -> Path:
    if rig_config_path is None:
        # fallback: cwd
        return Path("motionkin_viewer_persistence.json").resolve()
    return rig_config_path.with_suffix(rig_config_path.suffix + ".viewer_persistence.json")


@dataclass
class ViewerPersist:
    path: Path
    data: Dict[str, Any]

    @staticmethod
    def load(path: Path) -> "ViewerPersist":
        if path.exists():
            try:
                obj = json.loads(path.read_text(encoding="utf-8"))
                if isinstance(obj, dict):
                    return ViewerPersist(path=path, data=obj)
            except (OSError, ValueError):
                pass
        return ViewerPersist(path=path, data={})

    def save(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(self.data, indent=2), encoding="utf-8")

    @staticmethod
    def key(scene_name: str) -> str:
        return f"camera::{scene_name}"

    def get_camera(self, scene_name: str) -> Optional[Dict[str, Any]]:
        v = self.data.get(self.key(scene_name))
        return v if isinstance(v, dict) else None

    def set_camera(self, scene_name: str, cam_state: Dict[str, Any]) -> None:
        self.data[self.key(scene_name)] = cam_state

    def get_last_motion(self) -> Optional[Path]:
        v = self.data.get("last_motion_csv")
        return Path(v) if isinstance(v, str) and v else None

    def set_last_motion(self, path: Path) -> None:
        self.data["last_motion_csv"] = str(path)
