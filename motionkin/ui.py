from __future__ import annotations

import argparse
import logging
import traceback
import tkinter as tk
from dataclasses import replace
from pathlib import Path
from tkinter import filedialog, ttk
from typing import Optional

from .config import AppConfig, load_config
from .scene.nodes import SceneNode, capture_rest_pose, index_nodes_by_name
from .scene.rig_config import build_scene_from_rig, demo_scene, load_rig_config
from .viewer.window import ViewerWindow


def _setup_logger(log_path: Path) -> logging.Logger:
    log_path.parent.mkdir(parents=True, exist_ok=True)
    logger = logging.getLogger("motionkin")
    logger.setLevel(logging.INFO)
    if not logger.handlers:
        fh = logging.FileHandler(log_path, encoding="utf-8")
        fh.setLevel(logging.INFO)
        fmt = logging.Formatter("%(asctime)s %(levelname)s %(message)s")
        fh.setFormatter(fmt)
        logger.addHandler(fh)
    return logger


class App(tk.Tk):
    BASE_GEOM = "720x420"

    def __init__(self, cfg: AppConfig) -> None:
        super().__init__()
        self.title("Motion Timeline Viewer")
        self.geometry(self.BASE_GEOM)

        self.cfg = cfg
        self.logger = _setup_logger(self.cfg.log_path)

        self.scene, self.scene_name = self._load_scene()
        # rest pose is taken once, before any viewer animates the shared scene
        self.rest = capture_rest_pose(index_nodes_by_name(self.scene))
        self.viewer: Optional[ViewerWindow] = None

        # menu
        menubar = tk.Menu(self)
        self.config(menu=menubar)

        file_menu = tk.Menu(menubar, tearoff=0)
        file_menu.add_command(label="Open Viewer", command=self._open_viewer)
        file_menu.add_command(label="Load Motion CSV...", command=self._menu_load_motion)
        file_menu.add_separator()
        file_menu.add_command(label="Quit", command=self.destroy)
        menubar.add_cascade(label="File", menu=file_menu)

        btns = ttk.Frame(self)
        btns.pack(fill="x", padx=10, pady=10)
        ttk.Button(btns, text="Open Viewer", command=self._open_viewer).pack(side="left")
        ttk.Button(btns, text="Load Motion CSV", command=self._menu_load_motion).pack(side="left", padx=(10, 0))

        # status
        self.status_var = tk.StringVar(value="Ready.")
        ttk.Label(self, textvariable=self.status_var, anchor="w").pack(fill="x", padx=10, pady=(0, 6))

        # info panel
        info_frame = ttk.LabelFrame(self, text="Output / Errors (copy-paste friendly)")
        info_frame.pack(fill="both", expand=True, padx=10, pady=10)

        self.info_text = tk.Text(info_frame, wrap="word")
        self.info_text.pack(fill="both", expand=True, padx=8, pady=8)

        self._write_info(f"Scene: {self.scene_name}")
        names = [n.name for n in self.scene.traverse() if n is not self.scene]
        self._write_info(f"Nodes ({len(names)}): {', '.join(names)}")

        self._open_viewer()
        if self.cfg.motion_csv_path is not None:
            self._load_motion(self.cfg.motion_csv_path)

    def _load_scene(self) -> tuple[SceneNode, str]:
        if self.cfg.rig_config_path is not None:
            rig = load_rig_config(self.cfg.rig_config_path, logger=self.logger)
            if rig is not None:
                return build_scene_from_rig(rig, logger=self.logger), self.cfg.rig_config_path.stem
        self.logger.info("No rig config; using demo scene")
        return demo_scene(), "demo"

    def _open_viewer(self) -> None:
        if self.viewer is not None and self.viewer.winfo_exists():
            self.viewer.lift()
            return
        try:
            self.viewer = ViewerWindow(
                self,
                cfg=self.cfg,
                scene=self.scene,
                scene_name=self.scene_name,
                rest=self.rest,
                logger=self.logger,
            )
        except Exception as e:
            self.viewer = None
            self.logger.exception("Viewer open failed")
            self._write_info(f"Viewer failed:\n{e!r}\n{traceback.format_exc()}")

    def _menu_load_motion(self) -> None:
        chosen = filedialog.askopenfilename(
            parent=self,
            title="Load Motion CSV",
            filetypes=[("Motion CSV", "*.csv"), ("All files", "*.*")],
        )
        if chosen:
            self._load_motion(Path(chosen))

    def _load_motion(self, path: Path) -> None:
        self._open_viewer()
        if self.viewer is None:
            return
        self._set_status(f"Loading {path} ...")
        if self.viewer.load_motion(path):
            tl = self.viewer.player.timeline
            self._write_info(
                f"Loaded {path.name}: duration={tl.duration_ms:g}ms tracks={tl.track_count} "
                f"targets={', '.join(tl.targets) or '(none)'}"
            )
            self._set_status("Ready.")
        else:
            self._write_info(f"Failed to load motion: {path} (see log)")
            self._set_status("Load failed.")

    def _set_status(self, s: str) -> None:
        self.status_var.set(s)
        self.update_idletasks()

    def _write_info(self, s: str, append: bool = True) -> None:
        if not append:
            self.info_text.delete("1.0", "end")
        self.info_text.insert("end", s.rstrip() + "\n")
        self.info_text.see("end")


def run_app(argv: Optional[list[str]] = None) -> None:
    ap = argparse.ArgumentParser(description="Play long-form motion CSV onto a node hierarchy.")
    ap.add_argument("--config", type=Path, default=Path("config.json"))
    ap.add_argument("--rig", type=Path, default=None, help="rig config JSON (overrides config)")
    ap.add_argument("--motion", type=Path, default=None, help="motion CSV to load at start")
    args = ap.parse_args(argv)

    cfg = load_config(args.config)
    if args.rig is not None:
        cfg = replace(cfg, rig_config_path=args.rig)
    if args.motion is not None:
        cfg = replace(cfg, motion_csv_path=args.motion)

    app = App(cfg)
    app.mainloop()
