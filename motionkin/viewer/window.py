# motionkin/viewer/window.py
from __future__ import annotations

import time
import tkinter as tk
from pathlib import Path
from tkinter import filedialog, ttk
from typing import Dict, Optional

from ..config import AppConfig
from ..motion.errors import MotionError
from ..motion.player import MotionPlayer
from ..motion.types import PlaybackSnapshot
from ..scene.nodes import RestPose, SceneNode, capture_rest_pose, index_nodes_by_name, reset_to_rest
from ..scene.transforms import world_positions
from .gl_widget import GLViewerFrame
from .view_persistence import ViewerPersist, default_persistence_path


class ViewerWindow(tk.Toplevel):
    """
    Motion viewer:
      - node hierarchy render
      - play/pause/stop, speed, loop, scrub
      - load motion CSV, save frame
    """

    SPEED_MIN = 0.1
    SPEED_MAX = 5.0

    def __init__(
        self,
        master: tk.Misc,
        *,
        cfg: AppConfig,
        scene: SceneNode,
        scene_name: str,
        rest: Optional[Dict[str, RestPose]] = None,
        logger=None,
    ) -> None:
        super().__init__(master)
        self.title(f"Motion Viewer - {scene_name}")
        self.geometry("980x700")

        self.cfg = cfg
        self.scene = scene
        self.scene_name = scene_name
        self.logger = logger
        self.tick_ms = max(1, int(cfg.tick_ms))

        self._index: Dict[str, SceneNode] = index_nodes_by_name(scene)
        # rest is captured by the owner of the scene; nodes may already be animated here
        self._rest: Dict[str, RestPose] = rest if rest is not None else capture_rest_pose(self._index)
        self._links = [
            (n.parent.name, n.name)
            for n in scene.traverse()
            if n.parent is not None and n.parent.name and n.name and n.parent is not scene
        ]

        self._persist = ViewerPersist.load(cfg.persistence_path or default_persistence_path(cfg.rig_config_path))
        self._cam_init_done = False
        self._last_wall: Optional[float] = None
        self._after_id: Optional[str] = None
        self._syncing = False

        self.player = MotionPlayer(
            resolver=self._index,
            loop=cfg.default_loop,
            speed=cfg.default_speed,
            delimiter=cfg.delimiter,
            comment_prefix=cfg.comment_prefix,
            logger=logger,
        )

        # ---- UI vars ----
        self.loop_var = tk.BooleanVar(value=cfg.default_loop)
        self.speed_var = tk.DoubleVar(value=cfg.default_speed)
        self.scrub_var = tk.DoubleVar(value=0.0)
        self.grid_var = tk.BooleanVar(value=True)
        self.status_var = tk.StringVar(value="No motion loaded.")

        # layout
        top = ttk.Frame(self)
        top.pack(fill="both", expand=True)

        self.gl = GLViewerFrame(top)
        self.gl.pack(fill="both", expand=True, padx=8, pady=8)

        controls = ttk.Frame(top)
        controls.pack(fill="x", padx=8, pady=(0, 4))

        ttk.Button(controls, text="Load CSV", command=self._on_load_csv).pack(side="left")
        ttk.Button(controls, text="Play", command=self.player.play).pack(side="left", padx=(12, 0))
        ttk.Button(controls, text="Pause", command=self.player.pause).pack(side="left", padx=(6, 0))
        ttk.Button(controls, text="Stop", command=self.player.stop).pack(side="left", padx=(6, 0))

        ttk.Checkbutton(controls, text="Loop", variable=self.loop_var, command=self._on_loop).pack(
            side="left", padx=(12, 0)
        )

        ttk.Label(controls, text="Speed").pack(side="left", padx=(12, 0))
        self.speed_spin = ttk.Spinbox(
            controls,
            from_=self.SPEED_MIN,
            to=self.SPEED_MAX,
            increment=0.1,
            width=5,
            textvariable=self.speed_var,
            command=self._on_speed,
        )
        self.speed_spin.pack(side="left", padx=(4, 0))
        # also handle typing + enter
        self.speed_spin.bind("<Return>", lambda _e: self._on_speed())
        self.speed_spin.bind("<FocusOut>", lambda _e: self._on_speed())

        ttk.Checkbutton(controls, text="Grid", variable=self.grid_var, command=self._on_grid).pack(
            side="left", padx=(12, 0)
        )
        ttk.Button(controls, text="Save Frame", command=self._on_save_frame).pack(side="left", padx=(12, 0))

        self.time_lbl = ttk.Label(controls, text="t=0ms")
        self.time_lbl.pack(side="right")

        scrub_row = ttk.Frame(top)
        scrub_row.pack(fill="x", padx=8, pady=(0, 4))
        ttk.Label(scrub_row, text="Scrub").pack(side="left")
        self.scrub = ttk.Scale(
            scrub_row, from_=0.0, to=1.0, orient="horizontal", variable=self.scrub_var, command=self._on_scrub
        )
        self.scrub.pack(side="left", fill="x", expand=True, padx=(6, 0))

        ttk.Label(self, textvariable=self.status_var, anchor="w").pack(fill="x", padx=10, pady=(0, 6))

        # Ctrl+R camera reset, space toggles play
        self.bind("<Control-r>", lambda _e: self.gl.reset_camera())
        self.bind("<Control-R>", lambda _e: self.gl.reset_camera())
        self.bind("<space>", lambda _e: self._toggle_play())

        self.player.add_listener(self._on_state)
        self._render_current()

        self.protocol("WM_DELETE_WINDOW", self._on_close)
        self._schedule_tick()

    # ---- motion loading ----
    def load_motion(self, path: Path) -> bool:
        try:
            compiled = self.player.read_timeline_file(path)
        except MotionError as e:
            if self.logger:
                self.logger.exception("Motion load failed")
            self.status_var.set(f"Load failed: {e}")
            return False

        # scene and player change together, only once the new timeline is built
        if self.cfg.reset_to_rest_on_load:
            reset_to_rest(self._index, self._rest)
        self.player.load_compiled(compiled)

        missing = [t for t in compiled.targets if t not in self._index]
        msg = f"{path.name}: {compiled.track_count} tracks, {compiled.duration_ms:g} ms"
        if missing:
            msg += f" | unresolved targets: {', '.join(missing)}"
            if self.logger:
                self.logger.warning("[viewer] targets not in scene: %s", ", ".join(missing))
        self.status_var.set(msg)

        self._persist.set_last_motion(path)
        return True

    def _on_load_csv(self) -> None:
        initial = self._persist.get_last_motion()
        chosen = filedialog.askopenfilename(
            parent=self,
            title="Load Motion CSV",
            initialdir=str(initial.parent) if initial else None,
            filetypes=[("Motion CSV", "*.csv"), ("All files", "*.*")],
        )
        if chosen:
            self.load_motion(Path(chosen))

    # ---- controls ----
    def _toggle_play(self) -> None:
        if self.player.playing:
            self.player.pause()
        else:
            self.player.play()

    def _on_loop(self) -> None:
        if self._syncing:
            return
        self.player.set_loop(bool(self.loop_var.get()))

    def _on_speed(self) -> None:
        if self._syncing:
            return
        try:
            v = float(self.speed_var.get())
        except (tk.TclError, ValueError):
            v = self.player.speed
        v = max(self.SPEED_MIN, min(self.SPEED_MAX, v))
        self.player.set_speed(v)

    def _on_scrub(self, _value: str) -> None:
        if self._syncing:
            return
        self.player.set_progress(float(self.scrub_var.get()))

    def _on_grid(self) -> None:
        self.gl.set_show_grid(bool(self.grid_var.get()))

    def _on_save_frame(self) -> None:
        chosen = filedialog.asksaveasfilename(
            parent=self,
            title="Save Frame",
            defaultextension=".png",
            filetypes=[("PNG image", "*.png"), ("JPEG image", "*.jpg")],
        )
        if not chosen:
            return
        try:
            ok = self.gl.save_frame(Path(chosen))
        except Exception as e:
            if self.logger:
                self.logger.exception("Save frame failed")
            self.status_var.set(f"Save frame failed: {e!r}")
            return
        self.status_var.set(f"Saved {chosen}" if ok else "OpenGL unavailable; nothing saved.")

    # ---- engine -> UI ----
    def _on_state(self, snap: PlaybackSnapshot) -> None:
        self._syncing = True
        try:
            self.scrub_var.set(snap.progress)
            if bool(self.loop_var.get()) != snap.loop:
                self.loop_var.set(snap.loop)
        finally:
            self._syncing = False
        self._render_current()

    def _render_current(self) -> None:
        positions = world_positions(self.scene)
        positions.pop(self.scene.name, None)

        if not self._cam_init_done:
            restored = self._persist.get_camera(self.scene_name)
            if restored:
                self.gl.set_camera_state(restored)
            else:
                self.gl.fit_camera(positions.values())
            self.gl.snapshot_default_camera()
            self._cam_init_done = True

        self.gl.set_scene(positions, self._links, active=set(self.player.last_pose))

        s = self.player.get_state()
        state = "playing" if s.playing else "paused"
        self.time_lbl.config(text=f"t={s.time_ms:.0f}ms / {s.duration_ms:.0f}ms ({state})")

    # ---- frame driver ----
    def _schedule_tick(self) -> None:
        self._after_id = self.after(self.tick_ms, self._tick)

    def _tick(self) -> None:
        now = time.perf_counter()
        dt_ms = 0.0 if self._last_wall is None else (now - self._last_wall) * 1000.0
        self._last_wall = now
        self.player.tick(dt_ms)
        self._schedule_tick()

    def _on_close(self) -> None:
        if self._after_id is not None:
            self.after_cancel(self._after_id)
            self._after_id = None
        self.player.remove_listener(self._on_state)
        self.player.pause()

        # save camera state
        try:
            cam = self.gl.get_camera_state()
            if cam:
                self._persist.set_camera(self.scene_name, cam)
            self._persist.save()
        except OSError as e:
            if self.logger:
                self.logger.warning("[viewer] could not save viewer persistence: %r", e)

        self.destroy()
