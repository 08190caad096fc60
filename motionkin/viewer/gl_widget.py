from __future__ import annotations

import math
import tkinter as tk
from pathlib import Path
from typing import Any, Dict, Iterable, Optional, Tuple

from PIL import Image


# Embed OpenGL in Tk via pyopengltk (Windows-friendly)
try:
    from pyopengltk import OpenGLFrame
except Exception as e:  # pragma: no cover
    OpenGLFrame = None  # type: ignore[assignment]
    _OPENGLFRAME_IMPORT_ERR = e
else:
    _OPENGLFRAME_IMPORT_ERR = None

try:
    from OpenGL.GL import (
        GL_BACK,
        GL_COLOR_BUFFER_BIT,
        GL_DEPTH_BUFFER_BIT,
        GL_DEPTH_TEST,
        GL_LINES,
        GL_LINE_SMOOTH,
        GL_LINE_SMOOTH_HINT,
        GL_MODELVIEW,
        GL_NICEST,
        GL_PACK_ALIGNMENT,
        GL_POINTS,
        GL_PROJECTION,
        GL_RGBA,
        GL_UNSIGNED_BYTE,
        glBegin,
        glClear,
        glClearColor,
        glColor3f,
        glDisable,
        glEnable,
        glEnd,
        glFlush,
        glFrustum,
        glHint,
        glLineWidth,
        glLoadIdentity,
        glMatrixMode,
        glPixelStorei,
        glPointSize,
        glReadBuffer,
        glReadPixels,
        glRotatef,
        glTranslatef,
        glVertex3f,
        glViewport,
    )
except Exception as e:  # pragma: no cover
    _PYOPENGL_IMPORT_ERR = e
else:
    _PYOPENGL_IMPORT_ERR = None


Vec3 = Tuple[float, float, float]
Quat = Tuple[float, float, float, float]  # (w,x,y,z)

DEFAULT_DIST = 8.0
MIN_DIST = 0.25


class GLViewerFrame(tk.Frame):
    """
    Wrapper frame that either hosts the real OpenGL widget (OpenGLFrame),
    or shows a helpful error message if deps are missing.

    Draws a ground grid, world axes and the node hierarchy (parent -> child
    lines, a point per node; animated targets in orange).

    Orbit camera (arcball):
      - RMB drag: orbit (arcball, continuous spin)
      - Shift + MMB drag: pan center
      - Wheel: dolly
      - Ctrl+R: reset camera
    """

    # -------- math helpers --------
    @staticmethod
    def _clamp(v: float, lo: float, hi: float) -> float:
        return lo if v < lo else hi if v > hi else v

    @staticmethod
    def _normalize(v: Vec3) -> Vec3:
        x, y, z = v
        n = math.sqrt(x * x + y * y + z * z) or 1.0
        return (x / n, y / n, z / n)

    @staticmethod
    def _cross(a: Vec3, b: Vec3) -> Vec3:
        ax, ay, az = a
        bx, by, bz = b
        return (ay * bz - az * by, az * bx - ax * bz, ax * by - ay * bx)

    @staticmethod
    def _dot(a: Vec3, b: Vec3) -> float:
        return a[0] * b[0] + a[1] * b[1] + a[2] * b[2]

    # -------- quaternion helpers --------
    @staticmethod
    def _quat_mul(q1: Quat, q2: Quat) -> Quat:
        w1, x1, y1, z1 = q1
        w2, x2, y2, z2 = q2
        return (
            w1 * w2 - x1 * x2 - y1 * y2 - z1 * z2,
            w1 * x2 + x1 * w2 + y1 * z2 - z1 * y2,
            w1 * y2 - x1 * z2 + y1 * w2 + z1 * x2,
            w1 * z2 + x1 * y2 - y1 * x2 + z1 * w2,
        )

    @staticmethod
    def _quat_conj(q: Quat) -> Quat:
        w, x, y, z = q
        return (w, -x, -y, -z)

    @staticmethod
    def _quat_norm(q: Quat) -> Quat:
        w, x, y, z = q
        n = math.sqrt(w * w + x * x + y * y + z * z) or 1.0
        return (w / n, x / n, y / n, z / n)

    @staticmethod
    def _quat_from_axis_angle(axis: Vec3, angle_rad: float) -> Quat:
        ax, ay, az = GLViewerFrame._normalize(axis)
        s = math.sin(angle_rad * 0.5)
        return (math.cos(angle_rad * 0.5), ax * s, ay * s, az * s)

    @staticmethod
    def _quat_to_axis_angle(q: Quat) -> Tuple[Vec3, float]:
        # Returns (axis, angle_deg) for glRotatef
        w, x, y, z = GLViewerFrame._quat_norm(q)
        w = GLViewerFrame._clamp(w, -1.0, 1.0)
        angle = 2.0 * math.acos(w)
        s = math.sqrt(max(0.0, 1.0 - w * w))
        if s < 1e-8:
            return ((0.0, 1.0, 0.0), 0.0)
        return ((x / s, y / s, z / s), math.degrees(angle))

    @staticmethod
    def _quat_rotate_vec(q: Quat, v: Vec3) -> Vec3:
        w, x, y, z = GLViewerFrame._quat_norm(q)
        vx, vy, vz = v

        # t = 2 * cross(q_vec, v)
        tx = 2.0 * (y * vz - z * vy)
        ty = 2.0 * (z * vx - x * vz)
        tz = 2.0 * (x * vy - y * vx)

        # v' = v + w*t + cross(q_vec, t)
        return (
            vx + w * tx + (y * tz - z * ty),
            vy + w * ty + (z * tx - x * tz),
            vz + w * tz + (x * ty - y * tx),
        )

    # -------- arcball mapping --------
    @staticmethod
    def _arcball_point(x: int, y: int, w: int, h: int) -> Vec3:
        if w <= 1 or h <= 1:
            return (0.0, 0.0, 1.0)

        nx = (2.0 * x - w) / float(w)
        ny = (h - 2.0 * y) / float(h)  # y up
        r2 = nx * nx + ny * ny
        if r2 <= 1.0:
            return (nx, ny, math.sqrt(1.0 - r2))

        inv_len = 1.0 / math.sqrt(r2)
        return (nx * inv_len, ny * inv_len, 0.0)

    @staticmethod
    def _default_rot() -> Quat:
        q_yaw = GLViewerFrame._quat_from_axis_angle((0.0, 1.0, 0.0), math.radians(25.0))
        q_pitch = GLViewerFrame._quat_from_axis_angle((1.0, 0.0, 0.0), math.radians(-15.0))
        return GLViewerFrame._quat_norm(GLViewerFrame._quat_mul(q_yaw, q_pitch))

    def __init__(self, master: tk.Misc, **kwargs) -> None:
        super().__init__(master, **kwargs)

        if _PYOPENGL_IMPORT_ERR is not None or OpenGLFrame is None:
            msg = "OpenGL viewer unavailable.\n\n"
            if _PYOPENGL_IMPORT_ERR is not None:
                msg += f"PyOpenGL import error: {_PYOPENGL_IMPORT_ERR!r}\n\n"
            if OpenGLFrame is None:
                msg += f"pyopengltk import error: {_OPENGLFRAME_IMPORT_ERR!r}\n\n"
            msg += "Install:\n  pip install PyOpenGL pyopengltk\n"
            tk.Label(self, text=msg, justify="left").pack(fill="both", expand=True, padx=10, pady=10)
            self._impl = None
            return

        class _Impl(OpenGLFrame):
            def __init__(self_inner, *args, **kwargs) -> None:
                super().__init__(*args, **kwargs)

                # camera
                self_inner._cam_center: Vec3 = (0.0, 1.0, 0.0)
                self_inner._cam_rot_q: Quat = GLViewerFrame._default_rot()
                self_inner._cam_dist = DEFAULT_DIST
                self_inner._cam_default: Dict[str, Any] = {}

                # drag bookkeeping
                self_inner._drag_mode = ""  # "orbit" | "pan" | ""
                self_inner._drag_last_xy = (0, 0)
                self_inner._arcball_last: Vec3 = (0.0, 0.0, 1.0)

                # scene snapshot
                self_inner._positions: Dict[str, Vec3] = {}
                self_inner._links: list[tuple[str, str]] = []
                self_inner._active: set[str] = set()
                self_inner._show_grid = True

            def initgl(self_inner) -> None:
                glClearColor(0.0, 0.0, 0.0, 1.0)
                glEnable(GL_LINE_SMOOTH)
                glHint(GL_LINE_SMOOTH_HINT, GL_NICEST)
                glDisable(GL_DEPTH_TEST)

            def request_redraw(self_inner) -> None:
                if hasattr(self_inner, "_display"):
                    self_inner.after_idle(self_inner._display)  # type: ignore[attr-defined]
                elif hasattr(self_inner, "tkRedraw"):
                    self_inner.after_idle(self_inner.tkRedraw)  # type: ignore[attr-defined]
                else:
                    self_inner.after_idle(self_inner.redraw)

            # -------- camera API --------
            def get_camera_state(self_inner) -> Dict[str, Any]:
                cx, cy, cz = self_inner._cam_center
                qw, qx, qy, qz = GLViewerFrame._quat_norm(self_inner._cam_rot_q)
                return {
                    "center": [float(cx), float(cy), float(cz)],
                    "dist": float(self_inner._cam_dist),
                    "rot_q": [float(qw), float(qx), float(qy), float(qz)],
                }

            def set_camera_state(self_inner, state: Dict[str, Any]) -> None:
                c = state.get("center") or [0.0, 0.0, 0.0]
                if isinstance(c, (list, tuple)) and len(c) >= 3:
                    self_inner._cam_center = (float(c[0]), float(c[1]), float(c[2]))
                if "dist" in state:
                    self_inner._cam_dist = max(MIN_DIST, float(state["dist"]))
                q = state.get("rot_q")
                if isinstance(q, (list, tuple)) and len(q) >= 4:
                    self_inner._cam_rot_q = GLViewerFrame._quat_norm(
                        (float(q[0]), float(q[1]), float(q[2]), float(q[3]))
                    )

            def snapshot_default_camera(self_inner) -> None:
                if not self_inner._cam_default:
                    self_inner._cam_default = self_inner.get_camera_state()

            def reset_camera(self_inner) -> None:
                if self_inner._cam_default:
                    self_inner.set_camera_state(dict(self_inner._cam_default))
                else:
                    self_inner._cam_center = (0.0, 1.0, 0.0)
                    self_inner._cam_rot_q = GLViewerFrame._default_rot()
                    self_inner._cam_dist = DEFAULT_DIST
                self_inner.request_redraw()

            def fit_camera(self_inner, positions: Iterable[Vec3]) -> None:
                pts = list(positions)
                if not pts:
                    return
                xs = [p[0] for p in pts]
                ys = [p[1] for p in pts]
                zs = [p[2] for p in pts]
                self_inner._cam_center = (
                    (min(xs) + max(xs)) * 0.5,
                    (min(ys) + max(ys)) * 0.5,
                    (min(zs) + max(zs)) * 0.5,
                )
                span = max(max(xs) - min(xs), max(ys) - min(ys), max(zs) - min(zs))
                self_inner._cam_dist = max(DEFAULT_DIST * 0.5, float(span) * 2.5)
                self_inner._cam_rot_q = GLViewerFrame._default_rot()
                self_inner.request_redraw()

            # -------- input handling --------
            def _begin_orbit(self_inner, e: tk.Event) -> None:
                self_inner._drag_mode = "orbit"
                self_inner._drag_last_xy = (int(e.x), int(e.y))
                w = max(1, int(self_inner.winfo_width()))
                h = max(1, int(self_inner.winfo_height()))
                self_inner._arcball_last = GLViewerFrame._arcball_point(int(e.x), int(e.y), w, h)

            def _begin_pan(self_inner, e: tk.Event) -> None:
                self_inner._drag_mode = "pan"
                self_inner._drag_last_xy = (int(e.x), int(e.y))

            def _end_drag(self_inner, _e: tk.Event) -> None:
                self_inner._drag_mode = ""

            def _on_drag(self_inner, e: tk.Event) -> None:
                mode = self_inner._drag_mode
                if not mode:
                    return
                x, y = int(e.x), int(e.y)
                lx, ly = self_inner._drag_last_xy
                dx = x - lx
                dy = y - ly
                self_inner._drag_last_xy = (x, y)

                if mode == "orbit":
                    w = max(1, int(self_inner.winfo_width()))
                    h = max(1, int(self_inner.winfo_height()))
                    p0 = self_inner._arcball_last
                    p1 = GLViewerFrame._arcball_point(x, y, w, h)
                    self_inner._arcball_last = p1

                    axis = GLViewerFrame._cross(p0, p1)
                    axis_len = math.sqrt(GLViewerFrame._dot(axis, axis))
                    if axis_len > 1e-8:
                        dot = GLViewerFrame._clamp(GLViewerFrame._dot(p0, p1), -1.0, 1.0)
                        dq = GLViewerFrame._quat_from_axis_angle(axis, -math.acos(dot))
                        self_inner._cam_rot_q = GLViewerFrame._quat_norm(
                            GLViewerFrame._quat_mul(dq, self_inner._cam_rot_q)
                        )
                        self_inner.request_redraw()
                    return

                if mode == "pan":
                    pan_scale = float(self_inner._cam_dist) * 0.0025

                    q = GLViewerFrame._quat_conj(self_inner._cam_rot_q)
                    right = GLViewerFrame._quat_rotate_vec(q, (1.0, 0.0, 0.0))
                    up = GLViewerFrame._quat_rotate_vec(q, (0.0, 1.0, 0.0))

                    cx, cy, cz = self_inner._cam_center
                    cx += (up[0] * dy - right[0] * dx) * pan_scale
                    cy += (up[1] * dy - right[1] * dx) * pan_scale
                    cz += (up[2] * dy - right[2] * dx) * pan_scale
                    self_inner._cam_center = (cx, cy, cz)
                    self_inner.request_redraw()

            def _on_wheel(self_inner, e: tk.Event) -> None:
                delta = getattr(e, "delta", 0) or 0
                step = 0.10
                if delta > 0:
                    self_inner._cam_dist *= (1.0 - step)
                elif delta < 0:
                    self_inner._cam_dist *= (1.0 + step)
                self_inner._cam_dist = max(MIN_DIST, float(self_inner._cam_dist))
                self_inner.request_redraw()

            def _on_reset_key(self_inner, _e: tk.Event) -> None:
                self_inner.reset_camera()

            # -------- drawing --------
            def _draw_helpers(self_inner) -> None:
                glLineWidth(1.0)
                glBegin(GL_LINES)
                if self_inner._show_grid:
                    glColor3f(0.16, 0.16, 0.16)
                    for i in range(-5, 6):
                        glVertex3f(float(i), 0.0, -5.0)
                        glVertex3f(float(i), 0.0, 5.0)
                        glVertex3f(-5.0, 0.0, float(i))
                        glVertex3f(5.0, 0.0, float(i))
                # axes
                glColor3f(1.0, 0.2, 0.2)
                glVertex3f(0.0, 0.01, 0.0)
                glVertex3f(1.0, 0.01, 0.0)
                glColor3f(0.2, 1.0, 0.2)
                glVertex3f(0.0, 0.01, 0.0)
                glVertex3f(0.0, 1.01, 0.0)
                glColor3f(0.3, 0.5, 1.0)
                glVertex3f(0.0, 0.01, 0.0)
                glVertex3f(0.0, 0.01, 1.0)
                glEnd()

            def _draw_nodes(self_inner) -> None:
                pos = self_inner._positions
                glLineWidth(2.0)
                glBegin(GL_LINES)
                glColor3f(0.7, 0.7, 0.9)
                for parent, child in self_inner._links:
                    p0 = pos.get(parent)
                    p1 = pos.get(child)
                    if p0 is None or p1 is None:
                        continue
                    glVertex3f(float(p0[0]), float(p0[1]), float(p0[2]))
                    glVertex3f(float(p1[0]), float(p1[1]), float(p1[2]))
                glEnd()

                glPointSize(7.0)
                glBegin(GL_POINTS)
                for name, p in pos.items():
                    if name in self_inner._active:
                        glColor3f(1.0, 0.6, 0.15)
                    else:
                        glColor3f(0.85, 0.85, 0.85)
                    glVertex3f(float(p[0]), float(p[1]), float(p[2]))
                glEnd()

            def redraw(self_inner) -> None:
                w = int(self_inner.winfo_width())
                h = int(self_inner.winfo_height())
                if w <= 1 or h <= 1:
                    return
                glViewport(0, 0, w, h)

                glMatrixMode(GL_PROJECTION)
                glLoadIdentity()
                aspect = float(w) / float(h)
                fov_deg = 60.0
                z_near = 0.1
                z_far = 2000.0
                top = math.tan(math.radians(fov_deg * 0.5)) * z_near
                right = top * aspect
                glFrustum(-right, right, -top, top, z_near, z_far)

                glMatrixMode(GL_MODELVIEW)
                glLoadIdentity()
                glClear(GL_COLOR_BUFFER_BIT | GL_DEPTH_BUFFER_BIT)

                cx, cy, cz = self_inner._cam_center
                glTranslatef(0.0, 0.0, -float(self_inner._cam_dist))
                axis, angle_deg = GLViewerFrame._quat_to_axis_angle(self_inner._cam_rot_q)
                if angle_deg != 0.0:
                    glRotatef(-float(angle_deg), float(axis[0]), float(axis[1]), float(axis[2]))
                glTranslatef(-float(cx), -float(cy), -float(cz))

                self_inner._draw_helpers()
                self_inner._draw_nodes()
                glFlush()

            def read_frame(self_inner) -> Image.Image:
                if hasattr(self_inner, "tkMakeCurrent"):
                    self_inner.tkMakeCurrent()  # type: ignore[attr-defined]
                self_inner.redraw()
                w = max(1, int(self_inner.winfo_width()))
                h = max(1, int(self_inner.winfo_height()))
                glPixelStorei(GL_PACK_ALIGNMENT, 1)
                glReadBuffer(GL_BACK)
                data = glReadPixels(0, 0, w, h, GL_RGBA, GL_UNSIGNED_BYTE)
                img = Image.frombytes("RGBA", (w, h), bytes(data))
                return img.transpose(Image.Transpose.FLIP_TOP_BOTTOM)  # GL rows are bottom-up

        self._impl = _Impl(self, width=800, height=560)
        self._impl.pack(fill="both", expand=True)
        self._impl.animate = 0

        # mouse bindings (orbit/pan/zoom)
        self._impl.bind("<ButtonPress-3>", self._impl._begin_orbit)
        self._impl.bind("<B3-Motion>", self._impl._on_drag)
        self._impl.bind("<ButtonRelease-3>", self._impl._end_drag)

        # Shift + MMB pan
        self._impl.bind("<Shift-ButtonPress-2>", self._impl._begin_pan)
        self._impl.bind("<Shift-B2-Motion>", self._impl._on_drag)
        self._impl.bind("<ButtonRelease-2>", self._impl._end_drag)

        # wheel
        self._impl.bind("<MouseWheel>", self._impl._on_wheel)
        self._impl.bind("<Button-4>", lambda _e: self._impl._on_wheel(type("E", (), {"delta": 120})()))
        self._impl.bind("<Button-5>", lambda _e: self._impl._on_wheel(type("E", (), {"delta": -120})()))

        # reset
        self._impl.bind("<Control-r>", self._impl._on_reset_key)
        self._impl.bind("<Control-R>", self._impl._on_reset_key)

    @property
    def available(self) -> bool:
        return self._impl is not None

    # ---- public camera helpers ----
    def get_camera_state(self) -> Optional[Dict[str, Any]]:
        if self._impl is None:
            return None
        return self._impl.get_camera_state()

    def set_camera_state(self, state: Dict[str, Any]) -> None:
        if self._impl is None:
            return
        self._impl.set_camera_state(state)
        self._impl.request_redraw()

    def reset_camera(self) -> None:
        if self._impl is None:
            return
        self._impl.reset_camera()

    def snapshot_default_camera(self) -> None:
        if self._impl is None:
            return
        self._impl.snapshot_default_camera()

    def fit_camera(self, positions: Iterable[Vec3]) -> None:
        if self._impl is None:
            return
        self._impl.fit_camera(positions)

    # ---- scene ----
    def set_scene(
        self,
        positions: Dict[str, Vec3],
        links: list[tuple[str, str]],
        active: Optional[set[str]] = None,
    ) -> None:
        if self._impl is None:
            return
        self._impl._positions = positions
        self._impl._links = links
        self._impl._active = active or set()
        self._impl.request_redraw()

    def set_show_grid(self, show: bool) -> None:
        if self._impl is None:
            return
        self._impl._show_grid = bool(show)
        self._impl.request_redraw()

    def save_frame(self, path: Path) -> bool:
        """Write the current view to an image file. False when GL is unavailable."""
        if self._impl is None:
            return False
        img = self._impl.read_frame()
        path.parent.mkdir(parents=True, exist_ok=True)
        if path.suffix.lower() in (".jpg", ".jpeg"):
            img = img.convert("RGB")
        img.save(path)
        return True
