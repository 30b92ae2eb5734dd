"""Body-surface pressure overlay: Cp-coloured patches, pulsing zone markers and vortex-core traces."""

import logging
import threading

import numpy as np
from scipy import signal

from airflow_core import flow_velocity_field, cp_to_color, cp_to_color_array
from aero_profiles import DEFAULT_CAR_TYPE, get_surface_layout, stall_zone_marker
from effect_base import Effect, speed_factor
from scene_graph import Group, SceneBackend

logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())


PATCH_SEGMENTS = 8
PATCH_OPACITY = 0.55
PATCH_FLOW_SCALE = 1.2
PATCH_FLOW_OFFSET = 0.01
# Minimum speed change (speed units) before patch colours are recomputed
COLOR_REFRESH_THRESHOLD = 5.0
STALL_NOISE = 0.05

MARKER_SCALE = 0.25
MARKER_OPACITY = 0.55
MARKER_PULSE_RATE = 2.0

CORE_PTS = 60
CORE_RADIUS = 0.28
CORE_TURNS = 3
CORE_LENGTH = 1.6
CORE_OPACITY = 0.65
CORE_SPIN = 1.2


def patch_pressure(local, width, height, sf):
    """
    Cp at patch vertices from the top-view cylinder flow.

    Vertex coordinates are scaled to the patch half extents, mapped into
    flow coordinates and evaluated at speed factor ``sf``; the
    ``-(1 - sf)`` term fades the signature toward freestream as the
    vehicle slows.
    """
    hw = width / 2
    hh = height / 2
    xi = local[:, 0] / hw if hw > 0 else np.zeros(len(local))
    eta = local[:, 1] / hh if hh > 0 else np.zeros(len(local))
    vxi, veta = flow_velocity_field(xi * PATCH_FLOW_SCALE + PATCH_FLOW_OFFSET,
                                    eta * PATCH_FLOW_SCALE + PATCH_FLOW_OFFSET)
    return 1.0 - ((vxi * sf)**2 + (veta * sf)**2) - (1.0 - sf)


class SurfacePressureOverlay(Effect):
    """
    Pressure-coefficient overlay painted onto the body surface.

    Patch colours are recomputed lazily: only when the speed has moved more
    than COLOR_REFRESH_THRESHOLD since the last recompute, or after a
    vehicle or wing-stall change. Markers and vortex cores animate every
    frame.

    Parameters
    ----------
    host_group : scene_graph.Group
        Host container; the overlay attaches its own 'cfd' group to it
    backend : scene_graph.SceneBackend, optional
        Primitive factory, defaults to an unbounded in-memory backend
    car_type : str
        Initial vehicle class
    seed : int, optional
        Seed for the stalled-flow noise generator
    """

    def __init__(self, host_group, backend=None, car_type=DEFAULT_CAR_TYPE, seed=None):
        self.host_group = host_group
        self.backend = backend if backend is not None else SceneBackend()
        self.group = Group('cfd')
        self._lock = threading.RLock()
        self._rng = np.random.default_rng(seed)

        self._speed = 0.0
        self._visible = False
        self._type = car_type
        self._wing_stalled = False
        self._speed_dirty = True
        self._last_built_speed = None
        self._built = False
        self.color_refreshes = 0
        self._opacity = {'patches': 0.0, 'markers': 0.0, 'vortex_cores': 0.0}

        self.host_group.add(self.group)
        try:
            self._build()
        except Exception:
            self._dispose_all()
            self.host_group.remove(self.group)
            raise
        self.group.visible = False

    # PUBLIC INTERFACE

    def set_car_type(self, car_type):
        """Rebuild for another vehicle class; on failure the previous type is kept and the overlay stays empty"""
        with self._lock:
            if car_type == self._type and self._built:
                return
            self._dispose_all()
            try:
                self._build(car_type)
            except Exception:
                self._dispose_all()
                self._layout = get_surface_layout(self._type)
                raise
            self._type = car_type
            self.group.visible = self._visible
            self._last_built_speed = None
            self._speed_dirty = True

    def set_speed(self, speed):
        self._speed = max(0.0, float(speed))
        self._speed_dirty = True

    def set_visible(self, visible):
        self._visible = bool(visible)
        self.group.visible = self._visible

    def set_wing_stall(self, stalled):
        with self._lock:
            self._wing_stalled = bool(stalled)
            # force a colour refresh on the next update
            self._last_built_speed = None
            self._speed_dirty = True

    def update(self, dt, t):
        if not self._visible or not self._built:
            return

        with self._lock:
            if not self._built:
                return
            speed = self._speed
            sf = speed_factor(speed)

            if self.needs_color_refresh(speed):
                # a set_speed during the refresh marks the colours dirty again
                self._speed_dirty = False
                try:
                    self._update_patch_colors(sf, speed)
                    self._last_built_speed = speed
                except Exception:
                    self._speed_dirty = True
                    logger.exception("[cfd] patch colour refresh failed")

            for name, step in (('markers', self._update_markers),
                               ('vortex_cores', self._update_vortex_cores)):
                try:
                    step(t, sf)
                except Exception:
                    logger.exception("[cfd] %s update failed", name)

    def dispose(self):
        with self._lock:
            self._dispose_all()
            self.host_group.remove(self.group)
            self._visible = False
            self.group.visible = False

    def needs_color_refresh(self, speed=None):
        if speed is None:
            speed = self._speed
        if not self._speed_dirty:
            return False
        if self._last_built_speed is None:
            return True
        return abs(speed - self._last_built_speed) > COLOR_REFRESH_THRESHOLD

    def opacities(self):
        return dict(self._opacity)

    def metrics(self):
        cps = [cp for cp in self._patch_cp if cp is not None]
        return {
            'color_refreshes': self.color_refreshes,
            'mean_cp': float(np.mean(np.concatenate(cps))) if cps else 0.0,
        }

    @property
    def car_type(self):
        return self._type

    @property
    def speed(self):
        return self._speed

    @property
    def speed_factor(self):
        return speed_factor(self._speed)

    @property
    def visible(self):
        return self._visible

    @property
    def wing_stalled(self):
        return self._wing_stalled

    @property
    def layout(self):
        return self._layout

    @property
    def patches(self):
        return list(self._patches)

    @property
    def markers(self):
        return list(self._markers)

    # BUILD / DISPOSE

    def _dispose_all(self):
        for child in list(self.group.children):
            self.backend.release(child)
            self.group.remove(child)
        self._patches = []
        self._patch_cp = []
        self._markers = []
        self._core_lines = []
        self._built = False

    def _build(self, car_type=None):
        car_type = self._type if car_type is None else car_type
        self._layout = get_surface_layout(car_type)
        self._build_patches()
        self._build_markers()
        self._build_vortex_cores()
        self._built = True
        logger.debug("Built surface overlay for %s: %d patches, %d markers",
                     car_type, len(self._patches), len(self._markers))

    def _build_patches(self):
        neutral = cp_to_color(0.0)
        self._patches = []
        self._patch_cp = []
        for i, p in enumerate(self._layout.patches):
            patch = self.backend.patch(p.width, p.height, segments=PATCH_SEGMENTS,
                                       name=f'{p.role}_{i}')
            patch.colors[:] = neutral
            patch.position = p.center
            patch.rotation = p.rotation
            patch.opacity = 0.0
            self.group.add(patch)
            self._patches.append(patch)
            self._patch_cp.append(None)

    def _build_markers(self):
        self._markers = []
        for i, m in enumerate(self._layout.markers):
            marker = self.backend.marker(m.radius, m.color, position=m.position, name=f'{m.role}_{i}')
            marker.opacity = 0.0
            marker.scale = 0.0
            self.group.add(marker)
            self._markers.append(marker)

    def _build_vortex_cores(self):
        self._core_lines = []
        self._core_frac = np.arange(CORE_PTS, dtype=np.float64) / CORE_PTS
        for i, _ in enumerate(self._layout.vortex_cores):
            line = self.backend.line(CORE_PTS, color=0x44ffcc, name=f'vortex_core_{i}')
            line.opacity = 0.0
            self.group.add(line)
            self._core_lines.append(line)

    # PER-FRAME UPDATES

    def _stalled_noise(self, n):
        """Turbulent, near-zero Cp: uniform noise smoothed along the vertex order"""
        raw = self._rng.uniform(-STALL_NOISE, STALL_NOISE, n)
        return signal.lfilter([0.4], [1.0, -0.6], raw)

    def _update_patch_colors(self, sf, speed):
        cps = []
        colors = []
        for patch, pdef in zip(self._patches, self._layout.patches):
            if self._wing_stalled and pdef.role == 'rearWing':
                cp = self._stalled_noise(patch.vertex_count)
            else:
                cp = patch_pressure(patch.local, pdef.width, pdef.height, sf)
            cps.append(cp)
            colors.append(cp_to_color_array(cp))

        for patch, cp, rgb in zip(self._patches, cps, colors):
            patch.colors[:] = rgb
            patch.opacity = sf * PATCH_OPACITY
        self._patch_cp = cps
        self._opacity['patches'] = sf * PATCH_OPACITY
        self.color_refreshes += 1
        logger.debug("[cfd] patch colours refreshed at speed %.1f", speed)

    def _update_markers(self, t, sf):
        states = []
        for mdef in self._layout.markers:
            effective = stall_zone_marker(mdef, self._wing_stalled)
            pulse = np.sin(t * MARKER_PULSE_RATE + mdef.phase)

            s = sf * sf * effective.intensity * MARKER_SCALE
            states.append((s * (0.8 + 0.2 * pulse),
                           effective.radius,
                           sf * effective.intensity * MARKER_OPACITY * (0.75 + 0.25 * pulse)))

        for marker, (scale, radius, opacity) in zip(self._markers, states):
            marker.scale = scale
            marker.radius = radius
            marker.opacity = opacity
        self._opacity['markers'] = max((state[2] for state in states), default=0.0)

    def _update_vortex_cores(self, t, sf):
        """Spiral traces growing downstream from the diffuser exits"""
        r = sf * CORE_RADIUS
        frac = self._core_frac
        opacity = sf * CORE_OPACITY
        traces = []
        for core in self._layout.vortex_cores:
            angle = frac * np.pi * 2.0 * CORE_TURNS * core.sign + t * CORE_SPIN
            traces.append(np.column_stack([
                core.x + np.cos(angle) * r * (1.0 - frac * 0.5),
                core.y + np.sin(angle) * r * 0.5 * (1.0 - frac),
                core.z + frac * CORE_LENGTH,
            ]))

        for line, positions in zip(self._core_lines, traces):
            line.positions[:] = positions
            line.opacity = opacity
        self._opacity['vortex_cores'] = opacity
