"""Free-flow airflow visualization: guide lines, smoke chains, tip-vortex spirals and a Kármán wake."""

import logging
import threading

import numpy as np

from airflow_core import (
    trace_streamline_path, paths_to_array, side_view_velocity, side_view_velocity_field,
    pressure_coeff, stream_color, stream_color_array,
)
from aero_profiles import DEFAULT_CAR_TYPE, get_profile, build_seed_list, resolve_profile
from effect_base import Effect, speed_factor
from scene_graph import Group, SceneBackend

logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())


# PARAMETERS

STEPS = 200
STEP_SIZE = 0.14
SMOKE_PTS = 60
VORTEX_PTS = 100

GUIDE_OPACITY = 0.55
SMOKE_OPACITY = 0.88
VORTEX_OPACITY = 0.80
WAKE_OPACITY = 0.70

SMOKE_RATE = 9.0
SMOKE_SPEED_CLAMP = (0.4, 3.2)
JITTER_BASE = 0.006
JITTER_DECAY = 0.90
JITTER_VERTICAL = 0.4
VERTICAL_DELTA_SCALE = 0.10
SMOKE_VERTICAL_GAIN = 0.05

VORTEX_MIN_SPEED = 30.0
VORTEX_TURNS = 4
VORTEX_LENGTH = 2.2
VORTEX_DROOP = 0.55
KMH_TO_MS = 3.6

WAKE_SPAWN_Z = (2.2, 8.0)
WAKE_RESPAWN_Z = (2.2, 4.0)
WAKE_WINDOW_Z = (2.0, 9.0)
WAKE_KARMAN_GAIN = 0.6


def shedding_frequency(strouhal, speed, half_width):
    """Strouhal shedding frequency f = St * U / D with U in m/s from km/h"""
    return strouhal * (speed / KMH_TO_MS) / (half_width * 2.0)


class FreeFlowSimulation(Effect):
    """
    Potential-flow airflow effect around a vehicle body.

    Every streamline is traced once per vehicle type and cached; per frame
    only the particle buffers are advanced. Per-particle state lives in flat
    numpy arrays indexed by particle id.

    Parameters
    ----------
    host_group : scene_graph.Group
        Host container; the effect attaches its own 'airflow' group to it
    backend : scene_graph.SceneBackend, optional
        Primitive factory, defaults to an unbounded in-memory backend
    car_type : str
        Initial vehicle class
    seed : int, optional
        Seed for the particle random generator
    """

    def __init__(self, host_group, backend=None, car_type=DEFAULT_CAR_TYPE, seed=None):
        self.host_group = host_group
        self.backend = backend if backend is not None else SceneBackend()
        self.group = Group('airflow')
        self._lock = threading.RLock()
        self._rng = np.random.default_rng(seed)

        self._speed = 0.0
        self._visible = False
        self._type = car_type
        self._wing_stalled = False
        self._stall_dirty = False
        self._built = False
        self._time = 0.0
        self._opacity = {'guides': 0.0, 'smoke': 0.0, 'vortices': 0.0, 'wake': 0.0}

        self._base_profile = get_profile(car_type)
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
        """
        Rebuild every subsystem for another vehicle class.

        Dispose and rebuild happen as one step: if the build fails, the
        partial build is released, the previous type is kept and the
        effect stays empty (update is a no-op) until a later call succeeds.
        """
        with self._lock:
            if car_type == self._type and self._built:
                return
            previous = self._base_profile
            self._dispose_all()
            self._base_profile = get_profile(car_type)
            try:
                self._build()
            except Exception:
                self._dispose_all()
                self._base_profile = previous
                self._set_profile(resolve_profile(previous, self._wing_stalled).profile)
                raise
            self._type = car_type
            self._stall_dirty = False
            self.group.visible = self._visible

    def set_speed(self, speed):
        self._speed = max(0.0, float(speed))

    def set_visible(self, visible):
        self._visible = bool(visible)
        self.group.visible = self._visible

    def set_wing_stall(self, stalled):
        stalled = bool(stalled)
        with self._lock:
            if stalled != self._wing_stalled:
                self._wing_stalled = stalled
                self._stall_dirty = True

    def update(self, dt, t):
        if not self._visible or not self._built:
            return

        with self._lock:
            if not self._built:
                return
            self._time += dt
            sf = speed_factor(self._speed)

            if self._stall_dirty:
                # a toggle during the rebuild marks the profile dirty again
                self._stall_dirty = False
                try:
                    self._apply_stall()
                except Exception:
                    self._stall_dirty = True
                    logger.exception("[airflow] applying wing stall failed")

            for name, step in (('guides', self._update_guides),
                               ('smoke', self._update_smoke),
                               ('vortices', self._update_vortex_spirals),
                               ('wake', self._update_wake)):
                try:
                    step(dt, t, sf)
                except Exception:
                    logger.exception("[airflow] %s update failed", name)

    def dispose(self):
        with self._lock:
            self._dispose_all()
            self.host_group.remove(self.group)
            self._visible = False
            self.group.visible = False

    def opacities(self):
        return dict(self._opacity)

    def metrics(self):
        """Per-frame summary numbers for session recording"""
        if not self._built:
            return {'n_smoke': 0, 'n_wake': 0, 'n_vortices': 0,
                    'smoke_progress': 0.0, 'wake_spread': 0.0}
        lengths = self._path_len[self._smoke_seed[self._smoke_ids]]
        progress = self._smoke_t[self._smoke_ids] / np.maximum(lengths - 1, 1)
        return {
            'n_smoke': int(len(self._smoke_t)),
            'n_wake': int(self._wake_count),
            'n_vortices': len(self._vortex_lines),
            'smoke_progress': float(progress.mean()) if len(progress) else 0.0,
            'wake_spread': float(self._wake_pos[:, 0].std()) if self._wake_count else 0.0,
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
    def profile(self):
        return self._profile

    @property
    def seeds(self):
        return list(self._seeds)

    @property
    def paths(self):
        return list(self._paths)

    # BUILD / DISPOSE

    def _dispose_all(self):
        for child in list(self.group.children):
            self.backend.release(child)
            self.group.remove(child)
        self._guide_lines = []
        self._vortex_lines = []
        self._smoke_points = None
        self._wake_points = None
        self._built = False

    def _build(self):
        resolved = resolve_profile(self._base_profile, self._wing_stalled)
        self._set_profile(resolved.profile)

        self._seeds = build_seed_list(self._profile)
        self._seed_y = np.array([s.y for s in self._seeds], dtype=np.float64)
        self._paths = [trace_streamline_path(s.seed_xi, s.seed_eta, STEPS, STEP_SIZE)
                       for s in self._seeds]
        self._samples, self._path_len = paths_to_array(self._paths, STEPS)

        self._build_guide_lines()
        self._build_smoke_particles()
        self._build_vortex_spirals(self._profile.vortex_defs)
        self._build_wake_particles(self._profile.wake_count)
        self._built = True

        logger.debug("Built airflow for %s: %d seeds, %d smoke, %d vortices, %d wake",
                     self._profile.name, len(self._seeds), len(self._smoke_t),
                     len(self._vortex_lines), self._wake_count)

    def _set_profile(self, profile):
        self._profile = profile
        self._half_w = profile.half_w
        self._half_l = profile.half_l
        self._half_h = profile.half_h
        self._vortex_max_radius = profile.vortex_max_radius
        self._wake_width = profile.wake_width
        self._wake_height_range = profile.wake_height_range
        self._strouhal = profile.strouhal or 0.20

    def _apply_stall(self):
        """Swap in the (un)stalled profile and rebuild the subsystems it changes"""
        resolved = resolve_profile(self._base_profile, self._wing_stalled)
        self._set_profile(resolved.profile)

        for line in self._vortex_lines:
            self.backend.release(line)
            self.group.remove(line)
        if self._wake_points is not None:
            self.backend.release(self._wake_points)
            self.group.remove(self._wake_points)

        self._build_vortex_spirals(self._profile.vortex_defs)
        self._build_wake_particles(self._profile.wake_count)
        logger.info("[airflow] wing stall %s: %d vortices, %d wake particles",
                    'applied' if self._wing_stalled else 'cleared',
                    len(self._vortex_lines), self._wake_count)

    def _to_world(self, xi, eta, y):
        return xi * self._half_w, y, eta * self._half_l

    def _vertical_delta(self, eta, y, scale=VERTICAL_DELTA_SCALE):
        """Vertical drift from the side-plane cylinder flow"""
        eta_n = eta / max(self._half_l, 0.1)
        y_n = y / max(self._half_h, 0.1)
        _, vy = side_view_velocity(eta_n, y_n)
        return vy * scale

    def _build_guide_lines(self):
        """One pressure-coloured line per seed, walked with an accumulated vertical offset"""
        self._guide_lines = []

        for s, path in enumerate(self._paths):
            if len(path) < 2:
                self._guide_lines.append(None)
                continue

            y0 = self._seeds[s].y
            line = self.backend.line(len(path), vertex_colors=True, name=f'guide_{s}')

            y_acc = 0.0
            for i, (xi, eta, vxi, veta) in enumerate(path):
                y_acc += self._vertical_delta(eta, y0 + y_acc)
                line.positions[i] = self._to_world(xi, eta, y0 + y_acc)
                line.colors[i] = stream_color(pressure_coeff(vxi, veta))

            line.opacity = 0.0
            self.group.add(line)
            self._guide_lines.append(line)

    def _build_smoke_particles(self):
        n_seeds = len(self._seeds)
        total = n_seeds * SMOKE_PTS

        self._smoke_seed = np.repeat(np.arange(n_seeds, dtype=np.int64), SMOKE_PTS)
        k = np.tile(np.arange(SMOKE_PTS, dtype=np.float64), n_seeds)
        lengths = self._path_len[self._smoke_seed]
        self._smoke_t = (k / SMOKE_PTS) * np.maximum(lengths - 1, 0)
        self._smoke_jitter = np.zeros((total, 3), dtype=np.float64)
        self._smoke_y_acc = np.zeros(total, dtype=np.float64)
        self._smoke_ids = np.flatnonzero(lengths >= 2)

        self._smoke_points = self.backend.points(total, size=0.10, vertex_colors=True, name='smoke')
        self._smoke_points.opacity = 0.0
        self.group.add(self._smoke_points)

    def _build_vortex_spirals(self, vortex_defs):
        self._vortex_lines = []
        self._vortex_defs = tuple(vortex_defs)
        self._spiral_frac = np.arange(VORTEX_PTS, dtype=np.float64) / VORTEX_PTS
        for i, _ in enumerate(self._vortex_defs):
            line = self.backend.line(VORTEX_PTS, color=0xddeeff, name=f'vortex_{i}')
            line.opacity = 0.0
            self.group.add(line)
            self._vortex_lines.append(line)

    def _build_wake_particles(self, count):
        """Kármán street pool: random lateral spread, height, downstream distance and phase"""
        rng = self._rng
        h_min, h_max = self._wake_height_range
        side = np.where(np.arange(count) % 2 == 0, 1.0, -1.0)

        self._wake_pos = np.column_stack([
            rng.uniform(-self._wake_width, self._wake_width, count),
            rng.uniform(h_min, h_max, count),
            rng.uniform(*WAKE_SPAWN_Z, count),
        ])
        # vx (lateral drift), vy, vz (downstream), shedding phase
        self._wake_vel = np.column_stack([
            side * rng.uniform(0.2, 0.9, count),
            rng.uniform(-0.15, 0.20, count),
            rng.uniform(0.6, 2.8, count),
            rng.uniform(0.0, 2.0 * np.pi, count),
        ])
        self._wake_count = count

        self._wake_points = self.backend.points(count, size=0.075, color=0xe8f4ff, name='wake')
        self._wake_points.positions[:] = self._wake_pos
        self._wake_points.opacity = 0.0
        self.group.add(self._wake_points)

    # PER-FRAME UPDATES

    def _update_guides(self, dt, t, sf):
        opacity = sf * GUIDE_OPACITY
        for line in self._guide_lines:
            if line is not None:
                line.opacity = opacity
        self._opacity['guides'] = opacity

    def _update_smoke(self, dt, t, sf):
        ids = self._smoke_ids
        seed = self._smoke_seed[ids]
        last = self._path_len[seed] - 1
        samples = self._samples

        progress = self._smoke_t[ids]
        now = samples[seed, np.minimum(np.floor(progress).astype(np.int64), last)]
        local_speed = np.hypot(now[:, 2], now[:, 3])
        progress = progress + dt * SMOKE_RATE * sf * np.clip(local_speed, *SMOKE_SPEED_CLAMP)

        jitter = self._smoke_jitter[ids]
        y_acc = self._smoke_y_acc[ids]
        recycled = progress >= last
        progress[recycled] = 0.0
        jitter[recycled] = 0.0
        y_acc[recycled] = 0.0

        ti = np.floor(progress).astype(np.int64)
        frac = (progress - ti)[:, None]
        a = samples[seed, np.minimum(ti, last)]
        b = samples[seed, np.minimum(ti + 1, last)]
        xi, eta, vxi, veta = (a + (b - a) * frac).T

        y0 = self._seed_y[seed]
        _, vy = side_view_velocity_field(eta / max(self._half_l, 0.1),
                                         (y0 + y_acc) / max(self._half_h, 0.1))
        y_acc = y_acc + vy * VERTICAL_DELTA_SCALE * SMOKE_VERTICAL_GAIN

        # turbulence grows with distance behind the body
        norm_frac = np.clip((eta - 1.0) / 7.0, 0.0, 1.0)
        amp = JITTER_BASE * sf * (1.0 + norm_frac * 4.0)
        noise = self._rng.uniform(-1.0, 1.0, (len(ids), 3)) * amp[:, None]
        noise[:, 1] *= JITTER_VERTICAL
        jitter = jitter * JITTER_DECAY + noise

        positions = np.column_stack([xi * self._half_w, y0 + y_acc, eta * self._half_l]) + jitter
        colors = stream_color_array(1.0 - (vxi**2 + veta**2))

        self._smoke_t[ids] = progress
        self._smoke_jitter[ids] = jitter
        self._smoke_y_acc[ids] = y_acc
        self._smoke_points.positions[ids] = positions
        self._smoke_points.colors[ids] = colors
        self._smoke_points.opacity = sf * SMOKE_OPACITY
        self._opacity['smoke'] = self._smoke_points.opacity

    def _update_vortex_spirals(self, dt, t, sf):
        """Spirals rebuilt each frame; radius scales with dynamic pressure (sf^2)"""
        radius = sf * sf * self._vortex_max_radius
        visible = self._speed > VORTEX_MIN_SPEED
        freq = shedding_frequency(self._strouhal, self._speed, self._half_w)
        phase = self._time * freq * 2.0 * np.pi
        opacity = sf * VORTEX_OPACITY if visible else 0.0

        frac = self._spiral_frac
        r = radius * (1.0 - frac * 0.6)
        spirals = []
        for vdef in self._vortex_defs:
            angle = frac * np.pi * 2.0 * VORTEX_TURNS * vdef.sign + phase * vdef.sign
            spirals.append(np.column_stack([
                vdef.wx + np.cos(angle) * r,
                vdef.wy - frac * VORTEX_DROOP + np.sin(angle * 0.5) * r * 0.25,
                vdef.wz + frac * VORTEX_LENGTH,
            ]))

        for line, positions in zip(self._vortex_lines, spirals):
            line.positions[:] = positions
            line.opacity = opacity
            line.visible = visible
        self._opacity['vortices'] = opacity

    def _update_wake(self, dt, t, sf):
        vel = self._wake_vel
        k_strouhal = self._strouhal * 2.0 * np.pi * sf * 4.0
        karman = np.sin(k_strouhal * t + vel[:, 3]) * sf * WAKE_KARMAN_GAIN

        pos = self._wake_pos.copy()
        pos[:, 0] += (vel[:, 0] * sf + karman) * dt
        pos[:, 1] += vel[:, 1] * dt * sf
        pos[:, 2] += vel[:, 2] * dt * sf

        out = np.flatnonzero((pos[:, 2] > WAKE_WINDOW_Z[1]) | (pos[:, 2] < WAKE_WINDOW_Z[0]))
        if len(out):
            rng = self._rng
            h_min, h_max = self._wake_height_range
            side = np.where(out % 2 == 0, 1.0, -1.0)
            pos[out, 0] = side * rng.uniform(0.1, self._wake_width * 0.7, len(out))
            pos[out, 1] = rng.uniform(h_min, h_max, len(out))
            pos[out, 2] = rng.uniform(*WAKE_RESPAWN_Z, len(out))

        self._wake_pos = pos
        self._wake_points.positions[:] = pos
        self._wake_points.opacity = sf * WAKE_OPACITY
        self._opacity['wake'] = self._wake_points.opacity
