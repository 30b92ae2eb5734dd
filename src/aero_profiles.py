"""Per-vehicle aerodynamic profiles, seed lists and the wing-stall transform."""

import logging
from dataclasses import dataclass, field, replace
from typing import NamedTuple

logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())


CAR_TYPES = ('F1', 'F2', 'F3', 'GT')
DEFAULT_CAR_TYPE = 'F1'

SEED_ETA = -8.0
TOP_SEED_HEIGHTS = (0.38, 0.70)
SIDE_SEED_XI = 0.01
FAR_SEED_HEIGHT = 0.38

# Anything aft of this world z is "rear" for the stall transform
REAR_Z_THRESHOLD = 1.5
STALL_REAR_INTENSITY = 0.3
STALL_WAKE_COUNT = 1.5
STALL_WAKE_WIDTH = 1.6

# Surface-overlay zone markers on a stalled rear wing
STALL_MARKER_INTENSITY = 0.15
STALL_MARKER_RADIUS = 2.2


# DATA TYPES

@dataclass(frozen=True)
class PressureMarker:
    """Pulsing pressure-zone marker at a world position (x, y, z)"""
    color: int
    radius: float
    intensity: float
    position: tuple
    phase: float = 0.0
    role: str = ''

    @property
    def is_rear(self):
        return self.position[2] > REAR_Z_THRESHOLD


@dataclass(frozen=True)
class VortexDef:
    """Trailing vortex: world centre, turning sign, circulation and core radius"""
    wx: float
    wy: float
    wz: float
    sign: int
    gamma: float
    rc: float

    @property
    def is_rear(self):
        return self.wz > REAR_Z_THRESHOLD


@dataclass(frozen=True)
class AeroProfile:
    name: str
    label: str
    half_w: float
    half_l: float
    half_h: float
    top_seeds: tuple
    side_heights: tuple
    under_seeds: tuple
    under_y: float
    far_seeds: tuple
    fw_seeds: tuple
    fw_y: float
    fw_eta: float
    pressure_markers: tuple
    vortex_defs: tuple
    vortex_max_radius: float
    wake_width: float
    wake_height_range: tuple
    wake_count: int
    strouhal: float = 0.20

    def body_vortices(self):
        """Vortex definitions as (x0, e0, gamma, rc) in body-normalized coordinates"""
        return [(v.wx / self.half_w, v.wz / self.half_l, v.sign * v.gamma, v.rc / self.half_w)
                for v in self.vortex_defs]


class SeedPoint(NamedTuple):
    seed_xi: float
    seed_eta: float
    y: float
    group: str
    half_h: float


class ResolvedProfile(NamedTuple):
    """Profile in effect plus whether it is a derived copy (owned) or the shared base"""
    profile: AeroProfile
    owned: bool


@dataclass(frozen=True)
class SurfacePatch:
    """Rectangular body-surface patch: size, world centre, Euler rotation, role"""
    width: float
    height: float
    center: tuple
    rotation: tuple
    role: str


@dataclass(frozen=True)
class VortexCore:
    x: float
    y: float
    z: float
    sign: int


@dataclass(frozen=True)
class SurfaceLayout:
    patches: tuple
    markers: tuple
    vortex_cores: tuple = field(default_factory=tuple)


# PROFILE TABLES

def _markers(*rows):
    return tuple(PressureMarker(color=c, radius=r, intensity=i, position=tuple(p), phase=ph, role=role)
                 for role, c, r, i, ph, p in rows)


def _vortices(*rows):
    return tuple(VortexDef(*row) for row in rows)


CAR_AERO = {
    'F1': AeroProfile(
        name='F1', label='Formula One',
        half_w=0.90, half_l=2.45, half_h=0.55,
        top_seeds=(-2.8, -2.2, -1.6, -1.0, -0.4, 0.4, 1.0, 1.6, 2.2, 2.8),
        side_heights=(-0.12, 0.05, 0.20, 0.38, 0.58, 0.78, 1.00, 1.22, 1.45, 1.65),
        under_seeds=(-0.45, -0.25, -0.08, 0.08, 0.25, 0.45), under_y=-0.04,
        far_seeds=(-4.5, -3.5, -2.5, 2.5, 3.5, 4.5),
        fw_seeds=(-1.4, -0.9, -0.4, 0.4, 0.9, 1.4), fw_y=0.04, fw_eta=-2.6,
        pressure_markers=_markers(
            ('stagnation', 0xff2200, 0.40, 1.00, 0.0, (0, 0.12, -2.50)),
            ('suction', 0x2266ff, 0.50, 0.90, 1.1, (0, 0.02, -2.60)),
            ('rearWing', 0xff2200, 0.36, 0.70, 0.8, (0, 0.88, 1.85)),
            ('rearWing', 0x2266ff, 0.55, 0.95, 1.9, (0, 0.75, 1.85)),
            ('floor', 0x00ddff, 0.80, 0.90, 2.2, (0, -0.05, 0.00)),
            ('sidepodInlet', 0xff4400, 0.30, 0.70, 0.5, (0.85, 0.04, -1.60)),
            ('sidepodInlet', 0xff4400, 0.30, 0.70, 0.5, (-0.85, 0.04, -1.60)),
        ),
        vortex_defs=_vortices(
            (-0.82, 0.02, -2.60, 1, 0.6, 0.12),
            (0.82, 0.02, -2.60, -1, 0.6, 0.12),
            (-0.90, 0.85, 1.85, -1, 1.0, 0.18),
            (0.90, 0.85, 1.85, 1, 1.0, 0.18),
            # floor-edge ground vortices
            (-0.88, -0.05, 0.50, 1, 0.4, 0.10),
            (0.88, -0.05, 0.50, -1, 0.4, 0.10),
        ),
        vortex_max_radius=0.40, wake_width=1.0,
        wake_height_range=(-0.10, 1.20), wake_count=220,
        strouhal=0.21,
    ),
    'F2': AeroProfile(
        name='F2', label='Formula Two',
        half_w=0.82, half_l=2.20, half_h=0.50,
        top_seeds=(-2.8, -2.0, -1.4, -0.8, -0.3, 0.3, 0.8, 1.4, 2.0, 2.8),
        side_heights=(-0.10, 0.05, 0.20, 0.36, 0.55, 0.72, 0.92, 1.12, 1.32, 1.50),
        under_seeds=(-0.40, -0.22, -0.07, 0.07, 0.22, 0.40), under_y=-0.03,
        far_seeds=(-4.5, -3.5, -2.5, 2.5, 3.5, 4.5),
        fw_seeds=(-1.3, -0.8, -0.3, 0.3, 0.8, 1.3), fw_y=0.04, fw_eta=-2.36,
        pressure_markers=_markers(
            ('stagnation', 0xff2200, 0.38, 0.85, 0.0, (0, 0.12, -2.35)),
            ('suction', 0x2266ff, 0.45, 0.72, 1.1, (0, 0.02, -2.36)),
            ('rearWing', 0xff2200, 0.32, 0.58, 0.8, (0, 0.79, 1.70)),
            ('rearWing', 0x2266ff, 0.48, 0.76, 1.9, (0, 0.68, 1.70)),
            ('floor', 0x00ddff, 0.65, 0.65, 2.2, (0, -0.04, 0.00)),
            ('sidepodInlet', 0xff4400, 0.26, 0.55, 0.5, (0.76, 0.04, -1.45)),
            ('sidepodInlet', 0xff4400, 0.26, 0.55, 0.5, (-0.76, 0.04, -1.45)),
        ),
        vortex_defs=_vortices(
            (-0.77, 0.02, -2.36, 1, 0.5, 0.10),
            (0.77, 0.02, -2.36, -1, 0.5, 0.10),
            (-0.86, 0.76, 1.70, -1, 0.8, 0.16),
            (0.86, 0.76, 1.70, 1, 0.8, 0.16),
        ),
        vortex_max_radius=0.30, wake_width=1.0,
        wake_height_range=(-0.10, 1.00), wake_count=190,
        strouhal=0.20,
    ),
    'F3': AeroProfile(
        name='F3', label='Formula Three',
        half_w=0.72, half_l=1.90, half_h=0.44,
        top_seeds=(-2.6, -1.9, -1.3, -0.7, -0.2, 0.2, 0.7, 1.3, 1.9, 2.6),
        side_heights=(-0.10, 0.05, 0.18, 0.32, 0.48, 0.64, 0.80, 0.96, 1.10, 1.25),
        under_seeds=(-0.30, -0.15, -0.05, 0.05, 0.15, 0.30), under_y=-0.02,
        far_seeds=(-4.0, -3.0, -2.2, 2.2, 3.0, 4.0),
        fw_seeds=(-1.2, -0.7, -0.2, 0.2, 0.7, 1.2), fw_y=0.04, fw_eta=-2.12,
        pressure_markers=_markers(
            ('stagnation', 0xff2200, 0.32, 0.68, 0.0, (0, 0.11, -2.10)),
            ('suction', 0x2266ff, 0.35, 0.48, 1.1, (0, 0.02, -2.12)),
            ('rearWing', 0x2266ff, 0.42, 0.55, 1.9, (0, 0.65, 1.55)),
            ('floor', 0x00ddff, 0.45, 0.35, 2.2, (0, -0.03, 0.00)),
        ),
        vortex_defs=_vortices(
            (-0.75, 0.65, 1.55, -1, 0.5, 0.10),
            (0.75, 0.65, 1.55, 1, 0.5, 0.10),
        ),
        vortex_max_radius=0.20, wake_width=0.80,
        wake_height_range=(-0.10, 0.90), wake_count=150,
        strouhal=0.19,
    ),
    # No exposed front wing on the GT body
    'GT': AeroProfile(
        name='GT', label='GT Race Car',
        half_w=1.05, half_l=2.40, half_h=0.65,
        top_seeds=(-2.8, -2.0, -1.4, -0.8, -0.3, 0.3, 0.8, 1.4, 2.0, 2.8),
        side_heights=(-0.08, 0.10, 0.28, 0.46, 0.64, 0.82, 1.00, 1.16, 1.30, 1.48),
        under_seeds=(-0.35, -0.18, -0.06, 0.06, 0.18, 0.35), under_y=-0.07,
        far_seeds=(-4.5, -3.5, -2.5, 2.5, 3.5, 4.5),
        fw_seeds=(), fw_y=0.0, fw_eta=0.0,
        pressure_markers=_markers(
            ('stagnation', 0xff2200, 0.55, 0.85, 0.0, (0.00, 0.25, -2.26)),
            ('suction', 0x2266ff, 0.45, 0.55, 1.1, (0.00, 0.10, -2.30)),
            ('rearWing', 0xff2200, 0.40, 0.60, 0.8, (0.00, 0.75, 1.80)),
            ('rearWing', 0x2266ff, 0.50, 0.65, 1.9, (0.00, 0.60, 1.80)),
            ('sidepod', 0x4488ff, 0.50, 0.55, 0.5, (0.85, 0.28, 0.00)),
            ('sidepod', 0x4488ff, 0.50, 0.55, 0.5, (-0.85, 0.28, 0.00)),
        ),
        vortex_defs=_vortices(
            (-0.86, 0.72, 1.80, -1, 0.8, 0.14),
            (0.86, 0.72, 1.80, 1, 0.8, 0.14),
            (-0.93, 0.12, 1.60, 1, 0.5, 0.10),
            (0.93, 0.12, 1.60, -1, 0.5, 0.10),
        ),
        vortex_max_radius=0.28, wake_width=1.50,
        wake_height_range=(-0.08, 1.00), wake_count=250,
        strouhal=0.22,
    ),
}


def get_profile(car_type):
    """Profile for a vehicle class; unknown codes fall back to the default class"""
    profile = CAR_AERO.get(car_type)
    if profile is None:
        logger.warning("Unknown car type %r, using %s profile", car_type, DEFAULT_CAR_TYPE)
        profile = CAR_AERO[DEFAULT_CAR_TYPE]
    return profile


def build_seed_list(profile):
    """
    Expand a profile's seed groups into one flat list.

    Groups, in order: 'top' (two heights per lateral offset), 'side'
    (lateral slice at xi ~ 0), 'under' (ground-effect zone), 'far'
    (undisturbed freestream) and 'fw' (front-wing cascade, one unit
    upstream of the wing).
    """
    seeds = []
    for xi in profile.top_seeds:
        for y in TOP_SEED_HEIGHTS:
            seeds.append(SeedPoint(xi, SEED_ETA, y, 'top', profile.half_h))
    for y in profile.side_heights:
        seeds.append(SeedPoint(SIDE_SEED_XI, SEED_ETA, y, 'side', profile.half_h))
    for xi in profile.under_seeds:
        seeds.append(SeedPoint(xi, SEED_ETA, profile.under_y, 'under', profile.half_h))
    for xi in profile.far_seeds:
        seeds.append(SeedPoint(xi, SEED_ETA, FAR_SEED_HEIGHT, 'far', profile.half_h))
    for xi in profile.fw_seeds:
        seeds.append(SeedPoint(xi, profile.fw_eta - 1.0, profile.fw_y, 'fw', profile.half_h))
    return seeds


# WING STALL

def apply_wing_stall(profile, stalled=True):
    """
    Derive the profile of a vehicle whose rear wing has stalled.

    Unstalled, the base profile itself is returned (shared, treat as
    read-only). Stalled, a new profile is built: rear pressure markers lose
    most of their intensity, rear vortex definitions are dropped (no
    organized tip vortices behind separated flow) and the wake gets wider
    and denser. The base profile is never modified.
    """
    if not stalled:
        return profile

    markers = tuple(
        replace(m, intensity=m.intensity * STALL_REAR_INTENSITY) if m.is_rear else m
        for m in profile.pressure_markers
    )
    vortices = tuple(v for v in profile.vortex_defs if not v.is_rear)

    return replace(
        profile,
        pressure_markers=markers,
        vortex_defs=vortices,
        wake_count=int(round(profile.wake_count * STALL_WAKE_COUNT)),
        wake_width=profile.wake_width * STALL_WAKE_WIDTH,
    )


def resolve_profile(profile, stalled):
    """apply_wing_stall with explicit ownership of the result"""
    return ResolvedProfile(apply_wing_stall(profile, stalled), bool(stalled))


def stall_zone_marker(marker, stalled):
    """Surface zone marker as seen with the wing stalled: faint and diffuse on the rear wing"""
    if not stalled or marker.role != 'rearWing':
        return marker
    return replace(marker,
                   intensity=marker.intensity * STALL_MARKER_INTENSITY,
                   radius=marker.radius * STALL_MARKER_RADIUS)


# SURFACE LAYOUTS

HALF_PI = 1.5707963267948966


def _patches(*rows):
    return tuple(SurfacePatch(width=w, height=h, center=tuple(c), rotation=tuple(r), role=role)
                 for role, w, h, c, r in rows)


def _cores(*rows):
    return tuple(VortexCore(*row) for row in rows)


SURFACE_LAYOUTS = {
    'F1': SurfaceLayout(
        patches=_patches(
            ('frontWing', 1.74, 0.34, (0, 0.020, -2.72), (-HALF_PI, 0, 0)),
            ('sidepodInlet', 0.065, 0.32, (-0.528, 0.22, -0.64), (0, HALF_PI, 0)),
            ('sidepodInlet', 0.065, 0.32, (0.528, 0.22, -0.64), (0, -HALF_PI, 0)),
            ('engineCover', 0.50, 1.15, (0, 0.57, 1.38), (-HALF_PI, 0, 0)),
            ('diffuser', 1.14, 1.00, (0, -0.05, 1.93), (HALF_PI, 0, 0.28)),
            ('rearWing', 1.92, 0.36, (0, 0.98, 1.95), (-HALF_PI, 0, 0)),
        ),
        markers=_markers(
            ('stagnation', 0xff2200, 0.28, 1.0, 0.0, (0, 0.12, -2.72)),
            ('suction', 0x2266ff, 0.40, 0.9, 1.1, (0, 0.02, -2.65)),
            ('sidepodInlet', 0xff4400, 0.22, 0.7, 0.5, (-0.528, 0.22, -0.64)),
            ('sidepodInlet', 0xff4400, 0.22, 0.7, 0.5, (0.528, 0.22, -0.64)),
            ('diffuser', 0x0088ff, 0.55, 0.9, 2.2, (0, -0.04, 1.93)),
            ('rearWing', 0xff2200, 0.30, 0.7, 0.8, (0, 0.98, 1.95)),
        ),
        vortex_cores=_cores((-0.48, -0.04, 1.93, 1), (0.48, -0.04, 1.93, -1)),
    ),
    'F2': SurfaceLayout(
        patches=_patches(
            ('frontWing', 1.74, 0.30, (0, 0.022, -2.48), (-HALF_PI, 0, 0)),
            ('sidepodInlet', 0.055, 0.272, (-0.449, 0.19, -0.55), (0, HALF_PI, 0)),
            ('sidepodInlet', 0.055, 0.272, (0.449, 0.19, -0.55), (0, -HALF_PI, 0)),
            ('engineCover', 0.48, 1.00, (0, 0.51, 1.30), (-HALF_PI, 0, 0)),
            ('diffuser', 1.00, 0.88, (0, -0.04, 1.80), (HALF_PI, 0, 0.24)),
            ('rearWing', 1.74, 0.30, (0, 0.90, 1.80), (-HALF_PI, 0, 0)),
        ),
        markers=_markers(
            ('stagnation', 0xff2200, 0.24, 0.85, 0.0, (0, 0.12, -2.48)),
            ('suction', 0x2266ff, 0.35, 0.72, 1.1, (0, 0.02, -2.40)),
            ('sidepodInlet', 0xff4400, 0.18, 0.6, 0.5, (-0.449, 0.19, -0.55)),
            ('sidepodInlet', 0xff4400, 0.18, 0.6, 0.5, (0.449, 0.19, -0.55)),
            ('diffuser', 0x0088ff, 0.45, 0.76, 2.2, (0, -0.04, 1.80)),
            ('rearWing', 0xff2200, 0.26, 0.58, 0.8, (0, 0.90, 1.80)),
        ),
        vortex_cores=_cores((-0.40, -0.04, 1.80, 1), (0.40, -0.04, 1.80, -1)),
    ),
    'F3': SurfaceLayout(
        patches=_patches(
            ('frontWing', 1.46, 0.24, (0, 0.020, -2.24), (-HALF_PI, 0, 0)),
            ('diffuser', 0.88, 0.76, (0, -0.04, 1.68), (HALF_PI, 0, 0.22)),
            ('rearWing', 1.56, 0.26, (0, 0.82, 1.68), (-HALF_PI, 0, 0)),
        ),
        markers=_markers(
            ('stagnation', 0xff2200, 0.20, 0.68, 0.0, (0, 0.10, -2.24)),
            ('diffuser', 0x0088ff, 0.38, 0.55, 2.2, (0, -0.04, 1.68)),
            ('rearWing', 0xff2200, 0.22, 0.55, 0.8, (0, 0.82, 1.68)),
        ),
        vortex_cores=_cores((-0.32, -0.04, 1.68, 1), (0.32, -0.04, 1.68, -1)),
    ),
    'GT': SurfaceLayout(
        patches=_patches(
            ('rearWing', 1.76, 0.42, (0, 0.84, 1.92), (-HALF_PI, 0, 0)),
            ('frontBumper', 1.84, 0.40, (0, 0.00, -2.32), (-HALF_PI, 0, 0)),
            ('diffuser', 1.10, 0.78, (0, -0.10, 2.14), (HALF_PI, 0, 0.30)),
        ),
        markers=_markers(
            ('stagnation', 0xff2200, 0.40, 0.85, 0.0, (0, 0.08, -2.32)),
            ('diffuser', 0x0088ff, 0.50, 0.65, 2.2, (0, -0.10, 2.14)),
            ('rearWing', 0xff2200, 0.35, 0.60, 0.8, (0, 0.84, 1.92)),
        ),
        vortex_cores=_cores((-0.44, -0.10, 2.14, 1), (0.44, -0.10, 2.14, -1)),
    ),
}


def get_surface_layout(car_type):
    layout = SURFACE_LAYOUTS.get(car_type)
    if layout is None:
        logger.warning("Unknown car type %r, using %s surface layout", car_type, DEFAULT_CAR_TYPE)
        layout = SURFACE_LAYOUTS[DEFAULT_CAR_TYPE]
    return layout
