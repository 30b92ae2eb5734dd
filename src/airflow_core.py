"""Closed-form potential-flow model for the vehicle airflow visualization.

Coordinates are body-normalized: the vehicle cross-section is the unit
circle, ``xi`` is the lateral axis and ``eta`` the longitudinal axis with the
freestream moving in +eta at unit speed. Points with ``xi**2 + eta**2 <= 1``
are inside the body and carry zero velocity.
"""

import math

import numpy as np
from numba import njit, prange


CP_MIN = -3.0
CP_MAX = 1.0
STAGNATION_SPEED = 1e-6


# FLOW FUNCTIONS

def top_view_velocity(xi, eta):
    """Uniform flow past a unit cylinder (doublet), returns (vxi, veta)"""
    r2 = xi * xi + eta * eta
    if r2 <= 1.0:
        return 0.0, 0.0
    r4 = r2 * r2
    vxi = -2.0 * xi * eta / r4
    veta = 1.0 - (eta * eta - xi * xi) / r4
    return vxi, veta


def side_view_velocity(eta_norm, y_norm):
    """Same cylinder flow in the longitudinal-vertical plane, returns (veta, vy)"""
    r2 = eta_norm * eta_norm + y_norm * y_norm
    if r2 <= 1.0:
        return 0.0, 0.0
    r4 = r2 * r2
    veta = 1.0 - (eta_norm * eta_norm - y_norm * y_norm) / r4
    vy = -2.0 * eta_norm * y_norm / r4
    return veta, vy


def pressure_coeff(vxi, veta):
    """Bernoulli pressure coefficient Cp = 1 - |v|^2"""
    return 1.0 - (vxi * vxi + veta * veta)


def cp_to_color(cp):
    """
    Map a pressure coefficient onto the blue-cyan-green-yellow-red ramp.

    Cp is normalized from [-3, 1] to t in [0, 1] and clamped, so
    stagnation (+1) is red, freestream (0) is green and strong suction
    (-3 or below) is blue.

    Returns
    -------
    tuple[float, float, float]
        (r, g, b), every channel in [0, 1]
    """
    t = min(1.0, max(0.0, (cp - CP_MIN) / (CP_MAX - CP_MIN)))

    if t < 0.25:
        s = t / 0.25
        r, g, b = 0.0, s, 1.0
    elif t < 0.5:
        s = (t - 0.25) / 0.25
        r, g, b = 0.0, 1.0, 1.0 - s
    elif t < 0.75:
        s = (t - 0.5) / 0.25
        r, g, b = s, 1.0, 0.0
    else:
        s = (t - 0.75) / 0.25
        r, g, b = 1.0, 1.0 - s, 0.0

    return (min(1.0, max(0.0, r)),
            min(1.0, max(0.0, g)),
            min(1.0, max(0.0, b)))


def stream_color(cp):
    """Bright stream palette: electric blue (suction) to warm white (stagnation)"""
    t = min(1.0, max(0.0, (cp - CP_MIN) / (CP_MAX - CP_MIN)))
    return 0.20 + 0.80 * t, 0.70 + 0.30 * t, 1.00 - 0.55 * t


def vortex_velocity(xi, eta, x0, e0, gamma, rc):
    """
    Rankine vortex centred at (x0, e0).

    Solid-body rotation inside the core radius ``rc``, irrotational 1/r decay
    outside it. Positive ``gamma`` turns counter-clockwise.
    """
    dx = xi - x0
    de = eta - e0
    r = math.sqrt(dx * dx + de * de)

    if r < 1e-10:
        return 0.0, 0.0

    if r < rc:
        v_theta = (gamma / (2.0 * math.pi * rc * rc)) * r
    else:
        v_theta = gamma / (2.0 * math.pi * r)

    return -v_theta * (de / r), v_theta * (dx / r)


def flow_velocity(xi, eta, vortices=()):
    """
    Cylinder flow with superposed Rankine vortices.

    ``vortices`` holds (x0, e0, gamma, rc) tuples already expressed in
    body-normalized coordinates. Returns (0, 0) inside the body.
    """
    if xi * xi + eta * eta <= 1.0:
        return 0.0, 0.0
    vxi, veta = top_view_velocity(xi, eta)
    for x0, e0, gamma, rc in vortices:
        dvx, dve = vortex_velocity(xi, eta, x0, e0, gamma, rc)
        vxi += dvx
        veta += dve
    return vxi, veta


# STREAMLINE TRACING

def trace_streamline_path(seed_xi, seed_eta, steps, step_size):
    """
    Trace one streamline by explicit Euler integration.

    The step direction is the local velocity normalized by its speed, so
    every step has length ``step_size`` whether the flow is accelerating past
    the shoulders or stagnating at the nose.

    Parameters
    ----------
    seed_xi, seed_eta : float
        Starting point; a seed inside the body yields an empty path
    steps : int
        Maximum number of samples
    step_size : float
        Arc length of one Euler step

    Returns
    -------
    path : list[tuple]
        (xi, eta, vxi, veta) samples, first one is the seed
    """
    path = []
    xi = float(seed_xi)
    eta = float(seed_eta)

    if xi * xi + eta * eta <= 1.0:
        return path

    for _ in range(steps):
        vxi, veta = top_view_velocity(xi, eta)
        path.append((xi, eta, vxi, veta))

        speed = math.sqrt(vxi * vxi + veta * veta)
        if speed < STAGNATION_SPEED:
            break

        xi += (vxi / speed) * step_size
        eta += (veta / speed) * step_size

        if xi * xi + eta * eta <= 1.0:
            break

    return path


def paths_to_array(paths, steps):
    """
    Pack traced paths into a padded (n_paths, steps, 4) array.

    Rows past a path's length repeat its last sample so clamped lookups
    never leave the path. Returns (samples, lengths).
    """
    n = len(paths)
    samples = np.zeros((n, max(steps, 1), 4), dtype=np.float64)
    lengths = np.zeros(n, dtype=np.int64)
    for i, path in enumerate(paths):
        if not path:
            continue
        arr = np.asarray(path, dtype=np.float64)
        samples[i, :len(arr)] = arr
        samples[i, len(arr):] = arr[-1]
        lengths[i] = len(arr)
    return samples, lengths


# NUMBA KERNELS

@njit(parallel=True, fastmath=True)
def side_view_velocity_numba(eta_norm, y_norm):
    """Numba kernel: side-plane cylinder flow at many points"""
    M = len(eta_norm)
    VE = np.empty(M, dtype=np.float64)
    VY = np.empty(M, dtype=np.float64)

    for j in prange(M):
        e = eta_norm[j]
        y = y_norm[j]
        r2 = e * e + y * y
        if r2 <= 1.0:
            VE[j] = 0.0
            VY[j] = 0.0
        else:
            r4 = r2 * r2
            VE[j] = 1.0 - (e * e - y * y) / r4
            VY[j] = -2.0 * e * y / r4

    return VE, VY


@njit(parallel=True, fastmath=True)
def flow_velocity_numba(xi, eta, vortex_x, vortex_e, vortex_gamma, vortex_rc):
    """Numba kernel: cylinder flow plus Rankine vortices at many points"""
    M = len(xi)
    N = len(vortex_x)
    VX = np.empty(M, dtype=np.float64)
    VE = np.empty(M, dtype=np.float64)

    for j in prange(M):
        x = xi[j]
        e = eta[j]
        r2 = x * x + e * e
        if r2 <= 1.0:
            VX[j] = 0.0
            VE[j] = 0.0
            continue

        r4 = r2 * r2
        u = -2.0 * x * e / r4
        v = 1.0 - (e * e - x * x) / r4

        for i in range(N):
            DX = x - vortex_x[i]
            DE = e - vortex_e[i]
            R = np.sqrt(DX * DX + DE * DE)
            if R < 1e-10:
                continue
            rc = vortex_rc[i]
            if R < rc:
                V_theta = (vortex_gamma[i] / (2.0 * np.pi * rc * rc)) * R
            else:
                V_theta = vortex_gamma[i] / (2.0 * np.pi * R)
            u += -V_theta * DE / R
            v += V_theta * DX / R

        VX[j] = u
        VE[j] = v

    return VX, VE


# ARRAY HELPERS

def _flat(a):
    return np.ascontiguousarray(np.asarray(a, dtype=np.float64)).ravel()


def side_view_velocity_field(eta_norm, y_norm):
    """Vectorized side_view_velocity over arrays of any (matching) shape"""
    eta_norm = np.asarray(eta_norm, dtype=np.float64)
    VE, VY = side_view_velocity_numba(_flat(eta_norm), _flat(y_norm))
    return VE.reshape(eta_norm.shape), VY.reshape(eta_norm.shape)


def flow_velocity_field(XI, ETA, vortices=()):
    """Vectorized flow_velocity over a meshgrid (or any matching arrays)"""
    XI = np.asarray(XI, dtype=np.float64)
    vortices = list(vortices)
    vortex_x = np.array([v[0] for v in vortices], dtype=np.float64)
    vortex_e = np.array([v[1] for v in vortices], dtype=np.float64)
    vortex_gamma = np.array([v[2] for v in vortices], dtype=np.float64)
    vortex_rc = np.array([v[3] for v in vortices], dtype=np.float64)

    VX, VE = flow_velocity_numba(_flat(XI), _flat(ETA), vortex_x, vortex_e, vortex_gamma, vortex_rc)
    return VX.reshape(XI.shape), VE.reshape(XI.shape)


def pressure_field(XI, ETA, vortices=()):
    """Cp over a grid, NaN inside the body"""
    XI = np.asarray(XI, dtype=np.float64)
    ETA = np.asarray(ETA, dtype=np.float64)
    VX, VE = flow_velocity_field(XI, ETA, vortices)
    cp = 1.0 - (VX**2 + VE**2)
    cp[XI**2 + ETA**2 <= 1.0] = np.nan
    return cp


def cp_to_color_array(cp):
    """Vectorized cp_to_color, returns an (..., 3) array"""
    t = np.clip((np.asarray(cp, dtype=np.float64) - CP_MIN) / (CP_MAX - CP_MIN), 0.0, 1.0)

    r = np.where(t < 0.5, 0.0, np.where(t < 0.75, (t - 0.5) / 0.25, 1.0))
    g = np.where(t < 0.25, t / 0.25, np.where(t < 0.75, 1.0, 1.0 - (t - 0.75) / 0.25))
    b = np.where(t < 0.25, 1.0, np.where(t < 0.5, 1.0 - (t - 0.25) / 0.25, 0.0))

    return np.clip(np.stack([r, g, b], axis=-1), 0.0, 1.0)


def stream_color_array(cp):
    """Vectorized stream_color, returns an (..., 3) array"""
    t = np.clip((np.asarray(cp, dtype=np.float64) - CP_MIN) / (CP_MAX - CP_MIN), 0.0, 1.0)
    return np.stack([0.20 + 0.80 * t, 0.70 + 0.30 * t, 1.00 - 0.55 * t], axis=-1)
