"""Small 2D vector helpers on numpy arrays.

Vectors are float arrays of shape (2,). Most helpers also accept stacks of
shape (N, 2) and operate on the last axis. Keep these dependency-light so
tests can import them without touching the simulation.
"""
import math
import numpy as np

from crowdflow.pedestrian_abm.config import NUMERICS

_EPS = NUMERICS['eps']


def vec(x: float, y: float) -> np.ndarray:
    """Return a float vector (x, y)."""
    return np.array([x, y], dtype=float)


def as_vec(v) -> np.ndarray:
    """Copy any 2-sequence into a fresh float vector."""
    out = np.array(v, dtype=float)
    if out.shape != (2,):
        raise ValueError(f'expected a 2D vector, got shape {out.shape}')
    return out


def zero() -> np.ndarray:
    return np.zeros(2, dtype=float)


def length(v) -> float:
    v = np.asarray(v, dtype=float)
    return float(math.hypot(v[0], v[1]))


def length_squared(v) -> float:
    v = np.asarray(v, dtype=float)
    return float(v[0] * v[0] + v[1] * v[1])


def distance(a, b) -> float:
    return length(np.asarray(b, dtype=float) - np.asarray(a, dtype=float))


def normalize(v) -> np.ndarray:
    """Unit vector along `v`; the zero vector when |v| is below epsilon."""
    v = np.asarray(v, dtype=float)
    n = length(v)
    if n > _EPS:
        return v / n
    return zero()


def normalize_rows(v: np.ndarray) -> np.ndarray:
    """Row-wise `normalize` for an (N, 2) stack."""
    v = np.asarray(v, dtype=float)
    norms = np.hypot(v[..., 0], v[..., 1])
    safe = np.where(norms > _EPS, norms, 1.0)
    out = v / safe[..., None]
    out[norms <= _EPS] = 0.0
    return out


def dot(a, b) -> float:
    a = np.asarray(a, dtype=float)
    b = np.asarray(b, dtype=float)
    return float(a[0] * b[0] + a[1] * b[1])


def cross(a, b) -> float:
    """z-component of the 3D cross product of two planar vectors."""
    a = np.asarray(a, dtype=float)
    b = np.asarray(b, dtype=float)
    return float(a[0] * b[1] - a[1] * b[0])


def angle(v) -> float:
    """Polar angle of `v` in radians, (-pi, pi]."""
    v = np.asarray(v, dtype=float)
    return float(math.atan2(v[1], v[0]))


def from_angle(theta: float, magnitude: float = 1.0) -> np.ndarray:
    return np.array([math.cos(theta) * magnitude, math.sin(theta) * magnitude], dtype=float)


def from_angles(thetas: np.ndarray, magnitude: float = 1.0) -> np.ndarray:
    """Stack of polar vectors, shape (len(thetas), 2)."""
    thetas = np.asarray(thetas, dtype=float)
    return np.stack((np.cos(thetas) * magnitude, np.sin(thetas) * magnitude), axis=-1)


def rotate(v, theta: float) -> np.ndarray:
    v = np.asarray(v, dtype=float)
    c = math.cos(theta)
    s = math.sin(theta)
    return np.array([v[0] * c - v[1] * s, v[0] * s + v[1] * c], dtype=float)


def perpendicular(v) -> np.ndarray:
    """Left-hand perpendicular (-y, x)."""
    v = np.asarray(v, dtype=float)
    return np.array([-v[1], v[0]], dtype=float)


def lerp(a, b, t: float) -> np.ndarray:
    a = np.asarray(a, dtype=float)
    b = np.asarray(b, dtype=float)
    return a + (b - a) * t


def clamp_length(v, max_length: float) -> np.ndarray:
    v = np.asarray(v, dtype=float)
    n = length(v)
    if n > max_length and n > _EPS:
        return v * (max_length / n)
    return v.copy()


def normalize_angle(theta):
    """Wrap radians to [-pi, pi).

    Accepts scalars or numpy arrays; returns same-shaped output.
    """
    theta_arr = np.asarray(theta, dtype=float)
    return (theta_arr + math.pi) % (2 * math.pi) - math.pi
