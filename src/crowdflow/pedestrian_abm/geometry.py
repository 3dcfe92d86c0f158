"""
geometry.py

Geometry helpers for walls, collisions and periodic boundaries.

Public functions:
- `line_from_points(p1, p2)` -> (a, b, c) with (a, b) a unit normal
- `signed_distance_to_line(point, line)`
- `closest_point_on_segment(point, start, end)`
- `distance_to_segment(point, start, end)`
- `normal_from_segment_to_point(point, start, end)`
- `ray_segment_params(origin, directions, start, end)` -> (t, s, parallel) row-wise
- `ray_segment_intersection(origin, direction, start, end)` -> (t, s) or None
- `wrap_value(value, lo, hi)` / `wrap_position(position, bounds)`
- `periodic_displacement(origin, target, bounds)` (minimum image)
- `gaussian(distance, R)` and `random_normal(rng, mean, std)`

`bounds` arguments are any object with `x_min, x_max, y_min, y_max`.
"""
from typing import Optional, Tuple
import math
import numpy as np

from crowdflow.pedestrian_abm.config import NUMERICS
from crowdflow.pedestrian_abm import vector as v2

_EPS = NUMERICS['eps']


def line_from_points(p1, p2) -> Tuple[float, float, float]:
    """Implicit line a*x + b*y + c = 0 through p1 and p2.

    (a, b) is the unit normal obtained by rotating (p2 - p1) a quarter turn
    counter-clockwise. Coincident points give (0, 0, 0).
    """
    p1 = np.asarray(p1, dtype=float)
    p2 = np.asarray(p2, dtype=float)
    dx = p2[0] - p1[0]
    dy = p2[1] - p1[1]
    a = -dy
    b = dx
    c = -(a * p1[0] + b * p1[1])
    norm = math.hypot(a, b)
    if norm < _EPS:
        return 0.0, 0.0, 0.0
    return a / norm, b / norm, c / norm


def signed_distance_to_line(point, line: Tuple[float, float, float]) -> float:
    a, b, c = line
    return float(a * point[0] + b * point[1] + c)


def closest_point_on_segment(point, start, end) -> np.ndarray:
    point = np.asarray(point, dtype=float)
    start = np.asarray(start, dtype=float)
    end = np.asarray(end, dtype=float)
    seg = end - start
    seg_len_sq = v2.length_squared(seg)
    if seg_len_sq < _EPS:
        return start.copy()
    t = v2.dot(point - start, seg) / seg_len_sq
    t = min(1.0, max(0.0, t))
    return start + seg * t


def distance_to_segment(point, start, end) -> float:
    closest = closest_point_on_segment(point, start, end)
    return v2.distance(point, closest)


def normal_from_segment_to_point(point, start, end) -> np.ndarray:
    """Unit vector from the closest segment point toward `point`.

    When the point lies on the segment the left perpendicular of the segment
    is returned instead.
    """
    point = np.asarray(point, dtype=float)
    closest = closest_point_on_segment(point, start, end)
    to_point = point - closest
    n = v2.length(to_point)
    if n < _EPS:
        seg = np.asarray(end, dtype=float) - np.asarray(start, dtype=float)
        return v2.normalize(v2.perpendicular(seg))
    return to_point / n


def ray_segment_params(origin, directions, start, end):
    """Row-wise solve of origin + t*direction = start + s*(end - start).

    `directions` is (M, 2). Returns (t, s, parallel) arrays of shape (M,);
    rows flagged `parallel` carry t = s = 0 and must be ignored.
    """
    origin = np.asarray(origin, dtype=float)
    directions = np.asarray(directions, dtype=float).reshape(-1, 2)
    start = np.asarray(start, dtype=float)
    seg = np.asarray(end, dtype=float) - start
    to_start = start - origin
    denom = directions[:, 0] * seg[1] - directions[:, 1] * seg[0]
    parallel = np.abs(denom) < _EPS
    denom_safe = np.where(parallel, 1.0, denom)
    t = np.where(parallel, 0.0, (to_start[0] * seg[1] - to_start[1] * seg[0]) / denom_safe)
    s = np.where(parallel, 0.0, (to_start[0] * directions[:, 1] - to_start[1] * directions[:, 0]) / denom_safe)
    return t, s, parallel


def ray_segment_intersection(origin, direction, start, end) -> Optional[Tuple[float, float]]:
    """Solve origin + t*direction = start + s*(end - start).

    Returns (t, s) or None when the ray and the segment are parallel. `t` is
    measured in units of `direction` (meters for a unit direction) and `s` is
    the fraction along the segment; callers decide which ranges to accept.
    """
    t, s, parallel = ray_segment_params(origin, direction, start, end)
    if parallel[0]:
        return None
    return float(t[0]), float(s[0])


def wrap_value(value: float, lo: float, hi: float) -> float:
    """Wrap `value` into [lo, hi). Returns `value` unchanged for an empty range."""
    span = hi - lo
    if span <= 0:
        return value
    out = lo + math.fmod(value - lo, span)
    if out < lo:
        out += span
    if out >= hi:
        out -= span
    return out


def wrap_position(position, bounds) -> np.ndarray:
    return np.array([
        wrap_value(float(position[0]), bounds.x_min, bounds.x_max),
        wrap_value(float(position[1]), bounds.y_min, bounds.y_max),
    ], dtype=float)


def periodic_displacement(origin, target, bounds) -> np.ndarray:
    """Shortest displacement origin -> target on the torus spanned by `bounds`.

    Works for a single point pair (shape (2,)) or row-wise on (N, 2) arrays.
    Components at exactly half the span map to -span/2, the same rounding
    (floor(d/span + 0.5)) used by the contact-force kernel.
    """
    d = np.asarray(target, dtype=float) - np.asarray(origin, dtype=float)
    span = np.array([bounds.x_max - bounds.x_min, bounds.y_max - bounds.y_min], dtype=float)
    span_safe = np.where(span > 0, span, 1.0)
    shift = np.where(span > 0, np.floor(d / span_safe + 0.5), 0.0)
    return d - shift * span


def gaussian(distance, R: float):
    """Normalized 2D Gaussian kernel exp(-d^2/R^2) / (pi R^2)."""
    r_sq = R * R
    d = np.asarray(distance, dtype=float)
    out = np.exp(-(d * d) / r_sq) / (math.pi * r_sq)
    if out.ndim == 0:
        return float(out)
    return out


def random_normal(rng: np.random.Generator, mean: float, std: float) -> float:
    """One draw from N(mean, std) using the caller's generator."""
    return float(rng.normal(mean, std))
