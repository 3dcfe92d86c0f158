"""Physical contact forces for high-density crowds.

Penalty model: any geometric overlap produces a repulsive force k * overlap
along the line of centers (pedestrian pairs) or along the wall normal facing
the pedestrian. The whole population is evaluated in one pass from a single
snapshot, before any position or velocity is updated.

The pairwise loop is a Numba kernel over flat arrays; wall contacts and the
compression helpers are plain numpy.
"""
from typing import Sequence
import math

import numpy as np
from numba import njit

from crowdflow.pedestrian_abm.config import NUMERICS
from crowdflow.pedestrian_abm.entities import Pedestrian, SimulationParams, Wall, active_only
from crowdflow.pedestrian_abm.geometry import distance_to_segment, normal_from_segment_to_point, periodic_displacement


@njit(cache=True)
def _pairwise_contact_kernel(positions, radii, active, k, periodic, span_x, span_y, eps, forces):
    """Accumulate equal and opposite pair forces into `forces` (N, 2) in place."""
    n = positions.shape[0]
    for i in range(n):
        if not active[i]:
            continue
        for j in range(i + 1, n):
            if not active[j]:
                continue
            dx = positions[i, 0] - positions[j, 0]
            dy = positions[i, 1] - positions[j, 1]
            if periodic:
                dx -= span_x * math.floor(dx / span_x + 0.5)
                dy -= span_y * math.floor(dy / span_y + 0.5)
            dist = math.sqrt(dx * dx + dy * dy)
            overlap = radii[i] + radii[j] - dist
            if overlap > 0.0:
                if dist > eps:
                    nx = dx / dist
                    ny = dy / dist
                else:
                    nx = 1.0
                    ny = 0.0
                fx = k * overlap * nx
                fy = k * overlap * ny
                forces[i, 0] += fx
                forces[i, 1] += fy
                forces[j, 0] -= fx
                forces[j, 1] -= fy


def population_arrays(pedestrians: Sequence[Pedestrian]):
    """(positions (N,2), radii (N,), active (N,) bool) in storage order."""
    n = len(pedestrians)
    positions = np.zeros((n, 2), dtype=np.float64)
    radii = np.zeros(n, dtype=np.float64)
    active = np.zeros(n, dtype=np.bool_)
    for idx, ped in enumerate(pedestrians):
        positions[idx] = ped.position
        radii[idx] = ped.radius
        active[idx] = ped.active
    return positions, radii, active


def compute_pair_forces(positions: np.ndarray, radii: np.ndarray, active: np.ndarray, k: float,
                        bounds=None, periodic: bool = False) -> np.ndarray:
    """Pedestrian-pedestrian contact forces only, shape (N, 2)."""
    positions = np.ascontiguousarray(positions, dtype=np.float64)
    radii = np.ascontiguousarray(radii, dtype=np.float64)
    active = np.ascontiguousarray(active, dtype=np.bool_)
    forces = np.zeros_like(positions)
    use_periodic = bool(periodic and bounds is not None)
    span_x = float(bounds.x_max - bounds.x_min) if use_periodic else 1.0
    span_y = float(bounds.y_max - bounds.y_min) if use_periodic else 1.0
    if positions.shape[0] > 1:
        _pairwise_contact_kernel(positions, radii, active, float(k), use_periodic, span_x, span_y,
                                 NUMERICS['eps'], forces)
    return forces


def wall_contact_force(position, radius: float, wall: Wall, k: float) -> np.ndarray:
    """k * overlap along the normal from the wall toward the pedestrian."""
    overlap = radius - distance_to_segment(position, wall.start, wall.end)
    if overlap <= 0.0:
        return np.zeros(2, dtype=float)
    return normal_from_segment_to_point(position, wall.start, wall.end) * (k * overlap)


def compute_contact_forces(pedestrians: Sequence[Pedestrian], walls: Sequence[Wall], params: SimulationParams,
                           bounds=None, periodic: bool = False) -> np.ndarray:
    """Contact force on every pedestrian, shape (N, 2), in storage order.

    Inactive pedestrians receive zero force and exert none.
    """
    positions, radii, active = population_arrays(pedestrians)
    forces = compute_pair_forces(positions, radii, active, params.k, bounds=bounds, periodic=periodic)
    for idx in np.flatnonzero(active):
        for wall in walls:
            forces[idx] += wall_contact_force(positions[idx], radii[idx], wall, params.k)
    return forces


def _overlaps_with_others(pedestrian: Pedestrian, others: Sequence[Pedestrian], bounds, periodic: bool) -> np.ndarray:
    visible = [o for o in others if o.active and o.id != pedestrian.id]
    if not visible:
        return np.zeros(0, dtype=float)
    positions = np.array([o.position for o in visible], dtype=float)
    radii = np.array([o.radius for o in visible], dtype=float)
    if periodic and bounds is not None:
        delta = periodic_displacement(pedestrian.position, positions, bounds)
    else:
        delta = positions - pedestrian.position
    dist = np.hypot(delta[:, 0], delta[:, 1])
    overlap = pedestrian.radius + radii - dist
    return overlap[overlap > 0.0]


def compute_compression(pedestrian: Pedestrian, others: Sequence[Pedestrian], bounds=None,
                        periodic: bool = False) -> float:
    """Mean overlap over the pedestrians currently touching `pedestrian`."""
    overlaps = _overlaps_with_others(pedestrian, others, bounds, periodic)
    if overlaps.size == 0:
        return 0.0
    return float(overlaps.mean())


def compute_average_compression(pedestrians: Sequence[Pedestrian], bounds=None, periodic: bool = False) -> float:
    active = active_only(pedestrians)
    if not active:
        return 0.0
    return float(np.mean([compute_compression(p, pedestrians, bounds, periodic) for p in active]))
