"""Visual information function f(alpha).

For one pedestrian, sample candidate headings over the field of view and
return, per heading, how far the pedestrian could walk at its desired speed
before an unavoidable collision with another pedestrian or a wall. Every
distance lies in [0, d_max].

The kernels are vectorized over (candidate headings x other agents) and are
pure functions of their inputs.
"""
from typing import Optional, Sequence
import math

import numpy as np

from crowdflow.pedestrian_abm.config import NUMERICS
from crowdflow.pedestrian_abm.entities import Pedestrian, SimulationParams, VisionResult, Wall
from crowdflow.pedestrian_abm.geometry import distance_to_segment, periodic_displacement, ray_segment_params
from crowdflow.pedestrian_abm import vector as v2

_EPS = NUMERICS['eps']
_ROOT_EPS = NUMERICS['root_eps']


def sample_angles(params: SimulationParams) -> np.ndarray:
    """Ascending relative angles from -phi to +phi at `angular_resolution` spacing.

    The last sample is clamped to +phi so the set covers exactly [-phi, phi].
    """
    n = int(math.ceil(2.0 * params.phi / params.angular_resolution - 1e-9)) + 1
    angles = -params.phi + np.arange(n, dtype=float) * params.angular_resolution
    return np.minimum(angles, params.phi)


def pedestrian_collision_distances(rel_positions: np.ndarray, other_velocities: np.ndarray,
                                   combined_radii: np.ndarray, candidates: np.ndarray,
                                   d_max: float) -> np.ndarray:
    """Travel distance before contact with each other agent, shape (M, K).

    Parameters
    - rel_positions: (K, 2) other centers minus the observer's center
    - other_velocities: (K, 2) current velocities of the others
    - combined_radii: (K,) observer radius + other radius
    - candidates: (M, 2) candidate velocities of the observer
    - d_max: horizon distance

    Solves |d + (v_j - v_c) t| = R for the smallest root t > 1e-6 and returns
    |v_c| * t capped at d_max. Pairs already in contact return 0 when the
    candidate heads toward the other agent and d_max otherwise.
    """
    rel_positions = np.asarray(rel_positions, dtype=float).reshape(-1, 2)
    other_velocities = np.asarray(other_velocities, dtype=float).reshape(-1, 2)
    combined_radii = np.asarray(combined_radii, dtype=float).reshape(-1)
    candidates = np.asarray(candidates, dtype=float).reshape(-1, 2)
    M = candidates.shape[0]
    K = rel_positions.shape[0]
    if K == 0:
        return np.full((M, 0), d_max, dtype=float)

    dist_sq = np.einsum('ij,ij->i', rel_positions, rel_positions)
    C = dist_sq - combined_radii * combined_radii
    overlapping = dist_sq <= combined_radii * combined_radii

    speed = np.hypot(candidates[:, 0], candidates[:, 1])
    dv = other_velocities[None, :, :] - candidates[:, None, :]
    A = np.einsum('mkj,mkj->mk', dv, dv)
    B = 2.0 * np.einsum('mkj,kj->mk', dv, rel_positions)
    disc = B * B - 4.0 * A * C[None, :]

    solvable = (A >= _EPS) & (disc >= 0.0)
    A_safe = np.where(solvable, A, 1.0)
    sqrt_disc = np.sqrt(np.where(solvable, disc, 0.0))
    t1 = (-B - sqrt_disc) / (2.0 * A_safe)
    t2 = (-B + sqrt_disc) / (2.0 * A_safe)
    first = np.where(t1 > _ROOT_EPS, t1, t2)
    hit = solvable & (first > _ROOT_EPS)
    t = np.where(hit, first, 0.0)
    approach = np.where(hit, np.minimum(speed[:, None] * t, d_max), d_max)

    toward = v2.normalize_rows(candidates) @ v2.normalize_rows(rel_positions).T
    in_contact = np.where(toward > 0.0, 0.0, d_max)

    return np.where(overlapping[None, :], in_contact, approach)


def wall_collision_distances(position, radius: float, wall: Wall, candidates: np.ndarray,
                             d_max: float) -> np.ndarray:
    """Travel distance before touching `wall` for each candidate velocity, shape (M,).

    The ray from the agent center is intersected with the segment; the hit
    distance is reduced by the agent radius and floored at 0. Misses return
    d_max unless a wall endpoint is already within the radius, which blocks
    every direction. Rays parallel to the wall fall back to the perpendicular
    approach test.
    """
    position = np.asarray(position, dtype=float)
    candidates = np.asarray(candidates, dtype=float).reshape(-1, 2)
    speed = np.hypot(candidates[:, 0], candidates[:, 1])
    moving = speed >= _EPS
    u = candidates / np.where(moving, speed, 1.0)[:, None]

    t, s, parallel = ray_segment_params(position, u, wall.start, wall.end)
    hit = ~parallel & (t >= 0.0) & (s >= 0.0) & (s <= 1.0)
    hit_dist = np.minimum(np.maximum(0.0, t - radius), d_max)

    near_endpoint = any(v2.distance(position, endpoint) <= radius for endpoint in (wall.start, wall.end))
    miss_dist = 0.0 if near_endpoint else d_max

    if distance_to_segment(position, wall.start, wall.end) <= radius:
        signed = wall.a * position[0] + wall.b * position[1] + wall.c
        closing = signed * (wall.a * candidates[:, 0] + wall.b * candidates[:, 1]) < 0.0
        parallel_dist = np.where(closing, 0.0, d_max)
    else:
        parallel_dist = np.full(candidates.shape[0], d_max)

    out = np.where(parallel, parallel_dist, np.where(hit, hit_dist, miss_dist))
    return np.where(moving, out, d_max)


def compute_vision_arrays(position, radius: float, desired_speed: float, heading: float,
                          other_positions: np.ndarray, other_velocities: np.ndarray,
                          other_radii: np.ndarray, walls: Sequence[Wall], params: SimulationParams,
                          bounds=None, periodic: bool = False) -> VisionResult:
    """Array form of `compute_vision`.

    `other_*` must already exclude the observer and inactive agents. Under
    periodic boundaries each other agent is replaced by its nearest image
    relative to the observer; the heading itself is never changed here.
    """
    position = np.asarray(position, dtype=float)
    angles = sample_angles(params)
    candidates = v2.from_angles(heading + angles, desired_speed)
    distances = np.full(angles.shape[0], params.d_max, dtype=float)

    other_positions = np.asarray(other_positions, dtype=float).reshape(-1, 2)
    if other_positions.shape[0]:
        if periodic and bounds is not None:
            rel = periodic_displacement(position, other_positions, bounds)
        else:
            rel = other_positions - position
        combined = radius + np.asarray(other_radii, dtype=float)
        per_agent = pedestrian_collision_distances(rel, other_velocities, combined, candidates, params.d_max)
        distances = np.minimum(distances, per_agent.min(axis=1))

    for wall in walls:
        distances = np.minimum(distances, wall_collision_distances(position, radius, wall, candidates, params.d_max))

    return VisionResult(angles=angles, distances=np.clip(distances, 0.0, params.d_max))


def _others_arrays(pedestrian: Pedestrian, others: Sequence[Pedestrian]):
    visible = [o for o in others if o.active and o.id != pedestrian.id]
    if not visible:
        empty = np.zeros((0, 2), dtype=float)
        return empty, empty, np.zeros(0, dtype=float)
    positions = np.array([o.position for o in visible], dtype=float)
    velocities = np.array([o.velocity for o in visible], dtype=float)
    radii = np.array([o.radius for o in visible], dtype=float)
    return positions, velocities, radii


def compute_vision(pedestrian: Pedestrian, others: Sequence[Pedestrian], walls: Sequence[Wall],
                   params: SimulationParams, bounds=None, periodic: bool = False,
                   heading: Optional[float] = None) -> VisionResult:
    """Vision function for one pedestrian.

    `heading` defaults to the angle toward the destination. `others` may
    contain the pedestrian itself and inactive agents; both are skipped.
    """
    if heading is None:
        heading = v2.angle(pedestrian.destination - pedestrian.position)
    positions, velocities, radii = _others_arrays(pedestrian, others)
    return compute_vision_arrays(
        pedestrian.position, pedestrian.radius, pedestrian.desired_speed, heading,
        positions, velocities, radii, walls, params, bounds=bounds, periodic=periodic,
    )


def distance_in_direction(pedestrian: Pedestrian, direction: float, others: Sequence[Pedestrian],
                          walls: Sequence[Wall], d_max: float, bounds=None, periodic: bool = False) -> float:
    """f for a single absolute direction (radians); used for debug overlays."""
    candidate = v2.from_angle(direction, pedestrian.desired_speed)[None, :]
    best = d_max
    positions, velocities, radii = _others_arrays(pedestrian, others)
    if positions.shape[0]:
        if periodic and bounds is not None:
            rel = periodic_displacement(pedestrian.position, positions, bounds)
        else:
            rel = positions - pedestrian.position
        per_agent = pedestrian_collision_distances(rel, velocities, pedestrian.radius + radii, candidate, d_max)
        best = min(best, float(per_agent.min()))
    for wall in walls:
        best = min(best, float(wall_collision_distances(pedestrian.position, pedestrian.radius, wall, candidate, d_max)[0]))
    return max(0.0, best)
