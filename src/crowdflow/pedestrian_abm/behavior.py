"""Behavioral heuristics built on the vision function.

Heuristic 1 picks the relative heading that minimizes the distance to the
destination once the first obstacle is reached; heuristic 2 caps the speed
so the pedestrian can stop within the free distance in time tau. Both are
pure and deterministic.
"""
from typing import Tuple
import math

import numpy as np

from crowdflow.pedestrian_abm.entities import DirectionResult, SimulationParams


def direction_costs(angles: np.ndarray, distances: np.ndarray, d_max: float, alpha0: float = 0.0) -> np.ndarray:
    """d(alpha) = d_max^2 + f(alpha)^2 - 2 d_max f(alpha) cos(alpha0 - alpha)."""
    angles = np.asarray(angles, dtype=float)
    f = np.asarray(distances, dtype=float)
    return d_max * d_max + f * f - 2.0 * d_max * f * np.cos(alpha0 - angles)


def select_direction(angles, distances, params: SimulationParams) -> DirectionResult:
    """Heuristic 1.

    The local frame is centered on the destination direction (alpha0 = 0).
    Ties keep the first minimum in ascending angle order.
    """
    angles = np.asarray(angles, dtype=float)
    distances = np.asarray(distances, dtype=float)
    if angles.size == 0:
        raise ValueError('select_direction needs at least one sampled angle')
    costs = direction_costs(angles, distances, params.d_max)
    # np.argmin returns the first occurrence of the minimum
    best = int(np.argmin(costs))
    return DirectionResult(alpha_des=float(angles[best]), distance_to_obstacle=float(distances[best]))


def select_speed(desired_speed: float, distance_to_obstacle: float, tau: float) -> float:
    """Heuristic 2: v_des = min(v0, d_h / tau)."""
    return min(desired_speed, distance_to_obstacle / tau)


def compute_desired_velocity(desired_speed: float, angles, distances, params: SimulationParams) -> Tuple[float, float]:
    """Return (alpha_des, speed_des) for one pedestrian."""
    choice = select_direction(angles, distances, params)
    return choice.alpha_des, select_speed(desired_speed, choice.distance_to_obstacle, params.tau)


def desired_velocity_vector(heading: float, alpha_des: float, speed_des: float) -> np.ndarray:
    direction = heading + alpha_des
    return np.array([math.cos(direction) * speed_des, math.sin(direction) * speed_des], dtype=float)
