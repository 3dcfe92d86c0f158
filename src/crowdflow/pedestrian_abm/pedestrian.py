"""Pedestrian creation and management.

`PedestrianFactory` owns the identity counter and the random generator used
to sample body masses, desired speeds and spawn positions. Scenarios hold one
factory each and call `reset()` whenever they (re)initialize, so separate
simulations never share ids or random state.
"""
from typing import Callable, List, Optional, Sequence
import logging

import numpy as np

from crowdflow.pedestrian_abm.config import PEDESTRIAN_DEFAULTS, PLACEMENT
from crowdflow.pedestrian_abm.entities import Bounds, Pedestrian
from crowdflow.pedestrian_abm.geometry import random_normal
from crowdflow.pedestrian_abm import vector as v2

logger = logging.getLogger(__name__)

DestinationFn = Callable[[np.ndarray, int], Sequence[float]]
DirectionFn = Callable[[int], int]


class PedestrianFactory:
    """Creates pedestrians with sequential ids from a seeded generator.

    Parameters
    - seed: seed for `numpy.random.default_rng`; `None` draws fresh entropy.
    """

    def __init__(self, seed: Optional[int] = None):
        self.seed = seed
        self.rng = np.random.default_rng(seed)
        self._next_id = 0

    @property
    def next_id(self) -> int:
        return self._next_id

    def reset(self, reseed: bool = False) -> None:
        """Restart ids at 0; optionally restart the generator from `seed`."""
        self._next_id = 0
        if reseed:
            self.rng = np.random.default_rng(self.seed)

    def sample_mass(self) -> float:
        return float(self.rng.uniform(PEDESTRIAN_DEFAULTS['mass_min'], PEDESTRIAN_DEFAULTS['mass_max']))

    def sample_desired_speed(self, mean: Optional[float] = None, std: Optional[float] = None) -> float:
        mean = PEDESTRIAN_DEFAULTS['speed_mean'] if mean is None else mean
        std = PEDESTRIAN_DEFAULTS['speed_std'] if std is None else std
        return max(PEDESTRIAN_DEFAULTS['speed_min'], random_normal(self.rng, mean, std))

    def create(self, position, destination, mass: Optional[float] = None,
               desired_speed: Optional[float] = None, velocity=None,
               direction: int = PEDESTRIAN_DEFAULTS['direction']) -> Pedestrian:
        """Create one pedestrian and assign it the next id.

        Missing mass is drawn from U[60, 100] kg and missing desired speed from
        max(0.5, N(1.3, 0.2)) m/s. Explicit values are used as given.
        """
        if mass is None:
            mass = self.sample_mass()
        if desired_speed is None:
            desired_speed = self.sample_desired_speed()
        ped = Pedestrian(
            id=self._next_id,
            position=v2.as_vec(position),
            velocity=v2.zero() if velocity is None else v2.as_vec(velocity),
            mass=mass,
            desired_speed=float(desired_speed),
            destination=v2.as_vec(destination),
            direction=direction,
        )
        self._next_id += 1
        return ped

    def create_in_area(self, count: int, bounds: Bounds, destination_fn: DestinationFn,
                       desired_speed_mean: Optional[float] = None,
                       desired_speed_std: Optional[float] = None,
                       uniform_mass: Optional[float] = None,
                       direction_fn: Optional[DirectionFn] = None) -> List[Pedestrian]:
        """Place up to `count` non-overlapping pedestrians uniformly in `bounds`.

        Rejection sampling with a clearance margin of 0.05 m, bounded to
        `count * 100` attempts. The result may be shorter than `count` when the
        area cannot be packed; callers must check the length.
        """
        placed: List[Pedestrian] = []
        if count <= 0:
            return placed
        max_attempts = count * PLACEMENT['attempts_per_agent']
        margin = PLACEMENT['margin']
        positions = np.empty((count, 2), dtype=float)
        radii = np.empty(count, dtype=float)
        attempts = 0
        # bounded loop: at most max_attempts iterations
        while len(placed) < count and attempts < max_attempts:
            attempts += 1
            candidate = np.array([
                self.rng.uniform(bounds.x_min, bounds.x_max),
                self.rng.uniform(bounds.y_min, bounds.y_max),
            ])
            mass = uniform_mass if uniform_mass is not None else self.sample_mass()
            radius = mass / PEDESTRIAN_DEFAULTS['mass_to_radius']
            n = len(placed)
            if n:
                gaps = np.hypot(positions[:n, 0] - candidate[0], positions[:n, 1] - candidate[1])
                if np.any(gaps < radii[:n] + radius + margin):
                    continue
            index = n
            direction = direction_fn(index) if direction_fn is not None else PEDESTRIAN_DEFAULTS['direction']
            ped = self.create(
                position=candidate,
                destination=destination_fn(candidate.copy(), index),
                mass=mass,
                desired_speed=self.sample_desired_speed(desired_speed_mean, desired_speed_std),
                direction=direction,
            )
            positions[n] = candidate
            radii[n] = radius
            placed.append(ped)

        if len(placed) < count:
            logger.warning('placed %d of %d pedestrians after %d attempts', len(placed), count, attempts)
        else:
            logger.debug('placed %d pedestrians in %d attempts', count, attempts)
        return placed


def update_destination(ped: Pedestrian, destination) -> None:
    ped.destination = v2.as_vec(destination)


def has_reached_destination(ped: Pedestrian, tolerance: float = 0.5) -> bool:
    return v2.distance(ped.position, ped.destination) < tolerance
