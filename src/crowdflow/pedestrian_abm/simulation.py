"""
simulation.py

Simulation orchestrator for the vision-based pedestrian model.

One call to `Simulation.step()` advances every active pedestrian by `dt`:

    0. apply parameter updates queued since the previous step
    1. contact forces for the whole population
    2. base heading per pedestrian
    3. vision + heuristics per pedestrian -> desired velocity
    4. acceleration (v_des - v) / tau + F / m
    5. explicit Euler update of velocity, then position
    6. periodic wrap
    7. advance the clock
    8. step hooks, in registration order

Steps 1-4 read a single snapshot of the population taken before any write,
so the outcome does not depend on the order pedestrians are stored in.
"""
from typing import Callable, Dict, List, Optional, Sequence
import logging
import math

import numpy as np

from crowdflow.pedestrian_abm.behavior import compute_desired_velocity
from crowdflow.pedestrian_abm.config import NUMERICS
from crowdflow.pedestrian_abm.entities import Environment, Pedestrian, SimulationMetrics, SimulationParams, active_only
from crowdflow.pedestrian_abm.geometry import wrap_position
from crowdflow.pedestrian_abm.perception import compute_vision_arrays
from crowdflow.pedestrian_abm.physics import compute_average_compression, compute_contact_forces
from crowdflow.pedestrian_abm import vector as v2

logger = logging.getLogger(__name__)

StepHook = Callable[['Simulation'], None]
CustomMetricsFn = Callable[['Simulation'], Dict[str, object]]


def base_heading(ped: Pedestrian, periodic: bool) -> float:
    """Absolute reference heading the vision field is centered on.

    Under periodic boundaries the heading follows the direction sign only, so
    pedestrians walk through the crowd instead of around the torus.
    """
    if periodic:
        return 0.0 if ped.direction > 0 else math.pi
    to_destination = ped.destination - ped.position
    if v2.length(to_destination) > NUMERICS['arrival_tolerance']:
        return v2.angle(to_destination)
    if ped.speed > NUMERICS['moving_speed']:
        return v2.angle(ped.velocity)
    return 0.0


class Simulation:
    """Owns the population and advances it in fixed time steps.

    Parameters
    - environment: walls, bounds and boundary kind (read-only here)
    - params: `SimulationParams`; defaults when omitted
    - step_hooks: callables run after every step with the simulation
    - custom_metrics: optional callable returning extra metrics for `get_metrics`
    """

    def __init__(self, environment: Environment, params: Optional[SimulationParams] = None,
                 step_hooks: Sequence[StepHook] = (), custom_metrics: Optional[CustomMetricsFn] = None):
        self.environment = environment
        self.params = params if params is not None else SimulationParams()
        self.pedestrians: List[Pedestrian] = []
        self.time = 0.0
        self.step_count = 0
        self.custom_metrics = custom_metrics
        self._step_hooks: List[StepHook] = list(step_hooks)
        self._pending_params: Optional[SimulationParams] = None
        logger.debug('simulation created: %d walls, %s boundary, params=%s',
                     len(environment.walls), environment.boundary_type, self.params.as_dict())

    @property
    def periodic(self) -> bool:
        return self.environment.periodic

    # ── population ────────────────────────────────────────────────────────
    def add_pedestrians(self, pedestrians: Sequence[Pedestrian]) -> None:
        self.pedestrians.extend(pedestrians)
        logger.info('added %d pedestrians (%d total)', len(pedestrians), len(self.pedestrians))

    def clear_pedestrians(self) -> None:
        self.pedestrians = []

    def reset(self, pedestrians: Optional[Sequence[Pedestrian]] = None) -> None:
        """Drop all pedestrians and restart the clock; hooks and params are kept."""
        self.pedestrians = []
        self.time = 0.0
        self.step_count = 0
        logger.info('simulation reset')
        if pedestrians:
            self.add_pedestrians(pedestrians)

    def active_pedestrians(self) -> List[Pedestrian]:
        return active_only(self.pedestrians)

    def pedestrians_by_direction(self, direction: int) -> List[Pedestrian]:
        return [p for p in self.pedestrians if p.active and p.direction == direction]

    # ── hooks and parameters ──────────────────────────────────────────────
    def on_step(self, hook: StepHook) -> None:
        self._step_hooks.append(hook)

    def update_params(self, **changes) -> SimulationParams:
        """Queue new parameter values for the start of the next step.

        Values are validated now; a bad value raises `ValueError` and leaves
        any previously queued update untouched. Successive calls accumulate.
        """
        base = self._pending_params if self._pending_params is not None else self.params
        self._pending_params = base.replace(**changes)
        return self._pending_params

    def _apply_pending_params(self) -> None:
        if self._pending_params is None:
            return
        logger.debug('applying params %s', self._pending_params.as_dict())
        self.params = self._pending_params
        self._pending_params = None

    # ── stepping ──────────────────────────────────────────────────────────
    def step(self) -> None:
        self._apply_pending_params()
        params = self.params
        env = self.environment
        periodic = env.periodic
        bounds = env.bounds
        peds = self.pedestrians

        forces = compute_contact_forces(peds, env.walls, params, bounds=bounds, periodic=periodic)

        n = len(peds)
        positions = np.array([p.position for p in peds], dtype=float).reshape(n, 2)
        velocities = np.array([p.velocity for p in peds], dtype=float).reshape(n, 2)
        radii = np.array([p.radius for p in peds], dtype=float)
        active = np.array([p.active for p in peds], dtype=bool)
        active_idx = np.flatnonzero(active)

        # decisions for every pedestrian from the same snapshot
        desired = np.zeros((n, 2), dtype=float)
        for i in active_idx:
            ped = peds[i]
            heading = base_heading(ped, periodic)
            others = active.copy()
            others[i] = False
            vision = compute_vision_arrays(
                positions[i], radii[i], ped.desired_speed, heading,
                positions[others], velocities[others], radii[others],
                env.walls, params, bounds=bounds, periodic=periodic,
            )
            alpha_des, speed_des = compute_desired_velocity(ped.desired_speed, vision.angles, vision.distances, params)
            desired[i] = v2.from_angle(heading + alpha_des, speed_des)

        # writes
        for i in active_idx:
            ped = peds[i]
            acceleration = (desired[i] - velocities[i]) / params.tau + forces[i] / ped.mass
            ped.velocity = velocities[i] + acceleration * params.dt
            position = positions[i] + ped.velocity * params.dt
            ped.position = wrap_position(position, bounds) if periodic else position

        self.time += params.dt
        self.step_count += 1
        if self.step_count % 500 == 0:
            logger.debug('step %d t=%.2f s active=%d', self.step_count, self.time, active_idx.size)

        for hook in self._step_hooks:
            hook(self)

    def step_n(self, n: int) -> None:
        for _ in range(n):
            self.step()

    # ── read-only views ───────────────────────────────────────────────────
    def get_metrics(self) -> SimulationMetrics:
        """Aggregate state of the active population; does not modify anything."""
        active = self.active_pedestrians()
        count = len(active)
        average_speed = float(np.mean([p.speed for p in active])) if count else 0.0
        body_area = sum(math.pi * p.radius * p.radius for p in active)
        occupancy = body_area / self.environment.bounds.area
        compression = compute_average_compression(self.pedestrians, self.environment.bounds, self.periodic)
        custom = dict(self.custom_metrics(self)) if self.custom_metrics is not None else {}
        return SimulationMetrics(
            time=self.time,
            pedestrian_count=count,
            average_speed=average_speed,
            occupancy=occupancy,
            average_compression=compression,
            custom=custom,
        )

    def snapshot(self) -> Dict[str, np.ndarray]:
        """Read-only arrays of the full population for renderers and recorders."""
        n = len(self.pedestrians)
        out = {
            'ids': np.array([p.id for p in self.pedestrians], dtype=int),
            'positions': np.array([p.position for p in self.pedestrians], dtype=float).reshape(n, 2),
            'velocities': np.array([p.velocity for p in self.pedestrians], dtype=float).reshape(n, 2),
            'radii': np.array([p.radius for p in self.pedestrians], dtype=float),
            'directions': np.array([p.direction for p in self.pedestrians], dtype=int),
            'active': np.array([p.active for p in self.pedestrians], dtype=bool),
        }
        for arr in out.values():
            arr.setflags(write=False)
        return out
