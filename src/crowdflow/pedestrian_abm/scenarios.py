"""
scenarios.py

Scenario definitions for the pedestrian model.

A `Scenario` is plain data: parameters, bounds, boundary kind and a few
callables that build walls, populate the simulation, run per-step logic and
report custom metrics. Each registry entry is a factory function returning a
fresh `Scenario`, so two loaded copies never share state.

Callables receive the scenario's mutable `state` dict:

    build_walls(state) -> list of Wall
    populate(factory, state) -> list of Pedestrian
    step_hook(sim, state) -> None
    custom_metrics(sim, state) -> dict

Usage:
    scenario = create_scenario('Bidirectional Flow')
    sim = scenario.create(seed=7)
    sim.step_n(500)
    print(sim.get_metrics().custom['band_index'])
"""
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional
import logging
import math

import numpy as np

from crowdflow.pedestrian_abm.entities import Bounds, Pedestrian, SimulationParams, Wall
from crowdflow.pedestrian_abm.environment import (
    create_bottleneck,
    create_corridor,
    create_corridor_with_door,
    create_environment,
    create_l_shaped_corridor,
    create_wall,
)
from crowdflow.pedestrian_abm.metrics import compute_band_index
from crowdflow.pedestrian_abm.pedestrian import PedestrianFactory
from crowdflow.pedestrian_abm.simulation import Simulation

logger = logging.getLogger(__name__)

State = Dict[str, Any]


@dataclass
class Scenario:
    """A named initial configuration plus optional per-step behavior."""
    name: str
    description: str
    params: Dict[str, float]
    bounds: Bounds
    boundary_type: str
    build_walls: Callable[[State], List[Wall]]
    populate: Callable[[PedestrianFactory, State], List[Pedestrian]]
    step_hook: Optional[Callable[[Simulation, State], None]] = None
    custom_metrics: Optional[Callable[[Simulation, State], Dict[str, Any]]] = None
    state: State = field(default_factory=dict)
    factory: Optional[PedestrianFactory] = None

    def create(self, seed: Optional[int] = None, **param_overrides) -> Simulation:
        """Build the environment and a populated `Simulation`.

        `param_overrides` replace entries of `params`; unknown names or
        invalid values raise `ValueError`.
        """
        params = SimulationParams.from_dict({**self.params, **param_overrides})
        environment = create_environment(self.build_walls(self.state), self.bounds, self.boundary_type)
        self.factory = PedestrianFactory(seed)

        hooks = []
        if self.step_hook is not None:
            hooks.append(lambda sim: self.step_hook(sim, self.state))
        custom = None
        if self.custom_metrics is not None:
            def custom(sim):
                return self.custom_metrics(sim, self.state)

        sim = Simulation(environment, params=params, step_hooks=hooks, custom_metrics=custom)
        sim.add_pedestrians(self.populate(self.factory, self.state))
        logger.info('scenario %r loaded (seed=%s, %d pedestrians)', self.name, seed, len(sim.pedestrians))
        return sim

    def reset(self, sim: Simulation) -> None:
        """Repopulate `sim` from scratch; ids restart at 0 and the seed is replayed."""
        if self.factory is None:
            self.factory = PedestrianFactory()
        self.factory.reset(reseed=True)
        sim.reset(self.populate(self.factory, self.state))
        logger.info('scenario %r reset', self.name)


def _params(phi_deg: float, d_max: float, tau: float = 0.5) -> Dict[str, float]:
    return {'tau': tau, 'phi': math.radians(phi_deg), 'd_max': d_max, 'k': 5000.0, 'dt': 0.02}


# ── validation scenarios ──────────────────────────────────────────────────
def single_pedestrian() -> Scenario:
    """One walker accelerating from rest along an empty corridor."""
    def populate(factory, state):
        return [factory.create(position=(-8.0, 0.0), destination=(8.0, 0.0), desired_speed=1.29, velocity=(0.0, 0.0))]

    return Scenario(
        name='Single Pedestrian',
        description='Acceleration toward the desired speed without interactions',
        params=_params(90.0, 10.0, tau=0.54),
        bounds=Bounds(-10.0, 10.0, -2.0, 2.0),
        boundary_type='closed',
        build_walls=lambda state: create_corridor(20.0, 4.0),
        populate=populate,
    )


def _two_pedestrian_bounds() -> Bounds:
    return Bounds(-3.94, 3.94, -0.875, 0.875)


def two_pedestrian_static() -> Scenario:
    """A walker passing a person standing in the middle of the corridor."""
    def populate(factory, state):
        walker = factory.create(position=(-3.5, 0.0), destination=(3.5, 0.0), desired_speed=1.3, velocity=(0.0, 0.0))
        standing = factory.create(position=(0.0, 0.0), destination=(0.0, 0.0), desired_speed=0.0, velocity=(0.0, 0.0))
        return [walker, standing]

    return Scenario(
        name='Two Pedestrian (Static)',
        description='Avoidance trajectory around a static person',
        params=_params(75.0, 10.0),
        bounds=_two_pedestrian_bounds(),
        boundary_type='closed',
        build_walls=lambda state: create_corridor(7.88, 1.75),
        populate=populate,
    )


def two_pedestrian_moving() -> Scenario:
    """Two walkers approaching head-on."""
    def populate(factory, state):
        a = factory.create(position=(-3.5, 0.0), destination=(3.5, 0.0), desired_speed=1.3,
                           velocity=(0.0, 0.0), direction=1)
        b = factory.create(position=(3.5, 0.0), destination=(-3.5, 0.0), desired_speed=1.3,
                           velocity=(0.0, 0.0), direction=-1)
        return [a, b]

    return Scenario(
        name='Two Pedestrian (Moving)',
        description='Mutual avoidance of two walkers moving in opposite directions',
        params=_params(75.0, 10.0),
        bounds=_two_pedestrian_bounds(),
        boundary_type='closed',
        build_walls=lambda state: create_corridor(7.88, 1.75),
        populate=populate,
    )


# ── periodic flows ────────────────────────────────────────────────────────
def bidirectional_flow(pedestrian_count: int = 60) -> Scenario:
    """Counter-flowing halves in a periodic street; lanes form spontaneously."""
    bounds = Bounds(-8.0, 8.0, -2.0, 2.0)

    def populate(factory, state):
        half = state['pedestrian_count'] // 2
        return factory.create_in_area(
            state['pedestrian_count'], bounds,
            lambda pos, i: (bounds.x_max if i < half else bounds.x_min, pos[1]),
            desired_speed_mean=1.3, desired_speed_std=0.2,
            direction_fn=lambda i: 1 if i < half else -1,
        )

    def custom_metrics(sim, state):
        return {'band_index': compute_band_index(sim.pedestrians, bounds)}

    return Scenario(
        name='Bidirectional Flow',
        description='Spontaneous lane formation in counter-flow',
        params=_params(90.0, 10.0),
        bounds=bounds,
        boundary_type='periodic',
        build_walls=lambda state: create_corridor(16.0, 4.0),
        populate=populate,
        custom_metrics=custom_metrics,
        state={'pedestrian_count': pedestrian_count},
    )


def unidirectional_flow(pedestrian_count: int = 50) -> Scenario:
    """Everyone walking +x in a periodic street; density sets the flow regime."""
    bounds = Bounds(-4.0, 4.0, -1.5, 1.5)

    def populate(factory, state):
        return factory.create_in_area(
            state['pedestrian_count'], bounds,
            lambda pos, i: (bounds.x_max, pos[1]),
            desired_speed_mean=1.3, desired_speed_std=0.2,
            direction_fn=lambda i: 1,
        )

    return Scenario(
        name='Unidirectional Flow',
        description='Velocity-density relation and stop-and-go waves',
        params=_params(45.0, 8.0),
        bounds=bounds,
        boundary_type='periodic',
        build_walls=lambda state: create_corridor(8.0, 3.0),
        populate=populate,
        state={'pedestrian_count': pedestrian_count},
    )


def set_pedestrian_count(scenario: Scenario, count: int) -> None:
    """Population size used by the next `create` or `reset`."""
    if count < 0:
        raise ValueError(f'pedestrian count must be non-negative, got {count}')
    scenario.state['pedestrian_count'] = int(count)


# ── high density ──────────────────────────────────────────────────────────
def _bottleneck_walls(state):
    walls = create_bottleneck(10.0, 6.0, 2.0, bottleneck_position=0.7, taper_length=1.0)
    walls.append(create_wall((-5.0, -3.0), (-5.0, 3.0)))
    return walls


def bottleneck(pedestrian_count: int = 100) -> Scenario:
    """Crowd pushed through a 2 m opening; agents past x = 5 leave the simulation."""
    spawn = Bounds(-4.5, 1.5, -2.5, 2.5)

    def populate(factory, state):
        return factory.create_in_area(
            state['pedestrian_count'], spawn,
            lambda pos, i: (6.0, 0.0),
            desired_speed_mean=1.3, desired_speed_std=0.2,
            direction_fn=lambda i: 1,
        )

    def step_hook(sim, state):
        for ped in sim.pedestrians:
            if ped.active and ped.position[0] > 5.0:
                ped.active = False

    def custom_metrics(sim, state):
        active = sum(1 for p in sim.pedestrians if p.active)
        return {'active_pedestrians': active, 'exited_pedestrians': len(sim.pedestrians) - active}

    return Scenario(
        name='Bottleneck',
        description='Crowd turbulence upstream of a narrowing',
        params=_params(75.0, 8.0),
        bounds=Bounds(-5.0, 5.0, -3.0, 3.0),
        boundary_type='closed',
        build_walls=_bottleneck_walls,
        populate=populate,
        step_hook=step_hook,
        custom_metrics=custom_metrics,
        state={'pedestrian_count': pedestrian_count},
    )


def turning_corridor(pedestrian_count: int = 80) -> Scenario:
    """Dense crowd taking a 90 degree turn; destinations are retargeted at the corner."""
    spawn = Bounds(0.3, 1.7, -7.0, -1.0)

    def populate(factory, state):
        return factory.create_in_area(
            state['pedestrian_count'], spawn,
            lambda pos, i: (7.0, 0.0),
            desired_speed_mean=1.3, desired_speed_std=0.2,
        )

    def step_hook(sim, state):
        for ped in sim.pedestrians:
            if not ped.active:
                continue
            # head for the corner while still in the vertical leg
            target = (1.0, 0.0) if ped.position[1] < -0.5 else (7.0, 0.0)
            ped.destination = np.array(target, dtype=float)

    return Scenario(
        name='Turning Corridor',
        description='90 degree turn under high density',
        params=_params(75.0, 8.0),
        bounds=Bounds(0.0, 8.0, -8.0, 2.0),
        boundary_type='closed',
        build_walls=lambda state: create_l_shaped_corridor(2.0, 6.0),
        populate=populate,
        step_hook=step_hook,
        state={'pedestrian_count': pedestrian_count},
    )


# ── evacuation ────────────────────────────────────────────────────────────
DOOR_WIDTH_RANGE = (0.4, 2.0)


def evacuation(pedestrian_count: int = 80, door_width: float = 1.0) -> Scenario:
    """Room emptying through a door in the right wall."""
    bounds = Bounds(-5.0, 5.0, -2.0, 2.0)
    spawn = Bounds(bounds.x_min + 0.5, bounds.x_max - 1.0, bounds.y_min + 0.3, bounds.y_max - 0.3)

    def populate(factory, state):
        state['evacuated'] = 0
        placed = factory.create_in_area(
            state['pedestrian_count'], spawn,
            lambda pos, i: (bounds.x_max + 2.0, 0.0),
            desired_speed_mean=1.4, desired_speed_std=0.1,
            uniform_mass=60.0,
        )
        state['placed'] = len(placed)
        return placed

    def step_hook(sim, state):
        for ped in sim.pedestrians:
            if ped.active and ped.position[0] > bounds.x_max + 0.5:
                ped.active = False
                state['evacuated'] += 1

    def custom_metrics(sim, state):
        return {
            'evacuated': state['evacuated'],
            'remaining': state['placed'] - state['evacuated'],
        }

    scenario = Scenario(
        name='Evacuation',
        description='Room evacuation through a door of adjustable width',
        params=_params(90.0, 2.0),
        bounds=bounds,
        boundary_type='open',
        build_walls=lambda state: create_corridor_with_door(10.0, 4.0, state['door_width'], 'right'),
        populate=populate,
        step_hook=step_hook,
        custom_metrics=custom_metrics,
        state={'pedestrian_count': pedestrian_count, 'evacuated': 0, 'placed': 0},
    )
    set_door_width(scenario, door_width)
    return scenario


def set_door_width(scenario: Scenario, width: float) -> float:
    """Clamp to [0.4, 2.0] m; takes effect on the next `create`."""
    lo, hi = DOOR_WIDTH_RANGE
    scenario.state['door_width'] = max(lo, min(hi, float(width)))
    return scenario.state['door_width']


def is_evacuation_complete(scenario: Scenario) -> bool:
    """True once every placed pedestrian has left; placement may fall short of the requested count."""
    placed = scenario.state.get('placed', 0)
    return scenario.state.get('evacuated', 0) >= placed


# ── registry ──────────────────────────────────────────────────────────────
SCENARIOS: Dict[str, Callable[[], Scenario]] = {
    'Single Pedestrian': single_pedestrian,
    'Two Pedestrian (Static)': two_pedestrian_static,
    'Two Pedestrian (Moving)': two_pedestrian_moving,
    'Bidirectional Flow': bidirectional_flow,
    'Unidirectional Flow': unidirectional_flow,
    'Bottleneck': bottleneck,
    'Turning Corridor': turning_corridor,
    'Evacuation': evacuation,
}


def get_scenario_names() -> List[str]:
    return list(SCENARIOS)


def create_scenario(name: str) -> Scenario:
    try:
        factory = SCENARIOS[name]
    except KeyError:
        raise ValueError(f'unknown scenario {name!r}; choose from {get_scenario_names()}') from None
    return factory()
