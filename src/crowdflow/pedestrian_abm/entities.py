"""Entity containers for the pedestrian model.

Holds the agent state (`Pedestrian`), the static geometry (`Wall`, `Bounds`,
`Environment`), the tunable constants (`SimulationParams`) and the small
result records passed between the vision, heuristic and orchestration
layers.

Configuration errors (degenerate walls, empty bounds, non-positive time
constants) raise `ValueError` at construction time.
"""
from dataclasses import dataclass, field, fields, replace, asdict
from typing import Any, Dict, List, Sequence, Tuple
import math

import numpy as np

from crowdflow.pedestrian_abm.config import SIMULATION_DEFAULTS, PEDESTRIAN_DEFAULTS, NUMERICS
from crowdflow.pedestrian_abm.geometry import line_from_points

BOUNDARY_TYPES = ('closed', 'periodic', 'open')


def _frozen_vec(v) -> np.ndarray:
    out = np.array(v, dtype=float)
    if out.shape != (2,):
        raise ValueError(f'expected a 2D point, got shape {out.shape}')
    out.setflags(write=False)
    return out


@dataclass(eq=False)
class Pedestrian:
    """Agent state.

    `radius` is derived from `mass` (mass / 320) and neither can be changed
    after construction. `active` is a soft-delete flag: inactive agents stay
    in storage so ids remain stable for collaborators.
    """
    id: int
    position: np.ndarray
    velocity: np.ndarray
    mass: float
    desired_speed: float
    destination: np.ndarray
    direction: int = 1
    active: bool = True

    def __post_init__(self):
        if not self.mass > 0.0:
            raise ValueError(f'mass must be positive, got {self.mass}')
        if self.desired_speed < 0.0:
            raise ValueError(f'desired_speed must be non-negative, got {self.desired_speed}')
        self.position = np.array(self.position, dtype=float)
        self.velocity = np.array(self.velocity, dtype=float)
        self.destination = np.array(self.destination, dtype=float)
        self.mass = float(self.mass)
        self.direction = 1 if self.direction >= 0 else -1
        object.__setattr__(self, '_locked', True)

    def __setattr__(self, name, value):
        if name in ('mass', 'radius') and getattr(self, '_locked', False):
            raise AttributeError(f'{name} is fixed after a pedestrian is created')
        object.__setattr__(self, name, value)

    @property
    def radius(self) -> float:
        return self.mass / PEDESTRIAN_DEFAULTS['mass_to_radius']

    @property
    def speed(self) -> float:
        return float(math.hypot(self.velocity[0], self.velocity[1]))


@dataclass(frozen=True, eq=False)
class Wall:
    """Line-segment obstacle with its implicit line a*x + b*y + c = 0.

    Build walls with `Wall.from_points`; (a, b) is the unit normal and equals
    `normal`.
    """
    start: np.ndarray
    end: np.ndarray
    a: float
    b: float
    c: float
    normal: np.ndarray

    @classmethod
    def from_points(cls, start, end) -> 'Wall':
        start = _frozen_vec(start)
        end = _frozen_vec(end)
        if math.hypot(end[0] - start[0], end[1] - start[1]) < NUMERICS['eps']:
            raise ValueError(f'wall endpoints coincide at {tuple(start)}')
        a, b, c = line_from_points(start, end)
        return cls(start=start, end=end, a=a, b=b, c=c, normal=_frozen_vec((a, b)))

    @property
    def line(self) -> Tuple[float, float, float]:
        return self.a, self.b, self.c

    @property
    def length(self) -> float:
        return float(math.hypot(self.end[0] - self.start[0], self.end[1] - self.start[1]))


@dataclass(frozen=True)
class Bounds:
    """Axis-aligned rectangle [x_min, x_max] x [y_min, y_max]."""
    x_min: float
    x_max: float
    y_min: float
    y_max: float

    def __post_init__(self):
        if not (self.x_max > self.x_min and self.y_max > self.y_min):
            raise ValueError(f'bounds must have positive extent, got {self}')

    @property
    def width(self) -> float:
        return self.x_max - self.x_min

    @property
    def height(self) -> float:
        return self.y_max - self.y_min

    @property
    def area(self) -> float:
        return self.width * self.height

    def contains(self, point) -> bool:
        """Half-open test, matching the periodic wrap [min, max)."""
        return self.x_min <= point[0] < self.x_max and self.y_min <= point[1] < self.y_max


@dataclass(frozen=True)
class Environment:
    """Walls, boundary kind and bounds supplied by a scenario."""
    walls: Tuple[Wall, ...]
    bounds: Bounds
    boundary_type: str = 'closed'

    def __post_init__(self):
        if self.boundary_type not in BOUNDARY_TYPES:
            raise ValueError(f'unknown boundary type {self.boundary_type!r}; expected one of {BOUNDARY_TYPES}')
        object.__setattr__(self, 'walls', tuple(self.walls))

    @property
    def periodic(self) -> bool:
        return self.boundary_type == 'periodic'


@dataclass(frozen=True)
class SimulationParams:
    """Model constants read once per step.

    Instances are immutable; use `replace(**changes)` (validated) or
    `Simulation.update_params` to change values between steps.
    """
    tau: float = SIMULATION_DEFAULTS['tau']
    phi: float = SIMULATION_DEFAULTS['phi']
    d_max: float = SIMULATION_DEFAULTS['d_max']
    k: float = SIMULATION_DEFAULTS['k']
    dt: float = SIMULATION_DEFAULTS['dt']
    angular_resolution: float = SIMULATION_DEFAULTS['angular_resolution']

    def __post_init__(self):
        for name in ('tau', 'd_max', 'dt', 'angular_resolution'):
            value = getattr(self, name)
            if not (value > 0.0 and math.isfinite(value)):
                raise ValueError(f'{name} must be positive and finite, got {value}')
        if not 0.0 < self.phi <= math.pi:
            raise ValueError(f'phi must be in (0, pi], got {self.phi}')
        if not (self.k >= 0.0 and math.isfinite(self.k)):
            raise ValueError(f'k must be non-negative, got {self.k}')

    @classmethod
    def from_dict(cls, values: Dict[str, Any]) -> 'SimulationParams':
        known = {f.name for f in fields(cls)}
        unknown = set(values) - known
        if unknown:
            raise ValueError(f'unknown simulation parameters: {sorted(unknown)}')
        return cls(**{k: float(v) for k, v in values.items()})

    def replace(self, **changes) -> 'SimulationParams':
        known = {f.name for f in fields(self)}
        unknown = set(changes) - known
        if unknown:
            raise ValueError(f'unknown simulation parameters: {sorted(unknown)}')
        return replace(self, **{k: float(v) for k, v in changes.items()})

    def as_dict(self) -> Dict[str, float]:
        return asdict(self)


@dataclass(frozen=True)
class VisionResult:
    """Sampled relative angles (ascending) and the obstacle distance for each."""
    angles: np.ndarray
    distances: np.ndarray


@dataclass(frozen=True)
class DirectionResult:
    alpha_des: float
    distance_to_obstacle: float


@dataclass(frozen=True)
class SimulationMetrics:
    time: float
    pedestrian_count: int
    average_speed: float
    occupancy: float
    average_compression: float
    custom: Dict[str, Any] = field(default_factory=dict)

    def as_dict(self) -> Dict[str, Any]:
        """Flat mapping with the custom metrics merged in."""
        out = {
            'time': self.time,
            'pedestrian_count': self.pedestrian_count,
            'average_speed': self.average_speed,
            'occupancy': self.occupancy,
            'average_compression': self.average_compression,
        }
        out.update(self.custom)
        return out


def active_only(pedestrians: Sequence[Pedestrian]) -> List[Pedestrian]:
    """List of the active pedestrians, in storage order."""
    return [p for p in pedestrians if p.active]
