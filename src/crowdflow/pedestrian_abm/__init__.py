"""Vision-based pedestrian ABM.

Each agent scans its field of view for the distance it can walk before an
unavoidable collision, picks the heading that brings it closest to its
destination, caps its speed by a relaxation time, and is pushed apart by
penalty contact forces when bodies overlap.
"""
from crowdflow.pedestrian_abm.entities import (
    Bounds,
    Environment,
    Pedestrian,
    SimulationMetrics,
    SimulationParams,
    Wall,
)
from crowdflow.pedestrian_abm.pedestrian import PedestrianFactory
from crowdflow.pedestrian_abm.simulation import Simulation

__all__ = [
    'Bounds',
    'Environment',
    'Pedestrian',
    'PedestrianFactory',
    'Simulation',
    'SimulationMetrics',
    'SimulationParams',
    'Wall',
]
