import math
import numpy as np
import pytest

from crowdflow.pedestrian_abm.behavior import (
    compute_desired_velocity,
    desired_velocity_vector,
    direction_costs,
    select_direction,
    select_speed,
)
from crowdflow.pedestrian_abm.entities import SimulationParams


def test_free_field_prefers_destination_direction():
    params = SimulationParams(d_max=10.0)
    choice = select_direction([-0.1, 0.0, 0.1], [10.0, 10.0, 10.0], params)
    assert choice.alpha_des == 0.0
    assert choice.distance_to_obstacle == 10.0


def test_tie_goes_to_first_angle():
    params = SimulationParams(d_max=10.0)
    choice = select_direction([-0.2, 0.2], [5.0, 5.0], params)
    assert choice.alpha_des == -0.2


def test_blocked_straight_path_turns_aside():
    params = SimulationParams(d_max=10.0)
    angles = np.array([-0.5, 0.0, 0.5])
    distances = np.array([10.0, 1.0, 10.0])
    costs = direction_costs(angles, distances, params.d_max)
    assert costs[0] == pytest.approx(costs[2])
    assert costs[0] < costs[1]
    assert select_direction(angles, distances, params).alpha_des == -0.5


def test_speed_cap():
    assert select_speed(1.3, 0.4, 0.5) == pytest.approx(0.8)
    assert select_speed(1.3, 10.0, 0.5) == 1.3
    assert select_speed(1.3, 0.0, 0.5) == 0.0


def test_compute_desired_velocity():
    params = SimulationParams(d_max=10.0, tau=0.5)
    alpha, speed = compute_desired_velocity(1.3, [-0.3, 0.0, 0.3], [10.0, 0.4, 0.4], params)
    assert alpha == -0.3
    assert speed == 1.3
    alpha, speed = compute_desired_velocity(1.3, [0.0], [0.4], params)
    assert alpha == 0.0
    assert speed == pytest.approx(0.8)


def test_desired_velocity_vector():
    assert np.allclose(desired_velocity_vector(0.0, math.pi / 2, 2.0), (0.0, 2.0))
    assert np.allclose(desired_velocity_vector(math.pi, 0.0, 1.0), (-1.0, 0.0))


def test_empty_samples_rejected():
    with pytest.raises(ValueError):
        select_direction([], [], SimulationParams())
