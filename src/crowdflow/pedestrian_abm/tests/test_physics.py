import numpy as np

from crowdflow.pedestrian_abm.entities import Bounds, Pedestrian, SimulationParams, Wall
from crowdflow.pedestrian_abm.geometry import periodic_displacement
from crowdflow.pedestrian_abm.physics import (
    compute_average_compression,
    compute_compression,
    compute_contact_forces,
    compute_pair_forces,
    wall_contact_force,
)

# radius 0.25 m
MASS = 80.0


def _ped(pid, pos, active=True, mass=MASS):
    return Pedestrian(id=pid, position=pos, velocity=(0.0, 0.0), mass=mass, desired_speed=1.3,
                      destination=(10.0, 0.0), active=active)


def test_pair_force_equal_and_opposite():
    params = SimulationParams(k=5000.0)
    peds = [_ped(0, (0.0, 0.0)), _ped(1, (0.4, 0.0))]
    forces = compute_contact_forces(peds, [], params)
    # overlap 0.1 m -> 500 N pushing the pair apart
    assert np.allclose(forces[0], (-500.0, 0.0))
    assert np.allclose(forces[1], (500.0, 0.0))


def test_no_force_without_contact():
    forces = compute_contact_forces([_ped(0, (0.0, 0.0)), _ped(1, (0.6, 0.0))], [], SimulationParams())
    assert np.allclose(forces, 0.0)


def test_internal_forces_cancel():
    rng = np.random.default_rng(7)
    positions = rng.uniform(-1.0, 1.0, size=(40, 2))
    radii = rng.uniform(0.19, 0.31, size=40)
    active = np.ones(40, dtype=bool)
    forces = compute_pair_forces(positions, radii, active, 5000.0)
    assert np.abs(forces).sum() > 0.0
    assert np.allclose(forces.sum(axis=0), 0.0, atol=1e-8)


def test_coincident_centers_use_x_axis():
    forces = compute_pair_forces(np.zeros((2, 2)), np.array([0.25, 0.25]), np.array([True, True]), 100.0)
    assert np.allclose(forces, [[50.0, 0.0], [-50.0, 0.0]])


def test_inactive_pedestrians_neither_feel_nor_exert():
    peds = [_ped(0, (0.0, 0.0)), _ped(1, (0.4, 0.0), active=False)]
    forces = compute_contact_forces(peds, [Wall.from_points((-1.0, 0.0), (1.0, 0.0))], SimulationParams())
    assert np.allclose(forces[1], 0.0)
    # only the wall pushes pedestrian 0 (center on the wall: perpendicular fallback)
    assert np.allclose(forces[0], (0.0, 5000.0 * 0.25))


def test_wall_force_along_normal():
    wall = Wall.from_points((-1.0, 0.0), (1.0, 0.0))
    f = wall_contact_force(np.array([0.0, 0.2]), 0.25, wall, 5000.0)
    assert np.allclose(f, (0.0, 250.0))
    below = wall_contact_force(np.array([0.0, -0.2]), 0.25, wall, 5000.0)
    assert np.allclose(below, (0.0, -250.0))
    assert np.allclose(wall_contact_force(np.array([0.0, 0.3]), 0.25, wall, 5000.0), 0.0)


def test_periodic_pair_force_across_boundary():
    bounds = Bounds(-8.0, 8.0, -2.0, 2.0)
    peds = [_ped(0, (7.9, 0.0)), _ped(1, (-7.9, 0.0))]
    forces = compute_contact_forces(peds, [], SimulationParams(k=5000.0), bounds=bounds, periodic=True)
    # images 0.2 m apart -> overlap 0.3 m
    assert np.allclose(forces[0], (-1500.0, 0.0))
    assert np.allclose(forces[1], (1500.0, 0.0))
    plain = compute_contact_forces(peds, [], SimulationParams(k=5000.0), bounds=bounds, periodic=False)
    assert np.allclose(plain, 0.0)


def test_half_span_image_matches_vision_convention():
    # exactly half the span apart: both sides must pick the same image
    bounds = Bounds(-1.0, 1.0, -1.0, 1.0)
    peds = [_ped(0, (0.5, 0.0), mass=192.0), _ped(1, (-0.5, 0.0), mass=192.0)]
    forces = compute_contact_forces(peds, [], SimulationParams(k=5000.0), bounds=bounds, periodic=True)
    image = periodic_displacement(peds[1].position, peds[0].position, bounds)
    assert np.allclose(image, (-1.0, 0.0))
    assert np.allclose(forces[0], 5000.0 * 0.2 * image)
    assert np.allclose(forces[1], -forces[0])


def test_compression_mean_overlap():
    peds = [_ped(0, (0.0, 0.0)), _ped(1, (0.4, 0.0)), _ped(2, (-0.3, 0.0)), _ped(3, (5.0, 0.0))]
    # pedestrian 0 touches 1 (0.1) and 2 (0.2)
    assert abs(compute_compression(peds[0], peds) - 0.15) < 1e-12
    assert compute_compression(peds[3], peds) == 0.0
    expected = (0.15 + 0.1 + 0.2 + 0.0) / 4.0
    assert abs(compute_average_compression(peds) - expected) < 1e-12
    assert compute_average_compression([]) == 0.0
