import logging
import numpy as np

from crowdflow.pedestrian_abm.entities import Bounds
from crowdflow.pedestrian_abm.pedestrian import PedestrianFactory, has_reached_destination, update_destination


def test_ids_are_sequential_and_reset():
    factory = PedestrianFactory(seed=1)
    a = factory.create((0.0, 0.0), (1.0, 0.0))
    b = factory.create((1.0, 0.0), (2.0, 0.0))
    assert (a.id, b.id) == (0, 1)
    assert factory.next_id == 2
    factory.reset()
    assert factory.create((0.0, 0.0), (1.0, 0.0)).id == 0


def test_sampled_attributes_in_range():
    factory = PedestrianFactory(seed=2)
    for _ in range(50):
        ped = factory.create((0.0, 0.0), (1.0, 0.0))
        assert 60.0 <= ped.mass <= 100.0
        assert ped.desired_speed >= 0.5
        assert abs(ped.radius - ped.mass / 320.0) < 1e-12


def test_explicit_values_are_kept():
    ped = PedestrianFactory(seed=0).create((0.0, 0.0), (1.0, 0.0), mass=64.0, desired_speed=0.0,
                                           velocity=(0.5, 0.0), direction=-1)
    assert ped.mass == 64.0 and ped.desired_speed == 0.0
    assert np.allclose(ped.velocity, (0.5, 0.0))
    assert ped.direction == -1


def test_same_seed_same_population():
    bounds = Bounds(-4.0, 4.0, -1.5, 1.5)
    a = PedestrianFactory(seed=11).create_in_area(20, bounds, lambda pos, i: (4.0, pos[1]))
    b = PedestrianFactory(seed=11).create_in_area(20, bounds, lambda pos, i: (4.0, pos[1]))
    assert np.allclose([p.position for p in a], [p.position for p in b])
    assert [p.mass for p in a] == [p.mass for p in b]


def test_create_in_area_non_overlapping():
    bounds = Bounds(-8.0, 8.0, -2.0, 2.0)
    factory = PedestrianFactory(seed=5)
    seen = []
    peds = factory.create_in_area(
        40, bounds,
        lambda pos, i: seen.append(i) or (8.0, pos[1]),
        direction_fn=lambda i: 1 if i < 20 else -1,
    )
    assert len(peds) == 40
    assert seen == list(range(40))
    assert [p.direction for p in peds] == [1] * 20 + [-1] * 20
    for i, p in enumerate(peds):
        assert bounds.x_min <= p.position[0] <= bounds.x_max
        assert bounds.y_min <= p.position[1] <= bounds.y_max
        for q in peds[i + 1:]:
            assert np.hypot(*(p.position - q.position)) >= p.radius + q.radius + 0.05 - 1e-12


def test_uniform_mass_and_speed_distribution():
    peds = PedestrianFactory(seed=4).create_in_area(
        10, Bounds(0.0, 10.0, 0.0, 10.0), lambda pos, i: (20.0, 0.0),
        desired_speed_mean=1.4, desired_speed_std=0.0, uniform_mass=60.0,
    )
    assert all(p.mass == 60.0 for p in peds)
    assert all(abs(p.desired_speed - 1.4) < 1e-12 for p in peds)


def test_placement_shortfall_returns_fewer(caplog):
    factory = PedestrianFactory(seed=0)
    with caplog.at_level(logging.WARNING, logger='crowdflow.pedestrian_abm.pedestrian'):
        peds = factory.create_in_area(10, Bounds(0.0, 0.6, 0.0, 0.6), lambda pos, i: (1.0, 0.0))
    assert 0 < len(peds) < 10
    assert any('placed' in r.getMessage() for r in caplog.records)


def test_destination_helpers():
    ped = PedestrianFactory(seed=0).create((0.0, 0.0), (5.0, 0.0))
    assert not has_reached_destination(ped)
    update_destination(ped, (0.3, 0.0))
    assert has_reached_destination(ped)
    assert has_reached_destination(ped, tolerance=0.31)
    assert not has_reached_destination(ped, tolerance=0.2)
