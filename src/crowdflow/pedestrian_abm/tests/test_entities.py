import math
import numpy as np
import pytest

from crowdflow.pedestrian_abm.entities import (
    Bounds,
    Environment,
    Pedestrian,
    SimulationMetrics,
    SimulationParams,
    Wall,
    active_only,
)


def _ped(mass=80.0, **kw):
    return Pedestrian(id=0, position=(0.0, 0.0), velocity=(0.0, 0.0), mass=mass,
                      desired_speed=kw.pop('desired_speed', 1.3), destination=(1.0, 0.0), **kw)


def test_radius_follows_mass():
    ped = _ped(mass=96.0)
    assert abs(ped.radius - 0.3) < 1e-12


def test_mass_and_radius_are_read_only():
    ped = _ped()
    with pytest.raises(AttributeError):
        ped.mass = 70.0
    with pytest.raises(AttributeError):
        ped.radius = 0.1
    ped.position = np.array([1.0, 2.0])
    assert np.allclose(ped.position, (1.0, 2.0))
    assert ped.radius == 80.0 / 320.0


def test_pedestrian_validation():
    with pytest.raises(ValueError):
        _ped(mass=0.0)
    with pytest.raises(ValueError):
        _ped(desired_speed=-0.1)
    assert _ped(direction=-3).direction == -1


def test_wall_from_points():
    wall = Wall.from_points((0.0, 0.0), (0.0, 2.0))
    assert abs(np.hypot(*wall.normal) - 1.0) < 1e-12
    assert np.allclose(wall.normal, (wall.a, wall.b))
    assert wall.length == 2.0
    with pytest.raises(ValueError):
        wall.start[0] = 5.0
    with pytest.raises(ValueError):
        Wall.from_points((1.0, 1.0), (1.0, 1.0))


def test_bounds_and_environment():
    bounds = Bounds(-1.0, 1.0, 0.0, 3.0)
    assert bounds.width == 2.0 and bounds.height == 3.0 and bounds.area == 6.0
    assert bounds.contains((-1.0, 0.0)) and not bounds.contains((1.0, 0.0))
    with pytest.raises(ValueError):
        Bounds(1.0, 1.0, 0.0, 1.0)
    env = Environment(walls=[], bounds=bounds, boundary_type='periodic')
    assert env.periodic and env.walls == ()
    with pytest.raises(ValueError):
        Environment(walls=(), bounds=bounds, boundary_type='toroidal')


def test_params_defaults_and_validation():
    p = SimulationParams()
    assert p.tau == 0.5 and p.d_max == 10.0 and p.dt == 0.02
    assert abs(p.phi - math.radians(75.0)) < 1e-12
    for bad in ({'tau': 0.0}, {'phi': 4.0}, {'phi': 0.0}, {'k': -1.0}, {'dt': -0.01},
                {'angular_resolution': 0.0}, {'d_max': float('inf')}):
        with pytest.raises(ValueError):
            SimulationParams(**bad)


def test_params_replace_and_from_dict():
    p = SimulationParams().replace(tau=0.3)
    assert p.tau == 0.3
    with pytest.raises(ValueError):
        p.replace(speed=2.0)
    q = SimulationParams.from_dict({'d_max': 8})
    assert q.d_max == 8.0 and q.as_dict()['d_max'] == 8.0
    with pytest.raises(ValueError):
        SimulationParams.from_dict({'alpha': 1.0})


def test_metrics_as_dict_merges_custom():
    m = SimulationMetrics(time=1.0, pedestrian_count=2, average_speed=1.1, occupancy=0.2,
                          average_compression=0.0, custom={'band_index': 0.7})
    out = m.as_dict()
    assert out['band_index'] == 0.7
    assert out['pedestrian_count'] == 2


def test_active_only_keeps_storage_order():
    peds = [_ped(), _ped(active=False), _ped()]
    peds[2].position = np.array([2.0, 0.0])
    kept = active_only(peds)
    assert len(kept) == 2
    assert kept[0] is peds[0] and kept[1] is peds[2]
    assert active_only([]) == []
