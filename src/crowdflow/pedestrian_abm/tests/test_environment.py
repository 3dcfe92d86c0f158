import numpy as np
import pytest

from crowdflow.pedestrian_abm.entities import Bounds
from crowdflow.pedestrian_abm.environment import (
    create_bottleneck,
    create_corridor,
    create_corridor_with_door,
    create_environment,
    create_l_shaped_corridor,
    create_wall,
)


def _ends(wall):
    return tuple(wall.start), tuple(wall.end)


def test_corridor_walls():
    walls = create_corridor(16.0, 4.0)
    assert [_ends(w) for w in walls] == [((-8.0, 2.0), (8.0, 2.0)), ((8.0, -2.0), (-8.0, -2.0))]


def test_door_gap_matches_width():
    walls = create_corridor_with_door(10.0, 4.0, 1.0)
    assert len(walls) == 5
    right = sorted((w for w in walls if w.start[0] == 5.0 and w.end[0] == 5.0), key=lambda w: w.start[1])
    assert np.isclose(right[1].end[1] - right[0].start[1], 1.0)
    closed = create_corridor_with_door(10.0, 4.0, 1.0, door_position='none')
    assert len(closed) == 4


def test_bottleneck_taper():
    walls = create_bottleneck(10.0, 6.0, 2.0, bottleneck_position=0.7, taper_length=1.0)
    assert len(walls) == 6
    assert _ends(walls[1]) == ((2.0, 3.0), (3.0, 1.0))
    assert _ends(walls[4]) == ((2.0, -3.0), (3.0, -1.0))
    # mirror image about y = 0
    for upper, lower in zip(walls[:3], walls[3:]):
        assert np.allclose(upper.start * (1, -1), lower.start)
        assert np.allclose(upper.end * (1, -1), lower.end)


def test_l_shaped_corridor_is_closed():
    walls = create_l_shaped_corridor(2.0, 6.0)
    for prev, nxt in zip(walls, walls[1:] + walls[:1]):
        assert np.allclose(prev.end, nxt.start)


def test_environment_assembly():
    bounds = Bounds(-1.0, 1.0, -1.0, 1.0)
    env = create_environment([create_wall((0.0, 0.0), (1.0, 0.0))], bounds, 'periodic')
    assert env.periodic and len(env.walls) == 1
    with pytest.raises(ValueError):
        create_wall((1.0, 1.0), (1.0, 1.0))
    with pytest.raises(ValueError):
        create_environment([], bounds, 'spiral')
