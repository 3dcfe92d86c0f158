"""
environment.py

Wall layouts and environment assembly.

Layout builders return plain lists of `Wall` so scenarios can combine them
freely; `create_environment` freezes walls, bounds and the boundary kind into
an `Environment`. Coordinates are meters.
"""
from typing import List, Sequence

from crowdflow.pedestrian_abm.entities import Bounds, Environment, Wall


def create_wall(start, end) -> Wall:
    """One wall segment; raises ValueError for coincident endpoints."""
    return Wall.from_points(start, end)


def create_corridor(length: float, width: float, center_y: float = 0.0) -> List[Wall]:
    """Two horizontal walls centered on x = 0."""
    half_w = width / 2.0
    half_l = length / 2.0
    return [
        create_wall((-half_l, center_y + half_w), (half_l, center_y + half_w)),
        create_wall((half_l, center_y - half_w), (-half_l, center_y - half_w)),
    ]


def create_corridor_with_door(length: float, width: float, door_width: float,
                              door_position: str = 'right') -> List[Wall]:
    """Closed corridor with a centered door in the right end wall.

    Any `door_position` other than 'right' closes the right end.
    """
    half_w = width / 2.0
    half_l = length / 2.0
    half_door = door_width / 2.0
    walls = [
        create_wall((-half_l, half_w), (half_l, half_w)),
        create_wall((half_l, -half_w), (-half_l, -half_w)),
        create_wall((-half_l, -half_w), (-half_l, half_w)),
    ]
    if door_position == 'right':
        walls.append(create_wall((half_l, half_w), (half_l, half_door)))
        walls.append(create_wall((half_l, -half_door), (half_l, -half_w)))
    else:
        walls.append(create_wall((half_l, half_w), (half_l, -half_w)))
    return walls


def create_bottleneck(corridor_length: float, corridor_width: float, bottleneck_width: float,
                      bottleneck_position: float = 0.6, taper_length: float = 0.5) -> List[Wall]:
    """Corridor centered on x = 0 narrowing over `taper_length` to `bottleneck_width`.

    `bottleneck_position` is the fraction of the length where narrowing starts.
    The ends stay open.
    """
    half_w = corridor_width / 2.0
    half_b = bottleneck_width / 2.0
    half_l = corridor_length / 2.0
    x_b = -half_l + bottleneck_position * corridor_length
    x_n = x_b + taper_length
    return [
        create_wall((-half_l, half_w), (x_b, half_w)),
        create_wall((x_b, half_w), (x_n, half_b)),
        create_wall((x_n, half_b), (half_l, half_b)),
        create_wall((-half_l, -half_w), (x_b, -half_w)),
        create_wall((x_b, -half_w), (x_n, -half_b)),
        create_wall((x_n, -half_b), (half_l, -half_b)),
    ]


def create_l_shaped_corridor(width: float, leg_length: float) -> List[Wall]:
    """Vertical leg along x in [0, width] joining a horizontal leg to +x."""
    half_w = width / 2.0
    return [
        create_wall((0.0, -leg_length), (0.0, half_w)),
        create_wall((0.0, half_w), (leg_length, half_w)),
        create_wall((leg_length, half_w), (leg_length, -half_w)),
        create_wall((leg_length, -half_w), (width, -half_w)),
        create_wall((width, -half_w), (width, -leg_length)),
        create_wall((width, -leg_length), (0.0, -leg_length)),
    ]


def create_environment(walls: Sequence[Wall], bounds: Bounds, boundary_type: str = 'closed') -> Environment:
    return Environment(walls=tuple(walls), bounds=bounds, boundary_type=boundary_type)
