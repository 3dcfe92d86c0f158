import math
import numpy as np
import pytest

from crowdflow.pedestrian_abm import vector as v2


def test_length_and_distance():
    assert v2.length((3.0, 4.0)) == 5.0
    assert v2.length_squared((3.0, 4.0)) == 25.0
    assert v2.distance((1.0, 1.0), (4.0, 5.0)) == 5.0


def test_normalize_zero_vector_is_zero():
    assert np.allclose(v2.normalize((0.0, 0.0)), (0.0, 0.0))
    assert np.allclose(v2.normalize((3.0, 4.0)), (0.6, 0.8))


def test_normalize_rows_handles_zero_rows():
    out = v2.normalize_rows(np.array([[0.0, 2.0], [0.0, 0.0]]))
    assert np.allclose(out, [[0.0, 1.0], [0.0, 0.0]])


def test_cross_dot_angle():
    assert v2.cross((1.0, 0.0), (0.0, 1.0)) == 1.0
    assert v2.dot((1.0, 2.0), (3.0, 4.0)) == 11.0
    assert abs(v2.angle((0.0, 1.0)) - math.pi / 2) < 1e-12


def test_polar_helpers():
    assert np.allclose(v2.from_angle(math.pi / 2, 2.0), (0.0, 2.0))
    stack = v2.from_angles(np.array([0.0, math.pi]), 1.5)
    assert stack.shape == (2, 2)
    assert np.allclose(stack, [[1.5, 0.0], [-1.5, 0.0]])
    assert np.allclose(v2.rotate((1.0, 0.0), math.pi / 2), (0.0, 1.0))
    assert np.allclose(v2.perpendicular((1.0, 0.0)), (0.0, 1.0))


def test_clamp_length_and_lerp():
    assert np.allclose(v2.clamp_length((3.0, 4.0), 1.0), (0.6, 0.8))
    assert np.allclose(v2.clamp_length((0.3, 0.4), 1.0), (0.3, 0.4))
    assert np.allclose(v2.lerp((0.0, 0.0), (2.0, 4.0), 0.5), (1.0, 2.0))


def test_normalize_angle_range():
    assert abs(float(v2.normalize_angle(3 * math.pi / 2)) + math.pi / 2) < 1e-12
    wrapped = v2.normalize_angle(np.array([math.pi, -math.pi, 7.0]))
    assert np.all(wrapped >= -math.pi) and np.all(wrapped < math.pi)


def test_as_vec_rejects_bad_shape():
    with pytest.raises(ValueError):
        v2.as_vec((1.0, 2.0, 3.0))
