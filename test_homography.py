import numpy as np
import pytest

from fretcoach.fretboard.homography import (
    InvalidPointSetError,
    apply_homography,
    compute_homography,
    identity_homography,
    invert_homography,
    project_points,
)
from fretcoach.types import Homography, Point2D

UNIT_CORNERS = [Point2D(0, 0), Point2D(1, 0), Point2D(0, 1), Point2D(1, 1)]


def test_same_points_give_identity():
    h = compute_homography(UNIT_CORNERS, UNIT_CORNERS)

    for corner in UNIT_CORNERS:
        result = apply_homography(h, corner)
        assert result.x == pytest.approx(corner.x, abs=1e-9)
        assert result.y == pytest.approx(corner.y, abs=1e-9)

    center = apply_homography(h, Point2D(0.5, 0.5))
    assert center.x == pytest.approx(0.5, abs=1e-9)
    assert center.y == pytest.approx(0.5, abs=1e-9)


def test_uniform_scale():
    src = [Point2D(0, 0), Point2D(100, 0), Point2D(0, 100), Point2D(100, 100)]
    dst = [Point2D(0, 0), Point2D(200, 0), Point2D(0, 200), Point2D(200, 200)]

    h = compute_homography(src, dst)
    result = apply_homography(h, Point2D(50, 50))

    assert result.x == pytest.approx(100, abs=1e-6)
    assert result.y == pytest.approx(100, abs=1e-6)

    off_center = apply_homography(h, Point2D(10, 70))
    assert off_center.x == pytest.approx(20, abs=1e-6)
    assert off_center.y == pytest.approx(140, abs=1e-6)


def test_perspective_quad_maps_onto_unit_square():
    src = [Point2D(10, 20), Point2D(200, 30), Point2D(20, 180), Point2D(210, 220)]

    h = compute_homography(src, UNIT_CORNERS)

    for point, corner in zip(project_points(h, src), UNIT_CORNERS):
        assert point.x == pytest.approx(corner.x, abs=1e-9)
        assert point.y == pytest.approx(corner.y, abs=1e-9)
    assert h[2, 2] == pytest.approx(1.0)


def test_inverse_maps_back_to_image():
    src = [Point2D(10, 20), Point2D(200, 30), Point2D(20, 180), Point2D(210, 220)]
    h = Homography(compute_homography(src, UNIT_CORNERS))

    back = h.inverse().apply(Point2D(1, 1))

    assert back.x == pytest.approx(210, abs=1e-6)
    assert back.y == pytest.approx(220, abs=1e-6)


@pytest.mark.parametrize("src,dst", [
    (UNIT_CORNERS[:3], UNIT_CORNERS),
    (UNIT_CORNERS, UNIT_CORNERS + [Point2D(2, 2)]),
    ([], []),
])
def test_wrong_point_count_is_rejected(src, dst):
    with pytest.raises(InvalidPointSetError):
        compute_homography(src, dst)


def test_invalid_point_set_is_a_value_error():
    assert issubclass(InvalidPointSetError, ValueError)


def test_degenerate_points_fall_back_to_identity():
    same = [Point2D(5, 5)] * 4

    h = compute_homography(same, UNIT_CORNERS)

    np.testing.assert_allclose(h, identity_homography())


def test_vanishing_w_returns_zero_point():
    matrix = np.array([[1.0, 0, 0], [0, 1.0, 0], [0, 0, 0]])

    assert apply_homography(matrix, Point2D(3, 4)) == Point2D(0.0, 0.0)


def test_singular_matrix_inverts_to_identity():
    np.testing.assert_allclose(invert_homography(np.zeros((3, 3))), identity_homography())
