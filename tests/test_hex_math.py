import itertools

import pytest

from hexcombat.hex_math import (
    DIRECTIONS,
    AxialCoord,
    axial_to_offset,
    bearing,
    coord,
    coords_in_radius,
    hex_distance,
    hex_line,
    hex_round,
    neighbors,
    offset_to_axial,
)


def test_offset_axial_round_trip() -> None:
    for col in range(-9, 10):
        for row in range(-9, 10):
            axial = offset_to_axial(col, row)
            assert axial_to_offset(axial.q, axial.r) == (col, row)


def test_axial_offset_round_trip() -> None:
    for q in range(-6, 7):
        for r in range(-6, 7):
            col, row = axial_to_offset(q, r)
            assert offset_to_axial(col, row) == AxialCoord(q, r)


def test_odd_column_offset() -> None:
    assert offset_to_axial(1, 0) == AxialCoord(1, 0)
    assert offset_to_axial(2, 0) == AxialCoord(2, -1)
    assert offset_to_axial(3, 2) == AxialCoord(3, 1)


def test_distance_identity_and_symmetry() -> None:
    cells = coords_in_radius(AxialCoord(0, 0), 3)
    for a in cells:
        assert hex_distance(a, a) == 0
        for b in cells:
            assert hex_distance(a, b) == hex_distance(b, a)
            if a != b:
                assert hex_distance(a, b) > 0


def test_distance_triangle_inequality() -> None:
    cells = coords_in_radius(AxialCoord(1, -1), 2)
    for a, b, c in itertools.product(cells, repeat=3):
        assert hex_distance(a, c) <= hex_distance(a, b) + hex_distance(b, c)


def test_distance_examples() -> None:
    assert hex_distance((0, 0), (3, 0)) == 3
    assert hex_distance((0, 0), (2, -1)) == 2
    assert hex_distance((-2, 3), (2, -1)) == 4


def test_neighbors_follow_direction_order() -> None:
    center = AxialCoord(2, -1)
    result = neighbors(center)
    assert result == [AxialCoord(2 + d.q, -1 + d.r) for d in DIRECTIONS]
    assert all(hex_distance(center, n) == 1 for n in result)
    assert DIRECTIONS[0] == AxialCoord(1, 0)
    assert DIRECTIONS[5] == AxialCoord(0, 1)


def test_non_integer_coordinates_rejected() -> None:
    with pytest.raises(TypeError):
        offset_to_axial(1.5, 0)
    with pytest.raises(TypeError):
        hex_distance((0.5, 0), (1, 0))
    with pytest.raises(TypeError):
        coord((True, 0))


def test_coord_accepts_common_shapes() -> None:
    assert coord({"q": 1, "r": 2}) == AxialCoord(1, 2)
    assert coord([3, -1]) == AxialCoord(3, -1)
    assert coord(AxialCoord(0, 0)).s == 0


def test_hex_round_on_integers() -> None:
    assert hex_round(2.0, -1.0) == AxialCoord(2, -1)
    assert hex_round(0.1, -0.1) == AxialCoord(0, 0)


def test_hex_line_is_contiguous() -> None:
    a, b = AxialCoord(-2, 1), AxialCoord(3, -2)
    line = hex_line(a, b)
    assert line[0] == a
    assert line[-1] == b
    assert len(line) == hex_distance(a, b) + 1
    for first, second in zip(line, line[1:]):
        assert hex_distance(first, second) == 1


def test_hex_line_single_tile() -> None:
    assert hex_line((1, 1), (1, 1)) == [AxialCoord(1, 1)]


def test_coords_in_radius_count() -> None:
    for radius in range(5):
        cells = coords_in_radius((0, 0), radius)
        assert len(cells) == 1 + 3 * radius * (radius + 1)
        assert len(set(cells)) == len(cells)


def test_bearing_along_axes() -> None:
    assert bearing((0, 0), (1, 0)) == pytest.approx(0.0)
    assert bearing((0, 0), (-1, 0)) == pytest.approx(180.0)
