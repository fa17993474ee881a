from __future__ import annotations

from amtrak_sunlight.simplify import simplify_shape


def test_collinear_points_collapse_to_endpoints() -> None:
    line = [(40.0, -90.0 - i * 0.1) for i in range(20)]
    assert simplify_shape(line, 0.001) == [line[0], line[-1]]


def test_short_paths_are_unchanged() -> None:
    assert simplify_shape([]) == []
    assert simplify_shape([(1.0, 2.0)]) == [(1.0, 2.0)]
    assert simplify_shape([(1.0, 2.0), (3.0, 4.0)]) == [(1.0, 2.0), (3.0, 4.0)]


def test_zero_tolerance_keeps_every_off_line_point() -> None:
    zigzag = [(0.0, 0.0), (1.0, 1.0), (0.0, 2.0), (1.0, 3.0), (0.0, 4.0)]
    assert simplify_shape(zigzag, 0.0) == zigzag


def test_deviation_equal_to_tolerance_is_dropped() -> None:
    path = [(0.0, 0.0), (0.5, 1.0), (0.0, 2.0)]
    assert simplify_shape(path, 0.5) == [(0.0, 0.0), (0.0, 2.0)]
    assert simplify_shape(path, 0.49) == path


def test_keeps_corner_and_drops_noise() -> None:
    # Two straight legs meeting at (0, 10) with small wobble on each leg
    path = [(0.0, 0.0), (0.0001, 5.0), (0.0, 10.0), (5.0, 10.0002), (10.0, 10.0)]
    result = simplify_shape(path, 0.01)
    assert result == [(0.0, 0.0), (0.0, 10.0), (10.0, 10.0)]


def test_result_preserves_order() -> None:
    path = [(0.0, float(i)) if i % 3 else (1.0, float(i)) for i in range(30)]
    result = simplify_shape(path, 0.1)
    assert result[0] == path[0] and result[-1] == path[-1]
    positions = [path.index(p) for p in result]
    assert positions == sorted(positions)


def test_equally_distant_points_split_at_the_first() -> None:
    # (1, 1) and (1, 2) both sit 1.0 from the chord; only the first survives
    path = [(0.0, 0.0), (1.0, 1.0), (1.0, 2.0), (0.0, 3.0)]
    assert simplify_shape(path, 0.5) == [(0.0, 0.0), (1.0, 1.0), (0.0, 3.0)]
