#!/usr/bin/env python3
"""Tests for the similarity transform solver."""
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent))

import math

import pytest

from core.errors import DegenerateGeometryError, PreconditionError
from normalization import (
    AffineTransformSolver,
    Point,
    angle_to_horizontal,
    landmark_distance,
    targets_from_distance,
)


def test_scale_and_angle_from_two_point_targets():
    solver = AffineTransformSolver(right_target=(5, 5), left_target=(5, 15))

    params = solver.solve(right=(10, 10), left=(10, 30))

    assert params.scale == pytest.approx(0.5)
    assert params.angle == pytest.approx(0.0)
    assert params.input_anchor == Point(10.0, 20.0)
    assert params.output_anchor == Point(5.0, 10.0)


def test_upright_pair_with_level_targets_has_zero_angle():
    solver = AffineTransformSolver.from_eyes_distance(40.0, (30.0, 50.0))
    params = solver.solve((100.0, 80.0), (100.0, 140.0))
    assert params.angle == 0.0
    assert params.scale == pytest.approx(40.0 / 60.0)


def test_tilted_input_gives_rotation_angle():
    solver = AffineTransformSolver((0, 0), (0, 10))
    params = solver.solve((0, 0), (10, 10))
    assert params.angle == pytest.approx(math.pi / 4)
    assert params.scale == pytest.approx(10 / math.hypot(10, 10))


def test_tilted_targets_are_subtracted():
    solver = AffineTransformSolver((0, 0), (10, 10))
    params = solver.solve((5, 5), (15, 15))
    assert params.angle == pytest.approx(0.0)
    assert params.scale == pytest.approx(1.0)


def test_explicit_anchor_overrides_midpoint():
    solver = AffineTransformSolver((5, 5), (5, 15), anchor=(8, 12))
    assert solver.solve((0, 0), (0, 10)).output_anchor == Point(8.0, 12.0)


def test_coinciding_input_landmarks_are_degenerate():
    solver = AffineTransformSolver((5, 5), (5, 15))
    with pytest.raises(DegenerateGeometryError):
        solver.solve((7.5, 7.5), (7.5, 7.5))


def test_nearly_coinciding_input_landmarks_are_degenerate():
    solver = AffineTransformSolver((5, 5), (5, 15))
    with pytest.raises(DegenerateGeometryError):
        solver.solve((0.0, 0.0), (0.0, 1e-310))


def test_coinciding_targets_are_rejected():
    with pytest.raises(PreconditionError):
        AffineTransformSolver((5, 5), (5, 5))


@pytest.mark.parametrize("distance", [0.0, -3.0])
def test_non_positive_target_distance_is_rejected(distance):
    with pytest.raises(PreconditionError):
        AffineTransformSolver.from_eyes_distance(distance, (10, 10))


def test_targets_from_distance_are_level_by_default():
    right, left = targets_from_distance(20.0, (10.0, 30.0))
    assert right == Point(10.0, 20.0)
    assert left == Point(10.0, 40.0)


def test_targets_from_distance_with_angle():
    right, left = targets_from_distance(2.0, (0.0, 0.0), math.pi / 2)
    assert right.y == pytest.approx(-1.0)
    assert right.x == pytest.approx(0.0, abs=1e-12)
    assert left.y == pytest.approx(1.0)


def test_solver_exposes_targets():
    solver = AffineTransformSolver.from_eyes_distance(20.0, (10.0, 30.0))
    assert solver.right_target == Point(10.0, 20.0)
    assert solver.left_target == Point(10.0, 40.0)
    assert solver.anchor == Point(10.0, 30.0)
    assert solver.target_distance == pytest.approx(20.0)
    assert solver.target_angle == pytest.approx(0.0)


def test_helpers():
    assert landmark_distance((0, 0), (3, 4)) == pytest.approx(5.0)
    assert angle_to_horizontal((0, 0), (0, 1)) == 0.0
    assert angle_to_horizontal((0, 0), (1, 0)) == pytest.approx(math.pi / 2)


def test_malformed_points_are_rejected():
    solver = AffineTransformSolver((5, 5), (5, 15))
    with pytest.raises(PreconditionError):
        solver.solve((1, 2, 3), (4, 5))
    with pytest.raises(PreconditionError):
        solver.solve((float("nan"), 2), (4, 5))
