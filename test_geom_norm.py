#!/usr/bin/env python3
"""Tests for the geometric resampler."""
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent))

import math

import numpy as np
import pytest

from core.errors import PreconditionError, UnsupportedTypeError
from normalization import GeometricResampler, Point
from utils.extrapolation import BorderPolicy, extrapolate


def _random_image(shape, seed=0):
    return np.random.default_rng(seed).uniform(0, 255, size=shape)


def test_identity_transform_crops():
    image = _random_image((30, 30))
    resampler = GeometricResampler(crop_size=(10, 12), crop_offset=(0, 0))
    output = np.empty((10, 12))

    resampler.process(image, output, center=(3, 4))

    np.testing.assert_allclose(output, image[3:13, 4:16])


def test_half_scale_samples_every_second_pixel():
    image = _random_image((40, 40))
    resampler = GeometricResampler(scaling_factor=0.5, crop_size=(20, 20), crop_offset=(5, 10))
    output = np.empty((20, 20))

    resampler.process(image, output, center=(10, 20))

    np.testing.assert_allclose(output, image[0:40:2, 0:40:2])


def test_bilinear_interpolation_of_linear_image():
    ys, xs = np.indices((40, 40), dtype=np.float64)
    image = 2.0 * ys + 3.0 * xs
    resampler = GeometricResampler(0.3, 1.5, crop_size=(16, 16), crop_offset=(8, 8))
    output = np.empty((16, 16))

    resampler.process(image, output, center=(20, 20))

    matrix = resampler.affine_matrix((20, 20))
    out_y, out_x = np.indices((16, 16), dtype=np.float64)
    src_x = matrix[0, 0] * out_x + matrix[0, 1] * out_y + matrix[0, 2]
    src_y = matrix[1, 0] * out_x + matrix[1, 1] * out_y + matrix[1, 2]
    np.testing.assert_allclose(output, 2.0 * src_y + 3.0 * src_x, rtol=0, atol=1e-9)


def test_fractional_offset_is_interpolated_exactly():
    image = 100.0 * np.indices((12, 12), dtype=np.float64)[1]
    resampler = GeometricResampler(crop_size=(4, 4), crop_offset=(0, 0))
    output = np.empty((4, 4))

    resampler.process(image, output, center=(5, 5.3))

    expected = 100.0 * (np.arange(4) + 5.3)
    np.testing.assert_allclose(output, np.broadcast_to(expected, (4, 4)), rtol=0, atol=1e-9)


@pytest.mark.parametrize("policy", list(BorderPolicy))
def test_border_policies_match_padding(policy):
    image = _random_image((6, 7), seed=4)
    padded = extrapolate(image, 5, 5, policy)
    resampler = GeometricResampler(crop_size=(15, 17), crop_offset=(0, 0), border_policy=policy)
    output = np.empty((15, 17))

    # shifted by a quarter pixel so every sample mixes two padded rows
    resampler.process(image, output, center=(-4.75, -5))

    expected = 0.75 * padded[0:15] + 0.25 * padded[1:16]
    np.testing.assert_allclose(output, expected, rtol=0, atol=1e-9)


def test_transform_point_inverts_affine_matrix():
    resampler = GeometricResampler(0.7, 1.3, crop_size=(50, 40), crop_offset=(12, 20))
    center = Point(33.0, 41.0)
    point = Point(25.0, 60.0)

    mapped = resampler.transform_point(point, center)
    matrix = resampler.affine_matrix(center)
    back_x, back_y = matrix @ np.array([mapped.x, mapped.y, 1.0])

    assert back_y == pytest.approx(point.y)
    assert back_x == pytest.approx(point.x)
    assert resampler.transform_point(center, center) == pytest.approx(resampler.crop_offset)


def test_quarter_turn_maps_axes():
    resampler = GeometricResampler(rotation_angle=math.pi / 2, crop_offset=(0, 0))
    # input direction +y maps onto output direction +x
    mapped = resampler.transform_point((1, 0), (0, 0))
    assert mapped.y == pytest.approx(0.0, abs=1e-12)
    assert mapped.x == pytest.approx(1.0)


def test_zero_border_fills_outside_with_zeros():
    image = np.full((10, 10), 5.0)
    resampler = GeometricResampler(crop_size=(4, 4), crop_offset=(0, 0), border_policy=BorderPolicy.ZERO)
    output = np.empty((4, 4))

    resampler.process(image, output, center=(-2, 0))

    np.testing.assert_array_equal(output[:2], 0.0)
    np.testing.assert_array_equal(output[2:], 5.0)


def test_nearest_border_replicates_edge():
    image = np.full((10, 10), 5.0)
    resampler = GeometricResampler(crop_size=(4, 4), crop_offset=(0, 0), border_policy=BorderPolicy.NEAREST)
    output = np.empty((4, 4))

    resampler.process(image, output, center=(-2, -3))

    np.testing.assert_array_equal(output, 5.0)


def test_mask_on_integer_grid_only_invalidates_the_sampled_pixel():
    image = _random_image((20, 20))
    image_mask = np.ones((20, 20), dtype=bool)
    image_mask[10, 10] = False
    resampler = GeometricResampler(crop_size=(8, 8), crop_offset=(0, 0))
    output = np.empty((8, 8))
    output_mask = np.zeros((8, 8), dtype=bool)

    resampler.process(image, output, (5, 5), image_mask, output_mask)

    expected = np.ones((8, 8), dtype=bool)
    expected[5, 5] = False
    np.testing.assert_array_equal(output_mask, expected)


def test_mask_invalidates_every_bilinear_neighbourhood_touching_an_invalid_pixel():
    image = _random_image((20, 20))
    image_mask = np.ones((20, 20), dtype=bool)
    image_mask[10, 10] = False
    resampler = GeometricResampler(crop_size=(8, 8), crop_offset=(0, 0))
    output = np.empty((8, 8))
    output_mask = np.zeros((8, 8), dtype=bool)

    # half pixel shift: each output pixel interpolates a 2x2 input block
    resampler.process(image, output, (5.5, 5.5), image_mask, output_mask)

    expected = np.ones((8, 8), dtype=bool)
    expected[4:6, 4:6] = False
    np.testing.assert_array_equal(output_mask, expected)


def test_mask_is_false_outside_the_input():
    image = np.ones((10, 10))
    resampler = GeometricResampler(crop_size=(4, 4), crop_offset=(0, 0), border_policy=BorderPolicy.NEAREST)
    output_mask = np.ones((4, 4), dtype=bool)

    resampler.process(image, np.empty((4, 4)), (-2, 0), np.ones((10, 10), dtype=bool), output_mask)

    assert not output_mask[:2].any()
    assert output_mask[2:].all()


def test_wrong_output_shape_is_rejected_and_untouched():
    resampler = GeometricResampler(crop_size=(4, 4))
    output = np.full((5, 4), 7.0)
    with pytest.raises(PreconditionError):
        resampler.process(np.zeros((10, 10)), output, (5, 5))
    np.testing.assert_array_equal(output, 7.0)


def test_unpaired_mask_is_rejected():
    resampler = GeometricResampler(crop_size=(4, 4))
    with pytest.raises(PreconditionError):
        resampler.process(np.zeros((10, 10)), np.empty((4, 4)), (5, 5), image_mask=np.ones((10, 10), dtype=bool))


def test_mask_type_and_shape_are_checked():
    resampler = GeometricResampler(crop_size=(4, 4))
    with pytest.raises(UnsupportedTypeError):
        resampler.process(np.zeros((10, 10)), np.empty((4, 4)), (5, 5),
                          np.ones((10, 10), dtype=np.uint8), np.zeros((4, 4), dtype=bool))
    with pytest.raises(PreconditionError):
        resampler.process(np.zeros((10, 10)), np.empty((4, 4)), (5, 5),
                          np.ones((9, 10), dtype=bool), np.zeros((4, 4), dtype=bool))
    with pytest.raises(PreconditionError):
        resampler.process(np.zeros((10, 10)), np.empty((4, 4)), (5, 5),
                          np.ones((10, 10), dtype=bool), np.zeros((3, 4), dtype=bool))


@pytest.mark.parametrize("scale", [0.0, -1.0, float("inf")])
def test_invalid_scaling_factor_is_rejected(scale):
    with pytest.raises(PreconditionError):
        GeometricResampler(scaling_factor=scale)


@pytest.mark.parametrize("crop_size", [(0, 4), (4, -1), (4,)])
def test_invalid_crop_size_is_rejected(crop_size):
    with pytest.raises(PreconditionError):
        GeometricResampler(crop_size=crop_size)


def test_copy_and_equality():
    resampler = GeometricResampler(0.2, 0.9, (10, 12), (3, 4), BorderPolicy.MIRROR)
    duplicate = resampler.copy()
    assert duplicate == resampler
    duplicate.crop_size = (11, 12)
    assert duplicate != resampler
    assert resampler.crop_size == (10, 12)
