"""Geometric normalization: rotate, scale and crop an image in one resampling step.

The transform is expressed as an output->input mapping (the matrix layout
``cv2.warpAffine`` takes with ``WARP_INVERSE_MAP``) and every output pixel is
sampled exactly once with bilinear interpolation in double precision.
"""
import logging
import math
from typing import Optional, Tuple

import numpy as np

from core.errors import PreconditionError, UnsupportedTypeError, describe_array
from utils.dtypes import as_real_array, check_ndim, check_output
from utils.extrapolation import BorderPolicy, border_indices, parse_border_policy

from .types import Point, PointLike, as_point

logger = logging.getLogger(__name__)

# Sub-pixel offsets closer than this to an integer are treated as exact samples
_SUBPIXEL_EPSILON = 1e-9


def _as_crop_size(value) -> Tuple[int, int]:
    try:
        height, width = (int(v) for v in value)
    except (TypeError, ValueError):
        raise PreconditionError(f"crop_size must be a (height, width) pair of integers, got {value!r}")
    if height <= 0 or width <= 0:
        raise PreconditionError(f"crop_size must be positive, got {(height, width)}")
    return (height, width)


def _snap(coordinates: np.ndarray) -> np.ndarray:
    rounded = np.round(coordinates)
    return np.where(np.abs(coordinates - rounded) < _SUBPIXEL_EPSILON, rounded, coordinates)


def _lookup(mask: np.ndarray, ys: np.ndarray, xs: np.ndarray) -> np.ndarray:
    """Mask values at integer positions, False outside of the mask."""
    height, width = mask.shape
    inside = (ys >= 0) & (ys < height) & (xs >= 0) & (xs < width)
    values = np.zeros(ys.shape, dtype=bool)
    values[inside] = mask[ys[inside], xs[inside]]
    return values


class GeometricResampler:
    """Similarity transform + crop executed as a single bilinear resampling.

    Attributes:
        rotation_angle: Rotation in radians (see ``AffineTransformParams.angle``).
        scaling_factor: Output size divided by input size, strictly positive.
        crop_size: Output shape as (height, width).
        crop_offset: Output point (y, x) the transformation center lands on.
        border_policy: How samples outside of the input are synthesized.
    """

    def __init__(
        self,
        rotation_angle: float = 0.0,
        scaling_factor: float = 1.0,
        crop_size: Tuple[int, int] = (1, 1),
        crop_offset: PointLike = (0.0, 0.0),
        border_policy: BorderPolicy = BorderPolicy.ZERO,
    ) -> None:
        self.rotation_angle = rotation_angle
        self.scaling_factor = scaling_factor
        self.crop_size = crop_size
        self.crop_offset = crop_offset
        self.border_policy = border_policy

    @property
    def rotation_angle(self) -> float:
        return self._rotation_angle

    @rotation_angle.setter
    def rotation_angle(self, value: float) -> None:
        self._rotation_angle = float(value)

    @property
    def scaling_factor(self) -> float:
        return self._scaling_factor

    @scaling_factor.setter
    def scaling_factor(self, value: float) -> None:
        value = float(value)
        if not (value > 0 and math.isfinite(value)):
            raise PreconditionError(f"scaling_factor must be positive and finite, got {value}")
        self._scaling_factor = value

    @property
    def crop_size(self) -> Tuple[int, int]:
        return self._crop_size

    @crop_size.setter
    def crop_size(self, value: Tuple[int, int]) -> None:
        self._crop_size = _as_crop_size(value)

    @property
    def crop_offset(self) -> Point:
        return self._crop_offset

    @crop_offset.setter
    def crop_offset(self, value: PointLike) -> None:
        self._crop_offset = as_point(value, "crop_offset")

    @property
    def border_policy(self) -> BorderPolicy:
        return self._border_policy

    @border_policy.setter
    def border_policy(self, value: BorderPolicy) -> None:
        self._border_policy = parse_border_policy(value)

    def copy(self) -> "GeometricResampler":
        return GeometricResampler(
            self._rotation_angle,
            self._scaling_factor,
            self._crop_size,
            self._crop_offset,
            self._border_policy,
        )

    __copy__ = copy

    def __deepcopy__(self, memo: dict) -> "GeometricResampler":
        return self.copy()

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, GeometricResampler):
            return NotImplemented
        return (
            bool(np.isclose(self._rotation_angle, other._rotation_angle))
            and bool(np.isclose(self._scaling_factor, other._scaling_factor))
            and self._crop_size == other._crop_size
            and bool(np.allclose(self._crop_offset, other._crop_offset))
            and self._border_policy == other._border_policy
        )

    __hash__ = None

    def __repr__(self) -> str:
        return (
            f"GeometricResampler(rotation_angle={self._rotation_angle:.6g}, "
            f"scaling_factor={self._scaling_factor:.6g}, crop_size={self._crop_size}, "
            f"crop_offset={tuple(self._crop_offset)}, border_policy={self._border_policy.value})"
        )

    # Geometry

    def affine_matrix(self, center: PointLike) -> np.ndarray:
        """2x3 matrix mapping output (x, y) coordinates to input (x, y) coordinates.

        ``input = center + R(angle) (output - crop_offset) / scaling_factor``,
        where R rotates counter-clockwise in (x, y) coordinates.

        Args:
            center: Transformation center in the input image, (y, x).
        """
        center = as_point(center, "center")
        cos_a = math.cos(self._rotation_angle) / self._scaling_factor
        sin_a = math.sin(self._rotation_angle) / self._scaling_factor
        offset = self._crop_offset
        return np.array([
            [cos_a, -sin_a, center.x - (cos_a * offset.x - sin_a * offset.y)],
            [sin_a, cos_a, center.y - (sin_a * offset.x + cos_a * offset.y)],
        ], dtype=np.float64)

    def transform_point(self, point: PointLike, center: PointLike) -> Point:
        """Map an input image coordinate to its position in the normalized image.

        Args:
            point: Position (y, x) in the input image.
            center: Transformation center in the input image, (y, x).

        Returns:
            Position (y, x) in the output image.
        """
        point = as_point(point, "point")
        center = as_point(center, "center")
        cos_a = math.cos(self._rotation_angle) * self._scaling_factor
        sin_a = math.sin(self._rotation_angle) * self._scaling_factor
        dx = point.x - center.x
        dy = point.y - center.y
        # forward map, the inverse of affine_matrix
        return Point(
            self._crop_offset.y - sin_a * dx + cos_a * dy,
            self._crop_offset.x + cos_a * dx + sin_a * dy,
        )

    # Processing

    def process(
        self,
        image: np.ndarray,
        output: np.ndarray,
        center: PointLike,
        image_mask: Optional[np.ndarray] = None,
        output_mask: Optional[np.ndarray] = None,
    ) -> None:
        """Resample ``image`` into ``output``.

        Args:
            image: 2D numeric input image.
            output: Float64 buffer of shape ``crop_size``, filled in place.
            center: Transformation center in the input image, (y, x).
            image_mask: Optional 2D bool mask of valid input pixels, same shape
                as ``image``. Requires ``output_mask``.
            output_mask: Optional 2D bool buffer of shape ``crop_size`` that
                receives the valid output pixels. Requires ``image_mask``.

        Raises:
            PreconditionError: On dimension/shape mismatch or unpaired masks.
            UnsupportedTypeError: On wrong element types.
        """
        operation = "GeometricResampler.process"
        image = np.asarray(image)
        check_ndim(image, (2,), "image", operation)
        check_output(output, self._crop_size, "output", operation)
        self._check_masks(image, image_mask, output_mask, operation)
        center = as_point(center, "center")
        image_d = as_real_array(image, operation)

        src_y, src_x = self._source_grid(self.affine_matrix(center))
        output[...] = self._interpolate(image_d, src_y, src_x)

        if image_mask is not None:
            output_mask[...] = self._resample_mask(np.asarray(image_mask), src_y, src_x)
            logger.debug(f"{int(output_mask.sum())} of {output_mask.size} output pixels valid")

    def _check_masks(self, image, image_mask, output_mask, operation: str) -> None:
        if (image_mask is None) != (output_mask is None):
            raise PreconditionError(
                f"{operation}: 'image_mask' and 'output_mask' must be given together"
            )
        if image_mask is None:
            return
        image_mask = np.asarray(image_mask)
        if image_mask.dtype != np.bool_:
            raise UnsupportedTypeError(
                f"{operation}: 'image_mask' must be of type bool, got {describe_array(image_mask)}"
            )
        if image_mask.shape != image.shape:
            raise PreconditionError(
                f"{operation}: 'image_mask' must have the shape of 'image' {image.shape}, "
                f"got {describe_array(image_mask)}"
            )
        check_output(output_mask, self._crop_size, "output_mask", operation, dtype=np.bool_)

    def _source_grid(self, matrix: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        """Input (y, x) position sampled by every output pixel."""
        ys, xs = np.indices(self._crop_size, dtype=np.float64)
        src_x = _snap(matrix[0, 0] * xs + matrix[0, 1] * ys + matrix[0, 2])
        src_y = _snap(matrix[1, 0] * xs + matrix[1, 1] * ys + matrix[1, 2])
        return src_y, src_x

    def _interpolate(self, image: np.ndarray, src_y: np.ndarray, src_x: np.ndarray) -> np.ndarray:
        y0 = np.floor(src_y)
        x0 = np.floor(src_x)
        frac_y = src_y - y0
        frac_x = src_x - x0
        y0 = y0.astype(np.int64)
        x0 = x0.astype(np.int64)

        result = np.zeros(src_y.shape, dtype=np.float64)
        for dy, weight_y in ((0, 1.0 - frac_y), (1, frac_y)):
            rows, rows_inside = border_indices(y0 + dy, image.shape[0], self._border_policy)
            for dx, weight_x in ((0, 1.0 - frac_x), (1, frac_x)):
                cols, cols_inside = border_indices(x0 + dx, image.shape[1], self._border_policy)
                values = np.where(rows_inside & cols_inside, image[rows, cols], 0.0)
                result += weight_y * weight_x * values
        return result

    def _resample_mask(self, image_mask: np.ndarray, src_y: np.ndarray, src_x: np.ndarray) -> np.ndarray:
        """An output pixel is valid only if every bilinear contributor is inside and valid."""
        x0 = np.floor(src_x).astype(np.int64)
        y0 = np.floor(src_y).astype(np.int64)
        has_dx = src_x > x0
        has_dy = src_y > y0

        valid = _lookup(image_mask, y0, x0)
        valid &= ~has_dx | _lookup(image_mask, y0, x0 + 1)
        valid &= ~has_dy | _lookup(image_mask, y0 + 1, x0)
        valid &= ~(has_dx & has_dy) | _lookup(image_mask, y0 + 1, x0 + 1)
        return valid
