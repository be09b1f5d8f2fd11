"""Weighted Gaussian smoothing, the smoothing step of the Self Quotient Image.

Each output pixel is a Gaussian weighted average of its neighbourhood in
which only the neighbours at or below the local window mean keep their
Gaussian weight. The window mean is read from an integral image of the
extrapolated input, so it costs O(1) per pixel regardless of the kernel size.
"""
import dataclasses
import logging
from typing import Any, Optional, Tuple

import cv2
import numpy as np

from core.errors import PreconditionError
from utils.dtypes import as_real_array, check_ndim, check_output
from utils.extrapolation import BorderPolicy, extrapolate, parse_border_policy

from .kernel import build_gaussian_kernel
from .types import GaussianKernelParams

logger = logging.getLogger(__name__)

# Relative threshold below which the applied weight sum counts as zero
_WEIGHT_EPSILON = 1e-12


class WeightedGaussianFilter:
    """Smooth 2D/3D images with a locally re-weighted Gaussian kernel.

    The kernel is recomputed every time a radius or sigma changes. Scratch
    buffers (extrapolated source and its integral image) are kept between
    calls and reallocated only when the input shape changes, which makes a
    single instance unsafe to share between threads.

    Example:
        >>> smoother = WeightedGaussianFilter(radius_y=2, radius_x=2, sigma_y=1.0, sigma_x=1.0)
        >>> smoothed = smoother.filter(image)
    """

    def __init__(
        self,
        radius_y: int = 1,
        radius_x: int = 1,
        sigma_y: float = np.sqrt(2.0),
        sigma_x: float = np.sqrt(2.0),
        border_policy: BorderPolicy = BorderPolicy.MIRROR,
    ) -> None:
        """Initialize the filter.

        Args:
            radius_y: Kernel radius along rows (height = 2*radius_y + 1).
            radius_x: Kernel radius along columns (width = 2*radius_x + 1).
            sigma_y: Standard deviation of the kernel along rows.
            sigma_x: Standard deviation of the kernel along columns.
            border_policy: Extrapolation used to pad the image before filtering.

        Raises:
            PreconditionError: If a radius is negative or a sigma is not positive.
        """
        self._params = GaussianKernelParams()
        self._src_extra: Optional[np.ndarray] = None
        self._src_integral: Optional[np.ndarray] = None
        self.reset(radius_y, radius_x, sigma_y, sigma_x, border_policy)

    @classmethod
    def from_config(cls, config: Any) -> "WeightedGaussianFilter":
        """Create a filter from the ``weighted_gaussian`` section of an AppConfig."""
        params = config.get_filter_params()
        radius_y, radius_x = params["radius"]
        sigma_y, sigma_x = params["sigma"]
        instance = cls(radius_y, radius_x, sigma_y, sigma_x, params["border"])
        logger.info(f"Created weighted Gaussian filter from config: {instance!r}")
        return instance

    def reset(
        self,
        radius_y: int = 1,
        radius_x: int = 1,
        sigma_y: float = np.sqrt(2.0),
        sigma_x: float = np.sqrt(2.0),
        border_policy: BorderPolicy = BorderPolicy.MIRROR,
    ) -> None:
        """Reset every parameter of the filter and recompute the kernel."""
        self._update(
            radius_y=radius_y,
            radius_x=radius_x,
            sigma_y=float(sigma_y),
            sigma_x=float(sigma_x),
            border_policy=parse_border_policy(border_policy),
        )

    def _update(self, **changes: Any) -> None:
        # GaussianKernelParams validates on construction, so a rejected change leaves the filter intact
        self._params = dataclasses.replace(self._params, **changes)
        self._compute_kernel()

    def _compute_kernel(self) -> None:
        p = self._params
        self._kernel = build_gaussian_kernel(p.radius_y, p.radius_x, p.sigma_y, p.sigma_x)
        logger.debug(f"Recomputed Gaussian kernel {self._kernel.shape} (sigma={p.sigma_y}, {p.sigma_x})")

    # Parameters

    @property
    def params(self) -> GaussianKernelParams:
        return self._params

    @property
    def radius_y(self) -> int:
        return self._params.radius_y

    @radius_y.setter
    def radius_y(self, value: int) -> None:
        self._update(radius_y=value)

    @property
    def radius_x(self) -> int:
        return self._params.radius_x

    @radius_x.setter
    def radius_x(self, value: int) -> None:
        self._update(radius_x=value)

    @property
    def radius(self) -> Tuple[int, int]:
        """Kernel radius as (radius_y, radius_x)."""
        return (self._params.radius_y, self._params.radius_x)

    @radius.setter
    def radius(self, value: Tuple[int, int]) -> None:
        radius_y, radius_x = value
        self._update(radius_y=radius_y, radius_x=radius_x)

    @property
    def sigma_y(self) -> float:
        return self._params.sigma_y

    @sigma_y.setter
    def sigma_y(self, value: float) -> None:
        self._update(sigma_y=float(value))

    @property
    def sigma_x(self) -> float:
        return self._params.sigma_x

    @sigma_x.setter
    def sigma_x(self, value: float) -> None:
        self._update(sigma_x=float(value))

    @property
    def sigma(self) -> Tuple[float, float]:
        """Kernel standard deviations as (sigma_y, sigma_x)."""
        return (self._params.sigma_y, self._params.sigma_x)

    @sigma.setter
    def sigma(self, value: Tuple[float, float]) -> None:
        sigma_y, sigma_x = value
        self._update(sigma_y=float(sigma_y), sigma_x=float(sigma_x))

    @property
    def border_policy(self) -> BorderPolicy:
        return self._params.border_policy

    @border_policy.setter
    def border_policy(self, value: BorderPolicy) -> None:
        self._update(border_policy=parse_border_policy(value))

    @property
    def unweighted_kernel(self) -> np.ndarray:
        """Copy of the unnormalized Gaussian kernel."""
        return self._kernel.copy()

    # Copy and comparison

    def copy(self) -> "WeightedGaussianFilter":
        """Return a new filter with the same parameters (scratch buffers are not shared)."""
        p = self._params
        return WeightedGaussianFilter(p.radius_y, p.radius_x, p.sigma_y, p.sigma_x, p.border_policy)

    __copy__ = copy

    def __deepcopy__(self, memo: dict) -> "WeightedGaussianFilter":
        return self.copy()

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, WeightedGaussianFilter):
            return NotImplemented
        a, b = self._params, other._params
        return (
            a.radius_y == b.radius_y
            and a.radius_x == b.radius_x
            and bool(np.isclose(a.sigma_y, b.sigma_y))
            and bool(np.isclose(a.sigma_x, b.sigma_x))
            and a.border_policy == b.border_policy
        )

    __hash__ = None

    def __repr__(self) -> str:
        p = self._params
        return (
            f"WeightedGaussianFilter(radius=({p.radius_y}, {p.radius_x}), "
            f"sigma=({p.sigma_y:.4g}, {p.sigma_x:.4g}), border_policy={p.border_policy.value})"
        )

    # Processing

    def filter(self, src: np.ndarray, dst: Optional[np.ndarray] = None) -> np.ndarray:
        """Smooth a 2D image, or every plane of a 3D stack.

        Args:
            src: 2D array (H, W) or 3D array (P, H, W) of any integer or
                floating element type.
            dst: Optional float64 output with the same shape as ``src``. When
                omitted a new array is allocated.

        Returns:
            The filtered float64 array (``dst`` when it was supplied).

        Raises:
            PreconditionError: If ``src`` is not 2D/3D or ``dst`` does not
                match it (including a different number of planes).
            UnsupportedTypeError: If ``src`` is not numeric or ``dst`` is not float64.
        """
        operation = "WeightedGaussianFilter.filter"
        src = np.asarray(src)
        check_ndim(src, (2, 3), "src", operation)
        if dst is None:
            dst = np.empty(src.shape, dtype=np.float64)
        else:
            if isinstance(dst, np.ndarray) and src.ndim == 3 and dst.ndim == 3 and dst.shape[0] != src.shape[0]:
                raise PreconditionError(
                    f"{operation}: 'src' and 'dst' must have the same number of planes, "
                    f"got {src.shape[0]} and {dst.shape[0]}"
                )
            check_output(dst, src.shape, "dst", operation)
        src_d = as_real_array(src, operation)

        if src_d.ndim == 2:
            self._filter_plane(src_d, dst)
        else:
            for plane in range(src_d.shape[0]):
                self._filter_plane(src_d[plane], dst[plane])
        return dst

    __call__ = filter

    def _filter_plane(self, src: np.ndarray, dst: np.ndarray) -> None:
        p = self._params
        height, width = src.shape
        kernel_h, kernel_w = self._kernel.shape

        self._src_extra = extrapolate(
            np.ascontiguousarray(src), p.radius_y, p.radius_x, p.border_policy, dst=self._src_extra
        )
        # With zero padding the border carries no data; track which padded pixels are real
        support = None
        if p.border_policy is BorderPolicy.ZERO:
            support = extrapolate(np.ones_like(src), p.radius_y, p.radius_x, BorderPolicy.ZERO)

        self._src_integral = cv2.integral(self._src_extra, sdepth=cv2.CV_64F)
        window_sum = self._window_sums(self._src_integral, height, width)
        if support is None:
            window_mean = window_sum / float(kernel_h * kernel_w)
        else:
            window_count = self._window_sums(cv2.integral(support, sdepth=cv2.CV_64F), height, width)
            window_mean = window_sum / window_count

        weighted_sum = np.zeros((height, width), dtype=np.float64)
        weight_total = np.zeros((height, width), dtype=np.float64)
        plain_sum = np.zeros((height, width), dtype=np.float64)
        plain_total = np.zeros((height, width), dtype=np.float64)

        for i in range(kernel_h):
            for j in range(kernel_w):
                neighbour = self._src_extra[i:i + height, j:j + width]
                coefficient = self._kernel[i, j]
                if support is None:
                    base = coefficient
                else:
                    base = coefficient * support[i:i + height, j:j + width]
                weight = np.where(neighbour <= window_mean, base, 0.0)
                weighted_sum += weight * neighbour
                weight_total += weight
                plain_sum += base * neighbour
                plain_total += base

        # the center coefficient is 1 and always supported, so plain_total >= 1
        degenerate = weight_total <= _WEIGHT_EPSILON * plain_total
        if degenerate.any():
            logger.debug(f"Weight fallback on {int(degenerate.sum())} of {degenerate.size} pixels")
        np.divide(weighted_sum, np.where(degenerate, 1.0, weight_total), out=dst)
        dst[degenerate] = plain_sum[degenerate] / plain_total[degenerate]

    @staticmethod
    def _window_sums(integral: np.ndarray, height: int, width: int) -> np.ndarray:
        """Sum of every (kernel_h, kernel_w) window read from an integral image with zero border."""
        kernel_h = integral.shape[0] - height
        kernel_w = integral.shape[1] - width
        return (
            integral[kernel_h:kernel_h + height, kernel_w:kernel_w + width]
            - integral[0:height, kernel_w:kernel_w + width]
            - integral[kernel_h:kernel_h + height, 0:width]
            + integral[0:height, 0:width]
        )
