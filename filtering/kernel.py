"""Gaussian kernel construction."""
import numpy as np

from core.errors import PreconditionError


def build_gaussian_kernel_1d(radius: int, sigma: float) -> np.ndarray:
    """Unnormalized 1D Gaussian profile of length 2*radius + 1, centered on ``radius``."""
    if radius < 0:
        raise PreconditionError(f"radius must be non-negative, got {radius}")
    if not sigma > 0:
        raise PreconditionError(f"sigma must be strictly positive, got {sigma}")
    offsets = np.arange(-radius, radius + 1, dtype=np.float64)
    return np.exp(-(offsets ** 2) / (2.0 * sigma * sigma))


def build_gaussian_kernel(
    radius_y: int,
    radius_x: int,
    sigma_y: float,
    sigma_x: float,
) -> np.ndarray:
    """Build an unnormalized 2D Gaussian kernel.

    The kernel is separable, so it is computed as the outer product of the two
    1D profiles:

        kernel[i, j] = exp(-((i - ry)^2 / (2 sy^2) + (j - rx)^2 / (2 sx^2)))

    Args:
        radius_y: Radius along rows.
        radius_x: Radius along columns.
        sigma_y: Standard deviation along rows.
        sigma_x: Standard deviation along columns.

    Returns:
        Float64 array of shape (2*radius_y + 1, 2*radius_x + 1). The center
        coefficient is always 1.0.

    Raises:
        PreconditionError: If a radius is negative or a sigma is not positive.
    """
    column = build_gaussian_kernel_1d(int(radius_y), sigma_y)
    row = build_gaussian_kernel_1d(int(radius_x), sigma_x)
    return np.outer(column, row)
