"""GaussianKernelParams data type for the weighted Gaussian filter."""
import math
import numbers
from dataclasses import dataclass

from core.errors import PreconditionError
from utils.extrapolation import BorderPolicy


@dataclass(frozen=True)
class GaussianKernelParams:
    """Immutable description of a 2D Gaussian kernel.

    Attributes:
        radius_y: Kernel radius along rows (kernel height = 2*radius_y + 1).
        radius_x: Kernel radius along columns (kernel width = 2*radius_x + 1).
        sigma_y: Standard deviation along rows, strictly positive.
        sigma_x: Standard deviation along columns, strictly positive.
        border_policy: Extrapolation used when convolving near the border.
    """
    radius_y: int = 1
    radius_x: int = 1
    sigma_y: float = math.sqrt(2.0)
    sigma_x: float = math.sqrt(2.0)
    border_policy: BorderPolicy = BorderPolicy.MIRROR

    def __post_init__(self) -> None:
        for name in ("radius_y", "radius_x"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, numbers.Integral) or value < 0:
                raise PreconditionError(f"{name} must be a non-negative integer, got {value!r}")
            object.__setattr__(self, name, int(value))
        for name in ("sigma_y", "sigma_x"):
            value = getattr(self, name)
            if not value > 0:
                raise PreconditionError(f"{name} must be strictly positive, got {value}")

    @property
    def shape(self):
        """Kernel shape as (height, width)."""
        return (2 * int(self.radius_y) + 1, 2 * int(self.radius_x) + 1)
