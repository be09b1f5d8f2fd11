"""Border extrapolation policies shared by the convolution and resampling paths.

Each policy maps onto one of OpenCV's border modes so the same name can be
used with ``cv2.copyMakeBorder`` (explicit padding before convolution) and
``cv2.warpAffine`` (implicit padding while resampling).
"""
from enum import Enum
from typing import Tuple, Union

import cv2
import numpy as np

from core.errors import PreconditionError


class BorderPolicy(str, Enum):
    """Rule used to synthesize pixel values outside of an array.

    Example for a row ``abcd`` padded by two pixels on both sides:

    - ZERO:     ``00|abcd|00``
    - NEAREST:  ``aa|abcd|dd``
    - MIRROR:   ``ba|abcd|dc``
    - REFLECT:  ``cb|abcd|cb``
    - CIRCULAR: ``cd|abcd|ab``
    """

    ZERO = "zero"
    NEAREST = "nearest"
    MIRROR = "mirror"
    REFLECT = "reflect"
    CIRCULAR = "circular"

    @property
    def cv2_flag(self) -> int:
        """OpenCV border mode implementing this policy."""
        return _CV2_BORDER_MODES[self]


_CV2_BORDER_MODES = {
    BorderPolicy.ZERO: cv2.BORDER_CONSTANT,
    BorderPolicy.NEAREST: cv2.BORDER_REPLICATE,
    BorderPolicy.MIRROR: cv2.BORDER_REFLECT,
    BorderPolicy.REFLECT: cv2.BORDER_REFLECT_101,
    BorderPolicy.CIRCULAR: cv2.BORDER_WRAP,
}


def parse_border_policy(value: Union[str, BorderPolicy]) -> BorderPolicy:
    """Convert a policy name (case insensitive) to a BorderPolicy.

    Raises:
        PreconditionError: If the name is unknown.
    """
    if isinstance(value, BorderPolicy):
        return value
    try:
        return BorderPolicy(str(value).lower())
    except ValueError:
        names = ", ".join(p.value for p in BorderPolicy)
        raise PreconditionError(f"Unknown border policy '{value}' (expected one of: {names})")


def extrapolate(
    src: np.ndarray,
    pad_y: int,
    pad_x: int,
    policy: BorderPolicy,
    dst: np.ndarray = None,
) -> np.ndarray:
    """Pad a 2D float64 array by ``pad_y`` rows and ``pad_x`` columns on each side.

    Args:
        src: 2D input array.
        pad_y: Rows added above and below.
        pad_x: Columns added left and right.
        policy: Border policy used to fill the padding.
        dst: Optional buffer of shape (H + 2*pad_y, W + 2*pad_x) that is reused
            when its shape and type already match.

    Returns:
        The padded array.
    """
    return cv2.copyMakeBorder(
        src, pad_y, pad_y, pad_x, pad_x,
        policy.cv2_flag,
        dst=dst,
        value=0.0,
    )


def border_indices(indices: np.ndarray, size: int, policy: BorderPolicy) -> Tuple[np.ndarray, np.ndarray]:
    """Map integer indices along an axis of length ``size`` into ``[0, size)``.

    Follows the same rules as ``extrapolate``, so indexing with the result
    reads the value the padded array would hold at ``indices``.

    Returns:
        (mapped, inside): the in-range indices and a mask that is False where
        the policy yields zero instead of an array value. ``inside`` is all
        True except for ``BorderPolicy.ZERO``.
    """
    indices = np.asarray(indices, dtype=np.int64)
    inside = (indices >= 0) & (indices < size)
    if policy is BorderPolicy.ZERO:
        return np.clip(indices, 0, size - 1), inside
    if policy is BorderPolicy.NEAREST:
        mapped = np.clip(indices, 0, size - 1)
    elif policy is BorderPolicy.CIRCULAR:
        mapped = np.mod(indices, size)
    elif policy is BorderPolicy.MIRROR:
        folded = np.mod(indices, 2 * size)
        mapped = np.where(folded < size, folded, 2 * size - 1 - folded)
    else:
        # reflect without repeating the edge pixel
        period = max(2 * size - 2, 1)
        folded = np.mod(indices, period)
        mapped = np.where(folded < size, folded, period - folded)
    return mapped, np.ones(indices.shape, dtype=bool)
