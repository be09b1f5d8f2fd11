"""Element type dispatch: converts supported numeric arrays to float64."""
from typing import Callable, Dict, Iterable

import numpy as np

from core.errors import PreconditionError, UnsupportedTypeError, describe_array

# Element types accepted by the face normalizer; all are converted to float64
_FACE_IMAGE_CONVERTERS: Dict[np.dtype, Callable[[np.ndarray], np.ndarray]] = {
    np.dtype(np.uint8): lambda a: a.astype(np.float64),
    np.dtype(np.uint16): lambda a: a.astype(np.float64),
    np.dtype(np.float64): lambda a: a,
}


def as_float_image(array: np.ndarray, operation: str) -> np.ndarray:
    """Convert a uint8, uint16 or float64 array to float64.

    Args:
        array: Input array.
        operation: Name of the calling operation, used in error messages.

    Returns:
        Float64 view or copy of ``array``.

    Raises:
        UnsupportedTypeError: If the element type is not supported.
    """
    converter = _FACE_IMAGE_CONVERTERS.get(array.dtype)
    if converter is None:
        supported = ", ".join(str(t) for t in _FACE_IMAGE_CONVERTERS)
        raise UnsupportedTypeError(
            f"{operation}: input arrays of type {array.dtype} are not supported "
            f"(expected one of: {supported})"
        )
    return converter(array)


def as_real_array(array: np.ndarray, operation: str) -> np.ndarray:
    """Cast any fixed-width integer or floating array to float64."""
    if array.dtype.kind not in ("u", "i", "f"):
        raise UnsupportedTypeError(
            f"{operation}: expected an integer or floating array, got {describe_array(array)}"
        )
    return np.asarray(array, dtype=np.float64)


def check_ndim(array: np.ndarray, allowed: Iterable[int], name: str, operation: str) -> None:
    """Raise PreconditionError unless ``array.ndim`` is one of ``allowed``."""
    allowed = tuple(allowed)
    if array.ndim not in allowed:
        expected = " or ".join(f"{n}D" for n in allowed)
        raise PreconditionError(
            f"{operation}: '{name}' must be {expected}, got {describe_array(array)}"
        )


def check_output(array: np.ndarray, shape, name: str, operation: str, dtype=np.float64) -> None:
    """Validate a caller-supplied output buffer (exact shape and element type)."""
    if not isinstance(array, np.ndarray):
        raise PreconditionError(f"{operation}: '{name}' must be a numpy array")
    if array.dtype != np.dtype(dtype):
        raise UnsupportedTypeError(
            f"{operation}: '{name}' must be of type {np.dtype(dtype)}, got {describe_array(array)}"
        )
    if tuple(array.shape) != tuple(shape):
        raise PreconditionError(
            f"{operation}: '{name}' must have shape {tuple(shape)}, got {describe_array(array)}"
        )
