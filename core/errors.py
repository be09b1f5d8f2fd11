"""Error taxonomy shared by the filtering and normalization modules."""


class PreconditionError(ValueError):
    """Raised when arguments violate a precondition (shape, dimensionality, pairing, parameter range)."""
    pass


class UnsupportedTypeError(PreconditionError, TypeError):
    """Raised when an array has an element type that is not supported."""
    pass


class DegenerateGeometryError(ArithmeticError):
    """Raised when landmarks do not define a valid similarity transform."""
    pass


def describe_array(array) -> str:
    """Short shape/dtype description used in error messages."""
    return f"shape={tuple(array.shape)}, dtype={array.dtype}"
