"""Point, LandmarkPair and AffineTransformParams data types for geometric normalization."""
import math
from dataclasses import dataclass
from typing import NamedTuple, Sequence, Union

import numpy as np

from core.errors import PreconditionError


class Point(NamedTuple):
    """2D coordinate in (y, x) order, matching numpy's [row, column] indexing."""
    y: float
    x: float


PointLike = Union[Point, Sequence[float], np.ndarray]


def as_point(value: PointLike, name: str = "point") -> Point:
    """Convert a (y, x) pair to a Point.

    Raises:
        PreconditionError: If ``value`` is not a pair of finite numbers.
    """
    try:
        y, x = (float(v) for v in value)
    except (TypeError, ValueError):
        raise PreconditionError(f"'{name}' must be a (y, x) pair of numbers, got {value!r}")
    if not (math.isfinite(y) and math.isfinite(x)):
        raise PreconditionError(f"'{name}' must be finite, got {value!r}")
    return Point(y, x)


@dataclass(frozen=True)
class LandmarkPair:
    """Two named landmarks, usually the right and the left eye.

    "Right" and "left" refer to the person, so in an upright frontal image the
    right landmark has the smaller x coordinate.
    """
    right: Point
    left: Point

    @property
    def midpoint(self) -> Point:
        return Point((self.right.y + self.left.y) / 2.0, (self.right.x + self.left.x) / 2.0)

    @property
    def distance(self) -> float:
        return math.hypot(self.left.y - self.right.y, self.left.x - self.right.x)

    @property
    def angle(self) -> float:
        """Angle of the right->left axis relative to the horizontal, in radians."""
        return math.atan2(self.left.y - self.right.y, self.left.x - self.right.x)


@dataclass(frozen=True)
class AffineTransformParams:
    """Similarity transform mapping input landmarks onto their targets.

    Attributes:
        angle: Rotation in radians between the input and output landmark axes.
        scale: Output inter-landmark distance divided by the input one.
        input_anchor: Rotation/scaling center in the input image.
        output_anchor: Point of the output image the input anchor lands on.
    """
    angle: float
    scale: float
    input_anchor: Point
    output_anchor: Point
