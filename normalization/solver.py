"""Similarity transform derivation from two landmark correspondences."""
import logging
import math
from typing import Optional, Tuple

from core.errors import DegenerateGeometryError, PreconditionError

from .types import AffineTransformParams, LandmarkPair, Point, PointLike, as_point

logger = logging.getLogger(__name__)


def angle_to_horizontal(right: PointLike, left: PointLike) -> float:
    """Angle in radians of the right->left axis relative to the horizontal."""
    return LandmarkPair(as_point(right, "right"), as_point(left, "left")).angle


def landmark_distance(right: PointLike, left: PointLike) -> float:
    """Euclidean distance between two (y, x) points."""
    return LandmarkPair(as_point(right, "right"), as_point(left, "left")).distance


def targets_from_distance(
    eyes_distance: float,
    eyes_center: PointLike,
    eyes_angle: float = 0.0,
) -> Tuple[Point, Point]:
    """Place two targets ``eyes_distance`` apart around ``eyes_center``.

    With ``eyes_angle == 0`` the targets are horizontally level and the right
    target is on the left-hand side of the image.

    Returns:
        (right_target, left_target)
    """
    if not eyes_distance > 0:
        raise PreconditionError(f"eyes_distance must be strictly positive, got {eyes_distance}")
    center = as_point(eyes_center, "eyes_center")
    half_y = 0.5 * eyes_distance * math.sin(eyes_angle)
    half_x = 0.5 * eyes_distance * math.cos(eyes_angle)
    return (
        Point(center.y - half_y, center.x - half_x),
        Point(center.y + half_y, center.x + half_x),
    )


class AffineTransformSolver:
    """Derive rotation, scale and anchors that bring two landmarks onto fixed targets.

    The targets are configuration; the input landmarks change with every call
    to ``solve``.

    Example:
        >>> solver = AffineTransformSolver((5, 5), (5, 15))
        >>> params = solver.solve((10, 10), (10, 30))
        >>> params.scale, params.angle
        (0.5, 0.0)
    """

    def __init__(
        self,
        right_target: PointLike,
        left_target: PointLike,
        anchor: Optional[PointLike] = None,
    ) -> None:
        """Initialize the solver.

        Args:
            right_target: Output position of the right landmark, (y, x).
            left_target: Output position of the left landmark, (y, x).
            anchor: Output point the input landmark midpoint is mapped to.
                Defaults to the midpoint of the two targets.

        Raises:
            PreconditionError: If the targets coincide.
        """
        targets = LandmarkPair(as_point(right_target, "right_target"), as_point(left_target, "left_target"))
        if targets.distance == 0.0:
            raise PreconditionError(
                f"Target landmarks must not coincide, both are at {tuple(targets.right)}"
            )
        self._targets = targets
        self._anchor = targets.midpoint if anchor is None else as_point(anchor, "anchor")

    @classmethod
    def from_eyes_distance(
        cls,
        eyes_distance: float,
        eyes_center: PointLike,
        eyes_angle: float = 0.0,
    ) -> "AffineTransformSolver":
        """Build a solver from the target inter-landmark distance and center."""
        right, left = targets_from_distance(eyes_distance, eyes_center, eyes_angle)
        return cls(right, left, anchor=eyes_center)

    @property
    def right_target(self) -> Point:
        return self._targets.right

    @property
    def left_target(self) -> Point:
        return self._targets.left

    @property
    def anchor(self) -> Point:
        return self._anchor

    @property
    def target_distance(self) -> float:
        return self._targets.distance

    @property
    def target_angle(self) -> float:
        return self._targets.angle

    def solve(self, right: PointLike, left: PointLike) -> AffineTransformParams:
        """Compute the transform for one pair of input landmarks.

        Args:
            right: Right landmark in input image coordinates, (y, x).
            left: Left landmark in input image coordinates, (y, x).

        Returns:
            AffineTransformParams whose angle is zero when the input axis is
            parallel to the target axis.

        Raises:
            DegenerateGeometryError: If the two input landmarks coincide or are
                too close for a finite scale.
        """
        landmarks = LandmarkPair(as_point(right, "right"), as_point(left, "left"))
        distance = landmarks.distance
        if distance == 0.0:
            raise DegenerateGeometryError(
                f"Cannot normalize: both input landmarks are at {tuple(landmarks.right)}, "
                f"scale would be undefined"
            )
        scale = self._targets.distance / distance
        if not math.isfinite(scale):
            raise DegenerateGeometryError(
                f"Cannot normalize: input landmarks {tuple(landmarks.right)} and {tuple(landmarks.left)} "
                f"are too close, scale overflows"
            )
        params = AffineTransformParams(
            angle=landmarks.angle - self._targets.angle,
            scale=scale,
            input_anchor=landmarks.midpoint,
            output_anchor=self._anchor,
        )
        logger.debug(
            f"Solved transform: angle={params.angle:.6f} rad, scale={params.scale:.6f}, "
            f"input_anchor={tuple(params.input_anchor)}"
        )
        return params
