"""Face normalization based on two landmarks (usually the eyes)."""
import logging
import math
from typing import Any, Optional, Tuple

import numpy as np

from core.errors import PreconditionError
from utils.dtypes import as_float_image, check_ndim, check_output
from utils.extrapolation import BorderPolicy

from .geom_norm import GeometricResampler
from .solver import AffineTransformSolver, targets_from_distance
from .types import AffineTransformParams, LandmarkPair, Point, PointLike, as_point

logger = logging.getLogger(__name__)


class FaceEyesNormalizer:
    """Rotate, scale and crop facial images so two landmarks land on fixed positions.

    The normalizer is configured with the output resolution and the target
    position of the landmarks, either as an inter-eye distance around a
    center point or as two explicit points. Any two landmarks can be used
    (for example eye and mouth for profile faces) as long as "right" and
    "left" refer to the same landmarks here and in ``extract``.

    All coordinates are (y, x). The transform applied by the latest
    ``extract`` call is available through ``last_angle``, ``last_scale``
    and ``last_offset``.

    Example:
        >>> normalizer = FaceEyesNormalizer((80, 64), eyes_distance=33.0, eyes_center=(16.0, 31.5))
        >>> face = normalizer.extract(image, right_eye=(120, 95), left_eye=(118, 160))
        >>> face.shape
        (80, 64)
    """

    def __init__(
        self,
        crop_size: Tuple[int, int],
        eyes_distance: float,
        eyes_center: PointLike,
        eyes_angle: float = 0.0,
        border_policy: BorderPolicy = BorderPolicy.ZERO,
    ) -> None:
        """Initialize from the target inter-eye distance and center.

        Args:
            crop_size: Resolution (height, width) of the normalized face.
            eyes_distance: Distance between the landmarks in the normalized face.
            eyes_center: Center between the landmarks in the normalized face.
            eyes_angle: Angle of the right->left axis in the normalized face,
                radians. 0 keeps the landmarks horizontally level.
            border_policy: How pixels outside of the input image are filled.

        Raises:
            PreconditionError: If crop_size or eyes_distance is not positive.
        """
        if not eyes_distance > 0:
            raise PreconditionError(f"eyes_distance must be strictly positive, got {eyes_distance}")
        self._eyes_distance = float(eyes_distance)
        self._eyes_angle = float(eyes_angle)
        self._geom_norm = GeometricResampler(
            crop_size=crop_size,
            crop_offset=eyes_center,
            border_policy=border_policy,
        )
        self._last_transform: Optional[AffineTransformParams] = None

    @classmethod
    def from_points(
        cls,
        crop_size: Tuple[int, int],
        right_eye: PointLike,
        left_eye: PointLike,
        border_policy: BorderPolicy = BorderPolicy.ZERO,
    ) -> "FaceEyesNormalizer":
        """Initialize from the two target positions in the normalized face.

        Raises:
            PreconditionError: If the two points coincide.
        """
        targets = LandmarkPair(as_point(right_eye, "right_eye"), as_point(left_eye, "left_eye"))
        if targets.distance == 0.0:
            raise PreconditionError(
                f"right_eye and left_eye must not coincide, both are at {tuple(targets.right)}"
            )
        return cls(crop_size, targets.distance, targets.midpoint, targets.angle, border_policy)

    @classmethod
    def from_config(cls, config: Any) -> "FaceEyesNormalizer":
        """Create a normalizer from the ``face_eyes_norm`` section of an AppConfig.

        The section holds ``crop_size`` and ``border`` plus either
        ``eyes_distance``/``eyes_center`` or ``right_eye``/``left_eye``.
        """
        params = config.get_normalizer_params()
        if "right_eye" in params or "left_eye" in params:
            instance = cls.from_points(
                params["crop_size"], params["right_eye"], params["left_eye"], params["border"]
            )
        else:
            instance = cls(
                params["crop_size"],
                params["eyes_distance"],
                params["eyes_center"],
                params.get("eyes_angle", 0.0),
                params["border"],
            )
        logger.info(f"Created face normalizer from config: {instance!r}")
        return instance

    # Configuration

    @property
    def crop_size(self) -> Tuple[int, int]:
        """Resolution (height, width) of the normalized face."""
        return self._geom_norm.crop_size

    @crop_size.setter
    def crop_size(self, value: Tuple[int, int]) -> None:
        self._geom_norm.crop_size = value

    @property
    def eyes_distance(self) -> float:
        return self._eyes_distance

    @eyes_distance.setter
    def eyes_distance(self, value: float) -> None:
        if not value > 0:
            raise PreconditionError(f"eyes_distance must be strictly positive, got {value}")
        self._eyes_distance = float(value)

    @property
    def eyes_angle(self) -> float:
        """Angle of the target landmark axis relative to the horizontal, radians."""
        return self._eyes_angle

    @eyes_angle.setter
    def eyes_angle(self, value: float) -> None:
        self._eyes_angle = float(value)

    @property
    def eyes_center(self) -> Point:
        """Transformation center in the normalized face (usually between the eyes)."""
        return self._geom_norm.crop_offset

    @eyes_center.setter
    def eyes_center(self, value: PointLike) -> None:
        self._geom_norm.crop_offset = value

    crop_offset = eyes_center

    @property
    def right_eye(self) -> Point:
        """Target position of the right landmark in the normalized face."""
        return targets_from_distance(self._eyes_distance, self.eyes_center, self._eyes_angle)[0]

    @right_eye.setter
    def right_eye(self, value: PointLike) -> None:
        self._set_targets(as_point(value, "right_eye"), self.left_eye)

    @property
    def left_eye(self) -> Point:
        """Target position of the left landmark in the normalized face."""
        return targets_from_distance(self._eyes_distance, self.eyes_center, self._eyes_angle)[1]

    @left_eye.setter
    def left_eye(self, value: PointLike) -> None:
        self._set_targets(self.right_eye, as_point(value, "left_eye"))

    def _set_targets(self, right: Point, left: Point) -> None:
        targets = LandmarkPair(right, left)
        if targets.distance == 0.0:
            raise PreconditionError(f"right_eye and left_eye must not coincide, both are at {tuple(right)}")
        self._eyes_distance = targets.distance
        self._eyes_angle = targets.angle
        self._geom_norm.crop_offset = targets.midpoint

    @property
    def border_policy(self) -> BorderPolicy:
        return self._geom_norm.border_policy

    @border_policy.setter
    def border_policy(self, value: BorderPolicy) -> None:
        self._geom_norm.border_policy = value

    # Last normalization

    @property
    def last_transform(self) -> Optional[AffineTransformParams]:
        """Transform applied by the latest ``extract`` call, None before the first call."""
        return self._last_transform

    @property
    def last_angle(self) -> float:
        """Rotation angle (radians) applied on the latest normalized image."""
        return self._last_transform.angle if self._last_transform else 0.0

    @property
    def last_scale(self) -> float:
        """Scale applied on the latest normalized image."""
        return self._last_transform.scale if self._last_transform else 0.0

    @property
    def last_offset(self) -> Point:
        """Transformation center (eye center) in the latest input image."""
        return self._last_transform.input_anchor if self._last_transform else Point(0.0, 0.0)

    @property
    def geom_norm(self) -> GeometricResampler:
        """Copy of the resampler configuration used for the latest normalization."""
        return self._geom_norm.copy()

    # Copy and comparison

    def copy(self) -> "FaceEyesNormalizer":
        """Return a normalizer with the same configuration and no last-call state."""
        return FaceEyesNormalizer(
            self.crop_size,
            self._eyes_distance,
            self.eyes_center,
            self._eyes_angle,
            self.border_policy,
        )

    __copy__ = copy

    def __deepcopy__(self, memo: dict) -> "FaceEyesNormalizer":
        return self.copy()

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, FaceEyesNormalizer):
            return NotImplemented
        return (
            self.crop_size == other.crop_size
            and bool(np.isclose(self._eyes_distance, other._eyes_distance))
            and bool(np.isclose(self._eyes_angle, other._eyes_angle))
            and bool(np.allclose(self.eyes_center, other.eyes_center))
            and self.border_policy == other.border_policy
        )

    __hash__ = None

    def __repr__(self) -> str:
        return (
            f"FaceEyesNormalizer(crop_size={self.crop_size}, eyes_distance={self._eyes_distance:.6g}, "
            f"eyes_center={tuple(self.eyes_center)}, eyes_angle={self._eyes_angle:.6g}, "
            f"border_policy={self.border_policy.value})"
        )

    # Processing

    def extract(
        self,
        image: np.ndarray,
        right_eye: PointLike,
        left_eye: PointLike,
        output: Optional[np.ndarray] = None,
        image_mask: Optional[np.ndarray] = None,
        output_mask: Optional[np.ndarray] = None,
    ) -> np.ndarray:
        """Extract the normalized face from ``image``.

        The image is rotated, scaled and cropped in a single resampling step
        so that ``right_eye`` and ``left_eye`` land on the configured targets.

        Args:
            image: 2D input image of type uint8, uint16 or float64.
            right_eye: Right landmark (y, x) in ``image`` coordinates.
            left_eye: Left landmark (y, x) in ``image`` coordinates.
            output: Optional float64 buffer of shape ``crop_size``. Allocated
                when omitted.
            image_mask: Optional 2D bool mask of valid ``image`` pixels.
                Requires ``output_mask``.
            output_mask: Optional 2D bool buffer of shape ``crop_size`` that
                receives the valid output pixels. Requires ``image_mask``.

        Returns:
            The normalized face (``output`` when it was supplied).

        Raises:
            PreconditionError: If the image is not 2D, a buffer has the wrong
                shape, or only one of the masks is given.
            UnsupportedTypeError: If an array has an unsupported element type.
            DegenerateGeometryError: If the two input landmarks coincide or are
                too close for a finite scale.
        """
        operation = "FaceEyesNormalizer.extract"
        image = np.asarray(image)
        check_ndim(image, (2,), "image", operation)
        if (image_mask is None) != (output_mask is None):
            raise PreconditionError(
                f"{operation}: 'image_mask' and 'output_mask' must be given together"
            )
        if output is None:
            output = np.zeros(self.crop_size, dtype=np.float64)
        else:
            check_output(output, self.crop_size, "output", operation)
        image_d = as_float_image(image, operation)

        solver = AffineTransformSolver.from_eyes_distance(
            self._eyes_distance, self.eyes_center, self._eyes_angle
        )
        transform = solver.solve(right_eye, left_eye)

        # configure a copy so a rejected call leaves the last normalization untouched
        geom_norm = self._geom_norm.copy()
        geom_norm.rotation_angle = transform.angle
        geom_norm.scaling_factor = transform.scale
        geom_norm.process(image_d, output, transform.input_anchor, image_mask, output_mask)

        self._geom_norm = geom_norm
        self._last_transform = transform
        logger.debug(
            f"Normalized {image.shape} image: angle={math.degrees(transform.angle):.2f} deg, "
            f"scale={transform.scale:.4f}, center={tuple(transform.input_anchor)}"
        )
        return output

    __call__ = extract
