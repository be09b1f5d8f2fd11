"""Normalization module - landmark based geometric normalization of face images."""

from .face_eyes_norm import FaceEyesNormalizer
from .geom_norm import GeometricResampler
from .solver import AffineTransformSolver, angle_to_horizontal, landmark_distance, targets_from_distance
from .types import AffineTransformParams, LandmarkPair, Point, as_point

__all__ = [
    "FaceEyesNormalizer",
    "GeometricResampler",
    "AffineTransformSolver",
    "angle_to_horizontal",
    "landmark_distance",
    "targets_from_distance",
    "AffineTransformParams",
    "LandmarkPair",
    "Point",
    "as_point",
]
