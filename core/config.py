"""Configuration management for the preprocessing filters and normalizers."""
import logging
import math
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import yaml

from core.errors import PreconditionError
from utils.extrapolation import parse_border_policy

logger = logging.getLogger(__name__)


def _pair(value: Any, key: str, cast=float) -> Tuple[Any, Any]:
    """Accept a scalar (used for both axes) or a [y, x] pair."""
    if isinstance(value, (list, tuple)):
        if len(value) != 2:
            raise PreconditionError(f"'{key}' must be a scalar or a [y, x] pair, got {value!r}")
        return (cast(value[0]), cast(value[1]))
    return (cast(value), cast(value))


class AppConfig:
    """Application configuration loaded from YAML."""

    _instance: Optional["AppConfig"] = None
    _config: Dict[str, Any] = {}

    def __new__(cls) -> "AppConfig":
        """Singleton pattern implementation."""
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    @classmethod
    def from_yaml(cls, config_path: str | Path) -> "AppConfig":
        """Load configuration from YAML file."""
        config_path = Path(config_path)
        if not config_path.exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")

        try:
            with open(config_path, "r") as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid YAML config: {e}")
        instance = cls.from_dict(data or {})
        logger.info(f"Loaded config from {config_path}")
        return instance

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AppConfig":
        """Use an in-memory dictionary as configuration."""
        instance = cls()
        instance._config = dict(data)
        return instance

    def get(self, key: str, default: Any = None) -> Any:
        """Get configuration value by dot-separated key."""
        keys = key.split(".")
        value = self._config
        for k in keys:
            if isinstance(value, dict):
                value = value.get(k)
                if value is None:
                    return default
            else:
                return default
        return value

    def get_filter_params(self) -> Dict[str, Any]:
        """Parameters of the weighted Gaussian filter.

        Returns:
            Dictionary with ``radius`` (int pair), ``sigma`` (float pair) and
            ``border`` (BorderPolicy). Missing keys fall back to radius 1,
            sigma sqrt(2) and mirror borders.
        """
        return {
            "radius": _pair(self.get("weighted_gaussian.radius", 1), "weighted_gaussian.radius", int),
            "sigma": _pair(self.get("weighted_gaussian.sigma", math.sqrt(2.0)), "weighted_gaussian.sigma"),
            "border": parse_border_policy(self.get("weighted_gaussian.border", "mirror")),
        }

    def get_normalizer_params(self) -> Dict[str, Any]:
        """Parameters of the face eyes normalizer.

        Returns:
            Dictionary with ``crop_size`` and ``border``, plus either
            ``right_eye``/``left_eye`` or ``eyes_distance``/``eyes_center``/``eyes_angle``.

        Raises:
            PreconditionError: If crop_size or the target landmarks are missing.
        """
        section = self.get("face_eyes_norm", {})
        if "crop_size" not in section:
            raise PreconditionError("face_eyes_norm.crop_size is required")
        params: Dict[str, Any] = {
            "crop_size": _pair(section["crop_size"], "face_eyes_norm.crop_size", int),
            "border": parse_border_policy(section.get("border", "zero")),
        }
        if "right_eye" in section or "left_eye" in section:
            for key in ("right_eye", "left_eye"):
                if key not in section:
                    raise PreconditionError(f"face_eyes_norm.{key} is required when the other eye is given")
                params[key] = _pair(section[key], f"face_eyes_norm.{key}")
        else:
            for key in ("eyes_distance", "eyes_center"):
                if key not in section:
                    raise PreconditionError(f"face_eyes_norm.{key} is required")
            params["eyes_distance"] = float(section["eyes_distance"])
            params["eyes_center"] = _pair(section["eyes_center"], "face_eyes_norm.eyes_center")
            params["eyes_angle"] = math.radians(float(section.get("eyes_angle_degrees", 0.0)))
        return params

    def to_dict(self) -> Dict[str, Any]:
        """Get the entire configuration as a dictionary."""
        return dict(self._config)
