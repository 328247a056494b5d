"""Render settings and feature flags.

RenderSettings bundles everything that controls a render apart from the scene
itself: the output size, the sample budget and the feature toggles. Settings
can be read from a YAML (or JSON) features file and then overridden by
command-line values.

Example features file:

    width: 400
    height: 225
    samples_per_pixel: 32
    anti_aliasing: true
    gamma_correction: true
    seed: 7
"""

import logging
from dataclasses import asdict, dataclass, fields, replace
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger(__name__)

# Capacity of the preallocated render target fields
MAX_IMAGE_WIDTH = 2048
MAX_IMAGE_HEIGHT = 2048


@dataclass(frozen=True)
class RenderSettings:
    """Settings for a single render.

    Attributes:
        width: Image width in pixels.
        height: Image height in pixels.
        samples_per_pixel: Rays averaged into every pixel.
        max_depth: Maximum number of bounces per path.
        anti_aliasing: Jitter samples inside their pixel.
        gamma_correction: Gamma-encode the averaged colour before output.
        seed: Global random seed.
    """

    width: int = 800
    height: int = 600
    samples_per_pixel: int = 100
    max_depth: int = 50
    anti_aliasing: bool = True
    gamma_correction: bool = True
    seed: int = 0

    @property
    def aspect_ratio(self) -> float:
        return self.width / self.height

    def validate(self) -> "RenderSettings":
        """Check that the settings are usable.

        Returns:
            self, for chaining.

        Raises:
            ValueError: If a value is out of range or has the wrong type.
        """
        for name in ("width", "height", "samples_per_pixel", "max_depth", "seed"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int):
                raise ValueError(f"{name} must be an integer, got {value!r}")
        for name in ("anti_aliasing", "gamma_correction"):
            if not isinstance(getattr(self, name), bool):
                raise ValueError(f"{name} must be true or false, got {getattr(self, name)!r}")

        if self.width <= 0 or self.height <= 0:
            raise ValueError(f"Image dimensions must be positive, got {self.width}x{self.height}")
        if self.width > MAX_IMAGE_WIDTH or self.height > MAX_IMAGE_HEIGHT:
            raise ValueError(
                f"Image dimensions ({self.width}x{self.height}) exceed maximum supported "
                f"({MAX_IMAGE_WIDTH}x{MAX_IMAGE_HEIGHT})"
            )
        if self.samples_per_pixel <= 0:
            raise ValueError(f"samples_per_pixel must be positive, got {self.samples_per_pixel}")
        if self.max_depth < 0:
            raise ValueError(f"max_depth must not be negative, got {self.max_depth}")
        return self

    def merged(self, **overrides: Any) -> "RenderSettings":
        """Return a copy with the given fields replaced; None values are ignored."""
        changes = {key: value for key, value in overrides.items() if value is not None}
        return replace(self, **changes)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "RenderSettings":
        """Build settings from a mapping, starting from the defaults.

        Raises:
            ValueError: If data is not a mapping, contains unknown keys or
                invalid values.
        """
        if not isinstance(data, dict):
            raise ValueError(f"Settings must be a mapping, got {type(data).__name__}")
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ValueError(f"Unknown setting(s): {', '.join(map(str, unknown))}")
        return cls(**data).validate()

    @classmethod
    def from_file(cls, path: str | Path) -> "RenderSettings":
        """Load settings from a YAML or JSON features file.

        An empty file yields the defaults.

        Raises:
            FileNotFoundError: If the file does not exist.
            ValueError: If the file is not valid YAML or holds invalid settings.
        """
        path = Path(path)
        with path.open("r", encoding="utf-8") as f:
            try:
                data = yaml.safe_load(f)
            except yaml.YAMLError as exc:
                raise ValueError(f"Cannot parse features file '{path}': {exc}") from exc
        logger.debug("Loaded features file %s", path)
        return cls.from_dict(data or {})
