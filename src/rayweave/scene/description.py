"""Scene description files: parsing, validation and building.

A scene file is YAML (JSON works too) with an optional camera section and a
list of objects. Objects are spheres or groups; groups nest and are flattened
into the sphere list in document order.

    camera:
      lookfrom: [0, 0, 0]
      lookat: [0, 0, -1]
      vup: [0, 1, 0]
      vfov: 90
    objects:
      - type: sphere
        center: [0, 0, -1]
        radius: 0.5
        material: {type: normal_map}
      - type: group
        objects:
          - type: sphere
            center: [0, -100.5, -1]
            radius: 100
            material: {type: diffuse, albedo: [0.5, 0.5, 0.5]}

parse_scene() validates the whole document before anything is built, so an
invalid file never leaves a partially loaded scene behind. Errors name the
offending location, e.g. ``objects[1].objects[0].radius``.
"""

import logging
import math
from collections.abc import Iterator
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from rayweave.camera.pinhole import PinholeCamera
from rayweave.materials.material import MaterialType
from rayweave.scene.intersection import get_scene_generation
from rayweave.scene.manager import SceneManager

logger = logging.getLogger(__name__)

_OBJECT_TYPES = ("sphere", "group")
_MATERIAL_TYPES = {
    "normal_map": MaterialType.NORMAL_MAP,
    "diffuse": MaterialType.DIFFUSE,
}
_CAMERA_KEYS = ("lookfrom", "lookat", "vup", "vfov")


class SceneError(ValueError):
    """Raised when a scene description is malformed.

    Attributes:
        path: Location of the offending value inside the document.
    """

    def __init__(self, path: str, message: str) -> None:
        self.path = path
        super().__init__(f"{path}: {message}" if path else message)


# =============================================================================
# Description Types
# =============================================================================


@dataclass(frozen=True)
class MaterialSpec:
    """A material as written in the scene file."""

    material_type: MaterialType
    albedo: tuple[float, float, float] | None = None


@dataclass(frozen=True)
class SphereSpec:
    """A sphere as written in the scene file."""

    center: tuple[float, float, float]
    radius: float
    material: MaterialSpec


@dataclass(frozen=True)
class CameraSpec:
    """Camera placement as written in the scene file."""

    lookfrom: tuple[float, float, float] = (0.0, 0.0, 0.0)
    lookat: tuple[float, float, float] = (0.0, 0.0, -1.0)
    vup: tuple[float, float, float] = (0.0, 1.0, 0.0)
    vfov: float = 90.0

    def to_camera(self, aspect_ratio: float) -> PinholeCamera:
        return PinholeCamera(
            lookfrom=self.lookfrom,
            lookat=self.lookat,
            vup=self.vup,
            vfov=self.vfov,
            aspect_ratio=aspect_ratio,
        )


@dataclass(frozen=True)
class SceneDescription:
    """A validated scene file with all groups flattened.

    Attributes:
        camera: Camera placement; the default camera when the file has none.
        spheres: Every sphere of the scene in document order.
    """

    camera: CameraSpec
    spheres: tuple[SphereSpec, ...]


@dataclass(frozen=True)
class Scene:
    """A scene loaded into the global scene fields.

    The scene data lives in the global fields, so a Scene stays valid only
    until the fields are cleared again (by another build_scene() call, a new
    SceneManager or SceneManager.clear()).

    Attributes:
        manager: The SceneManager holding the loaded materials and spheres.
        camera: The camera to render the scene through.
        generation: Scene generation the fields held right after building.
    """

    manager: SceneManager
    camera: PinholeCamera
    generation: int

    @property
    def is_loaded(self) -> bool:
        """Whether the global fields still hold this scene."""
        return self.generation == get_scene_generation()


# =============================================================================
# Parsing
# =============================================================================


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _parse_vector(value: Any, path: str) -> tuple[float, float, float]:
    if not isinstance(value, (list, tuple)) or len(value) != 3:
        raise SceneError(path, f"expected a list of 3 numbers, got {value!r}")
    if not all(_is_number(v) and math.isfinite(v) for v in value):
        raise SceneError(path, f"expected a list of 3 finite numbers, got {value!r}")
    return (float(value[0]), float(value[1]), float(value[2]))


def _parse_number(value: Any, path: str) -> float:
    if not _is_number(value) or not math.isfinite(value):
        raise SceneError(path, f"expected a finite number, got {value!r}")
    return float(value)


def _require_mapping(value: Any, path: str) -> dict[str, Any]:
    if not isinstance(value, dict):
        raise SceneError(path, f"expected a mapping, got {type(value).__name__}")
    return value


def _join(path: str, key: Any) -> str:
    return f"{path}.{key}" if path else str(key)


def _check_keys(data: dict[str, Any], allowed: tuple[str, ...], path: str) -> None:
    for key in data:
        if key not in allowed:
            raise SceneError(_join(path, key), "unknown key")


def _require(data: dict[str, Any], key: str, path: str) -> Any:
    if key not in data:
        raise SceneError(_join(path, key), "missing required key")
    return data[key]


def _parse_material(value: Any, path: str) -> MaterialSpec:
    data = _require_mapping(value, path)
    tag = _require(data, "type", path)
    if not isinstance(tag, str) or tag not in _MATERIAL_TYPES:
        raise SceneError(
            f"{path}.type",
            f"unknown material type {tag!r} (expected one of {', '.join(_MATERIAL_TYPES)})",
        )

    material_type = _MATERIAL_TYPES[tag]
    if material_type == MaterialType.NORMAL_MAP:
        _check_keys(data, ("type",), path)
        return MaterialSpec(material_type)

    _check_keys(data, ("type", "albedo"), path)
    albedo = _parse_vector(_require(data, "albedo", path), f"{path}.albedo")
    if not all(0.0 <= c <= 1.0 for c in albedo):
        raise SceneError(f"{path}.albedo", f"components must lie in [0, 1], got {list(albedo)}")
    return MaterialSpec(material_type, albedo)


def _parse_objects(value: Any, path: str) -> Iterator[SphereSpec]:
    if not isinstance(value, list):
        raise SceneError(path, f"expected a list of objects, got {type(value).__name__}")

    for index, item in enumerate(value):
        item_path = f"{path}[{index}]"
        data = _require_mapping(item, item_path)
        tag = _require(data, "type", item_path)

        if tag == "sphere":
            _check_keys(data, ("type", "center", "radius", "material"), item_path)
            center = _parse_vector(_require(data, "center", item_path), f"{item_path}.center")
            radius = _parse_number(_require(data, "radius", item_path), f"{item_path}.radius")
            if radius <= 0.0:
                raise SceneError(f"{item_path}.radius", f"must be positive, got {radius}")
            material = _parse_material(
                _require(data, "material", item_path), f"{item_path}.material"
            )
            yield SphereSpec(center, radius, material)

        elif tag == "group":
            _check_keys(data, ("type", "objects"), item_path)
            yield from _parse_objects(
                _require(data, "objects", item_path), f"{item_path}.objects"
            )

        else:
            raise SceneError(
                f"{item_path}.type",
                f"unknown object type {tag!r} (expected one of {', '.join(_OBJECT_TYPES)})",
            )


def _parse_camera(value: Any) -> CameraSpec:
    if value is None:
        return CameraSpec()
    data = _require_mapping(value, "camera")
    _check_keys(data, _CAMERA_KEYS, "camera")

    defaults = CameraSpec()
    spec = CameraSpec(
        lookfrom=_parse_vector(data.get("lookfrom", defaults.lookfrom), "camera.lookfrom"),
        lookat=_parse_vector(data.get("lookat", defaults.lookat), "camera.lookat"),
        vup=_parse_vector(data.get("vup", defaults.vup), "camera.vup"),
        vfov=_parse_number(data.get("vfov", defaults.vfov), "camera.vfov"),
    )
    try:
        spec.to_camera(aspect_ratio=1.0).validate()
    except ValueError as exc:
        raise SceneError("camera", str(exc)) from exc
    return spec


def parse_scene(data: Any) -> SceneDescription:
    """Validate a scene document and flatten its object tree.

    Args:
        data: The document as loaded from YAML/JSON.

    Returns:
        The validated SceneDescription.

    Raises:
        SceneError: If any part of the document is malformed.
    """
    document = _require_mapping(data, "")
    _check_keys(document, ("camera", "objects"), "")

    camera = _parse_camera(document.get("camera"))
    spheres = tuple(_parse_objects(_require(document, "objects", ""), "objects"))
    return SceneDescription(camera=camera, spheres=spheres)


def load_scene_file(path: str | Path) -> SceneDescription:
    """Read and validate a scene file.

    Raises:
        FileNotFoundError: If the file does not exist.
        SceneError: If the file is not valid YAML or not a valid scene.
    """
    path = Path(path)
    with path.open("r", encoding="utf-8") as f:
        try:
            data = yaml.safe_load(f)
        except yaml.YAMLError as exc:
            raise SceneError("", f"cannot parse scene file '{path}': {exc}") from exc

    description = parse_scene(data)
    logger.info("Loaded scene '%s' with %d objects", path, len(description.spheres))
    return description


# =============================================================================
# Building
# =============================================================================


def build_scene(description: SceneDescription, aspect_ratio: float = 16.0 / 9.0) -> Scene:
    """Load a scene description into the global scene fields.

    Any previously loaded scene is replaced. Building the same description
    twice yields the same spheres in the same order.

    Args:
        description: A validated description from parse_scene().
        aspect_ratio: Aspect ratio of the camera.

    Returns:
        The loaded Scene.

    Raises:
        RuntimeError: If the scene exceeds the sphere or material capacity.
        ValueError: If the camera cannot be built with this aspect ratio.
    """
    camera = description.camera.to_camera(aspect_ratio)
    camera.validate()

    manager = SceneManager()
    if len(description.spheres) > manager.get_max_spheres():
        raise RuntimeError(
            f"Scene has {len(description.spheres)} spheres, "
            f"maximum is {manager.get_max_spheres()}"
        )

    for sphere in description.spheres:
        if sphere.material.material_type == MaterialType.NORMAL_MAP:
            manager.add_normal_map_sphere(sphere.center, sphere.radius)
        else:
            manager.add_diffuse_sphere(sphere.center, sphere.radius, sphere.material.albedo)

    logger.debug(
        "Built scene: %d spheres, %d materials",
        manager.get_sphere_count(),
        manager.get_material_count(),
    )
    return Scene(manager=manager, camera=camera, generation=get_scene_generation())
