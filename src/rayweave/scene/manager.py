"""Scene manager coordinating spheres and materials.

The SceneManager is the only writer of the global scene fields. It hands out
unified material ids, records which variant each id belongs to, and appends
spheres that reference those ids. Every call validates its input before any
field is touched, so a rejected call leaves the scene unchanged.

Example:
    >>> from rayweave.scene.manager import SceneManager
    >>> scene = SceneManager()
    >>> ground = scene.add_diffuse_material(albedo=(0.5, 0.5, 0.5))
    >>> scene.add_sphere(center=(0, -100.5, -1), radius=100, material_id=ground)
    >>> scene.add_normal_map_sphere(center=(0, 0, -1), radius=0.5)
"""

import logging
import math
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

import taichi.math as tm

from rayweave.core.ray import as_vector
from rayweave.materials.diffuse import (
    add_diffuse_material,
    clear_diffuse_materials,
    validate_albedo,
)
from rayweave.materials.material import (
    MAX_MATERIALS,
    MaterialType,
    clear_material_ids,
    get_material_count,
    register_material,
)
from rayweave.materials.normal_map import (
    add_normal_map_material,
    clear_normal_map_materials,
)
from rayweave.scene.intersection import (
    MAX_SPHERES,
    add_sphere,
    clear_scene,
    get_sphere_count,
)

logger = logging.getLogger(__name__)

vec3 = tm.vec3


@dataclass
class MaterialInfo:
    """Information about a registered material.

    Attributes:
        material_id: The unified material ID.
        material_type: The material variant.
        type_index: The index within the variant's registry.
        params: The material parameters as provided during creation.
    """

    material_id: int
    material_type: MaterialType
    type_index: int
    params: dict[str, Any]


@dataclass
class SphereInfo:
    """Information about a sphere in the scene."""

    sphere_index: int
    center: tuple[float, float, float]
    radius: float
    material_id: int


class SceneManager:
    """Builds the global scene: materials first, then spheres using them.

    Attributes:
        materials: MaterialInfo for every registered material, indexed by id.
        spheres: SphereInfo for every sphere, in insertion order.
    """

    def __init__(self) -> None:
        """Initialize an empty scene, clearing any previously loaded one."""
        self.materials: list[MaterialInfo] = []
        self.spheres: list[SphereInfo] = []
        self._clear_all()

    def _clear_all(self) -> None:
        clear_scene()
        clear_normal_map_materials()
        clear_diffuse_materials()
        clear_material_ids()
        self.materials.clear()
        self.spheres.clear()

    def clear(self) -> None:
        """Remove every sphere and material."""
        self._clear_all()

    # =========================================================================
    # Material Management
    # =========================================================================

    @staticmethod
    def _check_material_capacity() -> None:
        # Must run before the variant registry is written
        if get_material_count() >= MAX_MATERIALS:
            raise RuntimeError(f"Maximum number of materials ({MAX_MATERIALS}) exceeded")

    def _register(self, material_type: MaterialType, type_index: int, params: dict[str, Any]) -> int:
        material_id = register_material(material_type, type_index)
        self.materials.append(
            MaterialInfo(
                material_id=material_id,
                material_type=material_type,
                type_index=type_index,
                params=params,
            )
        )
        return material_id

    def add_normal_map_material(self) -> int:
        """Add a normal-visualisation material.

        Returns:
            The unified material ID.

        Raises:
            RuntimeError: If the maximum number of materials is exceeded.
        """
        self._check_material_capacity()
        type_index = add_normal_map_material()
        return self._register(MaterialType.NORMAL_MAP, type_index, {})

    def add_diffuse_material(self, albedo: Sequence[float]) -> int:
        """Add a diffuse material.

        Args:
            albedo: Reflectance as (R, G, B), each component in [0, 1].

        Returns:
            The unified material ID.

        Raises:
            ValueError: If any albedo component is outside [0, 1].
            RuntimeError: If the maximum number of materials is exceeded.
        """
        albedo = validate_albedo(albedo)
        self._check_material_capacity()
        type_index = add_diffuse_material(albedo)
        return self._register(MaterialType.DIFFUSE, type_index, {"albedo": albedo})

    def get_material_count(self) -> int:
        """Get the total number of materials in the scene."""
        return get_material_count()

    def get_material_info(self, material_id: int) -> MaterialInfo | None:
        """Get information about a material by ID, or None if unknown."""
        if 0 <= material_id < len(self.materials):
            return self.materials[material_id]
        return None

    # =========================================================================
    # Sphere Management
    # =========================================================================

    def add_sphere(
        self,
        center: Sequence[float],
        radius: float,
        material_id: int,
    ) -> int:
        """Add a sphere referencing an existing material.

        Args:
            center: The center point of the sphere as (x, y, z).
            radius: The radius of the sphere, strictly positive.
            material_id: Unified id returned by one of the add_*_material methods.

        Returns:
            The index of the added sphere.

        Raises:
            ValueError: If the center is malformed, the radius is not a positive
                finite number, or material_id does not exist.
            RuntimeError: If the maximum number of spheres is exceeded.
        """
        center_arr = as_vector(center, "center")
        if not (math.isfinite(radius) and radius > 0.0):
            raise ValueError(f"Sphere radius must be positive, got {radius}")
        if material_id < 0 or material_id >= get_material_count():
            raise ValueError(f"Invalid material_id: {material_id}")

        center_tuple = (float(center_arr[0]), float(center_arr[1]), float(center_arr[2]))
        sphere_index = add_sphere(vec3(*center_tuple), float(radius), material_id)
        self.spheres.append(
            SphereInfo(
                sphere_index=sphere_index,
                center=center_tuple,
                radius=float(radius),
                material_id=material_id,
            )
        )
        return sphere_index

    def add_normal_map_sphere(
        self,
        center: Sequence[float],
        radius: float,
    ) -> tuple[int, int]:
        """Add a sphere with a new normal-map material.

        Returns:
            Tuple of (sphere_index, material_id).
        """
        material_id = self.add_normal_map_material()
        sphere_index = self.add_sphere(center, radius, material_id)
        return sphere_index, material_id

    def add_diffuse_sphere(
        self,
        center: Sequence[float],
        radius: float,
        albedo: Sequence[float],
    ) -> tuple[int, int]:
        """Add a sphere with a new diffuse material.

        Returns:
            Tuple of (sphere_index, material_id).
        """
        material_id = self.add_diffuse_material(albedo)
        sphere_index = self.add_sphere(center, radius, material_id)
        return sphere_index, material_id

    def get_sphere_count(self) -> int:
        """Get the number of spheres in the scene."""
        return get_sphere_count()

    # =========================================================================
    # Serialization
    # =========================================================================

    def to_dict(self) -> dict[str, Any]:
        """Export the scene as plain data.

        Returns:
            A dictionary with 'materials' and 'spheres' lists; spheres refer
            to materials by their position in the 'materials' list.
        """
        materials = [
            {"type": mat.material_type.name.lower(), **{k: list(v) for k, v in mat.params.items()}}
            for mat in self.materials
        ]
        spheres = [
            {
                "center": list(sphere.center),
                "radius": sphere.radius,
                "material_id": sphere.material_id,
            }
            for sphere in self.spheres
        ]
        return {"materials": materials, "spheres": spheres}

    def from_dict(self, data: dict[str, Any]) -> None:
        """Replace the scene with one exported by to_dict().

        The whole document is checked before the current scene is cleared, so
        a rejected document leaves the loaded scene as it was. Every key that
        to_dict() writes is required; nothing is filled in with defaults.

        Args:
            data: Dictionary with 'materials' and 'spheres' keys.

        Raises:
            ValueError: If the document is malformed, a material type is
                unknown or an entry is invalid. The message names the entry.
            RuntimeError: If the document exceeds the sphere or material capacity.
        """
        materials, spheres = _check_scene_dict(data)

        self.clear()
        for material_type, albedo in materials:
            if material_type == MaterialType.NORMAL_MAP:
                self.add_normal_map_material()
            else:
                self.add_diffuse_material(albedo)
        for center, radius, material_id in spheres:
            self.add_sphere(center, radius, material_id)

        logger.debug(
            "Loaded %d materials and %d spheres from dict",
            len(self.materials),
            len(self.spheres),
        )

    # =========================================================================
    # Capacity Information
    # =========================================================================

    @staticmethod
    def get_max_spheres() -> int:
        """Get the maximum number of spheres supported."""
        return MAX_SPHERES

    @staticmethod
    def get_max_materials() -> int:
        """Get the maximum number of materials supported."""
        return MAX_MATERIALS


# =============================================================================
# Dictionary Validation
# =============================================================================

_MATERIAL_KEYS = {
    MaterialType.NORMAL_MAP: {"type"},
    MaterialType.DIFFUSE: {"type", "albedo"},
}
_SPHERE_KEYS = {"center", "radius", "material_id"}


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _check_entry_keys(entry: Any, required: set[str], where: str) -> dict[str, Any]:
    if not isinstance(entry, dict):
        raise ValueError(f"{where}: expected a mapping, got {type(entry).__name__}")
    missing = sorted(required - entry.keys())
    if missing:
        raise ValueError(f"{where}: missing key {missing[0]!r}")
    unknown = sorted(str(key) for key in entry.keys() - required)
    if unknown:
        raise ValueError(f"{where}: unknown key {unknown[0]!r}")
    return entry


def _check_vector(value: Any, where: str) -> tuple[float, float, float]:
    if not isinstance(value, (list, tuple)) or not all(_is_number(v) for v in value):
        raise ValueError(f"{where}: expected three numbers, got {value!r}")
    arr = as_vector(value, where)
    return (float(arr[0]), float(arr[1]), float(arr[2]))


def _check_scene_dict(data: Any):
    """Validate a to_dict() document without touching the scene.

    Returns:
        A tuple (materials, spheres): materials as (MaterialType, albedo or
        None) pairs, spheres as (center, radius, material_id) triples.
    """
    if not isinstance(data, dict):
        raise ValueError(f"Scene data must be a mapping, got {type(data).__name__}")
    _check_entry_keys(data, {"materials", "spheres"}, "scene")
    if not isinstance(data["materials"], list) or not isinstance(data["spheres"], list):
        raise ValueError("scene: 'materials' and 'spheres' must be lists")

    if len(data["materials"]) > MAX_MATERIALS:
        raise RuntimeError(
            f"Scene has {len(data['materials'])} materials, maximum is {MAX_MATERIALS}"
        )
    if len(data["spheres"]) > MAX_SPHERES:
        raise RuntimeError(f"Scene has {len(data['spheres'])} spheres, maximum is {MAX_SPHERES}")

    materials = []
    for i, entry in enumerate(data["materials"]):
        where = f"materials[{i}]"
        if not isinstance(entry, dict) or "type" not in entry:
            raise ValueError(f"{where}: missing key 'type'")
        name = entry["type"]
        try:
            material_type = MaterialType[str(name).upper()]
        except KeyError:
            raise ValueError(f"{where}: Unknown material type: {name!r}") from None
        _check_entry_keys(entry, _MATERIAL_KEYS[material_type], where)

        albedo = None
        if material_type == MaterialType.DIFFUSE:
            albedo = validate_albedo(_check_vector(entry["albedo"], f"{where}.albedo"))
        materials.append((material_type, albedo))

    spheres = []
    for i, entry in enumerate(data["spheres"]):
        where = f"spheres[{i}]"
        _check_entry_keys(entry, _SPHERE_KEYS, where)
        center = _check_vector(entry["center"], f"{where}.center")
        radius = entry["radius"]
        if not (_is_number(radius) and math.isfinite(radius) and radius > 0.0):
            raise ValueError(f"{where}.radius: must be a positive number, got {radius!r}")
        material_id = entry["material_id"]
        if not (_is_int(material_id) and 0 <= material_id < len(materials)):
            raise ValueError(f"{where}.material_id: Invalid material_id: {material_id!r}")
        spheres.append((center, float(radius), material_id))

    return materials, spheres
