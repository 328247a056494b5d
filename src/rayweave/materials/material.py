"""Unified material ids and scatter dispatch.

Every material, whatever its variant, gets one id from a shared id space.
Two fields map that id to the variant tag and to the index inside the
variant's own parameter registry; ``scatter_material`` dispatches on the tag.

The variant set is closed: a hit is either resolved by a normal-map surface
(terminal colour) or scattered by a diffuse surface (attenuation plus a new
direction).
"""

from enum import IntEnum

import taichi as ti
import taichi.math as tm

from rayweave.materials.diffuse import get_diffuse_albedo, scatter_diffuse
from rayweave.materials.normal_map import scatter_normal_map

vec3 = tm.vec3


class MaterialType(IntEnum):
    """Material variant tags, stored in the material_types field."""

    NORMAL_MAP = 0
    DIFFUSE = 1


MAX_MATERIALS = 1024

# material_types[id] is the MaterialType of material id
material_types = ti.field(dtype=ti.i32, shape=MAX_MATERIALS)
# material_type_indices[id] is the index into the variant's registry
material_type_indices = ti.field(dtype=ti.i32, shape=MAX_MATERIALS)
num_materials = ti.field(dtype=ti.i32, shape=())


def clear_material_ids() -> None:
    """Forget every registered material id."""
    num_materials[None] = 0


def register_material(material_type: MaterialType, type_index: int) -> int:
    """Assign the next unified id to a variant-local material.

    Args:
        material_type: Variant of the material.
        type_index: Index of the material in its variant registry.

    Returns:
        The unified material id.

    Raises:
        RuntimeError: If the maximum number of materials is exceeded.
    """
    material_id = num_materials[None]
    if material_id >= MAX_MATERIALS:
        raise RuntimeError(f"Maximum number of materials ({MAX_MATERIALS}) exceeded")
    material_types[material_id] = int(material_type)
    material_type_indices[material_id] = type_index
    num_materials[None] = material_id + 1
    return material_id


def get_material_count() -> int:
    """Get the number of registered materials."""
    return int(num_materials[None])


@ti.func
def get_material_type(material_id: ti.i32) -> ti.i32:
    """Variant tag of a material id, or -1 for an unknown id."""
    result = -1
    if 0 <= material_id < num_materials[None]:
        result = material_types[material_id]
    return result


@ti.func
def get_material_type_index(material_id: ti.i32) -> ti.i32:
    """Variant-local index of a material id, or -1 for an unknown id."""
    result = -1
    if 0 <= material_id < num_materials[None]:
        result = material_type_indices[material_id]
    return result


@ti.func
def scatter_material(material_id: ti.i32, normal: vec3, state: ti.u32):
    """Resolve a hit according to the material of the hit object.

    Args:
        material_id: Unified id of the hit object's material.
        normal: Unit shading normal at the hit, facing the incoming ray.
        state: Current random stream state.

    Returns:
        A tuple (scattered_direction, colour, bounced, state). When bounced is
        1, colour is the attenuation applied to the scattered ray's colour.
        When bounced is 0, colour is the final colour of the path. Unknown
        ids absorb the ray (black, not bounced).
    """
    mat_type = get_material_type(material_id)
    type_index = get_material_type_index(material_id)

    rng = state
    scattered_direction = vec3(0.0, 0.0, 0.0)
    colour = vec3(0.0, 0.0, 0.0)
    bounced = 0

    if mat_type == int(MaterialType.NORMAL_MAP):
        scattered_direction, colour, bounced = scatter_normal_map(normal)

    elif mat_type == int(MaterialType.DIFFUSE):
        albedo = get_diffuse_albedo(type_index)
        scattered_direction, colour, rng = scatter_diffuse(albedo, normal, rng)
        bounced = 1

    return scattered_direction, colour, bounced, rng
