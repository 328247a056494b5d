"""Materials module: how surfaces turn an incoming ray into colour.

Components:
    normal_map: Terminal surface that visualises its normal
    diffuse: Lambertian reflection with a fixed albedo
    material: Unified material ids and the scatter dispatch

Every material variant keeps its parameters in its own registry of Taichi
fields; ``scatter_material`` looks up the variant of a unified material id and
calls the matching scatter function inside kernels.
"""

from .diffuse import (
    DiffuseMaterial,
    add_diffuse_material,
    clear_diffuse_materials,
    get_diffuse_albedo,
    get_diffuse_material_count,
    scatter_diffuse,
    validate_albedo,
)
from .material import (
    MAX_MATERIALS,
    MaterialType,
    clear_material_ids,
    get_material_count,
    get_material_type,
    get_material_type_index,
    register_material,
    scatter_material,
)
from .normal_map import (
    add_normal_map_material,
    clear_normal_map_materials,
    get_normal_map_material_count,
    normal_to_color,
    scatter_normal_map,
)

__all__ = [
    # Diffuse
    "DiffuseMaterial",
    "scatter_diffuse",
    "add_diffuse_material",
    "clear_diffuse_materials",
    "get_diffuse_material_count",
    "get_diffuse_albedo",
    "validate_albedo",
    # Normal map
    "normal_to_color",
    "scatter_normal_map",
    "add_normal_map_material",
    "clear_normal_map_materials",
    "get_normal_map_material_count",
    # Dispatch
    "MAX_MATERIALS",
    "MaterialType",
    "clear_material_ids",
    "get_material_count",
    "get_material_type",
    "get_material_type_index",
    "register_material",
    "scatter_material",
]
