"""Scene module: object storage, scene building and scene files.

Components:
    intersection: Sphere storage in Taichi fields and closest-hit queries
    manager: SceneManager coordinating spheres and unified material ids
    description: Scene file parsing, validation and building

Scene data is laid out for parallel access:
    - Structure-of-Arrays layout for sphere data
    - Contiguous material ID arrays
    - Append-only while building, read-only while rendering
"""

from .description import (
    CameraSpec,
    MaterialSpec,
    Scene,
    SceneDescription,
    SceneError,
    SphereSpec,
    build_scene,
    load_scene_file,
    parse_scene,
)
from .intersection import (
    MAX_SPHERES,
    HitInfo,
    SceneHitRecord,
    add_sphere,
    clear_scene,
    get_scene_generation,
    get_sphere_count,
    intersect_scene,
    query_hit,
)
from .manager import (
    MaterialInfo,
    SceneManager,
    SphereInfo,
)

__all__ = [
    # Intersection module
    "SceneHitRecord",
    "HitInfo",
    "add_sphere",
    "clear_scene",
    "get_scene_generation",
    "get_sphere_count",
    "intersect_scene",
    "query_hit",
    "MAX_SPHERES",
    # Manager module
    "SceneManager",
    "MaterialInfo",
    "SphereInfo",
    # Description module
    "CameraSpec",
    "MaterialSpec",
    "SphereSpec",
    "SceneDescription",
    "Scene",
    "SceneError",
    "parse_scene",
    "load_scene_file",
    "build_scene",
]
