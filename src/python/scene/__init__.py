"""Scene module for scene objects, groups and ray-scene queries.

Components:
    objects: Capability interface, smooth triangle object, intersection record
    group: Transformed collections of objects
    intersection: Taichi triangle storage and kernel-side queries
    manager: Scene manager flattening hierarchies into the triangle store

Scene data is organized for efficient GPU access:
    - Structure-of-Arrays layout for triangle geometry
    - One collapsed ancestor transform per triangle for rays and normals
    - Contiguous material ID arrays
"""

from .group import Group
from .intersection import (
    MAX_TRIANGLES,
    T_MAX,
    T_MIN,
    ProbeHit,
    SceneHitRecord,
    TraceResult,
    add_smooth_triangle,
    clear_scene,
    get_triangle_count,
    intersect_scene,
    intersect_scene_any,
    intersect_triangle,
    trace_rays,
    triangle_world_normal,
)
from .manager import MAX_MATERIALS, SceneManager, TriangleInfo
from .objects import (
    AttachmentError,
    Intersection,
    ObjectKind,
    SceneObject,
    SmoothTriangleObject,
)

__all__ = [
    # Objects
    "SceneObject",
    "SmoothTriangleObject",
    "ObjectKind",
    "Intersection",
    "AttachmentError",
    "Group",
    # Intersection module
    "SceneHitRecord",
    "ProbeHit",
    "TraceResult",
    "add_smooth_triangle",
    "clear_scene",
    "get_triangle_count",
    "intersect_triangle",
    "intersect_scene",
    "intersect_scene_any",
    "triangle_world_normal",
    "trace_rays",
    "MAX_TRIANGLES",
    "T_MIN",
    "T_MAX",
    # Manager module
    "SceneManager",
    "TriangleInfo",
    "MAX_MATERIALS",
]
