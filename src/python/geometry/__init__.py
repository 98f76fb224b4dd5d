"""Geometry module for the smooth triangle primitive.

Components:
    smooth_triangle: Triangle with per-vertex normals, Möller–Trumbore
        intersection and barycentric normal interpolation

Intersection routines are Taichi functions (@ti.func) and follow the pattern:
    record = hit_smooth_triangle(ray_origin, ray_direction, tri, epsilon)
"""

from .smooth_triangle import (
    EPSILON_BUMP,
    SmoothTriangle,
    TriangleHitRecord,
    hit_smooth_triangle,
    interpolate_normal,
    make_smooth_triangle,
)

__all__ = [
    "EPSILON_BUMP",
    "SmoothTriangle",
    "TriangleHitRecord",
    "hit_smooth_triangle",
    "interpolate_normal",
    "make_smooth_triangle",
]
