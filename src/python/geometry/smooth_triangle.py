"""Smooth-shaded triangle primitive with Möller–Trumbore intersection.

A smooth triangle is defined by:
- p1, p2, p3: The vertex positions (object-local space)
- n1, n2, n3: Per-vertex shading normals (need not be unit length)
- e1, e2: Edge vectors p2 - p1 and p3 - p1, derived once at construction

Ray-triangle intersection uses the Möller–Trumbore formulation, which solves

    origin + t * direction = p1 + u * e1 + v * e2

directly for (t, u, v) with Cramer's rule, without building the plane
equation. The barycentric weights (u, v) are returned with the hit so the
shading normal can be interpolated across the face:

    n = normalize(n2 * u + n3 * v + n1 * (1 - u - v))

The determinant sign is never inspected, so both faces are intersectable.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from src.python.geometry.smooth_triangle import (
    ...     make_smooth_triangle, hit_smooth_triangle, EPSILON_BUMP
    ... )
    >>> # Use hit_smooth_triangle within a Taichi kernel
"""

import taichi as ti
import taichi.math as tm

from src.python.core.ray import cross, dot, make_ray, normalize, ray_at

# Type alias for 3D vectors using Taichi's math module
vec3 = tm.vec3

# Rays whose determinant magnitude is at or below this threshold are treated
# as parallel to the triangle plane. Degenerate triangles never exceed it.
EPSILON_BUMP = 1e-4


@ti.dataclass
class SmoothTriangle:
    """A triangle with per-vertex normals for interpolated shading.

    Attributes:
        p1: First vertex (vec3).
        p2: Second vertex (vec3).
        p3: Third vertex (vec3).
        n1: Shading normal at p1 (vec3).
        n2: Shading normal at p2 (vec3).
        n3: Shading normal at p3 (vec3).
        e1: Edge vector p2 - p1 (vec3).
        e2: Edge vector p3 - p1 (vec3).
    """

    p1: vec3
    p2: vec3
    p3: vec3
    n1: vec3
    n2: vec3
    n3: vec3
    e1: vec3
    e2: vec3


@ti.dataclass
class TriangleHitRecord:
    """Record of a ray-triangle intersection in the triangle's local frame.

    Attributes:
        hit: Whether the ray intersected the triangle (1 if hit, 0 if miss).
        t: Distance along the ray in units of the direction length.
            Only valid if hit == 1. May be negative (hit behind the origin).
        point: origin + t * direction. Only valid if hit == 1.
        u: Barycentric weight of p2. Only valid if hit == 1.
        v: Barycentric weight of p3. Only valid if hit == 1.
    """

    hit: ti.i32
    t: ti.f32
    point: vec3
    u: ti.f32
    v: ti.f32


@ti.func
def make_smooth_triangle(
    p1: vec3, p2: vec3, p3: vec3, n1: vec3, n2: vec3, n3: vec3
) -> SmoothTriangle:
    """Create a smooth triangle, deriving its edge vectors.

    Args:
        p1: First vertex.
        p2: Second vertex.
        p3: Third vertex.
        n1: Shading normal at p1.
        n2: Shading normal at p2.
        n3: Shading normal at p3.

    Returns:
        A new SmoothTriangle with e1 = p2 - p1 and e2 = p3 - p1.
    """
    return SmoothTriangle(
        p1=p1, p2=p2, p3=p3, n1=n1, n2=n2, n3=n3, e1=p2 - p1, e2=p3 - p1
    )


@ti.func
def hit_smooth_triangle(
    ray_origin: vec3,
    ray_direction: vec3,
    tri: SmoothTriangle,
    epsilon: ti.f32,
) -> TriangleHitRecord:
    """Test for ray-triangle intersection using Möller–Trumbore.

    The three rejections are:
    1. |det| <= epsilon: ray parallel to the plane (or degenerate triangle)
    2. u outside [0, 1]
    3. v < 0 or u + v > 1

    No t range is applied; callers choose which hits are visible.

    Args:
        ray_origin: The starting point of the ray (local frame).
        ray_direction: The direction vector of the ray (local frame).
        tri: The triangle to test.
        epsilon: Determinant rejection threshold, normally EPSILON_BUMP.

    Returns:
        A TriangleHitRecord. Check the hit field to determine whether an
        intersection occurred.
    """
    did_hit = 0
    hit_t = 0.0
    hit_point = vec3(0.0, 0.0, 0.0)
    hit_u = 0.0
    hit_v = 0.0

    dir_cross_e2 = cross(ray_direction, tri.e2)
    det = dot(tri.e1, dir_cross_e2)

    if ti.abs(det) > epsilon:
        f = 1.0 / det
        p1_to_origin = ray_origin - tri.p1
        u = f * dot(p1_to_origin, dir_cross_e2)

        if u >= 0.0 and u <= 1.0:
            origin_cross_e1 = cross(p1_to_origin, tri.e1)
            v = f * dot(ray_direction, origin_cross_e1)

            if v >= 0.0 and u + v <= 1.0:
                did_hit = 1
                hit_t = f * dot(tri.e2, origin_cross_e1)
                hit_point = ray_at(make_ray(ray_origin, ray_direction), hit_t)
                hit_u = u
                hit_v = v

    return TriangleHitRecord(
        hit=did_hit,
        t=hit_t,
        point=hit_point,
        u=hit_u,
        v=hit_v,
    )


@ti.func
def interpolate_normal(tri: SmoothTriangle, u: ti.f32, v: ti.f32) -> vec3:
    """Interpolate the vertex normals at barycentric coordinates (u, v).

    Args:
        tri: The triangle.
        u: Weight of n2.
        v: Weight of n3. The weight of n1 is 1 - u - v.

    Returns:
        The unit shading normal in the triangle's local frame.
    """
    return normalize(tri.n2 * u + tri.n3 * v + tri.n1 * (1.0 - u - v))

