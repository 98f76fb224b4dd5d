"""Scene-level smooth triangle storage and intersection testing.

Triangles live in Taichi fields (Structure of Arrays) in their own local
frame, together with the product of the ancestor inverse transforms they
inherited from the group hierarchy. That one matrix brings rays into the
local frame and, transposed, carries normals back out, so nesting depth is
unbounded. Kernel-side queries return world-space points and normals.

One extra row past MAX_TRIANGLES is reserved as a probe slot. The host-side
object API stages a single triangle there to run the same kernel code path
without touching the scene contents.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from src.python.scene.intersection import (
    ...     add_smooth_triangle, clear_scene, trace_rays
    ... )
    >>> clear_scene()
    >>> add_smooth_triangle(
    ...     (0, 1, 0), (-1, 0, 0), (1, 0, 0), (0, 1, 0), (-1, 0, 0), (1, 0, 0)
    ... )
    0
    >>> # Use intersect_scene within a Taichi kernel, or trace_rays on the host
"""

from collections.abc import Sequence
from dataclasses import dataclass

import numpy as np
import numpy.typing as npt
import taichi as ti
import taichi.math as tm

from src.python.core.matrix import (
    IDENTITY,
    apply_point,
    apply_vector,
    compose_chain,
    transform_normal,
)
from src.python.core.ray import make_ray, ray_at
from src.python.geometry.smooth_triangle import (
    EPSILON_BUMP,
    SmoothTriangle,
    hit_smooth_triangle,
    interpolate_normal,
)

# Type alias for 3D vectors using Taichi's math module
vec3 = tm.vec3

Vector3 = Sequence[float]


@ti.dataclass
class SceneHitRecord:
    """Record of a ray-scene intersection in world space.

    Attributes:
        hit: Whether the ray intersected any triangle (1 if hit, 0 if miss).
        t: The parameter value along the ray where intersection occurred.
            Only valid if hit == 1.
        point: The world-space hit point. Only valid if hit == 1.
        normal: The interpolated shading normal mapped through the ancestor
            chain (unit length). Only valid if hit == 1.
        u: Barycentric weight of the second vertex. Only valid if hit == 1.
        v: Barycentric weight of the third vertex. Only valid if hit == 1.
        triangle_index: Row of the hit triangle, -1 on a miss.
        material_id: The material ID of the hit triangle, -1 on a miss.
    """

    hit: ti.i32
    t: ti.f32
    point: vec3
    normal: vec3
    u: ti.f32
    v: ti.f32
    triangle_index: ti.i32
    material_id: ti.i32


# Maximum number of triangles supported in the scene
MAX_TRIANGLES = 4096

# Reserved row for single-triangle queries from the host
PROBE_ROW = MAX_TRIANGLES

# t range used by the batch tracer when the caller does not supply one
T_MIN = 1e-4
T_MAX = 1e10

_ROWS = MAX_TRIANGLES + 1

# Triangle storage: Structure of Arrays layout
# triangle_vertices[i, k] is vertex p(k+1), triangle_normals[i, k] is n(k+1)
triangle_vertices = ti.Vector.field(3, dtype=ti.f32, shape=(_ROWS, 3))
triangle_normals = ti.Vector.field(3, dtype=ti.f32, shape=(_ROWS, 3))
# triangle_edges[i, 0] = p2 - p1, triangle_edges[i, 1] = p3 - p1
triangle_edges = ti.Vector.field(3, dtype=ti.f32, shape=(_ROWS, 2))
# Product of the ancestor chain (leaf-to-root inverses); its transpose maps
# local normals to world space
triangle_normal_inverse = ti.Matrix.field(4, 4, dtype=ti.f32, shape=_ROWS)
# Maps rays into the local frame; equal to triangle_normal_inverse except
# on the probe row
triangle_world_to_local = ti.Matrix.field(4, 4, dtype=ti.f32, shape=_ROWS)
triangle_material_ids = ti.field(dtype=ti.i32, shape=_ROWS)
num_triangles = ti.field(dtype=ti.i32, shape=())

# Probe results, written by the single-triangle kernels
_probe_hit = ti.field(dtype=ti.i32, shape=())
_probe_t = ti.field(dtype=ti.f32, shape=())
_probe_point = ti.Vector.field(3, dtype=ti.f32, shape=())
_probe_normal = ti.Vector.field(3, dtype=ti.f32, shape=())
_probe_u = ti.field(dtype=ti.f32, shape=())
_probe_v = ti.field(dtype=ti.f32, shape=())


@dataclass
class ProbeHit:
    """Host-side result of a single-triangle probe.

    Attributes:
        t: Distance along the ray.
        point: Hit point in the frame the ray was given in.
        normal: World-space shading normal.
        u: Barycentric weight of the second vertex.
        v: Barycentric weight of the third vertex.
    """

    t: float
    point: tuple[float, float, float]
    normal: tuple[float, float, float]
    u: float
    v: float


@dataclass
class TraceResult:
    """Batch intersection results, one entry per input ray.

    Attributes:
        hit: int32 array of shape (N,), 1 where the ray hit a triangle.
        t: float32 array of shape (N,).
        point: float32 array of shape (N, 3), world-space hit points.
        normal: float32 array of shape (N, 3), world-space shading normals.
        u: float32 array of shape (N,).
        v: float32 array of shape (N,).
        triangle_index: int32 array of shape (N,), -1 on a miss.
        material_id: int32 array of shape (N,), -1 on a miss.
    """

    hit: npt.NDArray[np.int32]
    t: npt.NDArray[np.float32]
    point: npt.NDArray[np.float32]
    normal: npt.NDArray[np.float32]
    u: npt.NDArray[np.float32]
    v: npt.NDArray[np.float32]
    triangle_index: npt.NDArray[np.int32]
    material_id: npt.NDArray[np.int32]

    @property
    def hit_count(self) -> int:
        """Number of rays that hit something."""
        return int(np.count_nonzero(self.hit))


# =============================================================================
# Host-side Storage
# =============================================================================


def _sub(a: Vector3, b: Vector3) -> list[float]:
    return [float(a[0]) - float(b[0]), float(a[1]) - float(b[1]), float(a[2]) - float(b[2])]


def _as_list(v: Vector3) -> list[float]:
    return [float(v[0]), float(v[1]), float(v[2])]


def _write_row(
    row: int,
    vertices: Sequence[Vector3],
    normals: Sequence[Vector3],
    edges: Sequence[Vector3],
    parent_inverses: Sequence[np.ndarray],
    material_id: int,
) -> None:
    """Write one triangle into the field row."""
    for k in range(3):
        triangle_vertices[row, k] = _as_list(vertices[k])
        triangle_normals[row, k] = _as_list(normals[k])
    triangle_edges[row, 0] = _as_list(edges[0])
    triangle_edges[row, 1] = _as_list(edges[1])
    # Chain is collapsed in float64 before the f32 upload
    collapsed = compose_chain(parent_inverses).tolist()
    triangle_normal_inverse[row] = collapsed
    triangle_world_to_local[row] = collapsed
    triangle_material_ids[row] = material_id


def clear_scene() -> None:
    """Clear all triangles from the scene.

    Resets the triangle count to zero. The field data is not cleared but
    will be overwritten when new triangles are added.
    """
    num_triangles[None] = 0


def add_smooth_triangle(
    p1: Vector3,
    p2: Vector3,
    p3: Vector3,
    n1: Vector3,
    n2: Vector3,
    n3: Vector3,
    parent_inverses: Sequence[np.ndarray] = (),
    material_id: int = 0,
) -> int:
    """Add a smooth triangle to the scene.

    Args:
        p1: First vertex (local frame).
        p2: Second vertex (local frame).
        p3: Third vertex (local frame).
        n1: Shading normal at p1.
        n2: Shading normal at p2.
        n3: Shading normal at p3.
        parent_inverses: Ancestor inverse transforms, leaf-to-root.
        material_id: The material ID to associate with this triangle.

    Returns:
        The index of the added triangle.

    Raises:
        RuntimeError: If the maximum number of triangles is exceeded.
    """
    idx = num_triangles[None]
    if idx >= MAX_TRIANGLES:
        raise RuntimeError(f"Maximum number of triangles ({MAX_TRIANGLES}) exceeded")
    _write_row(
        idx,
        (p1, p2, p3),
        (n1, n2, n3),
        (_sub(p2, p1), _sub(p3, p1)),
        parent_inverses,
        material_id,
    )
    num_triangles[None] = idx + 1
    return idx


def get_triangle_count() -> int:
    """Get the number of triangles in the scene."""
    return int(num_triangles[None])


# =============================================================================
# Kernel-side Queries
# =============================================================================


@ti.func
def load_triangle(row: ti.i32) -> SmoothTriangle:
    """Assemble the SmoothTriangle stored at a field row."""
    return SmoothTriangle(
        p1=triangle_vertices[row, 0],
        p2=triangle_vertices[row, 1],
        p3=triangle_vertices[row, 2],
        n1=triangle_normals[row, 0],
        n2=triangle_normals[row, 1],
        n3=triangle_normals[row, 2],
        e1=triangle_edges[row, 0],
        e2=triangle_edges[row, 1],
    )


@ti.func
def triangle_world_normal(row: ti.i32, u: ti.f32, v: ti.f32) -> vec3:
    """Interpolated shading normal of a stored triangle, in world space.

    Pushing the local normal through each ancestor inverse in leaf-to-root
    order (inverse-transpose, then renormalize) only rescales it by positive
    factors between levels, so a single inverse-transpose of the collapsed
    chain yields the same unit normal at any nesting depth.

    Args:
        row: The triangle row.
        u: Barycentric weight of the second vertex.
        v: Barycentric weight of the third vertex.

    Returns:
        The unit world-space normal.
    """
    n = interpolate_normal(load_triangle(row), u, v)
    return transform_normal(triangle_normal_inverse[row], n)


@ti.func
def _make_miss_record() -> SceneHitRecord:
    """Create a SceneHitRecord indicating no intersection."""
    return SceneHitRecord(
        hit=0,
        t=0.0,
        point=vec3(0.0, 0.0, 0.0),
        normal=vec3(0.0, 0.0, 0.0),
        u=0.0,
        v=0.0,
        triangle_index=-1,
        material_id=-1,
    )


@ti.func
def intersect_triangle(
    row: ti.i32,
    ray_origin: vec3,
    ray_direction: vec3,
    epsilon: ti.f32,
) -> SceneHitRecord:
    """Intersect a world-space ray with one stored triangle.

    No t range is applied, so hits behind the origin are reported too.

    Args:
        row: The triangle row.
        ray_origin: The starting point of the ray (world space).
        ray_direction: The direction vector of the ray (world space).
        epsilon: Determinant rejection threshold.

    Returns:
        A SceneHitRecord with world-space point and normal, or a miss record.
    """
    result = _make_miss_record()
    world_to_local = triangle_world_to_local[row]
    local_origin = apply_point(world_to_local, ray_origin)
    local_direction = apply_vector(world_to_local, ray_direction)

    rec = hit_smooth_triangle(local_origin, local_direction, load_triangle(row), epsilon)
    if rec.hit == 1:
        # t is preserved by affine maps, so the world point uses the world ray
        result = SceneHitRecord(
            hit=1,
            t=rec.t,
            point=ray_at(make_ray(ray_origin, ray_direction), rec.t),
            normal=triangle_world_normal(row, rec.u, rec.v),
            u=rec.u,
            v=rec.v,
            triangle_index=row,
            material_id=triangle_material_ids[row],
        )
    return result


@ti.func
def intersect_scene(
    ray_origin: vec3,
    ray_direction: vec3,
    t_min: ti.f32,
    t_max: ti.f32,
    epsilon: ti.f32,
) -> SceneHitRecord:
    """Test ray against all triangles in the scene.

    Tracks the closest hit with t_min < t < t_max.

    Args:
        ray_origin: The starting point of the ray.
        ray_direction: The direction vector of the ray.
        t_min: Minimum t value to consider a valid hit.
        t_max: Maximum t value to consider a valid hit.
        epsilon: Determinant rejection threshold.

    Returns:
        A SceneHitRecord containing the closest intersection, or a miss
        record if no intersection was found.
    """
    closest_t = t_max
    result = _make_miss_record()

    n_triangles = num_triangles[None]
    for i in range(n_triangles):
        rec = intersect_triangle(i, ray_origin, ray_direction, epsilon)
        if rec.hit == 1 and rec.t > t_min and rec.t < closest_t:
            closest_t = rec.t
            result = rec

    return result


@ti.func
def intersect_scene_any(
    ray_origin: vec3,
    ray_direction: vec3,
    t_min: ti.f32,
    t_max: ti.f32,
    epsilon: ti.f32,
) -> ti.i32:
    """Test if ray hits any triangle in the scene (shadow ray query).

    Args:
        ray_origin: The starting point of the ray.
        ray_direction: The direction vector of the ray.
        t_min: Minimum t value to consider a valid hit.
        t_max: Maximum t value to consider a valid hit.
        epsilon: Determinant rejection threshold.

    Returns:
        1 if any triangle was hit, 0 otherwise.
    """
    hit_any = 0

    n_triangles = num_triangles[None]
    for i in range(n_triangles):
        if hit_any == 0:
            rec = intersect_triangle(i, ray_origin, ray_direction, epsilon)
            if rec.hit == 1 and rec.t > t_min and rec.t < t_max:
                hit_any = 1

    return hit_any


# =============================================================================
# Kernels
# =============================================================================


@ti.kernel
def _probe_intersect_kernel(origin: vec3, direction: vec3, epsilon: ti.f32):
    rec = intersect_triangle(PROBE_ROW, origin, direction, epsilon)
    _probe_hit[None] = rec.hit
    _probe_t[None] = rec.t
    _probe_point[None] = rec.point
    _probe_normal[None] = rec.normal
    _probe_u[None] = rec.u
    _probe_v[None] = rec.v


@ti.kernel
def _probe_normal_kernel(u: ti.f32, v: ti.f32):
    _probe_normal[None] = triangle_world_normal(PROBE_ROW, u, v)


@ti.kernel
def _trace_rays_kernel(
    origins: ti.types.ndarray(dtype=ti.f32, ndim=2),
    directions: ti.types.ndarray(dtype=ti.f32, ndim=2),
    t_min: ti.f32,
    t_max: ti.f32,
    epsilon: ti.f32,
    out_hit: ti.types.ndarray(dtype=ti.i32, ndim=1),
    out_t: ti.types.ndarray(dtype=ti.f32, ndim=1),
    out_point: ti.types.ndarray(dtype=ti.f32, ndim=2),
    out_normal: ti.types.ndarray(dtype=ti.f32, ndim=2),
    out_u: ti.types.ndarray(dtype=ti.f32, ndim=1),
    out_v: ti.types.ndarray(dtype=ti.f32, ndim=1),
    out_triangle: ti.types.ndarray(dtype=ti.i32, ndim=1),
    out_material: ti.types.ndarray(dtype=ti.i32, ndim=1),
):
    # Outermost loop is parallelized; triangles are read-only here
    for i in range(origins.shape[0]):
        origin = vec3(origins[i, 0], origins[i, 1], origins[i, 2])
        direction = vec3(directions[i, 0], directions[i, 1], directions[i, 2])
        rec = intersect_scene(origin, direction, t_min, t_max, epsilon)
        out_hit[i] = rec.hit
        out_t[i] = rec.t
        out_u[i] = rec.u
        out_v[i] = rec.v
        out_triangle[i] = rec.triangle_index
        out_material[i] = rec.material_id
        for k in ti.static(range(3)):
            out_point[i, k] = rec.point[k]
            out_normal[i, k] = rec.normal[k]


def _read_vec3(f) -> tuple[float, float, float]:
    value = f[None]
    return (float(value[0]), float(value[1]), float(value[2]))


def _stage_probe(
    vertices: Sequence[Vector3],
    normals: Sequence[Vector3],
    edges: Sequence[Vector3],
    parent_inverses: Sequence[np.ndarray],
) -> None:
    _write_row(PROBE_ROW, vertices, normals, edges, parent_inverses, -1)
    # The probe answers in the caller's frame, ancestors only affect normals
    triangle_world_to_local[PROBE_ROW] = IDENTITY.tolist()


def probe_intersect(
    vertices: Sequence[Vector3],
    normals: Sequence[Vector3],
    edges: Sequence[Vector3],
    parent_inverses: Sequence[np.ndarray],
    ray_origin: Vector3,
    ray_direction: Vector3,
    epsilon: float = EPSILON_BUMP,
) -> ProbeHit | None:
    """Intersect one triangle that is not part of the scene.

    The ray is taken to be in the triangle's local frame; the normal is
    mapped through the given ancestor chain.

    Returns:
        A ProbeHit, or None on a miss.
    """
    _stage_probe(vertices, normals, edges, parent_inverses)
    _probe_intersect_kernel(vec3(*_as_list(ray_origin)), vec3(*_as_list(ray_direction)), epsilon)
    if _probe_hit[None] == 0:
        return None
    return ProbeHit(
        t=float(_probe_t[None]),
        point=_read_vec3(_probe_point),
        normal=_read_vec3(_probe_normal),
        u=float(_probe_u[None]),
        v=float(_probe_v[None]),
    )


def probe_normal(
    vertices: Sequence[Vector3],
    normals: Sequence[Vector3],
    edges: Sequence[Vector3],
    parent_inverses: Sequence[np.ndarray],
    u: float,
    v: float,
) -> tuple[float, float, float]:
    """World-space shading normal of one triangle at (u, v)."""
    _stage_probe(vertices, normals, edges, parent_inverses)
    _probe_normal_kernel(u, v)
    return _read_vec3(_probe_normal)


def trace_rays(
    origins: npt.ArrayLike,
    directions: npt.ArrayLike,
    t_min: float = T_MIN,
    t_max: float = T_MAX,
    epsilon: float = EPSILON_BUMP,
) -> TraceResult:
    """Intersect a batch of world-space rays with the scene in parallel.

    Args:
        origins: Array-like of shape (N, 3).
        directions: Array-like of shape (N, 3).
        t_min: Minimum t value to consider a valid hit.
        t_max: Maximum t value to consider a valid hit.
        epsilon: Determinant rejection threshold.

    Returns:
        A TraceResult with one entry per ray.

    Raises:
        ValueError: If the arrays are not (N, 3) or their lengths differ.
    """
    o = np.ascontiguousarray(origins, dtype=np.float32)
    d = np.ascontiguousarray(directions, dtype=np.float32)
    if o.ndim != 2 or o.shape[1] != 3 or d.shape != o.shape:
        raise ValueError(
            f"origins and directions must both be (N, 3), got {o.shape} and {d.shape}"
        )
    n = o.shape[0]
    result = TraceResult(
        hit=np.zeros(n, dtype=np.int32),
        t=np.zeros(n, dtype=np.float32),
        point=np.zeros((n, 3), dtype=np.float32),
        normal=np.zeros((n, 3), dtype=np.float32),
        u=np.zeros(n, dtype=np.float32),
        v=np.zeros(n, dtype=np.float32),
        triangle_index=np.full(n, -1, dtype=np.int32),
        material_id=np.full(n, -1, dtype=np.int32),
    )
    if n == 0:
        return result

    _trace_rays_kernel(
        o,
        d,
        t_min,
        t_max,
        epsilon,
        result.hit,
        result.t,
        result.point,
        result.normal,
        result.u,
        result.v,
        result.triangle_index,
        result.material_id,
    )
    return result
