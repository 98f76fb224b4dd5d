"""4x4 transform matrices for placing geometry in a scene hierarchy.

Scene building happens on the host, so transforms are plain numpy arrays of
shape (4, 4) using column vectors (a point p maps to M @ [p, 1]). Inside
kernels the same matrices travel as ``tm.mat4`` and are applied to surface
normals with the inverse-transpose rule in ``transform_normal``.

Example:
    >>> from src.python.core.matrix import inverse, scaling, transform_point, translation
    >>> m = translation(0.0, 1.0, 0.0) @ scaling(2.0, 2.0, 2.0)
    >>> inv = inverse(m)
    >>> transform_point(inv, (0.0, 3.0, 0.0))
    (0.0, 1.0, 0.0)
"""

from collections.abc import Iterable, Sequence
from functools import reduce

import numpy as np
import numpy.typing as npt
import taichi as ti
import taichi.math as tm

# Type alias for 3D vectors using Taichi's math module
vec3 = tm.vec3
mat4 = tm.mat4

Matrix4 = npt.NDArray[np.float64]

IDENTITY: Matrix4 = np.identity(4, dtype=np.float64)
IDENTITY.flags.writeable = False


# =============================================================================
# Host-side Constructors
# =============================================================================


def identity() -> Matrix4:
    """Return a fresh, writable 4x4 identity matrix."""
    return np.identity(4, dtype=np.float64)


def as_matrix(value: Sequence[Sequence[float]] | Matrix4) -> Matrix4:
    """Convert a nested sequence to a float64 4x4 matrix.

    Raises:
        ValueError: If the value is not 4x4 or contains non-finite entries.
    """
    m = np.array(value, dtype=np.float64)
    if m.shape != (4, 4):
        raise ValueError(f"Transform must be a 4x4 matrix, got shape {m.shape}")
    if not np.all(np.isfinite(m)):
        raise ValueError("Transform contains non-finite entries")
    return m


def translation(x: float, y: float, z: float) -> Matrix4:
    """Build a translation matrix."""
    m = identity()
    m[:3, 3] = (x, y, z)
    return m


def scaling(x: float, y: float, z: float) -> Matrix4:
    """Build a (possibly non-uniform) scaling matrix."""
    return np.diag([x, y, z, 1.0]).astype(np.float64)


def rotation_x(radians: float) -> Matrix4:
    """Build a rotation about the x axis (right-handed)."""
    c, s = np.cos(radians), np.sin(radians)
    m = identity()
    m[1, 1], m[1, 2] = c, -s
    m[2, 1], m[2, 2] = s, c
    return m


def rotation_y(radians: float) -> Matrix4:
    """Build a rotation about the y axis (right-handed)."""
    c, s = np.cos(radians), np.sin(radians)
    m = identity()
    m[0, 0], m[0, 2] = c, s
    m[2, 0], m[2, 2] = -s, c
    return m


def rotation_z(radians: float) -> Matrix4:
    """Build a rotation about the z axis (right-handed)."""
    c, s = np.cos(radians), np.sin(radians)
    m = identity()
    m[0, 0], m[0, 1] = c, -s
    m[1, 0], m[1, 1] = s, c
    return m


def shearing(
    xy: float, xz: float, yx: float, yz: float, zx: float, zy: float
) -> Matrix4:
    """Build a shearing matrix.

    Each argument moves the first axis in proportion to the second, e.g.
    ``xy`` moves x in proportion to y.
    """
    m = identity()
    m[0, 1], m[0, 2] = xy, xz
    m[1, 0], m[1, 2] = yx, yz
    m[2, 0], m[2, 1] = zx, zy
    return m


def inverse(m: Matrix4) -> Matrix4:
    """Invert a 4x4 transform.

    Raises:
        ValueError: If the matrix is singular.
    """
    m = as_matrix(m)
    if abs(np.linalg.det(m)) < 1e-12:
        raise ValueError("Transform is not invertible")
    return np.linalg.inv(m)


def compose_chain(inverses: Iterable[Matrix4]) -> Matrix4:
    """Collapse a leaf-to-root chain of inverse transforms into one matrix.

    For ancestors stored as ``[inner, outer, ..., root]`` the result is
    ``inner @ outer @ ... @ root``, which maps a world-space point into the
    leaf's local frame.
    """
    return reduce(np.matmul, inverses, identity())


def transform_point(m: Matrix4, point: Sequence[float]) -> tuple[float, float, float]:
    """Apply a transform to a point (w = 1)."""
    x, y, z, _ = m @ np.array([point[0], point[1], point[2], 1.0])
    return (float(x), float(y), float(z))


def transform_vector(m: Matrix4, vector: Sequence[float]) -> tuple[float, float, float]:
    """Apply a transform to a direction (w = 0)."""
    x, y, z, _ = m @ np.array([vector[0], vector[1], vector[2], 0.0])
    return (float(x), float(y), float(z))


# =============================================================================
# Kernel-side Normal Transform
# =============================================================================


@ti.func
def transform_normal(inverse_matrix: mat4, normal: vec3) -> vec3:
    """Map a surface normal through one level of the transform hierarchy.

    Normals transform with the inverse-transpose of the object transform so
    they stay perpendicular to the surface under non-uniform scaling. The
    homogeneous component is dropped and the result renormalized.

    Args:
        inverse_matrix: The inverse of the transform being crossed.
        normal: The normal in the child's frame.

    Returns:
        The unit normal in the parent's frame.
    """
    n = inverse_matrix.transpose() @ tm.vec4(normal.x, normal.y, normal.z, 0.0)
    return tm.normalize(vec3(n.x, n.y, n.z))


@ti.func
def apply_point(m: mat4, point: vec3) -> vec3:
    """Apply a transform to a point inside a kernel (w = 1)."""
    p = m @ tm.vec4(point.x, point.y, point.z, 1.0)
    return vec3(p.x, p.y, p.z)


@ti.func
def apply_vector(m: mat4, vector: vec3) -> vec3:
    """Apply a transform to a direction inside a kernel (w = 0)."""
    d = m @ tm.vec4(vector.x, vector.y, vector.z, 0.0)
    return vec3(d.x, d.y, d.z)
