"""Core building blocks for ray intersection.

Components:
    ray: Ray data structure and vector utilities
    matrix: 4x4 transforms on the host and the normal transform in kernels

All kernel-side helpers are Taichi functions (@ti.func).
"""

from .matrix import (
    IDENTITY,
    Matrix4,
    apply_point,
    apply_vector,
    as_matrix,
    compose_chain,
    identity,
    inverse,
    rotation_x,
    rotation_y,
    rotation_z,
    scaling,
    shearing,
    transform_normal,
    transform_point,
    transform_vector,
    translation,
)
from .ray import (
    Ray,
    cross,
    dot,
    make_ray,
    normalize,
    ray_at,
    vec3,
)

__all__ = [
    "Ray",
    "ray_at",
    "make_ray",
    "vec3",
    "normalize",
    "dot",
    "cross",
    # Transforms
    "IDENTITY",
    "Matrix4",
    "identity",
    "as_matrix",
    "translation",
    "scaling",
    "rotation_x",
    "rotation_y",
    "rotation_z",
    "shearing",
    "inverse",
    "compose_chain",
    "transform_point",
    "transform_vector",
    "transform_normal",
    "apply_point",
    "apply_vector",
]
