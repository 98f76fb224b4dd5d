"""Unified scene manager coordinating triangles and materials.

This module provides a high-level scene management API on top of the Taichi
triangle store. Objects are built on the host (triangles, groups); adding
them to the manager flattens every descendant triangle into the store along
with its ancestor chain, and assigns each distinct material a unified
material_id.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from src.python.core.matrix import scaling
    >>> from src.python.scene.group import Group
    >>> from src.python.scene.manager import SceneManager
    >>> from src.python.scene.objects import SmoothTriangleObject
    >>> group = Group(transform=scaling(2.0, 2.0, 2.0))
    >>> group.add_child(SmoothTriangleObject.default())
    >>> scene = SceneManager()
    >>> scene.add_object(group)
    [0]
    >>> result = scene.trace([[0.0, 1.0, -5.0]], [[0.0, 0.0, 1.0]])
"""

import logging
from dataclasses import dataclass

import numpy.typing as npt

from src.python.geometry.smooth_triangle import EPSILON_BUMP
from src.python.materials.material import Material
from src.python.scene.group import Group
from src.python.scene.intersection import (
    MAX_TRIANGLES,
    T_MAX,
    T_MIN,
    TraceResult,
    add_smooth_triangle,
    clear_scene,
    get_triangle_count,
    trace_rays,
)
from src.python.scene.objects import SceneObject, SmoothTriangleObject

logger = logging.getLogger(__name__)

# Maximum number of distinct materials
MAX_MATERIALS = 1024


@dataclass
class TriangleInfo:
    """Information about a triangle in the scene.

    Attributes:
        triangle_index: The row in the triangle storage fields.
        obj: The host-side triangle object.
        material_id: The material ID assigned to the triangle.
    """

    triangle_index: int
    obj: SmoothTriangleObject
    material_id: int


class SceneManager:
    """Unified scene manager coordinating triangles and materials.

    Attributes:
        materials: Registered materials; the list index is the material_id.
        triangles: TriangleInfo for all triangles in the scene.

    Example:
        >>> scene = SceneManager()
        >>> red = scene.add_material(Material(color=(0.8, 0.1, 0.1)))
        >>> scene.add_object(SmoothTriangleObject.default())
        [0]
    """

    def __init__(self) -> None:
        """Initialize an empty scene."""
        self.materials: list[Material] = []
        self.triangles: list[TriangleInfo] = []
        self._clear_all()

    def _clear_all(self) -> None:
        clear_scene()
        self.materials.clear()
        self.triangles.clear()

    def clear(self) -> None:
        """Clear the entire scene (triangles and materials)."""
        self._clear_all()

    # =========================================================================
    # Material Management
    # =========================================================================

    def add_material(self, material: Material) -> int:
        """Register a material, reusing the id of an equal one.

        Returns:
            The unified material ID for this material.

        Raises:
            RuntimeError: If the maximum number of materials is exceeded.
        """
        for material_id, existing in enumerate(self.materials):
            if existing == material:
                return material_id
        if len(self.materials) >= MAX_MATERIALS:
            raise RuntimeError(f"Maximum number of materials ({MAX_MATERIALS}) exceeded")
        self.materials.append(material)
        return len(self.materials) - 1

    def get_material(self, material_id: int) -> Material:
        """Look up a registered material.

        Raises:
            ValueError: If the material_id is invalid.
        """
        if material_id < 0 or material_id >= len(self.materials):
            raise ValueError(f"Invalid material_id: {material_id}")
        return self.materials[material_id]

    # =========================================================================
    # Object Management
    # =========================================================================

    def add_object(self, obj: SceneObject) -> list[int]:
        """Add a triangle or a whole group hierarchy to the scene.

        Each triangle is stored in its local frame with its ancestor chain
        and the material it shades with (see SceneObject.effective_material).

        Args:
            obj: A SmoothTriangleObject or Group.

        Returns:
            The triangle indices that were added, in traversal order.

        Raises:
            TypeError: If the object kind is not supported.
            RuntimeError: If the triangles or their materials do not fit.
                Nothing is added in that case.
        """
        if isinstance(obj, Group):
            triangles = list(obj.triangles())
        elif isinstance(obj, SmoothTriangleObject):
            triangles = [obj]
        else:
            raise TypeError(f"Unsupported scene object: {type(obj).__name__}")

        # All-or-nothing: check capacity before writing any row
        if get_triangle_count() + len(triangles) > MAX_TRIANGLES:
            raise RuntimeError(
                f"Adding {len(triangles)} triangle(s) would exceed the maximum "
                f"number of triangles ({MAX_TRIANGLES})"
            )
        new_materials: list[Material] = []
        for tri in triangles:
            material = tri.effective_material()
            if material not in self.materials and material not in new_materials:
                new_materials.append(material)
        if len(self.materials) + len(new_materials) > MAX_MATERIALS:
            raise RuntimeError(f"Maximum number of materials ({MAX_MATERIALS}) exceeded")

        indices = []
        for tri in triangles:
            material_id = self.add_material(tri.effective_material())
            idx = add_smooth_triangle(
                tri.p1,
                tri.p2,
                tri.p3,
                tri.n1,
                tri.n2,
                tri.n3,
                parent_inverses=tri.parent_inverses,
                material_id=material_id,
            )
            self.triangles.append(TriangleInfo(triangle_index=idx, obj=tri, material_id=material_id))
            indices.append(idx)

        logger.debug(
            "Added %d triangle(s), scene now holds %d of %d",
            len(indices),
            get_triangle_count(),
            MAX_TRIANGLES,
        )
        return indices

    def get_object(self, triangle_index: int) -> SmoothTriangleObject:
        """Host-side object stored at a triangle index.

        Raises:
            ValueError: If the index is invalid.
        """
        if triangle_index < 0 or triangle_index >= len(self.triangles):
            raise ValueError(f"Invalid triangle_index: {triangle_index}")
        return self.triangles[triangle_index].obj

    def get_triangle_count(self) -> int:
        """Get the number of triangles in the scene."""
        return get_triangle_count()

    # =========================================================================
    # Tracing
    # =========================================================================

    def trace(
        self,
        origins: npt.ArrayLike,
        directions: npt.ArrayLike,
        t_min: float = T_MIN,
        t_max: float = T_MAX,
        epsilon: float = EPSILON_BUMP,
    ) -> TraceResult:
        """Intersect a batch of world-space rays with the scene.

        Args:
            origins: Array-like of shape (N, 3).
            directions: Array-like of shape (N, 3).
            t_min: Minimum t value to consider a valid hit.
            t_max: Maximum t value to consider a valid hit.
            epsilon: Determinant rejection threshold.

        Returns:
            A TraceResult with one entry per ray.
        """
        return trace_rays(origins, directions, t_min=t_min, t_max=t_max, epsilon=epsilon)

    def __repr__(self) -> str:
        return (
            f"SceneManager(triangles={len(self.triangles)}, "
            f"materials={len(self.materials)})"
        )
