"""Host-side scene objects and the capability interface shared by them.

Every primitive the renderer knows about is a SceneObject. The interface
gives the renderer a uniform way to ask for materials, transforms,
intersections and normals, and to place objects into groups. Each concrete
class carries an ObjectKind tag; equality compares the tag first and then
the fields, so comparing a triangle with a group is simply False.

Attachment to a group is a one-shot transition. An object records the
group's inverse transform (followed by the group's own ancestors) and the
group's material, then becomes a member of the group. Attaching the same
object again raises AttachmentError.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from src.python.scene.objects import SmoothTriangleObject
    >>> tri = SmoothTriangleObject.default()
    >>> [hit] = tri.intersect((0.0, 0.5, -2.0), (0.0, 0.0, 1.0))
    >>> round(hit.t, 3), round(hit.u, 3), round(hit.v, 3)
    (2.0, 0.25, 0.25)
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Sequence
from dataclasses import dataclass
from enum import IntEnum
from typing import TYPE_CHECKING, cast

import numpy as np

from src.python.core.matrix import IDENTITY, Matrix4, as_matrix
from src.python.geometry.smooth_triangle import EPSILON_BUMP
from src.python.materials.material import Material
from src.python.scene.intersection import probe_intersect, probe_normal

if TYPE_CHECKING:
    from src.python.scene.group import Group

logger = logging.getLogger(__name__)

Vector3 = tuple[float, float, float]


class ObjectKind(IntEnum):
    """Tag identifying the concrete kind of a SceneObject."""

    SMOOTH_TRIANGLE = 0
    GROUP = 1


class AttachmentError(RuntimeError):
    """Raised when an object that already belongs to a group is attached again."""


@dataclass(frozen=True)
class Intersection:
    """A single ray-object intersection.

    Attributes:
        t: Distance along the ray in units of the direction length.
        point: The hit point, in the frame of the ray that was traced.
        normal: The unit shading normal in world space.
        object: The object that was hit.
        u: Barycentric weight of the triangle's second vertex.
        v: Barycentric weight of the triangle's third vertex.
    """

    t: float
    point: Vector3
    normal: Vector3
    object: SceneObject
    u: float
    v: float


def _vec3(value: Sequence[float]) -> Vector3:
    if len(value) != 3:
        raise ValueError(f"Expected a 3-component vector, got {len(value)} components")
    return (float(value[0]), float(value[1]), float(value[2]))


def _sub(a: Vector3, b: Vector3) -> Vector3:
    return (a[0] - b[0], a[1] - b[1], a[2] - b[2])


def _chains_equal(a: Sequence[Matrix4], b: Sequence[Matrix4]) -> bool:
    return len(a) == len(b) and all(np.array_equal(x, y) for x, y in zip(a, b))


class SceneObject(ABC):
    """Capability interface implemented by every primitive kind.

    Attributes:
        kind: The ObjectKind tag of the concrete class.
        material: The object's own material.
    """

    kind: ObjectKind

    def __init__(self, material: Material | None = None) -> None:
        self.material = material if material is not None else Material()
        self._parent_inverses: list[Matrix4] = []
        self._parent_material: Material | None = None
        self._attached = False

    # =========================================================================
    # Transforms and Materials
    # =========================================================================

    @property
    @abstractmethod
    def inverse_transform(self) -> Matrix4:
        """The object's own inverse transform."""

    @property
    def parent_inverses(self) -> tuple[Matrix4, ...]:
        """Inverse transforms of all ancestor groups, leaf-to-root."""
        return tuple(self._parent_inverses)

    def push_parent_inverse(self, inverse: Matrix4) -> None:
        """Append one ancestor inverse transform to the chain."""
        m = as_matrix(inverse)
        m.flags.writeable = False
        self._parent_inverses.append(m)

    @property
    def parent_material(self) -> Material | None:
        """Material of the immediate enclosing group, None when standalone."""
        return self._parent_material

    def set_parent_material(self, material: Material) -> None:
        self._parent_material = material

    def effective_material(self) -> Material:
        """The material used for shading: the group's when set, else our own."""
        if self._parent_material is not None:
            return self._parent_material
        return self.material

    # =========================================================================
    # Group Attachment
    # =========================================================================

    @property
    def is_attached(self) -> bool:
        """Whether this object has been placed into a group."""
        return self._attached

    def contains(self, obj: SceneObject) -> bool:
        """Whether obj is a descendant of this object. Leaves have none."""
        return False

    def add_to_group(self, group: Group) -> None:
        """Attach this object to a group.

        Records the group's inverse transform followed by the group's own
        ancestor chain, inherits the group's material and appends this object
        to the group's members.

        Args:
            group: The enclosing group.

        Raises:
            AttachmentError: If this object is already attached.
            ValueError: If the group is this object or one of its descendants.
        """
        if self._attached:
            raise AttachmentError(f"{type(self).__name__} is already attached to a group")
        if group is self or self.contains(group):
            raise ValueError("A group cannot contain itself")
        self.push_parent_inverse(group.inverse_transform)
        for inverse in group.parent_inverses:
            self.push_parent_inverse(inverse)
        self.set_parent_material(group.material)
        group.objects.append(self)
        self._attached = True
        logger.debug(
            "Attached %s to group (depth %d)", type(self).__name__, len(self._parent_inverses)
        )

    # =========================================================================
    # Queries
    # =========================================================================

    @abstractmethod
    def intersect(
        self,
        ray_origin: Sequence[float],
        ray_direction: Sequence[float],
        epsilon: float = EPSILON_BUMP,
    ) -> list[Intersection]:
        """Intersect a ray given in this object's parent frame."""

    @abstractmethod
    def normal(
        self,
        point: Sequence[float],
        u: float | None = None,
        v: float | None = None,
    ) -> Vector3:
        """World-space surface normal at a point."""

    @abstractmethod
    def _same_fields(self, other: SceneObject) -> bool:
        """Field comparison against an object of the same kind."""

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, SceneObject) or other.kind != self.kind:
            return False
        return (
            self.material == other.material
            and self._parent_material == other._parent_material
            and _chains_equal(self._parent_inverses, other._parent_inverses)
            and self._same_fields(other)
        )

    __hash__ = None  # type: ignore[assignment]


class SmoothTriangleObject(SceneObject):
    """A triangle with per-vertex normals, as seen by the renderer.

    Geometry is fixed at construction; the vertex, normal and edge
    attributes are read-only.

    Attributes:
        p1, p2, p3: Vertex positions (local frame).
        n1, n2, n3: Per-vertex shading normals.
        e1: Edge vector p2 - p1.
        e2: Edge vector p3 - p1.

    Example:
        >>> tri = SmoothTriangleObject(
        ...     (0, 1, 0), (-1, 0, 0), (1, 0, 0),
        ...     (0, 1, 0), (-1, 0, 0), (1, 0, 0),
        ... )
        >>> tri.e1, tri.e2
        ((-1.0, -1.0, 0.0), (1.0, -1.0, 0.0))
    """

    kind = ObjectKind.SMOOTH_TRIANGLE

    def __init__(
        self,
        p1: Sequence[float],
        p2: Sequence[float],
        p3: Sequence[float],
        n1: Sequence[float],
        n2: Sequence[float],
        n3: Sequence[float],
        material: Material | None = None,
    ) -> None:
        super().__init__(material)
        self._p1, self._p2, self._p3 = _vec3(p1), _vec3(p2), _vec3(p3)
        self._n1, self._n2, self._n3 = _vec3(n1), _vec3(n2), _vec3(n3)
        self._e1 = _sub(self._p2, self._p1)
        self._e2 = _sub(self._p3, self._p1)

    @classmethod
    def default(cls) -> SmoothTriangleObject:
        """An upward-pointing triangle in the z = 0 plane, for testing."""
        return cls(
            (0.0, 1.0, 0.0),
            (-1.0, 0.0, 0.0),
            (1.0, 0.0, 0.0),
            (0.0, 1.0, 0.0),
            (-1.0, 0.0, 0.0),
            (1.0, 0.0, 0.0),
        )

    @property
    def p1(self) -> Vector3:
        return self._p1

    @property
    def p2(self) -> Vector3:
        return self._p2

    @property
    def p3(self) -> Vector3:
        return self._p3

    @property
    def n1(self) -> Vector3:
        return self._n1

    @property
    def n2(self) -> Vector3:
        return self._n2

    @property
    def n3(self) -> Vector3:
        return self._n3

    @property
    def e1(self) -> Vector3:
        return self._e1

    @property
    def e2(self) -> Vector3:
        return self._e2

    @property
    def vertices(self) -> tuple[Vector3, Vector3, Vector3]:
        return (self._p1, self._p2, self._p3)

    @property
    def normals(self) -> tuple[Vector3, Vector3, Vector3]:
        return (self._n1, self._n2, self._n3)

    @property
    def inverse_transform(self) -> Matrix4:
        # A triangle has no transform of its own; ancestors carry it
        return IDENTITY

    def intersect(
        self,
        ray_origin: Sequence[float],
        ray_direction: Sequence[float],
        epsilon: float = EPSILON_BUMP,
    ) -> list[Intersection]:
        """Intersect a ray given in the triangle's local frame.

        Args:
            ray_origin: The starting point of the ray.
            ray_direction: The direction vector of the ray.
            epsilon: Determinant rejection threshold.

        Returns:
            An empty list on a miss, otherwise a single Intersection whose
            normal has been mapped to world space. Hits behind the origin
            (t < 0) are included.
        """
        hit = probe_intersect(
            self.vertices,
            self.normals,
            (self._e1, self._e2),
            self._parent_inverses,
            ray_origin,
            ray_direction,
            epsilon,
        )
        if hit is None:
            return []
        return [Intersection(t=hit.t, point=hit.point, normal=hit.normal, object=self, u=hit.u, v=hit.v)]

    def normal(
        self,
        point: Sequence[float],
        u: float | None = None,
        v: float | None = None,
    ) -> Vector3:
        """Interpolated shading normal at barycentric coordinates (u, v).

        The point itself does not influence the result; the barycentric
        coordinates from the intersection determine it.

        Raises:
            ValueError: If u or v is missing.
        """
        if u is None or v is None:
            raise ValueError("Smooth triangle normals require barycentric coordinates u and v")
        return probe_normal(
            self.vertices,
            self.normals,
            (self._e1, self._e2),
            self._parent_inverses,
            float(u),
            float(v),
        )

    def _same_fields(self, other: SceneObject) -> bool:
        other = cast(SmoothTriangleObject, other)
        return self.vertices == other.vertices and self.normals == other.normals

    def __repr__(self) -> str:
        return (
            f"SmoothTriangleObject(p1={self._p1}, p2={self._p2}, p3={self._p3}, "
            f"attached={self._attached})"
        )
