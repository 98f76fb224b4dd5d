"""Groups: transformed collections of scene objects.

A Group owns a list of member objects and a transform that places them in
the group's parent frame. Members record the group's inverse transform when
they are attached, so the shading normal of a deeply nested triangle can be
mapped to world space without walking the hierarchy.

Ancestor chains are kept leaf-to-root. Attaching a member to a group that is
already nested appends the group's inverse followed by the group's own
ancestors; nesting a populated group appends the new ancestors to every
descendant. Either build order yields the same chain.

Example:
    >>> from src.python.core.matrix import scaling, rotation_y
    >>> outer = Group(transform=rotation_y(0.5))
    >>> inner = Group(transform=scaling(1.0, 2.0, 1.0))
    >>> tri = SmoothTriangleObject.default()
    >>> inner.add_child(tri)
    >>> outer.add_child(inner)
    >>> len(tri.parent_inverses)
    2
"""

from __future__ import annotations

from collections.abc import Iterator, Sequence
from typing import cast

from src.python.core.matrix import (
    Matrix4,
    as_matrix,
    identity,
    inverse,
    transform_point,
    transform_vector,
)
from src.python.geometry.smooth_triangle import EPSILON_BUMP
from src.python.materials.material import Material
from src.python.scene.objects import (
    Intersection,
    ObjectKind,
    SceneObject,
    SmoothTriangleObject,
    Vector3,
)


class Group(SceneObject):
    """A transformed collection of scene objects.

    Attributes:
        objects: The member objects, in attachment order.
        material: Material handed down to direct members.
    """

    kind = ObjectKind.GROUP

    def __init__(
        self,
        transform: Sequence[Sequence[float]] | Matrix4 | None = None,
        material: Material | None = None,
    ) -> None:
        """Create an empty group.

        Args:
            transform: A 4x4 transform from the group's frame to its parent's.
                Defaults to identity.
            material: Material inherited by members. Defaults to Material().

        Raises:
            ValueError: If the transform is not 4x4 or not invertible.
        """
        super().__init__(material)
        self._transform = as_matrix(transform) if transform is not None else identity()
        self._inverse = inverse(self._transform)
        self._transform.flags.writeable = False
        self._inverse.flags.writeable = False
        self.objects: list[SceneObject] = []

    @property
    def transform(self) -> Matrix4:
        return self._transform

    @property
    def inverse_transform(self) -> Matrix4:
        return self._inverse

    def add_child(self, obj: SceneObject) -> None:
        """Attach an object to this group.

        Raises:
            AttachmentError: If the object is already attached elsewhere.
        """
        obj.add_to_group(self)

    def push_parent_inverse(self, inverse_matrix: Matrix4) -> None:
        """Append an ancestor inverse to this group and all its descendants."""
        super().push_parent_inverse(inverse_matrix)
        for obj in self.objects:
            obj.push_parent_inverse(inverse_matrix)

    def contains(self, obj: SceneObject) -> bool:
        """Whether obj is a member of this group or of a nested group."""
        return any(member is obj or member.contains(obj) for member in self.objects)

    def triangles(self) -> Iterator[SmoothTriangleObject]:
        """Yield every descendant triangle, depth-first in attachment order."""
        for obj in self.objects:
            if isinstance(obj, Group):
                yield from obj.triangles()
            elif isinstance(obj, SmoothTriangleObject):
                yield obj

    def intersect(
        self,
        ray_origin: Sequence[float],
        ray_direction: Sequence[float],
        epsilon: float = EPSILON_BUMP,
    ) -> list[Intersection]:
        """Intersect a ray given in the group's parent frame.

        The ray is moved into the group's frame before the members are
        tested. Returned points are expressed in the incoming frame and the
        hits are sorted by t.
        """
        local_origin = transform_point(self._inverse, ray_origin)
        local_direction = transform_vector(self._inverse, ray_direction)

        hits: list[Intersection] = []
        for obj in self.objects:
            for hit in obj.intersect(local_origin, local_direction, epsilon):
                point = (
                    float(ray_origin[0]) + hit.t * float(ray_direction[0]),
                    float(ray_origin[1]) + hit.t * float(ray_direction[1]),
                    float(ray_origin[2]) + hit.t * float(ray_direction[2]),
                )
                hits.append(
                    Intersection(
                        t=hit.t,
                        point=point,
                        normal=hit.normal,
                        object=hit.object,
                        u=hit.u,
                        v=hit.v,
                    )
                )
        hits.sort(key=lambda h: h.t)
        return hits

    def normal(
        self,
        point: Sequence[float],
        u: float | None = None,
        v: float | None = None,
    ) -> Vector3:
        raise TypeError("Groups have no surface; ask the intersected member instead")

    def _same_fields(self, other: SceneObject) -> bool:
        other = cast(Group, other)
        return (
            bool((self._transform == other._transform).all())
            and len(self.objects) == len(other.objects)
            and all(a == b for a, b in zip(self.objects, other.objects))
        )

    def __len__(self) -> int:
        return len(self.objects)

    def __repr__(self) -> str:
        return f"Group(members={len(self.objects)}, attached={self.is_attached})"
