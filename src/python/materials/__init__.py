"""Materials module.

Components:
    material: Immutable Phong material carried by scene objects and
        inherited from enclosing groups
"""

from .material import Material

__all__ = ["Material"]
