"""Smooth triangle ray intersection core built on Taichi.

This package provides the ray/triangle primitive of a ray tracer's object
model, with support for:
- Möller–Trumbore intersection with barycentric coordinates
- Smooth (interpolated) shading normals
- Transform and material inheritance through nested groups
- Parallel batch tracing of numpy ray arrays

Subpackages:
    core: Ray structure, vector helpers and 4x4 transforms
    geometry: The smooth triangle primitive and its intersection routine
    materials: Surface material value type
    scene: Scene objects, groups, triangle storage and the scene manager
"""

__version__ = "0.1.0"
