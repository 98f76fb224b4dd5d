"""Surface material value type.

Shading is performed outside this package; a Material here is an immutable
bundle of Phong parameters that geometry carries and groups hand down to
their members. Because instances are frozen, "copying" a material on
inheritance is simply sharing the value.

Example:
    >>> from src.python.materials.material import Material
    >>> glass = Material(transparency=1.0, refractive_index=1.5)
    >>> red = Material(color=(0.8, 0.1, 0.1))
    >>> red == Material(color=(0.8, 0.1, 0.1))
    True
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class Material:
    """Phong surface parameters.

    Attributes:
        color: Surface color as (R, G, B), each component in [0, 1].
        ambient: Ambient reflection coefficient in [0, 1].
        diffuse: Diffuse reflection coefficient in [0, 1].
        specular: Specular reflection coefficient in [0, 1].
        shininess: Specular exponent, must be positive.
        reflective: Mirror reflectance in [0, 1].
        transparency: Transmittance in [0, 1].
        refractive_index: Index of refraction, must be >= 1.0.
            Common values: Air=1.0, Water=1.33, Glass=1.5, Diamond=2.4
    """

    color: tuple[float, float, float] = (1.0, 1.0, 1.0)
    ambient: float = 0.1
    diffuse: float = 0.9
    specular: float = 0.9
    shininess: float = 200.0
    reflective: float = 0.0
    transparency: float = 0.0
    refractive_index: float = 1.0

    def __post_init__(self) -> None:
        """Validate parameter ranges.

        Raises:
            ValueError: If any parameter is outside its valid range.
        """
        if len(self.color) != 3:
            raise ValueError(f"Color must have 3 components, got {len(self.color)}")
        for i, component in enumerate(self.color):
            if component < 0.0 or component > 1.0:
                raise ValueError(
                    f"Color component {i} = {component} is outside [0, 1]."
                )
        # Normalize to a tuple of floats so equal materials compare equal
        object.__setattr__(self, "color", tuple(float(c) for c in self.color))

        for name in ("ambient", "diffuse", "specular", "reflective", "transparency"):
            value = getattr(self, name)
            if value < 0.0 or value > 1.0:
                raise ValueError(f"{name.capitalize()} = {value} is outside [0, 1].")
        if self.shininess <= 0.0:
            raise ValueError(f"Shininess = {self.shininess} must be positive.")
        if self.refractive_index < 1.0:
            raise ValueError(
                f"Refractive index = {self.refractive_index} must be >= 1.0."
            )
