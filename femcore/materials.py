# femcore/materials.py
"""
Material definitions: properties, presets and elastic constitutive matrices.

Only linear-elastic materials are used by the element library. The other
families can be stored on a model but an element formulation refuses them.
"""

import math
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Optional

import numpy as np

from .errors import InvalidMaterialError


class MaterialType(Enum):
    LINEAR_ELASTIC = "linear_elastic"
    PLASTIC = "plastic"
    VISCOELASTIC = "viscoelastic"
    COMPOSITE = "composite"
    NONLINEAR_ELASTIC = "nonlinear_elastic"


class ConstitutiveKind(Enum):
    PLANE_STRESS = "plane_stress"
    PLANE_STRAIN = "plane_strain"
    THREE_D = "3d"
    AXISYMMETRIC = "axisymmetric"


@dataclass(frozen=True)
class MaterialProperties:
    """
    Mechanical properties (SI units). All optional; which ones are
    required depends on the analysis:

        static   -> young_modulus (+ poisson_ratio for 3D frames)
        modal    -> density as well
    """
    young_modulus: Optional[float] = None     # Pa
    poisson_ratio: Optional[float] = None
    density: Optional[float] = None           # kg/m³
    yield_strength: Optional[float] = None    # Pa
    ultimate_strength: Optional[float] = None # Pa
    thermal_expansion: Optional[float] = None # 1/K
    damping_ratio: Optional[float] = None


@dataclass(frozen=True)
class Material:
    """
    A named material.

    Examples:
    ---------
    >>> steel = Material.steel(1)
    >>> steel.shear_modulus
    76923076923.07692
    >>> Material.linear_elastic(2, "timber", 11e9, 0.3, 500.0)
    """
    id: int
    name: str
    material_type: MaterialType = MaterialType.LINEAR_ELASTIC
    properties: MaterialProperties = field(default_factory=MaterialProperties)

    # ------------------------------------------------------------------
    # Factories
    # ------------------------------------------------------------------

    @classmethod
    def linear_elastic(cls, id: int, name: str, young_modulus: float,
                       poisson_ratio: float, density: Optional[float] = None) -> "Material":
        return cls(
            id=id,
            name=name,
            material_type=MaterialType.LINEAR_ELASTIC,
            properties=MaterialProperties(
                young_modulus=young_modulus,
                poisson_ratio=poisson_ratio,
                density=density,
            ),
        )

    @classmethod
    def steel(cls, id: int, name: str = "Steel") -> "Material":
        return cls(
            id=id,
            name=name,
            properties=MaterialProperties(
                young_modulus=200e9,
                poisson_ratio=0.3,
                density=7850.0,
                yield_strength=250e6,
                ultimate_strength=400e6,
                thermal_expansion=12e-6,
            ),
        )

    @classmethod
    def aluminum(cls, id: int, name: str = "Aluminum") -> "Material":
        return cls(
            id=id,
            name=name,
            properties=MaterialProperties(
                young_modulus=70e9,
                poisson_ratio=0.33,
                density=2700.0,
                yield_strength=270e6,
                ultimate_strength=310e6,
                thermal_expansion=23e-6,
            ),
        )

    @classmethod
    def concrete(cls, id: int, compressive_strength: float, name: str = "Concrete") -> "Material":
        """
        Normal-weight concrete. compressive_strength (f'c) is in Pa; the
        modulus follows E = 4700·sqrt(f'c[MPa]) MPa.
        """
        fc_mpa = compressive_strength / 1e6
        return cls(
            id=id,
            name=name,
            properties=MaterialProperties(
                young_modulus=4700.0 * math.sqrt(fc_mpa) * 1e6,
                poisson_ratio=0.2,
                density=2400.0,
                ultimate_strength=compressive_strength,
                thermal_expansion=10e-6,
            ),
        )

    def with_yield_strength(self, value: float) -> "Material":
        return replace(self, properties=replace(self.properties, yield_strength=value))

    def with_ultimate_strength(self, value: float) -> "Material":
        return replace(self, properties=replace(self.properties, ultimate_strength=value))

    def with_thermal_expansion(self, value: float) -> "Material":
        return replace(self, properties=replace(self.properties, thermal_expansion=value))

    def with_damping_ratio(self, value: float) -> "Material":
        return replace(self, properties=replace(self.properties, damping_ratio=value))

    def with_density(self, value: float) -> "Material":
        return replace(self, properties=replace(self.properties, density=value))

    # ------------------------------------------------------------------
    # Derived constants
    # ------------------------------------------------------------------

    def require(self, name: str) -> float:
        """Return a property or raise InvalidMaterialError naming it."""
        value = getattr(self.properties, name)
        if value is None:
            raise InvalidMaterialError(
                f"Material {self.id} ({self.name}) has no {name}", property_name=name
            )
        return value

    @property
    def is_linear_elastic(self) -> bool:
        return self.material_type is MaterialType.LINEAR_ELASTIC

    @property
    def shear_modulus(self) -> float:
        E, nu = self.require("young_modulus"), self.require("poisson_ratio")
        return E / (2.0 * (1.0 + nu))

    @property
    def bulk_modulus(self) -> float:
        E, nu = self.require("young_modulus"), self.require("poisson_ratio")
        return E / (3.0 * (1.0 - 2.0 * nu))

    @property
    def lame_lambda(self) -> float:
        E, nu = self.require("young_modulus"), self.require("poisson_ratio")
        return E * nu / ((1.0 + nu) * (1.0 - 2.0 * nu))

    @property
    def lame_mu(self) -> float:
        return self.shear_modulus

    def constitutive_matrix(self, kind: ConstitutiveKind) -> np.ndarray:
        """
        Linear-elastic stress-strain matrix D (σ = D·ε, engineering shear strains).

        Shapes: plane stress / plane strain 3×3, axisymmetric 4×4, 3D 6×6.
        """
        E, nu = self.require("young_modulus"), self.require("poisson_ratio")

        if kind is ConstitutiveKind.PLANE_STRESS:
            c = E / (1.0 - nu**2)
            return c * np.array([
                [1.0, nu, 0.0],
                [nu, 1.0, 0.0],
                [0.0, 0.0, (1.0 - nu) / 2.0],
            ])

        c = E / ((1.0 + nu) * (1.0 - 2.0 * nu))
        if kind is ConstitutiveKind.PLANE_STRAIN:
            return c * np.array([
                [1.0 - nu, nu, 0.0],
                [nu, 1.0 - nu, 0.0],
                [0.0, 0.0, (1.0 - 2.0 * nu) / 2.0],
            ])
        if kind is ConstitutiveKind.AXISYMMETRIC:
            return c * np.array([
                [1.0 - nu, nu, nu, 0.0],
                [nu, 1.0 - nu, nu, 0.0],
                [nu, nu, 1.0 - nu, 0.0],
                [0.0, 0.0, 0.0, (1.0 - 2.0 * nu) / 2.0],
            ])

        lam, mu = self.lame_lambda, self.lame_mu
        D = np.zeros((6, 6))
        D[:3, :3] = lam
        D[np.arange(3), np.arange(3)] = lam + 2.0 * mu
        D[np.arange(3, 6), np.arange(3, 6)] = mu
        return D

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def validate(self) -> None:
        p = self.properties
        if self.is_linear_elastic:
            self.require("young_modulus")
            self.require("poisson_ratio")

        for name in ("young_modulus", "poisson_ratio", "density", "yield_strength",
                     "ultimate_strength", "thermal_expansion", "damping_ratio"):
            value = getattr(p, name)
            if value is not None and not math.isfinite(value):
                raise InvalidMaterialError(
                    f"Material {self.id}: {name} is not finite ({value})", property_name=name
                )

        if p.young_modulus is not None and p.young_modulus <= 0:
            raise InvalidMaterialError(
                f"Material {self.id}: Young's modulus must be positive, got {p.young_modulus}",
                property_name="young_modulus",
            )
        if p.poisson_ratio is not None and not (-1.0 < p.poisson_ratio < 0.5):
            raise InvalidMaterialError(
                f"Material {self.id}: Poisson's ratio must be in (-1, 0.5), got {p.poisson_ratio}",
                property_name="poisson_ratio",
            )
        if p.density is not None and p.density <= 0:
            raise InvalidMaterialError(
                f"Material {self.id}: density must be positive, got {p.density}",
                property_name="density",
            )
        if p.damping_ratio is not None and p.damping_ratio < 0:
            raise InvalidMaterialError(
                f"Material {self.id}: damping ratio must be non-negative",
                property_name="damping_ratio",
            )
