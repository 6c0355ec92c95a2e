# femcore/loads.py
"""
LOADS: Load Definitions, Load Cases and Load Combinations
=========================================================

A Load is an id, a load-type variant, the name of the load case it belongs
to and a multiplicative factor. The variants are:

    NodalForce      force/moment on one nodal DOF        (assembled)
    Distributed     line load along an element            (recognized only)
    Pressure        surface pressure on an element        (recognized only)
    Thermal         temperature change of an element      (recognized only)
    Gravity         body acceleration vector              (recognized only)
    Seismic         ground acceleration history           (recognized only)

Only nodal forces contribute to the load vector today. The other variants
are accepted, validated and reported as "not applied" in the log when a
load vector is assembled.

LOAD COMBINATIONS:
------------------
A LoadCombination maps load-case names to factors. Assembling under a
combination multiplies each load by its case factor and drops loads whose
case is not part of the combination:

    >>> combo = LoadCombination("1.2D+1.6L", {"D": 1.2, "L": 1.6})
    >>> combo.factor_for("L")
    1.6
"""

import math
from dataclasses import dataclass, field, replace
from typing import Dict, List, Optional, Sequence, Tuple, Union

from .errors import ValidationError
from .model import Dof


DEFAULT_LOAD_CASE = "default"


@dataclass(frozen=True)
class NodalForce:
    node_id: int
    dof: Dof
    magnitude: float


@dataclass(frozen=True)
class Distributed:
    element_id: int
    direction: Tuple[float, float, float]
    magnitude: float


@dataclass(frozen=True)
class Pressure:
    element_id: int
    magnitude: float


@dataclass(frozen=True)
class Thermal:
    element_id: int
    temperature_change: float


@dataclass(frozen=True)
class Gravity:
    acceleration: Tuple[float, float, float]


@dataclass(frozen=True)
class Seismic:
    acceleration_history: Tuple[float, ...]
    time_step: float


LoadType = Union[NodalForce, Distributed, Pressure, Thermal, Gravity, Seismic]


def _finite(*values: float) -> bool:
    return all(math.isfinite(v) for v in values)


@dataclass(frozen=True)
class Load:
    """
    A single load belonging to a named load case.

    Examples:
    ---------
    >>> Load.nodal_force(1, node_id=2, dof=Dof.UY, magnitude=-10e3)
    >>> Load.gravity(2, (0.0, 0.0, -9.81), load_case="D")
    """
    id: int
    load_type: LoadType
    load_case: str = DEFAULT_LOAD_CASE
    factor: float = 1.0

    # ------------------------------------------------------------------
    # Factories
    # ------------------------------------------------------------------

    @classmethod
    def nodal_force(cls, id: int, node_id: int, dof: Dof, magnitude: float,
                    load_case: str = DEFAULT_LOAD_CASE) -> "Load":
        return cls(id, NodalForce(node_id, Dof(dof), magnitude), load_case)

    @classmethod
    def distributed(cls, id: int, element_id: int, direction: Sequence[float],
                    magnitude: float, load_case: str = DEFAULT_LOAD_CASE) -> "Load":
        return cls(id, Distributed(element_id, tuple(direction), magnitude), load_case)

    @classmethod
    def pressure(cls, id: int, element_id: int, magnitude: float,
                 load_case: str = DEFAULT_LOAD_CASE) -> "Load":
        return cls(id, Pressure(element_id, magnitude), load_case)

    @classmethod
    def thermal(cls, id: int, element_id: int, temperature_change: float,
                load_case: str = DEFAULT_LOAD_CASE) -> "Load":
        return cls(id, Thermal(element_id, temperature_change), load_case)

    @classmethod
    def gravity(cls, id: int, acceleration: Sequence[float],
                load_case: str = DEFAULT_LOAD_CASE) -> "Load":
        return cls(id, Gravity(tuple(acceleration)), load_case)

    @classmethod
    def seismic(cls, id: int, acceleration_history: Sequence[float], time_step: float,
                load_case: str = DEFAULT_LOAD_CASE) -> "Load":
        return cls(id, Seismic(tuple(acceleration_history), time_step), load_case)

    def with_factor(self, factor: float) -> "Load":
        return replace(self, factor=factor)

    def factored(self, extra: float = 1.0) -> LoadType:
        """Return the load variant with factor (times `extra`) folded into its magnitudes."""
        f = self.factor * extra
        lt = self.load_type
        if isinstance(lt, NodalForce):
            return replace(lt, magnitude=lt.magnitude * f)
        if isinstance(lt, (Distributed, Pressure)):
            return replace(lt, magnitude=lt.magnitude * f)
        if isinstance(lt, Thermal):
            return replace(lt, temperature_change=lt.temperature_change * f)
        if isinstance(lt, Gravity):
            return replace(lt, acceleration=tuple(a * f for a in lt.acceleration))
        return replace(lt, acceleration_history=tuple(a * f for a in lt.acceleration_history))

    # ------------------------------------------------------------------
    # References / validation
    # ------------------------------------------------------------------

    @property
    def kind(self) -> str:
        return type(self.load_type).__name__

    def referenced_nodes(self) -> List[int]:
        if isinstance(self.load_type, NodalForce):
            return [self.load_type.node_id]
        return []

    def referenced_elements(self) -> List[int]:
        if isinstance(self.load_type, (Distributed, Pressure, Thermal)):
            return [self.load_type.element_id]
        return []

    def validate(self) -> None:
        if not _finite(self.factor):
            raise ValidationError(f"Load {self.id}: factor is not finite")

        lt = self.load_type
        if isinstance(lt, (NodalForce, Pressure)):
            ok = _finite(lt.magnitude)
        elif isinstance(lt, Distributed):
            if len(lt.direction) != 3:
                raise ValidationError(f"Load {self.id}: direction must have 3 components")
            ok = _finite(lt.magnitude, *lt.direction)
            if ok and all(abs(c) < 1e-12 for c in lt.direction):
                raise ValidationError(f"Load {self.id}: direction vector is zero")
        elif isinstance(lt, Thermal):
            ok = _finite(lt.temperature_change)
        elif isinstance(lt, Gravity):
            if len(lt.acceleration) != 3:
                raise ValidationError(f"Load {self.id}: acceleration must have 3 components")
            ok = _finite(*lt.acceleration)
        elif isinstance(lt, Seismic):
            if not lt.acceleration_history:
                raise ValidationError(f"Load {self.id}: acceleration history is empty")
            if not (_finite(lt.time_step) and lt.time_step > 0):
                raise ValidationError(f"Load {self.id}: time step must be positive")
            ok = _finite(*lt.acceleration_history)
        else:
            raise ValidationError(f"Load {self.id}: unknown load type {type(lt).__name__}")

        if not ok:
            raise ValidationError(f"Load {self.id} ({self.kind}) has non-finite values")


@dataclass
class LoadCase:
    """
    A named group of loads that can be switched on and off. Registered on a
    Model with `add_load_case`; while inactive, every load named by the case
    (through `Load.load_case` or `load_ids`) is left out of the load vector.
    """
    name: str
    description: str = ""
    load_ids: List[int] = field(default_factory=list)
    active: bool = True

    def add_load(self, load_id: int) -> None:
        if load_id not in self.load_ids:
            self.load_ids.append(load_id)

    def remove_load(self, load_id: int) -> None:
        if load_id in self.load_ids:
            self.load_ids.remove(load_id)

    def activate(self) -> None:
        self.active = True

    def deactivate(self) -> None:
        self.active = False


@dataclass
class LoadCombination:
    """Load-case name → factor."""
    name: str
    factors: Dict[str, float] = field(default_factory=dict)

    def add_case(self, case: str, factor: float) -> "LoadCombination":
        if not math.isfinite(factor):
            raise ValidationError(f"Combination {self.name}: factor for {case} is not finite")
        self.factors[case] = factor
        return self

    def remove_case(self, case: str) -> None:
        self.factors.pop(case, None)

    def factor_for(self, case: str) -> Optional[float]:
        """Factor for a load case, or None when the case is not part of the combination."""
        return self.factors.get(case)

    @classmethod
    def lrfd(cls) -> List["LoadCombination"]:
        """Basic strength combinations (D = dead, L = live, W = wind)."""
        return [
            cls("1.4D", {"D": 1.4}),
            cls("1.2D+1.6L", {"D": 1.2, "L": 1.6}),
            cls("1.2D+1.0W+1.0L", {"D": 1.2, "W": 1.0, "L": 1.0}),
            cls("0.9D+1.0W", {"D": 0.9, "W": 1.0}),
        ]

    @classmethod
    def asd(cls) -> List["LoadCombination"]:
        """Basic allowable-stress combinations."""
        return [
            cls("D", {"D": 1.0}),
            cls("D+L", {"D": 1.0, "L": 1.0}),
            cls("D+0.6W", {"D": 1.0, "W": 0.6}),
            cls("0.6D+0.6W", {"D": 0.6, "W": 0.6}),
        ]
