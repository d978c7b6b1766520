"""Unit-version registry, constraint model and backtracking resolver.

All public names are re-exported here so callers can write
``from unitsolver.core.dependency import X``.

Formal Definition
-----------------
A resolution problem is a tuple (U, V, D, C, R) where:

- **U** = set of unit names
- **V**: U -> 2^Versions = registered versions per unit
- **D**: U x Version -> Seq(U) = ordered dependency names
- **C**: U x Version -> (U -> Constraint) = at most one constraint per dependency
- **R** = root unit names

A solution picks one version per unit reachable from R such that every
constraint declared by a picked unit-version holds for the picked version of
its target.
"""

from unitsolver.core.dependency.constraints import (
    EXACT_PREFIX,
    VersionConstraint,
    is_valid_version,
    parse_version,
    version_key,
)
from unitsolver.core.dependency.cost import (
    CostFunction,
    constant_cost,
    prefer_newest,
    prefer_newest_units,
    version_magnitude,
)
from unitsolver.core.dependency.registry import Registry
from unitsolver.core.dependency.resolver import (
    Resolution,
    ResolveOptions,
    Resolver,
)
from unitsolver.core.dependency.search import (
    EXTRA_ROOT,
    Conflict,
    ImposedConstraint,
)
from unitsolver.core.dependency.unit_version import UnitVersion

__all__ = [
    "EXACT_PREFIX",
    "EXTRA_ROOT",
    "Conflict",
    "CostFunction",
    "ImposedConstraint",
    "Registry",
    "Resolution",
    "ResolveOptions",
    "Resolver",
    "UnitVersion",
    "VersionConstraint",
    "constant_cost",
    "is_valid_version",
    "parse_version",
    "prefer_newest",
    "prefer_newest_units",
    "version_key",
    "version_magnitude",
]
