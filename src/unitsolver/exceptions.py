"""unitsolver exception hierarchy.

All public exceptions inherit from UnitSolverError, giving callers a single
base class to catch when they want to handle any unitsolver-specific failure
without swallowing unrelated errors.

Population-time errors (bad versions, malformed constraints, duplicates) are
raised while the registry is being built. Resolution-time errors derive from
``ResolutionError`` and are raised by ``Resolver.resolve()``.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Iterable

if TYPE_CHECKING:  # pragma: no cover
    from unitsolver.core.dependency.search import Conflict


class UnitSolverError(Exception):
    """Base exception for all unitsolver errors."""


class InvalidVersionError(UnitSolverError, ValueError):
    """Raised when a version string is not a valid semantic version."""


class MalformedConstraintError(UnitSolverError, ValueError):
    """Raised when a constraint expression cannot be parsed.

    Valid expressions are either an exact pin (``=1.2.3``) or a bare
    compatible-range version (``1.2.3``). Raised when the constraint is
    requested from the registry, never deferred to resolution.
    """


class DuplicateVersionError(UnitSolverError):
    """Raised when the same (unit name, version) is registered twice."""


class ConstraintTargetError(UnitSolverError):
    """Raised when a constraint does not fit the unit-version it is added to.

    Covers constraints on units that are not declared dependencies, and a
    second, different constraint on a dependency that is already constrained.
    """


class FrozenUnitVersionError(UnitSolverError):
    """Raised when a unit-version is mutated after a resolution has read it."""


class ResolutionError(UnitSolverError):
    """Base class for failures raised by the resolution engine."""


class UnsatisfiableError(ResolutionError):
    """Raised when no complete assignment satisfies every constraint.

    Carries the conflicts collected during the search on a best-effort basis.
    Each conflict names the contested unit, the competing constraints and
    the chain of unit-versions that introduced each of them.

    Attributes:
        conflicts: Tuple of ``Conflict`` records (possibly empty).
    """

    def __init__(self, message: str, conflicts: Iterable[Conflict] = ()) -> None:
        self.conflicts = tuple(conflicts)
        if self.conflicts:
            details = "; ".join(c.describe() for c in self.conflicts)
            message = f"{message}: {details}"
        super().__init__(message)


class ConflictingExactConstraintError(UnsatisfiableError):
    """Raised when two exact pin chains force different versions of one unit.

    Detected while seeding forced unit-versions, before any backtracking.
    """


class SearchBudgetExceededError(ResolutionError):
    """Raised when the search step budget runs out before any solution.

    This is NOT a proof of unsatisfiability: a larger budget may succeed.

    Attributes:
        steps: Number of candidate trials performed before giving up.
    """

    def __init__(self, steps: int) -> None:
        self.steps = steps
        super().__init__(
            f"Search budget exhausted after {steps} steps without a solution"
        )
