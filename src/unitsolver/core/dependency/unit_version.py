"""UnitVersion: one buildable version of one unit, plus dependency classification.

A unit-version carries an ordered list of dependency unit names and at most
one ``VersionConstraint`` per dependency. Walking those edges splits the
reachable units in two:

- **exact** transitive dependencies, pinned to a single version by an
  unbroken chain of exact constraints (no search needed), and
- **inexact** transitive dependencies, the frontier of names whose version is
  still open because the edge leading to them is unconstrained or only
  range-constrained.
"""

from __future__ import annotations

from collections import deque
from typing import TYPE_CHECKING

import semantic_version

from unitsolver.core.dependency.constraints import VersionConstraint, parse_version
from unitsolver.exceptions import (
    ConstraintTargetError,
    FrozenUnitVersionError,
    InvalidVersionError,
)

if TYPE_CHECKING:  # pragma: no cover
    from unitsolver.core.dependency.registry import Registry


class UnitVersion:
    """A node representing a specific unit at a specific version.

    Identity is ``(name, version)``. Dependencies and constraints may be added
    incrementally while the registry is being populated; once a resolution
    has read the unit-version it is frozen and further mutation raises
    ``FrozenUnitVersionError``.

    Args:
        name: Unit name.
        version: Semantic version string.
        earliest_compatible_version: Oldest version this one can stand in
            for under a compatible-range constraint. Defaults to *version*.

    Raises:
        InvalidVersionError: If a version is not valid semver, or the
            earliest compatible version is newer than *version*.
    """

    def __init__(
        self,
        name: str,
        version: str,
        earliest_compatible_version: str | None = None,
    ) -> None:
        if not isinstance(name, str) or not name.strip():
            raise ValueError(f"Unit name must be a non-empty string, got {name!r}")
        self._name = name
        self._semver = parse_version(version)
        self._version = str(self._semver)
        if earliest_compatible_version is None:
            self._earliest = self._semver
        else:
            self._earliest = parse_version(earliest_compatible_version)
        if self._earliest > self._semver:
            raise InvalidVersionError(
                f"{name}@{version}: earliest compatible version "
                f"{earliest_compatible_version!r} is newer than the version itself"
            )
        self._dependencies: list[str] = []
        self._constraints: dict[str, VersionConstraint] = {}
        self._frozen = False

    # -- identity ----------------------------------------------------------

    @property
    def name(self) -> str:
        return self._name

    @property
    def version(self) -> str:
        return self._version

    @property
    def earliest_compatible_version(self) -> str:
        return str(self._earliest)

    @property
    def semver(self) -> semantic_version.Version:
        return self._semver

    @property
    def earliest_semver(self) -> semantic_version.Version:
        return self._earliest

    @property
    def label(self) -> str:
        """Human-readable ``name@version`` label."""
        return f"{self._name}@{self._version}"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, UnitVersion):
            return NotImplemented
        return self._name == other._name and self._semver == other._semver

    def __hash__(self) -> int:
        return hash((self._name, self._version))

    def __repr__(self) -> str:
        return f"UnitVersion({self._name!r}, {self._version!r})"

    # -- population --------------------------------------------------------

    @property
    def dependencies(self) -> tuple[str, ...]:
        """Dependency unit names in declaration order."""
        return tuple(self._dependencies)

    @property
    def constraints(self) -> dict[str, VersionConstraint]:
        """Constraints keyed by the dependency name they constrain."""
        return dict(self._constraints)

    @property
    def frozen(self) -> bool:
        return self._frozen

    def freeze(self) -> None:
        """Mark this unit-version as read by a resolution.

        Idempotent; concurrent resolutions may call it on the same instance.
        """
        self._frozen = True

    def _check_mutable(self) -> None:
        if self._frozen:
            raise FrozenUnitVersionError(
                f"{self.label} was already read by a resolution and cannot change"
            )

    def add_dependency(self, name: str) -> None:
        """Declare a dependency on unit *name*. Idempotent."""
        self._check_mutable()
        if not isinstance(name, str) or not name.strip():
            raise ValueError(f"Dependency name must be a non-empty string, got {name!r}")
        if name not in self._dependencies:
            self._dependencies.append(name)

    def add_constraint(self, constraint: VersionConstraint) -> None:
        """Attach a version constraint to one of the declared dependencies.

        Raises:
            ConstraintTargetError: If the target is not a declared dependency,
                or the dependency already carries a different constraint.
        """
        self._check_mutable()
        if not isinstance(constraint, VersionConstraint):
            raise TypeError(f"Expected a VersionConstraint, got {constraint!r}")
        if constraint.name not in self._dependencies:
            raise ConstraintTargetError(
                f"{self.label} cannot constrain {constraint.name!r}: "
                "it is not a declared dependency"
            )
        existing = self._constraints.get(constraint.name)
        if existing is not None and existing != constraint:
            raise ConstraintTargetError(
                f"{self.label} already constrains {constraint.name!r} with "
                f"{existing.expression!r}"
            )
        self._constraints[constraint.name] = constraint

    # -- classification ----------------------------------------------------

    def walk_exact_dependencies(
        self, registry: Registry
    ) -> list[tuple[UnitVersion, UnitVersion]]:
        """Breadth-first walk along exact-constraint edges.

        Each unit name is visited at most once and the root is never
        revisited. An exact pin naming a version absent from the registry
        contributes nothing.

        Returns:
            ``(pinned, pinned_by)`` pairs in discovery order, where
            *pinned_by* is the unit-version whose exact constraint forced
            *pinned*.
        """
        visited: set[str] = {self._name}
        found: list[tuple[UnitVersion, UnitVersion]] = []
        queue: deque[UnitVersion] = deque([self])

        while queue:
            current = queue.popleft()
            for dep_name in current._dependencies:
                if dep_name in visited:
                    continue
                constraint = current._constraints.get(dep_name)
                if constraint is None or not constraint.exact:
                    continue
                pinned = registry.get_unit_version(dep_name, constraint.operand)
                if pinned is None:
                    continue
                visited.add(dep_name)
                found.append((pinned, current))
                queue.append(pinned)

        return found

    def exact_transitive_dependencies_versions(
        self, registry: Registry
    ) -> list[UnitVersion]:
        """Unit-versions forced by chains of exact constraints, root excluded."""
        return [pinned for pinned, _ in self.walk_exact_dependencies(registry)]

    def inexact_transitive_dependencies(self, registry: Registry) -> list[str]:
        """Names of reachable units whose version is still open.

        These are the non-exact dependencies of this unit-version and of its
        exact closure. Names in the exact closure are excluded even when some
        other edge reaches them inexactly. Units further behind an inexact
        edge are not listed: their versions depend on the choice made there.

        Order: the exact closure in walk order, then this unit-version, each
        contributing its dependencies in declaration order.
        """
        closure = self.exact_transitive_dependencies_versions(registry)
        exact_names = {uv.name for uv in closure}
        exact_names.add(self._name)

        seen: set[str] = set()
        inexact: list[str] = []
        for uv in closure + [self]:
            for dep_name in uv._dependencies:
                if dep_name in exact_names or dep_name in seen:
                    continue
                constraint = uv._constraints.get(dep_name)
                if constraint is not None and constraint.exact:
                    continue
                seen.add(dep_name)
                inexact.append(dep_name)
        return inexact
