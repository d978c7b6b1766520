"""Registry: the unit-version store consulted by the resolver.

Holds every known ``UnitVersion`` grouped by unit name and interns
``VersionConstraint`` instances by ``(name, expression)``. A registry is built
once per session and is read-only while resolutions run.

Thread safety: population is NOT thread-safe. Callers must finish
populating before resolving; concurrent resolutions against an unchanging
registry are safe. Sorted version lists are built at registration, so
resolution only reads the registry. The one write a search makes is
``UnitVersion.freeze()``, which sets a flag to True and is idempotent.
"""

from __future__ import annotations

import logging

from unitsolver.core.dependency.constraints import VersionConstraint, parse_version
from unitsolver.core.dependency.unit_version import UnitVersion
from unitsolver.exceptions import DuplicateVersionError, MalformedConstraintError

logger = logging.getLogger(__name__)


class Registry:
    """Per-name collection of unit-versions with constraint interning."""

    def __init__(self) -> None:
        self._units: dict[str, dict[str, UnitVersion]] = {}
        self._sorted: dict[str, tuple[UnitVersion, ...]] = {}
        self._constraints: dict[tuple[str, str], VersionConstraint] = {}

    @property
    def units(self) -> set[str]:
        """Return the set of all registered unit names."""
        return set(self._units)

    @property
    def unit_version_count(self) -> int:
        """Return the total number of (unit, version) entries."""
        return sum(len(versions) for versions in self._units.values())

    def __contains__(self, name: object) -> bool:
        return name in self._units

    def __len__(self) -> int:
        return len(self._units)

    def add_unit_version(self, unit_version: UnitVersion) -> None:
        """Register *unit_version* under its unit name.

        Raises:
            DuplicateVersionError: If the same (name, version) is already
                registered.
        """
        if not isinstance(unit_version, UnitVersion):
            raise TypeError(f"Expected a UnitVersion, got {unit_version!r}")
        versions = self._units.setdefault(unit_version.name, {})
        if unit_version.version in versions:
            raise DuplicateVersionError(
                f"{unit_version.label} is already registered"
            )
        versions[unit_version.version] = unit_version
        self._sorted[unit_version.name] = tuple(
            sorted(versions.values(), key=lambda uv: uv.semver)
        )
        logger.debug("Registered %s", unit_version.label)

    def add_unit(
        self,
        name: str,
        version: str,
        earliest_compatible_version: str | None = None,
    ) -> UnitVersion:
        """Create, register and return a new unit-version."""
        unit_version = UnitVersion(name, version, earliest_compatible_version)
        self.add_unit_version(unit_version)
        return unit_version

    def get_constraint(self, name: str, expression: str) -> VersionConstraint:
        """Return the interned constraint for (*name*, *expression*).

        Raises:
            MalformedConstraintError: If *expression* is not a valid exact
                (``=1.0.0``) or compatible-range (``1.0.0``) expression.
        """
        if not isinstance(expression, str):
            raise MalformedConstraintError(
                f"Constraint expression for {name!r} must be a string, got {expression!r}"
            )
        key = (name, expression.strip())
        constraint = self._constraints.get(key)
        if constraint is None:
            constraint = VersionConstraint(name, expression)
            self._constraints[key] = constraint
        return constraint

    def versions_of(self, name: str) -> tuple[UnitVersion, ...]:
        """Return all unit-versions of *name*, oldest first.

        Unknown names yield an empty tuple: a missing unit is a normal
        "nothing satisfies this" outcome surfaced by the search.
        """
        return self._sorted.get(name, ())

    def get_unit_version(self, name: str, version: str) -> UnitVersion | None:
        """Retrieve a specific unit-version, or None if not registered."""
        versions = self._units.get(name)
        if not versions:
            return None
        return versions.get(str(parse_version(version)))
