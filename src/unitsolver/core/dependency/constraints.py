"""Version parsing helpers and the VersionConstraint value type.

A constraint expression takes one of two forms:

- **Exact** (``=1.2.3``): satisfied only by the unit-version whose version is
  exactly the operand.
- **Compatible-range** (``1.2.3``): satisfied by any unit-version U of the
  target unit with ``U.version >= 1.2.3`` and
  ``U.earliest_compatible_version <= 1.2.3``, i.e. the operand falls inside
  U's declared backward-compatibility window.

Version ordering is delegated to ``semantic_version`` (SemVer 2.0.0
precedence, including pre-release ordering).

References
----------
.. [SemVer] Preston-Werner, T. (2013). "Semantic Versioning 2.0.0."
   https://semver.org/
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import semantic_version

from unitsolver.exceptions import InvalidVersionError, MalformedConstraintError

if TYPE_CHECKING:  # pragma: no cover
    from unitsolver.core.dependency.unit_version import UnitVersion


EXACT_PREFIX = "="


# ---------------------------------------------------------------------------
# Version comparison utilities
# ---------------------------------------------------------------------------


def parse_version(version: str) -> semantic_version.Version:
    """Parse a semantic version string.

    Args:
        version: Semantic version string (e.g., "1.2.3", "0.1.0-alpha").

    Returns:
        A comparable ``semantic_version.Version``.

    Raises:
        InvalidVersionError: If the string is not a valid semantic version.
    """
    if not isinstance(version, str):
        raise InvalidVersionError(f"Version must be a string, got {version!r}")
    try:
        return semantic_version.Version(version.strip())
    except ValueError as exc:
        raise InvalidVersionError(f"Invalid semantic version: {version!r}") from exc


def is_valid_version(version: str) -> bool:
    """Return True if *version* is a valid semantic version string."""
    return isinstance(version, str) and semantic_version.validate(version.strip())


def version_key(version: str) -> semantic_version.Version:
    """Sort key for version strings (ascending semver precedence)."""
    return parse_version(version)


# ---------------------------------------------------------------------------
# VersionConstraint: "unit X must satisfy expression E"
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class VersionConstraint:
    """An immutable version requirement on a named unit.

    Equality and hashing are structural over ``(name, expression)``, so two
    constraints built from the same pair are interchangeable. Registries
    intern instances so repeated lookups return the same object.

    Attributes:
        name: Target unit name.
        expression: Constraint expression as authored (``=1.0.0`` or
            ``1.0.0``), surrounding whitespace removed.
        exact: True for an exact pin, False for a compatible-range constraint.
        operand: The version string after the optional ``=`` prefix.

    Raises:
        MalformedConstraintError: If the name is empty or the expression is
            not a valid exact or range expression.
    """

    name: str
    expression: str
    exact: bool = field(init=False, compare=False)
    operand: str = field(init=False, compare=False)
    _target: semantic_version.Version = field(
        init=False, compare=False, repr=False
    )

    def __post_init__(self) -> None:
        if not isinstance(self.name, str) or not self.name.strip():
            raise MalformedConstraintError(
                f"Constraint target must be a non-empty unit name, got {self.name!r}"
            )
        if not isinstance(self.expression, str):
            raise MalformedConstraintError(
                f"Constraint expression must be a string, got {self.expression!r}"
            )
        expression = self.expression.strip()
        exact = expression.startswith(EXACT_PREFIX)
        operand = expression[len(EXACT_PREFIX):] if exact else expression
        # Reject "==1.0.0", "= 1.0.0" and other near-misses up front.
        if not operand or operand != operand.strip():
            raise MalformedConstraintError(
                f"Invalid constraint {expression!r} on unit {self.name!r}"
            )
        try:
            target = parse_version(operand)
        except InvalidVersionError as exc:
            raise MalformedConstraintError(
                f"Invalid constraint {expression!r} on unit {self.name!r}"
            ) from exc

        object.__setattr__(self, "expression", expression)
        object.__setattr__(self, "exact", exact)
        object.__setattr__(self, "operand", operand)
        object.__setattr__(self, "_target", target)

    @property
    def target_version(self) -> semantic_version.Version:
        """The parsed operand."""
        return self._target

    def allows(
        self,
        version: str | semantic_version.Version,
        earliest_compatible_version: str | semantic_version.Version | None = None,
    ) -> bool:
        """Check a bare version (and compatibility window) against this constraint.

        Args:
            version: Candidate version.
            earliest_compatible_version: Oldest version the candidate can
                stand in for. Defaults to *version* itself.

        Returns:
            True if the candidate satisfies the constraint.
        """
        ver = version if isinstance(version, semantic_version.Version) else parse_version(version)
        if self.exact:
            return ver == self._target
        if earliest_compatible_version is None:
            earliest = ver
        elif isinstance(earliest_compatible_version, semantic_version.Version):
            earliest = earliest_compatible_version
        else:
            earliest = parse_version(earliest_compatible_version)
        return ver >= self._target and earliest <= self._target

    def satisfied_by(self, unit_version: UnitVersion) -> bool:
        """Return True if *unit_version* is a unit-version this constraint accepts."""
        if unit_version.name != self.name:
            return False
        return self.allows(unit_version.semver, unit_version.earliest_semver)

    def __str__(self) -> str:
        return f"{self.name}@{self.expression}"

    def __repr__(self) -> str:
        return f"VersionConstraint({self.name!r}, {self.expression!r})"
