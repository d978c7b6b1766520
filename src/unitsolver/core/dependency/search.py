"""Private working state of one resolution call.

``_SearchState`` holds the partial assignment, the constraints imposed so
far and an undo trail. Every mutation pushes a trail entry, so rewinding to a
decision point costs time proportional to what changed since that point and
no collection is ever cloned.

``Conflict`` and ``ImposedConstraint`` are the diagnosis records surfaced
through ``UnsatisfiableError``.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass

from unitsolver.core.dependency.constraints import VersionConstraint
from unitsolver.core.dependency.registry import Registry
from unitsolver.core.dependency.unit_version import UnitVersion

# Label of the synthetic root that declares caller-supplied extra constraints.
EXTRA_ROOT = "<extra>"

_CHOICE = "choice"
_CONSTRAINT = "constraint"


# ---------------------------------------------------------------------------
# Diagnosis records
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ImposedConstraint:
    """A constraint together with the chain of units that introduced it.

    Attributes:
        constraint: The imposed constraint.
        chain: Labels from a root down to the unit-version declaring the
            constraint (``("A@1.0.0", "B@1.0.0")``), or ``("<extra>",)``
            for caller-supplied constraints.
    """

    constraint: VersionConstraint
    chain: tuple[str, ...]

    def __str__(self) -> str:
        return f"{self.constraint.expression!r} via {' -> '.join(self.chain)}"


@dataclass(frozen=True)
class Conflict:
    """Why a unit could not be assigned.

    Attributes:
        unit: The contested unit name.
        constraints: The competing constraints on that unit.
        chosen: The unit-version of *unit* that was contradicted, either
            the one already assigned or the one being placed, if any.
        available: Every registered version of *unit*.
        exact: True when at least two different exact pins collide.
    """

    unit: str
    constraints: tuple[ImposedConstraint, ...]
    chosen: UnitVersion | None = None
    available: tuple[str, ...] = ()
    exact: bool = False

    def describe(self) -> str:
        """Return a one-line human-readable explanation."""
        if not self.available:
            text = f"unit {self.unit!r} has no registered versions"
        elif self.chosen is not None:
            text = f"{self.chosen.label} is incompatible"
        else:
            text = (
                f"no version of {self.unit!r} satisfies every constraint "
                f"(available: {', '.join(self.available)})"
            )
        if self.constraints:
            text += " [" + "; ".join(str(ic) for ic in self.constraints) + "]"
        return text


# ---------------------------------------------------------------------------
# _SearchState
# ---------------------------------------------------------------------------


class _SearchState:
    """Partial assignment, constraint accumulator and undo trail.

    Private to a single resolve call; never shared between calls.
    """

    def __init__(
        self,
        registry: Registry,
        roots: list[str],
        previous: dict[str, str] | None = None,
    ) -> None:
        self._registry = registry
        self._roots = roots
        self._previous = previous or {}
        self.chosen: dict[str, UnitVersion] = {}
        self._chains: dict[str, tuple[str, ...]] = {}
        self._pins: dict[str, ImposedConstraint] = {}
        self._imposed: dict[str, list[ImposedConstraint]] = defaultdict(list)
        self._trail: list[tuple[str, str]] = []
        self._exact_cache: dict[UnitVersion, list[tuple[UnitVersion, UnitVersion]]] = {}

    # -- trail -------------------------------------------------------------

    def mark(self) -> int:
        return len(self._trail)

    def undo(self, mark: int) -> None:
        """Rewind every change made since *mark*."""
        while len(self._trail) > mark:
            kind, name = self._trail.pop()
            if kind == _CHOICE:
                del self.chosen[name]
                del self._chains[name]
                self._pins.pop(name, None)
            else:
                self._imposed[name].pop()

    # -- queries -----------------------------------------------------------

    def candidates(self, name: str) -> list[UnitVersion]:
        """Registered versions of *name* allowed by every imposed constraint.

        Oldest first, except that a version retained from the previous
        assignment is tried first.
        """
        imposed = self._imposed.get(name, ())
        domain = [
            uv
            for uv in self._registry.versions_of(name)
            if all(ic.constraint.satisfied_by(uv) for ic in imposed)
        ]
        preferred = self._previous.get(name)
        if preferred is not None:
            domain.sort(key=lambda uv: uv.version != preferred)
        return domain

    def next_free(self) -> tuple[str, UnitVersion | None] | None:
        """Return the first required-but-unassigned unit and who requires it.

        Roots come first in the order given, then the dependencies of every
        assigned unit-version in assignment order. ``None`` means the
        assignment is complete.
        """
        for root in self._roots:
            if root not in self.chosen:
                return root, None
        for uv in self.chosen.values():
            for dep_name in uv.dependencies:
                if dep_name not in self.chosen:
                    return dep_name, uv
        return None

    def retained(self) -> int:
        """Number of current choices matching the previous assignment."""
        return sum(
            1
            for name, version in self._previous.items()
            if name in self.chosen and self.chosen[name].version == version
        )

    # -- mutation ----------------------------------------------------------

    def impose(self, constraint: VersionConstraint, chain: tuple[str, ...]) -> Conflict | None:
        """Add *constraint* and check it against the current assignment."""
        imposed = ImposedConstraint(constraint, chain)
        self._imposed[constraint.name].append(imposed)
        self._trail.append((_CONSTRAINT, constraint.name))
        current = self.chosen.get(constraint.name)
        if current is not None and not constraint.satisfied_by(current):
            return self._conflict(constraint.name, current)
        return None

    def assign(self, unit_version: UnitVersion, requester: UnitVersion | None) -> Conflict | None:
        """Assign *unit_version* plus its exact closure and impose their constraints.

        On conflict the state is left partially modified; the caller rewinds
        with ``undo``.
        """
        parent_chain = self._chains[requester.name] if requester is not None else ()
        conflict = self._place(unit_version, parent_chain + (unit_version.label,), None)
        if conflict is not None:
            return conflict
        placed = [unit_version]

        for pinned, pinned_by in self._exact_closure(unit_version):
            pin = ImposedConstraint(
                pinned_by.constraints[pinned.name], self._chains[pinned_by.name]
            )
            current = self.chosen.get(pinned.name)
            if current is not None:
                if current != pinned:
                    return self._conflict(pinned.name, current, pin)
                continue
            conflict = self._place(
                pinned, self._chains[pinned_by.name] + (pinned.label,), pin
            )
            if conflict is not None:
                return conflict
            placed.append(pinned)

        for uv in placed:
            chain = self._chains[uv.name]
            for constraint in uv.constraints.values():
                conflict = self.impose(constraint, chain)
                if conflict is not None:
                    return conflict
        return None

    def _place(
        self,
        unit_version: UnitVersion,
        chain: tuple[str, ...],
        pin: ImposedConstraint | None,
    ) -> Conflict | None:
        name = unit_version.name
        for imposed in self._imposed.get(name, ()):
            if not imposed.constraint.satisfied_by(unit_version):
                return self._conflict(name, unit_version, pin)
        unit_version.freeze()
        self.chosen[name] = unit_version
        self._chains[name] = chain
        if pin is not None:
            self._pins[name] = pin
        self._trail.append((_CHOICE, name))
        return None

    def _exact_closure(self, unit_version: UnitVersion) -> list[tuple[UnitVersion, UnitVersion]]:
        cached = self._exact_cache.get(unit_version)
        if cached is None:
            cached = unit_version.walk_exact_dependencies(self._registry)
            self._exact_cache[unit_version] = cached
        return cached

    # -- diagnosis ---------------------------------------------------------

    def _conflict(
        self,
        name: str,
        chosen: UnitVersion | None,
        extra: ImposedConstraint | None = None,
    ) -> Conflict:
        competing: list[ImposedConstraint] = list(self._imposed.get(name, ()))
        for candidate in (self._pins.get(name), extra):
            if candidate is not None and candidate not in competing:
                competing.append(candidate)
        exact_expressions = {
            ic.constraint.expression for ic in competing if ic.constraint.exact
        }
        return Conflict(
            unit=name,
            constraints=tuple(competing),
            chosen=chosen,
            available=tuple(uv.version for uv in self._registry.versions_of(name)),
            exact=len(exact_expressions) >= 2,
        )

    def domain_conflict(self, name: str) -> Conflict:
        """Conflict describing an empty candidate domain for *name*."""
        return self._conflict(name, None)
