"""Backtracking resolution engine with cost-based selection.

Given root unit names, ``Resolver`` selects exactly one version for every
unit reachable through dependency edges so that every declared constraint is
satisfied, and returns the assignment with the lowest cost.

The search runs in two phases:

1. **Seeding.** Roots whose candidate domain holds a single version are
   forced, together with their exact transitive dependencies. Contradicting
   forced pins are rejected here, before any backtracking.
2. **Backtracking.** Free units (required but unassigned) are decided one at
   a time in discovery order using an explicit decision stack. Trying a
   candidate assigns it and its exact closure and imposes their constraints;
   a violation rewinds the undo trail to the decision's mark and moves on to
   the next candidate. Each complete assignment is scored and the best one
   is kept.

Tie-break: among equal-cost solutions the first one found wins. Candidates
are tried oldest first (a version retained from ``previous_assignment`` goes
first), so with the default constant cost the first complete solution is the
answer and the search stops there. In that solution every hinted unit either
holds its hinted version or had it ruled out on the way down.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Callable, Iterable, Mapping

from unitsolver.core.dependency.constraints import VersionConstraint, parse_version
from unitsolver.core.dependency.cost import CostFunction, constant_cost
from unitsolver.core.dependency.registry import Registry
from unitsolver.core.dependency.search import EXTRA_ROOT, Conflict, _SearchState
from unitsolver.core.dependency.unit_version import UnitVersion
from unitsolver.exceptions import (
    ConflictingExactConstraintError,
    SearchBudgetExceededError,
    UnsatisfiableError,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# ResolveOptions: per-call configuration
# ---------------------------------------------------------------------------


@dataclass
class ResolveOptions:
    """Tuning knobs for a single resolve call.

    Attributes:
        cost_function: Maps a complete ``name -> UnitVersion`` assignment to
            a number, lower is better. None means every solution costs 0.
        max_solutions: Stop after comparing this many complete solutions.
            None compares all of them.
        max_steps: Stop after this many candidate trials. None is unbounded.
        previous_solution_tolerance: How much worse than the best cost a
            solution may be and still win by retaining more choices from
            ``previous_assignment``. Only used with a cost function; without
            one the hinted versions are simply tried first.
    """

    cost_function: CostFunction | None = None
    max_solutions: int | None = None
    max_steps: int | None = None
    previous_solution_tolerance: float = 0.0

    def __post_init__(self) -> None:
        if self.cost_function is not None and not callable(self.cost_function):
            raise ValueError(
                f"cost_function must be callable, got {self.cost_function!r}"
            )
        if self.max_solutions is not None and self.max_solutions < 1:
            raise ValueError(
                f"max_solutions must be at least 1, got {self.max_solutions}"
            )
        if self.max_steps is not None and self.max_steps < 1:
            raise ValueError(f"max_steps must be at least 1, got {self.max_steps}")
        if self.previous_solution_tolerance < 0:
            raise ValueError(
                "previous_solution_tolerance must be non-negative, got "
                f"{self.previous_solution_tolerance}"
            )

    @classmethod
    def coerce(cls, options: ResolveOptions | Mapping[str, Any] | None) -> ResolveOptions:
        """Accept an instance, a mapping of the same keys, or None."""
        if options is None:
            return cls()
        if isinstance(options, cls):
            return options
        if isinstance(options, Mapping):
            unknown = set(options) - set(cls.__dataclass_fields__)
            if unknown:
                raise ValueError(f"Unknown resolve options: {sorted(unknown)}")
            return cls(**options)
        raise TypeError(f"Expected ResolveOptions or a mapping, got {options!r}")


# ---------------------------------------------------------------------------
# Resolution: the output of a resolve call
# ---------------------------------------------------------------------------


@dataclass
class Resolution:
    """A complete, constraint-satisfying assignment.

    Attributes:
        choices: Mapping of unit name -> chosen UnitVersion, in discovery
            order.
        cost: Cost of the assignment under the cost function used.
        solutions_examined: Number of complete solutions compared.
        steps: Number of candidate trials performed.
        truncated: True if a search budget cut the search short, in which
            case the assignment is the best one found so far.
    """

    choices: dict[str, UnitVersion] = field(default_factory=dict)
    cost: float = 0
    solutions_examined: int = 0
    steps: int = 0
    truncated: bool = False

    @property
    def installed(self) -> dict[str, str]:
        """Mapping of unit name -> chosen version string."""
        return {name: uv.version for name, uv in self.choices.items()}

    def ordered(self) -> list[UnitVersion]:
        """The chosen unit-versions sorted by unit name."""
        return [self.choices[name] for name in sorted(self.choices)]

    def install_order(self) -> list[UnitVersion]:
        """The chosen unit-versions with dependencies before dependents.

        Ties follow discovery order; a dependency cycle is broken at the edge
        that closes it.
        """
        order: list[UnitVersion] = []
        visited: set[str] = set()

        for root in self.choices:
            if root in visited:
                continue
            visited.add(root)
            stack = [(root, iter(self.choices[root].dependencies))]
            while stack:
                name, deps = stack[-1]
                for dep_name in deps:
                    if dep_name in self.choices and dep_name not in visited:
                        visited.add(dep_name)
                        stack.append(
                            (dep_name, iter(self.choices[dep_name].dependencies))
                        )
                        break
                else:
                    stack.pop()
                    order.append(self.choices[name])
        return order


@dataclass
class _Decision:
    """One entry of the explicit backtracking stack."""

    name: str
    requester: UnitVersion | None
    candidates: list[UnitVersion]
    mark: int
    index: int = 0


@dataclass
class _Solution:
    choices: dict[str, UnitVersion]
    cost: float
    retained: int
    index: int


# ---------------------------------------------------------------------------
# Resolver: the resolution entry point
# ---------------------------------------------------------------------------


class Resolver:
    """Backtracking resolver over a populated ``Registry``.

    The resolver itself holds no per-call state, so one instance may serve
    concurrent resolve calls as long as the registry is not being modified.

    Args:
        registry: The unit-version store to resolve against.
    """

    def __init__(self, registry: Registry) -> None:
        self._registry = registry

    @property
    def registry(self) -> Registry:
        return self._registry

    def resolve(
        self,
        roots: Iterable[str] | str,
        extra_constraints: Iterable[VersionConstraint] = (),
        previous_assignment: Iterable[UnitVersion | tuple[str, str]] | Mapping[str, str] = (),
        options: ResolveOptions | Mapping[str, Any] | None = None,
    ) -> list[UnitVersion]:
        """Resolve *roots* and return the chosen unit-versions sorted by name.

        See ``solve`` for the arguments and errors.
        """
        return self.solve(roots, extra_constraints, previous_assignment, options).ordered()

    def solve(
        self,
        roots: Iterable[str] | str,
        extra_constraints: Iterable[VersionConstraint] = (),
        previous_assignment: Iterable[UnitVersion | tuple[str, str]] | Mapping[str, str] = (),
        options: ResolveOptions | Mapping[str, Any] | None = None,
    ) -> Resolution:
        """Resolve *roots* into a full ``Resolution``.

        Args:
            roots: Unit names that must be part of the assignment.
            extra_constraints: Constraints applied as if declared by a
                synthetic root. They restrict versions but do not pull units
                into the assignment.
            previous_assignment: Earlier choices to keep where possible, as
                unit-versions, ``(name, version)`` pairs or a mapping.
            options: ``ResolveOptions`` or a mapping of its fields.

        Returns:
            The best complete assignment.

        Raises:
            ConflictingExactConstraintError: Forced exact pins disagree.
            UnsatisfiableError: No complete assignment exists.
            SearchBudgetExceededError: ``max_steps`` ran out before any
                solution was found.
        """
        opts = ResolveOptions.coerce(options)
        root_names = _normalize_roots(roots)
        previous = _normalize_previous(previous_assignment)
        if not root_names:
            return Resolution()

        state = _SearchState(self._registry, root_names, previous)
        for constraint in extra_constraints:
            if not isinstance(constraint, VersionConstraint):
                raise TypeError(f"Expected a VersionConstraint, got {constraint!r}")
            state.impose(constraint, (EXTRA_ROOT,))

        self._seed(state, root_names)
        logger.debug(
            "Seeded %d forced unit-versions for roots %s", len(state.chosen), root_names
        )
        return self._search(state, opts, previous)

    # -- phase 1 -----------------------------------------------------------

    @staticmethod
    def _seed(state: _SearchState, roots: list[str]) -> None:
        for root in roots:
            if root in state.chosen:
                continue
            domain = state.candidates(root)
            if not domain:
                raise UnsatisfiableError(
                    f"Root {root!r} cannot be satisfied", [state.domain_conflict(root)]
                )
            if len(domain) > 1:
                continue
            conflict = state.assign(domain[0], None)
            if conflict is None:
                continue
            if conflict.exact:
                raise ConflictingExactConstraintError(
                    f"Exact constraints disagree on {conflict.unit!r}", [conflict]
                )
            raise UnsatisfiableError(
                f"Forced unit-versions violate constraints on {conflict.unit!r}",
                [conflict],
            )

    # -- phase 2 -----------------------------------------------------------

    def _search(
        self,
        state: _SearchState,
        opts: ResolveOptions,
        previous: dict[str, str],
    ) -> Resolution:
        cost_function = opts.cost_function or constant_cost
        # Retention only competes with cost when a cost function is given.
        keep_all = bool(previous) and opts.cost_function is not None
        solutions: list[_Solution] = []
        found = 0
        steps = 0
        truncated = False
        deepest: tuple[int, Conflict] | None = None

        def _record_conflict(conflict: Conflict, depth: int) -> None:
            nonlocal deepest
            if deepest is None or depth > deepest[0]:
                deepest = (depth, conflict)

        def _record_solution() -> bool:
            """Store the current assignment; return True to stop searching."""
            nonlocal found
            choices = dict(state.chosen)
            cost = cost_function(MappingProxyType(choices))
            retained = state.retained()
            solution = _Solution(choices, cost, retained, found)
            found += 1
            logger.debug("Solution %d found with cost %s", found, cost)
            if keep_all:
                solutions.append(solution)
            elif not solutions or cost < solutions[0].cost:
                solutions[:] = [solution]
            if opts.max_solutions is not None and found >= opts.max_solutions:
                return True
            return opts.cost_function is None

        stack: list[_Decision] = []
        first = state.next_free()
        if first is None:
            _record_solution()
        else:
            stack.append(self._open(state, *first, _record_conflict, 1))

        while stack:
            decision = stack[-1]
            state.undo(decision.mark)
            if decision.index >= len(decision.candidates):
                stack.pop()
                continue
            if opts.max_steps is not None and steps >= opts.max_steps:
                truncated = True
                break
            steps += 1
            candidate = decision.candidates[decision.index]
            decision.index += 1

            conflict = state.assign(candidate, decision.requester)
            if conflict is not None:
                _record_conflict(conflict, len(stack))
                continue
            following = state.next_free()
            if following is None:
                if _record_solution():
                    break
                continue
            stack.append(
                self._open(state, *following, _record_conflict, len(stack) + 1)
            )

        if not solutions:
            if truncated:
                raise SearchBudgetExceededError(steps)
            conflicts = [deepest[1]] if deepest is not None else []
            raise UnsatisfiableError("No assignment satisfies every constraint", conflicts)
        if truncated:
            logger.warning(
                "Search budget of %d steps exhausted; returning best of %d solutions",
                steps,
                found,
            )

        best = _select(solutions, opts.previous_solution_tolerance)
        return Resolution(
            choices=best.choices,
            cost=best.cost,
            solutions_examined=found,
            steps=steps,
            truncated=truncated,
        )

    @staticmethod
    def _open(
        state: _SearchState,
        name: str,
        requester: UnitVersion | None,
        record_conflict: Callable[[Conflict, int], None],
        depth: int,
    ) -> _Decision:
        candidates = state.candidates(name)
        if not candidates:
            record_conflict(state.domain_conflict(name), depth)
        return _Decision(name, requester, candidates, state.mark())


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _select(solutions: list[_Solution], tolerance: float) -> _Solution:
    best_cost = min(s.cost for s in solutions)
    eligible = [s for s in solutions if s.cost <= best_cost + tolerance]
    return min(eligible, key=lambda s: (-s.retained, s.cost, s.index))


def _normalize_roots(roots: Iterable[str] | str) -> list[str]:
    if isinstance(roots, str):
        roots = [roots]
    names: list[str] = []
    for root in roots:
        if not isinstance(root, str) or not root.strip():
            raise TypeError(f"Root unit names must be non-empty strings, got {root!r}")
        if root not in names:
            names.append(root)
    return names


def _normalize_previous(
    previous: Iterable[UnitVersion | tuple[str, str]] | Mapping[str, str],
) -> dict[str, str]:
    if isinstance(previous, Mapping):
        pairs = list(previous.items())
    else:
        pairs = [
            (item.name, item.version) if isinstance(item, UnitVersion) else tuple(item)
            for item in previous
        ]
    return {name: str(parse_version(version)) for name, version in pairs}
