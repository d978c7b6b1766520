"""Cost functions for ranking complete assignments.

A cost function receives the full ``unit name -> UnitVersion`` mapping of a
complete, valid assignment and returns a number. Lower is better.
"""

from __future__ import annotations

from typing import Callable, Iterable, Mapping

import semantic_version

from unitsolver.core.dependency.constraints import parse_version
from unitsolver.core.dependency.unit_version import UnitVersion

CostFunction = Callable[[Mapping[str, UnitVersion]], float]

# Weights for collapsing (major, minor, patch) into one number.
_MAJOR_WEIGHT = 1_000_000
_MINOR_WEIGHT = 1_000


def version_magnitude(version: str | semantic_version.Version) -> int:
    """Collapse a version into a single monotone integer.

    Pre-release and build metadata are ignored.
    """
    ver = version if isinstance(version, semantic_version.Version) else parse_version(version)
    return ver.major * _MAJOR_WEIGHT + ver.minor * _MINOR_WEIGHT + ver.patch


def constant_cost(choices: Mapping[str, UnitVersion]) -> float:
    """Default cost: every valid assignment is equally good."""
    return 0


def prefer_newest(choices: Mapping[str, UnitVersion]) -> float:
    """Prefer the newest mutually compatible set of versions overall."""
    return -sum(version_magnitude(uv.semver) for uv in choices.values())


def prefer_newest_units(names: Iterable[str]) -> CostFunction:
    """Build a cost function preferring newer versions of *names* only.

    Units outside *names*, or absent from the assignment, do not count.
    """
    wanted = tuple(names)

    def _cost(choices: Mapping[str, UnitVersion]) -> float:
        return -sum(
            version_magnitude(choices[name].semver)
            for name in wanted
            if name in choices
        )

    return _cost
