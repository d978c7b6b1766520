"""Shared fixtures for unitsolver tests."""

from __future__ import annotations

import pytest

from unitsolver.core.dependency import Registry, UnitVersion


@pytest.fixture
def registry() -> Registry:
    """An empty registry."""
    return Registry()


@pytest.fixture
def exact_chain_registry() -> tuple[Registry, dict[str, UnitVersion]]:
    """Mixed exact / inexact graph.

    Fat arrow = exact pin, thin arrow = range constraint or none::

        A => B => C
         \\    \\-> D => E
          \\->  \\-> F
    """
    reg = Registry()
    units = {
        "A": reg.add_unit("A", "1.0.0", "1.0.0"),
        "B": reg.add_unit("B", "1.0.0", "1.0.0"),
        "C": reg.add_unit("C", "1.0.0", "1.0.0"),
        "D": reg.add_unit("D", "1.1.0", "1.0.0"),
        "E": reg.add_unit("E", "1.0.0", "1.0.0"),
        "F": reg.add_unit("F", "1.2.0", "1.0.0"),
    }
    a, b, d = units["A"], units["B"], units["D"]

    a.add_dependency("B")
    a.add_constraint(reg.get_constraint("B", "=1.0.0"))
    b.add_dependency("C")
    b.add_constraint(reg.get_constraint("C", "=1.0.0"))
    # A dependency without a constraint still gets picked.
    b.add_dependency("D")
    d.add_dependency("E")
    d.add_constraint(reg.get_constraint("E", "=1.0.0"))
    b.add_dependency("F")
    b.add_constraint(reg.get_constraint("F", "1.0.0"))
    a.add_dependency("F")
    a.add_constraint(reg.get_constraint("F", "1.1.0"))
    return reg, units


@pytest.fixture
def cost_registry() -> tuple[Registry, dict[str, UnitVersion]]:
    """Two versions of A, three of C; B pins A exactly and wants C >= 1.1.0."""
    reg = Registry()
    units = {
        "A100": reg.add_unit("A", "1.0.0", "1.0.0"),
        "A110": reg.add_unit("A", "1.1.0", "1.0.0"),
        "B100": reg.add_unit("B", "1.0.0", "1.0.0"),
        "C100": reg.add_unit("C", "1.0.0", "1.0.0"),
        "C110": reg.add_unit("C", "1.1.0", "1.0.0"),
        "C120": reg.add_unit("C", "1.2.0", "1.0.0"),
    }
    units["A100"].add_dependency("C")
    b = units["B100"]
    b.add_dependency("A")
    b.add_constraint(reg.get_constraint("A", "=1.0.0"))
    b.add_dependency("C")
    b.add_constraint(reg.get_constraint("C", "1.1.0"))
    return reg, units
