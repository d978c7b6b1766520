"""Tests for Registry population, constraint interning and version lookup."""

from __future__ import annotations

import pytest

from unitsolver.core.dependency import Registry, Resolver, UnitVersion, VersionConstraint
from unitsolver.exceptions import DuplicateVersionError, MalformedConstraintError


class TestPopulation:
    """Tests for adding unit-versions."""

    def test_add_single_unit_version(self, registry: Registry) -> None:
        registry.add_unit_version(UnitVersion("A", "1.0.0"))
        assert registry.units == {"A"}
        assert registry.unit_version_count == 1
        assert "A" in registry
        assert len(registry) == 1

    def test_add_unit_factory(self, registry: Registry) -> None:
        uv = registry.add_unit("A", "1.1.0", "1.0.0")
        assert registry.get_unit_version("A", "1.1.0") is uv
        assert uv.earliest_compatible_version == "1.0.0"

    def test_multiple_versions_same_unit(self, registry: Registry) -> None:
        registry.add_unit("A", "1.0.0")
        registry.add_unit("A", "2.0.0")
        assert registry.units == {"A"}
        assert registry.unit_version_count == 2

    def test_duplicate_version_rejected(self, registry: Registry) -> None:
        registry.add_unit("A", "1.0.0")
        with pytest.raises(DuplicateVersionError):
            registry.add_unit_version(UnitVersion("A", "1.0.0"))

    def test_same_version_different_units_allowed(self, registry: Registry) -> None:
        registry.add_unit("A", "1.0.0")
        registry.add_unit("B", "1.0.0")
        assert registry.unit_version_count == 2

    def test_non_unit_version_rejected(self, registry: Registry) -> None:
        with pytest.raises(TypeError):
            registry.add_unit_version(("A", "1.0.0"))  # type: ignore[arg-type]


class TestVersionsOf:
    """Tests for versions_of() ordering and unknown units."""

    def test_sorted_oldest_first(self, registry: Registry) -> None:
        for ver in ["1.10.0", "1.2.0", "0.5.0", "1.2.0-beta.1"]:
            registry.add_unit("A", ver)
        assert [uv.version for uv in registry.versions_of("A")] == [
            "0.5.0", "1.2.0-beta.1", "1.2.0", "1.10.0",
        ]

    def test_unknown_unit_is_empty(self, registry: Registry) -> None:
        assert registry.versions_of("ghost") == ()

    def test_cache_refreshed_after_add(self, registry: Registry) -> None:
        registry.add_unit("A", "1.0.0")
        assert len(registry.versions_of("A")) == 1
        registry.add_unit("A", "0.9.0")
        assert [uv.version for uv in registry.versions_of("A")] == ["0.9.0", "1.0.0"]

    def test_resolution_does_not_touch_sorted_lists(self, registry: Registry) -> None:
        app = registry.add_unit("app", "1.0.0")
        for ver in ["1.1.0", "1.0.0"]:
            registry.add_unit("lib", ver)
        app.add_dependency("lib")
        snapshot = dict(registry._sorted)
        Resolver(registry).resolve(["app"])
        assert registry._sorted == snapshot
        assert all(registry._sorted[name] is snapshot[name] for name in snapshot)

    def test_get_unit_version_missing(self, registry: Registry) -> None:
        registry.add_unit("A", "1.0.0")
        assert registry.get_unit_version("A", "2.0.0") is None
        assert registry.get_unit_version("B", "1.0.0") is None


class TestConstraintInterning:
    """Tests for get_constraint()."""

    def test_same_pair_returns_same_object(self, registry: Registry) -> None:
        first = registry.get_constraint("B", "=1.0.0")
        assert registry.get_constraint("B", "=1.0.0") is first

    def test_whitespace_normalized_before_interning(self, registry: Registry) -> None:
        first = registry.get_constraint("B", "1.0.0")
        assert registry.get_constraint("B", " 1.0.0 ") is first

    def test_different_pairs_are_distinct(self, registry: Registry) -> None:
        assert registry.get_constraint("B", "=1.0.0") is not registry.get_constraint("B", "1.0.0")
        assert registry.get_constraint("B", "1.0.0") is not registry.get_constraint("C", "1.0.0")

    def test_interned_equals_fresh(self, registry: Registry) -> None:
        assert registry.get_constraint("B", "1.0.0") == VersionConstraint("B", "1.0.0")

    def test_malformed_raised_at_lookup(self, registry: Registry) -> None:
        with pytest.raises(MalformedConstraintError):
            registry.get_constraint("B", ">=1.0.0")

    def test_malformed_not_cached(self, registry: Registry) -> None:
        with pytest.raises(MalformedConstraintError):
            registry.get_constraint("B", "x")
        with pytest.raises(MalformedConstraintError):
            registry.get_constraint("B", "x")

    @pytest.mark.parametrize("expression", [["1.0.0"], {"v": "1.0.0"}, None, 1])
    def test_non_string_expression_rejected(self, registry: Registry, expression) -> None:
        with pytest.raises(MalformedConstraintError):
            registry.get_constraint("B", expression)
