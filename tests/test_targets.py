"""Tests for the target registry."""

import pytest

from binsync.config import TargetConfig
from binsync.errors import ConfigError
from binsync.targets import DEFAULT_TARGETS, TargetRegistry
from binsync.types import TargetSpec


def spec(target_id, subdir=None, args=("make", "{target}")):
    return TargetSpec(id=target_id, build_args=tuple(args), output_subdir=subdir or target_id)


class TestValidation:
    def test_default_registry_is_valid(self):
        registry = TargetRegistry.from_config(None)
        assert registry.list_targets() == DEFAULT_TARGETS

    def test_duplicate_id(self):
        with pytest.raises(ConfigError, match="Duplicate target id"):
            TargetRegistry([spec("linux", "a"), spec("linux", "b")])

    def test_empty_build_args(self):
        with pytest.raises(ConfigError, match="empty build_args"):
            TargetRegistry([spec("linux", args=())])

    def test_duplicate_output_subdir(self):
        with pytest.raises(ConfigError, match="Duplicate output_subdir"):
            TargetRegistry([spec("a", "same"), spec("b", "same")])

    def test_nested_output_subdir(self):
        with pytest.raises(ConfigError, match="single path component"):
            TargetRegistry([spec("a", "x/y")])

    def test_no_targets(self):
        with pytest.raises(ConfigError, match="No targets"):
            TargetRegistry([])

    def test_from_config(self):
        registry = TargetRegistry.from_config(
            [TargetConfig(id="t1", build_args=["cargo", "build"], output_subdir="one", artifacts=["x"])]
        )
        (target,) = registry.list_targets()
        assert target.build_args == ("cargo", "build")
        assert target.artifacts == ("x",)

    def test_target_spec_is_immutable(self):
        target = spec("a")
        with pytest.raises(Exception):
            target.id = "b"


class TestSelect:
    def test_all(self):
        registry = TargetRegistry([spec("a"), spec("b")])
        assert [t.id for t in registry.select("all")] == ["a", "b"]

    def test_subset_keeps_registry_order(self):
        registry = TargetRegistry([spec("a"), spec("b"), spec("c")])
        assert [t.id for t in registry.select("c,a")] == ["a", "c"]

    def test_list_selection(self):
        registry = TargetRegistry([spec("a"), spec("b")])
        assert [t.id for t in registry.select(["b"])] == ["b"]

    def test_unknown_target(self):
        registry = TargetRegistry([spec("a")])
        with pytest.raises(ConfigError, match="Unknown target"):
            registry.select("a,zzz")
