"""Environment loader adapter tests clarifying namespace coercion.

The scenarios cover prefix naming, nested assignment, origins, and randomised
inputs to prove the adapter continues to match the documented environment
rules.
"""

from __future__ import annotations

import pytest
from hypothesis import given
from hypothesis import strategies as st

from lib_config_tree.adapters.env.default import DefaultEnvLoader, assign_nested, default_env_prefix
from lib_config_tree.domain.errors import InvalidInput
from lib_config_tree.domain.tree import Origin


def test_default_env_prefix() -> None:
    """Slug values should become upper snake-case prefixes used throughout docs."""

    assert default_env_prefix("lib-config-tree") == "LIB_CONFIG_TREE"


def test_env_loader_nested() -> None:
    """Coerce environment variables into nested trees while ignoring out-of-scope keys."""

    environ = {
        "DEMO_DB__HOST": "db.example.com",
        "DEMO_DB__PORT": "5432",
        "DEMO_FEATURE__ENABLED": "true",
        "OTHER": "ignored",
    }
    tree = DefaultEnvLoader(environ=environ).load("DEMO")
    assert tree.to_raw() == {"db": {"host": "db.example.com", "port": 5432}, "feature": {"enabled": True}}


def test_env_loader_origins_name_the_variable() -> None:
    tree = DefaultEnvLoader(environ={"DEMO_DB__HOST": "h"}).load("DEMO_")
    assert tree.fetch(["db", "host"]).origins == (Origin("env:DEMO_DB__HOST"),)
    assert tree.fetch(["db"]).origins == (Origin("env"),)


def test_env_loader_without_prefix_reads_everything() -> None:
    tree = DefaultEnvLoader(environ={"A": "1", "B__C": "x"}).load("")
    assert tree.to_raw() == {"a": 1, "b": {"c": "x"}}


def test_env_loader_skips_the_bare_prefix() -> None:
    assert DefaultEnvLoader(environ={"DEMO_": "1"}).load("DEMO").to_raw() is None


def test_env_loader_reads_process_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("LCT_PROBE_VALUE", "2.5")
    assert DefaultEnvLoader().load("LCT_PROBE").fetch(["value"]).value == 2.5


def test_assign_nested_overwrites_scalar_raises() -> None:
    """Protect existing scalar values from being replaced by new nested assignments."""

    container: dict[str, object] = {"a": "value"}
    with pytest.raises(InvalidInput, match="Cannot overwrite scalar with mapping"):
        assign_nested(container, "A__B", 1)


def test_assign_nested_overwrites_mapping_raises() -> None:
    container: dict[str, object] = {"a": {"b": 1}}
    with pytest.raises(InvalidInput, match="Cannot overwrite mapping with scalar"):
        assign_nested(container, "A", 1)


SCALAR_VALUES = st.sampled_from(["0", "1", "-4", "true", "false", "3.5", "none", "debug"])
NAMESPACE_KEYS = st.sampled_from(["SERVICE__TIMEOUT", "SERVICE__ENDPOINT", "LOGGING__LEVEL"])


@given(st.dictionaries(NAMESPACE_KEYS, SCALAR_VALUES, min_size=1, max_size=3))
def test_env_loader_handles_random_namespace(entries) -> None:
    """Randomised namespace inputs should map to consistent nested/coerced payloads."""

    prefix = "DEMO"
    environ = {f"{prefix}_" + key: value for key, value in entries.items()}
    environ["IGNORED"] = "1"
    payload = DefaultEnvLoader(environ=environ).load(prefix).to_raw()

    def _expect(value: str) -> object:
        lowered = value.lower()
        if lowered in {"true", "false"}:
            return lowered == "true"
        if lowered in {"none", "null"}:
            return None
        try:
            return int(value)
        except ValueError:
            pass
        try:
            return float(value)
        except ValueError:
            return value

    for key, original in entries.items():
        parts = key.lower().split("__")
        node = payload
        for part in parts[:-1]:
            assert part in node
            node = node[part]
        assert node[parts[-1]] == _expect(original)
    assert "ignored" not in payload
