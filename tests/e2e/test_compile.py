"""End-to-end compile scenarios over real files in a temporary directory.

These tests drive :class:`lib_config_tree.Compiler` the way an application
would: register files, values, callbacks, and the environment, compile, then
read the result back through lookups, the mapping view, unmarshal, and
marshal.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path

import pytest
import yaml

from lib_config_tree import (
    Compiler,
    Conflict,
    Expansion,
    InvalidInput,
    NotCompiled,
    NotFound,
    Origin,
    ValidationError,
    env_mapper,
    lexical_sort_key,
)


@dataclass
class Database:
    host: str
    port: int


def write(path: Path, content: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    return path


@pytest.fixture()
def layered(tmp_path: Path) -> Path:
    root = tmp_path / "conf"
    write(root / "2-base.json", '{"db": {"host": "localhost", "port": 5432}, "hosts": ["a"]}')
    write(root / "10-site.yml", "db:\n  host: db.internal\nhosts:\n  - b\n")
    write(root / "zz-local.env", "DB__PASSWORD((secret))=hunter2\n")
    write(root / "notes.txt", "not configuration")
    return root


def test_files_merge_in_natural_name_order(layered: Path) -> None:
    compiler = Compiler()
    compiler.add_files(layered)
    compiler.compile()
    assert compiler.show_order() == ["2-base.json", "10-site.yml", "zz-local.env"]
    assert compiler.fetch() == {
        "db": {"host": "db.internal", "password": "hunter2", "port": 5432},
        "hosts": ["a", "b"],
    }


def test_lexical_sorter_changes_the_order(layered: Path) -> None:
    compiler = Compiler(sorter=lexical_sort_key)
    compiler.add_files(layered)
    compiler.compile()
    assert compiler.show_order() == ["10-site.yml", "2-base.json", "zz-local.env"]
    assert compiler.fetch("db.host") == "localhost"


def test_origins_point_at_file_line_and_column(layered: Path) -> None:
    compiler = Compiler()
    compiler.add_files(layered)
    compiler.compile()
    assert compiler.origin("db.host") == (Origin("10-site.yml", 2, 9),)
    assert [origin.source for origin in compiler.origin("hosts")] == ["2-base.json", "10-site.yml"]
    assert compiler.fetch_tree("db.password").origin_string() == "zz-local.env:1[1]"


def test_marshal_redacts_and_annotates(layered: Path) -> None:
    compiler = Compiler()
    compiler.add_files(layered)
    compiler.compile()

    plain = json.loads(compiler.marshal("json"))
    assert plain["db"]["password"] == "hunter2"

    redacted = json.loads(compiler.marshal("json", redact_secrets=True))
    assert redacted["db"]["password"] == "REDACTED"
    assert redacted["db"]["host"] == "db.internal"

    annotated = yaml.safe_load(compiler.marshal("yaml", key="db", include_origins=True))
    assert annotated["map"]["host"]["origins"] == [{"source": "10-site.yml", "line": 2, "column": 9}]

    with pytest.raises(NotFound):
        compiler.marshal("xml")


def test_config_view_reads_and_redacts(layered: Path) -> None:
    compiler = Compiler()
    compiler.add_files(layered)
    compiler.compile()
    config = compiler.config()
    assert config["db"]["port"] == 5432
    assert config.get("db.host") == "db.internal"
    assert config.get("db.missing", "fallback") == "fallback"
    assert config.is_secret("db.password")
    assert json.loads(config.to_json(redact=True))["db"]["password"] == "REDACTED"


def test_failed_compile_keeps_the_last_good_tree(layered: Path, caplog: pytest.LogCaptureFixture) -> None:
    compiler = Compiler()
    compiler.add_files(layered)
    compiler.compile()

    compiler.add_value("zzz-strict", {"db": {"host((fail))": "elsewhere"}})
    caplog.set_level(logging.ERROR, logger="lib_config_tree")
    with pytest.raises(Conflict):
        compiler.compile()

    assert compiler.fetch("db.host") == "db.internal"
    assert compiler.show_order() == ["2-base.json", "10-site.yml", "zz-local.env"]
    assert any(record.message == "compile_failed" for record in caplog.records)


def test_lookups_before_compile_raise_not_compiled() -> None:
    compiler = Compiler()
    with pytest.raises(NotCompiled):
        compiler.fetch("anything")
    with pytest.raises(NotCompiled):
        compiler.show_order()
    with pytest.raises(NotCompiled):
        compiler.config()
    with pytest.raises(NotCompiled):
        compiler.marshal()


def test_compile_without_records_is_empty() -> None:
    compiler = Compiler()
    compiler.compile()
    assert compiler.fetch() is None
    assert compiler.show_order() == []
    assert dict(compiler.config()) == {}


def test_defaults_come_first_in_registration_order() -> None:
    compiler = Compiler()
    compiler.add_value("b-override", {"level": "debug"})
    compiler.add_value("zeta-defaults", {"level": "info", "name": "svc"}, as_default=True)
    compiler.add_value("alpha-defaults", {"level": "warning"}, as_default=True)
    compiler.compile()
    assert compiler.show_order() == ["zeta-defaults", "alpha-defaults", "b-override"]
    assert compiler.fetch() == {"level": "debug", "name": "svc"}


def test_values_are_nested_under_keys_and_tagged_with_their_name() -> None:
    compiler = Compiler()
    compiler.add_value("limits", {"cpu": 2}, key="service.resources")
    compiler.compile()
    assert compiler.fetch("service.resources.cpu") == 2
    assert compiler.origin("service.resources.cpu") == (Origin("limits"),)


def test_value_callbacks_read_what_was_merged_before_them() -> None:
    compiler = Compiler()
    compiler.add_value("base", {"db": {"host": "pg", "port": "5432"}})
    compiler.add_value_fn("derived", lambda name, unmarshal: unmarshal("db", Database).port + 1, key="next_port")
    compiler.compile()
    assert compiler.fetch("next_port") == 5433


def test_value_callback_failure_aborts_the_compile() -> None:
    def broken(name, unmarshal):
        return unmarshal("missing", Database)

    compiler = Compiler()
    compiler.add_value_fn("broken", broken)
    with pytest.raises(NotFound):
        compiler.compile()


def test_unmarshal_with_overrides(layered: Path) -> None:
    compiler = Compiler()
    compiler.add_files(layered)
    compiler.compile()
    with pytest.raises(ValidationError, match="'password' is not used by Database"):
        compiler.unmarshal("db", Database, error_unused=True)

    @dataclass
    class Credentials:
        host: str
        password: str

    assert compiler.unmarshal("db", Credentials).password == "hunter2"


def test_environment_is_read_at_compile_time() -> None:
    environ = {"DEMO_DB__PORT": "6432"}
    compiler = Compiler()
    compiler.add_value("base", {"db": {"port": 5432}})
    compiler.add_environment("DEMO", environ=environ)
    compiler.compile()
    assert compiler.fetch("db.port") == 6432
    assert compiler.origin("db.port") == (Origin("env:DEMO_DB__PORT"),)

    environ["DEMO_DB__PORT"] = "7432"
    compiler.compile()
    assert compiler.fetch("db.port") == 7432


def test_environment_overrides_files_named_late_in_the_order(tmp_path: Path) -> None:
    (tmp_path / "zz.json").write_text('{"db": {"port": 1}}', encoding="utf-8")
    compiler = Compiler()
    compiler.add_files(tmp_path)
    compiler.add_environment("DEMO", environ={"DEMO_DB__PORT": "6432"})
    compiler.compile()
    assert compiler.show_order() == ["zz.json", "~environment"]
    assert compiler.fetch("db.port") == 6432


def test_expansions_resolve_tree_and_environment_tokens() -> None:
    compiler = Compiler()
    compiler.add_value("app", {"host": "db", "url": "pg://${USER}@${host}/app"})
    compiler.add_expansion(Expansion(name="self", from_tree=True))
    compiler.add_expansion(Expansion(name="env", mapper=env_mapper({"USER": "alice"}), origin="env"))
    compiler.compile()
    assert compiler.fetch("url") == "pg://alice@db/app"
    assert [origin.source for origin in compiler.origin("url")] == ["app", "env"]


def test_expansions_are_visible_to_later_callbacks() -> None:
    compiler = Compiler()
    compiler.add_value("a", {"name": "${USER}"})
    compiler.add_value_fn("b", lambda name, unmarshal: unmarshal("name", str).upper(), key="shout")
    compiler.add_expansion(Expansion(name="env", mapper=env_mapper({"USER": "alice"})))
    compiler.compile()
    assert compiler.fetch("shout") == "ALICE"


def test_key_case_and_custom_delimiter(tmp_path: Path) -> None:
    write(tmp_path / "app.yml", "Server:\n  HOST: example\n")
    compiler = Compiler(key_delimiter="/", key_case=str.lower)
    compiler.add_files(tmp_path, "app.yml")
    compiler.compile()
    assert compiler.fetch("server/host") == "example"


def test_clear_in_a_later_file_drops_everything_before(tmp_path: Path) -> None:
    write(tmp_path / "1.json", '{"a": 1}')
    write(tmp_path / "2.yml", "reset((clear)): true\n")
    write(tmp_path / "3.toml", "b = 2\n")
    compiler = Compiler()
    compiler.add_files(tmp_path)
    compiler.compile()
    assert compiler.fetch() == {"b": 2}


def test_halting_group_stops_the_walk(tmp_path: Path) -> None:
    first = tmp_path / "first"
    second = tmp_path / "second"
    write(second / "b.json", '{"b": 1}')
    first.mkdir()

    compiler = Compiler()
    compiler.add_files(first, halt=True)
    compiler.add_files(second, halt=True)
    compiler.compile()
    assert compiler.show_order() == ["b.json"]

    write(first / "a.json", '{"a": 1}')
    compiler.compile()
    assert compiler.show_order() == ["a.json"]


def test_std_layout_prefers_the_working_directory(tmp_path: Path) -> None:
    work, home, etc = tmp_path / "work", tmp_path / "home", tmp_path / "etc"
    write(work / "conf.d" / "10-local.yml", "source: work\n")
    write(home / ".demo" / "demo.yml", "source: home\n")
    write(etc / "demo" / "demo.toml", 'source = "etc"\n')
    env = {"HOME": str(home), "LIB_CONFIG_TREE_ETC": str(etc)}

    compiler = Compiler()
    compiler.add_std_layout("demo", cwd=work, env=env)
    compiler.compile()
    assert compiler.fetch("source") == "work"

    fallback = Compiler()
    fallback.add_std_layout("demo", cwd=tmp_path / "empty", env=env)
    fallback.compile()
    assert fallback.fetch("source") == "home"


def test_auto_compile_recompiles_on_registration() -> None:
    compiler = Compiler(auto_compile=True)
    compiler.add_value("one", {"a": 1})
    assert compiler.fetch("a") == 1
    compiler.add_value("two", {"a": 2})
    assert compiler.fetch("a") == 2


def test_explain_describes_options_and_steps() -> None:
    compiler = Compiler()
    compiler.add_value("defaults", {"a": 1}, as_default=True)
    compiler.add_expansion(Expansion(name="self", from_tree=True))
    assert compiler.explain().endswith("Not compiled.\n")

    compiler.compile()
    text = compiler.explain()
    assert "  1. add_value default 'defaults'" in text
    assert "Key delimiter: '.'" in text
    assert "Sorter: natural_sort_key" in text
    assert "Records processed in order.\n  1. defaults\n" in text
    assert "Variable expansions processed in order.\n  1. self: '${' ... '}' from tree, maximum 10000" in text


def test_order_list_filters_and_sorts_names() -> None:
    names = ["20-b.yml", "3-a.json", "README.md", "1.env", "x.TOML"]
    assert Compiler().order_list(names) == ["1.env", "3-a.json", "20-b.yml", "x.TOML"]
    assert Compiler().order_list([".env", ".gitignore"]) == [".env"]


def test_compile_logs_success(caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.DEBUG, logger="lib_config_tree")
    compiler = Compiler()
    compiler.add_value("one", {"a": 1})
    compiler.compile()
    messages = [record.message for record in caplog.records]
    assert "record_merged" in messages
    assert "configuration_compiled" in messages


def test_empty_key_delimiter_is_rejected() -> None:
    with pytest.raises(InvalidInput):
        Compiler(key_delimiter="")
