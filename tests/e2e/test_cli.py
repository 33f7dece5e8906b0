"""End-to-end CLI coverage for the public commands exposed by lib_config_tree.

These tests exercise the documented CLI workflows (compile, order, explain,
metadata lookups) against real files in a temporary directory. They double as
regression tests for the exit-code handling shared through
``lib_cli_exit_tools``.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path

import lib_cli_exit_tools
import yaml
from click.testing import CliRunner

from lib_config_tree import cli


def _write(path: Path, body: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(body, encoding="utf-8")
    return path


def _runner() -> CliRunner:
    """Return a fresh CLI runner so each test starts from a clean state."""

    return CliRunner()


def _layered(tmp_path: Path) -> Path:
    root = tmp_path / "conf"
    _write(root / "1-base.toml", '[service]\ntimeout = 15\nendpoint = "https://api.example.com"\n')
    _write(root / "2-secrets.yml", "service:\n  token((secret)): abc123\n")
    _write(root / "extra" / "3-nested.json", '{"service": {"timeout": 30}}')
    return root


def test_cli_compile_outputs_redacted_json(tmp_path: Path) -> None:
    """`compile` should merge a directory and hide secrets by default."""

    result = _runner().invoke(cli.cli, ["compile", str(_layered(tmp_path))])
    assert result.exit_code == 0, result.output
    payload = json.loads(result.output)
    assert payload == {
        "service": {"endpoint": "https://api.example.com", "timeout": 15, "token": "REDACTED"},
    }


def test_cli_compile_recurse_and_no_redact(tmp_path: Path) -> None:
    result = _runner().invoke(cli.cli, ["compile", "--recurse", "--no-redact", str(_layered(tmp_path))])
    assert result.exit_code == 0, result.output
    payload = json.loads(result.output)
    assert payload["service"]["timeout"] == 30
    assert payload["service"]["token"] == "abc123"


def test_cli_compile_yaml_subtree_with_origins(tmp_path: Path) -> None:
    root = _layered(tmp_path)
    result = _runner().invoke(
        cli.cli,
        ["compile", "--format", "yaml", "--key", "service.token", "--origins", "--no-redact", str(root)],
    )
    assert result.exit_code == 0, result.output
    payload = yaml.safe_load(result.output)
    assert payload["value"] == "abc123"
    assert payload["origins"] == [{"source": "2-secrets.yml", "line": 2, "column": 20}]


def test_cli_compile_compact_indent(tmp_path: Path) -> None:
    config = _write(tmp_path / "app.json", '{"b": 1, "a": 2}')
    result = _runner().invoke(cli.cli, ["compile", "--indent", "0", str(config)])
    assert result.exit_code == 0
    assert result.output.strip() == '{"a": 2, "b": 1}'


def test_cli_compile_merges_files_from_several_arguments_by_name(tmp_path: Path) -> None:
    second = _write(tmp_path / "b" / "20-late.json", '{"level": "late"}')
    first = _write(tmp_path / "a" / "10-early.json", '{"level": "early"}')
    result = _runner().invoke(cli.cli, ["compile", str(second), str(first)])
    assert result.exit_code == 0
    assert json.loads(result.output) == {"level": "late"}


def test_cli_compile_env_prefix_and_expansion(tmp_path: Path) -> None:
    config = _write(tmp_path / "app.yml", "Greeting: hello ${CLI_USER}\nport: 1\n")
    result = _runner().invoke(
        cli.cli,
        ["compile", "--env-prefix", "DEMO", "--expand-env", "--lowercase-keys", str(config)],
        env={"CLI_USER": "alice", "DEMO_PORT": "8080"},
    )
    assert result.exit_code == 0, result.output
    assert json.loads(result.output) == {"greeting": "hello alice", "port": 8080}


def test_cli_compile_reports_invalid_files(tmp_path: Path) -> None:
    config = _write(tmp_path / "broken.json", "{")
    result = _runner().invoke(cli.cli, ["compile", str(config)])
    assert result.exit_code != 0
    assert "broken.json" in str(result.exception)


def test_cli_order_lists_records(tmp_path: Path) -> None:
    result = _runner().invoke(cli.cli, ["order", "--recurse", str(_layered(tmp_path))])
    assert result.exit_code == 0
    assert result.output.split() == ["1-base.toml", "2-secrets.yml", "3-nested.json"]


def test_cli_explain_describes_the_compile(tmp_path: Path) -> None:
    result = _runner().invoke(cli.cli, ["explain", str(_layered(tmp_path))])
    assert result.exit_code == 0
    assert "Options in order applied:" in result.output
    assert "Records processed in order." in result.output
    assert "1-base.toml" in result.output


def test_cli_extensions_lists_decoders() -> None:
    result = _runner().invoke(cli.cli, ["extensions"])
    assert result.exit_code == 0
    assert result.output.split() == ["env", "json", "toml", "yaml", "yml"]


def test_cli_info_handles_missing_metadata(monkeypatch) -> None:
    """`info` must degrade gracefully when package metadata is unavailable."""

    def _raise_pkg_not_found(*_args, **_kwargs):
        raise cli.metadata.PackageNotFoundError()

    monkeypatch.setattr(cli.metadata, "metadata", _raise_pkg_not_found)
    result = _runner().invoke(cli.cli, ["info"])
    assert result.exit_code == 0
    assert "metadata unavailable" in result.output


def test_cli_main_restores_traceback_flag(tmp_path: Path) -> None:
    """`main` should restore lib_cli_exit_tools tracebacks after execution."""

    previous_traceback = getattr(lib_cli_exit_tools.config, "traceback", False)
    config = _write(tmp_path / "app.toml", "value = 1\n")
    exit_code = cli.main(["--traceback", "order", str(config)], restore_traceback=True)
    assert exit_code == 0
    assert getattr(lib_cli_exit_tools.config, "traceback", False) == previous_traceback


def test_cli_main_returns_non_zero_on_failure(tmp_path: Path) -> None:
    config = _write(tmp_path / "bad.yml", "a: [1\n")
    assert cli.main(["compile", str(config)]) != 0


def test_cli_trace_id_tags_compile_events(tmp_path: Path, caplog) -> None:
    caplog.set_level(logging.INFO, logger="lib_config_tree")
    config = _write(tmp_path / "app.json", '{"a": 1}')
    result = _runner().invoke(cli.cli, ["--trace-id", "run-7", "order", str(config)])
    assert result.exit_code == 0
    compiled = [record for record in caplog.records if record.message == "configuration_compiled"]
    assert compiled and compiled[-1].context["trace_id"] == "run-7"
