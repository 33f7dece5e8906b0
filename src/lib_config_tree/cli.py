"""CLI adapter for ``lib_config_tree`` built on ``lib_cli_exit_tools``.

Purpose
-------
Expose the configuration compiler via a first-class command line interface so
operators can inspect merge outcomes, origins, and record order without
writing Python code.

Contents
--------
* :data:`CLICK_CONTEXT_SETTINGS` – shared Click settings ensuring ``-h`` works.
* :func:`cli` – root command sharing the traceback preference with
  ``lib_cli_exit_tools`` and binding a trace id for the run.
* :func:`cli_info` – prints distribution metadata for quick diagnostics.
* :func:`cli_compile` – compiles files and prints the result (JSON or YAML,
  optionally redacted or annotated with origins).
* :func:`cli_order` – prints the record merge order.
* :func:`cli_explain` – prints the compiler's explanation of a compile.
* :func:`cli_extensions` – lists the decodable file extensions.
* :func:`main` – entry point used by ``console_scripts`` registration.

System Role
-----------
The CLI lives in the outermost layer of the Clean Architecture stack. It
drives :class:`lib_config_tree.core.Compiler` and never reaches into adapter
implementation details directly. ``lib_cli_exit_tools`` centralises the exit
code strategy so all commands behave consistently across shells and CI.
"""

from __future__ import annotations

import sys
import uuid
from importlib import metadata
from pathlib import Path
from typing import Final, Optional, Sequence

import lib_cli_exit_tools
import rich_click as click

from .adapters.filegroups.default import FileGroup
from .application.expand import Expansion, env_mapper
from .core import Compiler, default_registry
from .observability import trace_scope

CLICK_CONTEXT_SETTINGS = {"help_option_names": ["-h", "--help"]}
_TRACEBACK_SUMMARY_LIMIT: Final[int] = 500
_TRACEBACK_VERBOSE_LIMIT: Final[int] = 10_000

FORMAT_CHOICES: Final[tuple[str, ...]] = ("json", "yaml")

_PATHS_ARGUMENT = click.argument(
    "paths",
    nargs=-1,
    required=True,
    type=click.Path(path_type=Path, exists=True, file_okay=True, dir_okay=True, readable=True),
)
_RECURSE_OPTION = click.option(
    "--recurse/--no-recurse",
    default=False,
    help="Descend into sub-directories of directory arguments",
    show_default=True,
)


def _resolve_version() -> str:
    """Return the installed distribution version, or ``"0.0.0"`` when running from a checkout."""

    try:
        return metadata.version("lib_config_tree")
    except metadata.PackageNotFoundError:
        return "0.0.0"


@click.group(
    help="Hierarchical configuration tree compiler",
    context_settings=CLICK_CONTEXT_SETTINGS,
    invoke_without_command=False,
)
@click.version_option(
    version=_resolve_version(),
    prog_name="lib_config_tree",
    message="lib_config_tree version %(version)s",
)
@click.option(
    "--traceback/--no-traceback",
    is_flag=True,
    default=False,
    help="Show full Python traceback on errors",
)
@click.option("--trace-id", default=None, help="Tag every log event of this run (random when omitted)")
@click.pass_context
def cli(ctx: click.Context, traceback: bool, trace_id: Optional[str]) -> None:
    """Root command: share the traceback preference and bind a trace id for the run.

    Side Effects
        Sets ``lib_cli_exit_tools.config.traceback`` (and the matching
        colour flag) and binds :data:`lib_config_tree.observability.TRACE_ID`
        until the command finishes.
    """

    ctx.ensure_object(dict)
    ctx.obj["traceback"] = traceback
    lib_cli_exit_tools.config.traceback = traceback
    lib_cli_exit_tools.config.traceback_force_color = traceback
    ctx.with_resource(trace_scope(trace_id or f"cli-{uuid.uuid4().hex[:12]}"))


@cli.command("info", context_settings=CLICK_CONTEXT_SETTINGS)
def cli_info() -> None:
    """Print basic distribution metadata so users can confirm installation."""

    try:
        meta = metadata.metadata("lib_config_tree")
    except metadata.PackageNotFoundError:
        click.echo("lib_config_tree (metadata unavailable)")
        return
    click.echo(f"Info for {meta.get('Name', 'lib_config_tree')}:")
    click.echo(f"  Version         : {meta.get('Version', _resolve_version())}")
    click.echo(f"  Requires-Python : {meta.get('Requires-Python', '>=3.10')}")
    summary = meta.get("Summary")
    if summary:
        click.echo(f"  Summary         : {summary}")


@cli.command("extensions", context_settings=CLICK_CONTEXT_SETTINGS)
def cli_extensions() -> None:
    """List the file extensions the built-in decoders understand.

    Examples
    --------
    >>> from click.testing import CliRunner
    >>> CliRunner().invoke(cli, ["extensions"]).output.split()
    ['env', 'json', 'toml', 'yaml', 'yml']
    """

    for extension in default_registry().extensions():
        click.echo(extension)


@cli.command("compile", context_settings=CLICK_CONTEXT_SETTINGS)
@_PATHS_ARGUMENT
@_RECURSE_OPTION
@click.option(
    "--format",
    "fmt",
    type=click.Choice(FORMAT_CHOICES, case_sensitive=False),
    default="json",
    show_default=True,
    help="Output format",
)
@click.option("--key", default="", help="Only print the subtree at this dotted key")
@click.option(
    "--redact/--no-redact",
    default=True,
    show_default=True,
    help="Replace values marked ((secret)) with REDACTED",
)
@click.option(
    "--origins/--no-origins",
    default=False,
    help="Annotate every node with the file, line, and column it came from",
)
@click.option("--env-prefix", default=None, help="Merge environment variables with this prefix last")
@click.option(
    "--expand-env/--no-expand-env",
    default=False,
    help="Expand ${NAME} tokens from the process environment",
)
@click.option(
    "--lowercase-keys/--keep-key-case",
    default=False,
    help="Lower-case every key before merging",
)
@click.option(
    "--indent",
    type=int,
    default=2,
    show_default=True,
    help="JSON indent size (0 for compact output)",
)
def cli_compile(
    paths: Sequence[Path],
    recurse: bool,
    fmt: str,
    key: str,
    redact: bool,
    origins: bool,
    env_prefix: Optional[str],
    expand_env: bool,
    lowercase_keys: bool,
    indent: int,
) -> None:
    """Compile PATHS and print the merged configuration.

    Files merge in natural order of their names; directories contribute every
    decodable file they contain.
    """

    compiler = _build_compiler(
        paths,
        recurse=recurse,
        env_prefix=env_prefix,
        expand_env=expand_env,
        lowercase_keys=lowercase_keys,
        indent=indent or None,
    )
    compiler.compile()
    payload = compiler.marshal(fmt.lower(), key=key, redact_secrets=redact, include_origins=origins)
    click.echo(payload.decode("utf-8").rstrip("\n"))


@cli.command("order", context_settings=CLICK_CONTEXT_SETTINGS)
@_PATHS_ARGUMENT
@_RECURSE_OPTION
def cli_order(paths: Sequence[Path], recurse: bool) -> None:
    """Print the record names of PATHS in the order they are merged."""

    compiler = _build_compiler(paths, recurse=recurse)
    compiler.compile()
    for name in compiler.show_order():
        click.echo(name)


@cli.command("explain", context_settings=CLICK_CONTEXT_SETTINGS)
@_PATHS_ARGUMENT
@_RECURSE_OPTION
def cli_explain(paths: Sequence[Path], recurse: bool) -> None:
    """Compile PATHS and describe the options and steps involved."""

    compiler = _build_compiler(paths, recurse=recurse)
    compiler.compile()
    click.echo(compiler.explain().rstrip("\n"))


def _build_compiler(
    paths: Sequence[Path],
    *,
    recurse: bool = False,
    env_prefix: Optional[str] = None,
    expand_env: bool = False,
    lowercase_keys: bool = False,
    indent: Optional[int] = 2,
) -> Compiler:
    """Translate command line arguments into a configured :class:`Compiler`."""

    compiler = Compiler(default_registry(json_indent=indent), key_case=str.lower if lowercase_keys else None)
    for group in _groups(paths, recurse):
        compiler.add_file_group(group)
    if env_prefix is not None:
        compiler.add_environment(env_prefix)
    if expand_env:
        compiler.add_expansion(Expansion(name="environment", mapper=env_mapper(), origin="env"))
    return compiler


def _groups(paths: Sequence[Path], recurse: bool) -> list[FileGroup]:
    """Return one file group per argument: directories as roots, files by name.

    Examples
    --------
    >>> [group.describe() for group in _groups([Path(".")], recurse=True)]
    ['.: . (recurse)']
    """

    groups = []
    for path in paths:
        if path.is_dir():
            groups.append(FileGroup(path, recurse=recurse))
        else:
            groups.append(FileGroup(path.parent, (path.name,)))
    return groups


def main(argv: Optional[Sequence[str]] = None, *, restore_traceback: bool = True) -> int:
    """Execute the CLI with shared exit handling and return the exit code."""

    previous_traceback = getattr(lib_cli_exit_tools.config, "traceback", False)
    previous_force_color = getattr(lib_cli_exit_tools.config, "traceback_force_color", False)
    try:
        try:
            return lib_cli_exit_tools.run_cli(
                cli,
                argv=list(argv) if argv is not None else None,
                prog_name="lib_config_tree",
            )
        except BaseException as exc:  # noqa: BLE001 - funnel through shared printers
            lib_cli_exit_tools.print_exception_message(
                trace_back=lib_cli_exit_tools.config.traceback,
                length_limit=(
                    _TRACEBACK_VERBOSE_LIMIT if lib_cli_exit_tools.config.traceback else _TRACEBACK_SUMMARY_LIMIT
                ),
            )
            return lib_cli_exit_tools.get_system_exit_code(exc)
    finally:
        if restore_traceback:
            lib_cli_exit_tools.config.traceback = previous_traceback
            lib_cli_exit_tools.config.traceback_force_color = previous_force_color


if __name__ == "__main__":  # pragma: no cover - exercised via console entry point
    raise SystemExit(main(sys.argv[1:]))
