"""Public package surface for ``lib_config_tree``.

Everything an application needs to compile configuration is re-exported here:
the :class:`Compiler`, the tree types, the error taxonomy, and the building
blocks for custom codecs and expansions. ``python -m lib_config_tree`` runs
the command line interface.
"""

from __future__ import annotations

from .adapters.env.default import DefaultEnvLoader, default_env_prefix
from .adapters.filegroups.default import FileGroup, std_layout
from .application.expand import Expansion, env_mapper, expand_tree, tree_mapper
from .application.merge import merge, merge_trees
from .application.records import lexical_sort_key, natural_sort_key
from .application.registry import CodecRegistry
from .application.unmarshal import UnmarshalOptions, unmarshal
from .core import Compiler, default_registry
from .domain.commands import Command, Directive, get_command, get_valid_command, resolve_commands
from .domain.config import EMPTY_CONFIG, Config
from .domain.errors import (
    ArrayOutOfBounds,
    ConfigError,
    Conflict,
    ExpansionDepthExceeded,
    InvalidCommand,
    InvalidFormat,
    InvalidInput,
    InvalidPath,
    NotCompiled,
    NotFound,
    ValidationError,
)
from .domain.tree import EMPTY_TREE, REDACTED_TEXT, Kind, Object, Origin
from .observability import bind_trace_id, get_logger, trace_scope

__all__ = [
    "ArrayOutOfBounds",
    "CodecRegistry",
    "Command",
    "Compiler",
    "Config",
    "ConfigError",
    "Conflict",
    "DefaultEnvLoader",
    "Directive",
    "EMPTY_CONFIG",
    "EMPTY_TREE",
    "Expansion",
    "ExpansionDepthExceeded",
    "FileGroup",
    "InvalidCommand",
    "InvalidFormat",
    "InvalidInput",
    "InvalidPath",
    "Kind",
    "NotCompiled",
    "NotFound",
    "Object",
    "Origin",
    "REDACTED_TEXT",
    "UnmarshalOptions",
    "ValidationError",
    "bind_trace_id",
    "default_env_prefix",
    "default_registry",
    "env_mapper",
    "expand_tree",
    "get_command",
    "get_logger",
    "get_valid_command",
    "lexical_sort_key",
    "merge",
    "merge_trees",
    "natural_sort_key",
    "resolve_commands",
    "std_layout",
    "trace_scope",
    "tree_mapper",
    "unmarshal",
]
