"""``python -m lib_config_tree`` runs the configuration compiler command line."""

from __future__ import annotations

import sys

from .cli import main

if __name__ == "__main__":  # pragma: no cover - exercised via python -m
    sys.exit(main(sys.argv[1:]))
