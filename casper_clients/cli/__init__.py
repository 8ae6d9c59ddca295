"""
casper_clients.cli
==================

Command-line interface for the contract clients, exposed as the
`casper-clients` console script. Typer and the CLI module are only imported
when the CLI is actually used.

Quick usage
-----------
- From Python:
    >>> from casper_clients.cli import main
    >>> main(["state-root"])

- From shell:
    $ casper-clients --help
"""

from __future__ import annotations

from importlib import import_module
from typing import Any, List, Optional

from ..version import __version__

__all__: List[str] = ["__version__", "main", "run", "app"]

_SUBMODULE = "casper_clients.cli.main"


def _load() -> Any:
    return import_module(_SUBMODULE)


def __getattr__(name: str) -> Any:  # PEP 562 lazy attribute access
    if name == "app":
        return _load().app
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


def main(argv: Optional[list[str]] = None) -> int:
    """Execute the CLI and return the process exit code."""
    return int(_load().main(argv))


def run(argv: Optional[list[str]] = None) -> int:
    """Alias for :func:`main`."""
    return main(argv)
