"""crudkit command-line interface.

Built with Click and Rich on top of the file and HTTP adapters.
"""

from crudkit.cli.main import cli

__all__ = ["cli"]
