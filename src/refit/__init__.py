"""refit CLI entry point.

This package provides a Click-based CLI for upgrading a locally installed
asset kit (templates, guidelines, scripts and a user configuration file) to a
newer version with backup, merge, migration and rollback support. See
`refit --help` for details.
"""

from refit.cli.cli import cli


def main() -> None:
    """CLI entry point used by the `refit` console script."""
    cli()
