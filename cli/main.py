#!/usr/bin/env python3
"""
bbr CLI - tamper-evident bag tools

Main entrypoint for the bbr command-line tool.
"""

import typer
from rich.console import Console
from rich.table import Table

from bbr.config import Settings
from bbr.core.errors import ConfigError
from bbr.logging_config import setup_logging
from cli.commands import bag, keys, verify

app = typer.Typer(
    name="bbr",
    help="Tamper-evident bag storage CLI",
    add_completion=False,
)

console = Console()

app.add_typer(bag.app, name="bag", help="Bag inspection")

app.command(name="verify")(verify.verify_command)
app.command(name="keygen")(keys.keygen_command)


@app.callback()
def configure():
    """Configure logging from BBR_LOG_LEVEL / BBR_LOG_FORMAT."""
    try:
        setup_logging(Settings.from_env())
    except ConfigError as e:
        console.print(f"[red]Configuration error:[/red] {e}")
        raise typer.Exit(2)


@app.command()
def version():
    """Show version information."""
    from bbr import __version__ as engine_version
    from cli import __version__

    table = Table(show_header=False, box=None)
    table.add_row("[bold]bbr CLI[/bold]", f"v{__version__}")
    table.add_row("Storage", f"v{engine_version}")
    table.add_row("Digest", Settings().hash_algorithm)

    console.print(table)


def main():
    """Main entrypoint."""
    app()


if __name__ == "__main__":
    main()
