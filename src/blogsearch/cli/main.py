"""blogsearch CLI entry point."""

from __future__ import annotations

import importlib.metadata
from typing import Annotated

import typer

from blogsearch.cli.add import add_cmd
from blogsearch.cli.init import init_cmd
from blogsearch.cli.remove import remove_cmd
from blogsearch.cli.search import search_cmd
from blogsearch.cli.status import status_cmd
from blogsearch.log import configure_logging


def _installed_version() -> str:
    try:
        return importlib.metadata.version("blogsearch")
    except importlib.metadata.PackageNotFoundError:
        return "dev"


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"blogsearch {_installed_version()}")
        raise typer.Exit()


app = typer.Typer(
    name="blogsearch",
    help=(
        "blogsearch — semantic search for Markdown blog posts.\n\n"
        "  blogsearch add     Index a post (chunks embedded by a local model).\n"
        "  blogsearch search  Rank posts by similarity to a query."
    ),
    add_completion=False,
)


@app.callback()
def main_callback(
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            callback=_version_callback,
            is_eager=True,
            help="Show version and exit.",
        ),
    ] = False,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Log debug output to stderr."),
    ] = False,
) -> None:
    """blogsearch — semantic search for Markdown blog posts."""
    configure_logging("DEBUG" if verbose else None)


app.command("init")(init_cmd)
app.command("add")(add_cmd)
app.command("search")(search_cmd)
app.command("remove")(remove_cmd)
app.command("status")(status_cmd)


@app.command("version")
def version_cmd() -> None:
    """Show the installed blogsearch version."""
    typer.echo(f"blogsearch {_installed_version()}")


if __name__ == "__main__":
    app()
