"""CLI main entry point."""
import sys

import typer
from loguru import logger
from rich.console import Console

from ..core.database import init_db

app = typer.Typer(
    name="ptk",
    help="PaperTok - Ranked arXiv feed with AI summaries",
    no_args_is_help=True,
)

console = Console()


def version_callback(value: bool):
    if value:
        from .. import __version__
        console.print(f"PaperTok v{__version__}")
        raise typer.Exit()


def configure_logging(verbose: bool) -> None:
    """Send service logs to stderr; DEBUG when verbose."""
    logger.remove()
    logger.add(
        sys.stderr,
        level="DEBUG" if verbose else "WARNING",
        format="<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | {message}",
    )


@app.callback()
def main(
    version: bool = typer.Option(
        None, "--version",
        callback=version_callback,
        is_eager=True,
        help="Show version",
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose logging"),
):
    """PaperTok - Ranked arXiv feed with AI summaries."""
    configure_logging(verbose)
    # Initialize DB
    init_db()


# Import and register subcommands
from . import feed, preferences, config

app.add_typer(preferences.app, name="prefs", help="Category preferences")
app.add_typer(config.app, name="config", help="AI provider settings")

# Single commands
app.command()(feed.feed)
app.command()(feed.show)
app.command()(feed.summarize)
app.command()(feed.translate)
app.command(name="like")(feed.like)
app.command(name="skip")(feed.skip)
app.command(name="read")(feed.read)
app.command()(feed.favorites)
app.command()(feed.papers)


if __name__ == "__main__":
    app()
