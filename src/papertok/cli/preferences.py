"""Preference commands."""
from typing import List

import typer

from ..services.preference_service import PreferenceService
from ..utils.display import (
    KNOWN_CATEGORIES, console, print_error, print_info, print_preference, print_success,
)

app = typer.Typer(
    help="Category preference management",
    no_args_is_help=False,
    invoke_without_command=True,
)


@app.callback()
def prefs_callback(ctx: typer.Context):
    """Preference management - shows current preferences when run without a subcommand."""
    if ctx.invoked_subcommand is None:
        show()


@app.command("set-categories")
def set_categories(
    categories: List[str] = typer.Argument(..., help="Categories (e.g. cs.AI cs.LG)"),
):
    """Replace the selected categories."""
    service = PreferenceService()
    preference = service.set_categories(categories)
    print_success(f"Categories set: {', '.join(preference.selected_categories)}")


@app.command("add-category")
def add_category(
    category: str = typer.Argument(..., help="Category (e.g. cs.AI, stat.ML)"),
):
    """Add a category to the selection."""
    service = PreferenceService()
    service.add_category(category)
    print_success(f"Category added: {category}")


@app.command("remove-category")
def remove_category(
    category: str = typer.Argument(..., help="Category"),
):
    """Remove a category from the selection."""
    service = PreferenceService()
    if service.remove_category(category):
        print_success(f"Category removed: {category}")
    else:
        print_error(f"Category not found: {category}")


@app.command("clear")
def clear():
    """Delete the stored preference."""
    service = PreferenceService()
    if service.clear_preference():
        print_success("Preference cleared")
    else:
        print_info("No preference stored")


@app.command("categories")
def categories():
    """List suggested arXiv categories."""
    selected = set(PreferenceService().get_categories())

    console.print("[bold]Suggested Categories[/bold]")
    for code, chinese, english in KNOWN_CATEGORIES:
        mark = " [yellow]✓[/yellow]" if code in selected else ""
        console.print(f"  [green]{code:8s}[/green] {english} [dim]({chinese})[/dim]{mark}")


@app.command("show")
def show():
    """View current preferences."""
    service = PreferenceService()
    print_preference(service.get_preference())
