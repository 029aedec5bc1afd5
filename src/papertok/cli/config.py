"""AI configuration commands."""
from typing import Optional

import typer
from rich.progress import Progress, SpinnerColumn, TextColumn

from ..core.models import APIConfiguration, LLMProviderType
from ..services.credential_store import CredentialStore
from ..services.providers import LLMGateway, check_connection
from .bridge import run
from ..utils.display import console, print_error, print_info, print_success

app = typer.Typer(
    help="AI provider configuration",
    no_args_is_help=False,
    invoke_without_command=True,
)


def mask_key(api_key: str) -> str:
    if len(api_key) <= 8:
        return "*" * len(api_key)
    return f"{api_key[:4]}...{api_key[-4:]}"


def _require_config(store: CredentialStore) -> APIConfiguration:
    config = store.load()
    if config is None:
        print_error("No AI provider configured. Use 'ptk config set-provider' first")
        raise typer.Exit(1)
    return config


@app.callback()
def config_callback(ctx: typer.Context):
    """AI configuration - shows current settings when run without subcommand."""
    if ctx.invoked_subcommand is None:
        show()


@app.command("show")
def show():
    """Show current AI settings."""
    config = CredentialStore().load()

    console.print("[bold]AI Configuration[/bold]")
    console.print()
    if config is None:
        console.print("  [dim]Not configured[/dim]")
    else:
        console.print(f"  Provider : [cyan]{config.provider.value}[/cyan]")
        console.print(f"  Model    : [cyan]{config.model_name}[/cyan]")
        console.print(f"  Base URL : [cyan]{config.base_url}[/cyan]")
        console.print(f"  API key  : [cyan]{mask_key(config.api_key)}[/cyan]")

    console.print()
    console.print("[bold]Available Providers[/bold]")
    for ptype in LLMProviderType:
        current = (
            " [yellow]← current[/yellow]" if config and ptype == config.provider else ""
        )
        console.print(f"  {ptype.value:10s} {ptype.default_model}{current}")


@app.command("set-provider")
def set_provider(
    name: str = typer.Argument(..., help="Provider name (anthropic, openai, google)"),
    api_key: Optional[str] = typer.Option(None, "--api-key", "-k", help="API key"),
    model: Optional[str] = typer.Option(None, "--model", "-m", help="Model name"),
    base_url: Optional[str] = typer.Option(None, "--base-url", help="API base URL"),
):
    """Change AI provider. Model and base URL reset to the provider defaults."""
    try:
        provider_type = LLMProviderType(name.lower())
    except ValueError:
        valid = ", ".join(p.value for p in LLMProviderType)
        print_error(f"Unknown provider: {name}. Valid: {valid}")
        raise typer.Exit(1) from None

    store = CredentialStore()
    existing = store.load()
    if api_key is None:
        if existing is not None and existing.provider == provider_type:
            api_key = existing.api_key
        else:
            api_key = typer.prompt("API key", hide_input=True)

    config = APIConfiguration(
        provider=provider_type,
        api_key=api_key.strip(),
        base_url=base_url or "",
        model_name=model or "",
    )
    store.save(config)
    print_success(f"Provider set to: {provider_type.value} ({config.model_name})")


@app.command("set-key")
def set_key(
    api_key: str = typer.Option(..., prompt=True, hide_input=True, help="API key"),
):
    """Replace the API key."""
    store = CredentialStore()
    config = _require_config(store)
    config.api_key = api_key.strip()
    store.save(config)
    print_success(f"API key set: {mask_key(config.api_key)}")


@app.command("set-model")
def set_model(
    name: str = typer.Argument(..., help="Model name (use 'default' to reset)"),
):
    """Set AI model override."""
    store = CredentialStore()
    config = _require_config(store)
    if name.lower() == "default":
        config.model_name = config.provider.default_model
        print_success("Model reset to provider default")
    else:
        config.model_name = name
        print_success(f"Model set to: {name}")
    store.save(config)


@app.command("set-base-url")
def set_base_url(
    url: str = typer.Argument(..., help="Base URL (use 'default' to reset)"),
):
    """Set API base URL (for proxies and compatible endpoints)."""
    store = CredentialStore()
    config = _require_config(store)
    if url.lower() == "default":
        config.base_url = config.provider.default_base_url
    else:
        config.base_url = url.rstrip("/")
    store.save(config)
    print_success(f"Base URL set to: {config.base_url}")


@app.command("test")
def test():
    """Test current provider connection."""
    store = CredentialStore()
    config = _require_config(store)

    console.print(f"Testing [cyan]{config.provider.value}[/cyan] ({config.model_name})...")

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        console=console,
    ) as progress:
        progress.add_task("Waiting for response...", total=None)
        response = run(check_connection(LLMGateway(store)))

    output = response.content.strip()
    if output:
        print_success(f"Response: {output[:200]}")
    else:
        print_error("No response received")
        raise typer.Exit(1)


@app.command("delete")
def delete(
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
):
    """Delete the stored API configuration."""
    if not yes and not typer.confirm("Delete the stored API configuration?"):
        raise typer.Abort()

    if CredentialStore().delete():
        print_success("API configuration deleted")
    else:
        print_info("No API configuration stored")
