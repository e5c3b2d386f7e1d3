import typer
from rich.table import Table

from ..domain.errors import SpacetimeTokenError
from .common import console, fail, get_controller

app = typer.Typer()


@app.callback(invoke_without_command=True)
def env_callback(ctx: typer.Context):
    """show the current environment when no subcommand is given."""
    if ctx.invoked_subcommand is None:
        show_current()


@app.command("current")
def show_current():
    """show the current environment from the CLI config."""
    try:
        address = get_controller().current_environment()
    except SpacetimeTokenError as e:
        raise fail(e)

    if address:
        console.print(f"Current environment: [cyan]{address}[/cyan]")
    else:
        console.print("[yellow]Environment not set.[/yellow]")


@app.command("list")
def list_environments():
    """list known environments from saved profiles."""
    try:
        environments = get_controller().list_environments()
    except SpacetimeTokenError as e:
        raise fail(e)

    if not environments:
        console.print("[yellow]No environments found. Add profiles first.[/yellow]")
        return

    table = Table(title="Environments")
    table.add_column("Address", style="cyan")
    table.add_column("Profiles", style="white")
    table.add_column("Status", style="green")

    for env in environments:
        status = "(current)" if env.current else ""
        table.add_row(env.address, ", ".join(env.profiles), status)

    console.print(table)


@app.command("use")
def use_environment(
    address: str,
    profile: str = typer.Option(None, "--profile", "-p", help="Profile to activate for this address"),
):
    """set the active environment and switch to a matching profile."""
    try:
        chosen = get_controller().use_environment(address, profile)
    except SpacetimeTokenError as e:
        raise fail(e)

    console.print(
        f"[green]✓[/green] Environment set to '{chosen.address}' "
        f"and switched to profile '[cyan]{chosen.name}[/cyan]'"
    )
