import logging

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.prompt import Confirm, Prompt
from rich.table import Table

from ..config import LOCAL_ALIAS, AppSettings, load_settings, save_settings
from ..domain.errors import SpacetimeTokenError
from .common import console, fail, get_config_dir, get_controller
from .env_commands import app as env_app

app = typer.Typer(help="Manages SpacetimeDB tokens via profiles")

app.add_typer(env_app, name="env", help="Manage or inspect environments (server addresses)")


@app.callback()
def main_callback(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logging")
):
    """configure logging before any command runs."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
    )


@app.command("set")
def set_profile(
    profile_name: str,
    token: str,
    address: str = typer.Option(None, "--address", help="Server address, e.g. 'local' or 'https://host/spacetime'"),
):
    """save/update a profile with a token and set it active."""
    try:
        profile = get_controller().set_profile(profile_name, token, address)
    except SpacetimeTokenError as e:
        raise fail(e)

    console.print(f"[green]✓[/green] Profile '[cyan]{profile.name}[/cyan]' saved and set active ({profile.address})")


@app.command("save")
def save_profile(profile_name: str):
    """save the currently active token under a new profile name."""
    try:
        profile = get_controller().save_profile(profile_name)
    except SpacetimeTokenError as e:
        raise fail(e)

    console.print(f"[green]✓[/green] Saved current session as profile '[cyan]{profile.name}[/cyan]' ({profile.address})")


@app.command("create")
def create_profile(
    profile_name: str,
    address: str = typer.Option(LOCAL_ALIAS, "--address", help="Server address, e.g. 'local' or 'https://host/spacetime'"),
):
    """
    create a new profile with a freshly issued token.

    'local' logs in through the spacetime CLI; any other address asks the
    server to issue a token directly.
    """
    try:
        profile = get_controller().create_profile(profile_name, address)
    except SpacetimeTokenError as e:
        raise fail(e)

    console.print(f"[green]✓[/green] Profile '[cyan]{profile.name}[/cyan]' created and activated ({profile.address})")


@app.command("switch")
def switch_profile(
    profile_name: str = typer.Argument(None, help="Profile to activate; omit to pick from a list"),
    address: str = typer.Option(None, "--address", help="Only consider profiles for this address"),
):
    """switch the active token to a stored profile."""
    try:
        profile = get_controller().switch_profile(profile_name, address)
    except SpacetimeTokenError as e:
        raise fail(e)

    console.print(f"[green]✓[/green] Switched to profile '[cyan]{profile.name}[/cyan]' ({profile.address})")


@app.command("admin")
def admin():
    """switch to the admin profile."""
    try:
        profile = get_controller().admin()
    except SpacetimeTokenError as e:
        console.print(f"[red]Error:[/red] {e}")
        console.print("Ensure a profile named 'admin' exists with a valid token.")
        raise typer.Exit(1)

    console.print(f"[green]✓[/green] Switched to ADMIN profile '[cyan]{profile.name}[/cyan]' ({profile.address})")


@app.command("list")
def list_profiles(
    env: bool = typer.Option(False, "--env", help="Only show profiles for the current environment")
):
    """list stored profiles."""
    try:
        controller = get_controller()
        address = controller.current_environment() if env else None
        listings = controller.list_profiles(address)
    except SpacetimeTokenError as e:
        raise fail(e)

    if address:
        console.print(f"Current environment: [cyan]{address}[/cyan]")

    if not listings:
        console.print("[yellow]No profiles found.[/yellow]")
        console.print("\nCreate one with: [cyan]spacetime-token create <name>[/cyan]")
        return

    table = Table(title="Profiles")
    table.add_column("Name", style="cyan")
    table.add_column("Address", style="white")
    table.add_column("Status", style="green")

    for listing in listings:
        status = "(current)" if listing.current else ""
        table.add_row(listing.profile.name, listing.profile.address, status)

    console.print(table)


@app.command("current")
def current():
    """show the active profile and its (masked) token."""
    try:
        status = get_controller().current()
    except SpacetimeTokenError as e:
        raise fail(e)

    if status.profile_name:
        console.print(f"Current active profile: [cyan]{status.profile_name}[/cyan]")
    else:
        console.print("[yellow]Current active token is not stored under any profile.[/yellow]")
    if status.address:
        console.print(f"Address: {status.address}")
    console.print(f"Active token: {status.masked_token}")


@app.command("delete")
def delete_profile(
    profile_name: str,
    force: bool = typer.Option(False, "--force", "-f", help="Delete without confirmation"),
):
    """delete a stored profile."""
    try:
        controller = get_controller()
        if not controller.has_profile(profile_name):
            raise fail(f"Profile '{profile_name}' not found. Nothing to delete.")

        if not force and not Confirm.ask(f"Delete profile '{profile_name}'?", console=console):
            console.print("Deletion cancelled.")
            return

        controller.delete_profile(profile_name)
    except SpacetimeTokenError as e:
        raise fail(e)

    console.print(f"[green]✓[/green] Profile '{profile_name}' deleted")


@app.command("reset")
def reset(
    force: bool = typer.Option(False, "--force", "-f", help="Reset without confirmation"),
):
    """remove every stored profile."""
    if not force and not Confirm.ask("Delete all profiles?", console=console):
        console.print("Reset cancelled.")
        return

    try:
        get_controller().reset()
    except SpacetimeTokenError as e:
        raise fail(e)

    console.print("[green]✓[/green] All profiles removed")


@app.command("set-address")
def set_address(profile_name: str, address: str):
    """update the address of an existing profile."""
    try:
        profile, session_updated = get_controller().set_address(profile_name, address)
    except SpacetimeTokenError as e:
        raise fail(e)

    console.print(f"[green]✓[/green] Profile '[cyan]{profile.name}[/cyan]' now uses {profile.address}")
    if session_updated:
        console.print(f"[dim]Active session now targets {profile.address}[/dim]")


@app.command("setup")
def setup():
    """interactively edit the tool configuration."""
    try:
        settings = load_settings(get_config_dir())
    except SpacetimeTokenError as e:
        console.print(f"[yellow]Warning:[/yellow] could not load existing settings ({e}). Using defaults.")
        settings = AppSettings()

    console.print("Current configuration (press enter to keep a value):")
    settings.profiles_filename = Prompt.ask(
        "Profiles filename", default=settings.profiles_filename, console=console
    )
    settings.cli_config_dir_from_home = Prompt.ask(
        "SpacetimeDB CLI config directory (from home)",
        default=settings.cli_config_dir_from_home,
        console=console,
    )
    settings.cli_config_filename = Prompt.ask(
        "SpacetimeDB CLI config filename", default=settings.cli_config_filename, console=console
    )
    settings.cli_token_key = Prompt.ask(
        "SpacetimeDB CLI token key", default=settings.cli_token_key, console=console
    )

    try:
        path = save_settings(settings, get_config_dir())
    except SpacetimeTokenError as e:
        raise fail(e)

    console.print(f"[green]✓[/green] Configuration saved to {path}")


if __name__ == "__main__":
    app()
