from pathlib import Path
from typing import List, Optional

import typer
from rich.console import Console
from rich.prompt import Prompt

from ..config import CONFIG_DIR, load_settings
from ..profiles import Profile, SyncController

console = Console()


def get_config_dir() -> Path:
    return CONFIG_DIR


def pick_profile(candidates: List[Profile], prompt: str) -> Optional[str]:
    """numbered terminal menu, returns the chosen name or None if aborted."""
    for i, profile in enumerate(candidates, start=1):
        console.print(f"  {i}. [cyan]{profile.name}[/cyan] [dim]({profile.address})[/dim]")

    try:
        choice = Prompt.ask(
            prompt,
            choices=[str(i) for i in range(1, len(candidates) + 1)],
            default="1",
            console=console,
        )
    except (KeyboardInterrupt, EOFError):
        return None
    return candidates[int(choice) - 1].name


def get_controller() -> SyncController:
    """build a controller from the tool config."""
    config_dir = get_config_dir()
    settings = load_settings(config_dir)
    return SyncController.from_settings(settings, config_dir, picker=pick_profile)


def fail(message) -> typer.Exit:
    """report an error and return the exit to raise."""
    console.print(f"[red]Error:[/red] {message}")
    return typer.Exit(1)
