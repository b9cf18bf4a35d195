"""Config command for viewing fieldwright configuration."""

import json

import typer

from ..app import app, console, get_json_mode
from ...config import CONFIG_FILE, get_config, reset_config


@app.command("config")
def config_command(
    action: str = typer.Argument("show", help="Action: show, path, reset"),
):
    """View the resolved configuration.

    Examples:
        fieldwright config show
        fieldwright config path
        fieldwright config reset
    """
    if action == "show":
        data = get_config().to_dict()
        if get_json_mode():
            print(json.dumps(data, indent=2))
            return
        console.print()
        console.print("[bold]fieldwright configuration[/bold]")
        console.print("─" * 40)
        for section, values in data.items():
            console.print()
            console.print(f"[bold cyan]{section}[/bold cyan]")
            for key, value in values.items():
                console.print(f"  {key} = {value}")
        console.print()
        console.print(f"[dim]Config file: {CONFIG_FILE}[/dim]")
    elif action == "path":
        console.print(str(CONFIG_FILE))
    elif action == "reset":
        if CONFIG_FILE.exists():
            CONFIG_FILE.unlink()
        reset_config()
        console.print("[green]✓[/green] Config reset to defaults")
    else:
        console.print(f"[red]Unknown action:[/red] {action}")
        console.print("Valid actions: show, path, reset")
        raise typer.Exit(1)
