"""Materialize command: run create/update preparation against given input."""

import asyncio
import json
from pathlib import Path

import typer

from ...compiler import ModifierCompiler
from ...errors import CompileError, FieldwrightError, ValidationError
from ...runtime import FieldMaterializer, Mode, OperationContext
from ...types import serialize
from ..app import app, console, get_json_mode
from ..utils import ExitCode, Output, load_entity, parse_json_option


@app.command("materialize")
def materialize_command(
    spec_file: Path = typer.Argument(..., help="Entity declaration YAML file"),
    data: str = typer.Option(
        "{}", "--data", "-d", help="Raw input as JSON, or @file.json"
    ),
    mode: Mode = typer.Option(Mode.CREATE, "--mode", "-m", help="create or update"),
    existing: str | None = typer.Option(
        None, "--existing", "-e", help="Existing record for update, JSON or @file.json"
    ),
):
    """Show the values a create or update would write, without storing them.

    Example:
        fieldwright materialize user.yaml -d '{"email": " A@B.io "}'
        fieldwright materialize user.yaml -m update -d '{"id": 1, "name": "x"}' -e @user1.json
    """
    out = Output(console=console, json_mode=get_json_mode())

    try:
        entity = load_entity(spec_file)
        routine = ModifierCompiler().compile(entity)
        raw = parse_json_option(data, "--data")
        prior = parse_json_option(existing, "--existing") if existing else None
    except FileNotFoundError as e:
        out.error(str(e), exit_code=ExitCode.FILE_NOT_FOUND)
        raise typer.Exit(out.finish())
    except CompileError as e:
        out.error(e.message, details=e.info, exit_code=ExitCode.COMPILE_ERROR)
        raise typer.Exit(out.finish())
    except ValueError as e:
        out.error(f"Invalid input: {e}", exit_code=ExitCode.USAGE_ERROR)
        raise typer.Exit(out.finish())

    unknown = sorted(name for name in raw if not entity.has_field(name))
    if unknown:
        out.warning(f"Ignoring unknown field(s): {', '.join(unknown)}")

    context = OperationContext(raw=raw, existing=prior)
    try:
        latest = asyncio.run(
            FieldMaterializer().materialize(entity, routine, context, mode)
        )
    except ValidationError as e:
        out.error(e.message, details=e.info, exit_code=ExitCode.VALIDATION_ERROR)
        raise typer.Exit(out.finish())
    except FieldwrightError as e:
        out.error(e.message, details=e.info, exit_code=ExitCode.USAGE_ERROR)
        raise typer.Exit(out.finish())

    values = serialize(latest)
    out.success(f"Materialized {entity.name} ({mode.value})", values=values)
    if context.where:
        out.set_data("where", serialize(context.where))
    out.text(json.dumps(values, indent=2, default=str))
    raise typer.Exit(out.finish())
