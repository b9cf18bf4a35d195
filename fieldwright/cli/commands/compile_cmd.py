"""Compile command: show the routine compiled for an entity declaration."""

from pathlib import Path

import typer

from ...compiler import ModifierCompiler
from ...errors import CompileError
from ..app import app, console, get_json_mode
from ..utils import ExitCode, Output, load_entity


@app.command("compile")
def compile_command(
    spec_file: Path = typer.Argument(..., help="Entity declaration YAML file"),
    no_merge: bool = typer.Option(
        False, "--no-merge", help="Keep one operation per modifier"
    ),
):
    """Compile an entity's modifiers and print the resulting routine.

    Example:
        fieldwright compile user.yaml
        fieldwright --json compile user.yaml --no-merge
    """
    out = Output(console=console, json_mode=get_json_mode())

    try:
        entity = load_entity(spec_file)
        compiler = ModifierCompiler(merge_chains=False if no_merge else None)
        routine = compiler.compile(entity)
    except FileNotFoundError as e:
        out.error(str(e), exit_code=ExitCode.FILE_NOT_FOUND)
        raise typer.Exit(out.finish())
    except CompileError as e:
        out.error(e.message, details=e.info, exit_code=ExitCode.COMPILE_ERROR)
        raise typer.Exit(out.finish())

    out.success(
        f"Compiled {entity.name}: {len(routine.groups)} group(s)",
        routine=routine.to_dict(),
    )
    rows = []
    for i, group in enumerate(routine.groups):
        for op in group.operations:
            rows.append(
                [
                    str(i),
                    group.target,
                    op.kind.value,
                    ", ".join(op.names),
                    ", ".join(sorted(group.required_fields)) or "-",
                ]
            )
    if rows and not out.json_mode:
        out.table("Routine", ["Group", "Target", "Kind", "Modifiers", "Requires"], rows)
    raise typer.Exit(out.finish())
