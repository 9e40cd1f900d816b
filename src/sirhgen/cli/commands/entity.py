"""Entity generation commands."""

from typing import Annotated

import typer

from sirhgen.cli.context import CLIContext
from sirhgen.cli.output import OutputFormatter
from sirhgen.cli.parsing import build_definition, parse_field_spec, read_json_file

# Create entity subcommand group
app = typer.Typer(help="Generate, update and delete entities")

FieldOption = Annotated[
    list[str] | None,
    typer.Option(
        "--field",
        "-f",
        help="Field spec: name:type[:modifier] or name:kind:Target[:modifier]. Repeatable.",
    ),
]
FromFileOption = Annotated[
    str | None,
    typer.Option("--from-file", help="Load the definition from a JSON file"),
]
TableOption = Annotated[
    str | None,
    typer.Option("--table", "-t", help="Table name (default: snake_case plural of the name)"),
]


@app.command("list")
def entity_list(ctx: typer.Context) -> None:
    """List generated entities."""
    cli_ctx: CLIContext = ctx.obj
    formatter = OutputFormatter(cli_ctx.json_output)

    try:
        summaries = cli_ctx.get_generator().list()
        if cli_ctx.json_output:
            formatter.print_data(summaries)
        else:
            formatter.print_table(
                f"Entities ({len(summaries)} total)",
                [
                    {
                        "Name": s.name,
                        "Table": s.table_name,
                        "Fields": s.field_count,
                        "Relations": s.relation_count,
                        "Updated": s.updated_at or "",
                    }
                    for s in summaries
                ],
                ["Name", "Table", "Fields", "Relations", "Updated"],
            )
    except Exception as e:
        formatter.print_error(e)
        raise typer.Exit(code=1)
    finally:
        cli_ctx.close()


@app.command("describe")
def entity_describe(
    ctx: typer.Context,
    name: Annotated[str, typer.Argument(help="Entity name")],
) -> None:
    """Show an entity's stored definition."""
    cli_ctx: CLIContext = ctx.obj
    formatter = OutputFormatter(cli_ctx.json_output)

    try:
        formatter.print_definition(cli_ctx.get_generator().get(name))
    except Exception as e:
        formatter.print_error(e)
        raise typer.Exit(code=1)
    finally:
        cli_ctx.close()


@app.command("generate")
def entity_generate(
    ctx: typer.Context,
    name: Annotated[str | None, typer.Argument(help="Entity name (e.g., Employee)")] = None,
    table: TableOption = None,
    fields: FieldOption = None,
    from_file: FromFileOption = None,
) -> None:
    """Generate a new entity: table, source files and relation inverses.

    Examples:

        # Inline fields
        sirhgen entity generate Employee -f "name:string" -f "email:email:unique"
            -f "department:many-to-one:Department:optional"

        # From JSON file
        sirhgen entity generate --from-file employee.json
    """
    cli_ctx: CLIContext = ctx.obj
    formatter = OutputFormatter(cli_ctx.json_output)

    try:
        definition = build_definition(name, table, fields, from_file)
        result = cli_ctx.get_generator().generate(definition)
        formatter.print_success(
            result.message, {"files": len(result.files)}, warnings=result.warnings
        )
    except Exception as e:
        formatter.print_error(e)
        raise typer.Exit(code=1)
    finally:
        cli_ctx.close()


@app.command("update")
def entity_update(
    ctx: typer.Context,
    name: Annotated[str, typer.Argument(help="Current entity name")],
    table: TableOption = None,
    fields: FieldOption = None,
    from_file: FromFileOption = None,
) -> None:
    """Replace an entity's definition and migrate its table.

    The new definition keeps the current name and table unless the file (or
    --table) says otherwise. Renaming regenerates the table and drops its data.

    Examples:

        sirhgen entity update Employee --from-file employee.json
    """
    cli_ctx: CLIContext = ctx.obj
    formatter = OutputFormatter(cli_ctx.json_output)

    try:
        generator = cli_ctx.get_generator()
        current = generator.get(name).to_wire()
        definition = read_json_file(from_file) if from_file else {}
        definition.setdefault("name", name)
        definition["tableName"] = table or definition.get("tableName") or current["tableName"]
        if fields:
            definition["fields"] = [parse_field_spec(spec) for spec in fields]
        definition.setdefault("fields", current.get("fields", []))

        result = generator.update(name, definition)
        formatter.print_success(
            result.message, {"files": len(result.files)}, warnings=result.warnings
        )
    except Exception as e:
        formatter.print_error(e)
        raise typer.Exit(code=1)
    finally:
        cli_ctx.close()


@app.command("delete")
def entity_delete(
    ctx: typer.Context,
    name: Annotated[str, typer.Argument(help="Entity name")],
    keep_table: Annotated[
        bool,
        typer.Option("--keep-table", help="Only remove metadata and source files"),
    ] = False,
    force: Annotated[
        bool,
        typer.Option("--force", help="Skip confirmation prompt"),
    ] = False,
) -> None:
    """Delete an entity and every relation pointing at it."""
    cli_ctx: CLIContext = ctx.obj
    formatter = OutputFormatter(cli_ctx.json_output)

    # Confirmation prompt
    if not force and not cli_ctx.json_output:
        what = "metadata" if keep_table else "table and data"
        confirm = typer.confirm(f"Delete entity '{name}' ({what})?")
        if not confirm:
            typer.echo("Cancelled.")
            raise typer.Exit(code=0)

    try:
        result = cli_ctx.get_generator().delete(name, drop_table=not keep_table)
        formatter.print_success(result.message, warnings=result.warnings)
    except Exception as e:
        formatter.print_error(e)
        raise typer.Exit(code=1)
    finally:
        cli_ctx.close()


@app.command("incoming")
def entity_incoming(
    ctx: typer.Context,
    name: Annotated[str, typer.Argument(help="Entity name")],
) -> None:
    """List relations on other entities that target this one without an inverse here."""
    cli_ctx: CLIContext = ctx.obj
    formatter = OutputFormatter(cli_ctx.json_output)

    try:
        incoming = cli_ctx.get_generator().list_incoming_relations(name)
        if cli_ctx.json_output:
            formatter.print_data(incoming)
        else:
            formatter.print_table(
                f"Incoming relations of {name}",
                [
                    {
                        "Source": r.source_entity,
                        "Field": r.field_name,
                        "Type": r.relation_type,
                        "Inverse": r.inverse_side or "",
                    }
                    for r in incoming
                ],
                ["Source", "Field", "Type", "Inverse"],
            )
    except Exception as e:
        formatter.print_error(e)
        raise typer.Exit(code=1)
    finally:
        cli_ctx.close()


@app.command("changelog")
def entity_changelog(
    ctx: typer.Context,
    entity_name: Annotated[
        str | None,
        typer.Option("--entity", "-E", help="Filter by entity name"),
    ] = None,
    limit: Annotated[
        int,
        typer.Option("--limit", "-l", help="Maximum number of entries"),
    ] = 20,
) -> None:
    """Show the generator's audit log.

    Examples:

        sirhgen entity changelog
        sirhgen entity changelog --entity Employee --limit 10
    """
    cli_ctx: CLIContext = ctx.obj
    formatter = OutputFormatter(cli_ctx.json_output)

    try:
        entries = cli_ctx.get_generator().get_changelog(entity_name=entity_name, limit=limit)

        if cli_ctx.json_output:
            formatter.print_data(entries)
        elif not entries:
            typer.echo("No changelog entries found")
        else:
            typer.echo(f"\nChangelog ({len(entries)} entries):\n")
            for entry in entries:
                typer.echo(f"[{entry.timestamp}]")
                typer.echo(f"  Operation: {entry.operation}")
                typer.echo(f"  Entity: {entry.entity_name}")
                if entry.field_name:
                    typer.echo(f"  Field: {entry.field_name}")
                typer.echo("  ---")
    except Exception as e:
        formatter.print_error(e)
        raise typer.Exit(code=1)
    finally:
        cli_ctx.close()
