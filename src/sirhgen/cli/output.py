"""Output formatting for CLI commands."""

import json
from typing import Any

from pydantic import BaseModel
from rich.console import Console
from rich.panel import Panel
from rich.pretty import pprint
from rich.table import Table

from sirhgen.core.types import EntityDefinition
from sirhgen.exceptions import SirhGenError

console = Console()
error_console = Console(stderr=True)


def _jsonable(data: Any) -> Any:
    if isinstance(data, BaseModel):
        return data.model_dump(mode="json", by_alias=True)
    if isinstance(data, list):
        return [_jsonable(item) for item in data]
    return data


class OutputFormatter:
    """Formats output for terminal or JSON mode."""

    def __init__(self, json_mode: bool = False) -> None:
        """Initialize formatter.

        Args:
            json_mode: If True, output JSON instead of Rich formatting
        """
        self.json_mode = json_mode

    def print_table(
        self,
        title: str,
        data: list[dict[str, Any]],
        columns: list[str],
    ) -> None:
        """Print data as Rich table or JSON array.

        Args:
            title: Table title
            data: List of row dictionaries
            columns: Column names to display
        """
        if self.json_mode:
            print(json.dumps(data, default=str, indent=2))
        else:
            table = Table(title=title, show_header=True, header_style="bold magenta")
            for col in columns:
                table.add_column(col)
            for row in data:
                table.add_row(*[str(row.get(col, "")) for col in columns])
            console.print(table)

    def print_definition(self, definition: EntityDefinition) -> None:
        """Print an entity definition: scalar fields, then relations."""
        if self.json_mode:
            print(json.dumps(definition.to_wire(), default=str, indent=2))
            return

        console.print(f"\n[bold]Entity:[/bold] {definition.name}")
        console.print(f"Table: {definition.table_name}")

        scalars = [f for f in definition.fields if not f.is_relation]
        if scalars:
            console.print(f"\n[bold]Fields ({len(scalars)}):[/bold]")
            fields_table = Table(show_header=True, header_style="bold cyan")
            fields_table.add_column("Name")
            fields_table.add_column("Type")
            fields_table.add_column("Required")
            fields_table.add_column("Unique")
            fields_table.add_column("Default")
            for field in scalars:
                fields_table.add_row(
                    field.name,
                    str(field.type),
                    "✓" if field.required else "",
                    "✓" if field.unique else "",
                    "" if field.default_value is None else repr(field.default_value),
                )
            console.print(fields_table)

        relations = definition.relation_fields
        if relations:
            console.print(f"\n[bold]Relations ({len(relations)}):[/bold]")
            rel_table = Table(show_header=True, header_style="bold cyan")
            rel_table.add_column("Name")
            rel_table.add_column("Type")
            rel_table.add_column("Target")
            rel_table.add_column("Side")
            for field in relations:
                relation = field.relation
                if relation is None:
                    continue
                side = "owner" if relation.is_owner else f"mapped by {relation.mapped_by}"
                rel_table.add_row(field.name, relation.type, relation.target, side)
            console.print(rel_table)

    def print_success(
        self,
        message: str,
        details: dict[str, Any] | None = None,
        warnings: list[str] | None = None,
    ) -> None:
        """Print success message.

        Args:
            message: Success message
            details: Optional details to display
            warnings: Non-fatal warnings raised by the operation
        """
        if self.json_mode:
            output: dict[str, Any] = {"success": True, "message": message}
            if details:
                output.update(details)
            if warnings:
                output["warnings"] = warnings
            print(json.dumps(output, default=str, indent=2))
        else:
            console.print(f"✓ {message}", style="green")
            if details:
                for key, value in details.items():
                    console.print(f"  {key}: {value}", style="dim")
            for warning in warnings or []:
                console.print(f"! {warning}", style="yellow")

    def print_error(self, error: Exception) -> None:
        """Print error message.

        Args:
            error: Exception to display
        """
        if self.json_mode:
            if isinstance(error, SirhGenError):
                print(json.dumps(error.to_dict(), default=str, indent=2))
            else:
                print(json.dumps({"error": str(error)}, indent=2))
        else:
            error_text = str(error)
            # For SirhGenError, include context if available
            if isinstance(error, SirhGenError) and error.context:
                context_str = "\n".join(
                    f"{k}: {v}" for k, v in error.context.items() if v is not None
                )
                if context_str:
                    error_text = f"{error_text}\n\n{context_str}"

            panel = Panel(
                error_text,
                title="[red]Error[/red]",
                border_style="red",
            )
            error_console.print(panel)

    def print_data(self, data: Any) -> None:
        """Print generic data (models, dicts, lists).

        Args:
            data: Data to print
        """
        if self.json_mode:
            print(json.dumps(_jsonable(data), default=str, indent=2))
        else:
            pprint(data, console=console, expand_all=True)
