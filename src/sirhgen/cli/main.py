"""sirhgen CLI - Main entry point."""

import logging
from pathlib import Path
from typing import Annotated

import typer

import sirhgen
from sirhgen.cli.context import CLIContext
from sirhgen.config import DATABASE_URL_ENV, OUTPUT_DIR_ENV, get_database_url, get_output_dir

# Create main Typer app
app = typer.Typer(
    name="sirhgen",
    help="sirhgen CLI - generate and maintain runtime business entities",
    no_args_is_help=True,
)

# Store CLI context globally (will be set in callback)
state: dict[str, CLIContext] = {}


@app.callback()
def main_callback(
    ctx: typer.Context,
    database: Annotated[
        str | None,
        typer.Option(
            "--database",
            "-d",
            envvar=DATABASE_URL_ENV,
            help="Database URL (PostgreSQL or SQLite)",
        ),
    ] = None,
    output: Annotated[
        Path | None,
        typer.Option(
            "--output",
            "-o",
            envvar=OUTPUT_DIR_ENV,
            help="Directory receiving generated source files",
        ),
    ] = None,
    echo: Annotated[
        bool,
        typer.Option(
            "--echo",
            "-e",
            help="Echo SQL statements to console",
        ),
    ] = False,
    json_output: Annotated[
        bool,
        typer.Option(
            "--json",
            "-j",
            help="Output as JSON (machine-readable)",
        ),
    ] = False,
    verbose: Annotated[
        bool,
        typer.Option(
            "--verbose",
            "-v",
            help="Log generator steps to stderr",
        ),
    ] = False,
) -> None:
    """Initialize CLI context with global options."""
    logging.basicConfig(
        level=logging.INFO if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    cli_ctx = CLIContext(
        database_url=get_database_url(database),
        output_dir=get_output_dir(output),
        echo=echo,
        json_output=json_output,
    )

    # Store in Typer context for command access
    ctx.obj = cli_ctx
    state["cli_ctx"] = cli_ctx


@app.command()
def version() -> None:
    """Show version information."""
    typer.echo(f"sirhgen v{sirhgen.__version__}")


# Register command groups
from sirhgen.cli.commands import entity  # noqa: E402

app.add_typer(entity.app, name="entity")


def main() -> None:
    """Main entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
