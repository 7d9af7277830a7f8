"""Command line entry point: store maintenance and the API server."""

from pathlib import Path
from typing import Optional

import typer

from mainwebdb import __version__
from mainwebdb.config import settings
from mainwebdb.engine import get_webdb
from mainwebdb.errors import WebDBError
from mainwebdb.output import (
    format_bytes,
    print_dict,
    print_error,
    print_json,
    print_success,
    print_warning,
)

app = typer.Typer(
    name="mainwebdb",
    help="MainWebDB store maintenance and API server",
    no_args_is_help=True,
)


class GlobalState:
    json_output: bool = False
    verbose: bool = False


state = GlobalState()


def version_callback(value: bool) -> None:
    """Show version and exit."""
    if value:
        print(f"mainwebdb version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    json_output: bool = typer.Option(
        False, "--json", "-j", help="Output as JSON instead of tables"
    ),
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Show debug information"
    ),
    version: Optional[bool] = typer.Option(
        None, "--version", "-V",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit",
    ),
) -> None:
    """MainWebDB - multi-tenant document database."""
    state.json_output = json_output
    state.verbose = verbose


@app.command("export")
def export_store(
    path: Path = typer.Argument(Path("mainwebdb.json"), help="Destination JSON file"),
) -> None:
    """Export the whole store to a JSON file."""
    payload = get_webdb().store.export_snapshot()
    path.write_bytes(payload)

    if state.json_output:
        print_json({"path": str(path), "size_bytes": len(payload)})
    else:
        print_success(f"Exported {format_bytes(len(payload))} to {path}")


@app.command("import")
def import_store(
    path: Path = typer.Argument(..., exists=True, dir_okay=False, help="JSON file from export"),
) -> None:
    """Replace the whole store with the contents of an exported JSON file."""
    try:
        graph = get_webdb().store.import_snapshot(path.read_bytes())
    except WebDBError as e:
        print_error(e.message)
        raise typer.Exit(1)

    counts = {"users": len(graph.users), "databases": len(graph.databases)}
    if state.json_output:
        print_json({"success": True, "counts": counts})
    else:
        print_success(f"Imported {counts['users']} users and {counts['databases']} databases")


@app.command("reset")
def reset_store(
    yes: bool = typer.Option(False, "--yes", "-y", help="Confirm deleting all data"),
) -> None:
    """Delete all data, including every session."""
    if not yes:
        print_warning("This deletes all users, databases and logs. Re-run with --yes to confirm.")
        raise typer.Exit(1)

    get_webdb().store.clear()
    print_success("All data deleted")


@app.command("stats")
def show_stats() -> None:
    """Show global entity counts and the store file size."""
    engine = get_webdb()
    counts: dict[str, object] = dict(engine.stats())
    size = engine.store.size_bytes()

    if state.json_output:
        print_json({**counts, "size_bytes": size, "store_path": str(engine.store.store_path)})
        return

    counts["size"] = format_bytes(size)
    counts["store_path"] = str(engine.store.store_path)
    print_dict(counts, title="MainWebDB")


@app.command("serve")
def serve(
    host: str = typer.Option(settings.host, help="Bind address"),
    port: int = typer.Option(settings.port, help="Bind port"),
    reload: bool = typer.Option(False, help="Reload on code changes"),
) -> None:
    """Run the HTTP API with uvicorn."""
    import uvicorn

    uvicorn.run("mainwebdb.main:app", host=host, port=port, reload=reload)


if __name__ == "__main__":
    app()
