from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from routeforge.domain.config import load_config
from routeforge.domain.errors import RouteforgeError
from routeforge.domain.validate import validate_manifest
from routeforge.openapi.document import build_openapi, render_openapi
from routeforge.orchestrator.context import BuildContext
from routeforge.orchestrator.pipeline import read_manifest, run_generate
from routeforge.orchestrator.writer import write_artifacts
from routeforge.ordering.canonical import canonicalize

app = typer.Typer(no_args_is_help=True, add_completion=False)

console = Console()
err_console = Console(stderr=True)


def _fail(exc: RouteforgeError) -> typer.Exit:
    err_console.print(f"[bold red]error:[/bold red] {exc}")
    return typer.Exit(code=1)


def _manifest_path(manifest: str) -> Path:
    path = Path(manifest).expanduser()
    if not path.is_file():
        raise typer.BadParameter(f"Manifest does not exist: {path}")
    return path


@app.callback()
def _root(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log each build step"),
) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=err_console, show_path=False)],
    )


@app.command()
def generate(
    manifest: str = typer.Argument(..., help="Path to the manifest JSON"),
    config: Optional[str] = typer.Option(None, help="Config file (default: $ROUTEFORGE_CONFIG or ./routeforge.ini)"),
    out: str = typer.Option(".", help="Output directory"),
) -> None:
    path = _manifest_path(manifest)
    try:
        artifacts, cfg = run_generate(path, config)
        written = write_artifacts(artifacts, Path(out), cfg)
    except RouteforgeError as exc:
        raise _fail(exc)

    console.print(f"[bold green]routeforge[/bold green] generate: {path}")
    console.print(f"Endpoints: [bold]{artifacts.endpoint_count}[/bold]")
    for p in written:
        console.print(f"  [bold green]Wrote[/bold green] {p}")


@app.command()
def check(
    manifest: str = typer.Argument(..., help="Path to the manifest JSON"),
) -> None:
    path = _manifest_path(manifest)
    try:
        m = read_manifest(path)
        validate_manifest(m)
    except RouteforgeError as exc:
        raise _fail(exc)

    m = canonicalize(m)
    table = Table(show_header=True, header_style="bold")
    table.add_column("METHOD", no_wrap=True)
    table.add_column("PATH")
    table.add_column("HANDLER")
    table.add_column("SHAPE", no_wrap=True)
    table.add_column("MIDDLEWARES")
    for ep in m.endpoints:
        table.add_row(
            ep.method,
            ep.path,
            ep.qualified_name,
            ep.shape.value,
            ", ".join(mw.qualified_name for mw in ep.middlewares),
        )

    console.print(f"[bold green]OK[/bold green] {path}")
    console.print(f"Endpoints: {len(m.endpoints)}  Types: {len(m.types)}")
    console.print(table)


@app.command()
def openapi(
    manifest: str = typer.Argument(..., help="Path to the manifest JSON"),
    config: Optional[str] = typer.Option(None, help="Config file (default: $ROUTEFORGE_CONFIG or ./routeforge.ini)"),
) -> None:
    path = _manifest_path(manifest)
    try:
        cfg = load_config(config)
        m = read_manifest(path)
        validate_manifest(m)
        doc = build_openapi(canonicalize(m), cfg, BuildContext())
    except RouteforgeError as exc:
        raise _fail(exc)

    # bypass rich markup so the output stays valid JSON
    typer.echo(render_openapi(doc).decode("utf-8"), nl=False)


def main() -> None:
    app()


if __name__ == "__main__":
    main()
