"""Command-line interface for specmock."""

from __future__ import annotations

import json
import logging
import sys
from pathlib import Path

import click
from rich.console import Console
from rich.table import Table

from specmock.config import load_config
from specmock.contracts import STARTER_CONTRACT, LoadReport, load_contracts
from specmock.filler import default_filler, list_generators

console = Console()

SAMPLE_WIDTH = 64


def _setup_logging(level: str) -> None:
    """Configure logging with the specified level.

    Args:
        level: Logging level string (debug, info, warning, error).
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(
        level=numeric_level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        stream=sys.stderr,
    )


def _report_tables(report: LoadReport) -> list[Table]:
    loaded = Table(title="Contracts")
    loaded.add_column("File", style="cyan")
    loaded.add_column("Route", style="green")
    loaded.add_column("Except cases", justify="right")
    for entry in report.loaded:
        loaded.add_row(
            str(entry.path),
            str(entry.contract.request),
            str(len(entry.contract.except_cases)),
        )

    tables = [loaded]
    if report.skipped:
        skipped = Table(title="Skipped")
        skipped.add_column("File", style="cyan")
        skipped.add_column("Reason", style="red")
        for path, reason in report.skipped:
            skipped.add_row(str(path), reason)
        tables.append(skipped)
    return tables


@click.group()
@click.option("--config", "-c", default=None, help="Path to specmock.yaml config file")
@click.pass_context
def main(ctx: click.Context, config: str | None) -> None:
    """specmock: design and serve RESTful APIs from sample contracts."""
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config
    cfg = load_config(config)
    ctx.obj["config"] = cfg
    _setup_logging(cfg.logging.level)


@main.command()
@click.option("--scan", "-s", default=None, help="Directory to scan for contracts")
@click.option("--host", default=None, help="Override server host")
@click.option("--port", "-p", default=None, type=int, help="Override server port")
@click.option("--no-except", is_flag=True, help="Skip contracts that declare except cases")
@click.pass_context
def serve(
    ctx: click.Context,
    scan: str | None,
    host: str | None,
    port: int | None,
    no_except: bool,
) -> None:
    """Start an API server from a directory of contracts."""
    import uvicorn

    from specmock.server import ContractServer

    cfg = ctx.obj["config"]
    if scan:
        cfg.contracts.directory = scan
    if no_except:
        cfg.contracts.allow_except = False
    server_host = host or cfg.server.host
    server_port = port or cfg.server.port
    cfg.server.host = server_host
    cfg.server.port = server_port

    server = ContractServer(cfg)
    for table in _report_tables(server.report):
        console.print(table)

    if not server.builders:
        console.print(
            f"[bold red]No contracts found! Is {cfg.contracts.directory} the correct directory?"
            "[/bold red]"
        )
        sys.exit(2)

    console.print(
        f"[bold green]Starting specmock on http://{server_host}:{server_port}[/bold green]"
    )
    uvicorn.run(server.app, host=server_host, port=server_port, log_level=cfg.logging.level)


@main.command()
@click.argument("directory", type=click.Path(exists=True, file_okay=False))
@click.pass_context
def check(ctx: click.Context, directory: str) -> None:
    """Validate every contract in DIRECTORY without serving it."""
    cfg = ctx.obj["config"]
    report = load_contracts(directory, allow_except=cfg.contracts.allow_except)
    for table in _report_tables(report):
        console.print(table)
    if not report.ok:
        sys.exit(1)


@main.command()
@click.argument("path")
def dump(path: str) -> None:
    """Write a starter contract to PATH (.json is appended if missing)."""
    target = Path(path)
    if target.suffix != ".json":
        target = target.with_name(f"{target.name}.json")
    target.parent.mkdir(parents=True, exist_ok=True)
    with open(target, "w", encoding="utf-8") as f:
        json.dump(STARTER_CONTRACT, f, indent=2)
        f.write("\n")
    console.print(f"[green]Contract saved to {target.resolve()}[/green]")


@main.command()
@click.argument("category", default="all")
@click.option("--json-output", is_flag=True, help="Output as JSON")
@click.pass_context
def generators(ctx: click.Context, category: str, json_output: bool) -> None:
    """List filler placeholders usable as {{category.name}}."""
    cfg = ctx.obj["config"]
    filler = default_filler(cfg.filler.locale, cfg.filler.seed)
    rows = list_generators(category, filler)

    if json_output:
        click.echo(json.dumps(dict(rows), indent=2))
        return

    table = Table(title=f"Filler generators ({cfg.filler.locale})")
    table.add_column("Placeholder", style="cyan")
    table.add_column("Sample", style="white")
    for name, sample in rows:
        if len(sample) >= SAMPLE_WIDTH:
            sample = sample[:60] + " ..."
        table.add_row(f"{{{{{name}}}}}", sample)
    console.print(table)


if __name__ == "__main__":
    main()
