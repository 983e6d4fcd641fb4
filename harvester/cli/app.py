"""Harvester CLI application using Typer."""

import asyncio
import json
from pathlib import Path
from typing import Annotated, Any

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from harvester import __version__
from harvester.config import Settings
from harvester.core.harvesting.harvest_orchestrator import HarvestOrchestrator
from harvester.core.harvesting.models import HarvestResult
from harvester.core.harvesting.reporting import LoggingFailureReporter
from harvester.utils.exceptions import InvalidInputError
from harvester.utils.logging import configure_logging

app = typer.Typer(
    name="harvester",
    help="Harvester - collect posts, comments and sentiment from mixed sources",
    add_completion=False,
)
console = Console(stderr=True)


def version_callback(value: bool) -> None:
    """Display version and exit."""
    if value:
        console.print(f"[bold cyan]Harvester[/bold cyan] version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Annotated[
        bool | None,
        typer.Option(
            "--version",
            "-v",
            help="Show version and exit",
            callback=version_callback,
            is_eager=True,
        ),
    ] = None,
) -> None:
    """Harvester - collect posts, comments and sentiment from mixed sources."""
    pass


def load_seed_file(path: Path) -> list[Any]:
    """
    Load seed items from a JSON file.

    Accepts a list of URL strings / {"url": ...} objects, or an object with a
    "startUrls" or "seed_urls" list.

    Raises:
        typer.Exit: If the file cannot be read or has the wrong shape
    """
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        console.print(f"[bold red]Cannot read seed file {path}:[/bold red] {e}")
        raise typer.Exit(code=1) from None

    if isinstance(data, dict):
        data = data.get("startUrls", data.get("seed_urls"))
    if not isinstance(data, list):
        console.print(f"[bold red]Seed file {path} must contain a list of URLs[/bold red]")
        raise typer.Exit(code=1)
    return data


def print_summary(result: HarvestResult, output_path: Path) -> None:
    table = Table(title="Harvest Summary", show_header=False)
    table.add_row("Processed", str(result.processed))
    table.add_row("Succeeded", str(result.succeeded))
    table.add_row("Blocked", str(result.blocked))
    table.add_row("Failed", str(result.failed))
    table.add_row("Skipped (budget)", str(result.skipped))
    table.add_row("Records written", str(result.records_emitted))
    table.add_row("Output", str(output_path))
    console.print(table)

    if result.failures:
        failures = Table(title="Failures")
        failures.add_column("URL", style="cyan", overflow="fold")
        failures.add_column("State")
        failures.add_column("Attempts", justify="right")
        failures.add_column("Reason", overflow="fold")
        for failure in result.failures:
            failures.add_row(
                failure.url, failure.state.value, str(failure.attempts), failure.reason
            )
        console.print(failures)


@app.command()
def harvest(
    urls: Annotated[
        list[str] | None,
        typer.Argument(help="Seed URLs (added to HARVESTER_SEED_URLS and --input-file)"),
    ] = None,
    input_file: Annotated[
        Path | None,
        typer.Option("--input-file", "-i", help="JSON file with seed URLs"),
    ] = None,
    keywords: Annotated[
        list[str] | None,
        typer.Option("--keyword", "-k", help="Tracked keyword (repeatable, max 25)"),
    ] = None,
    platforms: Annotated[
        list[str] | None,
        typer.Option("--platform", "-p", help="Allowed platform (repeatable)"),
    ] = None,
    max_requests: Annotated[
        int | None,
        typer.Option("--max-requests", "-n", help="Total address budget"),
    ] = None,
    output: Annotated[
        Path | None,
        typer.Option("--output", "-o", help="JSON-lines output file"),
    ] = None,
    no_follow_links: Annotated[
        bool,
        typer.Option("--no-follow-links", help="Do not enqueue links found on pages"),
    ] = False,
    headful: Annotated[
        bool,
        typer.Option("--headful", help="Show the browser window"),
    ] = False,
) -> None:
    """Harvest seed URLs and write one record per processed address."""
    overrides: dict[str, Any] = {
        "keywords": keywords,
        "platforms": platforms,
        "max_requests": max_requests,
        "output_path": output,
    }
    if no_follow_links:
        overrides["follow_links"] = False
    if headful:
        overrides["headless"] = False
    try:
        settings = Settings(**{k: v for k, v in overrides.items() if v is not None})
    except ValidationError as e:
        console.print(f"[bold red]Invalid configuration:[/bold red] {e}")
        raise typer.Exit(code=2) from None

    configure_logging(log_level=settings.log_level, environment=settings.environment)

    seeds: list[Any] = list(settings.seed_urls)
    if input_file is not None:
        seeds.extend(load_seed_file(input_file))
    seeds.extend(urls or [])

    console.print(
        Panel.fit(
            "[bold cyan]Harvester[/bold cyan] - Content Harvest\n"
            f"Version {__version__}",
            border_style="cyan",
        )
    )
    console.print(f"  Seeds: {len(seeds)}")
    console.print(f"  Budget: {settings.max_requests}")
    console.print(f"  Keywords: {', '.join(settings.keywords) or '-'}")
    console.print(f"  Output: {settings.output_path}\n")

    orchestrator = HarvestOrchestrator.from_settings(
        settings, reporter=LoggingFailureReporter()
    )

    try:
        result = asyncio.run(orchestrator.harvest(seeds))
    except InvalidInputError as e:
        console.print(f"\n[bold red]Invalid input:[/bold red] {e}")
        raise typer.Exit(code=1) from None
    except KeyboardInterrupt:
        console.print("\n\n[yellow]Harvest cancelled by user (Ctrl+C)[/yellow]")
        raise typer.Exit(code=130) from None

    print_summary(result, settings.output_path)


if __name__ == "__main__":
    app()
