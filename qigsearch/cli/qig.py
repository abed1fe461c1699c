#!/usr/bin/env python3
"""
Command-line client for the QIG search daemon.

Usage:
    qig test "twelve words ..."     - Evaluate one phrase
    qig batch phrases.txt           - Evaluate a file of phrases (one per line)
    qig known                       - Evaluate the curated known phrases
    qig candidates [--export FILE]  - Show or export high-phi candidates
    qig search start FILE|--known   - Start a background search
    qig search status               - Live search telemetry
    qig targets list|add|remove     - Manage target addresses
    qig daemon start|stop|status    - Manage the daemon
"""

import asyncio
from pathlib import Path
from typing import Optional

import click
import httpx
from loguru import logger
from rich.console import Console
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

console = Console()

# Default daemon URL
DAEMON_URL = "http://localhost:8766"


def read_phrase_file(path: str) -> list:
    """Non-blank lines of a phrase file, trimmed."""
    lines = Path(path).read_text(encoding="utf-8").splitlines()
    return [line.strip() for line in lines if line.strip()]


async def request(method: str, path: str, timeout: float = 10.0, **kwargs) -> Optional[httpx.Response]:
    """Send a request to the daemon, reporting connection problems."""
    try:
        async with httpx.AsyncClient(base_url=DAEMON_URL) as client:
            return await client.request(method, path, timeout=timeout, **kwargs)
    except httpx.ConnectError:
        console.print("[red]Cannot connect to daemon. Is it running?[/red]")
        console.print("Start with: [cyan]qig daemon start[/cyan]")
    except httpx.TimeoutException:
        console.print(f"[red]Request to {path} timed out[/red]")
    return None


def print_error(response: httpx.Response) -> None:
    try:
        error = response.json().get("error", {})
        message = error.get("message", response.text) if isinstance(error, dict) else error
    except ValueError:
        message = response.text
    console.print(f"[red]Failed ({response.status_code}):[/red] {message}")


@click.group()
@click.option("--url", default=DAEMON_URL, show_default=True, help="Daemon base URL")
def cli(url: str):
    """QIG search - passphrase candidate evaluation CLI."""
    global DAEMON_URL
    DAEMON_URL = url


@cli.command(name="test")
@click.argument("phrase")
def test_phrase(phrase: str):
    """Evaluate a single 12-word phrase."""
    asyncio.run(run_test_phrase(phrase))


async def run_test_phrase(phrase: str):
    response = await request("POST", "/test-phrase", json={"phrase": phrase})
    if response is None:
        return
    if response.status_code != 200:
        print_error(response)
        return

    data = response.json()
    if data["match"]:
        console.print(f"[bold green]MATCH FOUND![/bold green] {data['address']}")
    display_score(data)


def display_score(data: dict):
    score = data["qigScore"]
    table = Table(title=data["phrase"], show_header=False)
    table.add_column("Field", style="cyan")
    table.add_column("Value", justify="right")
    table.add_row("Address", data["address"])
    table.add_row("Context", f"{score['contextScore']:.1f}%")
    table.add_row("Elegance", f"{score['eleganceScore']:.1f}%")
    table.add_row("Typing", f"{score['typingScore']:.1f}%")
    table.add_row("Total", f"[bold]{score['totalScore']:.2f}%[/bold]")
    console.print(table)


@cli.command()
@click.argument("file", type=click.Path(exists=True, dir_okay=False))
def batch(file: str):
    """Evaluate every phrase in FILE (one per line)."""
    asyncio.run(run_batch(read_phrase_file(file)))


@cli.command()
def known():
    """Evaluate the daemon's curated known phrases."""
    async def run():
        response = await request("GET", "/known-phrases")
        if response is None:
            return
        await run_batch(response.json()["phrases"])

    asyncio.run(run())


async def run_batch(phrases: list):
    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        transient=True,
        console=console
    ) as progress:
        progress.add_task(description=f"Testing {len(phrases)} phrases...", total=None)
        response = await request("POST", "/batch-test", timeout=None, json={"phrases": phrases})

    if response is None:
        return
    if response.status_code != 200:
        print_error(response)
        return

    data = response.json()
    if data.get("found"):
        console.print(f"[bold green]MATCH FOUND![/bold green] Phrase: {data['phrase']}")
        console.print(f"Address: {data['address']}  Score: {data['score']:.2f}")
        return

    console.print(
        f"Batch: {data['tested']} phrases tested, "
        f"{data['highPhiCandidates']} high-phi candidates"
    )
    if data.get("errors"):
        console.print(f"[yellow]{data['errors']} phrases failed derivation[/yellow]")
    if data["candidates"]:
        display_candidates(data["candidates"])


def display_candidates(candidates: list):
    """Display candidates in a table."""
    table = Table(title=f"Top Candidates ({len(candidates)})")
    table.add_column("Score", justify="right", style="bold")
    table.add_column("Phrase", style="cyan", no_wrap=False)
    table.add_column("Context", justify="right")
    table.add_column("Elegance", justify="right")
    table.add_column("Typing", justify="right")

    for c in candidates:
        q = c["qigScore"]
        table.add_row(
            f"{c['score']:.2f}",
            c["phrase"],
            f"{q['contextScore']:.1f}",
            f"{q['eleganceScore']:.1f}",
            f"{q['typingScore']:.1f}",
        )
    console.print(table)


@cli.command()
@click.option("--export", "export_path", type=click.Path(dir_okay=False), help="Write candidates to a CSV file")
@click.option("--clear", is_flag=True, help="Clear the candidate store")
def candidates(export_path: Optional[str], clear: bool):
    """Show, export or clear retained candidates."""
    asyncio.run(run_candidates(export_path, clear))


async def run_candidates(export_path: Optional[str], clear: bool):
    if clear:
        response = await request("DELETE", "/candidates")
        if response is not None and response.status_code == 200:
            console.print("[green]Candidate store cleared[/green]")
        return

    if export_path:
        response = await request("GET", "/candidates/export")
        if response is None:
            return
        Path(export_path).write_text(response.text, encoding="utf-8")
        console.print(f"[green]✓[/green] Exported to {export_path}")
        return

    response = await request("GET", "/candidates")
    if response is None:
        return
    data = response.json()
    if not data:
        console.print("[yellow]No high-phi candidates yet[/yellow]")
        return
    display_candidates(data)


@cli.command()
def verify():
    """Run the crypto self-test."""
    async def run():
        response = await request("GET", "/verify-crypto")
        if response is None:
            return
        data = response.json()
        if data.get("success"):
            console.print(f"[green]✓ Crypto libraries verified![/green] Test address: {data['testAddress']}")
        else:
            console.print(f"[red]✗ Crypto self-test failed:[/red] {data.get('error')}")

    asyncio.run(run())


@cli.group()
def search():
    """Background search sessions."""
    pass


@search.command(name="start")
@click.argument("file", required=False, type=click.Path(exists=True, dir_okay=False))
@click.option("--known", "use_known", is_flag=True, help="Search the curated known phrases")
def search_start(file: Optional[str], use_known: bool):
    """Start a background search over FILE or the known phrases."""
    if bool(file) == use_known:
        raise click.UsageError("Give either FILE or --known")

    payload = {"source": "known"} if use_known else {"source": "batch", "phrases": read_phrase_file(file)}

    async def run():
        response = await request("POST", "/search/start", json=payload)
        if response is None:
            return
        if response.status_code != 202:
            print_error(response)
            return
        console.print(f"[green]Search started[/green] ({response.json()['total']} phrases)")

    asyncio.run(run())


@search.command(name="stop")
def search_stop():
    """Stop the running search at the next chunk boundary."""
    async def run():
        response = await request("POST", "/search/stop")
        if response is not None:
            console.print(f"Search: {response.json()['status']}")

    asyncio.run(run())


@search.command(name="status")
def search_status():
    """Show live search telemetry."""
    async def run():
        response = await request("GET", "/search/status")
        if response is None:
            return
        data = response.json()
        stats = data["stats"]

        console.print(f"State: [bold]{data['state']}[/bold]")
        console.print(f"Tested: {stats['tested']}/{data['total']}  Rate: {stats['rate']}/s")
        console.print(f"High-phi: {stats['highPhiCount']}  Runtime: {stats['runtime']}")
        if data.get("found"):
            console.print(f"[bold green]MATCH FOUND![/bold green] {data['found']['phrase']}")
        for event in data.get("events", [])[-10:]:
            console.print(f"[red]{event['timestamp']}[/red] {event['message']}")

    asyncio.run(run())


@cli.group()
def targets():
    """Manage target addresses."""
    pass


@targets.command(name="list")
def targets_list():
    async def run():
        response = await request("GET", "/targets")
        if response is None:
            return
        table = Table(title="Target Addresses")
        table.add_column("ID", style="dim")
        table.add_column("Address", style="cyan")
        table.add_column("Label")
        for t in response.json()["targets"]:
            table.add_row(t["id"], t["address"], t.get("label", ""))
        console.print(table)

    asyncio.run(run())


@targets.command(name="add")
@click.argument("address")
@click.option("--label", "-l", help="Label for the address")
def targets_add(address: str, label: Optional[str]):
    async def run():
        response = await request("POST", "/targets", json={"address": address, "label": label})
        if response is None:
            return
        if response.status_code != 201:
            print_error(response)
            return
        console.print(f"[green]✓[/green] Added target {response.json()['id']}")

    asyncio.run(run())


@targets.command(name="remove")
@click.argument("target_id")
def targets_remove(target_id: str):
    async def run():
        response = await request("DELETE", f"/targets/{target_id}")
        if response is None:
            return
        if response.status_code != 200:
            print_error(response)
            return
        console.print(f"[green]✓[/green] Removed target {target_id}")

    asyncio.run(run())


@cli.group()
def daemon():
    """Manage the QIG search daemon."""
    pass


@daemon.command()
@click.option("--config", "-c", type=click.Path(exists=True), help="Config file path")
def start(config: Optional[str]):
    """Start the QIG search daemon."""
    console.print("[cyan]Starting QIG search daemon...[/cyan]")

    from ..daemon.main import main as daemon_main

    try:
        asyncio.run(daemon_main(config))
    except KeyboardInterrupt:
        console.print("\n[yellow]Daemon stopped by user[/yellow]")
    except Exception as e:
        console.print(f"[red]Daemon error:[/red] {e}")
        logger.exception("Daemon crashed")


@daemon.command()
def stop():
    """Stop the QIG search daemon."""
    async def run():
        response = await request("POST", "/shutdown", timeout=5.0)
        if response is not None and response.status_code == 200:
            console.print("[green]Daemon stopped[/green]")

    asyncio.run(run())


@daemon.command()
def status():
    """Check daemon status."""
    async def run():
        response = await request("GET", "/status", timeout=2.0)
        if response is None:
            return
        data = response.json()
        console.print("[green]✓ Daemon is running[/green]")

        stats = data.get("stats", {})
        console.print(f"\nUptime: {data.get('uptime', 'unknown')}")
        console.print(f"Search: {stats.get('search_state', 'unknown')}")
        console.print(f"Candidates: {stats.get('candidates', 0)}/{stats.get('store_capacity', 0)}")
        console.print(f"Targets: {stats.get('targets', 0)}")
        console.print(f"Memory: {stats.get('memory_mb', 0):.1f} MB")

    asyncio.run(run())


def main():
    """Entry point for the CLI."""
    cli()


if __name__ == "__main__":
    main()
