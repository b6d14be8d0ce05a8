"""
Bag commands: topics, info
"""

import json

import typer
from rich.console import Console
from rich.table import Table

from bbr.bag import BagStorage, IOFlag
from bbr.core.errors import BbrError

app = typer.Typer()
console = Console()


def _open(bag_path: str) -> BagStorage:
    storage = BagStorage()
    storage.open(bag_path, IOFlag.READ_ONLY)
    return storage


@app.command()
def topics(
    bag_path: str = typer.Argument(..., help="Path to bag directory"),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
):
    """
    List topics with message counts and chain fields.

    Examples:
        bbr bag topics ./my_bag
        bbr bag topics ./my_bag --json
    """
    try:
        with _open(bag_path) as storage:
            stored = storage.store.list_topics()
            counts = {
                t["topic_metadata"]["name"]: t["message_count"]
                for t in storage.get_metadata().topics_with_message_count
            }
    except BbrError as e:
        if json_output:
            print(json.dumps({"error": str(e)}))
        else:
            console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(2)

    if json_output:
        out = [
            {
                "id": t.id,
                **t.topic.to_dict(),
                "message_count": counts.get(t.name, 0),
                "nonce": t.seed_nonce.hex(),
                "digest": t.digest.hex(),
            }
            for t in stored
        ]
        print(json.dumps({"topics": out, "count": len(out)}, indent=2))
        raise typer.Exit(0)

    table = Table(title=f"Topics: {bag_path}")
    table.add_column("Id", style="cyan")
    table.add_column("Name", style="green")
    table.add_column("Type", style="yellow")
    table.add_column("Format")
    table.add_column("Messages", justify="right")
    table.add_column("Digest (prefix)", style="dim")
    for t in stored:
        table.add_row(
            str(t.id),
            t.name,
            t.topic.type,
            t.topic.serialization_format,
            str(counts.get(t.name, 0)),
            t.digest.hex()[:16],
        )
    console.print(table)
    console.print(f"\n[bold]Total topics:[/bold] {len(stored)}")


@app.command()
def info(
    bag_path: str = typer.Argument(..., help="Path to bag directory"),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
):
    """
    Show bag summary (message count, time bounds, size).

    Examples:
        bbr bag info ./my_bag
    """
    try:
        with _open(bag_path) as storage:
            metadata = storage.get_metadata()
    except BbrError as e:
        if json_output:
            print(json.dumps({"error": str(e)}))
        else:
            console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(2)

    if json_output:
        print(json.dumps(metadata.to_dict(), indent=2))
        raise typer.Exit(0)

    table = Table(show_header=False, box=None)
    table.add_row("[bold]Files[/bold]", ", ".join(metadata.relative_file_paths))
    table.add_row("[bold]Storage[/bold]", metadata.storage_identifier)
    table.add_row("[bold]Digest[/bold]", metadata.hash_algorithm)
    table.add_row("[bold]Size[/bold]", f"{metadata.bag_size} B")
    table.add_row("[bold]Start[/bold]", f"{metadata.starting_time} ns")
    table.add_row("[bold]Duration[/bold]", f"{metadata.duration / 1e9:.3f} s")
    table.add_row("[bold]Messages[/bold]", str(metadata.message_count))
    console.print(table)
