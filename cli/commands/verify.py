"""
Verify command: recompute a bag's chains and compare with published checkpoints
"""

import json
import os
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from bbr.bag import CHECKPOINT_LOG_FILENAME, BagStorage, IOFlag
from bbr.checkpoint import VerifyingKey, load_checkpoints
from bbr.core.errors import BbrError, IntegrityError
from bbr.verify import verify_store

console = Console()


def verify_command(
    bag_path: str = typer.Argument(..., help="Path to bag directory"),
    checkpoints_path: Optional[str] = typer.Option(
        None,
        "--checkpoints",
        "-c",
        help=f"Checkpoint log (default: {CHECKPOINT_LOG_FILENAME} in the bag, if present)",
    ),
    pubkey_path: Optional[str] = typer.Option(
        None, "--pubkey", "-p", help="Ed25519 public key the checkpoints were signed with"
    ),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
):
    """
    Verify a bag.

    Exit codes: 0 valid, 1 tampered, 2 error.

    Examples:
        bbr verify ./my_bag
        bbr verify ./my_bag --checkpoints anchor.jsonl --pubkey recorder.pub
        bbr verify ./my_bag --json
    """
    if checkpoints_path is None:
        default = os.path.join(bag_path, CHECKPOINT_LOG_FILENAME)
        if os.path.exists(default):
            checkpoints_path = default

    try:
        verifying_key = VerifyingKey.load_from_file(pubkey_path) if pubkey_path else None
        checkpoints = (
            load_checkpoints(checkpoints_path, verifying_key) if checkpoints_path else None
        )
        with BagStorage() as storage:
            storage.open(bag_path, IOFlag.READ_ONLY)
            report = verify_store(
                storage.store, checkpoints=checkpoints, algorithm=storage.hash_algorithm
            )
    except IntegrityError as e:
        if json_output:
            print(json.dumps({"valid": False, "error": str(e)}))
        else:
            console.print(f"[red]Checkpoint log rejected:[/red] {e}")
        raise typer.Exit(1)
    except (BbrError, OSError, ValueError) as e:
        if json_output:
            print(json.dumps({"valid": False, "error": str(e)}))
        else:
            console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(2)

    if json_output:
        out = {
            "valid": report.valid,
            "anchored": checkpoints is not None,
            "errors": report.all_errors(),
            "topics": [
                {
                    "topic": t.topic,
                    "valid": t.valid,
                    "message_count": t.message_count,
                    "final_digest": t.final_digest.hex() if t.final_digest else None,
                    "broken_at": t.broken_at,
                }
                for t in report.topics
            ],
        }
        print(json.dumps(out, indent=2))
    else:
        table = Table(title=f"Verification: {bag_path}")
        table.add_column("Topic", style="green")
        table.add_column("Messages", justify="right")
        table.add_column("Final digest (prefix)", style="dim")
        table.add_column("Status")
        for t in report.topics:
            table.add_row(
                t.topic,
                str(t.message_count),
                t.final_digest.hex()[:16] if t.final_digest else "N/A",
                "[green]OK[/green]" if t.valid else "[red]TAMPERED[/red]",
            )
        console.print(table)
        if checkpoints is None:
            console.print("[yellow]No checkpoint log: trailing deletions cannot be detected[/yellow]")
        for error in report.all_errors():
            console.print(f"[red]✗[/red] {error}")
        if report.valid:
            console.print("[bold green]Chain verified[/bold green]")

    raise typer.Exit(0 if report.valid else 1)
