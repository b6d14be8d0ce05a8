"""
Key command: keygen
"""

from typing import Optional

import typer
from rich.console import Console

from bbr.checkpoint.signer import SigningKey, ensure_keypair

console = Console()


def keygen_command(
    key_path: Optional[str] = typer.Option(
        None,
        "--key",
        "-k",
        help="Private key path (default: ~/.bbr/keys/checkpoint_ed25519)",
    ),
):
    """
    Create an Ed25519 keypair for signing checkpoints (kept if it already exists).

    Examples:
        bbr keygen
        bbr keygen --key ./keys/recorder
    """
    try:
        private_path, public_path = ensure_keypair(key_path)
        pubkey_id = SigningKey.load_from_file(private_path).get_pubkey_id()
    except (OSError, ValueError) as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(2)

    console.print(f"[green]Private key:[/green] {private_path}")
    console.print(f"[green]Public key:[/green]  {public_path}")
    console.print(f"[bold]Key ID:[/bold] {pubkey_id}")
