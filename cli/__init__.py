"""
bbr CLI - tamper-evident bag tools

Commands:
- bbr bag topics/info - Inspect a recorded bag
- bbr verify - Recompute chains and check published checkpoints
- bbr keygen - Create a checkpoint signing keypair
"""

__version__ = "0.1.0"
