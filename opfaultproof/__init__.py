"""Client for OP Succinct fault dispute games: scanning, challenging, resolving and bond claiming."""

__version__ = "0.1.0"