"""Flow nodes that read device state from the eWeLink cloud."""

__version__ = "0.1.0"
