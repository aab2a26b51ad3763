"""BookerOS tour booking and settlement service."""

__version__ = "1.0.0"
