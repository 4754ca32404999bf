"""Terminal client for a live text-chat feed."""

__version__ = "0.1.0"
