"""Direct messaging service with realtime presence and delivery."""

__version__ = "0.1.0"
