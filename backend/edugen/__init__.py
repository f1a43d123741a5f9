"""edugen backend: the render service and the web/proxy service."""

__version__ = "1.0.0"
