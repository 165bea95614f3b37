"""Photo capture upload server and offline-first sync client."""

__version__ = "0.5.0"
