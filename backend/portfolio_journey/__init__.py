"""Engineering journey backend: domain model, progress roll-ups and audit."""

__version__ = "1.0.0"
