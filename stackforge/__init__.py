"""stackforge -- plugin-driven project scaffolding engine."""

__version__ = "0.1.0"
