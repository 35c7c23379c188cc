"""Lead enrichment pipeline and proxy health service."""

__version__ = "1.0.0"
