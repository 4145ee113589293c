"""Requirements traceability coverage from code tags."""

__version__ = "0.1.0"
