"""Command-line interface (``cards``)."""
