"""Command-line interface for the tool hub."""
