"""Command-line interface for the agency network."""
