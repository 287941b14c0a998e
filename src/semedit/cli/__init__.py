"""Command-line interface for semedit."""
