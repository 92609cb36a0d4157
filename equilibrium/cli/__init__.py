"""Command-line interface for equilibrium."""
