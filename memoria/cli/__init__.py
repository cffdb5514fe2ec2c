"""CLI module for memoria."""
