"""listing-spine CLI (typer + rich)."""
