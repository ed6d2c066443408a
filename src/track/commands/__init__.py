"""Command implementations invoked by the typer CLI."""
