"""Command-line interface for gridprompt."""
