"""peppolgate CLI: Typer-based command-line interface.

Provides the ``peppolgate`` command with subcommands for verifying
recipients, resolving publishers, classifying documents, sending
documents and running integration cron events.

All output uses Rich for formatted terminal display.
"""
