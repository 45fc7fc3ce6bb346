"""Subcommands registered by ``peppolgate.cli.app``."""
