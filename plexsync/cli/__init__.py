"""
Command-Line Interface Layer.

This package defines the Typer application and the Rich helpers it uses to
present configuration, plans and job summaries.
"""
