"""Command-line interface for entityledger."""
