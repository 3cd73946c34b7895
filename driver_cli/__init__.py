"""Command-line interface for the driver ledger."""
