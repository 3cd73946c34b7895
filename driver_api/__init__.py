"""HTTP API for the driver ledger."""
