"""HTTP server for the billing ledger."""
