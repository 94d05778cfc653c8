"""Billing ledger for veterinary clinic cases."""
