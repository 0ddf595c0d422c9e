"""Voting API service: credential store, vote ledger, admission and tally."""
