"""Batch reconciliation runner."""
