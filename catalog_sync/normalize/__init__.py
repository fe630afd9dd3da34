"""Comparison of stored values against live values."""
