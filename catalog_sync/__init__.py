"""Reconcile catalog price and stock against the vendor's live site."""

__version__ = "0.1.0"
