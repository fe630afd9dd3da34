"""Verification that a vendor page is the expected product."""
