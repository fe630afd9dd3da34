"""Fetching, extraction and URL discovery against the vendor site."""
