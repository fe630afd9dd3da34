"""Catalog storage: SQLAlchemy models, sessions and the product store."""
