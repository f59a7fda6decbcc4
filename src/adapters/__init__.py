"""Adapters implementing the core ports (SQLite master store, local artifacts)."""
