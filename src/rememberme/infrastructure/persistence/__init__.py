"""Persistence adapters backed by an external database server."""
