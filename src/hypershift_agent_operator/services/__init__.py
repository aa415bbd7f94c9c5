"""Cluster API clients."""
