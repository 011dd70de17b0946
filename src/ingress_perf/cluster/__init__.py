"""Cluster access, asset templates and metadata discovery."""
