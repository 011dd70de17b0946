"""Ingress controller performance benchmarking."""

__version__ = "0.1.0"
