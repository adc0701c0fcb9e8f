"""Grounded retrieval-augmented answer streaming service."""

__version__ = "1.0.0"
