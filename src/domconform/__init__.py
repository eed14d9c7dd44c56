"""Declarative DOM conformance checking."""

__version__ = "0.1.0"
