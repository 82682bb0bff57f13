"""Persona-constrained assistant chat over a thread + run service."""

__version__ = "0.1.0"
