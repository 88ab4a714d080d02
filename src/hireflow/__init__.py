"""Hiring workflow and training-compliance engine."""

__version__ = "0.1.0"
