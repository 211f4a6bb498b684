"""Matchmaking, rating and credit-score engine for sports events."""

__version__ = "0.1.0"
