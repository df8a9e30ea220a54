"""Verifiably-fair raffle driven by upkeep calls and a randomness oracle."""

__version__ = "0.1.0"
