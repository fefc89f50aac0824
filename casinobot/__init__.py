"""Currency ledger and blackjack core for the community bot."""

__version__ = "0.1.0"
