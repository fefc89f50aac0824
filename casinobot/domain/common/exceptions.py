"""Errors shared by every domain module."""


class StoreUnavailableError(Exception):
    """Raised when the durable store cannot be reached or refuses the transaction."""
