"""Shared abstractions used across domain modules."""

from .exceptions import StoreUnavailableError
from .repository import AsyncRepository
from .result import Err, ErrorKind, Failure, Ok, Result
from .unit_of_work import UnitOfWork

__all__ = [
    "AsyncRepository",
    "Err",
    "ErrorKind",
    "Failure",
    "Ok",
    "Result",
    "StoreUnavailableError",
    "UnitOfWork",
]
