"""Utility exports for the epfarm package."""

# pylint: disable=redefined-builtin

from .hasher import Hasher, hash
from .logger import get_logger, set_level
from .now import Now
from .retry_policy import RetryPolicy, is_transient_error

__all__ = [
    "Hasher",
    "Now",
    "RetryPolicy",
    "get_logger",
    "hash",
    "is_transient_error",
    "set_level",
]
