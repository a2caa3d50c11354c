"""Command line interface for the risk register toolkit."""

from .commands import EXIT_FATAL, EXIT_SUCCESS, EXIT_USER_ERROR, main

__all__ = [
    "EXIT_FATAL",
    "EXIT_SUCCESS",
    "EXIT_USER_ERROR",
    "main",
]
