"""Domain primitives shared across the organizer."""

from .result import Result, Success, Failure

__all__ = ["Result", "Success", "Failure"]
