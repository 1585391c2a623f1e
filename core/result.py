"""
Result pattern for explicit error handling.

The HTTP transport returns either a Success or a Failure instead of raising,
so each service decides at its own boundary whether an upstream failure is
propagated (write paths) or degraded to an empty value (read paths).

Example:
    >>> result = await client.get_json("/search/shoes", params)
    >>> if isinstance(result, Failure):
    ...     return SearchResultSet.empty()
    >>> payload = result.value
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class Success[T]:
    """
    A successful outcome.

    Attributes:
        value: The success value.
    """

    value: T


@dataclass(frozen=True, slots=True)
class Failure[E]:
    """
    A failed outcome.

    Attributes:
        error: The error, usually a ConstructorError.
    """

    error: E


type Result[T, E] = Success[T] | Failure[E]


def success[T](value: T) -> Success[T]:
    """Create a Success result."""
    return Success(value)


def failure[E](error: E) -> Failure[E]:
    """Create a Failure result."""
    return Failure(error)
