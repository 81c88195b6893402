"""CPU-bound Fibonacci functions executed in-process or inside workers.

``fibonacci`` is deliberately the naive doubly-recursive definition: the
whole point of the server is to have slow, pure CPU work whose blocking
effect on the event loop is observable. Do not memoize it.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from fibdispatch._internal.errors import InvalidInputError
from fibdispatch._internal.types import VARIANTS

if TYPE_CHECKING:
    from fibdispatch._internal.types import ComputeValue, Variant


def validate_input(n: object) -> int:
    """Validate that ``n`` is a non-negative integer.

    Args:
        n: Candidate input.

    Returns:
        ``n`` unchanged.

    Raises:
        InvalidInputError: If ``n`` is not an int, is a bool, or is negative.
    """
    if isinstance(n, bool) or not isinstance(n, int):
        msg = f"n must be an integer, got: {type(n).__name__}"
        raise InvalidInputError(msg)
    if n < 0:
        msg = f"n must be >= 0, got: {n}"
        raise InvalidInputError(msg)
    return n


def validate_variant(variant: str) -> Variant:
    """Return ``variant`` if it names a known algorithm.

    Raises:
        InvalidInputError: If ``variant`` is not "term" or "sequence".
    """
    if variant not in VARIANTS:
        msg = f"Unknown variant: {variant!r}. Choose from: {', '.join(VARIANTS)}"
        raise InvalidInputError(msg)
    return variant  # type: ignore[return-value]


def _fib(n: int) -> int:
    if n <= 1:
        return n
    return _fib(n - 1) + _fib(n - 2)


def fibonacci(n: int) -> int:
    """Return the n-th Fibonacci number by direct recursion.

    ``f(0) = 0``, ``f(1) = 1``, ``f(n) = f(n - 1) + f(n - 2)``.

    Args:
        n: Index of the term, ``n >= 0``.

    Returns:
        The n-th term.

    Raises:
        InvalidInputError: If ``n`` is negative or not an integer.
    """
    return _fib(validate_input(n))


def fibonacci_sequence(n: int) -> list[int]:
    """Return the first ``n`` terms of the sequence ``1, 1, 2, 3, 5, ...``.

    For ``n == 0`` the result is ``[0]``.

    Args:
        n: Number of terms, ``n >= 0``.

    Returns:
        List of terms.

    Raises:
        InvalidInputError: If ``n`` is negative or not an integer.
    """
    n = validate_input(n)
    if n < 1:
        return [n]

    result = [1]
    prev, current = 0, 1
    for _ in range(1, n):
        prev, current = current, prev + current
        result.append(current)
    return result


def compute(n: int, variant: Variant = "term") -> ComputeValue:
    """Run the selected algorithm variant.

    Args:
        n: Input integer.
        variant: ``"term"`` for ``fibonacci``, ``"sequence"`` for
            ``fibonacci_sequence``.

    Returns:
        The computed value.

    Raises:
        InvalidInputError: If ``n`` is invalid or ``variant`` is unknown.
    """
    if validate_variant(variant) == "sequence":
        return fibonacci_sequence(n)
    return fibonacci(n)
