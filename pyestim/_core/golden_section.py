"""
Golden section line minimization.

Shrinks a bracketing triple a < b < c with f(a) > f(b) < f(c) around the
minimum of a unimodal function, one function evaluation per iteration.
"""

import numpy as np
from typing import Callable, Optional
from dataclasses import dataclass


@dataclass
class GoldenSectionResult:
    """Result of a golden section search."""
    x: float                 # Minimum position
    fx: float                # Function value at x
    iterations: int          # Iterations used (setup step included)
    evaluations: int         # Calls made to the functor
    converged: bool          # Bracket shrank below tolerance

    def __iter__(self):
        # Unpacks as (x, fx)
        yield self.x
        yield self.fx


def _precision_of(*values) -> np.dtype:
    """Scalar type for the search: float32 only if the inputs are float32."""
    dtype = np.result_type(*values)
    if dtype == np.float32:
        return np.dtype(np.float32)
    return np.dtype(np.float64)


def golden_section_search(
    a: float,
    b: float,
    c: float,
    func: Callable[[float], float],
    max_iterations: int = 100,
    tol: Optional[float] = None,
    fb: Optional[float] = None,
) -> GoldenSectionResult:
    """
    Golden section search line minimization.

    The inputs must bracket the minimum and be in order, so that
    a < b < c and f(a) > f(b) < f(c). None of this is checked: a malformed
    bracket gives a deterministic but meaningless answer.

    Parameters
    ----------
    a : float
        The most negative point along the line
    b : float
        The central point
    c : float
        The most positive point along the line
    func : callable
        Functor to minimize, mapping a scalar to a scalar
    max_iterations : int
        Maximum number of iterations, the setup step included
    tol : float, optional
        Relative tolerance at which the search stops.
        Defaults to sqrt(eps) of the working precision.
    fb : float, optional
        Precomputed value of func(b), saves one evaluation

    Returns
    -------
    result : GoldenSectionResult
        Minimum position and value. On an exact tie between the two
        inner points the upper one is returned.

    Examples
    --------
    >>> x, fx = golden_section_search(0.0, 1.0, 5.0, lambda x: (x - 2) ** 2)
    """
    dtype = _precision_of(a, b, c)
    scalar = dtype.type

    a, b, c = scalar(a), scalar(b), scalar(c)
    if tol is None:
        tol = np.sqrt(np.finfo(dtype).eps)
    tol = scalar(tol)

    evaluations = 0
    if fb is None:
        fb = func(b)
        evaluations += 1

    g = scalar((3.0 - np.sqrt(5.0)) / 2)

    # Turn the 3 point bracket into an ordered 4 point one: a x1 x2 c
    if abs(b - a) > abs(c - b):
        x1 = b - g * (b - a)
        x2 = b
        fx1 = func(x1)
        fx2 = fb
    else:
        x1 = b
        x2 = b + g * (c - b)
        fx1 = fb
        fx2 = func(x2)
    evaluations += 1

    # Termination condition from NR in C
    iterations = 1
    converged = abs(c - a) <= tol * (abs(x1) + abs(x2))
    while not converged and iterations < max_iterations:
        if fx1 > fx2:
            # a     x1     x2     c
            #        a     x1  x2 c
            a = x1
            x1 = x2
            x2 = x1 + g * (c - x1)

            fx1 = fx2
            fx2 = func(x2)
        else:
            # a     x1     x2     c
            # a  x1 x2     c
            c = x2
            x2 = x1
            x1 = x2 - g * (x2 - a)

            fx2 = fx1
            fx1 = func(x1)

        evaluations += 1
        iterations += 1
        converged = abs(c - a) <= tol * (abs(x1) + abs(x2))

    if fx1 < fx2:
        x, fx = x1, fx1
    else:
        x, fx = x2, fx2

    return GoldenSectionResult(
        x=x,
        fx=fx,
        iterations=iterations,
        evaluations=evaluations,
        converged=bool(converged),
    )
