from __future__ import annotations

import math

import numpy as np


NAN = float("nan")
INFINITY = float("inf")
EPSILON = float(np.finfo(float).eps)
SQRT_EPSILON = math.sqrt(EPSILON)

DEFAULT_TOLERANCE = SQRT_EPSILON
DEFAULT_ITERATIONS = 100
DEFAULT_RATE_GUESS = 0.01

BP = 1e-4


def sgn(x: float) -> int:
    """Sign of x as -1, 0 or 1. NaN maps to 0."""
    return 1 if x > 0 else -1 if x < 0 else 0


def samesign(x: float, y: float) -> bool:
    return sgn(x) == sgn(y)


def continuous_rate(y: float, n: int) -> float:
    """
    Continuously compounded rate r equivalent to a yield y compounded n times
    per year: (1 + y/n)^n = e^r.
    """
    if n <= 0:
        raise ValueError("compounding frequency must be positive")
    return n * math.log1p(y / n)


def compound_yield(r: float, n: int) -> float:
    """Inverse of continuous_rate."""
    if n <= 0:
        raise ValueError("compounding frequency must be positive")
    return n * math.expm1(r / n)