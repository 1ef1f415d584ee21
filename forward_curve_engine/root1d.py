"""One-dimensional root finding (secant with bracket preservation, Newton with domain clamping)."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Callable, NamedTuple

from .utils import (
    DEFAULT_ITERATIONS,
    DEFAULT_TOLERANCE,
    INFINITY,
    NAN,
    samesign,
)

logger = logging.getLogger(__name__)

Func = Callable[[float], float]


class RootResult(NamedTuple):
    root: float
    residual: float
    iterations: int

    @property
    def converged(self) -> bool:
        return not math.isnan(self.root)


@dataclass
class Secant:
    """
    Secant method from two initial guesses.

    Once the two most recent points bracket a root (function values of
    opposite sign) the bracket is never given up: a trial point with the
    same sign as the latest point replaces it and the older endpoint stays.
    """
    x0: float
    x1: float
    tolerance: float = DEFAULT_TOLERANCE
    iterations: int = DEFAULT_ITERATIONS

    @staticmethod
    def next(x0: float, y0: float, x1: float, y1: float) -> float:
        return (x0 * y1 - x1 * y0) / (y1 - y0)

    def solve(self, f: Func) -> RootResult:
        x0, x1 = float(self.x0), float(self.x1)
        y0, y1 = f(x0), f(x1)
        bounded = not samesign(y0, y1)

        n = 0
        while n < self.iterations and abs(y1) > self.tolerance:
            if y1 == y0:
                logger.debug("Secant iter %s: flat secant at x0=%s x1=%s", n, x0, x1)
                break
            x = self.next(x0, y0, x1, y1)
            y = f(x)
            n += 1
            logger.debug("Secant iter %s: x=%s y=%s bounded=%s", n, x, y, bounded)
            if bounded and samesign(y, y1):
                x1, y1 = x, y
            else:
                x0, y0 = x1, y1
                x1, y1 = x, y
                bounded = not samesign(y0, y1)

        if abs(y1) <= self.tolerance:
            return RootResult(x1, y1, n)

        logger.warning("Secant failed to converge after %s iterations (x=%s, residual=%s)", n, x1, y1)
        return RootResult(NAN, y1, n)


@dataclass
class Newton:
    """
    Newton's method from one initial guess and an analytic derivative.

    Iterates are kept inside (lower, upper). A step that would leave the
    domain moves halfway from the current guess to the violated bound, so
    with the default lower bound of 0 the guess is halved.
    """
    x0: float
    tolerance: float = DEFAULT_TOLERANCE
    iterations: int = DEFAULT_ITERATIONS
    lower: float = 0.0
    upper: float = INFINITY

    @staticmethod
    def next(x: float, y: float, dy: float) -> float:
        return x - y / dy

    def solve(self, f: Func, df: Func) -> RootResult:
        x = float(self.x0)
        y = f(x)

        n = 0
        while n < self.iterations and abs(y) > self.tolerance:
            dy = df(x)
            if dy == 0 or math.isnan(dy):
                logger.debug("Newton iter %s: unusable derivative %s at x=%s", n, dy, x)
                break
            x_ = self.next(x, y, dy)
            if x_ <= self.lower:
                x = (x + self.lower) / 2
            elif x_ >= self.upper:
                x = (x + self.upper) / 2
            else:
                x = x_
            y = f(x)
            n += 1
            logger.debug("Newton iter %s: x=%s y=%s dy=%s", n, x, y, dy)

        if abs(y) <= self.tolerance:
            return RootResult(x, y, n)

        logger.warning("Newton failed to converge after %s iterations (x=%s, residual=%s)", n, x, y)
        return RootResult(NAN, y, n)


def secant(
    f: Func,
    x0: float,
    x1: float,
    tolerance: float = DEFAULT_TOLERANCE,
    iterations: int = DEFAULT_ITERATIONS,
) -> RootResult:
    return Secant(x0, x1, tolerance, iterations).solve(f)


def newton(
    f: Func,
    df: Func,
    x0: float,
    tolerance: float = DEFAULT_TOLERANCE,
    iterations: int = DEFAULT_ITERATIONS,
    lower: float = 0.0,
    upper: float = INFINITY,
) -> RootResult:
    return Newton(x0, tolerance, iterations, lower, upper).solve(f, df)
