"""
Present value, duration, convexity, yield and OAS of cash flows against a curve.

Duration and convexity are the first and second derivatives of present value
under a uniform additive shift of the forward curve, so they serve as exact
Newton derivatives when solving for yields and spreads.
"""
from __future__ import annotations

import logging
from typing import Iterable

from .curves import ConstantCurve, Curve
from .instruments import CashFlowLike, cash_flows
from .root1d import Newton
from .utils import (
    DEFAULT_ITERATIONS,
    DEFAULT_RATE_GUESS,
    DEFAULT_TOLERANCE,
    INFINITY,
)

logger = logging.getLogger(__name__)


def present(instrument: Iterable[CashFlowLike], curve: Curve) -> float:
    """Sum of c D(u)."""
    return sum((uc.amount * curve.discount(uc.time) for uc in cash_flows(instrument)), 0.0)


def duration(instrument: Iterable[CashFlowLike], curve: Curve, after: float = 0.0) -> float:
    """
    Sum of -max(u - after, 0) c D(u) over all cash flows.

    With after = 0 this is the derivative of present value for a parallel
    shift of the forward curve. Otherwise only forwards beyond `after` are
    shifted. NaN or negative cash flow times give NaN, as in present.
    """
    pv = 0.0
    for uc in cash_flows(instrument):
        # max(nan, 0.0) is nan
        pv += -max(uc.time - after, 0.0) * uc.amount * curve.discount(uc.time)
    return pv


def convexity(instrument: Iterable[CashFlowLike], curve: Curve) -> float:
    """Sum of u^2 c D(u)."""
    return sum((uc.time * uc.time * uc.amount * curve.discount(uc.time) for uc in cash_flows(instrument)), 0.0)


def macaulay_duration(instrument: Iterable[CashFlowLike], curve: Curve) -> float:
    flows = list(cash_flows(instrument))
    return duration(flows, curve) / present(flows, curve)


def yield_(
    instrument: Iterable[CashFlowLike],
    price: float = 0.0,
    guess: float = DEFAULT_RATE_GUESS,
    tolerance: float = DEFAULT_TOLERANCE,
    iterations: int = DEFAULT_ITERATIONS,
    lower: float = 0.0,
) -> float:
    """Constant continuously compounded rate repricing the instrument to price."""
    flows = list(cash_flows(instrument))

    def pv(y: float) -> float:
        return present(flows, ConstantCurve(y)) - price

    def dur(y: float) -> float:
        return duration(flows, ConstantCurve(y))

    y, residual, n = Newton(guess, tolerance, iterations, lower=lower).solve(pv, dur)
    logger.debug("yield: y=%s residual=%s iterations=%s", y, residual, n)
    return y


def oas(
    instrument: Iterable[CashFlowLike],
    curve: Curve,
    price: float,
    guess: float = 0.0,
    tolerance: float = DEFAULT_TOLERANCE,
    iterations: int = DEFAULT_ITERATIONS,
) -> float:
    """Constant spread s with present(instrument, curve + s) == price."""
    flows = list(cash_flows(instrument))

    def pv(s: float) -> float:
        return present(flows, curve + s) - price

    def dur(s: float) -> float:
        return duration(flows, curve + s)

    s, residual, n = Newton(guess, tolerance, iterations, lower=-INFINITY).solve(pv, dur)
    logger.debug("oas: s=%s residual=%s iterations=%s", s, residual, n)
    return s
