from __future__ import annotations

import logging
import math
from typing import Iterable, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from .curves import PiecewiseFlatCurve
from .instruments import CashFlowLike, Instrument
from .root1d import Newton
from .utils import (
    DEFAULT_ITERATIONS,
    DEFAULT_RATE_GUESS,
    DEFAULT_TOLERANCE,
    NAN,
)
from .valuation import duration, present

logger = logging.getLogger(__name__)


class BootstrapError(ValueError):
    """An instrument could not be calibrated to the curve."""


def _as_instrument(instrument: Iterable[CashFlowLike]) -> Instrument:
    if isinstance(instrument, Instrument):
        return instrument
    return Instrument.from_cash_flows(instrument)


def bootstrap_instrument(
    instrument: Iterable[CashFlowLike],
    curve: PiecewiseFlatCurve,
    price: float = 0.0,
    guess: float = NAN,
    tolerance: float = DEFAULT_TOLERANCE,
    iterations: int = DEFAULT_ITERATIONS,
    lower: float = 0.0,
) -> Tuple[float, float]:
    """
    Knot (u, f) extending the curve so that the instrument reprices to price.

    u is the last cash flow time of the instrument and f the flat forward on
    (last knot, u]. The curve is not modified. f is NaN if u does not exceed
    the last knot or the solver does not converge.
    """
    i = _as_instrument(instrument)
    if len(i) == 0:
        raise ValueError("cannot bootstrap an instrument with no cash flows")
    u_last = i.back().time

    t_prev, f_prev = curve.back()
    if len(curve) == 0:
        t_prev = 0.0

    if not u_last > t_prev:
        logger.warning("Instrument maturity %s does not exceed last knot %s", u_last, t_prev)
        return u_last, NAN

    if math.isnan(guess):
        guess = f_prev
    if math.isnan(guess):
        guess = DEFAULT_RATE_GUESS

    def pv(f: float) -> float:
        return present(i, curve.extrapolate(t_prev, f)) - price

    def dur(f: float) -> float:
        return duration(i, curve.extrapolate(t_prev, f), after=t_prev)

    f, residual, n = Newton(guess, tolerance, iterations, lower=lower).solve(pv, dur)
    logger.debug("Knot (%s, %s): residual=%s iterations=%s", u_last, f, residual, n)

    return u_last, f


def bootstrap(
    instruments: Sequence[Iterable[CashFlowLike]],
    prices: Optional[Sequence[float]] = None,
    curve: Optional[PiecewiseFlatCurve] = None,
    strict: bool = False,
    tolerance: float = DEFAULT_TOLERANCE,
    iterations: int = DEFAULT_ITERATIONS,
    lower: float = 0.0,
) -> PiecewiseFlatCurve:
    """
    Bootstrap a piecewise flat forward curve.

    Instruments must be in increasing order of maturity; each one adds a
    single knot and earlier knots are never revisited. An instrument that
    cannot be calibrated is skipped, or raises BootstrapError if strict.
    A supplied curve is extended in place.
    """
    instruments = list(instruments)
    if prices is None:
        prices = [0.0] * len(instruments)
    prices = list(prices)
    if len(instruments) != len(prices):
        raise ValueError("instruments and prices must have the same length")

    if curve is None:
        curve = PiecewiseFlatCurve()

    for k, (instrument, price) in enumerate(zip(instruments, prices)):
        u, f = bootstrap_instrument(
            instrument, curve, price, tolerance=tolerance, iterations=iterations, lower=lower
        )
        if math.isnan(f):
            if strict:
                raise BootstrapError(f"Instrument {k} (maturity {u}) could not be bootstrapped.")
            logger.warning("Skipping instrument %s (maturity %s): no repricing forward found", k, u)
            continue

        curve.extend(u, f)

    return curve


def bootstrap_report(
    curve: PiecewiseFlatCurve,
    instruments: Sequence[Iterable[CashFlowLike]],
    prices: Optional[Sequence[float]] = None,
) -> pd.DataFrame:
    """Reprice each instrument on the curve against its target."""
    instruments = [_as_instrument(i) for i in instruments]
    if prices is None:
        prices = [0.0] * len(instruments)
    if len(prices) != len(instruments):
        raise ValueError("instruments and prices must have the same length")

    maturities = np.array([i.maturity() for i in instruments], dtype=float)
    repriced = np.array([present(i, curve) for i in instruments], dtype=float)
    targets = np.asarray(prices, dtype=float)

    return pd.DataFrame(
        {
            "maturity": maturities,
            "rate": [curve.value(u) for u in maturities],
            "target": targets,
            "present": repriced,
            "residual": repriced - targets,
        }
    )
