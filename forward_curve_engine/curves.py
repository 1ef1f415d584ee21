from __future__ import annotations

import math
from abc import ABC, abstractmethod
from typing import Iterable, Optional, Tuple, Union

import numpy as np
import pandas as pd

from .utils import INFINITY, NAN, SQRT_EPSILON, BP


class Curve(ABC):
    """
    Instantaneous forward rate curve as a function of time in years.

    Subclasses implement the primitives _value(u) and _integral(u). Every
    public query accepts an optional extrapolation pair (t, f): beyond time t
    the forward is the flat rate f. Negative (or NaN) times give NaN.

    discount(u) = exp(-integral(u)), spot(u) = integral(u)/u.
    """

    @abstractmethod
    def _value(self, u: float) -> float:
        ...

    @abstractmethod
    def _integral(self, u: float) -> float:
        ...

    def value(self, u: float, t: float = INFINITY, f: float = NAN) -> float:
        """Forward rate at u."""
        if not u >= 0:
            return NAN
        if u <= t:
            return self._value(u)
        return f

    forward = value

    def __call__(self, u: float, t: float = INFINITY, f: float = NAN) -> float:
        return self.value(u, t, f)

    def integral(self, u: float, t: float = INFINITY, f: float = NAN) -> float:
        """Integral of the forward over [0, u]."""
        if not u >= 0:
            return NAN
        if u == 0:
            return 0.0
        if u <= t:
            return self._integral(u)
        return self.integral(t) + f * (u - t)

    def discount(self, u: float, t: float = INFINITY, f: float = NAN) -> float:
        """Price at 0 of one unit received at u."""
        return float(np.exp(-self.integral(u, t, f)))

    def spot(self, u: float, t: float = INFINITY, f: float = NAN) -> float:
        """Average forward over [0, u]. Falls back to the forward for tiny u."""
        if not u >= 0:
            return NAN
        if u < SQRT_EPSILON:
            return self.value(u, t, f)
        return self.integral(u, t, f) / u

    def extrapolate(self, t: float, f: float) -> "ExtrapolatedCurve":
        """View of this curve with flat forward f beyond t. Nothing is copied."""
        return ExtrapolatedCurve(self, t, f)

    def translate(self, t: float) -> "TranslateCurve":
        return TranslateCurve(self, t)

    def __add__(self, other: Union["Curve", float]) -> "PlusCurve":
        if isinstance(other, Curve):
            return PlusCurve(self, other)
        return PlusCurve(self, ConstantCurve(float(other)))

    __radd__ = __add__


class ConstantCurve(Curve):
    def __init__(self, f: float = 0.0):
        self.f = float(f)

    def _value(self, u: float) -> float:
        return self.f

    def _integral(self, u: float) -> float:
        return self.f * u

    def __repr__(self) -> str:
        return f"ConstantCurve({self.f!r})"


class ExponentialCurve(Curve):
    """Forward e^{ru}."""

    def __init__(self, r: float = 0.0):
        self.r = float(r)

    def _value(self, u: float) -> float:
        return math.exp(self.r * u)

    def _integral(self, u: float) -> float:
        if self.r == 0:
            return u
        return math.expm1(self.r * u) / self.r


class BumpCurve(Curve):
    """Forward s on [t0, t1] and 0 elsewhere."""

    def __init__(self, s: float, t0: float, t1: float):
        self.s = float(s)
        self.t0 = float(t0)
        self.t1 = float(t1)

    def _value(self, u: float) -> float:
        return self.s if self.t0 <= u <= self.t1 else 0.0

    def _integral(self, u: float) -> float:
        if u < self.t0 or self.t1 < 0:
            return 0.0
        return self.s * (min(u, self.t1) - max(0.0, self.t0))


class TranslateCurve(Curve):
    """The curve seen from time t: forward(u) = curve.forward(u + t)."""

    def __init__(self, curve: Curve, t: float):
        self.curve = curve
        self.t = float(t)

    def _value(self, u: float) -> float:
        return self.curve.value(u + self.t)

    def _integral(self, u: float) -> float:
        return self.curve.integral(u + self.t) - self.curve.integral(self.t)


class PlusCurve(Curve):
    """Pointwise sum of two curves."""

    def __init__(self, f: Curve, g: Curve):
        self.f = f
        self.g = g

    def _value(self, u: float) -> float:
        return self.f.value(u) + self.g.value(u)

    def _integral(self, u: float) -> float:
        return self.f.integral(u) + self.g.integral(u)


class ExtrapolatedCurve(Curve):
    """
    A base curve extended by the flat forward f beyond t.

    Holds a reference to the base curve; used to price against a curve under
    construction as if it had been extended by a trial rate.
    """

    def __init__(self, curve: Curve, t: float, f: float):
        self.curve = curve
        self.t = float(t)
        self.f = float(f)

    def _value(self, u: float) -> float:
        return self.curve.value(u, self.t, self.f)

    def _integral(self, u: float) -> float:
        return self.curve.integral(u, self.t, self.f)


def monotonic(t: Iterable[float]) -> bool:
    """True if t is strictly increasing."""
    t = np.asarray(list(t), dtype=float)
    return bool(np.all(np.diff(t) > 0))


class PiecewiseFlatCurve(Curve):
    """
    Piecewise flat forward curve.

             { rate[i]        if time[i-1] < u <= time[i]
      f(u) = { extrapolation  if u > time[-1]
             { NaN            if u < 0

    Knots are only ever appended, in strictly increasing time order.
    """

    def __init__(
        self,
        times: Iterable[float] = (),
        rates: Iterable[float] = (),
        extrapolation: float = NAN,
    ):
        times = np.asarray(list(times), dtype=float)
        rates = np.asarray(list(rates), dtype=float)

        if len(times) != len(rates):
            raise ValueError("times and rates must have the same length")
        if not monotonic(times):
            raise ValueError("knot times must be strictly increasing")
        if len(times) and not times[0] > 0:
            raise ValueError("knot times must be positive")

        self._time = times
        self._rate = rates
        self._cum = np.cumsum(rates * np.diff(times, prepend=0.0))
        self._extrapolation = float(extrapolation)

    def __len__(self) -> int:
        return len(self._time)

    @property
    def times(self) -> np.ndarray:
        return self._time.copy()

    @property
    def rates(self) -> np.ndarray:
        return self._rate.copy()

    @property
    def extrapolation(self) -> float:
        return self._extrapolation

    def set_extrapolation(self, f: float = NAN) -> float:
        self._extrapolation = float(f)
        return self._extrapolation

    def _value(self, u: float) -> float:
        i = int(np.searchsorted(self._time, u, side="left"))
        if i == len(self._time):
            return self._extrapolation
        return float(self._rate[i])

    def _integral(self, u: float) -> float:
        n = len(self._time)
        # number of knots at or before u
        i = int(np.searchsorted(self._time, u, side="right"))

        I = float(self._cum[i - 1]) if i > 0 else 0.0
        t_ = float(self._time[i - 1]) if i > 0 else 0.0
        if u > t_:
            f = float(self._rate[i]) if i < n else self._extrapolation
            I += f * (u - t_)

        return I

    def back(self) -> Tuple[float, float]:
        """Last (time, rate) knot, or (inf, extrapolation) if there are none."""
        if len(self._time) == 0:
            return INFINITY, self._extrapolation
        return float(self._time[-1]), float(self._rate[-1])

    def extend(self, t: float, f: float) -> "PiecewiseFlatCurve":
        t, f = float(t), float(f)
        if not t > 0:
            raise ValueError(f"knot time must be positive: {t}")
        if len(self._time) and not t > self._time[-1]:
            raise ValueError(f"knot time {t} must exceed last knot {self._time[-1]}")

        prev = float(self._cum[-1]) if len(self._cum) else 0.0
        t_ = float(self._time[-1]) if len(self._time) else 0.0

        self._time = np.append(self._time, t)
        self._rate = np.append(self._rate, f)
        self._cum = np.append(self._cum, prev + f * (t - t_))

        return self

    def push_back(self, t, f: Optional[float] = None) -> "PiecewiseFlatCurve":
        """Append a knot given as (t, f) or as a single (t, f) pair."""
        if f is None:
            t, f = t
        return self.extend(t, f)

    def __eq__(self, other) -> bool:
        if not isinstance(other, PiecewiseFlatCurve):
            return NotImplemented
        same_ext = (math.isnan(self._extrapolation) and math.isnan(other._extrapolation)) or (
            self._extrapolation == other._extrapolation
        )
        return (
            same_ext
            and np.array_equal(self._time, other._time)
            and np.array_equal(self._rate, other._rate)
        )

    def __repr__(self) -> str:
        return (
            f"PiecewiseFlatCurve(times={self._time.tolist()}, "
            f"rates={self._rate.tolist()}, extrapolation={self._extrapolation})"
        )


def curve_qc_report(curve: PiecewiseFlatCurve) -> pd.DataFrame:
    times = curve.times
    rates = curve.rates
    integrals = np.array([curve.integral(t) for t in times], dtype=float)
    dfs = np.exp(-integrals)
    spots = np.array([curve.spot(t) for t in times], dtype=float)

    return pd.DataFrame(
        {
            "time": times,
            "rate": rates,
            "integral": integrals,
            "df": dfs,
            "spot": spots,
            "time_increasing": np.r_[True, np.diff(times) > 0] if len(times) else np.array([], dtype=bool),
            "rate_finite": np.isfinite(rates),
            "df_positive": dfs > 0,
            "df_monotone": np.r_[True, np.diff(dfs) <= 1e-10] if len(dfs) else np.array([], dtype=bool),
        }
    )


def shifted_curve(curve: Curve, shift: Union[Curve, float]) -> PlusCurve:
    """Curve with forwards shifted by a constant or by another forward curve."""
    return curve + shift


def parallel_shift_bp(bp: float) -> ConstantCurve:
    return ConstantCurve(bp * BP)


def steepener_shift_bp(bp: float, pivot: float = 2.0, long: float = 10.0) -> PiecewiseFlatCurve:
    """Forwards up bp before pivot, unchanged to long, down bp after long."""
    if not 0 < pivot < long:
        raise ValueError("need 0 < pivot < long")
    A = bp * BP
    return PiecewiseFlatCurve([pivot, long], [+A, 0.0], extrapolation=-A)


def flattener_shift_bp(bp: float, pivot: float = 2.0, long: float = 10.0) -> PiecewiseFlatCurve:
    """Forwards down bp before pivot, unchanged to long, up bp after long."""
    if not 0 < pivot < long:
        raise ValueError("need 0 < pivot < long")
    A = bp * BP
    return PiecewiseFlatCurve([pivot, long], [-A, 0.0], extrapolation=+A)
