from __future__ import annotations

import bisect
import heapq
from dataclasses import dataclass
from typing import Callable, Iterable, Iterator, List, Tuple, Union

import numpy as np

from .utils import NAN


@dataclass(frozen=True, order=True)
class CashFlow:
    time: float    # years from the valuation date
    amount: float


CashFlowLike = Union[CashFlow, Tuple[float, float]]


def as_cash_flow(uc: CashFlowLike) -> CashFlow:
    if isinstance(uc, CashFlow):
        return uc
    u, c = uc
    return CashFlow(float(u), float(c))


def cash_flows(instrument: Iterable[CashFlowLike]) -> Iterator[CashFlow]:
    """Stream any iterable of CashFlow or (time, amount) pairs as CashFlow."""
    for uc in instrument:
        yield as_cash_flow(uc)


class Instrument:
    """
    Time-ordered cash flows.

    Cash flows at an existing last time are merged by adding amounts.
    """

    def __init__(self, times: Iterable[float] = (), amounts: Iterable[float] = ()):
        times = [float(u) for u in times]
        amounts = [float(c) for c in amounts]
        if len(times) != len(amounts):
            raise ValueError("times and amounts must have the same length")

        self._time: List[float] = []
        self._amount: List[float] = []
        for u, c in zip(times, amounts):
            self.push_back(u, c)

    @classmethod
    def from_cash_flows(cls, flows: Iterable[CashFlowLike]) -> "Instrument":
        i = cls()
        for uc in cash_flows(flows):
            i.push_back(uc.time, uc.amount)
        return i

    def __len__(self) -> int:
        return len(self._time)

    def __iter__(self) -> Iterator[CashFlow]:
        for u, c in zip(self._time, self._amount):
            yield CashFlow(u, c)

    def __getitem__(self, k: int) -> CashFlow:
        return CashFlow(self._time[k], self._amount[k])

    def __eq__(self, other) -> bool:
        if not isinstance(other, Instrument):
            return NotImplemented
        return self._time == other._time and self._amount == other._amount

    def __repr__(self) -> str:
        return f"Instrument(times={self._time}, amounts={self._amount})"

    @property
    def times(self) -> np.ndarray:
        return np.array(self._time, dtype=float)

    @property
    def amounts(self) -> np.ndarray:
        return np.array(self._amount, dtype=float)

    def back(self) -> CashFlow:
        """Last cash flow."""
        if not self._time:
            raise ValueError("instrument has no cash flows")
        return CashFlow(self._time[-1], self._amount[-1])

    def maturity(self) -> float:
        return self._time[-1] if self._time else NAN

    def push_back(self, u: float, c: float) -> "Instrument":
        u, c = float(u), float(c)
        if self._time and self._time[-1] == u:
            self._amount[-1] += c
            return self

        if self._time and not self._time[-1] < u:
            raise ValueError(f"cash flow time {u} precedes last time {self._time[-1]}")
        self._time.append(u)
        self._amount.append(c)
        return self

    def price(self, p: float) -> "Instrument":
        """
        Fold price p into the cash flows as -p at time 0, so that
        present(i.price(present(i, f)), f) == 0.
        """
        k = bisect.bisect_left(self._time, 0.0)
        if k < len(self._time) and self._time[k] == 0:
            self._amount[k] -= p
        else:
            self._time.insert(k, 0.0)
            self._amount.insert(k, -float(p))
        return self

    def copy(self) -> "Instrument":
        return Instrument(self._time, self._amount)


def zero_coupon_bond(u: float, c: float = 1.0) -> Instrument:
    """Single cash flow c at time u."""
    return Instrument([u], [c])


def coupon_bond(maturity: float, coupon: float, frequency: int = 2, face: float = 1.0) -> Instrument:
    """
    Fixed coupon bond on a regular year-fraction grid ending at maturity.

    Coupons are face * coupon / frequency; a short first period is paid a
    full coupon. Face is repaid with the last coupon.
    """
    if frequency not in (1, 2, 4, 12):
        raise NotImplementedError("Supported frequencies: 1, 2, 4, 12.")
    if not maturity > 0:
        raise ValueError("maturity must be positive")

    dt = 1.0 / frequency
    n = int(np.ceil(maturity * frequency - 1e-9))
    times = [maturity - k * dt for k in reversed(range(n))]

    amounts = [face * coupon / frequency] * n
    amounts[-1] += face

    return Instrument(times, amounts)


def merge(*instruments: Iterable[CashFlowLike]) -> Iterator[CashFlow]:
    """Combine cash flow streams in time order."""
    return heapq.merge(*(cash_flows(i) for i in instruments), key=lambda uc: uc.time)


def until(instrument: Iterable[CashFlowLike], pred: Callable[[CashFlow], bool]) -> Iterator[CashFlow]:
    """Drop cash flows until pred is true."""
    flows = cash_flows(instrument)
    for uc in flows:
        if pred(uc):
            yield uc
            yield from flows
            return
