from __future__ import annotations

from typing import Iterable, Mapping, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from .curves import BumpCurve, Curve, PiecewiseFlatCurve, parallel_shift_bp
from .instruments import CashFlowLike, cash_flows
from .portfolio import value_instruments
from .utils import BP, INFINITY
from .valuation import convexity, duration, present


def finite_difference_check(
    instrument: Iterable[CashFlowLike],
    curve: Curve,
    h: float = BP,
) -> dict:
    """
    Analytic duration and convexity next to central differences of present
    value under a parallel forward shift of size h.
    """
    flows = list(cash_flows(instrument))

    pv = present(flows, curve)
    pv_up = present(flows, curve + h)
    pv_down = present(flows, curve + (-h))

    return {
        "present": pv,
        "duration": duration(flows, curve),
        "duration_fd": (pv_up - pv_down) / (2 * h),
        "convexity": convexity(flows, curve),
        "convexity_fd": (pv_up - 2 * pv + pv_down) / (h * h),
    }


def compute_portfolio_dv01(
    curve: Curve,
    instruments: Mapping[str, Iterable[CashFlowLike]],
    bp: float = 1.0,
) -> pd.DataFrame:
    """Present value change for a parallel forward shift of bp, bumped and analytic."""
    base = value_instruments(curve, instruments)
    shocked = value_instruments(curve + parallel_shift_bp(bp), instruments)

    out = base[["instrument_id", "present", "duration"]].merge(
        shocked[["instrument_id", "present"]],
        on="instrument_id",
        suffixes=("_base", "_up"),
    )

    out["dv01"] = out["present_up"] - out["present_base"]
    out["dv01_analytic"] = out["duration"] * bp * BP
    return out


def compute_portfolio_convexity(
    curve: Curve,
    instruments: Mapping[str, Iterable[CashFlowLike]],
    bp: float = 1.0,
) -> pd.DataFrame:
    base = value_instruments(curve, instruments)[["instrument_id", "present", "convexity"]]
    up = value_instruments(curve + parallel_shift_bp(bp), instruments)[["instrument_id", "present"]]
    down = value_instruments(curve + parallel_shift_bp(-bp), instruments)[["instrument_id", "present"]]

    out = base.merge(up, on="instrument_id", suffixes=("_base", "_up")).merge(
        down.rename(columns={"present": "present_down"}), on="instrument_id"
    )

    h = bp * BP
    out["convexity_fd"] = (out["present_up"] + out["present_down"] - 2 * out["present_base"]) / h**2
    return out[["instrument_id", "convexity", "convexity_fd"]]


def duration_from_dv01(dv01_df: pd.DataFrame, bp: float = 1.0) -> pd.DataFrame:
    df = dv01_df.copy()
    df["mod_duration"] = -df["dv01"] / (df["present_base"] * bp * BP)
    return df[["instrument_id", "mod_duration"]]


# ---- Key rate buckets ----

def bucket_edges(curve: PiecewiseFlatCurve, pillars: Optional[Sequence[float]] = None) -> np.ndarray:
    """
    Bucket edges 0 = e[0] < e[1] < ... < e[n] = inf, one bucket per pillar.
    Defaults to the knot times of the curve.
    """
    if pillars is None:
        pillars = curve.times
    pillars = np.asarray(pillars, dtype=float)
    if len(pillars) == 0:
        raise ValueError("need at least one pillar")
    if np.any(np.diff(pillars) <= 0) or pillars[0] <= 0:
        raise ValueError("pillars must be positive and strictly increasing")

    return np.r_[0.0, pillars[:-1], INFINITY]


def key_rate_curve(curve: Curve, edges: np.ndarray, k: int, bp: float) -> Curve:
    """Curve with forwards on bucket k, (edges[k], edges[k+1]], shifted by bp."""
    if not (0 <= k < len(edges) - 1):
        raise ValueError("k out of range")
    return curve + BumpCurve(bp * BP, edges[k], edges[k + 1])


def compute_key_rate_durations(
    curve: PiecewiseFlatCurve,
    instruments: Mapping[str, Iterable[CashFlowLike]],
    bp: float = 1.0,
    pillars: Optional[Sequence[float]] = None,
) -> Tuple[pd.DataFrame, float]:
    """
    Portfolio PnL for bp shifts of the forward curve one bucket at a time.

    The buckets partition (0, inf), so the bucket PnLs add up to the parallel
    shift PnL to first order. Returns (bucket table, parallel PnL).
    """
    edges = bucket_edges(curve, pillars)
    base_total = value_instruments(curve, instruments)["present"].sum()

    rows = []
    for k in range(len(edges) - 1):
        scurve = key_rate_curve(curve, edges, k, bp)
        shocked_total = value_instruments(scurve, instruments)["present"].sum()
        rows.append(
            {
                "bucket": k,
                "start": edges[k],
                "end": edges[k + 1],
                "pnl": shocked_total - base_total,
            }
        )

    par_total = value_instruments(curve + parallel_shift_bp(bp), instruments)["present"].sum()
    par_dv01 = par_total - base_total

    return pd.DataFrame(rows), par_dv01


# ---- Spread risk ----

def compute_spread_dv01_per_instrument(
    curve: Curve,
    instruments: Mapping[str, Iterable[CashFlowLike]],
    spreads: Mapping[str, float],
    bp: float = 1.0,
) -> pd.DataFrame:
    base = value_instruments(curve, instruments, spreads=spreads)[["instrument_id", "present"]].rename(
        columns={"present": "base"}
    )
    bumped = {k: float(s) + bp * BP for k, s in spreads.items()}
    shocked = value_instruments(curve, instruments, spreads=bumped)[["instrument_id", "present"]].rename(
        columns={"present": "shocked"}
    )
    tmp = base.merge(shocked, on="instrument_id")
    tmp["spread_dv01"] = tmp["shocked"] - tmp["base"]
    return tmp


def portfolio_spread_dv01(
    curve: Curve,
    instruments: Mapping[str, Iterable[CashFlowLike]],
    spreads: Mapping[str, float],
    bp: float = 1.0,
) -> float:
    return float(compute_spread_dv01_per_instrument(curve, instruments, spreads, bp)["spread_dv01"].sum())
