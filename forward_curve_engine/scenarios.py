from __future__ import annotations

from typing import Iterable, Mapping, Optional, Sequence, Tuple

import pandas as pd

from .curves import (
    Curve,
    flattener_shift_bp,
    parallel_shift_bp,
    shifted_curve,
    steepener_shift_bp,
)
from .instruments import CashFlowLike
from .portfolio import value_instruments
from .utils import BP


def default_rate_scenarios() -> dict:
    return {
        "PAR_-50bp": parallel_shift_bp(-50),
        "PAR_-25bp": parallel_shift_bp(-25),
        "PAR_+25bp": parallel_shift_bp(+25),
        "PAR_+50bp": parallel_shift_bp(+50),
        "STEEPENER_25bp": steepener_shift_bp(25),
        "FLATTENER_25bp": flattener_shift_bp(25),
    }


def run_rate_scenarios(
    curve: Curve,
    instruments: Mapping[str, Iterable[CashFlowLike]],
    scenarios: Optional[Mapping[str, Curve]] = None,
) -> Tuple[pd.DataFrame, pd.DataFrame]:
    """
    Reprice instruments on the curve shifted by each scenario's forward shift.
    Returns (per instrument values and PnL, PnL total per scenario).
    """
    if scenarios is None:
        scenarios = default_rate_scenarios()

    base = value_instruments(curve, instruments)[["instrument_id", "present"]].rename(columns={"present": "base"})

    per_instrument = base.copy()
    for name, shift in scenarios.items():
        px = value_instruments(shifted_curve(curve, shift), instruments)[["instrument_id", "present"]].rename(
            columns={"present": name}
        )
        per_instrument = per_instrument.merge(px, on="instrument_id", how="left")
        per_instrument[name + "_PnL"] = per_instrument[name] - per_instrument["base"]

    pnl_cols = [c for c in per_instrument.columns if c.endswith("_PnL")]
    summary = pd.DataFrame({"scenario": pnl_cols, "total_pnl": [per_instrument[c].sum() for c in pnl_cols]})

    return per_instrument, summary


def run_combined_rate_spread_scenarios(
    curve: Curve,
    instruments: Mapping[str, Iterable[CashFlowLike]],
    spreads: Mapping[str, float],
    rate_shocks: Sequence[float] = (-50, -25, 0, 25, 50),
    spread_shocks: Sequence[float] = (0, 25, 100),
) -> pd.DataFrame:
    base_total = value_instruments(curve, instruments, spreads=spreads)["present"].sum()

    rows = []
    for r_bp in rate_shocks:
        scurve = shifted_curve(curve, parallel_shift_bp(r_bp))

        for s_bp in spread_shocks:
            shocked_spreads = {k: float(s) + s_bp * BP for k, s in spreads.items()}
            shocked_total = value_instruments(scurve, instruments, spreads=shocked_spreads)["present"].sum()

            rows.append(
                {
                    "rate_shock_bp": r_bp,
                    "spread_shock_bp": s_bp,
                    "total_base": base_total,
                    "total_shocked": shocked_total,
                    "total_pnl": shocked_total - base_total,
                }
            )

    out = pd.DataFrame(rows)
    return out.sort_values(["rate_shock_bp", "spread_shock_bp"]).reset_index(drop=True)
