from __future__ import annotations

from typing import Iterable, List, Mapping, Optional

import numpy as np
import pandas as pd

from .curves import Curve
from .instruments import CashFlowLike, cash_flows
from .valuation import oas, yield_


def qc_flags_for_instrument(flows: List, curve: Curve) -> List[str]:
    flags: List[str] = []

    if len(flows) == 0:
        flags.append("EMPTY")
        return flags

    if any(uc.time < 0 for uc in flows):
        flags.append("NEGATIVE_TIME")

    if not np.isfinite(curve.discount(flows[-1].time)):
        flags.append("BEYOND_CURVE")

    return flags


def build_cashflow_table(
    instruments: Mapping[str, Iterable[CashFlowLike]],
    spreads: Optional[Mapping[str, float]] = None,
) -> pd.DataFrame:
    rows = []
    for instrument_id, instrument in instruments.items():
        spr = float(spreads.get(instrument_id, 0.0)) if spreads is not None else 0.0
        for uc in cash_flows(instrument):
            rows.append((str(instrument_id), spr, uc.time, uc.amount))

    return pd.DataFrame(rows, columns=["instrument_id", "spread", "time", "cashflow"])


def price_cashflow_table(curve: Curve, cf: pd.DataFrame) -> pd.DataFrame:
    """
    Present value, duration and convexity per instrument from a cash flow
    table. Discount factors are computed once per distinct time.
    """
    if cf.empty:
        raise ValueError("Cashflow table is empty.")

    unique_times = sorted(cf["time"].unique())
    df_map = {u: curve.discount(u) for u in unique_times}

    cf = cf.copy()
    cf["df"] = cf["time"].map(df_map).astype(float)
    cf["spread_adj"] = np.exp(-cf["spread"].astype(float) * cf["time"])
    cf["pv_cf"] = cf["cashflow"] * cf["df"] * cf["spread_adj"]
    cf["dur_cf"] = -cf["time"] * cf["pv_cf"]
    cf["cvx_cf"] = cf["time"] ** 2 * cf["pv_cf"]

    # min_count=1 keeps NaN cash flows from summing to zero
    grouped = cf.groupby("instrument_id", sort=False)
    out = pd.DataFrame(
        {
            "maturity": grouped["time"].max(),
            "n_flows": grouped["time"].count(),
            "present": grouped["pv_cf"].sum(min_count=1),
            "duration": grouped["dur_cf"].sum(min_count=1),
            "convexity": grouped["cvx_cf"].sum(min_count=1),
        }
    )
    if cf["pv_cf"].isna().any():
        nan_ids = cf.loc[cf["pv_cf"].isna(), "instrument_id"].unique()
        out.loc[nan_ids, ["present", "duration", "convexity"]] = np.nan

    return out.reset_index()


def value_instruments(
    curve: Curve,
    instruments: Mapping[str, Iterable[CashFlowLike]],
    prices: Optional[Mapping[str, float]] = None,
    spreads: Optional[Mapping[str, float]] = None,
) -> pd.DataFrame:
    """
    Batch valuation. Instruments that cannot be valued get NaN values and a
    flag; they never abort the batch.

    With prices, also solves for each instrument's yield and OAS to the curve.
    """
    flows = {str(k): list(cash_flows(v)) for k, v in instruments.items()}

    ids = list(flows.keys())
    out = pd.DataFrame({"instrument_id": ids})

    nonempty = {k: v for k, v in flows.items() if v}
    if nonempty:
        priced = price_cashflow_table(curve, build_cashflow_table(nonempty, spreads))
        out = out.merge(priced, on="instrument_id", how="left")
    else:
        for col in ("maturity", "n_flows", "present", "duration", "convexity"):
            out[col] = np.nan

    out["n_flows"] = out["n_flows"].fillna(0).astype(int)
    out["macaulay_duration"] = out["duration"] / out["present"]

    if prices is not None:
        out["price"] = [float(prices.get(k, np.nan)) for k in ids]
        out["yield"] = [
            yield_(flows[k], p) if flows[k] and np.isfinite(p) else np.nan
            for k, p in zip(ids, out["price"])
        ]
        out["oas"] = [
            oas(flows[k], curve, p) if flows[k] and np.isfinite(p) else np.nan
            for k, p in zip(ids, out["price"])
        ]

    flag_list = []
    for k in ids:
        f = qc_flags_for_instrument(flows[k], curve)
        flag_list.append("|".join(f) if f else "")
    out["flags"] = flag_list

    return out
