import math

import numpy as np
import pandas as pd
import pytest

from forward_curve_engine.bootstrap import bootstrap
from forward_curve_engine.curves import PiecewiseFlatCurve
from forward_curve_engine.instruments import coupon_bond, zero_coupon_bond
from forward_curve_engine.portfolio import (
    build_cashflow_table,
    price_cashflow_table,
    value_instruments,
)
from forward_curve_engine.risk import (
    bucket_edges,
    compute_key_rate_durations,
    compute_portfolio_convexity,
    compute_portfolio_dv01,
    compute_spread_dv01_per_instrument,
    duration_from_dv01,
    finite_difference_check,
    portfolio_spread_dv01,
)
from forward_curve_engine.scenarios import (
    run_combined_rate_spread_scenarios,
    run_rate_scenarios,
)
from forward_curve_engine.valuation import present


@pytest.fixture(scope="module")
def curve():
    instruments = [
        zero_coupon_bond(0.5, 1.0),
        zero_coupon_bond(1.0, 1.0),
        coupon_bond(2.0, 0.045, frequency=2),
        coupon_bond(5.0, 0.043, frequency=2),
        coupon_bond(10.0, 0.0425, frequency=2),
    ]
    prices = [math.exp(-0.052 * 0.5), math.exp(-0.05), 1.0, 1.0, 1.0]
    c = bootstrap(instruments, prices)
    c.set_extrapolation(c.back()[1])
    return c


@pytest.fixture(scope="module")
def portfolio():
    """
    Deterministic mini-portfolio (10 names) to test DV01/convexity/key rates.
    """
    maturities = [1.0, 2.0, 3.0, 4.0, 5.0, 6.0, 7.0, 8.0, 9.0, 10.0]
    coupons = [0.04, 0.045, 0.05, 0.055, 0.06, 0.035, 0.065, 0.07, 0.03, 0.075]
    return {
        f"BOND_{i:03d}": coupon_bond(m, c, frequency=2, face=100.0)
        for i, (m, c) in enumerate(zip(maturities, coupons))
    }


@pytest.fixture(scope="module")
def spreads(portfolio):
    spreads_bp = [50, 80, 120, 150, 200, 60, 90, 110, 140, 170]
    return {k: bp / 10000.0 for k, bp in zip(portfolio, spreads_bp)}


def test_cashflow_table(portfolio):
    cf = build_cashflow_table(portfolio)
    assert {"instrument_id", "spread", "time", "cashflow"}.issubset(cf.columns)
    assert len(cf) == sum(len(i) for i in portfolio.values())
    assert (cf["spread"] == 0).all()


def test_price_cashflow_table_matches_present(curve, portfolio):
    priced = price_cashflow_table(curve, build_cashflow_table(portfolio)).set_index("instrument_id")
    for k, i in portfolio.items():
        assert priced.loc[k, "present"] == pytest.approx(present(i, curve), rel=1e-12)


def test_empty_cashflow_table_raises(curve):
    with pytest.raises(ValueError):
        price_cashflow_table(curve, build_cashflow_table({}))


def test_portfolio_valuation_outputs(curve, portfolio):
    out = value_instruments(curve, portfolio)
    assert {"instrument_id", "present", "duration", "convexity", "macaulay_duration", "flags"}.issubset(out.columns)
    assert out["present"].notna().all()
    assert np.isfinite(out["present"]).all()
    assert (out["flags"] == "").all()


def test_portfolio_valuation_fails_softly(curve, portfolio):
    beyond = PiecewiseFlatCurve(curve.times, curve.rates)  # no extrapolation
    book = dict(portfolio)
    book["LONG"] = coupon_bond(30.0, 0.05)
    book["EMPTY"] = []

    out = value_instruments(beyond, book).set_index("instrument_id")
    assert math.isnan(out.loc["LONG", "present"])
    assert "BEYOND_CURVE" in out.loc["LONG", "flags"]
    assert out.loc["EMPTY", "flags"] == "EMPTY"
    assert out.loc["EMPTY", "n_flows"] == 0
    assert np.isfinite(out.loc["BOND_000", "present"])


def test_portfolio_yield_and_oas(curve, portfolio, spreads):
    priced = value_instruments(curve, portfolio, spreads=spreads).set_index("instrument_id")
    prices = priced["present"].to_dict()

    out = value_instruments(curve, portfolio, prices=prices).set_index("instrument_id")
    for k, s in spreads.items():
        assert out.loc[k, "oas"] == pytest.approx(s, abs=1e-7)
        assert out.loc[k, "yield"] > 0


def test_rate_dv01_sign_sanity(curve, portfolio):
    """
    +1bp forward shift => present value goes down => DV01 negative.
    """
    dv01 = compute_portfolio_dv01(curve, portfolio)
    assert (dv01["dv01"] < 0.0).all()
    assert np.allclose(dv01["dv01"], dv01["dv01_analytic"], rtol=2e-3)


def test_convexity_matches_bumps(curve, portfolio):
    conv = compute_portfolio_convexity(curve, portfolio)
    assert (conv["convexity"] > 0).all()
    assert np.allclose(conv["convexity"], conv["convexity_fd"], rtol=1e-4)


def test_duration_from_dv01_consistency(curve, portfolio):
    dv01 = compute_portfolio_dv01(curve, portfolio)
    dur = duration_from_dv01(dv01)
    assert dur["mod_duration"].notna().all()
    assert (dur["mod_duration"] > 0.0).all()


def test_finite_difference_check(curve):
    chk = finite_difference_check(coupon_bond(7.0, 0.05), curve)
    assert chk["duration"] == pytest.approx(chk["duration_fd"], rel=1e-7)
    assert chk["convexity"] == pytest.approx(chk["convexity_fd"], rel=1e-5)


def test_bucket_edges(curve):
    edges = bucket_edges(curve)
    assert edges[0] == 0.0
    assert np.isinf(edges[-1])
    assert len(edges) == len(curve) + 1
    with pytest.raises(ValueError):
        bucket_edges(curve, [2.0, 1.0])


def test_key_rates_reconcile_parallel(curve, portfolio):
    """
    Buckets partition the time axis so their PnLs add up to the parallel
    shift PnL up to second order terms.
    """
    buckets, par_dv01 = compute_key_rate_durations(curve, portfolio, bp=1.0)
    assert isinstance(buckets, pd.DataFrame)
    assert len(buckets) == len(curve)
    diff = float(buckets["pnl"].sum() - par_dv01)
    assert abs(diff) < 1e-3, f"Key rate bucket sum should reconcile to parallel DV01 (diff={diff})"
    assert (buckets["pnl"] <= 0).all()


def test_spread_dv01_negative(curve, portfolio, spreads):
    assert portfolio_spread_dv01(curve, portfolio, spreads) < 0.0


def test_spread_dv01_per_instrument_matches_total(curve, portfolio, spreads):
    per = compute_spread_dv01_per_instrument(curve, portfolio, spreads)
    total = per["spread_dv01"].sum()
    assert abs(total - portfolio_spread_dv01(curve, portfolio, spreads)) < 1e-8


def test_rate_scenarios(curve, portfolio):
    per_instrument, summary = run_rate_scenarios(curve, portfolio)
    totals = summary.set_index("scenario")["total_pnl"]
    assert totals["PAR_+25bp_PnL"] < 0 < totals["PAR_-25bp_PnL"]
    assert totals["PAR_+50bp_PnL"] < totals["PAR_+25bp_PnL"]
    assert len(per_instrument) == len(portfolio)


def test_combined_rate_spread_scenario_grid_monotone(curve, portfolio, spreads):
    combo = run_combined_rate_spread_scenarios(curve, portfolio, spreads)
    pivot = combo.pivot(index="rate_shock_bp", columns="spread_shock_bp", values="total_pnl")

    for r in pivot.index:
        row = pivot.loc[r].values
        assert row[0] >= row[-1] - 1e-8, "PnL should not improve when spreads widen"

    for s in pivot.columns:
        col = pivot[s].values
        assert col[0] >= col[-1] - 1e-8, "PnL should not improve when rates rise"
