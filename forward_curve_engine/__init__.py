"""
Forward Curve Engine

Modules:
- root1d: secant and Newton root finders
- curves: forward curve interface + piecewise flat curve
- instruments: cash flows and instrument constructors
- valuation: present value, duration, convexity, yield, OAS
- bootstrap: sequential piecewise flat curve calibration
- portfolio: batch valuation tables
- risk: DV01/convexity/key rate/spread risk
- scenarios: rate/spread scenario runners
- utils: numeric constants + rate conversions
"""
from .bootstrap import BootstrapError, bootstrap, bootstrap_instrument, bootstrap_report
from .curves import (
    BumpCurve,
    ConstantCurve,
    Curve,
    ExponentialCurve,
    ExtrapolatedCurve,
    PiecewiseFlatCurve,
    PlusCurve,
    TranslateCurve,
    curve_qc_report,
)
from .instruments import CashFlow, Instrument, coupon_bond, merge, until, zero_coupon_bond
from .root1d import Newton, RootResult, Secant, newton, secant
from .valuation import convexity, duration, macaulay_duration, oas, present, yield_
