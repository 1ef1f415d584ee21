import math

import numpy as np
import pytest
from scipy.optimize import brentq

from forward_curve_engine.root1d import Newton, RootResult, Secant, newton, secant
from forward_curve_engine.utils import SQRT_EPSILON


def square_minus_four(x):
    return x * x - 4


def test_secant_square_root():
    x, residual, n = Secant(0.0, 1.0).solve(square_minus_four)
    assert abs(x - 2) <= SQRT_EPSILON
    assert abs(residual) <= SQRT_EPSILON
    assert 0 < n <= 100


def test_newton_square_root():
    x, residual, n = Newton(1.0).solve(square_minus_four, lambda x: 2 * x)
    assert abs(x - 2) < SQRT_EPSILON
    assert abs(square_minus_four(x)) <= SQRT_EPSILON
    assert n < 10


def test_solvers_return_root_result():
    r = secant(square_minus_four, 0.0, 1.0)
    assert isinstance(r, RootResult)
    assert r.converged
    assert r.root == r[0]


def test_secant_keeps_bracket_on_nonconvex_objective():
    """
    Once a sign change is found the iterates must stay inside the bracket.
    """
    f = lambda x: math.atan(x - 1.0)
    xs = []

    def g(x):
        xs.append(x)
        return f(x)

    x, residual, n = Secant(-3.0, 4.0).solve(g)
    assert abs(x - 1.0) < 1e-6
    assert all(-3.0 <= v <= 4.0 for v in xs)


def test_secant_matches_brentq():
    f = lambda x: math.exp(-x) - 0.25 * x
    x, _, _ = secant(f, 0.5, 1.0)
    assert abs(x - brentq(f, 0.0, 5.0, xtol=1e-14)) < 1e-7


def test_secant_nonconvergence_returns_nan():
    # no real root
    x, residual, n = Secant(0.0, 1.0, iterations=20).solve(lambda x: x * x + 1)
    assert math.isnan(x)
    assert n <= 20


def test_newton_nonconvergence_returns_nan():
    x, residual, n = Newton(1.0, iterations=5).solve(lambda x: x * x + 1, lambda x: 2 * x)
    assert math.isnan(x)


def test_newton_zero_derivative_returns_nan():
    x, _, n = Newton(1.0).solve(lambda x: 1.0, lambda x: 0.0)
    assert math.isnan(x)
    assert n == 0


def test_newton_halves_guess_instead_of_leaving_positive_domain():
    """
    From x0 = 3 a Newton step on log(x) - log(0.1) overshoots below zero;
    the guess is halved and the root is still found.
    """
    seen = []

    def f(x):
        seen.append(x)
        return math.log(x) - math.log(0.1)

    x, _, _ = Newton(3.0).solve(f, lambda x: 1 / x)
    assert abs(x - 0.1) < 1e-7
    assert all(v > 0 for v in seen)
    assert 1.5 in seen


def test_newton_lower_bound_allows_negative_roots():
    x, _, _ = newton(lambda x: x + 0.5, lambda x: 1.0, 1.0, lower=-np.inf)
    assert x == pytest.approx(-0.5)

    # default domain is positive: the root at -0.5 is never reached
    x, _, _ = newton(lambda x: x + 0.5, lambda x: 1.0, 1.0)
    assert math.isnan(x)


def test_newton_upper_bound():
    seen = []

    def f(x):
        seen.append(x)
        return x ** 3 - 1.0

    # first step from 0.1 overshoots to about 33
    x, _, _ = Newton(0.1, upper=2.0).solve(f, lambda x: 3 * x * x)
    assert abs(x - 1.0) <= SQRT_EPSILON
    assert all(v < 2.0 for v in seen)
    assert seen[1] == pytest.approx(1.05)
