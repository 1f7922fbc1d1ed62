import math

import pytest

from conjgrad.errors import LineSearchFailure
from conjgrad.line_search import (
    LINE_SEARCH_BRACKETING,
    LINE_SEARCH_GOLDEN_SECTION,
    bracket_minimum,
    line_search_1d,
)


def test_golden_section_finds_interior_minimum():
    res = line_search_1d(lambda a: (a - 2.0) ** 2, 0.0, 5.0, method=LINE_SEARCH_GOLDEN_SECTION)
    assert res.alpha == pytest.approx(2.0, abs=1e-5)
    assert res.phi_value == pytest.approx(0.0, abs=1e-9)
    assert res.meta["stopped_by"] == "tol"


def test_bracketing_expands_beyond_initial_step():
    res = line_search_1d(lambda a: (a - 3.0) ** 2 + 1.0, 0.0, 0.1, method=LINE_SEARCH_BRACKETING)
    assert res.alpha == pytest.approx(3.0, abs=1e-5)
    assert res.phi_value == pytest.approx(1.0)
    left, right = res.meta["bracket"]
    assert left < 3.0 < right


def test_bracketing_contracts_an_overshooting_step():
    res = line_search_1d(lambda a: (a - 0.01) ** 2, 0.0, 10.0, method=LINE_SEARCH_BRACKETING)
    assert res.alpha == pytest.approx(0.01, abs=1e-5)


def test_bracketing_returns_zero_step_without_decrease():
    res = line_search_1d(lambda a: a * a, 0.0, 0.5, method=LINE_SEARCH_BRACKETING)
    assert res.alpha == 0.0
    assert res.meta["stopped_by"] == "no_decrease"


def test_bracket_minimum_fails_on_unbounded_function():
    with pytest.raises(LineSearchFailure):
        bracket_minimum(lambda a: -a, initial_step=0.01)


def test_bracket_minimum_rejects_invalid_initial_step():
    with pytest.raises(LineSearchFailure):
        bracket_minimum(lambda a: a, initial_step=0.0)
    with pytest.raises(LineSearchFailure):
        bracket_minimum(lambda a: a, initial_step=math.nan)


def test_bracket_minimum_brackets():
    phi = lambda a: (a - 1.0) ** 2
    left, mid, right, phi_mid, evals = bracket_minimum(phi, initial_step=0.1)
    assert left < mid < right
    assert phi_mid <= phi(left) and phi_mid <= phi(right)
    assert evals >= 2


def test_invalid_interval_and_method():
    with pytest.raises(ValueError):
        line_search_1d(lambda a: a, 1.0, 1.0, method=LINE_SEARCH_GOLDEN_SECTION)
    with pytest.raises(ValueError):
        line_search_1d(lambda a: a, 0.0, 1.0, method="cubic")
