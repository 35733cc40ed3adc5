"""Tests for the implied-volatility solver."""

import logging

import pytest

from optengine import (
    OptionContract, ModelConfig, ImpliedVolatilityQuery, PUT,
    CLOSED_FORM, LATTICE_CRR, LATTICE_LR,
)
from optengine.greeks import model_price
from optengine.implied_vol import implied_volatility, implied_vol
from optengine.errors import DidNotConverge, InvalidInput

# sigma on the template is a placeholder; the solver ignores it
REF = OptionContract(S0=185.61, K=185, T=18 / 365, sigma=0.2, r=0.0349, q=0.0002)
CF = ModelConfig(model=CLOSED_FORM)
CRR = ModelConfig(model=LATTICE_CRR, steps=150)
LR = ModelConfig(model=LATTICE_LR, steps=101)


def test_reference_market_price():
    res = implied_volatility(ImpliedVolatilityQuery(7.40, REF, CF))
    assert res.converged
    assert abs(res.volatility - 0.42) < 0.005
    assert res.price_error < 1e-6


@pytest.mark.parametrize("config", [CF, CRR, LR])
@pytest.mark.parametrize("right", ["call", "put"])
def test_round_trip(config, right):
    true_vol = 0.4209
    opt = OptionContract(185.61, 185, 18 / 365, true_vol, 0.0349, 0.0002, right=right)
    observed = model_price(opt, config)
    res = implied_volatility(ImpliedVolatilityQuery(observed, opt, config))
    assert res.converged
    assert abs(res.volatility - true_vol) < 0.005


@pytest.mark.parametrize("true_vol", [0.1, 0.25, 0.8, 1.5])
def test_newton_across_vols(true_vol):
    opt = OptionContract(100, 110, 0.75, true_vol, 0.03, 0.01)
    observed = model_price(opt, CF)
    assert implied_vol(opt, observed) == pytest.approx(true_vol, abs=1e-4)


def test_newton_uses_few_iterations():
    res = implied_volatility(ImpliedVolatilityQuery(7.40, REF, CF))
    assert res.iterations <= 6


def test_bisection_steps_down_from_overflowing_sigma():
    # sigma = 10 at the first midpoint puts the top node past float64
    config = ModelConfig(model=LATTICE_CRR, steps=200)
    opt = OptionContract(100, 100, 50.0, 0.3, 0.03)
    observed = model_price(opt, config)
    res = implied_volatility(ImpliedVolatilityQuery(observed, opt, config),
                             bracket=(0.0001, 20.0))
    assert res.converged
    assert abs(res.volatility - 0.3) < 1e-3


class TestNonConvergence:
    def test_closed_form_price_above_spot(self, caplog):
        with caplog.at_level(logging.WARNING, logger="optengine.implied_vol"):
            res = implied_volatility(ImpliedVolatilityQuery(500.0, REF, CF))
        assert not res.converged
        assert res.volatility > 0
        assert "did not converge" in caplog.text

    def test_lattice_price_below_intrinsic(self):
        deep_put = OptionContract(100, 120, 1.0, 0.2, 0.05, right=PUT)
        res = implied_volatility(ImpliedVolatilityQuery(5.0, deep_put, CRR))
        assert not res.converged
        assert 0.0 < res.volatility < 5.0
        assert res.price_error > 1.0

    def test_strict_raises_with_estimate(self):
        with pytest.raises(DidNotConverge) as info:
            implied_volatility(ImpliedVolatilityQuery(500.0, REF, CF), strict=True)
        assert info.value.volatility > 0
        assert info.value.iterations > 0

    def test_strict_converged_returns(self):
        res = implied_volatility(ImpliedVolatilityQuery(7.40, REF, CF), strict=True)
        assert res.converged


class TestInputs:
    @pytest.mark.parametrize("observed", [0.0, -1.0, float("nan"), float("inf")])
    def test_bad_observed_price(self, observed):
        with pytest.raises(InvalidInput):
            ImpliedVolatilityQuery(observed, REF, CF)

    def test_default_model_is_closed_form(self):
        assert ImpliedVolatilityQuery(7.40, REF).config.model == CLOSED_FORM
