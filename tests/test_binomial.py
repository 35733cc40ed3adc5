"""Tests for the CRR and Leisen-Reimer lattices."""

import numpy as np
import pytest

from optengine.core import OptionContract, ModelConfig, CALL, PUT, LATTICE_CRR, LATTICE_LR
from optengine.black_scholes import price as bs_price, greeks as bs_greeks
from optengine.binomial import lattice, crr, leisen_reimer, lattice_params
from optengine.errors import DegenerateLattice, InvalidInput, LatticeOverflow
from optengine.greeks import price, model_price

OPT = OptionContract(S0=100, K=100, T=1.0, sigma=0.2, r=0.05)
REF = OptionContract(S0=185.61, K=185, T=18 / 365, sigma=0.4209, r=0.0349, q=0.0002)
DEEP_PUT = OptionContract(S0=100, K=120, T=1.0, sigma=0.2, r=0.05, right=PUT)
# 50y at 400% vol: sigma * sqrt(N T) passes the float64 exponent at N ~ 1000
WIDE = OptionContract(S0=100, K=100, T=50.0, sigma=4.0, r=0.03)


class TestConvergence:
    @pytest.mark.parametrize("opt", [OPT, OPT.with_right(PUT), REF, REF.with_right(PUT)])
    def test_crr_1000_matches_closed_form(self, opt):
        euro = crr(opt, 1000, american=False, greeks=False).price
        assert abs(euro - bs_price(opt)) < 0.01

    @pytest.mark.parametrize("opt", [OPT, REF.with_right(PUT)])
    def test_lr_101_matches_closed_form(self, opt):
        euro = leisen_reimer(opt, 101, american=False, greeks=False).price
        assert abs(euro - bs_price(opt)) < 0.005

    def test_lr_beats_crr_at_same_depth(self):
        ref = bs_price(OPT)
        err_crr = abs(crr(OPT, 101, american=False).price - ref)
        err_lr = abs(leisen_reimer(OPT, 101, american=False).price - ref)
        assert err_lr < err_crr

    def test_reference_american_put_stabilises(self):
        put = REF.with_right(PUT)
        p200 = crr(put, 200).price
        p1000 = crr(put, 1000).price
        assert p200 >= crr(put, 200, american=False).price
        assert p200 >= bs_price(put)
        assert abs(p1000 - p200) < 0.05


class TestEarlyExercise:
    @pytest.mark.parametrize("scheme", ["crr", "lr"])
    def test_american_put_geq_european(self, scheme):
        for opt in (DEEP_PUT, REF.with_right(PUT), OPT.with_right(PUT)):
            amer = lattice(opt, scheme, 201, american=True).price
            euro = lattice(opt, scheme, 201, american=False).price
            assert amer >= euro - 1e-12

    def test_deep_itm_put_has_premium(self):
        amer = crr(DEEP_PUT, 300).price
        euro = crr(DEEP_PUT, 300, american=False).price
        assert amer - euro > 0.1
        assert amer >= DEEP_PUT.intrinsic()

    @pytest.mark.parametrize("scheme", ["crr", "lr"])
    def test_call_without_dividend_never_exercised(self, scheme):
        amer = lattice(OPT, scheme, 201, american=True).price
        euro = lattice(OPT, scheme, 201, american=False).price
        assert abs(amer - euro) < 1e-10


class TestTreeGreeks:
    @pytest.mark.parametrize("scheme", ["crr", "lr"])
    def test_close_to_analytic(self, scheme):
        for opt in (OPT, OPT.with_right(PUT)):
            res = lattice(opt, scheme, 301, american=False)
            g = bs_greeks(opt)
            assert abs(res.delta - g.delta) < 0.01
            assert abs(res.gamma - g.gamma) < 2e-3

    def test_signs_american(self):
        call = crr(REF, 300)
        put = crr(REF.with_right(PUT), 300)
        assert 0.0 < call.delta < 1.0
        assert -1.0 < put.delta < 0.0
        assert call.gamma > 0 and put.gamma > 0

    def test_no_greeks_flag(self):
        res = crr(OPT, 50, greeks=False)
        assert np.isnan(res.delta) and np.isnan(res.gamma)
        assert res.price == pytest.approx(crr(OPT, 50).price)


class TestMonotonicity:
    @pytest.mark.parametrize("scheme", ["crr", "lr"])
    @pytest.mark.parametrize("right", [CALL, PUT])
    def test_price_increases_with_vol(self, scheme, right):
        vols = np.arange(0.1, 0.85, 0.1)
        prices = [
            lattice(OptionContract(100, 105, 0.5, v, 0.04, right=right), scheme, 200).price
            for v in vols
        ]
        assert np.all(np.diff(prices) > 0)


class TestParameters:
    def test_lr_forces_odd_steps(self):
        assert leisen_reimer(OPT, 100).steps == 101
        assert leisen_reimer(OPT, 101).steps == 101
        assert crr(OPT, 100).steps == 100

    def test_crr_recombines(self):
        _, u, d, p = lattice_params(OPT, "crr", 300)
        assert u * d == pytest.approx(1.0)
        assert 0.0 < p < 1.0

    def test_lr_probabilities(self):
        N, u, d, p = lattice_params(REF, "lr", 300)
        assert N == 301
        assert 0.0 < d < 1.0 < u
        assert 0.0 < p < 1.0

    def test_too_few_steps(self):
        with pytest.raises(InvalidInput):
            crr(OPT, 2)

    def test_unknown_scheme(self):
        with pytest.raises(InvalidInput):
            lattice(OPT, "trinomial", 100)


class TestDegenerate:
    @pytest.mark.parametrize("scheme", ["crr", "lr"])
    def test_expiry_too_close(self, scheme):
        tiny = OptionContract(S0=185.61, K=185, T=1e-20, sigma=0.4209, r=0.0349)
        with pytest.raises(DegenerateLattice):
            lattice(tiny, scheme, 200)

    def test_drift_outruns_diffusion(self):
        opt = OptionContract(S0=100, K=100, T=1.0, sigma=0.01, r=0.5)
        with pytest.raises(DegenerateLattice):
            crr(opt, 3)

    def test_degenerate_is_arithmetic_error(self):
        assert issubclass(DegenerateLattice, ArithmeticError)

    @pytest.mark.parametrize("config", [
        ModelConfig(model=LATTICE_CRR, steps=1000),
        ModelConfig(model=LATTICE_LR, steps=1001),
    ])
    def test_spot_overflow_raises(self, config):
        with pytest.raises(LatticeOverflow):
            model_price(WIDE, config)
        with pytest.raises(LatticeOverflow):
            price(WIDE, config)

    def test_overflow_is_degenerate(self):
        assert issubclass(LatticeOverflow, DegenerateLattice)
        with pytest.raises(DegenerateLattice):
            crr(WIDE, 1000, greeks=False)

    def test_wide_tree_respects_call_bound(self):
        res = crr(WIDE, 30, greeks=False)
        assert np.isfinite(res.price)
        assert 0.0 < res.price <= WIDE.S0 * (1 + 1e-9)
