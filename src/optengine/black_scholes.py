from math import log, sqrt, exp
from typing import Tuple

from .core import OptionContract, PricingResult, CALL
from .normal import norm_cdf, norm_pdf


def d1_d2(S0: float, K: float, T: float, r: float, q: float, sigma: float) -> Tuple[float, float]:
    rt = sigma * sqrt(T)
    d1 = (log(S0 / K) + (r - q + 0.5 * sigma * sigma) * T) / rt
    d2 = d1 - rt
    return d1, d2


def _d1_d2(opt: OptionContract) -> Tuple[float, float]:
    return d1_d2(opt.S0, opt.K, opt.T, opt.r, opt.q, opt.sigma)


def price(opt: OptionContract) -> float:
    """Black-Scholes-Merton value of a European option.

    Inputs were validated when the contract was built, so the result is
    always finite.  The fast CDF carries ~1e-7 absolute error.
    """
    d1, d2 = _d1_d2(opt)
    disc_r = exp(-opt.r * opt.T)
    disc_q = exp(-opt.q * opt.T)
    if opt.right == CALL:
        px = disc_q * opt.S0 * norm_cdf(d1) - disc_r * opt.K * norm_cdf(d2)
    else:
        px = disc_r * opt.K * norm_cdf(-d2) - disc_q * opt.S0 * norm_cdf(-d1)
    # polynomial CDF can leave a deep OTM premium a hair below zero
    return max(px, 0.0)


def vega(opt: OptionContract) -> float:
    """dPrice/dSigma in absolute units (same for call and put)."""
    d1, _ = _d1_d2(opt)
    return opt.S0 * exp(-opt.q * opt.T) * norm_pdf(d1) * sqrt(opt.T)


def greeks(opt: OptionContract, day_count: int = 365) -> PricingResult:
    """Analytic price and Greeks in the engine's display units.

    Theta is per calendar (or trading) day, vega per vol point and rho per
    1% of rate, so the result lines up with :func:`optengine.greeks.price`.
    """
    d1, d2 = _d1_d2(opt)
    w = 1.0 if opt.right == CALL else -1.0
    disc_r = exp(-opt.r * opt.T)
    disc_q = exp(-opt.q * opt.T)
    n_d1 = norm_pdf(d1)
    N_wd1 = norm_cdf(w * d1)
    N_wd2 = norm_cdf(w * d2)
    sqrt_t = sqrt(opt.T)

    theta_year = (-opt.S0 * disc_q * n_d1 * opt.sigma / (2.0 * sqrt_t)
                  - w * opt.r * opt.K * disc_r * N_wd2
                  + w * opt.q * opt.S0 * disc_q * N_wd1)
    return PricingResult(
        price=price(opt),
        delta=w * disc_q * N_wd1,
        gamma=disc_q * n_d1 / (opt.S0 * opt.sigma * sqrt_t),
        theta=theta_year / day_count,
        vega=0.01 * vega(opt),
        rho=0.01 * w * opt.K * opt.T * disc_r * N_wd2,
    )
