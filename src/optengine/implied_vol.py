"""Implied-volatility solver.

Newton-Raphson on the closed-form vega for the European model; bisection
for the lattices, whose price is only piecewise smooth in sigma.  Neither
loop retries: a budget that runs out returns the best estimate seen with
``converged=False`` (or raises :class:`DidNotConverge` when ``strict``).
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Optional

from .core import (
    OptionContract, ModelConfig, ImpliedVolatilityQuery, ImpliedVolResult,
    CLOSED_FORM,
)
from .errors import DegenerateLattice, DidNotConverge, LatticeOverflow
from . import black_scholes
from .greeks import model_price

logger = logging.getLogger(__name__)

__all__ = ["implied_volatility", "implied_vol"]

NEWTON_GUESS = 0.5
NEWTON_MAXITER = 20
NEWTON_TOL = 1e-6
NEWTON_FLOOR = 0.001
MIN_VEGA = 1e-10

BISECT_BRACKET = (0.0001, 5.0)
BISECT_MAXITER = 30
BISECT_TOL = 1e-4


def _newton(
    opt: OptionContract, target: float, *,
    guess: float, maxiter: int, tol: float,
) -> ImpliedVolResult:
    sigma = guess
    best = (float("inf"), sigma)
    for it in range(1, maxiter + 1):
        trial = replace(opt, sigma=sigma)
        diff = black_scholes.price(trial) - target
        if abs(diff) < best[0]:
            best = (abs(diff), sigma)
        if abs(diff) < tol:
            return ImpliedVolResult(sigma, True, it, abs(diff))

        vega = black_scholes.vega(trial)
        if vega < MIN_VEGA:
            logger.debug("newton: vega %.3g flat at sigma=%.6f, stopping", vega, sigma)
            break
        sigma -= diff / vega
        if sigma <= 0:
            sigma = NEWTON_FLOOR
        logger.debug("newton it=%d sigma=%.8f diff=%.3g", it, sigma, diff)
    return ImpliedVolResult(best[1], False, it, best[0])


def _bisect(
    opt: OptionContract, target: float, config: ModelConfig, *,
    bracket: tuple[float, float], maxiter: int, tol: float,
) -> ImpliedVolResult:
    lo, hi = bracket
    best = (float("inf"), 0.5 * (lo + hi))
    for it in range(1, maxiter + 1):
        mid = 0.5 * (lo + hi)
        try:
            px = model_price(replace(opt, sigma=mid), config)
        except LatticeOverflow:
            # spots leave float range at large sigma: treat as too dear
            logger.debug("bisect: lattice overflow at sigma=%.6g", mid)
            hi = mid
            continue
        except DegenerateLattice:
            # drift outruns diffusion at tiny sigma: treat as too cheap
            logger.debug("bisect: degenerate lattice at sigma=%.6g", mid)
            lo = mid
            continue
        diff = px - target
        if abs(diff) < best[0]:
            best = (abs(diff), mid)
        if abs(diff) < tol:
            return ImpliedVolResult(mid, True, it, abs(diff))
        if diff < 0:
            lo = mid
        else:
            hi = mid
        logger.debug("bisect it=%d sigma=%.8f diff=%.3g", it, mid, diff)
    return ImpliedVolResult(best[1], False, maxiter, best[0])


def implied_volatility(
    query: ImpliedVolatilityQuery,
    *,
    strict: bool = False,
    guess: float = NEWTON_GUESS,
    bracket: tuple[float, float] = BISECT_BRACKET,
) -> ImpliedVolResult:
    """Recover the volatility that reproduces ``query.observed_price``.

    Parameters
    ----------
    query : ImpliedVolatilityQuery
        Observed premium, contract terms (its ``sigma`` is ignored) and model.
    strict : bool
        Raise :class:`DidNotConverge` instead of returning an unconverged
        estimate.
    guess : float
        Newton starting point (closed form only).
    bracket : tuple
        Bisection interval (lattices only).

    Returns
    -------
    ImpliedVolResult
        ``volatility`` is the best estimate seen; tolerance is 1e-6 in price
        for the closed form and 1e-4 for the lattices.
    """
    opt, target, config = query.contract, query.observed_price, query.config
    if config.model == CLOSED_FORM:
        res = _newton(opt, target, guess=guess, maxiter=NEWTON_MAXITER, tol=NEWTON_TOL)
    else:
        res = _bisect(opt, target, config, bracket=bracket,
                      maxiter=BISECT_MAXITER, tol=BISECT_TOL)

    if not res.converged:
        logger.warning(
            "%s implied vol did not converge for %s at %.6g: best sigma=%.6f err=%.3g",
            config.model, opt.right, target, res.volatility, res.price_error,
        )
        if strict:
            raise DidNotConverge(res.volatility, res.iterations, res.price_error)
    return res


def implied_vol(
    opt: OptionContract,
    target_price: float,
    config: Optional[ModelConfig] = None,
    *,
    strict: bool = False,
) -> float:
    """Shortcut returning just the volatility estimate."""
    if config is None:
        config = ModelConfig(model=CLOSED_FORM)
    query = ImpliedVolatilityQuery(target_price, opt, config)
    return implied_volatility(query, strict=strict).volatility
