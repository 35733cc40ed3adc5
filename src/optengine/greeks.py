"""Greeks engine: one entry point for every model.

Delta and gamma come from the model itself (closed form or the first two
tree levels).  Theta, vega and rho are forward differences against the
*same* model, so every sensitivity is consistent with the quoted price:

* vega  = P(sigma + 0.01) - P(sigma)     (per vol point)
* rho   = P(r + 0.01) - P(r)             (per 1% rate)
* theta = P(T - 1 day) - P(T)            (per day under the day count)
"""

from __future__ import annotations

import logging
from concurrent.futures import ProcessPoolExecutor
from typing import Callable, Iterable, Sequence

from .core import OptionContract, ModelConfig, PricingResult, CALL, PUT
from . import black_scholes
from .binomial import lattice

logger = logging.getLogger(__name__)

__all__ = ["price", "price_both", "price_many", "model_price", "bump_reprice"]

VOL_BUMP = 0.01
RATE_BUMP = 0.01


# ---------------------------------------------------------------------------
# Model dispatch
# ---------------------------------------------------------------------------
def model_price(opt: OptionContract, config: ModelConfig) -> float:
    """Price only, under the configured model."""
    if config.is_lattice:
        return lattice(opt, config.scheme, config.lattice_steps,
                       american=config.american, greeks=False).price
    return black_scholes.price(opt)


def _price_delta_gamma(opt: OptionContract, config: ModelConfig) -> tuple[float, float, float]:
    if config.is_lattice:
        res = lattice(opt, config.scheme, config.lattice_steps, american=config.american)
        return res.price, res.delta, res.gamma
    g = black_scholes.greeks(opt, config.day_count)
    return g.price, g.delta, g.gamma


# ---------------------------------------------------------------------------
# Finite differences
# ---------------------------------------------------------------------------
def bump_reprice(
    pricer: Callable[[OptionContract], float],
    opt: OptionContract,
    base: float,
    field: str,
    bump: float,
) -> float:
    """Forward difference ``pricer(opt with field += bump) - base``.

    A time bump that reaches expiry is valued at the payoff instead of a
    non-positive-time price.
    """
    if field == "T" and opt.T + bump <= 0.0:
        return opt.intrinsic() - base
    return pricer(opt.bumped(**{field: bump})) - base


def price(opt: OptionContract, config: ModelConfig = ModelConfig()) -> PricingResult:
    """Price and all five Greeks for ``opt`` under ``config``."""
    px, delta, gamma = _price_delta_gamma(opt, config)

    def reprice(o: OptionContract) -> float:
        return model_price(o, config)

    return PricingResult(
        price=px,
        delta=delta,
        gamma=gamma,
        theta=bump_reprice(reprice, opt, px, "T", -config.day),
        vega=bump_reprice(reprice, opt, px, "sigma", VOL_BUMP),
        rho=bump_reprice(reprice, opt, px, "r", RATE_BUMP),
    )


def price_both(opt: OptionContract, config: ModelConfig = ModelConfig()) -> dict[str, PricingResult]:
    """Call and put on the same terms; ``opt.right`` is ignored."""
    return {
        CALL: price(opt.with_right(CALL), config),
        PUT: price(opt.with_right(PUT), config),
    }


def price_many(
    contracts: Iterable[OptionContract],
    config: ModelConfig = ModelConfig(),
    *,
    n_workers: int = 1,
) -> list[PricingResult]:
    """Price a batch of independent contracts, results in input order.

    ``n_workers > 1`` fans the batch out over a process pool.  Each call is
    pure, so no coordination is needed; the first failure propagates.
    """
    contracts: Sequence[OptionContract] = list(contracts)
    if n_workers <= 1 or len(contracts) <= 1:
        return [price(c, config) for c in contracts]

    logger.debug("pricing %d contracts on %d workers", len(contracts), n_workers)
    with ProcessPoolExecutor(max_workers=n_workers) as ex:
        return list(ex.map(price, contracts, [config] * len(contracts)))
