"""Model validation framework.

Cross-model benchmarking of the closed form against both lattices,
convergence analysis of the trees in the number of steps, and the
early-exercise premium of an American contract.
"""

from __future__ import annotations

import numpy as np
from math import exp
from typing import Optional

from scipy.special import ndtr

from .core import OptionContract, ModelConfig, CALL
from .black_scholes import d1_d2, price as bs_price
from .binomial import lattice

__all__ = [
    "exact_bs_price",
    "cross_validate",
    "convergence_analysis",
    "early_exercise_premium",
]


def exact_bs_price(opt: OptionContract) -> float:
    """Black-Scholes-Merton price with the exact normal CDF.

    Reference for the fast polynomial CDF used by :mod:`.black_scholes`.
    """
    d1, d2 = d1_d2(opt.S0, opt.K, opt.T, opt.r, opt.q, opt.sigma)
    disc_r = exp(-opt.r * opt.T)
    disc_q = exp(-opt.q * opt.T)
    if opt.right == CALL:
        return float(disc_q * opt.S0 * ndtr(d1) - disc_r * opt.K * ndtr(d2))
    return float(disc_r * opt.K * ndtr(-d2) - disc_q * opt.S0 * ndtr(-d1))


# ---------------------------------------------------------------------------
# Cross-model benchmarking
# ---------------------------------------------------------------------------
def cross_validate(opt: OptionContract, *, steps: int = 300) -> dict:
    """Price a European contract with every model.

    Returns
    -------
    dict
        ``"closed-form"``, ``"exact"`` (exact-CDF closed form),
        ``"lattice-crr"``, ``"lattice-lr"`` (European exercise on the tree),
        ``"cdf_error"`` and ``"max_discrepancy"`` (lattices vs closed form).
    """
    ref = bs_price(opt)
    results = {
        "closed-form": ref,
        "exact": exact_bs_price(opt),
        "lattice-crr": lattice(opt, "crr", steps, american=False, greeks=False).price,
        "lattice-lr": lattice(opt, "lr", steps, american=False, greeks=False).price,
    }
    results["cdf_error"] = abs(ref - results["exact"])
    results["max_discrepancy"] = max(
        abs(results[k] - ref) for k in ("lattice-crr", "lattice-lr")
    )
    return results


# ---------------------------------------------------------------------------
# Convergence analysis
# ---------------------------------------------------------------------------
def convergence_analysis(
    opt: OptionContract,
    scheme: str,
    steps_list: list | np.ndarray,
    *,
    american: bool = False,
    reference: Optional[float] = None,
) -> dict:
    """Analyse lattice convergence as the number of steps grows.

    Parameters
    ----------
    scheme : str
        ``"crr"`` or ``"lr"``.
    steps_list : array-like
        Tree depths to test (LR rounds even depths up).
    american : bool
        Price with early exercise.  The default European mode has the
        closed form as reference.
    reference : float, optional
        True price for error computation.  Default: closed form for
        European; the deepest tree in the list for American.

    Returns
    -------
    dict
        ``"steps"``, ``"prices"``, ``"errors"``, ``"order"`` (estimated).
    """
    steps_list = [int(n) for n in steps_list]
    results = [lattice(opt, scheme, n, american=american, greeks=False) for n in steps_list]
    prices = [res.price for res in results]
    steps_used = [res.steps for res in results]

    if reference is None:
        reference = prices[int(np.argmax(steps_used))] if american else bs_price(opt)

    errors = [abs(p - reference) for p in prices]

    # Estimate convergence order from log-log regression
    order = float("nan")
    valid = [(n, e) for n, e in zip(steps_used, errors) if e > 0]
    if len(valid) >= 2:
        log_n = np.log([n for n, _ in valid])
        log_e = np.log([e for _, e in valid])
        # error ~ C / n^order  => log(e) = -order * log(n) + const
        coeffs = np.polyfit(log_n, log_e, 1)
        order = -float(coeffs[0])

    return {
        "steps": steps_used,
        "prices": prices,
        "errors": errors,
        "order": order,
    }


# ---------------------------------------------------------------------------
# Early exercise
# ---------------------------------------------------------------------------
def early_exercise_premium(opt: OptionContract, config: ModelConfig = ModelConfig()) -> float:
    """American minus European value on the same lattice and depth."""
    amer = lattice(opt, config.scheme, config.lattice_steps, american=True, greeks=False)
    euro = lattice(opt, config.scheme, config.lattice_steps, american=False, greeks=False)
    return amer.price - euro.price
