import logging
import numpy as np
from dataclasses import dataclass
from math import exp, log, sqrt
from typing import Literal, Tuple

from .core import OptionContract, CALL
from .errors import DegenerateLattice, InvalidInput, LatticeOverflow
from .black_scholes import d1_d2

logger = logging.getLogger(__name__)

__all__ = ["LatticeResult", "lattice", "crr", "leisen_reimer", "lattice_params"]

Scheme = Literal["crr", "lr"]

# Relative depth-1 spread (u - d) below which tree delta/gamma are undefined.
MIN_NODE_SPACING = 1e-8

# Largest log-spot a float64 node can hold.
_LOG_MAX_SPOT = float(np.log(np.finfo(float).max))


@dataclass(frozen=True)
class LatticeResult:
    price: float
    delta: float
    gamma: float
    steps: int


# ---------------------------------------------------------------------------
# Scheme parameters
# ---------------------------------------------------------------------------
def _peizer_pratt(z: float, n: int) -> float:
    """Peizer-Pratt method 2 inversion: binomial probability matching N(z)."""
    sign = 1.0 if z >= 0 else -1.0
    term = (z / (n + 1.0 / 3.0 + 0.1 / (n + 1))) ** 2 * (n + 1.0 / 6.0)
    return 0.5 + sign * 0.5 * sqrt(1.0 - exp(-term))


def lattice_params(opt: OptionContract, scheme: Scheme, N: int) -> Tuple[int, float, float, float]:
    """Return ``(N, u, d, p)`` for the scheme; Leisen-Reimer forces ``N`` odd."""
    if scheme == "crr":
        dt = opt.T / N
        u = exp(opt.sigma * sqrt(dt))
        d = 1.0 / u
        p = (exp((opt.r - opt.q) * dt) - d) / (u - d)
    elif scheme == "lr":
        if N % 2 == 0:
            N += 1
        dt = opt.T / N
        d1, d2 = d1_d2(opt.S0, opt.K, opt.T, opt.r, opt.q, opt.sigma)
        p1 = _peizer_pratt(d1, N)
        p2 = _peizer_pratt(d2, N)
        if not (0.0 < p2 < 1.0):
            raise DegenerateLattice(
                f"Leisen-Reimer probability saturated (p={p2}); T too close to 0?"
            )
        growth = exp((opt.r - opt.q) * dt)
        u = growth * p1 / p2
        d = (growth - p2 * u) / (1.0 - p2)
        p = p2
    else:
        raise InvalidInput(f"scheme must be 'crr' or 'lr', got {scheme!r}")

    if not (0.0 < p < 1.0) or not (0.0 < d < u):
        raise DegenerateLattice(
            f"Risk-neutral prob p={p:.6g} (u={u:.6g}, d={d:.6g}) out of range; "
            "try larger N or different params."
        )
    return N, u, d, p


# ---------------------------------------------------------------------------
# Pricer
# ---------------------------------------------------------------------------
def _spots(S0: float, u: float, d: float, k: int) -> np.ndarray:
    """Spots at depth k, built in log space; index j counts up-moves."""
    j = np.arange(k + 1)
    return np.exp(log(S0) + j * log(u) + (k - j) * log(d))


def _payoff(opt: OptionContract, S: np.ndarray) -> np.ndarray:
    if opt.right == CALL:
        return np.maximum(S - opt.K, 0.0)
    return np.maximum(opt.K - S, 0.0)


def lattice(
    opt: OptionContract,
    scheme: Scheme = "crr",
    N: int = 300,
    *,
    american: bool = True,
    greeks: bool = True,
) -> LatticeResult:
    """Recombining binomial tree with delta and gamma read off the first two levels.

    Parameters
    ----------
    opt : OptionContract
    scheme : str
        ``"crr"`` (Cox-Ross-Rubinstein) or ``"lr"`` (Leisen-Reimer).
    N : int
        Number of time steps, at least 3.  Leisen-Reimer rounds even
        values up to the next odd number.
    american : bool
        Take ``max(hold, exercise)`` at every node.  ``False`` prices the
        European option on the same tree.
    greeks : bool
        Extract delta and gamma.  When ``False`` both are ``nan`` and the
        node-spacing check is skipped (bump-and-reprice only needs price).

    Returns
    -------
    LatticeResult
    """
    if N < 3:
        raise InvalidInput(f"N must be >= 3, got {N}")
    N, u, d, p = lattice_params(opt, scheme, N)
    if greeks and (u - d) < MIN_NODE_SPACING:
        raise DegenerateLattice(
            f"Node spacing u-d={u - d:.3g} collapsed; T={opt.T:.3g} too close to 0."
        )
    log_top = log(opt.S0) + N * log(u)
    if log_top >= _LOG_MAX_SPOT:
        raise LatticeOverflow(
            f"Top node spot e^{log_top:.1f} overflows float64 (N={N}, u={u:.6g}); "
            "reduce N or sigma."
        )
    disc = exp(-opt.r * opt.T / N)
    logger.debug("%s tree N=%d u=%.8f d=%.8f p=%.8f", scheme, N, u, d, p)

    V = _payoff(opt, _spots(opt.S0, u, d, N))

    # Backward induction
    V1 = V2 = None
    for k in range(N - 1, -1, -1):
        V = disc * (p * V[1:] + (1.0 - p) * V[:-1])
        if american:
            V = np.maximum(V, _payoff(opt, _spots(opt.S0, u, d, k)))
        if k == 2:
            V2 = V.copy()
        elif k == 1:
            V1 = V.copy()

    price = float(V[0])
    if not np.isfinite(price):
        raise LatticeOverflow(f"Lattice value {price} not finite (N={N}, u={u:.6g}).")
    if not greeks:
        return LatticeResult(price, float("nan"), float("nan"), N)

    S = opt.S0
    delta = (V1[1] - V1[0]) / (S * u - S * d)

    s_dd, s_ud, s_uu = S * d * d, S * u * d, S * u * u
    g_up = (V2[2] - V2[1]) / (s_uu - s_ud)
    g_dn = (V2[1] - V2[0]) / (s_ud - s_dd)
    gamma = (g_up - g_dn) / (0.5 * (s_uu - s_dd))

    if not (np.isfinite(delta) and np.isfinite(gamma)):
        raise DegenerateLattice("Tree delta/gamma not finite; lattice too compressed.")
    return LatticeResult(price, float(delta), float(gamma), N)


def crr(opt: OptionContract, N: int = 300, *, american: bool = True, greeks: bool = True) -> LatticeResult:
    """Cox-Ross-Rubinstein tree: u = e^{sigma sqrt(dt)}, d = 1/u."""
    return lattice(opt, "crr", N, american=american, greeks=greeks)


def leisen_reimer(opt: OptionContract, N: int = 301, *, american: bool = True, greeks: bool = True) -> LatticeResult:
    """Leisen-Reimer tree centred on the strike; converges O(1/N^2) for Europeans."""
    return lattice(opt, "lr", N, american=american, greeks=greeks)
