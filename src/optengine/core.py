from __future__ import annotations
import math
import numbers
from dataclasses import dataclass, asdict, field, replace
from typing import Optional

from .errors import InvalidInput

CALL = "call"
PUT  = "put"
RIGHTS = (CALL, PUT)

CLOSED_FORM = "closed-form"
LATTICE_CRR = "lattice-crr"
LATTICE_LR  = "lattice-lr"
MODELS = (CLOSED_FORM, LATTICE_CRR, LATTICE_LR)

EUROPEAN = "european"
AMERICAN = "american"

DAY_COUNTS = (252, 365)


def _require_finite(name: str, value: float) -> None:
    if not isinstance(value, numbers.Real) or not math.isfinite(value):
        raise InvalidInput(f"{name} must be a finite number, got {value!r}")


def _require_positive(name: str, value: float) -> None:
    _require_finite(name, value)
    if value <= 0:
        raise InvalidInput(f"{name} must be positive and finite, got {value}")


def year_fraction(days: float, day_count: int = 365) -> float:
    """Convert a day count into a year fraction under a 252/365 convention."""
    if day_count not in DAY_COUNTS:
        raise InvalidInput(f"day_count must be one of {DAY_COUNTS}, got {day_count}")
    _require_positive("days", days)
    return days / day_count


# ---------------------------------------------------------------------------
# Contract
# ---------------------------------------------------------------------------
@dataclass(frozen=True)
class OptionContract:
    """A vanilla option on one underlying with a continuous yield.

    Parameters
    ----------
    S0 : float
        Spot price of the underlying.
    K : float
        Strike price.
    T : float
        Time to expiry in years.
    sigma : float
        Annualised volatility (0.4209 means 42.09%).
    r : float
        Continuously-compounded risk-free rate, any sign.
    q : float
        Continuous dividend / cost-of-carry yield, any sign.
    right : str
        ``"call"`` or ``"put"``.
    """
    S0: float
    K: float
    T: float          # years
    sigma: float
    r: float = 0.0    # continuous risk-free
    q: float = 0.0    # continuous dividend yield
    right: str = CALL

    def __post_init__(self):
        _require_positive("S0", self.S0)
        _require_positive("K", self.K)
        _require_positive("T", self.T)
        _require_positive("sigma", self.sigma)
        _require_finite("r", self.r)
        _require_finite("q", self.q)
        if self.right not in RIGHTS:
            raise InvalidInput(f"right must be 'call' or 'put', got {self.right!r}")

    @property
    def is_call(self) -> bool:
        return self.right == CALL

    def intrinsic(self, spot: Optional[float] = None) -> float:
        """Exercise value at ``spot`` (defaults to the contract's own spot)."""
        s = self.S0 if spot is None else spot
        if self.is_call:
            return max(s - self.K, 0.0)
        return max(self.K - s, 0.0)

    def with_right(self, right: str) -> "OptionContract":
        return replace(self, right=right)

    def bumped(self, **shifts: float) -> "OptionContract":
        """Copy with additive shifts, e.g. ``bumped(sigma=0.01, r=0.01)``."""
        return replace(self, **{k: getattr(self, k) + dv for k, dv in shifts.items()})


# ---------------------------------------------------------------------------
# Model selection
# ---------------------------------------------------------------------------
@dataclass(frozen=True)
class ModelConfig:
    """How to price: model id, lattice depth and day-count convention.

    ``exercise=None`` keeps the model's natural style: European for the
    closed form, American for both lattices.  A lattice can be forced to
    European exercise for convergence checks against the closed form.
    """
    model: str = LATTICE_CRR
    steps: int = 300
    day_count: int = 365
    exercise: Optional[str] = None

    def __post_init__(self):
        if self.model not in MODELS:
            raise InvalidInput(f"model must be one of {MODELS}, got {self.model!r}")
        if isinstance(self.steps, bool) or not isinstance(self.steps, numbers.Integral):
            raise InvalidInput(f"steps must be an integer, got {self.steps!r}")
        if self.steps < 3:
            raise InvalidInput(f"steps must be >= 3, got {self.steps}")
        if self.day_count not in DAY_COUNTS:
            raise InvalidInput(
                f"day_count must be one of {DAY_COUNTS}, got {self.day_count}"
            )
        if self.exercise not in (None, EUROPEAN, AMERICAN):
            raise InvalidInput(
                f"exercise must be 'european' or 'american', got {self.exercise!r}"
            )
        if self.model == CLOSED_FORM and self.exercise == AMERICAN:
            raise InvalidInput("closed-form model prices European exercise only")

    @property
    def is_lattice(self) -> bool:
        return self.model != CLOSED_FORM

    @property
    def american(self) -> bool:
        if self.exercise is None:
            return self.is_lattice
        return self.exercise == AMERICAN

    @property
    def scheme(self) -> str:
        """Lattice scheme name used by :func:`optengine.binomial.lattice`."""
        return "lr" if self.model == LATTICE_LR else "crr"

    @property
    def lattice_steps(self) -> int:
        if self.model == LATTICE_LR and self.steps % 2 == 0:
            return self.steps + 1
        return self.steps

    @property
    def day(self) -> float:
        """One day in years under this convention (the theta bump)."""
        return 1.0 / self.day_count


# ---------------------------------------------------------------------------
# Results / queries
# ---------------------------------------------------------------------------
@dataclass(frozen=True)
class PricingResult:
    """Price plus Greeks.

    ``delta`` and ``gamma`` are per unit of spot.  ``theta`` is the change
    over one day, ``vega`` per +1 vol point, ``rho`` per +1% rate.
    """
    price: float
    delta: float
    gamma: float
    theta: float
    vega: float
    rho: float

    def as_dict(self) -> dict[str, float]:
        return asdict(self)


@dataclass(frozen=True)
class ImpliedVolatilityQuery:
    """Observed premium to invert; ``contract.sigma`` is ignored."""
    observed_price: float
    contract: OptionContract
    config: ModelConfig = field(default_factory=lambda: ModelConfig(model=CLOSED_FORM))

    def __post_init__(self):
        _require_positive("observed_price", self.observed_price)


@dataclass(frozen=True)
class ImpliedVolResult:
    volatility: float
    converged: bool
    iterations: int
    price_error: float
