"""Exception taxonomy for the pricing engine.

``InvalidInput`` and ``DegenerateLattice`` are raised; ``DidNotConverge`` is
normally reported through :class:`~optengine.core.ImpliedVolResult` and only
raised when the caller asks for a strict solve.
"""

from __future__ import annotations

__all__ = [
    "OptionEngineError",
    "InvalidInput",
    "DegenerateLattice",
    "LatticeOverflow",
    "DidNotConverge",
]


class OptionEngineError(Exception):
    """Base class for every error raised by :mod:`optengine`."""


class InvalidInput(OptionEngineError, ValueError):
    """A contract or model precondition is violated (checked before any numerics)."""


class DegenerateLattice(OptionEngineError, ArithmeticError):
    """Lattice parameters collapse: p outside (0, 1) or node spacing ~ 0."""


class LatticeOverflow(DegenerateLattice):
    """Node spots or values leave the float64 range (sigma * sqrt(N T) too large)."""


class DidNotConverge(OptionEngineError):
    """Implied-vol solver exhausted its iteration budget.

    The best estimate found is kept on the exception so a strict caller can
    still display it.
    """

    def __init__(self, volatility: float, iterations: int, price_error: float):
        self.volatility = volatility
        self.iterations = iterations
        self.price_error = price_error
        super().__init__(
            f"implied vol did not converge after {iterations} iterations "
            f"(best sigma={volatility:.6f}, |price error|={price_error:.3g})"
        )
