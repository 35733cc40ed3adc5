# optengine — option pricing and risk engine
# Public API

# Data model
from .core import (
    OptionContract, ModelConfig, PricingResult,
    ImpliedVolatilityQuery, ImpliedVolResult,
    CALL, PUT, CLOSED_FORM, LATTICE_CRR, LATTICE_LR, MODELS, DAY_COUNTS,
    year_fraction,
)
from .errors import (
    OptionEngineError, InvalidInput, DegenerateLattice, LatticeOverflow, DidNotConverge,
)

# Numerical primitives
from .normal import norm_cdf, norm_pdf

# Pricers
from .black_scholes import price as bs_price, greeks as bs_greeks
from .binomial import LatticeResult, lattice, crr, leisen_reimer

# Greeks engine
from .greeks import price, price_both, price_many

# Implied volatility
from .implied_vol import implied_volatility, implied_vol

# Model validation
from .validation import cross_validate, convergence_analysis, early_exercise_premium

__all__ = [
    # Data model
    "OptionContract", "ModelConfig", "PricingResult",
    "ImpliedVolatilityQuery", "ImpliedVolResult",
    "CALL", "PUT", "CLOSED_FORM", "LATTICE_CRR", "LATTICE_LR", "MODELS",
    "DAY_COUNTS", "year_fraction",
    # Errors
    "OptionEngineError", "InvalidInput", "DegenerateLattice", "LatticeOverflow",
    "DidNotConverge",
    # Primitives
    "norm_cdf", "norm_pdf",
    # Pricers
    "bs_price", "bs_greeks", "LatticeResult", "lattice", "crr", "leisen_reimer",
    # Greeks engine
    "price", "price_both", "price_many",
    # Implied vol
    "implied_volatility", "implied_vol",
    # Validation
    "cross_validate", "convergence_analysis", "early_exercise_premium",
]

__version__ = "0.1.0"
