import argparse
import logging
import sys

from .core import (
    OptionContract, ModelConfig, ImpliedVolatilityQuery, CALL, PUT, MODELS,
    LATTICE_CRR, DAY_COUNTS, year_fraction,
)
from .errors import OptionEngineError
from .greeks import price_both
from .implied_vol import implied_volatility
from .validation import convergence_analysis

logger = logging.getLogger(__name__)

# placeholder vol for the IV query; the solver replaces it
_IV_SEED_SIGMA = 0.2


def _kind(s: str):
    s = s.lower()
    if s in {"call", "c"}:
        return CALL
    if s in {"put", "p"}:
        return PUT
    raise argparse.ArgumentTypeError("kind must be 'call' or 'put'")


def add_common(parser: argparse.ArgumentParser, *, need_sigma: bool = True):
    parser.add_argument("--S0", type=float, required=True)
    parser.add_argument("--K", type=float, required=True)
    tenor = parser.add_mutually_exclusive_group(required=True)
    tenor.add_argument("--T", type=float, help="years")
    tenor.add_argument("--days", type=float, help="days to expiry (see --day-count)")
    parser.add_argument("--r", type=float, default=0.0, help="cont. risk-free")
    if need_sigma:
        parser.add_argument("--sigma", type=float, required=True)
    parser.add_argument("--q", type=float, default=0.0, help="cont. dividend yield")
    parser.add_argument("--model", choices=MODELS, default=LATTICE_CRR)
    parser.add_argument("--steps", type=int, default=300)
    parser.add_argument("--day-count", dest="day_count", type=int,
                        choices=DAY_COUNTS, default=365)


def _config(args) -> ModelConfig:
    return ModelConfig(model=args.model, steps=args.steps, day_count=args.day_count)


def _contract(args, sigma: float, kind: str = CALL) -> OptionContract:
    T = args.T if args.T is not None else year_fraction(args.days, args.day_count)
    return OptionContract(S0=args.S0, K=args.K, T=T, sigma=sigma,
                          r=args.r, q=args.q, right=kind)


def cmd_price(args):
    both = price_both(_contract(args, args.sigma), _config(args))
    print(f"{'':6s}{'price':>14s}{'delta':>12s}{'gamma':>12s}"
          f"{'theta':>12s}{'vega':>12s}{'rho':>12s}")
    for side, res in both.items():
        print(f"{side:6s}{res.price:14.6f}{res.delta:12.5f}{res.gamma:12.5f}"
              f"{res.theta:12.5f}{res.vega:12.5f}{res.rho:12.5f}")
    return 0


def cmd_iv(args):
    query = ImpliedVolatilityQuery(
        observed_price=args.price,
        contract=_contract(args, _IV_SEED_SIGMA, args.kind),
        config=_config(args),
    )
    res = implied_volatility(query)
    flag = "" if res.converged else "  (did not converge)"
    print(f"{100.0 * res.volatility:.4f}%  (|error| {res.price_error:.2e}, "
          f"{res.iterations} it){flag}")
    return 0 if res.converged else 2


def cmd_convergence(args):
    scheme = _config(args).scheme
    out = convergence_analysis(_contract(args, args.sigma, args.kind), scheme,
                               args.steps_list, american=args.american)
    for n, px, err in zip(out["steps"], out["prices"], out["errors"]):
        print(f"{n:6d}  {px:.10f}  {err:.3e}")
    print(f"order ~ {out['order']:.3f}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="optengine", description="Option pricing and risk CLI")
    p.add_argument("-v", "--verbose", action="store_true", help="debug logging")
    sub = p.add_subparsers(dest="cmd", required=True)

    # Price + Greeks, both sides
    p_px = sub.add_parser("price", help="call and put price with Greeks")
    add_common(p_px)
    p_px.set_defaults(func=cmd_price)

    # Implied vol
    p_iv = sub.add_parser("iv", help="implied volatility from a market price")
    add_common(p_iv, need_sigma=False)
    p_iv.add_argument("--price", type=float, required=True, help="observed premium")
    p_iv.add_argument("--kind", type=_kind, default=CALL, help="call|put")
    p_iv.set_defaults(func=cmd_iv)

    # Lattice convergence table
    p_cv = sub.add_parser("convergence", help="lattice error vs closed form by depth")
    add_common(p_cv)
    p_cv.add_argument("--kind", type=_kind, default=CALL, help="call|put")
    p_cv.add_argument("--steps-list", dest="steps_list", type=int, nargs="+",
                      default=[50, 100, 200, 400, 800])
    p_cv.add_argument("--american", action="store_true")
    p_cv.set_defaults(func=cmd_convergence)
    return p


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )
    logger.debug("command %s: %s", args.cmd, vars(args))
    try:
        return args.func(args)
    except OptionEngineError as e:
        print(f"error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
