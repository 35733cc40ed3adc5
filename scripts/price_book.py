#!/usr/bin/env python3
"""Batch-price an options book.

Usage
-----
    python scripts/price_book.py --input book.csv --output prices.csv
    python scripts/price_book.py --input book.csv --output prices.json --workers 4

Input CSV format
----------------
    id,S0,K,T,r,sigma,q,kind,model
    1,185.61,185,0.0493,0.0349,0.4209,0.0002,put,lattice-crr
    2,100,95,1.0,0.05,0.25,0.01,call,closed-form
    3,100,105,0.5,0.05,0.20,0.0,put,lattice-lr

``T`` may be replaced by a ``days`` column (uses ``--day-count``).  An
optional ``market_price`` column adds an implied-vol column.

Output
------
    CSV or JSON with columns: id, price, delta, gamma, theta, vega, rho, iv
"""

from __future__ import annotations
import argparse
import csv
import json
import logging
from collections import defaultdict
from pathlib import Path

from optengine import (
    OptionContract, ModelConfig, ImpliedVolatilityQuery, OptionEngineError,
    implied_volatility, price, price_many, year_fraction,
)

logger = logging.getLogger("price_book")

ROW_ERRORS = (OptionEngineError, KeyError, ValueError)


def _parse_row(row: dict, steps: int, day_count: int):
    """Build the contract and model config for a single book row."""
    if row.get("T"):
        T = float(row["T"])
    else:
        T = year_fraction(float(row["days"]), day_count)
    opt = OptionContract(
        S0=float(row["S0"]),
        K=float(row["K"]),
        T=T,
        sigma=float(row["sigma"]),
        r=float(row.get("r") or 0.0),
        q=float(row.get("q") or 0.0),
        right=row["kind"].strip().lower(),
    )
    config = ModelConfig(
        model=(row.get("model") or "lattice-crr").strip().lower(),
        steps=steps,
        day_count=day_count,
    )
    return opt, config


def _failed(row: dict, i: int, e: Exception) -> dict:
    logger.error("Row %d (id=%s): %s", i, row.get("id", "?"), e)
    return {"id": row.get("id", ""), "price": None, "error": str(e)}


def price_book(rows: list[dict], steps: int = 300, day_count: int = 365,
               n_workers: int = 1) -> list[dict]:
    """Price every row; failures become ``{"id", "price": None, "error"}`` rows.

    Rows sharing a model config go through :func:`price_many` together, so
    ``n_workers > 1`` spreads each group over a process pool.
    """
    results: list = [None] * len(rows)
    parsed = {}
    groups = defaultdict(list)
    for i, row in enumerate(rows):
        try:
            opt, config = _parse_row(row, steps, day_count)
        except ROW_ERRORS as e:
            results[i] = _failed(row, i, e)
            continue
        parsed[i] = (opt, config)
        groups[config].append(i)

    for config, idx in groups.items():
        opts = [parsed[i][0] for i in idx]
        try:
            priced = price_many(opts, config, n_workers=n_workers)
        except OptionEngineError:
            # the pool stops at the first bad contract; redo serially for per-row errors
            logger.debug("%s batch failed, pricing %d rows one by one", config.model, len(idx))
            priced = []
            for i, opt in zip(idx, opts):
                try:
                    priced.append(price(opt, config))
                except OptionEngineError as e:
                    priced.append(e)
        for i, res in zip(idx, priced):
            if isinstance(res, Exception):
                results[i] = _failed(rows[i], i, res)
            else:
                results[i] = {"id": rows[i].get("id", ""), **res.as_dict(), "iv": None}

    for i, (opt, config) in parsed.items():
        market = rows[i].get("market_price")
        if not market or results[i].get("price") is None:
            continue
        try:
            iv = implied_volatility(ImpliedVolatilityQuery(float(market), opt, config))
        except ROW_ERRORS as e:
            results[i] = _failed(rows[i], i, e)
            continue
        results[i]["iv"] = iv.volatility if iv.converged else None
    return results


def main(argv=None):
    parser = argparse.ArgumentParser(description="Batch-price an options book.")
    parser.add_argument("--input", required=True, help="Path to book CSV")
    parser.add_argument("--output", required=True, help="Output path (.csv or .json)")
    parser.add_argument("--steps", type=int, default=300, help="lattice depth")
    parser.add_argument("--day-count", dest="day_count", type=int, default=365)
    parser.add_argument("--workers", type=int, default=1, help="process-pool size")
    args = parser.parse_args(argv)
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    with open(args.input, newline="") as f:
        rows = list(csv.DictReader(f))

    logger.info("Pricing %d positions on %d worker(s)...", len(rows), args.workers)
    results = price_book(rows, args.steps, args.day_count, n_workers=args.workers)

    output_path = Path(args.output)
    if output_path.suffix == ".json":
        with open(output_path, "w") as f:
            json.dump(results, f, indent=2, default=str)
    else:
        if not results:
            logger.warning("No results to write.")
            return
        fieldnames = list(results[0].keys())
        for r in results:
            for k in r:
                if k not in fieldnames:
                    fieldnames.append(k)
        with open(output_path, "w", newline="") as f:
            writer = csv.DictWriter(f, fieldnames=fieldnames, extrasaction="ignore")
            writer.writeheader()
            writer.writerows(results)

    priced = sum(1 for r in results if r.get("price") is not None)
    logger.info("Results written to %s  |  Priced: %d  |  Failed: %d",
                args.output, priced, len(results) - priced)


if __name__ == "__main__":
    main()
