#!/usr/bin/env python3
"""
End-to-end runner for the mineral–element network study.

Example:
    python run_element_network_study.py \
        --catalog data/raw/element_catalog.csv \
        --occurrences data/raw/mineral_occurrences.csv \
        --max-age 4.5 --min-age 0
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

from element_network import (
    ElementNetworkError,
    FitFailure,
    TableOccurrenceGraph,
    aggregate_network_table,
    filter_catalog,
    fit_candidate_forms,
    fit_locality_relationships,
    load_element_catalog,
    load_occurrence_table,
    load_study_config,
    serialize_fit_results,
)
from element_network.analysis import residual_table, successful_fits
from element_network.data import load_aggregate_table
from element_network.plots import plot_candidate_qq_grid, plot_relationship, plot_residual_qq

LOG = logging.getLogger("element_network_study")


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Mineral–element network statistics and fits")
    parser.add_argument(
        "--catalog",
        type=Path,
        default=Path("data/raw/element_catalog.csv"),
        help="Path to curated element catalog CSV (symbol + metadata).",
    )
    parser.add_argument(
        "--occurrences",
        type=Path,
        default=Path("data/raw/mineral_occurrences.csv"),
        help="Path to locality-level mineral occurrence CSV.",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Optional JSON file with study parameters; CLI flags override it.",
    )
    parser.add_argument(
        "--output-dir",
        type=Path,
        default=Path("data/processed"),
        help="Directory for processed outputs.",
    )
    parser.add_argument("--max-age", type=float, default=None, help="Oldest bound of the age window (Ga).")
    parser.add_argument("--min-age", type=float, default=None, help="Youngest bound of the age window (Ga).")
    parser.add_argument(
        "--cutoff-age",
        type=float,
        default=None,
        help="Drop elements not naturally occurring since this age (Ga).",
    )
    parser.add_argument(
        "--zero-policy",
        choices=["exclude", "raise"],
        default=None,
        help="How log-transformed fits treat zero counts.",
    )
    parser.add_argument(
        "--max-workers",
        type=int,
        default=None,
        help="Threads used for per-element extraction (1 = sequential).",
    )
    parser.add_argument(
        "--reuse-table",
        type=Path,
        default=None,
        help="Previously saved element network table; skips extraction.",
    )
    parser.add_argument("--no-plots", action="store_true", help="Skip figure generation.")
    return parser.parse_args(argv)


def main(argv=None) -> int:
    args = parse_args(argv)
    logging.basicConfig(level=logging.INFO, format="%(levelname)s: %(message)s")

    config = load_study_config(args.config).with_overrides(
        max_age=args.max_age,
        min_age=args.min_age,
        cutoff_age=args.cutoff_age,
        zero_policy=args.zero_policy,
        max_workers=args.max_workers,
    )
    LOG.info("Study parameters: %s", json.dumps(config.as_dict()))
    args.output_dir.mkdir(parents=True, exist_ok=True)
    figures_dir = args.output_dir / "figures"

    try:
        LOG.info("Loading element catalog from %s", args.catalog)
        catalog = filter_catalog(
            load_element_catalog(args.catalog),
            cutoff_age=config.cutoff_age,
            exclude=config.exclude_elements,
            logger=LOG,
        )
        if args.reuse_table is not None:
            LOG.info("Reusing element network table from %s", args.reuse_table)
            table = load_aggregate_table(args.reuse_table, symbols=catalog["symbol"])
        else:
            LOG.info("Loading occurrences from %s", args.occurrences)
            graph = TableOccurrenceGraph(load_occurrence_table(args.occurrences))
            agg_result = aggregate_network_table(
                catalog, graph, config.age_range, max_workers=config.max_workers, logger=LOG
            )
            for warning in agg_result.warnings:
                LOG.warning(warning)
            table = agg_result.table
    except ElementNetworkError as exc:
        LOG.error("Aggregation aborted: %s", exc)
        return 1

    agg_path = args.output_dir / "element_network_table.csv"
    table.to_csv(agg_path, index=False)
    LOG.info("Saved element network table to %s", agg_path)

    candidates = fit_candidate_forms(
        table, forms=config.candidate_forms, zero_policy=config.zero_policy, logger=LOG
    )
    localities = fit_locality_relationships(table, logger=LOG)

    fits_json = {
        "age_range_ga": config.age_range.as_list(),
        "n_elements_in_catalog": int(len(table)),
        "minerals_vs_elements": serialize_fit_results(candidates),
        "localities": serialize_fit_results(localities),
    }
    fits_path = args.output_dir / "element_network_fits.json"
    with fits_path.open("w") as f:
        json.dump(fits_json, f, indent=2)
    LOG.info("Saved fit results to %s", fits_path)

    residuals_path = args.output_dir / "element_network_residuals.csv"
    residual_table({**candidates, **localities}).to_csv(residuals_path, index=False)
    LOG.info("Saved residuals to %s", residuals_path)

    if not args.no_plots:
        plot_candidate_qq_grid(candidates, figures_dir / "minerals_vs_elements_qq.png")
        for result in successful_fits(candidates).values():
            name = f"minerals_vs_elements_{result.response_transform}_{result.predictor_transform}.png"
            plot_relationship(result, figures_dir / name, annotate=False)
        for result in successful_fits(localities).values():
            plot_relationship(result, figures_dir / f"localities_{result.predictor}.png", log_axes=True)
            plot_residual_qq(result, figures_dir / f"localities_{result.predictor}_qq.png")
        LOG.info("Saved figures to %s", figures_dir)

    for label, outcome in {**candidates, **localities}.items():
        if isinstance(outcome, FitFailure):
            LOG.warning("No equation for %s: %s", label, outcome.reason)
    LOG.info("Element network study complete.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
