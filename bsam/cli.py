#!/usr/bin/env python3
"""
Command-line fitting of state-space models to a CSV of observations.

Writes the fitted locations to ``{output_dir}/csv/summary.csv``, the run
provenance to ``{output_dir}/fit_run.json`` and, on request, maps and fit
plots.

Usage:
    python3 -m bsam.cli --data obs.csv --model DCRWS --tstep 1
    python3 -m bsam.cli --data obs.csv --model hDCRW --maps --output-dir ./outputs
"""

import argparse
import json
import os
import sys

import pandas as pd

from bsam import config
from bsam.aggregate import get_summary
from bsam.errors import BsamError
from bsam.fit_runner import fit_ssm
from bsam.logging_config import get_pipeline_logger, setup_logging
from bsam.sampler.jags import JagsSampler

log = get_pipeline_logger(__name__)


def save_fit_run(bundle, output_dir, run_args=None):
    """Save FitBundle provenance as JSON."""
    os.makedirs(output_dir, exist_ok=True)
    path = os.path.join(output_dir, "fit_run.json")
    record = bundle.to_dict()
    if run_args is not None:
        record["args"] = run_args
    with open(path, "w") as f:
        json.dump(record, f, indent=2, default=str)
    log.info("Fit provenance saved: %s", path)
    return path


def parse_args(argv=None):
    parser = argparse.ArgumentParser(
        description="Fit Bayesian state-space models to animal tracking data"
    )
    parser.add_argument(
        "--data",
        required=True,
        help="CSV with columns id, date, lc, lon, lat [, lonerr, laterr]",
    )
    parser.add_argument(
        "--model",
        default=config.DEFAULT_MODEL,
        help="DCRW, DCRWS, hDCRW or hDCRWS",
    )
    parser.add_argument("--tstep", type=float, default=config.DEFAULT_TSTEP,
                        help="Time step as a fraction of a day")
    parser.add_argument("--adapt", type=int, default=config.DEFAULT_ADAPT,
                        help="Adaptation and burn-in samples")
    parser.add_argument("--samples", type=int, default=config.DEFAULT_SAMPLES,
                        help="Posterior samples per chain")
    parser.add_argument("--thin", type=int, default=config.DEFAULT_THIN,
                        help="Thinning interval")
    parser.add_argument("--chains", type=int, default=config.DEFAULT_CHAINS,
                        help="Number of MCMC chains")
    parser.add_argument("--span", type=float, default=config.DEFAULT_SPAN,
                        help="LOWESS span for initial locations")
    parser.add_argument("--seed", type=int, default=config.DEFAULT_SEED)
    parser.add_argument(
        "--error-model",
        choices=["auto", "lookup", "explicit"],
        default="auto",
        dest="error_model",
        help="Source of location errors (default: explicit where given)",
    )
    parser.add_argument(
        "--max-workers",
        type=int,
        default=config.DEFAULT_MAX_WORKERS,
        dest="max_workers",
        help="Individuals fitted concurrently (DCRW/DCRWS only)",
    )
    parser.add_argument("--timeout", type=float, default=None,
                        help="Per-run sampler timeout in seconds")
    parser.add_argument("--jags", default=None,
                        help="JAGS executable (default: $BSAM_JAGS or 'jags')")
    parser.add_argument("--output-dir", default=config.DEFAULT_OUTPUT_DIR,
                        dest="output_dir", help="Output directory")
    parser.add_argument("--maps", action="store_true", default=False,
                        help="Write track maps")
    parser.add_argument("--onemap", action=argparse.BooleanOptionalAction, default=True,
                        help="All tracks on one map (default) or one map each")
    parser.add_argument("--land", default=None,
                        help="Land polygon file for maps (default: $BSAM_LAND)")
    parser.add_argument("--plots", action="store_true", default=False,
                        help="Write fitted lon/lat time-series plots")
    return parser.parse_args(argv)


def main(argv=None, sampler=None):
    """Run a fit from the command line; returns the process exit status."""
    args = parse_args(argv)
    setup_logging(run_dir=args.output_dir)
    dirs = config.get_output_dirs(args.output_dir)

    data = pd.read_csv(args.data)
    if sampler is None:
        sampler = JagsSampler(executable=args.jags)

    try:
        bundle = fit_ssm(
            data,
            model=args.model,
            tstep=args.tstep,
            adapt=args.adapt,
            samples=args.samples,
            thin=args.thin,
            span=args.span,
            chains=args.chains,
            sampler=sampler,
            max_workers=args.max_workers,
            timeout=args.timeout,
            error_model=args.error_model,
            seed=args.seed,
        )
    except (BsamError, ValueError) as exc:
        log.error("Fit failed: %s", exc)
        return 1

    save_fit_run(bundle, args.output_dir, run_args=vars(args))
    if not bundle.results:
        log.error("No individual was fitted successfully")
        return 1

    os.makedirs(dirs["csv"], exist_ok=True)
    summary_path = os.path.join(dirs["csv"], "summary.csv")
    get_summary(bundle).to_csv(summary_path, index=False)
    log.info("Summary saved: %s", summary_path)

    if args.maps:
        from bsam.outputs.maps import map_ssm
        map_ssm(bundle, onemap=args.onemap, land=args.land, output_dir=dirs["maps"])
    if args.plots:
        from bsam.outputs.plots import plot_fit
        plot_fit(bundle, output_dir=dirs["plots"])

    if bundle.failures:
        log.warning("Failed individuals: %s", bundle.failed_ids)
    else:
        log.info("All individuals fitted.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
