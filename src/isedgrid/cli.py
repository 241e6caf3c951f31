#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
Command-line interface for isedgrid.

Usage::

    isedgrid-fit models.h5 phot.h5 --outdir out/ --ndraw 500 --seed 1
    isedgrid-fit models.h5 phot.h5 --outdir out/ --first 0 --last 999 --clobber
    isedgrid-fit models.h5 phot.h5 --dry-run -v
"""

import argparse
import sys

import numpy as np

from .analysis import ISEDFit
from .config import FitConfig
from .data import ModelGridReader, load_photometry

__all__ = ["main", "build_parser"]


def build_parser():
    """Argument parser of the `isedgrid-fit` command."""
    parser = argparse.ArgumentParser(
        prog="isedgrid-fit",
        description="Fit galaxy photometry to a pre-computed model grid",
    )
    parser.add_argument("gridfile", help="HDF5 model grid")
    parser.add_argument("photfile", help="HDF5 photometric catalog")
    parser.add_argument(
        "--outdir", default=".", help="Output directory (default: current)"
    )
    parser.add_argument("--prefix", default="isedfit", help="Output file prefix")
    parser.add_argument("--H0", type=float, default=70.0, help="Hubble constant")
    parser.add_argument("--Om0", type=float, default=0.3, help="Matter density")
    parser.add_argument("--Ode0", type=float, default=0.7, help="Dark energy density")
    parser.add_argument(
        "--zmaxform", type=float, default=10.0, help="Maximum formation redshift"
    )
    parser.add_argument(
        "--chunk-size", type=int, default=500, help="Galaxies fit at once"
    )
    parser.add_argument(
        "--nminphot", type=int, default=3, help="Minimum number of valid filters"
    )
    parser.add_argument(
        "--ndraw", type=int, default=2000, help="Posterior draws per galaxy"
    )
    parser.add_argument("--seed", type=int, default=None, help="Random seed")
    parser.add_argument(
        "--max-retries",
        type=int,
        default=3,
        help="Attempts made to read each model chunk",
    )
    parser.add_argument(
        "--allow-older",
        action="store_true",
        help="Allow models older than the universe",
    )
    parser.add_argument(
        "--first", type=int, default=None, help="First galaxy row to fit"
    )
    parser.add_argument(
        "--last", type=int, default=None, help="Last galaxy row to fit (inclusive)"
    )
    parser.add_argument(
        "--save-chi2grid",
        action="store_true",
        help="Also write the full chi-square grid",
    )
    parser.add_argument(
        "--clobber", action="store_true", help="Overwrite existing output"
    )
    parser.add_argument(
        "--dry-run", action="store_true", help="Fit but do not write output"
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Report progress")
    return parser


def main(argv=None):
    """Run a fit from the command line; returns the exit status."""
    args = build_parser().parse_args(argv)

    try:
        reader = ModelGridReader(
            args.gridfile, max_retries=args.max_retries, verbose=args.verbose
        )
        config = FitConfig.from_grid(
            reader,
            H0=args.H0,
            Om0=args.Om0,
            Ode0=args.Ode0,
            zmaxform=args.zmaxform,
            chunk_size=args.chunk_size,
            nminphot=args.nminphot,
            ndraw=args.ndraw,
            seed=args.seed,
            allow_older=args.allow_older,
            prefix=args.prefix,
        )
        maggies, ivarmaggies, z, isedfit_id = load_photometry(
            args.photfile, verbose=args.verbose
        )

        index = None
        if args.first is not None or args.last is not None:
            first = 0 if args.first is None else args.first
            last = len(z) - 1 if args.last is None else args.last
            index = np.arange(first, last + 1)

        fitter = ISEDFit(reader, config, verbose=args.verbose)
        results, _ = fitter.fit(
            maggies,
            ivarmaggies,
            z,
            isedfit_id=isedfit_id,
            index=index,
            outdir=args.outdir,
            clobber=args.clobber,
            dry_run=args.dry_run,
            save_chi2grid=args.save_chi2grid,
        )
    except ValueError as e:
        sys.stderr.write(f"isedgrid-fit: error: {e}\n")
        return 1

    if args.verbose:
        nfit = np.sum(results["modelindx"] >= 0)
        sys.stderr.write(f"Fit {nfit:,} of {len(results):,} galaxies\n")
    return 0


if __name__ == "__main__":
    sys.exit(main())
