#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
Structured record layouts shared by the model grid, the fitter and the
output files.

All records are numpy structured arrays with fixed-size fields. Burst
parameters are stored in fixed-capacity sub-arrays of length `nmaxburst`,
unused slots being zero.
"""

import numpy as np

__all__ = [
    "POSTERIOR_QUANTITIES",
    "SCALED_QUANTITIES",
    "BESTFIT_PARAMS",
    "BURST_PARAMS",
    "model_params_dtype",
    "result_dtype",
    "draws_dtype",
    "init_results",
    "init_draws",
]

# Quantities summarised from the chi-square-weighted model ensemble.
POSTERIOR_QUANTITIES = (
    "mstar",
    "age",
    "sfr",
    "sfr100",
    "b100",
    "tau",
    "zmetal",
    "av",
    "mu",
    "ewoii",
    "ewoiiihb",
    "ewniiha",
)

# Per unit scale in the grid; reported as log10(scale * value).
SCALED_QUANTITIES = ("mstar", "sfr", "sfr100")

# Model parameters copied into the best-fit record.
BESTFIT_PARAMS = (
    "nburst",
    "delayed",
    "tau",
    "zmetal",
    "av",
    "mu",
    "age",
    "mstar",
    "sfr",
    "sfr100",
    "b100",
    "ewoii",
    "ewoiiihb",
    "ewniiha",
)

BURST_PARAMS = ("tburst", "dtburst", "fburst")


def _burst_shape(nmaxburst):
    # h5py cannot store zero-length sub-arrays.
    return (max(int(nmaxburst), 1),)


def model_params_dtype(nmaxburst):
    """
    Layout of the model parameter table.

    `mstar`, `sfr` and `sfr100` are given per unit scale factor, `age`,
    `tau` and the burst times in Gyr.
    """
    nb = _burst_shape(nmaxburst)
    return np.dtype(
        [
            ("chunkindx", "i4"),
            ("modelindx", "i8"),
            ("age", "f8"),
            ("tau", "f8"),
            ("zmetal", "f8"),
            ("av", "f8"),
            ("mu", "f8"),
            ("delayed", "i2"),
            ("nburst", "i4"),
            ("tburst", "f8", nb),
            ("dtburst", "f8", nb),
            ("fburst", "f8", nb),
            ("mstar", "f8"),
            ("sfr", "f8"),
            ("sfr100", "f8"),
            ("b100", "f8"),
            ("ewoii", "f8"),
            ("ewoiiihb", "f8"),
            ("ewniiha", "f8"),
        ]
    )


def result_dtype(nfilt, nmaxburst):
    """Layout of the per-galaxy result record."""
    nb = _burst_shape(nmaxburst)
    fields = [
        ("isedfit_id", "i8"),
        ("z", "f8"),
        ("maggies", "f8", (nfilt,)),
        ("ivarmaggies", "f8", (nfilt,)),
        ("bestmaggies", "f8", (nfilt,)),
        ("chunkindx", "i4"),
        ("modelindx", "i8"),
        ("chi2", "f8"),
        ("scale", "f8"),
        ("scale_err", "f8"),
        ("nburst", "i4"),
        ("delayed", "i2"),
        ("tau", "f8"),
        ("zmetal", "f8"),
        ("av", "f8"),
        ("mu", "f8"),
        ("age", "f8"),
        ("mstar", "f8"),
        ("sfr", "f8"),
        ("sfr100", "f8"),
        ("b100", "f8"),
        ("ewoii", "f8"),
        ("ewoiiihb", "f8"),
        ("ewniiha", "f8"),
        ("tburst", "f8", nb),
        ("dtburst", "f8", nb),
        ("fburst", "f8", nb),
    ]
    for q in POSTERIOR_QUANTITIES:
        fields += [(f"{q}_50", "f8"), (f"{q}_avg", "f8"), (f"{q}_err", "f8")]
    return np.dtype(fields)


def draws_dtype():
    """Layout of a single posterior draw."""
    return np.dtype(
        [
            ("chunkindx", "i4"),
            ("modelindx", "i8"),
            ("chi2", "f8"),
            ("scale", "f8"),
            ("scale_err", "f8"),
        ]
    )


def init_results(ngal, nfilt, nmaxburst, sentinel_chi2=1e6):
    """
    Allocate result records filled with sentinel values.

    Every field is `-1` except `chi2`, which is `sentinel_chi2`, and the
    input photometry, which is zero.
    """
    results = np.zeros(ngal, dtype=result_dtype(nfilt, nmaxburst))
    for name in results.dtype.names:
        if name not in ("maggies", "ivarmaggies", "z"):
            results[name] = -1
    results["chi2"] = sentinel_chi2
    return results


def init_draws(ngal, ndraw, sentinel_chi2=1e6):
    """Allocate posterior draws flagged as invalid."""
    draws = np.zeros((ngal, ndraw), dtype=draws_dtype())
    draws["chunkindx"] = -1
    draws["modelindx"] = -1
    draws["chi2"] = sentinel_chi2
    draws["scale"] = -1
    draws["scale_err"] = -1
    return draws
