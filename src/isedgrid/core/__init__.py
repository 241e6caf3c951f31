#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
isedgrid core module: Chi-square evaluation and posterior construction.

This module contains the numerical core of the fitter: interpolation of
model fluxes to galaxy redshifts, analytic scale-factor fits, and the
chi-square-weighted posterior summaries and draws.
"""

from .chi2 import SENTINEL_CHI2, chunk_chi2, compute_chi2, interpolate_fluxes
from .posterior import (
    build_chunk_posteriors,
    build_posterior,
    chi2_weights,
    derived_quantities,
)
from .records import (
    POSTERIOR_QUANTITIES,
    draws_dtype,
    init_draws,
    init_results,
    model_params_dtype,
    result_dtype,
)

__all__ = [
    "SENTINEL_CHI2",
    "interpolate_fluxes",
    "compute_chi2",
    "chunk_chi2",
    "chi2_weights",
    "derived_quantities",
    "build_posterior",
    "build_chunk_posteriors",
    "POSTERIOR_QUANTITIES",
    "model_params_dtype",
    "result_dtype",
    "draws_dtype",
    "init_results",
    "init_draws",
]
