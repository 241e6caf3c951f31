#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
Posterior construction from the chi-square-weighted model ensemble.

Given the chi-square grid of one galaxy against every model, this module
selects the best-fitting model, summarises the physical quantities of the
ensemble weighted by their relative likelihood, and draws random models
from it so the posterior can be rebuilt without keeping the full grid.

Functions
---------
chi2_weights : Normalized likelihood weights of the models
derived_quantities : Per-model values of the summarised quantities
build_posterior : Best-fit record and draws for one galaxy
build_chunk_posteriors : `build_posterior` over a chunk of galaxies

Notes
-----
The weight of model :math:`i` is

.. math::
    w_i \\propto \\exp[-(\\chi^2_i - \\chi^2_{\\rm min}) / 2]

where the minimum is subtracted before exponentiating for numerical
stability. Flagged models (no valid fit) get zero weight.
"""

import numpy as np
from scipy.special import logsumexp

from ..utils.sampling import draw_indices, weighted_summary
from .chi2 import SENTINEL_CHI2
from .records import (
    BURST_PARAMS,
    BESTFIT_PARAMS,
    POSTERIOR_QUANTITIES,
    SCALED_QUANTITIES,
    draws_dtype,
    init_draws,
    init_results,
)

__all__ = [
    "chi2_weights",
    "derived_quantities",
    "build_posterior",
    "build_chunk_posteriors",
]


def chi2_weights(chi2, valid=None):
    """
    Normalized likelihood weights of a set of models.

    Parameters
    ----------
    chi2 : `~numpy.ndarray` of shape `(Nmodel,)`
        Chi-square values.

    valid : `~numpy.ndarray` of shape `(Nmodel,)`, optional
        Models that were actually fit. Defaults to `chi2 < SENTINEL_CHI2`.

    Returns
    -------
    weights : `~numpy.ndarray` of shape `(Nmodel,)` or None
        Weights summing to one, or None if no model is valid.
    """
    chi2 = np.asarray(chi2, dtype=float)
    if valid is None:
        valid = chi2 < SENTINEL_CHI2
    valid = valid & np.isfinite(chi2)
    if not np.any(valid):
        return None

    lnw = -0.5 * (chi2[valid] - np.min(chi2[valid]))
    weights = np.zeros(len(chi2))
    weights[valid] = np.exp(lnw - logsumexp(lnw))
    return weights


def derived_quantities(params, scale):
    """
    Values of each posterior quantity for every model.

    Quantities given per unit scale in the grid (stellar mass and star
    formation rates) are multiplied by the model's own scale factor and
    returned as log10; non-positive products give `NaN`.

    Parameters
    ----------
    params : structured `~numpy.ndarray` of shape `(Nmodel,)`
        Model parameters.

    scale : `~numpy.ndarray` of shape `(Nmodel,)`
        Best-fit scale factor of each model.

    Returns
    -------
    values : dict
        Mapping from quantity name to an array of shape `(Nmodel,)`.
    """
    values = {}
    for q in POSTERIOR_QUANTITIES:
        val = np.asarray(params[q], dtype=float)
        if q in SCALED_QUANTITIES:
            prod = scale * val
            logval = np.full(len(prod), np.nan)
            pos = prod > 0
            logval[pos] = np.log10(prod[pos])
            val = logval
        values[q] = val
    return values


def build_posterior(chi2, scale, scale_err, params, bestflux, ndraw, rng=None):
    """
    Best-fit record, posterior summary and random draws for one galaxy.

    Parameters
    ----------
    chi2 : `~numpy.ndarray` of shape `(Nmodel,)`
        Chi-square of the galaxy against every model.

    scale, scale_err : `~numpy.ndarray` of shape `(Nmodel,)`
        Best-fit scale factors and their uncertainties. A zero `scale_err`
        marks a model that could not be fit.

    params : structured `~numpy.ndarray` of shape `(Nmodel,)`
        Parameters of every model, in the same order as `chi2`.

    bestflux : `~numpy.ndarray` of shape `(Nfilt,)`
        Unscaled fluxes of the best-fitting model at the galaxy redshift.

    ndraw : int
        Number of posterior draws.

    rng : `~numpy.random.Generator`, optional
        Random number generator for the draws.

    Returns
    -------
    record : structured `~numpy.ndarray` of shape `(1,)`
        Result record. Photometry and identifiers are left for the caller.
        Galaxies without any valid model keep the sentinel values.

    draws : structured `~numpy.ndarray` of shape `(ndraw,)`
        Posterior draws.
    """
    nfilt = len(bestflux)
    nmaxburst = params.dtype["tburst"].shape[0]
    record = init_results(1, nfilt, nmaxburst, sentinel_chi2=SENTINEL_CHI2)
    draws = init_draws(1, ndraw, sentinel_chi2=SENTINEL_CHI2)[0]

    valid = scale_err > 0
    weights = chi2_weights(chi2, valid=valid)
    if weights is None:
        return record, draws

    ibest = np.flatnonzero(valid)[np.argmin(chi2[valid])]
    values = derived_quantities(params, scale)

    # Best-fit model.
    record["chunkindx"] = params["chunkindx"][ibest]
    record["modelindx"] = params["modelindx"][ibest]
    record["chi2"] = chi2[ibest]
    record["scale"] = scale[ibest]
    record["scale_err"] = scale_err[ibest]
    record["bestmaggies"] = scale[ibest] * np.asarray(bestflux)
    for name in BESTFIT_PARAMS:
        if name in SCALED_QUANTITIES:
            val = values[name][ibest]
            record[name] = val if np.isfinite(val) else -1.0
        else:
            record[name] = params[name][ibest]
    for name in BURST_PARAMS:
        record[name] = params[name][ibest]

    # Marginalized posterior.
    for q in POSTERIOR_QUANTITIES:
        q50, qavg, qerr = weighted_summary(values[q], weights)
        record[f"{q}_50"] = q50
        record[f"{q}_avg"] = qavg
        record[f"{q}_err"] = qerr

    # Random draws from the ensemble.
    idx = draw_indices(weights, ndraw, rng=rng)
    draws = np.zeros(ndraw, dtype=draws_dtype())
    draws["chunkindx"] = params["chunkindx"][idx]
    draws["modelindx"] = params["modelindx"][idx]
    draws["chi2"] = chi2[idx]
    draws["scale"] = scale[idx]
    draws["scale_err"] = scale_err[idx]

    return record, draws


def build_chunk_posteriors(chi2, scale, scale_err, params, bestflux, ndraw, rngs):
    """
    Apply `build_posterior` to every galaxy of a chunk.

    Parameters
    ----------
    chi2, scale, scale_err : `~numpy.ndarray` of shape `(Ngal, Nmodel)`
        Accumulated chi-square grid of the chunk.

    params : structured `~numpy.ndarray` of shape `(Nmodel,)`
        Parameters of every model.

    bestflux : `~numpy.ndarray` of shape `(Ngal, Nfilt)`
        Unscaled best-fit model fluxes.

    ndraw : int
        Number of posterior draws per galaxy.

    rngs : sequence of `~numpy.random.Generator` with length `Ngal`
        One random number generator per galaxy.

    Returns
    -------
    records : structured `~numpy.ndarray` of shape `(Ngal,)`
    draws : structured `~numpy.ndarray` of shape `(Ngal, ndraw)`
    """
    ngal, nfilt = bestflux.shape
    nmaxburst = params.dtype["tburst"].shape[0]
    records = init_results(ngal, nfilt, nmaxburst, sentinel_chi2=SENTINEL_CHI2)
    draws = init_draws(ngal, ndraw, sentinel_chi2=SENTINEL_CHI2)

    for i in range(ngal):
        rec, drw = build_posterior(
            chi2[i], scale[i], scale_err[i], params, bestflux[i], ndraw, rng=rngs[i]
        )
        records[i] = rec[0]
        draws[i] = drw

    return records, draws
