#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
Sampling utility functions for isedgrid.

This module contains the weighted statistics used to summarise the
chi-square-weighted model ensemble and to draw posterior samples from it.
"""

import numpy as np

__all__ = ["quantile", "weighted_summary", "draw_indices"]


def quantile(x, q, weights=None):
    """
    Compute (weighted) quantiles from an input set of samples.

    For weighted samples the CDF is evaluated at the midpoint of each
    sample's weight and linearly interpolated. Samples with zero weight
    are ignored.

    Parameters
    ----------
    x : `~numpy.ndarray` with shape `(nsamps,)`
        Input samples.

    q : `~numpy.ndarray` with shape `(nquantiles,)` or float
       The list of quantiles to compute from `[0., 1.]`.

    weights : `~numpy.ndarray` with shape `(nsamps,)`, optional
        The associated weight from each sample. If None, all samples
        are weighted equally.

    Returns
    -------
    quantiles : `~numpy.ndarray` with shape `(nquantiles,)`
        The (weighted) sample quantiles computed at `q`.

    Raises
    ------
    ValueError
        If quantiles are outside [0, 1], if dimensions don't match or if
        no sample carries positive weight.

    Examples
    --------
    >>> x = np.array([1, 2, 3, 4, 5])
    >>> quantile(x, [0.25, 0.5, 0.75])
    array([2., 3., 4.])
    """
    x = np.atleast_1d(x)
    q = np.atleast_1d(q)

    if np.any(q < 0.0) or np.any(q > 1.0):
        raise ValueError("Quantiles must be between 0. and 1.")

    if weights is None:
        return np.array(np.percentile(x, list(100.0 * q)))

    weights = np.atleast_1d(weights)
    if len(x) != len(weights):
        raise ValueError("Dimension mismatch: len(weights) != len(x).")
    keep = weights > 0
    if not np.any(keep):
        raise ValueError("At least one sample must have positive weight.")
    x, weights = x[keep], weights[keep]

    idx = np.argsort(x, kind="stable")
    sw = weights[idx]
    cdf = (np.cumsum(sw, dtype=float) - 0.5 * sw) / np.sum(sw)
    return np.atleast_1d(np.interp(q, cdf, x[idx]))


def weighted_summary(x, weights):
    """
    Weighted median, mean and symmetric error of a set of samples.

    The error is half the width of the 16th-84th percentile interval,
    which equals the standard deviation for a Gaussian distribution.

    Parameters
    ----------
    x : `~numpy.ndarray` of shape `(nsamps,)`
        Sample values. Non-finite values are dropped together with their
        weights.

    weights : `~numpy.ndarray` of shape `(nsamps,)`
        Non-negative sample weights.

    Returns
    -------
    median, mean, err : float
        Summary statistics, or `-1.` for each when no finite sample
        carries positive weight.
    """
    x = np.asarray(x, dtype=float)
    weights = np.asarray(weights, dtype=float)
    good = np.isfinite(x) & (weights > 0)
    if not np.any(good):
        return -1.0, -1.0, -1.0
    x, weights = x[good], weights[good]

    q16, q50, q84 = quantile(x, [0.16, 0.5, 0.84], weights=weights)
    mean = np.sum(weights * x) / np.sum(weights)
    return q50, mean, 0.5 * (q84 - q16)


def draw_indices(weights, ndraws, rng=None):
    """
    Draw indices with replacement in proportion to `weights`.

    Parameters
    ----------
    weights : `~numpy.ndarray` of shape `(nsamps,)`
        Non-negative weights; they need not be normalized.

    ndraws : int
        Number of draws.

    rng : `~numpy.random.Generator`, optional
        Random number generator. Default creates a new generator.

    Returns
    -------
    idx : `~numpy.ndarray` of shape `(ndraws,)`
        Drawn indices into `weights`.
    """
    if rng is None:
        rng = np.random.default_rng()

    weights = np.asarray(weights, dtype=float)
    total = np.sum(weights)
    if not total > 0:
        raise ValueError("Weights must sum to a positive value.")
    return rng.choice(len(weights), size=ndraws, replace=True, p=weights / total)
