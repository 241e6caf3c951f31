#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
Chi-square evaluation of galaxy photometry against model grids.

For every (galaxy, model) pair the model fluxes are interpolated to the
galaxy redshift and the linear scale factor minimizing chi-square is
solved for analytically. The evaluation is vectorized over the full
galaxy-batch x model-batch cross product.

Functions
---------
interpolate_fluxes : Interpolate model flux tables to galaxy redshifts
compute_chi2 : Best-fit scale factors, their errors and chi-square values
chunk_chi2 : Evaluate one galaxy chunk against one model chunk

Notes
-----
With model fluxes :math:`m_j`, observed fluxes :math:`f_j` and inverse
variances :math:`w_j`, the maximum likelihood scale factor is

.. math::
    s = \\frac{\\sum_j w_j m_j f_j}{\\sum_j w_j m_j^2}

with uncertainty :math:`(\\sum_j w_j m_j^2)^{-1/2}`. Filters with
:math:`w_j = 0` drop out of every sum.

Pairs that cannot be fit are flagged with `SENTINEL_CHI2` rather than
removed, so that chi-square arrays keep a fixed shape.
"""

import numpy as np
from numba import jit

__all__ = ["SENTINEL_CHI2", "interpolate_fluxes", "compute_chi2", "chunk_chi2"]

SENTINEL_CHI2 = 1e6


@jit(nopython=True, cache=True)
def _interpolate_fluxes(flux, zindex):
    """
    Linearly interpolate model fluxes on the redshift grid.

    Parameters
    ----------
    flux : `~numpy.ndarray` of shape `(Nmodel, Nz, Nfilt)`
        Model fluxes tabulated on the redshift grid.

    zindex : `~numpy.ndarray` of shape `(Ngal,)`
        Fractional redshift-grid index of each galaxy.

    Returns
    -------
    modelflux : `~numpy.ndarray` of shape `(Ngal, Nmodel, Nfilt)`
        Model fluxes at each galaxy redshift.
    """
    Nmodel, Nz, Nfilt = flux.shape
    Ngal = zindex.shape[0]
    modelflux = np.empty((Ngal, Nmodel, Nfilt))

    for g in range(Ngal):
        i0 = int(zindex[g])
        if i0 > Nz - 1:
            i0 = Nz - 1
        i1 = i0 + 1
        if i1 > Nz - 1:
            i1 = Nz - 1
        frac = zindex[g] - i0
        if i1 == i0:
            frac = 0.0
        for i in range(Nmodel):
            for j in range(Nfilt):
                modelflux[g, i, j] = (1.0 - frac) * flux[i, i0, j] + frac * flux[
                    i, i1, j
                ]

    return modelflux


def interpolate_fluxes(flux, zindex):
    """
    Interpolate every model's flux table to every galaxy redshift.

    Parameters
    ----------
    flux : `~numpy.ndarray` of shape `(Nmodel, Nz, Nfilt)`
        Model fluxes (maggies per unit scale) tabulated on the redshift grid.

    zindex : `~numpy.ndarray` of shape `(Ngal,)`
        Fractional redshift-grid index of each galaxy, as returned by
        `isedgrid.utils.cosmology.redshift_index`.

    Returns
    -------
    modelflux : `~numpy.ndarray` of shape `(Ngal, Nmodel, Nfilt)`
        Model fluxes at each galaxy redshift.
    """
    flux = np.ascontiguousarray(flux, dtype=np.float64)
    zindex = np.ascontiguousarray(np.atleast_1d(zindex), dtype=np.float64)
    if flux.ndim != 3:
        raise ValueError(f"flux must have shape (Nmodel, Nz, Nfilt), got {flux.shape}")
    if np.any(zindex < 0) or np.any(zindex > flux.shape[1] - 1):
        raise ValueError("zindex falls outside the tabulated redshift grid")
    return _interpolate_fluxes(flux, zindex)


def compute_chi2(
    maggies,
    ivarmaggies,
    modelflux,
    model_age=None,
    maxage=None,
    nminphot=1,
    allow_older=False,
    allow_negative_scale=False,
):
    """
    Compute best-fit scale factors and chi-square for every (galaxy, model).

    Parameters
    ----------
    maggies : `~numpy.ndarray` of shape `(Ngal, Nfilt)`
        Observed fluxes.

    ivarmaggies : `~numpy.ndarray` of shape `(Ngal, Nfilt)`
        Inverse variances of `maggies`. Filters with `ivar <= 0` (or with
        non-finite flux) are excluded from the fit.

    modelflux : `~numpy.ndarray` of shape `(Ngal, Nmodel, Nfilt)`
        Model fluxes at each galaxy redshift.

    model_age : `~numpy.ndarray` of shape `(Nmodel,)`, optional
        Model ages in Gyr. Required together with `maxage` for the age cut.

    maxage : `~numpy.ndarray` of shape `(Ngal,)`, optional
        Maximum allowed model age for each galaxy in Gyr.

    nminphot : int, optional
        Minimum number of valid filters. Galaxies with fewer are flagged
        for every model. Default is `1`.

    allow_older : bool, optional
        If True, the age cut is not applied. Default is False.

    allow_negative_scale : bool, optional
        If False (default), pairs with a non-positive best-fit scale factor
        are flagged.

    Returns
    -------
    scale : `~numpy.ndarray` of shape `(Ngal, Nmodel)`
        Best-fit scale factors (`0.` for flagged pairs).

    scale_err : `~numpy.ndarray` of shape `(Ngal, Nmodel)`
        Scale factor uncertainties (`0.` for flagged pairs).

    chi2 : `~numpy.ndarray` of shape `(Ngal, Nmodel)`
        Chi-square values (`SENTINEL_CHI2` for flagged pairs).
    """
    maggies = np.atleast_2d(np.asarray(maggies, dtype=float))
    ivarmaggies = np.atleast_2d(np.asarray(ivarmaggies, dtype=float))
    modelflux = np.asarray(modelflux, dtype=float)
    Ngal, Nmodel, Nfilt = modelflux.shape
    if maggies.shape != (Ngal, Nfilt) or ivarmaggies.shape != (Ngal, Nfilt):
        raise ValueError(
            f"maggies {maggies.shape} and ivarmaggies {ivarmaggies.shape} "
            f"must both have shape {(Ngal, Nfilt)}"
        )

    # Zero out the weight (and value) of unusable filters.
    valid = np.isfinite(maggies) & np.isfinite(ivarmaggies) & (ivarmaggies > 0)
    ivar = np.where(valid, ivarmaggies, 0.0)
    flux = np.where(valid, maggies, 0.0)
    nvalid = np.sum(valid, axis=1)

    num = np.einsum("gmf,gf->gm", modelflux, flux * ivar)
    den = np.einsum("gmf,gf->gm", modelflux * modelflux, ivar)

    with np.errstate(divide="ignore", invalid="ignore"):
        scale = num / den
        scale_err = 1.0 / np.sqrt(den)
        resid = flux[:, None, :] - scale[:, :, None] * modelflux
        chi2 = np.einsum("gmf,gf->gm", resid * resid, ivar)

    bad = ~(den > 0) | ~np.isfinite(scale) | ~np.isfinite(chi2)
    bad |= (nvalid < nminphot)[:, None]
    if not allow_negative_scale:
        bad |= scale <= 0
    if not allow_older and model_age is not None and maxage is not None:
        bad |= np.asarray(model_age)[None, :] > np.atleast_1d(maxage)[:, None]

    scale[bad] = 0.0
    scale_err[bad] = 0.0
    chi2[bad] = SENTINEL_CHI2

    return scale, scale_err, chi2


def chunk_chi2(maggies, ivarmaggies, zindex, maxage, flux, params, config):
    """
    Evaluate one galaxy chunk against one model chunk.

    Parameters
    ----------
    maggies, ivarmaggies : `~numpy.ndarray` of shape `(Ngal, Nfilt)`
        Observed photometry of the galaxy chunk.

    zindex : `~numpy.ndarray` of shape `(Ngal,)`
        Fractional redshift-grid indices.

    maxage : `~numpy.ndarray` of shape `(Ngal,)`
        Maximum allowed model ages in Gyr.

    flux : `~numpy.ndarray` of shape `(Nmodel, Nz, Nfilt)`
        Model flux tables of the model chunk.

    params : structured `~numpy.ndarray` of shape `(Nmodel,)`
        Model parameters; only `age` is used here.

    config : `~isedgrid.config.FitConfig`
        Fit configuration.

    Returns
    -------
    scale, scale_err, chi2 : `~numpy.ndarray` of shape `(Ngal, Nmodel)`
        See `compute_chi2`.

    modelflux : `~numpy.ndarray` of shape `(Ngal, Nmodel, Nfilt)`
        Interpolated model fluxes, needed for the best-fit photometry.
    """
    modelflux = interpolate_fluxes(flux, zindex)
    scale, scale_err, chi2 = compute_chi2(
        maggies,
        ivarmaggies,
        modelflux,
        model_age=params["age"],
        maxage=maxage,
        nminphot=config.nminphot,
        allow_older=config.allow_older,
        allow_negative_scale=config.allow_negative_scale,
    )
    return scale, scale_err, chi2, modelflux
