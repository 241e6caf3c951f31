#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
Photometric utility functions for isedgrid.

Fluxes are handled in maggies (linear units where an AB magnitude of 0
corresponds to 1 maggie) with inverse variances rather than errors, so
that missing bands can be flagged with a zero inverse variance.
"""

import numpy as np

__all__ = ["maggies2mag", "mag2maggies", "err2ivar", "ivar2err"]


def err2ivar(err):
    """Convert errors to inverse variances, with zero for unusable errors."""
    err = np.asarray(err, dtype=float)
    ivar = np.zeros_like(err)
    good = np.isfinite(err) & (err > 0)
    ivar[good] = 1.0 / err[good] ** 2
    return ivar


def ivar2err(ivar):
    """Convert inverse variances to errors, with zero where `ivar <= 0`."""
    ivar = np.asarray(ivar, dtype=float)
    err = np.zeros_like(ivar)
    good = np.isfinite(ivar) & (ivar > 0)
    err[good] = 1.0 / np.sqrt(ivar[good])
    return err


def maggies2mag(maggies, ivarmaggies=None):
    """
    Convert maggies to AB magnitudes.

    Parameters
    ----------
    maggies : `~numpy.ndarray` with shape (Nobs, Nfilt)
        Flux densities in maggies.

    ivarmaggies : `~numpy.ndarray` with shape (Nobs, Nfilt), optional
        Inverse variances of `maggies`.

    Returns
    -------
    mag : `~numpy.ndarray` with shape (Nobs, Nfilt)
        AB magnitudes; non-positive fluxes give `NaN`.

    mag_err : `~numpy.ndarray` with shape (Nobs, Nfilt)
        Magnitude errors, only returned when `ivarmaggies` is given.
    """
    maggies = np.asarray(maggies, dtype=float)
    mag = np.full_like(maggies, np.nan)
    pos = maggies > 0
    mag[pos] = -2.5 * np.log10(maggies[pos])
    if ivarmaggies is None:
        return mag

    err = ivar2err(ivarmaggies)
    mag_err = np.full_like(maggies, np.nan)
    mag_err[pos] = 2.5 / np.log(10.0) * err[pos] / maggies[pos]
    return mag, mag_err


def mag2maggies(mag, mag_err=None):
    """
    Convert AB magnitudes to maggies.

    Parameters
    ----------
    mag : `~numpy.ndarray` with shape (Nobs, Nfilt)
        AB magnitudes. Non-finite entries become zero flux.

    mag_err : `~numpy.ndarray` with shape (Nobs, Nfilt), optional
        Magnitude errors. Non-finite or non-positive entries become zero
        inverse variance.

    Returns
    -------
    maggies : `~numpy.ndarray` with shape (Nobs, Nfilt)
        Flux densities in maggies.

    ivarmaggies : `~numpy.ndarray` with shape (Nobs, Nfilt)
        Inverse variances, only returned when `mag_err` is given.
    """
    mag = np.asarray(mag, dtype=float)
    good = np.isfinite(mag)
    maggies = np.zeros_like(mag)
    maggies[good] = 10.0 ** (-0.4 * mag[good])
    if mag_err is None:
        return maggies

    mag_err = np.asarray(mag_err, dtype=float)
    err = np.where(good, 0.4 * np.log(10.0) * mag_err * maggies, np.nan)
    return maggies, err2ivar(err)
