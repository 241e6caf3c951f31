#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
Cosmology and redshift-grid helpers.

These functions translate galaxy redshifts into the two quantities the
chi-square evaluation needs: the maximum stellar-population age allowed
at that redshift, and the fractional position of the redshift on the
model grid.
"""

import numpy as np
import astropy.units as u

from ..exceptions import GridBoundsError

__all__ = [
    "universe_age",
    "max_model_age",
    "check_redshift_grid",
    "check_redshift_bounds",
    "redshift_index",
]


def universe_age(z, cosmo):
    """
    Age of the universe at redshift `z`.

    Parameters
    ----------
    z : float or `~numpy.ndarray`
        Redshift(s).

    cosmo : `~astropy.cosmology.FLRW`
        Cosmology used to compute the age.

    Returns
    -------
    age : float or `~numpy.ndarray`
        Age in Gyr.
    """
    return cosmo.age(z).to_value(u.Gyr)


def max_model_age(z, cosmo, zmaxform=10.0):
    """
    Oldest stellar population allowed at redshift `z`.

    This is the time elapsed between the maximum formation redshift
    `zmaxform` and `z`, floored at zero for galaxies beyond `zmaxform`.

    Parameters
    ----------
    z : `~numpy.ndarray` of shape `(Ngal,)`
        Galaxy redshifts.

    cosmo : `~astropy.cosmology.FLRW`
        Cosmology used to compute ages.

    zmaxform : float, optional
        Maximum formation redshift. Default is `10.`.

    Returns
    -------
    maxage : `~numpy.ndarray` of shape `(Ngal,)`
        Maximum model age in Gyr.
    """
    z = np.atleast_1d(np.asarray(z, dtype=float))
    maxage = universe_age(z, cosmo) - universe_age(zmaxform, cosmo)
    return np.clip(maxage, 0.0, None)


def check_redshift_grid(zgrid):
    """
    Ensure the model redshift grid supports index-based interpolation.

    Raises
    ------
    GridBoundsError
        If the grid is empty, non-finite or not strictly increasing.
    """
    zgrid = np.atleast_1d(np.asarray(zgrid, dtype=float))
    if zgrid.ndim != 1 or len(zgrid) == 0:
        raise GridBoundsError("The model redshift grid must be a non-empty 1-D array.")
    if not np.all(np.isfinite(zgrid)):
        raise GridBoundsError("The model redshift grid contains non-finite values.")
    if np.any(np.diff(zgrid) <= 0):
        raise GridBoundsError(
            "The model redshift grid must be strictly increasing; "
            "rebuild the model grid with a monotonic redshift array."
        )
    return zgrid


def check_redshift_bounds(z, zgrid):
    """
    Ensure every redshift lies within the span of the model grid.

    Raises
    ------
    GridBoundsError
        If any redshift falls outside `[zgrid[0], zgrid[-1]]`.
    """
    z = np.atleast_1d(z)
    zmin, zmax = zgrid[0], zgrid[-1]
    bad = (z < zmin) | (z > zmax)
    if np.any(bad):
        raise GridBoundsError(
            f"{np.sum(bad)} galaxies have redshifts outside the model grid "
            f"[{zmin:g}, {zmax:g}] (observed range [{np.min(z):g}, "
            f"{np.max(z):g}]); rebuild the model grid with wider "
            "redshift coverage."
        )


def redshift_index(z, zgrid):
    """
    Fractional index of each redshift on the model grid.

    An index of `2.25` means a quarter of the way from `zgrid[2]` to
    `zgrid[3]`.

    Parameters
    ----------
    z : `~numpy.ndarray` of shape `(Ngal,)`
        Galaxy redshifts, assumed to lie within the grid.

    zgrid : `~numpy.ndarray` of shape `(Nz,)`
        Strictly increasing model redshift grid.

    Returns
    -------
    zindex : `~numpy.ndarray` of shape `(Ngal,)`
        Fractional grid indices.
    """
    z = np.atleast_1d(np.asarray(z, dtype=float))
    zgrid = np.asarray(zgrid, dtype=float)
    if len(zgrid) == 1:
        return np.zeros(len(z))
    return np.interp(z, zgrid, np.arange(len(zgrid), dtype=float))
