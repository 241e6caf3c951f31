#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
Fit configuration for isedgrid.

`FitConfig` gathers every knob of the fitting pipeline (cosmology, model
redshift grid, chunking, data-quality cuts and posterior sampling) in one
validated container. A configuration is normally derived from the model
grid it will be used with, via `FitConfig.from_grid`.

Examples
--------
>>> from isedgrid.data import ModelGridReader
>>> from isedgrid.config import FitConfig
>>> reader = ModelGridReader('models.h5')
>>> config = FitConfig.from_grid(reader, ndraw=500, seed=42)
>>> config.chunk_size
500
"""

import copy

import numpy as np
from astropy.cosmology import LambdaCDM

__all__ = ["FitConfig"]


class FitConfig:
    """
    Configuration container for grid-based SED fitting.

    Parameters
    ----------
    redshift : array-like of shape `(Nz,)`
        Redshift grid at which the model fluxes were tabulated. Must be
        strictly increasing (checked when fitting).

    filters : iterable of str, optional
        Names of the filters, in the order of the flux arrays.

    H0 : float, optional
        Hubble constant in km/s/Mpc. Default is `70.`.

    Om0 : float, optional
        Matter density today. Default is `0.3`.

    Ode0 : float, optional
        Dark energy density today. Default is `0.7`.

    zmaxform : float, optional
        Maximum formation redshift. Models older than the time elapsed
        between `zmaxform` and the galaxy redshift are excluded.
        Default is `10.`.

    chunk_size : int, optional
        Number of galaxies fit at once. Peak memory scales as
        `chunk_size * Nmodel * Nfilt`. Default is `500`.

    nminphot : int, optional
        Minimum number of filters with positive inverse variance needed to
        fit a galaxy. Default is `3`.

    ndraw : int, optional
        Number of posterior draws stored per galaxy. Default is `2000`.

    nmaxburst : int, optional
        Maximum number of bursts a model can carry. Default is `10`.

    allow_older : bool, optional
        Whether models older than the universe at the galaxy redshift are
        allowed. Default is `False`.

    allow_negative_scale : bool, optional
        Whether negative scale factors are accepted. Default is `False`.

    seed : int, optional
        Seed for the posterior draws. Each galaxy gets its own stream
        derived from `(seed, row)`, so draws do not depend on chunking.
        Default is None (non-reproducible).

    prefix : str, optional
        Prefix of the output files. Default is `'isedfit'`.
    """

    def __init__(
        self,
        redshift,
        filters=None,
        H0=70.0,
        Om0=0.3,
        Ode0=0.7,
        zmaxform=10.0,
        chunk_size=500,
        nminphot=3,
        ndraw=2000,
        nmaxburst=10,
        allow_older=False,
        allow_negative_scale=False,
        seed=None,
        prefix="isedfit",
    ):
        self.redshift = np.atleast_1d(np.asarray(redshift, dtype=float))
        self.filters = list(filters) if filters is not None else None
        self.H0 = H0
        self.Om0 = Om0
        self.Ode0 = Ode0
        self.zmaxform = zmaxform
        self.chunk_size = chunk_size
        self.nminphot = nminphot
        self.ndraw = ndraw
        self.nmaxburst = nmaxburst
        self.allow_older = allow_older
        self.allow_negative_scale = allow_negative_scale
        self.seed = seed
        self.prefix = prefix
        self._cosmo = None

        self._validate_config()

    def _validate_config(self):
        """Validate configuration parameters."""
        if self.redshift.ndim != 1 or len(self.redshift) < 1:
            raise ValueError("redshift must be a non-empty 1-D grid")
        if self.H0 <= 0:
            raise ValueError("H0 must be > 0")
        if self.Om0 < 0 or self.Ode0 < 0:
            raise ValueError("Om0 and Ode0 must be >= 0")
        if self.zmaxform <= 0:
            raise ValueError("zmaxform must be > 0")
        if self.chunk_size < 1:
            raise ValueError("chunk_size must be >= 1")
        if self.nminphot < 1:
            raise ValueError("nminphot must be >= 1")
        if self.ndraw < 1:
            raise ValueError("ndraw must be >= 1")
        if self.nmaxburst < 0:
            raise ValueError("nmaxburst must be >= 0")

    @property
    def cosmo(self):
        """`~astropy.cosmology.LambdaCDM` instance built from the parameters."""
        if self._cosmo is None:
            self._cosmo = LambdaCDM(H0=self.H0, Om0=self.Om0, Ode0=self.Ode0)
        return self._cosmo

    @property
    def nfilt(self):
        """Number of filters, if known."""
        return None if self.filters is None else len(self.filters)

    @classmethod
    def from_grid(cls, reader, **kwargs):
        """
        Build a configuration matching a model grid.

        The redshift grid, filter list and burst cap are taken from the
        grid; everything else comes from `kwargs`.
        """
        kwargs.setdefault("redshift", reader.redshift)
        kwargs.setdefault("filters", reader.filters)
        kwargs.setdefault("nmaxburst", reader.nmaxburst)
        return cls(**kwargs)

    def copy(self, **kwargs):
        """Return a copy of the configuration with some values replaced."""
        new = copy.copy(self)
        new.redshift = self.redshift.copy()
        new._cosmo = None
        for key, val in kwargs.items():
            # Only constructor parameters; derived properties are read-only.
            if key.startswith("_") or key not in vars(self):
                raise TypeError(f"Unknown configuration parameter: {key}")
            setattr(new, key, val)
        if "redshift" in kwargs:
            new.redshift = np.atleast_1d(np.asarray(kwargs["redshift"], dtype=float))
        new._validate_config()
        return new

    def __repr__(self):
        """Return string representation of the configuration."""
        return (
            f"FitConfig(nz={len(self.redshift)}, "
            f"z=[{self.redshift[0]:.3f}, {self.redshift[-1]:.3f}], "
            f"H0={self.H0}, Om0={self.Om0}, Ode0={self.Ode0}, "
            f"chunk_size={self.chunk_size}, ndraw={self.ndraw})"
        )
