#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
Model grid and photometry loading utilities for isedgrid.

Model grids are stored in HDF5 files made of independent chunks so that
the fitter never needs more than one chunk of model fluxes in memory.
The file layout is::

    /                 attrs: filters, redshift, nmaxburst, modelgrid
    /chunk0000/flux   (Nmodel, Nz, Nfilt) model fluxes in maggies
    /chunk0000/params (Nmodel,) structured model parameters
    /chunk0001/...

Photometry files hold the datasets `maggies`, `ivarmaggies` and `z`
(or `mag` and `mag_err` instead of the fluxes), plus an optional
`isedfit_id`.
"""

import os
import sys
import time
import warnings

import h5py
import numpy as np

from ..core.records import model_params_dtype
from ..exceptions import InvalidValueError, OutputExistsError, ShapeMismatchError
from ..utils.photometry import mag2maggies

__all__ = [
    "ModelGridReader",
    "write_model_grid",
    "load_photometry",
    "write_photometry",
]


def _chunk_name(ichunk):
    return f"chunk{ichunk:04d}"


class ModelGridReader:
    """
    Chunked reader of pre-computed model flux grids.

    Only the grid metadata and the (small) parameter tables are read at
    construction; model fluxes are read one chunk at a time when iterating.

    Parameters
    ----------
    filepath : str
        Path of the HDF5 model grid.

    max_retries : int, optional
        Number of attempts made to read a chunk before the error is
        propagated. Default is `3`.

    retry_wait : float, optional
        Seconds to wait between attempts. Default is `0.5`.

    verbose : bool, optional
        Whether to print a summary of the grid. Default is False.

    Attributes
    ----------
    filters : list of str
        Filter names.

    redshift : `~numpy.ndarray` of shape `(Nz,)`
        Redshift grid of the model fluxes.

    nmaxburst : int
        Burst capacity of the parameter tables.

    chunk_sizes : list of int
        Number of models in each chunk.

    Examples
    --------
    >>> reader = ModelGridReader('models.h5')
    >>> for ichunk, flux, params in reader:
    ...     print(ichunk, flux.shape)
    """

    def __init__(self, filepath, max_retries=3, retry_wait=0.5, verbose=False):
        if max_retries < 1:
            raise ValueError("max_retries must be >= 1")
        self.filepath = filepath
        self.max_retries = max_retries
        self.retry_wait = retry_wait

        with h5py.File(filepath, "r") as f:
            self.filters = [
                fl.decode() if isinstance(fl, bytes) else str(fl)
                for fl in f.attrs["filters"]
            ]
            self.redshift = np.atleast_1d(np.asarray(f.attrs["redshift"], dtype=float))
            self.nmaxburst = int(f.attrs.get("nmaxburst", 0))
            self.modelgrid = str(f.attrs.get("modelgrid", ""))
            self.chunk_names = sorted(k for k in f.keys() if k.startswith("chunk"))
            self.chunk_sizes = [f[name]["params"].shape[0] for name in self.chunk_names]

        if len(self.chunk_names) == 0:
            raise InvalidValueError(f"No model chunks found in {filepath}.")

        if verbose:
            sys.stderr.write(
                f"Model grid {self.modelgrid or filepath}: {self.nmodel:,} models "
                f"in {self.nchunk} chunks, {self.nfilt} filters, "
                f"{len(self.redshift)} redshifts "
                f"[{self.redshift[0]:g}, {self.redshift[-1]:g}]\n"
            )

    @property
    def nchunk(self):
        """Number of model chunks."""
        return len(self.chunk_names)

    @property
    def nmodel(self):
        """Total number of models."""
        return int(np.sum(self.chunk_sizes))

    @property
    def nfilt(self):
        """Number of filters."""
        return len(self.filters)

    def _read(self, ichunk, flux=True):
        with h5py.File(self.filepath, "r") as f:
            grp = f[self.chunk_names[ichunk]]
            params = grp["params"][:]
            data = grp["flux"][:] if flux else None
        return data, params

    def _read_with_retries(self, ichunk, flux=True):
        """Read a chunk, retrying on I/O errors."""
        for attempt in range(1, self.max_retries + 1):
            try:
                return self._read(ichunk, flux=flux)
            except OSError as e:
                if attempt == self.max_retries:
                    raise
                warnings.warn(
                    f"Reading {self.chunk_names[ichunk]} from {self.filepath} "
                    f"failed (attempt {attempt}/{self.max_retries}): {e}"
                )
                time.sleep(self.retry_wait)

    def _check_chunk(self, ichunk, flux, params):
        if flux.ndim != 3 or flux.shape[0] != len(params):
            raise ShapeMismatchError(
                f"{self.chunk_names[ichunk]}: flux shape {flux.shape} does not "
                f"match {len(params)} models"
            )
        if flux.shape[1:] != (len(self.redshift), self.nfilt):
            raise ShapeMismatchError(
                f"{self.chunk_names[ichunk]}: flux shape {flux.shape} does not "
                f"match ({len(self.redshift)} redshifts, {self.nfilt} filters)"
            )
        if not np.all(np.isfinite(flux)):
            raise InvalidValueError(
                f"{self.chunk_names[ichunk]} contains non-finite model fluxes"
            )

    def read_chunk(self, ichunk):
        """
        Read the fluxes and parameters of one model chunk.

        Returns
        -------
        flux : `~numpy.ndarray` of shape `(Nmodel, Nz, Nfilt)`
            Model fluxes.

        params : structured `~numpy.ndarray` of shape `(Nmodel,)`
            Model parameters.
        """
        flux, params = self._read_with_retries(ichunk)
        self._check_chunk(ichunk, flux, params)
        return flux, params

    def read_params(self, nmaxburst=None):
        """
        Read and concatenate the parameter tables of every chunk.

        Parameters
        ----------
        nmaxburst : int, optional
            Burst capacity to check the models against. Defaults to the
            capacity declared in the grid.

        Returns
        -------
        params : structured `~numpy.ndarray` of shape `(Nmodel,)`
            Parameters of all models, in chunk order.

        Raises
        ------
        InvalidValueError
            If a model has more bursts than `nmaxburst`.
        """
        if nmaxburst is None:
            nmaxburst = self.nmaxburst
        params = np.zeros(self.nmodel, dtype=model_params_dtype(self.nmaxburst))

        offset = 0
        for ichunk, n in enumerate(self.chunk_sizes):
            _, chunk_params = self._read_with_retries(ichunk, flux=False)
            params[offset : offset + n] = chunk_params
            offset += n

        if np.any(params["nburst"] > nmaxburst):
            raise InvalidValueError(
                f"Model grid has up to {np.max(params['nburst'])} bursts, "
                f"more than the configured maximum of {nmaxburst}."
            )
        return params

    def __iter__(self):
        """Yield `(ichunk, flux, params)` for every chunk in order."""
        for ichunk in range(self.nchunk):
            flux, params = self.read_chunk(ichunk)
            yield ichunk, flux, params

    def __len__(self):
        return self.nchunk

    def __repr__(self):
        """Return string representation of the reader."""
        return (
            f"ModelGridReader(filepath={self.filepath!r}, "
            f"nmodel={self.nmodel:,}, nchunk={self.nchunk}, "
            f"nfilt={self.nfilt}, nz={len(self.redshift)})"
        )


def write_model_grid(
    filepath,
    fluxes,
    params,
    redshift,
    filters,
    nmaxburst=None,
    modelgrid="models",
    clobber=False,
):
    """
    Write a chunked model grid readable by `ModelGridReader`.

    Parameters
    ----------
    filepath : str
        Output HDF5 file.

    fluxes : list of `~numpy.ndarray` of shape `(Nmodel_i, Nz, Nfilt)`
        Model fluxes, one array per chunk.

    params : list of structured `~numpy.ndarray` of shape `(Nmodel_i,)`
        Model parameters, one table per chunk. Fields missing from a
        table are left at zero; `chunkindx` and `modelindx` are filled in.

    redshift : array-like of shape `(Nz,)`
        Redshift grid of the model fluxes.

    filters : iterable of str with length `Nfilt`
        Filter names.

    nmaxburst : int, optional
        Burst capacity. Defaults to the largest `nburst` in `params`.

    modelgrid : str, optional
        Name of the model grid stored as metadata.

    clobber : bool, optional
        Overwrite an existing file. Default is False.
    """
    if os.path.exists(filepath) and not clobber:
        raise OutputExistsError(f"{filepath} exists; use clobber=True to overwrite.")
    if len(fluxes) != len(params):
        raise ShapeMismatchError("fluxes and params must have the same number of chunks")

    if nmaxburst is None:
        nmaxburst = max(
            [int(np.max(p["nburst"])) for p in params if "nburst" in p.dtype.names and len(p)]
            + [0]
        )
    dtype = model_params_dtype(nmaxburst)
    nb = dtype["tburst"].shape[0]

    with h5py.File(filepath, "w") as f:
        f.attrs["filters"] = np.array([str(fl) for fl in filters], dtype="S")
        f.attrs["redshift"] = np.asarray(redshift, dtype=float)
        f.attrs["nmaxburst"] = int(nmaxburst)
        f.attrs["modelgrid"] = modelgrid

        for ichunk, (flux, par) in enumerate(zip(fluxes, params)):
            flux = np.asarray(flux, dtype=float)
            table = np.zeros(len(par), dtype=dtype)
            for name in par.dtype.names:
                if name not in dtype.names:
                    continue
                if name in ("tburst", "dtburst", "fburst"):
                    vals = np.asarray(par[name])
                    if vals.ndim == 1:
                        vals = vals[:, None]
                    table[name][:, : min(nb, vals.shape[1])] = vals[:, :nb]
                else:
                    table[name] = par[name]
            table["chunkindx"] = ichunk
            table["modelindx"] = np.arange(len(par))

            grp = f.create_group(_chunk_name(ichunk))
            grp.create_dataset("flux", data=flux)
            grp.create_dataset("params", data=table)


def load_photometry(filepath, verbose=True):
    """
    Load a photometric catalog.

    Parameters
    ----------
    filepath : str
        HDF5 file with `maggies`/`ivarmaggies` (or `mag`/`mag_err`) of
        shape `(Ngal, Nfilt)` and `z` of shape `(Ngal,)`.

    verbose : bool, optional
        Whether to print a summary. Default is True.

    Returns
    -------
    maggies, ivarmaggies : `~numpy.ndarray` of shape `(Ngal, Nfilt)`
        Photometry in maggies and its inverse variance.

    z : `~numpy.ndarray` of shape `(Ngal,)`
        Redshifts.

    isedfit_id : `~numpy.ndarray` of shape `(Ngal,)`
        Galaxy identifiers (row numbers if the file has none).
    """
    with h5py.File(filepath, "r") as f:
        if "maggies" in f:
            maggies = f["maggies"][:]
            ivarmaggies = f["ivarmaggies"][:]
        elif "mag" in f:
            maggies, ivarmaggies = mag2maggies(f["mag"][:], f["mag_err"][:])
        else:
            raise InvalidValueError(
                f"{filepath} has neither 'maggies' nor 'mag' datasets."
            )
        z = f["z"][:]
        if "isedfit_id" in f:
            isedfit_id = f["isedfit_id"][:]
        else:
            isedfit_id = np.arange(len(z))

    if verbose:
        sys.stderr.write(
            f"Loaded {len(z):,} galaxies with {maggies.shape[-1]} filters "
            f"from {filepath}\n"
        )

    return maggies, ivarmaggies, z, isedfit_id


def write_photometry(filepath, maggies, ivarmaggies, z, isedfit_id=None, clobber=False):
    """Write a photometric catalog readable by `load_photometry`."""
    if os.path.exists(filepath) and not clobber:
        raise OutputExistsError(f"{filepath} exists; use clobber=True to overwrite.")
    with h5py.File(filepath, "w") as f:
        f.create_dataset("maggies", data=np.asarray(maggies, dtype=float))
        f.create_dataset("ivarmaggies", data=np.asarray(ivarmaggies, dtype=float))
        f.create_dataset("z", data=np.asarray(z, dtype=float))
        if isedfit_id is not None:
            f.create_dataset("isedfit_id", data=np.asarray(isedfit_id))
