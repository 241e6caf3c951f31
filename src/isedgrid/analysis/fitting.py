#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
Galaxy SED fitting over pre-computed model grids.

This module provides the ISEDFit class, which fits galaxy photometry
against every model of a chunked stellar population synthesis grid and
builds chi-square-weighted posteriors of the physical properties.

Galaxies are fit in chunks of `FitConfig.chunk_size`. For each galaxy
chunk every model chunk is streamed from disk, interpolated to the galaxy
redshifts and folded into a pre-sized chi-square buffer; the posterior of
each galaxy is then built from that buffer. Peak memory is therefore set
by `chunk_size * Nmodel`, not by the sample size.

Classes
-------
ISEDFit : Grid-based galaxy SED fitter

Functions
---------
fit_many : Run several fitters (configurations) on the same sample

See Also
--------
isedgrid.core.chi2 : Chi-square evaluation
isedgrid.core.posterior : Posterior construction
isedgrid.data.ModelGridReader : Chunked model grid access

Examples
--------
>>> from isedgrid.data import ModelGridReader, load_photometry
>>> from isedgrid.config import FitConfig
>>> from isedgrid.analysis import ISEDFit
>>>
>>> reader = ModelGridReader('models.h5')
>>> config = FitConfig.from_grid(reader, ndraw=500, seed=1)
>>> fitter = ISEDFit(reader, config)
>>> maggies, ivarmaggies, z, ids = load_photometry('phot.h5')
>>> results, draws = fitter.fit(maggies, ivarmaggies, z, isedfit_id=ids,
...                             outdir='out/')
"""

import sys
import warnings
from contextlib import nullcontext

import numpy as np

from ..config import FitConfig
from ..core.chi2 import SENTINEL_CHI2, chunk_chi2
from ..core.posterior import build_chunk_posteriors
from ..core.records import init_draws, init_results
from ..data.loader import ModelGridReader
from ..data.output import Chi2GridWriter, check_output, output_paths, write_results
from ..exceptions import GridBoundsError, InvalidValueError, ShapeMismatchError
from ..utils.cosmology import (
    check_redshift_bounds,
    check_redshift_grid,
    max_model_age,
    redshift_index,
)

__all__ = ["ISEDFit", "fit_many"]

# Fields of the result record owned by the input catalog.
_INPUT_FIELDS = ("isedfit_id", "z", "maggies", "ivarmaggies")


class ISEDFit:
    """
    Chi-square fitting of galaxy photometry over a chunked model grid.

    Parameters
    ----------
    reader : ModelGridReader
        Access to the pre-computed model grid.

    config : FitConfig, optional
        Fit configuration. Default is `FitConfig.from_grid(reader)`.

    verbose : bool, optional
        Whether to report progress. Default is True.

    Attributes
    ----------
    reader : ModelGridReader
        The underlying model grid.

    config : FitConfig
        The fit configuration.

    nmodels : int
        Number of models in the grid.

    nfilters : int
        Number of filters.

    Notes
    -----
    A run goes through validation, output initialization, chi-square
    accumulation (for each galaxy chunk, over every model chunk),
    posterior construction and, optionally, persistence. Validation
    errors abort the run before any output is written.
    """

    def __init__(self, reader, config=None, verbose=True):
        """Initialize ISEDFit with a ModelGridReader instance."""
        if not isinstance(reader, ModelGridReader):
            raise TypeError("reader must be a ModelGridReader instance")

        self.reader = reader
        self.config = config if config is not None else FitConfig.from_grid(reader)
        self.verbose = verbose
        self._params = None

        if verbose:
            sys.stderr.write(
                f"ISEDFit initialized with {self.nmodels:,} models in "
                f"{self.reader.nchunk} chunks, {self.nfilters} filters\n"
            )

    @property
    def nmodels(self):
        """Number of models in the grid."""
        return self.reader.nmodel

    @property
    def nfilters(self):
        """Number of filters in the grid."""
        return self.reader.nfilt

    @property
    def params(self):
        """Parameters of every model, in chunk order."""
        if self._params is None:
            self._params = self.reader.read_params(nmaxburst=self.config.nmaxburst)
        return self._params

    def _index_rows(self, index, ngal):
        """Convert a subset selection into sorted unique row numbers."""
        if index is None:
            return np.arange(ngal)
        index = np.asarray(index)
        if index.dtype == bool:
            if index.shape != (ngal,):
                raise ShapeMismatchError(
                    f"Boolean index has shape {index.shape}, expected ({ngal},)"
                )
            return np.flatnonzero(index)
        rows = np.unique(index.astype(int).ravel())
        if len(rows) and (rows[0] < 0 or rows[-1] >= ngal):
            raise InvalidValueError(f"index values must lie in [0, {ngal - 1}]")
        return rows

    def _validate(self, maggies, ivarmaggies, z, index=None, isedfit_id=None):
        """
        Check inputs against each other and against the model grid.

        Shapes are checked for the full sample; values only for the rows
        selected by `index`.
        """
        maggies = np.asarray(maggies, dtype=float)
        ivarmaggies = np.asarray(ivarmaggies, dtype=float)
        z = np.atleast_1d(np.asarray(z, dtype=float))

        if maggies.ndim == 1:
            maggies = maggies[np.newaxis, :]
        if ivarmaggies.ndim == 1:
            ivarmaggies = ivarmaggies[np.newaxis, :]
        if maggies.ndim != 2:
            raise ShapeMismatchError(
                f"maggies must have shape (Ngal, Nfilt), got {maggies.shape}"
            )
        if ivarmaggies.shape != maggies.shape:
            raise ShapeMismatchError(
                f"ivarmaggies shape {ivarmaggies.shape} != maggies shape {maggies.shape}"
            )
        if z.shape != (maggies.shape[0],):
            raise ShapeMismatchError(
                f"z shape {z.shape} does not match {maggies.shape[0]} galaxies"
            )
        if maggies.shape[1] != self.nfilters:
            raise ShapeMismatchError(
                f"Photometry has {maggies.shape[1]} filters but the model grid "
                f"has {self.nfilters}"
            )
        if self.config.nfilt is not None and self.config.nfilt != self.nfilters:
            raise ShapeMismatchError(
                f"Configuration lists {self.config.nfilt} filters but the model "
                f"grid has {self.nfilters}"
            )
        if isedfit_id is not None and np.shape(isedfit_id) != z.shape:
            raise ShapeMismatchError(
                f"isedfit_id shape {np.shape(isedfit_id)} does not match "
                f"{len(z)} galaxies"
            )

        zgrid = check_redshift_grid(self.config.redshift)
        check_redshift_grid(self.reader.redshift)
        if len(zgrid) != len(self.reader.redshift):
            raise ShapeMismatchError(
                f"Configuration redshift grid has {len(zgrid)} points but the "
                f"model fluxes are tabulated at {len(self.reader.redshift)}"
            )
        # Galaxy redshifts are located on the grid the fluxes live on.
        if not np.allclose(zgrid, self.reader.redshift):
            raise GridBoundsError(
                "Configuration redshift grid does not match the redshifts the "
                "model fluxes are tabulated at"
            )

        rows = self._index_rows(index, len(z))
        if not (
            np.all(np.isfinite(maggies[rows])) and np.all(np.isfinite(ivarmaggies[rows]))
        ):
            raise InvalidValueError("maggies and ivarmaggies must be finite")
        if np.any(ivarmaggies[rows] < 0):
            raise InvalidValueError("ivarmaggies must be non-negative")
        if not np.all(np.isfinite(z[rows])) or np.any(z[rows] <= 0):
            raise InvalidValueError("Redshifts must be finite and positive")
        check_redshift_bounds(z[rows], self.reader.redshift)

        return maggies, ivarmaggies, z, rows

    def _rngs(self, rows):
        """One generator per galaxy, so draws do not depend on chunking."""
        seed = self.config.seed
        if seed is None:
            return [np.random.default_rng() for _ in rows]
        return [np.random.default_rng([seed, int(row)]) for row in rows]

    def _fit_chunk(self, maggies, ivarmaggies, z, rows):
        """
        Fit one chunk of galaxies against every model chunk.

        Returns
        -------
        records : structured `~numpy.ndarray` of shape `(Ngal,)`
            Result records (photometry fields left unset).

        draws : structured `~numpy.ndarray` of shape `(Ngal, Ndraw)`
            Posterior draws.

        grid : tuple of `~numpy.ndarray` of shape `(Ngal, Nmodel)`
            Chi-square, scale and scale error of every pair.
        """
        config = self.config
        ngal, nfilt = maggies.shape

        zindex = redshift_index(z, self.reader.redshift)
        maxage = max_model_age(z, config.cosmo, config.zmaxform)

        # Pre-sized buffers, filled at a running model offset.
        chi2 = np.full((ngal, self.nmodels), SENTINEL_CHI2)
        scale = np.zeros((ngal, self.nmodels))
        scale_err = np.zeros((ngal, self.nmodels))
        bestchi2 = np.full(ngal, np.inf)
        bestflux = np.zeros((ngal, nfilt))

        offset = 0
        for ichunk, flux, params in self.reader:
            n = len(params)
            c_scale, c_err, c_chi2, modelflux = chunk_chi2(
                maggies, ivarmaggies, zindex, maxage, flux, params, config
            )
            chi2[:, offset : offset + n] = c_chi2
            scale[:, offset : offset + n] = c_scale
            scale_err[:, offset : offset + n] = c_err

            # Track the best model so far for the best-fit photometry.
            masked = np.where(c_err > 0, c_chi2, np.inf)
            imin = np.argmin(masked, axis=1)
            cmin = masked[np.arange(ngal), imin]
            better = np.flatnonzero(cmin < bestchi2)
            bestchi2[better] = cmin[better]
            bestflux[better] = modelflux[better, imin[better]]

            offset += n
            del modelflux

        records, draws = build_chunk_posteriors(
            chi2, scale, scale_err, self.params, bestflux, config.ndraw, self._rngs(rows)
        )
        return records, draws, (chi2, scale, scale_err)

    def _attrs(self):
        """Metadata stored with the output files."""
        config = self.config
        return {
            "modelgrid": self.reader.modelgrid,
            "filters": self.reader.filters,
            "redshift": config.redshift,
            "H0": config.H0,
            "Om0": config.Om0,
            "Ode0": config.Ode0,
            "zmaxform": config.zmaxform,
            "nminphot": config.nminphot,
            "ndraw": config.ndraw,
            "allow_older": config.allow_older,
            "allow_negative_scale": config.allow_negative_scale,
        }

    def _prepare(
        self,
        maggies,
        ivarmaggies,
        z,
        isedfit_id=None,
        index=None,
        outdir=None,
        clobber=False,
        dry_run=False,
        save_chi2grid=False,
    ):
        """Validate inputs and outputs; nothing is computed or written."""
        maggies, ivarmaggies, z, rows = self._validate(
            maggies, ivarmaggies, z, index=index, isedfit_id=isedfit_id
        )
        paths = None
        if outdir is not None and not dry_run:
            paths = output_paths(outdir, self.config.prefix)
            check_output(paths, clobber=clobber, save_chi2grid=save_chi2grid)
        # Also enforces the burst cap before any work is done.
        _ = self.params
        return maggies, ivarmaggies, z, rows, paths

    def _run(
        self, maggies, ivarmaggies, z, rows, paths, isedfit_id=None, save_chi2grid=False
    ):
        """Fit the selected rows and scatter them into full-size outputs."""
        config = self.config
        ngal, nfilt = maggies.shape

        # Burst fields follow the layout of the grid parameter tables.
        results = init_results(
            ngal, nfilt, self.reader.nmaxburst, sentinel_chi2=SENTINEL_CHI2
        )
        draws = init_draws(ngal, config.ndraw, sentinel_chi2=SENTINEL_CHI2)
        results["isedfit_id"] = np.arange(ngal) if isedfit_id is None else isedfit_id
        results["z"][rows] = z[rows]
        results["maggies"][rows] = maggies[rows]
        results["ivarmaggies"][rows] = ivarmaggies[rows]

        chunks = [
            rows[i : i + config.chunk_size] for i in range(0, len(rows), config.chunk_size)
        ]
        if paths is not None and save_chi2grid:
            grid_writer = Chi2GridWriter(paths["chi2grid"], ngal, self.nmodels, self.params)
        else:
            grid_writer = nullcontext()

        with grid_writer as writer:
            for ichunk, chunk_rows in enumerate(chunks):
                if self.verbose:
                    sys.stderr.write(
                        f"Fitting galaxy chunk {ichunk + 1}/{len(chunks)} "
                        f"({len(chunk_rows)} galaxies)...\n"
                    )
                records, chunk_draws, grid = self._fit_chunk(
                    maggies[chunk_rows],
                    ivarmaggies[chunk_rows],
                    z[chunk_rows],
                    chunk_rows,
                )
                for name in results.dtype.names:
                    if name not in _INPUT_FIELDS:
                        results[name][chunk_rows] = records[name]
                draws[chunk_rows] = chunk_draws
                if writer is not None:
                    writer.write(chunk_rows, *grid)

        nbad = np.sum(results["modelindx"][rows] < 0)
        if nbad > 0:
            warnings.warn(f"{nbad} of {len(rows)} galaxies have no valid model fit.")

        if paths is not None:
            write_results(paths, results, draws, attrs=self._attrs())
            if self.verbose:
                sys.stderr.write(f"Wrote {paths['results']} and {paths['draws']}\n")

        return results, draws

    def fit(
        self,
        maggies,
        ivarmaggies,
        z,
        isedfit_id=None,
        index=None,
        outdir=None,
        clobber=False,
        dry_run=False,
        save_chi2grid=False,
    ):
        """
        Fit every model of the grid to the input photometry.

        Parameters
        ----------
        maggies : `~numpy.ndarray` of shape `(Ngal, Nfilt)`
            Observed fluxes in maggies.

        ivarmaggies : `~numpy.ndarray` of shape `(Ngal, Nfilt)`
            Inverse variances of `maggies`; zero flags a missing band.

        z : `~numpy.ndarray` of shape `(Ngal,)`
            Galaxy redshifts, positive and within the model redshift grid.

        isedfit_id : `~numpy.ndarray` of shape `(Ngal,)`, optional
            Galaxy identifiers. Default is the row number.

        index : array-like, optional
            Integer rows or boolean mask selecting the galaxies to fit.
            Other rows are returned with sentinel values. Default fits all.

        outdir : str, optional
            Directory for the output files. Nothing is written if None.

        clobber : bool, optional
            Overwrite existing output files. Default is False.

        dry_run : bool, optional
            Fit but do not write anything. Default is False.

        save_chi2grid : bool, optional
            Also write the full chi-square grid. Default is False.

        Returns
        -------
        results : structured `~numpy.ndarray` of shape `(Ngal,)`
            Best-fit and posterior summary of each galaxy.

        draws : structured `~numpy.ndarray` of shape `(Ngal, Ndraw)`
            Posterior draws of each galaxy.

        Raises
        ------
        ShapeMismatchError, InvalidValueError, GridBoundsError
            If the inputs are inconsistent with each other or the grid.
        OutputExistsError
            If an output file exists and `clobber` is False.
        """
        maggies, ivarmaggies, z, rows, paths = self._prepare(
            maggies,
            ivarmaggies,
            z,
            isedfit_id=isedfit_id,
            index=index,
            outdir=outdir,
            clobber=clobber,
            dry_run=dry_run,
            save_chi2grid=save_chi2grid,
        )
        return self._run(
            maggies,
            ivarmaggies,
            z,
            rows,
            paths,
            isedfit_id=isedfit_id,
            save_chi2grid=save_chi2grid,
        )

    def __repr__(self):
        """Return string representation of ISEDFit object."""
        return (
            f"ISEDFit(nmodels={self.nmodels:,}, "
            f"nfilters={self.nfilters}, "
            f"chunk_size={self.config.chunk_size})"
        )


def fit_many(fitters, maggies, ivarmaggies, z, outdir=None, **kwargs):
    """
    Fit the same sample with several fitters, one per configuration.

    Every fitter is validated (inputs and output files) before the first
    one runs, so a bad configuration aborts the whole batch.

    Parameters
    ----------
    fitters : list of ISEDFit
        One fitter per model grid / configuration. When writing to a
        common `outdir`, their configurations need distinct prefixes.

    maggies, ivarmaggies, z : `~numpy.ndarray`
        Photometry and redshifts, see `ISEDFit.fit`.

    outdir : str, optional
        Output directory shared by all fitters.

    **kwargs
        Passed to `ISEDFit.fit` (`isedfit_id`, `index`, `clobber`,
        `dry_run`, `save_chi2grid`).

    Returns
    -------
    outputs : list of tuple
        `(results, draws)` for each fitter, in order.
    """
    prefixes = [fitter.config.prefix for fitter in fitters]
    if outdir is not None and len(set(prefixes)) != len(prefixes):
        raise ValueError("Fitters sharing an output directory need distinct prefixes.")

    isedfit_id = kwargs.pop("isedfit_id", None)
    save_chi2grid = kwargs.get("save_chi2grid", False)
    prepared = [
        fitter._prepare(
            maggies, ivarmaggies, z, isedfit_id=isedfit_id, outdir=outdir, **kwargs
        )
        for fitter in fitters
    ]

    outputs = []
    for fitter, (m, iv, zz, rows, paths) in zip(fitters, prepared):
        outputs.append(
            fitter._run(
                m, iv, zz, rows, paths, isedfit_id=isedfit_id, save_chi2grid=save_chi2grid
            )
        )
    return outputs
