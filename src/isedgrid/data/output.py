#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
Output files of the fitter.

Results and posterior draws are written as HDF5 datasets of structured
arrays, i.e. columnar binary tables with one row per galaxy. The full
chi-square grid can optionally be dumped as well; it is written one
galaxy chunk at a time through `Chi2GridWriter`.
"""

import os

import h5py
import numpy as np

from ..exceptions import OutputExistsError

__all__ = [
    "output_paths",
    "check_output",
    "write_results",
    "read_results",
    "Chi2GridWriter",
]


def output_paths(outdir, prefix="isedfit"):
    """
    Paths of the files written by a fit.

    Returns
    -------
    paths : dict
        Keys `'results'`, `'draws'` and `'chi2grid'`.
    """
    return {
        "results": os.path.join(outdir, f"{prefix}_isedfit.h5"),
        "draws": os.path.join(outdir, f"{prefix}_isedfit_post.h5"),
        "chi2grid": os.path.join(outdir, f"{prefix}_chi2grid.h5"),
    }


def check_output(paths, clobber=False, save_chi2grid=False):
    """
    Make sure a fit will not overwrite existing files by accident.

    Raises
    ------
    OutputExistsError
        If an output file exists and `clobber` is False.
    """
    if clobber:
        return
    keys = ["results", "draws"] + (["chi2grid"] if save_chi2grid else [])
    existing = [paths[k] for k in keys if os.path.exists(paths[k])]
    if existing:
        raise OutputExistsError(
            f"Output file(s) {', '.join(existing)} already exist; "
            "use clobber=True to overwrite."
        )


def _write_attrs(dset, attrs):
    for key, val in (attrs or {}).items():
        if val is None:
            continue
        if isinstance(val, (list, tuple)) and val and isinstance(val[0], str):
            val = np.array(val, dtype="S")
        dset.attrs[key] = val


def write_results(paths, results, draws, attrs=None):
    """
    Write the result records and posterior draws.

    Parameters
    ----------
    paths : dict
        Output paths from `output_paths`.

    results : structured `~numpy.ndarray` of shape `(Ngal,)`
        Result records.

    draws : structured `~numpy.ndarray` of shape `(Ngal, Ndraw)`
        Posterior draws.

    attrs : dict, optional
        Metadata (e.g. configuration values) attached to both datasets.
    """
    os.makedirs(os.path.dirname(os.path.abspath(paths["results"])), exist_ok=True)
    try:
        with h5py.File(paths["results"], "w") as f:
            dset = f.create_dataset("isedfit", data=results)
            _write_attrs(dset, attrs)
        with h5py.File(paths["draws"], "w") as f:
            dset = f.create_dataset("draws", data=draws)
            _write_attrs(dset, attrs)
    except Exception:
        # Results and draws are only ever left on disk as a pair.
        for key in ("results", "draws"):
            if os.path.isfile(paths[key]):
                os.remove(paths[key])
        raise


def read_results(paths):
    """
    Read back the files written by `write_results`.

    Returns
    -------
    results : structured `~numpy.ndarray` of shape `(Ngal,)`
    draws : structured `~numpy.ndarray` of shape `(Ngal, Ndraw)`
    """
    with h5py.File(paths["results"], "r") as f:
        results = f["isedfit"][:]
    with h5py.File(paths["draws"], "r") as f:
        draws = f["draws"][:]
    return results, draws


class Chi2GridWriter:
    """
    Incremental writer of the full `(Ngal, Nmodel)` chi-square grid.

    Parameters
    ----------
    filepath : str
        Output HDF5 file.

    ngal, nmodel : int
        Dimensions of the grid.

    params : structured `~numpy.ndarray` of shape `(Nmodel,)`, optional
        Model parameters, saved alongside the grid to identify columns.

    Examples
    --------
    >>> with Chi2GridWriter('chi2grid.h5', 1000, 5000) as writer:
    ...     writer.write(rows, chi2, scale, scale_err)
    """

    def __init__(self, filepath, ngal, nmodel, params=None):
        self.filepath = filepath
        self.ngal = ngal
        self.nmodel = nmodel
        self.params = params
        self._file = None

    def __enter__(self):
        os.makedirs(os.path.dirname(os.path.abspath(self.filepath)), exist_ok=True)
        self._file = h5py.File(self.filepath, "w")
        shape = (self.ngal, self.nmodel)
        for name, fill in (("chi2", 1e6), ("scale", 0.0), ("scale_err", 0.0)):
            self._file.create_dataset(
                name, shape=shape, dtype="f8", fillvalue=fill, chunks=True
            )
        if self.params is not None:
            self._file.create_dataset(
                "modelindx", data=np.asarray(self.params["modelindx"])
            )
            self._file.create_dataset(
                "chunkindx", data=np.asarray(self.params["chunkindx"])
            )
        return self

    def write(self, rows, chi2, scale, scale_err):
        """Store the chi-square grid of the galaxies at `rows`."""
        rows = np.asarray(rows)
        order = np.argsort(rows)
        rows = rows[order]
        # h5py fancy indexing needs increasing indices.
        self._file["chi2"][rows] = chi2[order]
        self._file["scale"][rows] = scale[order]
        self._file["scale_err"][rows] = scale_err[order]

    def __exit__(self, exc_type, exc, tb):
        self._file.close()
        self._file = None
        if exc_type is not None and os.path.exists(self.filepath):
            os.remove(self.filepath)
        return False
