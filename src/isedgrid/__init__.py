#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
isedgrid: Grid-based SED fitting of galaxy photometry

A Python package for inferring stellar masses, ages, star formation rates,
dust attenuation and metallicities of galaxies by brute-force chi-square
fitting of broadband photometry against pre-computed stellar population
synthesis model grids.

The package is organized as:
- core: chi-square evaluation and posterior construction
- analysis: the chunked fitting driver
- data: model grid, photometry and output files
- utils: cosmology, photometry and sampling helpers

Usage
-----
Fit a photometric catalog::

    from isedgrid import ModelGridReader, FitConfig, ISEDFit, load_photometry
    reader = ModelGridReader('models.h5')
    config = FitConfig.from_grid(reader, ndraw=500, seed=1)
    maggies, ivarmaggies, z, ids = load_photometry('phot.h5')
    results, draws = ISEDFit(reader, config).fit(
        maggies, ivarmaggies, z, isedfit_id=ids, outdir='out/')
"""

__version__ = "0.1.0"

from .analysis import ISEDFit, fit_many
from .config import FitConfig
from .data import ModelGridReader, load_photometry, read_results, write_model_grid
from .exceptions import (
    GridBoundsError,
    InvalidValueError,
    ISEDFitError,
    OutputExistsError,
    ShapeMismatchError,
)

__all__ = [
    # Version
    "__version__",
    # Fitting
    "ISEDFit",
    "fit_many",
    "FitConfig",
    # Data
    "ModelGridReader",
    "write_model_grid",
    "load_photometry",
    "read_results",
    # Errors
    "ISEDFitError",
    "ShapeMismatchError",
    "InvalidValueError",
    "GridBoundsError",
    "OutputExistsError",
]
