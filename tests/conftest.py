#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
Test configuration and fixtures for the isedgrid test suite.

The fixtures build small synthetic model grids whose fluxes are linear in
redshift, so that interpolation on the redshift grid is exact and fits to
noiseless mock photometry recover the input model and scale factor.
"""

import os
from types import SimpleNamespace

import numpy as np
import pytest

# Use a writable cache directory for numba-compiled kernels.
os.environ.setdefault("NUMBA_CACHE_DIR", "/tmp/numba_cache")

FILTERS = ["u", "g", "r", "i", "z"]


def _model_params(nmodel, nmaxburst, rng):
    """Random but physically ordered model parameters."""
    from isedgrid.core.records import model_params_dtype

    params = np.zeros(nmodel, dtype=model_params_dtype(nmaxburst))
    params["age"] = np.linspace(0.5, 12.0, nmodel)
    params["tau"] = rng.uniform(0.1, 5.0, nmodel)
    params["zmetal"] = rng.choice([0.004, 0.008, 0.019, 0.03], nmodel)
    params["av"] = rng.uniform(0.0, 2.0, nmodel)
    params["mu"] = rng.uniform(0.1, 1.0, nmodel)
    params["delayed"] = rng.integers(0, 2, nmodel)
    params["nburst"] = rng.integers(0, nmaxburst + 1, nmodel)
    for i, nb in enumerate(params["nburst"]):
        params["tburst"][i, :nb] = rng.uniform(0.1, params["age"][i], nb)
        params["dtburst"][i, :nb] = 0.1
        params["fburst"][i, :nb] = rng.uniform(0.01, 0.5, nb)
    params["mstar"] = rng.uniform(0.5, 1.0, nmodel)
    params["sfr"] = rng.uniform(0.01, 1.0, nmodel)
    params["sfr100"] = params["sfr"] * rng.uniform(0.5, 1.5, nmodel)
    params["b100"] = rng.uniform(0.0, 1.0, nmodel)
    params["ewoii"] = rng.uniform(0.0, 50.0, nmodel)
    params["ewoiiihb"] = rng.uniform(0.0, 50.0, nmodel)
    params["ewniiha"] = rng.uniform(0.0, 100.0, nmodel)
    return params


def _linear_fluxes(base, slope, zgrid):
    """Fluxes `base * (1 + slope * z)` on the redshift grid."""
    return base[:, None, :] * (1.0 + slope[:, None, :] * zgrid[None, :, None])


@pytest.fixture
def synthetic_grid(tmp_path):
    """
    A 12-model grid in two chunks (7 + 5 models) over 0.05 <= z <= 1.

    Returns
    -------
    grid : SimpleNamespace
        `path`, `zgrid`, `filters`, `params` (concatenated), and
        `flux_at(k, z)` giving the exact flux of model `k` at redshift `z`.
    """
    from isedgrid.data import write_model_grid

    rng = np.random.default_rng(1234)
    nmodel, nfilt, nmaxburst = 12, len(FILTERS), 3
    zgrid = np.linspace(0.05, 1.0, 20)

    base = rng.uniform(0.5, 2.0, (nmodel, nfilt)) * 1e-9
    slope = rng.uniform(-0.5, 0.5, (nmodel, nfilt))
    flux = _linear_fluxes(base, slope, zgrid)
    params = _model_params(nmodel, nmaxburst, rng)

    path = str(tmp_path / "models.h5")
    write_model_grid(
        path,
        [flux[:7], flux[7:]],
        [params[:7], params[7:]],
        zgrid,
        FILTERS,
        nmaxburst=nmaxburst,
        modelgrid="synthetic",
    )

    # Parameters as stored, with chunk/model indices filled in.
    params_stored = params.copy()
    params_stored["chunkindx"] = [0] * 7 + [1] * 5
    params_stored["modelindx"] = list(range(7)) + list(range(5))

    def flux_at(k, z):
        return base[k] * (1.0 + slope[k] * z)

    return SimpleNamespace(
        path=path,
        zgrid=zgrid,
        filters=FILTERS,
        nmaxburst=nmaxburst,
        params=params_stored,
        flux_at=flux_at,
    )


@pytest.fixture
def mock_catalog(synthetic_grid):
    """
    Noiseless photometry of 9 galaxies built from young grid models.

    Galaxy `i` is model `truth[i]` scaled by `scales[i]` at `z[i]`, with
    5 per cent errors. Only models younger than the age of the universe
    at every redshift used are picked.
    """
    rng = np.random.default_rng(99)
    ngal = 9
    z = rng.uniform(0.1, 0.9, ngal)
    truth = np.array([0, 1, 2, 0, 1, 2, 0, 1, 2])
    scales = 10 ** rng.uniform(9.0, 11.0, ngal)

    maggies = np.array(
        [scales[i] * synthetic_grid.flux_at(truth[i], z[i]) for i in range(ngal)]
    )
    ivarmaggies = 1.0 / (0.05 * maggies) ** 2

    return SimpleNamespace(
        maggies=maggies,
        ivarmaggies=ivarmaggies,
        z=z,
        truth=truth,
        scales=scales,
        isedfit_id=np.arange(100, 100 + ngal),
    )


@pytest.fixture
def reader(synthetic_grid):
    """ModelGridReader over the synthetic grid."""
    from isedgrid.data import ModelGridReader

    return ModelGridReader(synthetic_grid.path, retry_wait=0.0)


@pytest.fixture
def config(reader):
    """Seeded configuration matching the synthetic grid."""
    from isedgrid.config import FitConfig

    return FitConfig.from_grid(reader, chunk_size=4, ndraw=50, seed=7)
