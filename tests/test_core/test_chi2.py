#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
Tests for the chi-square kernels.

These tests check the analytic scale factor solution, the handling of
missing bands and the flagging of pairs that cannot be fit.
"""

import warnings

import numpy as np
import numpy.testing as npt
import pytest

from isedgrid.core.chi2 import (
    SENTINEL_CHI2,
    chunk_chi2,
    compute_chi2,
    interpolate_fluxes,
)


@pytest.fixture
def modelflux():
    """Positive fluxes of 3 models in 5 filters for one galaxy."""
    rng = np.random.default_rng(3)
    return rng.uniform(0.5, 2.0, (1, 3, 5))


class TestInterpolateFluxes:
    """Tests for redshift interpolation of model fluxes."""

    def test_nodes_and_midpoints(self):
        """Integer indices return grid values, halves their mean."""
        flux = np.arange(12, dtype=float).reshape(2, 3, 2)
        out = interpolate_fluxes(flux, np.array([0.0, 0.5, 2.0]))

        assert out.shape == (3, 2, 2)
        npt.assert_allclose(out[0], flux[:, 0, :])
        npt.assert_allclose(out[1], 0.5 * (flux[:, 0, :] + flux[:, 1, :]))
        npt.assert_allclose(out[2], flux[:, 2, :])

    def test_single_redshift_grid(self):
        """A one-node grid is returned as is."""
        flux = np.ones((4, 1, 3))
        out = interpolate_fluxes(flux, np.zeros(2))
        npt.assert_allclose(out, np.ones((2, 4, 3)))

    def test_out_of_range_index(self):
        """Indices beyond the grid are rejected."""
        with pytest.raises(ValueError, match="outside"):
            interpolate_fluxes(np.ones((2, 3, 2)), np.array([2.5]))
        with pytest.raises(ValueError, match="shape"):
            interpolate_fluxes(np.ones((2, 3)), np.array([0.0]))


class TestComputeChi2:
    """Tests for the scale factor and chi-square solution."""

    def test_exact_scale_recovery(self, modelflux):
        """Photometry proportional to a model is fit exactly."""
        maggies = 2.5 * modelflux[:, 1, :]
        ivar = np.full_like(maggies, 4.0)

        scale, scale_err, chi2 = compute_chi2(maggies, ivar, modelflux)

        npt.assert_allclose(scale[0, 1], 2.5, rtol=1e-12)
        npt.assert_allclose(chi2[0, 1], 0.0, atol=1e-18)
        npt.assert_allclose(
            scale_err[0, 1], 1.0 / np.sqrt(np.sum(4.0 * modelflux[0, 1] ** 2))
        )
        assert np.all(chi2[0, [0, 2]] > 0)

    def test_chi2_definition(self, modelflux):
        """Chi-square is the weighted residual sum at the best scale."""
        rng = np.random.default_rng(8)
        maggies = rng.uniform(1.0, 3.0, (1, 5))
        ivar = rng.uniform(1.0, 10.0, (1, 5))

        scale, _, chi2 = compute_chi2(maggies, ivar, modelflux)

        for j in range(3):
            m = modelflux[0, j]
            s = np.sum(ivar[0] * m * maggies[0]) / np.sum(ivar[0] * m**2)
            npt.assert_allclose(scale[0, j], s)
            npt.assert_allclose(chi2[0, j], np.sum(ivar[0] * (maggies[0] - s * m) ** 2))

    def test_zero_ivar_filter_ignored(self, modelflux):
        """A band with zero inverse variance does not affect the fit."""
        rng = np.random.default_rng(11)
        maggies = rng.uniform(1.0, 3.0, (1, 5))
        ivar = rng.uniform(1.0, 10.0, (1, 5))
        ivar[0, 2] = 0.0

        ref = compute_chi2(maggies, ivar, modelflux)

        perturbed = maggies.copy()
        perturbed[0, 2] = 1e30
        new = compute_chi2(perturbed, ivar, modelflux)

        keep = [0, 1, 3, 4]
        dropped = compute_chi2(maggies[:, keep], ivar[:, keep], modelflux[:, :, keep])

        for a, b, c in zip(ref, new, dropped):
            npt.assert_allclose(a, b)
            npt.assert_allclose(a, c)

    def test_too_few_filters(self, modelflux):
        """Galaxies below the filter minimum are flagged for every model."""
        maggies = modelflux[:, 0, :].copy()
        ivar = np.zeros_like(maggies)
        ivar[0, :2] = 1.0

        scale, scale_err, chi2 = compute_chi2(maggies, ivar, modelflux, nminphot=3)

        npt.assert_array_equal(chi2, SENTINEL_CHI2)
        npt.assert_array_equal(scale, 0.0)
        npt.assert_array_equal(scale_err, 0.0)

        _, _, chi2 = compute_chi2(maggies, ivar, modelflux, nminphot=2)
        assert np.all(chi2 < SENTINEL_CHI2)

    def test_age_constraint(self, modelflux):
        """Models older than the allowed age are flagged unless overridden."""
        maggies = modelflux[:, 2, :].copy()
        ivar = np.ones_like(maggies)
        model_age = np.array([1.0, 2.0, 8.0])

        _, scale_err, chi2 = compute_chi2(
            maggies, ivar, modelflux, model_age=model_age, maxage=np.array([5.0])
        )
        assert chi2[0, 2] == SENTINEL_CHI2
        assert scale_err[0, 2] == 0.0
        assert np.all(chi2[0, :2] < SENTINEL_CHI2)

        _, _, chi2 = compute_chi2(
            maggies,
            ivar,
            modelflux,
            model_age=model_age,
            maxage=np.array([5.0]),
            allow_older=True,
        )
        npt.assert_allclose(chi2[0, 2], 0.0, atol=1e-18)

    def test_negative_scale(self, modelflux):
        """Negative best-fit scales are flagged unless allowed."""
        maggies = -modelflux[:, 0, :]
        ivar = np.ones_like(maggies)

        scale, _, chi2 = compute_chi2(maggies, ivar, modelflux)
        npt.assert_array_equal(chi2, SENTINEL_CHI2)
        npt.assert_array_equal(scale, 0.0)

        scale, _, chi2 = compute_chi2(
            maggies, ivar, modelflux, allow_negative_scale=True
        )
        npt.assert_allclose(scale[0, 0], -1.0)
        npt.assert_allclose(chi2[0, 0], 0.0, atol=1e-18)

    def test_zero_model_flux(self):
        """A model with no flux in the valid bands cannot be fit."""
        modelflux = np.zeros((1, 1, 3))
        scale, scale_err, chi2 = compute_chi2(np.ones((1, 3)), np.ones((1, 3)), modelflux)

        assert chi2[0, 0] == SENTINEL_CHI2
        assert scale[0, 0] == 0.0
        assert scale_err[0, 0] == 0.0

    def test_shape_mismatch(self, modelflux):
        """Photometry must match the model flux shape."""
        with pytest.raises(ValueError, match="must both have shape"):
            compute_chi2(np.ones((1, 4)), np.ones((1, 4)), modelflux)


class TestChunkChi2:
    """Tests for the chunk-level evaluation."""

    def test_matches_compute_chi2(self):
        """Interpolation plus chi-square in one call."""
        from isedgrid.config import FitConfig
        from isedgrid.core.records import model_params_dtype

        rng = np.random.default_rng(21)
        flux = rng.uniform(0.5, 2.0, (4, 3, 5))
        params = np.zeros(4, dtype=model_params_dtype(1))
        params["age"] = [1.0, 2.0, 3.0, 20.0]
        config = FitConfig(redshift=[0.1, 0.2, 0.3], nminphot=2)

        maggies = rng.uniform(1.0, 3.0, (2, 5))
        ivar = np.ones((2, 5))
        zindex = np.array([0.3, 1.7])
        maxage = np.array([10.0, 10.0])

        scale, scale_err, chi2, modelflux = chunk_chi2(
            maggies, ivar, zindex, maxage, flux, params, config
        )

        assert modelflux.shape == (2, 4, 5)
        ref = compute_chi2(
            maggies, ivar, interpolate_fluxes(flux, zindex), params["age"], maxage, 2
        )
        npt.assert_allclose(scale, ref[0])
        npt.assert_allclose(scale_err, ref[1])
        npt.assert_allclose(chi2, ref[2])
        assert np.all(chi2[:, 3] == SENTINEL_CHI2)

    def test_zero_flux_model_is_quiet(self):
        """Unfittable models are flagged without floating point warnings."""
        from isedgrid.config import FitConfig
        from isedgrid.core.records import model_params_dtype

        flux = np.ones((2, 2, 3))
        flux[1] = 0.0
        params = np.zeros(2, dtype=model_params_dtype(0))
        config = FitConfig(redshift=[0.1, 0.2], nminphot=1)
        interpolate_fluxes(flux, np.array([0.5]))  # compile first

        with warnings.catch_warnings():
            warnings.simplefilter("error")
            scale, scale_err, chi2, _ = chunk_chi2(
                np.ones((1, 3)), np.ones((1, 3)), np.array([0.5]), np.array([5.0]),
                flux, params, config,
            )

        assert chi2[0, 1] == SENTINEL_CHI2
        assert scale_err[0, 1] == 0.0
        npt.assert_allclose(scale[0, 0], 1.0)

    def test_warnings_propagate(self, monkeypatch):
        """Warnings raised while fitting reach the caller."""
        from isedgrid.config import FitConfig
        from isedgrid.core.records import model_params_dtype

        def noisy(*args, **kwargs):
            warnings.warn("bad photometry", UserWarning)
            return None, None, None

        monkeypatch.setattr("isedgrid.core.chi2.compute_chi2", noisy)
        params = np.zeros(1, dtype=model_params_dtype(0))
        config = FitConfig(redshift=[0.1, 0.2])

        with pytest.warns(UserWarning, match="bad photometry"):
            chunk_chi2(
                np.ones((1, 3)), np.ones((1, 3)), np.array([0.0]), np.array([5.0]),
                np.ones((1, 2, 3)), params, config,
            )
