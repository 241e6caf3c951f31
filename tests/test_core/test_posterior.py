#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
Tests for posterior construction from chi-square grids.
"""

import numpy as np
import numpy.testing as npt
import pytest

from isedgrid.core.chi2 import SENTINEL_CHI2
from isedgrid.core.posterior import (
    build_chunk_posteriors,
    build_posterior,
    chi2_weights,
    derived_quantities,
)
from isedgrid.core.records import POSTERIOR_QUANTITIES, model_params_dtype


@pytest.fixture
def params():
    """Parameters of four models in two chunks."""
    p = np.zeros(4, dtype=model_params_dtype(2))
    p["chunkindx"] = [0, 0, 1, 1]
    p["modelindx"] = [0, 1, 0, 1]
    p["age"] = [1.0, 2.0, 3.0, 4.0]
    p["tau"] = [0.5, 1.0, 1.5, 2.0]
    p["zmetal"] = [0.004, 0.008, 0.019, 0.03]
    p["av"] = [0.1, 0.2, 0.3, 0.4]
    p["mu"] = 0.3
    p["nburst"] = [0, 1, 2, 0]
    p["tburst"][1, 0] = 0.5
    p["tburst"][2, :] = [0.3, 1.2]
    p["fburst"][2, :] = [0.1, 0.2]
    p["mstar"] = [0.5, 0.6, 0.7, 0.8]
    p["sfr"] = [0.1, 0.0, 0.3, 0.4]
    p["sfr100"] = [0.1, 0.2, 0.3, 0.4]
    p["b100"] = 0.1
    p["ewoii"] = [10.0, 20.0, 30.0, 40.0]
    return p


class TestChi2Weights:
    """Tests for likelihood weights."""

    def test_large_chi2_stable(self):
        """Weights stay finite for large chi-square values."""
        w = chi2_weights(np.array([1000.0, 1001.0, 2000.0]))

        assert np.all(np.isfinite(w))
        npt.assert_allclose(np.sum(w), 1.0)
        npt.assert_allclose(w[1] / w[0], np.exp(-0.5))

    def test_sentinels_get_zero_weight(self):
        """Flagged models carry no weight."""
        w = chi2_weights(np.array([2.0, SENTINEL_CHI2, 4.0]))
        assert w[1] == 0.0
        npt.assert_allclose(np.sum(w), 1.0)

    def test_explicit_valid_mask(self):
        """The valid mask overrides the sentinel test."""
        w = chi2_weights(np.array([2.0, 3.0]), valid=np.array([False, True]))
        npt.assert_array_equal(w, [0.0, 1.0])

    def test_nothing_valid(self):
        """No valid model gives no weights."""
        assert chi2_weights(np.full(3, SENTINEL_CHI2)) is None


class TestDerivedQuantities:
    """Tests for per-model posterior quantities."""

    def test_scaled_quantities_are_logged(self, params):
        """Masses and star formation rates scale with the model scale."""
        scale = np.array([1e10, 2e10, 3e10, 4e10])
        values = derived_quantities(params, scale)

        npt.assert_allclose(values["mstar"], np.log10(scale * params["mstar"]))
        assert np.isnan(values["sfr"][1])
        npt.assert_allclose(values["age"], params["age"])
        assert set(values) == set(POSTERIOR_QUANTITIES)


class TestBuildPosterior:
    """Tests for the per-galaxy posterior."""

    def test_best_fit_is_minimum(self, params):
        """The best model has the smallest chi-square among valid models."""
        chi2 = np.array([5.0, 1.0, 3.0, 0.5])
        scale = np.array([1e10, 2e10, 3e10, 0.0])
        scale_err = np.array([1e8, 1e8, 1e8, 0.0])
        bestflux = np.array([1.0, 2.0, 3.0])

        record, draws = build_posterior(
            chi2, scale, scale_err, params, bestflux, 200, np.random.default_rng(1)
        )

        assert record.shape == (1,)
        assert record["chi2"][0] == 1.0
        assert record["chunkindx"][0] == 0
        assert record["modelindx"][0] == 1
        assert record["scale"][0] == 2e10
        assert record["nburst"][0] == 1
        npt.assert_allclose(record["tburst"][0], [0.5, 0.0])
        npt.assert_allclose(record["bestmaggies"][0], 2e10 * bestflux)
        npt.assert_allclose(record["mstar"][0], np.log10(2e10 * 0.6))
        # Zero star formation cannot be logged.
        assert record["sfr"][0] == -1.0

        # The flagged model is never drawn.
        assert len(draws) == 200
        assert not np.any((draws["chunkindx"] == 1) & (draws["modelindx"] == 1))
        assert set(np.unique(draws["chi2"])) <= {5.0, 1.0, 3.0}

    def test_ties_pick_first_model(self, params):
        """Equal chi-square values resolve to the first model."""
        record, _ = build_posterior(
            np.array([2.0, 2.0, 2.0, 2.0]),
            np.ones(4),
            np.ones(4),
            params,
            np.ones(2),
            10,
            np.random.default_rng(0),
        )
        assert record["modelindx"][0] == 0
        assert record["chunkindx"][0] == 0

    def test_single_valid_model(self, params):
        """A single valid model gives zero posterior width."""
        chi2 = np.array([SENTINEL_CHI2, SENTINEL_CHI2, 7.0, SENTINEL_CHI2])
        scale = np.array([0.0, 0.0, 1e9, 0.0])
        scale_err = np.array([0.0, 0.0, 1e7, 0.0])

        record, draws = build_posterior(
            chi2, scale, scale_err, params, np.ones(3), 50, np.random.default_rng(2)
        )

        for q in POSTERIOR_QUANTITIES:
            assert record[f"{q}_err"][0] == 0.0
            npt.assert_allclose(record[f"{q}_50"][0], record[f"{q}_avg"][0])
        npt.assert_allclose(record["age_50"][0], 3.0)
        npt.assert_allclose(record["mstar_50"][0], np.log10(1e9 * 0.7))
        npt.assert_array_equal(draws["chi2"], 7.0)
        npt.assert_array_equal(draws["chunkindx"], 1)
        npt.assert_array_equal(draws["modelindx"], 0)

    def test_no_valid_model(self, params):
        """Galaxies without any fit keep sentinel values."""
        record, draws = build_posterior(
            np.full(4, SENTINEL_CHI2),
            np.zeros(4),
            np.zeros(4),
            params,
            np.ones(3),
            20,
            np.random.default_rng(0),
        )

        assert record["chi2"][0] == SENTINEL_CHI2
        assert record["modelindx"][0] == -1
        assert record["mstar_50"][0] == -1.0
        npt.assert_array_equal(record["bestmaggies"][0], -1.0)
        npt.assert_array_equal(draws["modelindx"], -1)
        npt.assert_array_equal(draws["chi2"], SENTINEL_CHI2)

    def test_posterior_summary(self, params):
        """Median and mean follow the likelihood weights."""
        chi2 = np.array([0.0, 0.0, 100.0, 100.0])
        scale = np.ones(4)
        scale_err = np.ones(4)

        record, _ = build_posterior(
            chi2, scale, scale_err, params, np.ones(3), 10, np.random.default_rng(3)
        )

        # Only the first two models carry weight.
        npt.assert_allclose(record["age_avg"][0], 1.5, rtol=1e-6)
        npt.assert_allclose(record["age_50"][0], 1.5, rtol=1e-6)
        assert 0.0 < record["age_err"][0] < 1.0

    def test_draws_reproducible(self, params):
        """The same generator seed gives the same draws."""
        chi2 = np.array([1.0, 2.0, 3.0, 4.0])
        args = (chi2, np.ones(4), np.ones(4), params, np.ones(3), 30)
        _, a = build_posterior(*args, rng=np.random.default_rng(9))
        _, b = build_posterior(*args, rng=np.random.default_rng(9))
        npt.assert_array_equal(a, b)


class TestBuildChunkPosteriors:
    """Tests for chunk-level posterior construction."""

    def test_chunk(self, params):
        """Galaxies are processed independently."""
        chi2 = np.array([[3.0, 1.0, 2.0, 4.0], np.full(4, SENTINEL_CHI2)])
        scale = np.array([np.ones(4), np.zeros(4)])
        scale_err = np.array([np.ones(4), np.zeros(4)])
        rngs = [np.random.default_rng(i) for i in range(2)]

        records, draws = build_chunk_posteriors(
            chi2, scale, scale_err, params, np.ones((2, 3)), 15, rngs
        )

        assert records.shape == (2,)
        assert draws.shape == (2, 15)
        assert records["modelindx"][0] == 1
        assert records["modelindx"][1] == -1
        npt.assert_array_equal(draws["modelindx"][1], -1)
