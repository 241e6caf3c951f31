#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
isedgrid utilities module: Cosmology, photometric and sampling utilities.
"""

# Cosmology and redshift-grid helpers
from .cosmology import (
    check_redshift_bounds,
    check_redshift_grid,
    max_model_age,
    redshift_index,
    universe_age,
)

# Photometry functions
from .photometry import err2ivar, ivar2err, mag2maggies, maggies2mag

# Sampling utilities
from .sampling import draw_indices, quantile, weighted_summary

__all__ = [
    # Cosmology
    "universe_age",
    "max_model_age",
    "check_redshift_grid",
    "check_redshift_bounds",
    "redshift_index",
    # Photometry
    "maggies2mag",
    "mag2maggies",
    "err2ivar",
    "ivar2err",
    # Sampling
    "quantile",
    "weighted_summary",
    "draw_indices",
]
