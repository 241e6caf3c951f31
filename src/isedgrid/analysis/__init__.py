#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
isedgrid analysis module: Fitting workflows.

This module contains the driver that fits galaxy samples against chunked
model grids and assembles the per-galaxy results.
"""

from .fitting import ISEDFit, fit_many

__all__ = [
    # Galaxy fitting
    "ISEDFit",
    "fit_many",
]
