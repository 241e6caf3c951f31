#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
isedgrid data module: Model grid, photometry and output file handling.
"""

# Model grid and photometry loading
from .loader import ModelGridReader, load_photometry, write_model_grid, write_photometry

# Output files
from .output import Chi2GridWriter, check_output, output_paths, read_results, write_results

__all__ = [
    # Loading
    "ModelGridReader",
    "write_model_grid",
    "load_photometry",
    "write_photometry",
    # Output
    "output_paths",
    "check_output",
    "write_results",
    "read_results",
    "Chi2GridWriter",
]
