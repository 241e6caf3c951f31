#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
Exceptions raised by isedgrid.

All fatal input problems derive from `ISEDFitError`, which is itself a
`ValueError`, so callers that already guard against bad inputs with
``except ValueError`` keep working.
"""

__all__ = [
    "ISEDFitError",
    "ShapeMismatchError",
    "InvalidValueError",
    "GridBoundsError",
    "OutputExistsError",
]


class ISEDFitError(ValueError):
    """Base class for fatal errors that abort a fit before any output."""


class ShapeMismatchError(ISEDFitError):
    """Flux, inverse-variance, redshift or model arrays disagree in size."""


class InvalidValueError(ISEDFitError):
    """Non-finite photometry, non-positive redshift or a malformed grid."""


class GridBoundsError(ISEDFitError):
    """
    The model redshift grid cannot serve the input sample.

    Raised when the grid is not strictly increasing or when a galaxy
    redshift falls outside its span. The model grid has to be rebuilt
    with wider coverage in the latter case.
    """


class OutputExistsError(ISEDFitError):
    """An output file is already present and overwriting was not requested."""
