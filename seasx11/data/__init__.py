"""Input preparation and validation."""

from .preprocessors import SeriesPreprocessor, fill_holes
from .validators import SeriesValidator, ValidationReport

__all__ = [
    "SeriesPreprocessor",
    "fill_holes",
    "SeriesValidator",
    "ValidationReport",
]
