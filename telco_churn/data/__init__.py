"""Data module for loading, cleaning and splitting customer records."""

from .data_loader import DataLoader, Split
from .preprocessor import CleaningReport, CleaningResult, DataPreprocessor
from .schema import CustomerRecord, canonicalize_columns

__all__ = [
    "DataLoader",
    "Split",
    "DataPreprocessor",
    "CleaningReport",
    "CleaningResult",
    "CustomerRecord",
    "canonicalize_columns",
]
