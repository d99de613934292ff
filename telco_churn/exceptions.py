"""
Exceptions
==========

Error taxonomy shared by every stage of the modeling pipeline.
"""

from typing import Optional


class ChurnModelingError(Exception):
    """Base class for all modeling pipeline errors."""


class DataIntegrityError(ChurnModelingError, ValueError):
    """Input data cannot be modeled: empty, unparseable or single-class."""


class SchemaMismatchError(ChurnModelingError, ValueError):
    """Columns or code tables disagree with the expected feature schema."""


class FitError(ChurnModelingError, RuntimeError):
    """A model family failed to fit."""

    def __init__(self, model_family: str, message: str, cause: Optional[BaseException] = None):
        self.model_family = model_family
        self.cause = cause
        super().__init__(f"[{model_family}] {message}")
