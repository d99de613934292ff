"""Features module for building modeling-ready feature sets."""

from .feature_engineer import (
    FeatureEngineer,
    FeatureSchema,
    FeatureSet,
    TENURE_GROUP,
    assign_tenure_group,
)

__all__ = ["FeatureEngineer", "FeatureSchema", "FeatureSet", "TENURE_GROUP", "assign_tenure_group"]
