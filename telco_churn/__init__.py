"""
Telco Churn
===========

Churn modeling core for subscription customers: record cleaning, feature
construction, stratified splitting, two classifier families, evaluation
and permutation-based explanation.

Modules:
    - data: Record schema, cleaning, loading and splitting
    - features: Feature construction
    - models: Training, evaluation and explanation
    - pipeline: End-to-end batch run
    - utils: Utility functions
"""

__version__ = "1.0.0"
