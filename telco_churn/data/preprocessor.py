"""
Data Preprocessor Module
========================

Validates raw customer rows and normalizes them into canonical records.
Rows that cannot be modeled are excluded, never imputed.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional

import numpy as np
import pandas as pd
from loguru import logger

from config import get_config
from telco_churn.data.schema import (
    CustomerRecord,
    RecordsLike,
    canonicalize_columns,
    records_to_frame,
)
from telco_churn.exceptions import DataIntegrityError, SchemaMismatchError


@dataclass(frozen=True)
class CleaningReport:
    """Retained/excluded row counts for one cleaning pass."""

    total: int
    retained: int
    excluded: int
    reasons: Dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> Dict:
        return {
            "total": self.total,
            "retained": self.retained,
            "excluded": self.excluded,
            "reasons": dict(self.reasons),
        }


@dataclass(frozen=True, eq=False)
class CleaningResult:
    """Cleaned records plus the report describing what was dropped."""

    frame: pd.DataFrame
    report: CleaningReport

    def __len__(self) -> int:
        return len(self.frame)

    def to_records(self) -> List[CustomerRecord]:
        """Return the cleaned rows as typed records."""
        return [CustomerRecord.model_validate(row) for row in self.frame.to_dict("records")]


def _strip_strings(series: pd.Series) -> pd.Series:
    return series.map(lambda v: v.strip() if isinstance(v, str) else v)


def _to_numeric(series: pd.Series) -> pd.Series:
    if pd.api.types.is_numeric_dtype(series):
        return series.astype(float)
    return pd.to_numeric(_strip_strings(series), errors="coerce").astype(float)


class DataPreprocessor:
    """Clean raw customer records for churn modeling."""

    def __init__(self, config: Optional[dict] = None):
        """
        Initialize DataPreprocessor.

        Args:
            config: Configuration dictionary
        """
        self.config = config or get_config()
        self.data_config = self.config.get("data", {})
        self.feature_config = self.config.get("features", {})

        self.categorical_features = list(self.feature_config.get("categorical", []))
        self.numerical_features = list(self.feature_config.get("numerical", []))
        self.monetary_column = self.feature_config.get("monetary_column", "total_charges")
        self.tenure_column = self.feature_config.get("tenure_column", "tenure")
        self.target_column = self.data_config.get("target_column", "churn")
        self.id_column = self.data_config.get("id_column", "customer_id")
        self.positive_label = self.data_config.get("positive_label", "Yes")
        self.negative_label = self.data_config.get("negative_label", "No")
        self.column_aliases = self.data_config.get("column_aliases", {})

    @property
    def required_columns(self) -> List[str]:
        return self.categorical_features + self.numerical_features + [self.target_column]

    def clean_data(self, raw: RecordsLike) -> CleaningResult:
        """
        Clean raw records.

        Args:
            raw: DataFrame or iterable of per-customer mappings

        Returns:
            CleaningResult with the canonical frame and retained/excluded counts

        Raises:
            DataIntegrityError: no input rows, or no row survives cleaning
            SchemaMismatchError: a configured column is absent from the input
        """
        df = records_to_frame(raw)
        if len(df) == 0:
            raise DataIntegrityError("No customer records supplied; nothing to model")

        logger.info("Starting data cleaning...")
        df = canonicalize_columns(df, self.column_aliases)

        missing = [col for col in self.required_columns if col not in df.columns]
        if missing:
            raise SchemaMismatchError(f"Raw records are missing required columns: {missing}")

        if self.id_column in df.columns:
            logger.debug(f"Dropped identifier column: {self.id_column}")
        extra = [col for col in df.columns if col not in self.required_columns and col != self.id_column]
        if extra:
            logger.debug(f"Ignoring unconfigured columns: {extra}")
        df = df[self.required_columns].copy()

        total = len(df)
        reasons: Dict[str, int] = {}

        def exclude(mask: pd.Series, reason: str) -> pd.DataFrame:
            count = int(mask.sum())
            if count:
                reasons[reason] = reasons.get(reason, 0) + count
            return df.loc[~mask].copy()

        # Blank totals are unusable, not missing-at-random
        df[self.monetary_column] = _to_numeric(df[self.monetary_column])
        df = exclude(df[self.monetary_column].isna(), f"unparseable_{self.monetary_column}")

        for col in self.numerical_features:
            if col != self.monetary_column:
                df[col] = _to_numeric(df[col])

        blank = pd.Series(False, index=df.index)
        for col in self.categorical_features + [self.target_column]:
            blank |= df[col].map(lambda v: isinstance(v, str) and not v.strip()).astype(bool)
        df = exclude(df.isna().any(axis=1) | blank, "missing_values")

        tenure = df[self.tenure_column]
        df = exclude((tenure < 0) | (tenure != np.floor(tenure)), f"invalid_{self.tenure_column}")

        df[self.target_column] = self._normalize_target(df[self.target_column])
        df = exclude(df[self.target_column].isna(), f"invalid_{self.target_column}")

        df = self._normalize_types(df).reset_index(drop=True)

        retained = len(df)
        report = CleaningReport(
            total=total,
            retained=retained,
            excluded=total - retained,
            reasons=reasons,
        )

        if report.excluded:
            logger.warning(f"Excluded {report.excluded} of {total} records: {reasons}")
        logger.info(f"Data cleaned: {retained} retained, {report.excluded} excluded")

        if retained == 0:
            raise DataIntegrityError(f"All {total} records were excluded during cleaning: {reasons}")

        return CleaningResult(frame=df, report=report)

    def _normalize_target(self, target: pd.Series) -> pd.Series:
        """Map target values onto the configured Yes/No labels; unknown values become NaN."""
        mapping = {
            self.positive_label: self.positive_label,
            self.negative_label: self.negative_label,
            1: self.positive_label,
            0: self.negative_label,
            True: self.positive_label,
            False: self.negative_label,
        }
        return _strip_strings(target).map(lambda v: mapping.get(v, np.nan))

    def _normalize_types(self, df: pd.DataFrame) -> pd.DataFrame:
        df = df.copy()
        for col in self.categorical_features:
            values = df[col]
            if pd.api.types.is_float_dtype(values) and (values == np.floor(values)).all():
                values = values.astype(int)
            df[col] = values.astype(str).str.strip().astype(object)

        for col in self.numerical_features:
            df[col] = df[col].astype(float)
        df[self.tenure_column] = df[self.tenure_column].astype(int)
        df[self.target_column] = df[self.target_column].astype(object)
        return df
