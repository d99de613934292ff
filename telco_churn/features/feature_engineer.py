"""
Feature Engineering Module
==========================

Turns cleaned customer records into modeling-ready feature sets:
categorical attributes become integer codes from a fixed code table and
numeric tenure is augmented with an ordinal ``tenure_group``.
"""

from dataclasses import dataclass
from typing import Dict, Optional, Sequence, Tuple, Union

import numpy as np
import pandas as pd
from loguru import logger

from config import get_config
from telco_churn.data.preprocessor import CleaningResult
from telco_churn.data.schema import RecordsLike, records_to_frame
from telco_churn.exceptions import DataIntegrityError, SchemaMismatchError

TENURE_GROUP = "tenure_group"
DEFAULT_TENURE_BINS = (0, 12, 24, 48, 60)
DEFAULT_TENURE_LABELS = ("0-12 Month", "12-24 Month", "24-48 Month", "48-60 Month", "> 60 Month")


def assign_tenure_group(tenure: pd.Series, bins: Sequence[float] = DEFAULT_TENURE_BINS) -> pd.Series:
    """
    Bucket tenure (months) into ordinal groups.

    Bins are closed-left/open-right; the last bin is unbounded above, so any
    tenure at or beyond the final edge falls into it.
    """
    edges = list(bins) + [np.inf]
    groups = pd.cut(tenure, bins=edges, right=False, labels=False)
    if groups.isna().any():
        bad = tenure[groups.isna()].unique().tolist()
        raise DataIntegrityError(f"Tenure values outside [{bins[0]}, inf): {bad}")
    return groups.astype(np.int64).rename(TENURE_GROUP)


@dataclass(frozen=True)
class FeatureSchema:
    """Column layout and categorical code tables fixed at fit time."""

    categorical: Tuple[str, ...]
    numerical: Tuple[str, ...]
    code_tables: Tuple[Tuple[str, Tuple[str, ...]], ...]

    @property
    def columns(self) -> Tuple[str, ...]:
        return self.categorical + self.numerical

    @property
    def code_table(self) -> Dict[str, Tuple[str, ...]]:
        return dict(self.code_tables)

    def levels(self, column: str) -> Tuple[str, ...]:
        try:
            return self.code_table[column]
        except KeyError:
            raise SchemaMismatchError(f"No code table for column '{column}'") from None

    def cardinality(self) -> Dict[str, int]:
        return {col: len(levels) for col, levels in self.code_tables}

    def check_frame(self, df: pd.DataFrame) -> pd.DataFrame:
        """
        Verify ``df`` carries exactly this schema's columns.

        Returns the frame with columns in schema order.

        Raises:
            SchemaMismatchError: on any missing or unexpected column
        """
        missing = [col for col in self.columns if col not in df.columns]
        unexpected = [col for col in df.columns if col not in self.columns]
        if missing or unexpected:
            raise SchemaMismatchError(
                f"Feature columns do not match schema (missing={missing}, unexpected={unexpected})"
            )
        return df[list(self.columns)]


@dataclass(frozen=True, eq=False)
class FeatureSet:
    """Modeling-ready features, the schema they were encoded with, and optional labels."""

    features: pd.DataFrame
    schema: FeatureSchema
    target: Optional[pd.Series] = None

    def __post_init__(self):
        if list(self.features.columns) != list(self.schema.columns):
            self.schema.check_frame(self.features)
            raise SchemaMismatchError("Feature columns are not in schema order")
        # Splitting selects rows by label
        if not self.features.index.is_unique:
            dupes = self.features.index[self.features.index.duplicated()].unique().tolist()
            raise DataIntegrityError(
                f"Feature rows must have a unique index; duplicated labels: {dupes[:10]}"
            )
        if self.target is not None and not self.target.index.equals(self.features.index):
            raise DataIntegrityError("Target index does not align with feature rows")

    def __len__(self) -> int:
        return len(self.features)

    @property
    def index(self) -> pd.Index:
        return self.features.index

    @property
    def labels(self) -> pd.Series:
        """Target labels; raises if this set was built without them."""
        if self.target is None:
            raise DataIntegrityError("Feature set carries no target labels")
        return self.target

    def subset(self, index: Union[pd.Index, Sequence]) -> "FeatureSet":
        target = self.target.loc[index] if self.target is not None else None
        return FeatureSet(features=self.features.loc[index], schema=self.schema, target=target)

    def class_counts(self) -> Dict[int, int]:
        counts = self.labels.value_counts()
        return {int(label): int(counts.get(label, 0)) for label in (0, 1)}

    @property
    def churn_rate(self) -> float:
        return float(self.labels.mean()) if len(self) else 0.0


class FeatureEngineer:
    """Build feature sets for churn prediction."""

    def __init__(self, config: Optional[dict] = None):
        """
        Initialize FeatureEngineer.

        Args:
            config: Configuration dictionary
        """
        self.config = config or get_config()
        self.feature_config = self.config.get("features", {})
        self.data_config = self.config.get("data", {})

        self.categorical_features = list(self.feature_config.get("categorical", []))
        self.numerical_features = list(self.feature_config.get("numerical", []))
        self.tenure_column = self.feature_config.get("tenure_column", "tenure")
        self.tenure_bins = tuple(self.feature_config.get("tenure_bins", DEFAULT_TENURE_BINS))
        self.tenure_labels = tuple(self.feature_config.get("tenure_labels", DEFAULT_TENURE_LABELS))
        self.target_column = self.data_config.get("target_column", "churn")
        self.positive_label = self.data_config.get("positive_label", "Yes")
        self.negative_label = self.data_config.get("negative_label", "No")

        if len(self.tenure_labels) != len(self.tenure_bins):
            raise ValueError("tenure_labels must have one label per tenure bin")

        self.schema: Optional[FeatureSchema] = None

    def _as_frame(self, records: Union[CleaningResult, RecordsLike]) -> pd.DataFrame:
        if isinstance(records, CleaningResult):
            return records.frame
        return records_to_frame(records)

    def fit(self, records: Union[CleaningResult, RecordsLike]) -> FeatureSchema:
        """
        Establish the code tables from the observed categorical levels.

        Args:
            records: Cleaned records

        Returns:
            The fitted FeatureSchema (also kept on ``self.schema``)
        """
        df = self._as_frame(records)
        if len(df) == 0:
            raise DataIntegrityError("Cannot build features from zero records")

        missing = [col for col in self.categorical_features + self.numerical_features if col not in df.columns]
        if missing:
            raise SchemaMismatchError(f"Records are missing feature columns: {missing}")

        code_tables = []
        for col in self.categorical_features:
            levels = tuple(sorted(df[col].astype(str).unique()))
            code_tables.append((col, levels))
            logger.debug(f"Code table for {col}: {levels}")
        code_tables.append((TENURE_GROUP, self.tenure_labels))

        self.schema = FeatureSchema(
            categorical=tuple(self.categorical_features) + (TENURE_GROUP,),
            numerical=tuple(self.numerical_features),
            code_tables=tuple(code_tables),
        )
        logger.info(f"Feature schema fitted: {len(self.schema.columns)} columns, cardinality={self.schema.cardinality()}")
        return self.schema

    def transform(
        self,
        records: Union[CleaningResult, RecordsLike],
        require_target: bool = True
    ) -> FeatureSet:
        """
        Encode records with the fitted code tables.

        Args:
            records: Cleaned records
            require_target: Whether the target column must be present

        Returns:
            FeatureSet with integer codes, numeric columns and 0/1 target
        """
        if self.schema is None:
            raise ValueError("FeatureEngineer not fitted. Call fit or fit_transform first.")

        df = self._as_frame(records)
        missing = [col for col in self.categorical_features + self.numerical_features if col not in df.columns]
        if missing:
            raise SchemaMismatchError(f"Records are missing feature columns: {missing}")
        if not df.index.is_unique:
            raise DataIntegrityError(
                "Records must have a unique index; reset it after concatenating batches"
            )

        features = pd.DataFrame(index=df.index)
        for col in self.categorical_features:
            features[col] = self._encode(df[col], col)
        features[TENURE_GROUP] = assign_tenure_group(df[self.tenure_column], self.tenure_bins)
        for col in self.numerical_features:
            features[col] = pd.to_numeric(df[col], errors="raise").astype(float)

        target = None
        if self.target_column in df.columns:
            target = self.encode_target(df[self.target_column])
        elif require_target:
            raise SchemaMismatchError(f"Records are missing target column '{self.target_column}'")

        return FeatureSet(features=features[list(self.schema.columns)], schema=self.schema, target=target)

    def fit_transform(self, records: Union[CleaningResult, RecordsLike]) -> FeatureSet:
        """Fit the code tables and encode the same records."""
        self.fit(records)
        return self.transform(records)

    def _encode(self, values: pd.Series, column: str) -> pd.Series:
        levels = self.schema.levels(column)
        as_str = values.astype(str)
        unknown = ~as_str.isin(list(levels))
        if unknown.any():
            unseen = sorted(set(as_str[unknown]))
            raise SchemaMismatchError(f"Column '{column}' has levels outside its code table: {unseen}")
        codes = pd.Index(levels).get_indexer(as_str)
        return pd.Series(codes.astype(np.int64), index=values.index, name=column)

    def encode_target(self, target: pd.Series) -> pd.Series:
        """Map Yes/No labels onto 1 (churn) / 0."""
        encoded = target.map({self.positive_label: 1, self.negative_label: 0})
        if encoded.isna().any():
            bad = sorted(set(target[encoded.isna()].astype(str)))
            raise DataIntegrityError(f"Unknown target labels: {bad}")
        return encoded.astype(np.int64).rename(self.target_column)

    def decode(self, feature_set: FeatureSet) -> pd.DataFrame:
        """Replace integer codes with their original levels (for reporting)."""
        df = feature_set.features.copy()
        for col in feature_set.schema.categorical:
            levels = np.asarray(feature_set.schema.levels(col), dtype=object)
            df[col] = levels[df[col].to_numpy()]
        return df
