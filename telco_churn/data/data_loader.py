"""
Data Loader Module
==================

Loads raw customer tables and partitions feature sets into train/test.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Dict, Optional, Union

import pandas as pd
from loguru import logger
from sklearn.model_selection import train_test_split

from config import RAW_DATA_DIR, get_config
from telco_churn.exceptions import DataIntegrityError

if TYPE_CHECKING:
    from telco_churn.features.feature_engineer import FeatureSet


@dataclass(frozen=True, eq=False)
class Split:
    """Disjoint train/test partition of one feature set."""

    train: "FeatureSet"
    test: "FeatureSet"
    train_size: float
    random_state: int

    def sizes(self) -> Dict[str, int]:
        return {"train": len(self.train), "test": len(self.test)}


class DataLoader:
    """Load raw customer data and split feature sets."""

    def __init__(self, config: Optional[dict] = None):
        """
        Initialize DataLoader.

        Args:
            config: Configuration dictionary. If None, loads from config.yaml
        """
        self.config = config or get_config()
        self.data_config = self.config.get("data", {})
        self.raw_data_path = RAW_DATA_DIR

    def load_raw_data(
        self,
        filename: Union[str, Path] = "WA_Fn-UseC_-Telco-Customer-Churn.csv",
        **kwargs
    ) -> pd.DataFrame:
        """
        Load raw data from a CSV, Excel or Parquet file.

        Relative names are resolved against data/raw/.

        Args:
            filename: Name of, or path to, the data file
            **kwargs: Additional arguments to pass to the pandas reader

        Returns:
            DataFrame containing raw data
        """
        file_path = Path(filename)
        if not file_path.is_absolute() and not file_path.exists():
            file_path = self.raw_data_path / file_path

        if not file_path.exists():
            logger.error(f"Data file not found: {file_path}")
            raise FileNotFoundError(f"Data file not found: {file_path}")

        logger.info(f"Loading data from {file_path}")

        ext = file_path.suffix.lower()
        if ext == ".csv":
            df = pd.read_csv(file_path, **kwargs)
        elif ext in [".xlsx", ".xls"]:
            df = pd.read_excel(file_path, **kwargs)
        elif ext == ".parquet":
            df = pd.read_parquet(file_path, **kwargs)
        else:
            raise ValueError(f"Unsupported file format: {ext}")

        logger.info(f"Loaded {len(df)} rows and {len(df.columns)} columns")
        return df

    def get_train_test_split(
        self,
        feature_set: "FeatureSet",
        train_size: Optional[float] = None,
        random_state: Optional[int] = None
    ) -> Split:
        """
        Split a feature set into stratified train and test partitions.

        Args:
            feature_set: Labelled feature set
            train_size: Fraction of each class assigned to train
            random_state: Random seed

        Returns:
            Split with disjoint train/test feature sets

        Raises:
            DataIntegrityError: if either class has fewer than 2 members
        """
        train_size = self.data_config.get("train_size", 0.8) if train_size is None else train_size
        random_state = self.data_config.get("random_state", 42) if random_state is None else random_state

        if not 0 < train_size < 1:
            raise ValueError(f"train_size must be in (0, 1), got {train_size}")

        counts = feature_set.class_counts()
        too_small = {label: n for label, n in counts.items() if n < 2}
        if too_small:
            raise DataIntegrityError(f"Cannot stratify: class counts below 2: {too_small}")

        try:
            train_idx, test_idx = train_test_split(
                feature_set.index,
                train_size=train_size,
                random_state=random_state,
                stratify=feature_set.labels
            )
        except ValueError as e:
            raise DataIntegrityError(f"Stratified split failed: {e}") from e

        split = Split(
            train=feature_set.subset(train_idx),
            test=feature_set.subset(test_idx),
            train_size=train_size,
            random_state=random_state,
        )

        logger.info(f"Train set: {len(split.train)} samples (churn rate {split.train.churn_rate:.3f})")
        logger.info(f"Test set: {len(split.test)} samples (churn rate {split.test.churn_rate:.3f})")

        return split
