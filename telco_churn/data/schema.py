"""
Record Schema
=============

Typed canonical form of a single customer account snapshot.
"""

import re
from typing import Any, Iterable, Mapping, Optional, Union

import pandas as pd
from pydantic import BaseModel, ConfigDict, Field, field_validator

RecordsLike = Union[pd.DataFrame, Iterable[Union[Mapping[str, Any], BaseModel]]]


class CustomerRecord(BaseModel):
    """Schema for a cleaned customer record."""

    # Extra configured attributes pass through untouched
    model_config = ConfigDict(extra="allow", frozen=True)

    gender: str
    senior_citizen: str
    partner: str
    dependents: str
    tenure: int = Field(..., ge=0, description="Months the customer has held the service")
    phone_service: str
    multiple_lines: str
    internet_service: str
    online_security: str
    online_backup: str
    device_protection: str
    tech_support: str
    streaming_tv: str
    streaming_movies: str
    contract: str
    paperless_billing: str
    payment_method: str
    monthly_charges: float = Field(..., ge=0)
    total_charges: float = Field(..., ge=0)

    # Absent on records submitted for scoring
    churn: Optional[str] = None

    @field_validator(
        "gender", "senior_citizen", "partner", "dependents", "phone_service",
        "multiple_lines", "internet_service", "online_security", "online_backup",
        "device_protection", "tech_support", "streaming_tv", "streaming_movies",
        "contract", "paperless_billing", "payment_method",
        mode="before",
    )
    @classmethod
    def coerce_categorical(cls, v):
        if v is None:
            raise ValueError("categorical attribute is missing")
        return str(v)

    @field_validator("churn")
    @classmethod
    def validate_churn(cls, v):
        allowed = ["Yes", "No"]
        if v is not None and v not in allowed:
            raise ValueError(f"churn must be one of {allowed}")
        return v


def to_snake_case(name: str) -> str:
    """Convert a CamelCase / mixed header to snake_case."""
    name = re.sub(r"([a-z0-9])([A-Z])", r"\1_\2", name.strip())
    name = re.sub(r"([A-Z]+)([A-Z][a-z])", r"\1_\2", name)
    return re.sub(r"[\s\-]+", "_", name).lower()


def canonicalize_columns(df: pd.DataFrame, aliases: Optional[Mapping[str, str]] = None) -> pd.DataFrame:
    """
    Rename raw headers to canonical names.

    Known headers are mapped through ``aliases``; anything else is converted
    to snake_case.
    """
    aliases = aliases or {}
    mapping = {col: aliases.get(col, to_snake_case(str(col))) for col in df.columns}
    return df.rename(columns=mapping)


def records_to_frame(records: RecordsLike) -> pd.DataFrame:
    """Materialize records (DataFrame, mappings or pydantic models) as a DataFrame."""
    if isinstance(records, pd.DataFrame):
        return records.copy()

    rows = []
    for record in records:
        if isinstance(record, BaseModel):
            rows.append(record.model_dump(exclude_none=True))
        else:
            rows.append(dict(record))
    return pd.DataFrame(rows)
