import pandas as pd
import pytest

from telco_churn.data import CustomerRecord, DataPreprocessor, canonicalize_columns
from telco_churn.exceptions import DataIntegrityError, SchemaMismatchError


def test_blank_total_charges_row_is_excluded(config, raw_frame):
    raw = raw_frame.copy()
    raw.loc[3, "TotalCharges"] = ""
    raw.loc[7, "TotalCharges"] = " "

    result = DataPreprocessor(config).clean_data(raw)

    assert result.report.total == len(raw)
    assert result.report.excluded == 2
    assert result.report.retained == len(raw) - 2
    assert result.report.reasons == {"unparseable_total_charges": 2}
    assert len(result) == len(raw) - 2


def test_total_charges_whitespace_is_trimmed(config, raw_frame):
    raw = raw_frame.copy()
    raw.loc[0, "TotalCharges"] = "  29.85 "

    result = DataPreprocessor(config).clean_data(raw)

    assert result.report.excluded == 0
    assert result.frame.loc[0, "total_charges"] == pytest.approx(29.85)
    assert result.frame["total_charges"].dtype == float


def test_identifier_is_dropped_and_headers_canonical(config, raw_frame):
    result = DataPreprocessor(config).clean_data(raw_frame)

    assert "customer_id" not in result.frame.columns
    assert "customerID" not in result.frame.columns
    assert {"senior_citizen", "streaming_tv", "monthly_charges", "churn"} <= set(result.frame.columns)
    assert not result.frame.isna().any().any()


def test_cleaning_is_idempotent(config, raw_frame):
    raw = raw_frame.copy()
    raw.loc[5, "TotalCharges"] = ""
    preprocessor = DataPreprocessor(config)

    first = preprocessor.clean_data(raw)
    second = preprocessor.clean_data(first.frame)

    pd.testing.assert_frame_equal(first.frame, second.frame)
    assert second.report.excluded == 0


def test_missing_categorical_and_bad_target_are_excluded(config, raw_frame):
    raw = raw_frame.copy()
    raw.loc[1, "Contract"] = None
    raw.loc[2, "PaymentMethod"] = "   "
    raw.loc[4, "Churn"] = "Maybe"
    raw.loc[6, "tenure"] = -3

    result = DataPreprocessor(config).clean_data(raw)

    assert result.report.reasons == {
        "missing_values": 2,
        "invalid_tenure": 1,
        "invalid_churn": 1,
    }
    assert result.report.retained == len(raw) - 4


def test_numeric_target_is_mapped_to_labels(config, raw_frame):
    raw = raw_frame.copy()
    raw["Churn"] = (raw["Churn"] == "Yes").astype(int)

    result = DataPreprocessor(config).clean_data(raw)

    assert set(result.frame["churn"]) == {"Yes", "No"}


def test_accepts_iterable_of_mappings(config, raw_frame):
    records = raw_frame.head(20).to_dict("records")

    result = DataPreprocessor(config).clean_data(records)

    assert result.report.retained == 20
    typed = result.to_records()
    assert isinstance(typed[0], CustomerRecord)
    assert typed[0].senior_citizen in {"0", "1"}


def test_empty_input_is_an_error(config):
    with pytest.raises(DataIntegrityError):
        DataPreprocessor(config).clean_data(pd.DataFrame())

    with pytest.raises(DataIntegrityError):
        DataPreprocessor(config).clean_data([])


def test_all_rows_excluded_is_an_error(config, raw_frame):
    raw = raw_frame.head(5).copy()
    raw["TotalCharges"] = ""

    with pytest.raises(DataIntegrityError):
        DataPreprocessor(config).clean_data(raw)


def test_missing_configured_column_is_a_schema_error(config, raw_frame):
    with pytest.raises(SchemaMismatchError):
        DataPreprocessor(config).clean_data(raw_frame.drop(columns=["Contract"]))


def test_canonicalize_columns_snake_cases_unknown_headers():
    df = pd.DataFrame(columns=["customerID", "StreamingTV", "SomeNewField"])

    renamed = canonicalize_columns(df, {"customerID": "customer_id"})

    assert list(renamed.columns) == ["customer_id", "streaming_tv", "some_new_field"]
