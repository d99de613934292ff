"""Shared fixtures: configuration and synthetic Telco-shaped customer tables."""

import copy

import numpy as np
import pandas as pd
import pytest

from config import get_config

CONTRACTS = ["Month-to-month", "One year", "Two year"]
YES_NO = ["Yes", "No"]
INTERNET = ["DSL", "Fiber optic", "No"]
ADDON = ["Yes", "No", "No internet service"]
PAYMENT = [
    "Electronic check",
    "Mailed check",
    "Bank transfer (automatic)",
    "Credit card (automatic)",
]


def make_raw_frame(n=1000, seed=0, signal="contract", noise_column=None):
    """
    Build a raw Telco-style table (original headers, string TotalCharges).

    signal="contract": churn is Yes exactly for month-to-month contracts.
    signal=None: churn is drawn independently of every attribute.
    """
    rng = np.random.default_rng(seed)
    tenure = rng.integers(0, 73, n)
    monthly = np.round(rng.uniform(18.0, 120.0, n), 2)
    total = np.round(monthly * np.maximum(tenure, 1), 2)
    contract = rng.choice(CONTRACTS, n, p=[0.5, 0.25, 0.25])

    if signal == "contract":
        churn = np.where(contract == "Month-to-month", "Yes", "No")
    else:
        churn = rng.choice(YES_NO, n, p=[0.3, 0.7])

    df = pd.DataFrame({
        "customerID": [f"{i:04d}-ABCDE" for i in range(n)],
        "gender": rng.choice(["Male", "Female"], n),
        "SeniorCitizen": rng.integers(0, 2, n),
        "Partner": rng.choice(YES_NO, n),
        "Dependents": rng.choice(YES_NO, n),
        "tenure": tenure,
        "PhoneService": rng.choice(YES_NO, n),
        "MultipleLines": rng.choice(["Yes", "No", "No phone service"], n),
        "InternetService": rng.choice(INTERNET, n),
        "OnlineSecurity": rng.choice(ADDON, n),
        "OnlineBackup": rng.choice(ADDON, n),
        "DeviceProtection": rng.choice(ADDON, n),
        "TechSupport": rng.choice(ADDON, n),
        "StreamingTV": rng.choice(ADDON, n),
        "StreamingMovies": rng.choice(ADDON, n),
        "Contract": contract,
        "PaperlessBilling": rng.choice(YES_NO, n),
        "PaymentMethod": rng.choice(PAYMENT, n),
        "MonthlyCharges": monthly,
        "TotalCharges": [f"{v:.2f}" for v in total],
        "Churn": churn,
    })
    if noise_column:
        df[noise_column] = rng.normal(size=n)
    return df


@pytest.fixture
def config():
    """Project configuration tuned for fast, single-process tests."""
    cfg = copy.deepcopy(get_config())
    cfg["models"]["random_forest"]["params"]["n_estimators"] = 100
    cfg["models"]["random_forest"]["params"]["n_jobs"] = 1
    cfg["explainer"]["n_jobs"] = 1
    cfg["explainer"]["n_repeats"] = 5
    return cfg


@pytest.fixture
def raw_factory():
    return make_raw_frame


@pytest.fixture
def raw_frame():
    return make_raw_frame(n=400, seed=1)
