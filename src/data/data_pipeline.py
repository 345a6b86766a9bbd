"""
Data loading and training-set preparation.
Handles the external mock-data file and in-memory simulation when no
dataset is available.
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

import numpy as np
import pandas as pd

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", ".."))
from configs.config import (
    DEFAULT_DATA_PATH,
    FEATURE_NAMES,
    SYNTHETIC_FEATURE_RANGES,
    SYNTHETIC_TRAINING_SAMPLES,
    TARGET_COLUMN,
)
from src.data.feature_extractor import CustomerFeatures, extract_features

logger = logging.getLogger(__name__)

SESSION_COLUMNS = ["customer_id", "started_at", "ended_at", "pages_viewed"]


@dataclass
class ExtendedDataset:
    """Customer records plus session history from the external data format."""

    customers: List[Dict[str, Any]]
    sessions: pd.DataFrame

    def __post_init__(self) -> None:
        self._by_id = {c.get("id"): c for c in self.customers}

    def customer_ids(self) -> List[Any]:
        return [c.get("id") for c in self.customers]

    def get_customer(self, customer_id: Any) -> Optional[Dict[str, Any]]:
        return self._by_id.get(customer_id)


def _records(value: Any) -> List[Dict[str, Any]]:
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, dict)]


def build_extended_dataset(raw: Dict[str, Any]) -> ExtendedDataset:
    """
    Wrap the ``customers`` / ``user_sessions`` sections of an external payload.
    Sections that are not lists, and entries that are not objects, are ignored.
    """
    customers = _records(raw.get("customers"))
    sessions = pd.DataFrame(_records(raw.get("user_sessions")))
    if sessions.empty:
        sessions = pd.DataFrame(columns=SESSION_COLUMNS)
    return ExtendedDataset(customers=customers, sessions=sessions)


def is_external_format(raw: Any) -> bool:
    """The external format is recognised by ``signup_date`` on the first customer."""
    if not isinstance(raw, dict):
        return False
    customers = raw.get("customers")
    if not isinstance(customers, list) or not customers:
        return False
    return isinstance(customers[0], dict) and "signup_date" in customers[0]


class CustomerDataLoader:
    """
    Reads the mock-data JSON file and exposes extended customer data.

    Only files in the external format (customers carrying ``signup_date``)
    yield extended data; anything else leaves the engine in synthetic mode.

    Parameters
    ----------
    data_path : str
        Location of the mock-data JSON file.
    """

    def __init__(self, data_path: str = DEFAULT_DATA_PATH) -> None:
        self.data_path = data_path
        self._extended: Optional[ExtendedDataset] = None

    def load(self) -> Optional[ExtendedDataset]:
        self._extended = None
        try:
            with open(self.data_path, "r", encoding="utf-8") as fh:
                raw = json.load(fh)
        except FileNotFoundError:
            logger.info("No mock data file found at %s, using default data", self.data_path)
            return None
        except (OSError, ValueError) as exc:
            logger.warning("Error loading mock data from %s: %s", self.data_path, exc)
            return None

        if is_external_format(raw):
            self._extended = build_extended_dataset(raw)
            logger.info(
                "External mock data loaded from %s (%d customers, %d sessions)",
                self.data_path,
                len(self._extended.customers),
                len(self._extended.sessions),
            )
        else:
            logger.info("Internal mock data found at %s, no extended data", self.data_path)
        return self._extended

    def reload(self) -> Optional[ExtendedDataset]:
        return self.load()

    def get_extended_data(self) -> Optional[ExtendedDataset]:
        return self._extended


def generate_synthetic_training_set(
    n_samples: int = SYNTHETIC_TRAINING_SAMPLES,
    random_state: Optional[int] = None,
) -> pd.DataFrame:
    """
    Sample feature vectors uniformly within plausible ranges and label them
    with a hand-authored linear churn heuristic.

        churn = clip(0.5 − health/200 + tickets/30 + days_since_login/120, 0, 1)

    Parameters
    ----------
    n_samples : int
        Number of synthetic customers.
    random_state : int, optional
        Seed for the generator; ``None`` draws fresh entropy.

    Returns
    -------
    pd.DataFrame
        One column per feature in ``FEATURE_NAMES`` plus ``TARGET_COLUMN``.
    """
    rng = np.random.default_rng(random_state)

    columns: Dict[str, np.ndarray] = {}
    for name in FEATURE_NAMES:
        low, high = SYNTHETIC_FEATURE_RANGES[name]
        if isinstance(low, int) and isinstance(high, int):
            columns[name] = rng.integers(low, high, size=n_samples)
        else:
            columns[name] = rng.uniform(low, high, size=n_samples)

    df = pd.DataFrame(columns, columns=FEATURE_NAMES)
    churn = (
        0.5
        - df["health_score"] / 200
        + df["support_tickets"] / 30
        + df["days_since_last_login"] / 120
    )
    df[TARGET_COLUMN] = churn.clip(0.0, 1.0)

    logger.info(
        "Generated synthetic training set: %d samples, mean churn label=%.4f",
        n_samples,
        df[TARGET_COLUMN].mean(),
    )
    return df


def build_training_set(
    dataset: ExtendedDataset,
    now: Optional[datetime] = None,
) -> Tuple[List[CustomerFeatures], np.ndarray]:
    """
    Extract features for every dataset customer and pair them with the
    customer's stored ``churn_risk`` as the regression target.
    """
    features = [extract_features(c, dataset.sessions, now=now) for c in dataset.customers]
    labels = pd.to_numeric(
        pd.Series([c.get(TARGET_COLUMN) for c in dataset.customers], dtype=object),
        errors="coerce",
    ).fillna(0.0)
    return features, labels.to_numpy(dtype=float)


def features_from_frame(df: pd.DataFrame) -> List[CustomerFeatures]:
    """Convert rows with ``FEATURE_NAMES`` columns into feature values."""
    return [CustomerFeatures.from_mapping(row) for row in df[FEATURE_NAMES].to_dict("records")]
