"""
Customer feature extraction.

Turns a raw customer record (plus optional session history) into the
fixed-width ``CustomerFeatures`` vector consumed by the tree ensemble and the
intervention agent. Missing source fields are defaulted rather than propagated,
so every vector has the same arity and positional layout.
"""
from __future__ import annotations

import math
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional

import numpy as np
import pandas as pd

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", ".."))
from configs.config import (
    DEFAULT_NPS_SCORE,
    DEFAULT_PLAN_VALUE,
    FEATURE_NAMES,
    FEATURE_USAGE_WEIGHTS,
    NEVER_LOGGED_IN_DAYS,
    PLAN_VALUES,
)

_SECONDS_PER_DAY = 60 * 60 * 24


@dataclass(frozen=True)
class CustomerFeatures:
    """Numeric summary of one customer. Field order matches ``FEATURE_NAMES``."""

    health_score: float
    nps_score: float
    support_tickets: int
    feature_usage_total: float
    days_since_signup: int
    days_since_last_login: int
    mrr: float
    plan_value: int
    session_count: float = 0.0
    avg_session_duration: float = 0.0
    total_pages_viewed: float = 0.0

    def to_array(self) -> np.ndarray:
        return np.array([getattr(self, name) for name in FEATURE_NAMES], dtype=float)

    def to_dict(self) -> Dict[str, float]:
        return asdict(self)

    @classmethod
    def from_mapping(cls, values: Mapping[str, Any]) -> "CustomerFeatures":
        """Build from a feature-name mapping; absent or non-numeric fields become 0."""
        return cls(**{name: _as_number(values.get(name)) for name in FEATURE_NAMES})


def _as_number(value: Any, default: float = 0.0) -> float:
    if value is None:
        return default
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    if math.isnan(number) or math.isinf(number):
        return default
    return number


def _as_timestamp(value: Any) -> Optional[pd.Timestamp]:
    if value is None or value == "":
        return None
    ts = pd.to_datetime(value, utc=True, errors="coerce")
    if pd.isna(ts):
        return None
    return ts


def _days_between(start: pd.Timestamp, end: pd.Timestamp) -> int:
    return int(math.floor((end - start).total_seconds() / _SECONDS_PER_DAY))


def encode_plan(plan: Any) -> int:
    return PLAN_VALUES.get(str(plan) if plan is not None else "", DEFAULT_PLAN_VALUE)


def weighted_feature_usage(usage: Optional[Mapping[str, Any]]) -> float:
    """
    Sum the usage counters with the risk-indicating weights from the config.

    For each weighted term the first alias present (and non-zero) in ``usage``
    supplies the value, so both ``featureA`` and ``login`` style payloads work.
    """
    if not isinstance(usage, Mapping):
        return 0.0

    total = 0.0
    for aliases, weight in FEATURE_USAGE_WEIGHTS:
        value = 0.0
        for alias in aliases:
            value = _as_number(usage.get(alias))
            if value:
                break
        total += value * weight
    return total


def summarize_sessions(
    customer_id: Any,
    sessions: Optional[pd.DataFrame],
) -> Dict[str, float]:
    """
    Aggregate one customer's sessions.

    Returns session_count, avg_session_duration (minutes) and
    total_pages_viewed; all zero when there is no history.
    """
    empty = {"session_count": 0.0, "avg_session_duration": 0.0, "total_pages_viewed": 0.0}
    if sessions is None or sessions.empty or "customer_id" not in sessions.columns:
        return empty

    own = sessions[sessions["customer_id"] == customer_id]
    if own.empty:
        return empty

    if {"started_at", "ended_at"} <= set(own.columns):
        started = pd.to_datetime(own["started_at"], utc=True, errors="coerce")
        ended = pd.to_datetime(own["ended_at"], utc=True, errors="coerce")
        minutes = ((ended - started).dt.total_seconds() / 60.0).fillna(0.0)
    else:
        minutes = pd.Series(0.0, index=own.index)

    if "pages_viewed" in own.columns:
        pages = pd.to_numeric(own["pages_viewed"], errors="coerce").fillna(0.0)
    else:
        pages = pd.Series(0.0, index=own.index)

    return {
        "session_count": float(len(own)),
        "avg_session_duration": float(minutes.mean()),
        "total_pages_viewed": float(pages.sum()),
    }


def extract_features(
    customer: Mapping[str, Any],
    sessions: Optional[pd.DataFrame] = None,
    now: Optional[datetime] = None,
) -> CustomerFeatures:
    """
    Convert a raw customer record into ``CustomerFeatures``.

    Parameters
    ----------
    customer : mapping
        Record in the external mock-data format (``health_score``,
        ``nps_score``, ``support_tickets``, ``feature_usage``, ``mrr``,
        ``plan``, ``signup_date``, ``last_login``).
    sessions : pd.DataFrame, optional
        Session history with ``customer_id``, ``started_at``, ``ended_at``
        and ``pages_viewed`` columns.
    now : datetime, optional
        Reference time for day differences. Defaults to the current UTC time.

    Returns
    -------
    CustomerFeatures
    """
    reference = pd.Timestamp(now or datetime.now(timezone.utc))
    if reference.tzinfo is None:
        reference = reference.tz_localize("UTC")

    signup = _as_timestamp(customer.get("signup_date"))
    days_since_signup = _days_between(signup, reference) if signup is not None else 0

    last_login = _as_timestamp(customer.get("last_login"))
    if last_login is None:
        days_since_last_login = NEVER_LOGGED_IN_DAYS
    else:
        days_since_last_login = _days_between(last_login, reference)

    session_stats = summarize_sessions(customer.get("id"), sessions)

    return CustomerFeatures(
        health_score=_as_number(customer.get("health_score")),
        nps_score=_as_number(customer.get("nps_score")) or float(DEFAULT_NPS_SCORE),
        support_tickets=int(_as_number(customer.get("support_tickets"))),
        feature_usage_total=weighted_feature_usage(customer.get("feature_usage")),
        days_since_signup=days_since_signup,
        days_since_last_login=days_since_last_login,
        mrr=_as_number(customer.get("mrr")),
        plan_value=encode_plan(customer.get("plan")),
        **session_stats,
    )


def _remainder(value: int, divisor: int) -> int:
    """Remainder carrying the sign of ``value`` (truncated division), not Python's floored ``%``."""
    return int(math.fmod(value, divisor))


def generate_synthetic_features(customer_id: int) -> CustomerFeatures:
    """
    Deterministic stand-in features derived only from the integer id.

    Negative ids give negative remainders, so e.g. id -3 has health score 47.
    """
    cid = int(customer_id)
    return CustomerFeatures(
        health_score=50 + _remainder(cid, 50),
        nps_score=3 + _remainder(cid, 8),
        support_tickets=_remainder(cid, 10),
        feature_usage_total=100 + _remainder(cid, 500),
        days_since_signup=30 + _remainder(cid, 300),
        days_since_last_login=_remainder(cid, 60),
        mrr=100 + _remainder(cid, 800),
        plan_value=_remainder(cid, 3) + 1,
        session_count=_remainder(cid, 20),
        avg_session_duration=15 + _remainder(cid, 60),
        total_pages_viewed=10 + _remainder(cid, 100),
    )
