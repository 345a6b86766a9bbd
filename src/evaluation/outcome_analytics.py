"""
Intervention outcome analytics: per-type success rates with normal-approximation
confidence intervals, and a two-proportion z-test between intervention types.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, fields
from typing import Dict, Sequence

import numpy as np
import pandas as pd
from scipy import stats

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", ".."))
from configs.config import CONFIDENCE_LEVEL
from src.models.schemas import OutcomeRecord

logger = logging.getLogger(__name__)

SUMMARY_COLUMNS = [
    "intervention_type",
    "attempts",
    "successes",
    "success_rate",
    "ci_lower",
    "ci_upper",
    "total_revenue_impact",
    "mean_reward",
]


@dataclass
class InterventionComparison:
    """Outcome of comparing success rates of two intervention types."""

    intervention_a: str
    intervention_b: str
    n_a: int
    n_b: int
    success_rate_a: float
    success_rate_b: float
    difference: float
    z_statistic: float
    p_value: float
    is_significant: bool

    def to_dict(self) -> Dict:
        return {
            "intervention_a": self.intervention_a,
            "intervention_b": self.intervention_b,
            "n_a": self.n_a,
            "n_b": self.n_b,
            "success_rate_a": round(self.success_rate_a, 6),
            "success_rate_b": round(self.success_rate_b, 6),
            "difference": round(self.difference, 6),
            "z_statistic": round(self.z_statistic, 4),
            "p_value": round(self.p_value, 6),
            "is_significant": self.is_significant,
        }


def outcomes_to_frame(records: Sequence[OutcomeRecord]) -> pd.DataFrame:
    columns = [f.name for f in fields(OutcomeRecord)]
    return pd.DataFrame([r.to_dict() for r in records], columns=columns)


def summarize_outcomes(
    records: Sequence[OutcomeRecord],
    confidence_level: float = CONFIDENCE_LEVEL,
) -> pd.DataFrame:
    """
    Aggregate reported outcomes per intervention type.

    Returns
    -------
    pd.DataFrame with ``SUMMARY_COLUMNS``, sorted by success rate descending.
    """
    df = outcomes_to_frame(records)
    if df.empty:
        return pd.DataFrame(columns=SUMMARY_COLUMNS)

    z_critical = float(stats.norm.ppf(1.0 - (1.0 - confidence_level) / 2))
    df["success"] = df["success"].astype(int)
    df["revenue_impact"] = pd.to_numeric(df["revenue_impact"], errors="coerce").fillna(0.0)

    grouped = df.groupby("intervention_type").agg(
        attempts=("success", "size"),
        successes=("success", "sum"),
        total_revenue_impact=("revenue_impact", "sum"),
        mean_reward=("reward", "mean"),
    )
    rate = grouped["successes"] / grouped["attempts"]
    margin = z_critical * np.sqrt(rate * (1 - rate) / grouped["attempts"])
    grouped["success_rate"] = rate
    grouped["ci_lower"] = (rate - margin).clip(lower=0.0)
    grouped["ci_upper"] = (rate + margin).clip(upper=1.0)

    summary = grouped.reset_index()[SUMMARY_COLUMNS]
    summary = summary.sort_values("success_rate", ascending=False).reset_index(drop=True)
    logger.info(
        "Outcome summary: %d reports across %d intervention types",
        len(df), len(summary),
    )
    return summary


def compare_interventions(
    records: Sequence[OutcomeRecord],
    intervention_a: str,
    intervention_b: str,
    confidence_level: float = CONFIDENCE_LEVEL,
) -> InterventionComparison:
    """Two-tailed pooled two-proportion z-test on the success rates of A and B."""
    df = outcomes_to_frame(records)
    a = df.loc[df["intervention_type"] == intervention_a, "success"].astype(int)
    b = df.loc[df["intervention_type"] == intervention_b, "success"].astype(int)
    if a.empty or b.empty:
        raise ValueError("Both interventions need at least one reported outcome.")

    n_a, n_b = len(a), len(b)
    rate_a, rate_b = float(a.mean()), float(b.mean())
    diff = rate_a - rate_b

    p_pool = (a.sum() + b.sum()) / (n_a + n_b)
    se = np.sqrt(p_pool * (1 - p_pool) * (1.0 / n_a + 1.0 / n_b))
    z_stat = float(diff / se) if se > 0 else 0.0
    p_val = float(2 * stats.norm.sf(abs(z_stat)))

    result = InterventionComparison(
        intervention_a=intervention_a,
        intervention_b=intervention_b,
        n_a=n_a,
        n_b=n_b,
        success_rate_a=rate_a,
        success_rate_b=rate_b,
        difference=diff,
        z_statistic=z_stat,
        p_value=p_val,
        is_significant=p_val < (1.0 - confidence_level),
    )
    logger.info(
        "Intervention comparison %s vs %s — rates %.3f / %.3f | z=%.3f, p=%.4f",
        intervention_a, intervention_b, rate_a, rate_b, z_stat, p_val,
    )
    return result
