"""
Unit tests for model quality metrics and intervention outcome analytics.
"""
import sys
import os
import math

import numpy as np
import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from src.evaluation.model_metrics import compute_regression_metrics
from src.evaluation.outcome_analytics import (
    SUMMARY_COLUMNS,
    InterventionComparison,
    compare_interventions,
    outcomes_to_frame,
    summarize_outcomes,
)
from src.models.schemas import OutcomeRecord


def make_record(intervention, success, revenue=None, customer_id=1):
    reward = (1.0 if success else -0.5)
    return OutcomeRecord(
        customer_id=customer_id,
        intervention_type=intervention,
        success=success,
        revenue_impact=revenue,
        reward=reward,
        state="high_low_high",
        previous_q=0.0,
        updated_q=0.1 * reward,
    )


@pytest.fixture
def outcome_records():
    rng = np.random.default_rng(42)
    records = []
    for _ in range(400):
        records.append(make_record("Payment Recovery", bool(rng.random() < 0.8), 1000.0))
    for _ in range(400):
        records.append(make_record("Upsell Proposal", bool(rng.random() < 0.4)))
    return records


class TestRegressionMetrics:
    def test_perfect_predictions(self):
        y = np.array([0.1, 0.3, 0.6, 0.9])
        metrics = compute_regression_metrics(y, y)
        assert metrics["mae"] == pytest.approx(0.0)
        assert metrics["rmse"] == pytest.approx(0.0)
        assert metrics["r2"] == pytest.approx(1.0)
        assert metrics["roc_auc"] == pytest.approx(1.0)
        assert metrics["n_samples"] == 4

    def test_known_errors(self):
        y_true = np.array([0.2, 0.8])
        y_pred = np.array([0.4, 0.4])
        metrics = compute_regression_metrics(y_true, y_pred)
        assert metrics["mae"] == pytest.approx(0.3)
        assert metrics["rmse"] == pytest.approx(math.sqrt(0.1))

    def test_single_class_auc_is_nan(self):
        metrics = compute_regression_metrics(np.array([0.1, 0.2, 0.3]), np.array([0.1, 0.2, 0.2]))
        assert math.isnan(metrics["roc_auc"])

    def test_single_sample_r2_is_nan(self):
        metrics = compute_regression_metrics(np.array([0.5]), np.array([0.4]))
        assert math.isnan(metrics["r2"])

    def test_invalid_input(self):
        with pytest.raises(ValueError):
            compute_regression_metrics(np.array([0.1, 0.2]), np.array([0.1]))
        with pytest.raises(ValueError):
            compute_regression_metrics(np.array([]), np.array([]))


class TestSummarizeOutcomes:
    def test_columns_and_order(self, outcome_records):
        summary = summarize_outcomes(outcome_records)
        assert list(summary.columns) == SUMMARY_COLUMNS
        assert summary["intervention_type"].tolist() == ["Payment Recovery", "Upsell Proposal"]

    def test_counts(self, outcome_records):
        summary = summarize_outcomes(outcome_records).set_index("intervention_type")
        assert summary.loc["Payment Recovery", "attempts"] == 400
        assert summary.loc["Payment Recovery", "total_revenue_impact"] == pytest.approx(400_000.0)
        assert summary.loc["Upsell Proposal", "total_revenue_impact"] == pytest.approx(0.0)

    def test_interval_brackets_rate(self, outcome_records):
        summary = summarize_outcomes(outcome_records)
        assert (summary["ci_lower"] <= summary["success_rate"]).all()
        assert (summary["success_rate"] <= summary["ci_upper"]).all()
        assert summary["ci_lower"].min() >= 0.0
        assert summary["ci_upper"].max() <= 1.0

    def test_all_successes_interval_clipped(self):
        records = [make_record("Onboarding Call", True) for _ in range(5)]
        row = summarize_outcomes(records).iloc[0]
        assert row["success_rate"] == pytest.approx(1.0)
        assert row["ci_upper"] == pytest.approx(1.0)

    def test_empty(self):
        summary = summarize_outcomes([])
        assert summary.empty
        assert list(summary.columns) == SUMMARY_COLUMNS

    def test_frame_columns(self, outcome_records):
        df = outcomes_to_frame(outcome_records[:3])
        assert len(df) == 3
        assert "updated_q" in df.columns


class TestCompareInterventions:
    def test_significant_difference(self, outcome_records):
        result = compare_interventions(outcome_records, "Payment Recovery", "Upsell Proposal")
        assert isinstance(result, InterventionComparison)
        assert result.is_significant
        assert result.difference > 0
        assert 0.0 <= result.p_value <= 1.0

    def test_identical_outcomes(self):
        records = [make_record("A", i % 2 == 0) for i in range(20)]
        records += [make_record("B", i % 2 == 0) for i in range(20)]
        result = compare_interventions(records, "A", "B")
        assert result.difference == pytest.approx(0.0)
        assert result.p_value == pytest.approx(1.0)
        assert not result.is_significant

    def test_zero_variance(self):
        records = [make_record("A", True), make_record("B", True)]
        result = compare_interventions(records, "A", "B")
        assert result.z_statistic == 0.0

    def test_missing_intervention(self, outcome_records):
        with pytest.raises(ValueError):
            compare_interventions(outcome_records, "Payment Recovery", "Renewal Reminder")

    def test_to_dict_keys(self, outcome_records):
        d = compare_interventions(outcome_records, "Payment Recovery", "Upsell Proposal").to_dict()
        for key in ["n_a", "n_b", "success_rate_a", "success_rate_b", "p_value", "is_significant"]:
            assert key in d
