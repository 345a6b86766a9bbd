"""
Unit tests for the churn scoring engine facade.
"""
import sys
import os
from datetime import datetime, timezone

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from configs.config import ACTIONS, SEED_STATES
from src.data.data_pipeline import build_extended_dataset
from src.engine.ml_engine import MLEngine, compute_reward
from src.exceptions import CustomerNotFoundError, NotInitializedError
from src.models.schemas import DegradedPrediction, ScoredPrediction

REFERENCE_TIME = datetime(2024, 7, 1, tzinfo=timezone.utc)


class StaticLoader:
    """Stands in for CustomerDataLoader with a fixed dataset."""

    def __init__(self, dataset):
        self.dataset = dataset

    def get_extended_data(self):
        return self.dataset


@pytest.fixture
def synthetic_engine():
    return MLEngine(n_trees=5, random_state=0).initialize()


@pytest.fixture
def dataset_engine(external_payload):
    loader = StaticLoader(build_extended_dataset(external_payload))
    return MLEngine(
        data_loader=loader, n_trees=5, random_state=0, reference_time=REFERENCE_TIME
    ).initialize()


class TestComputeReward:
    @pytest.mark.parametrize(
        "success, revenue, expected",
        [
            (True, 20000, 1.5),
            (False, None, -0.5),
            (True, 2000, 1.2),
            (True, -500, 1.0),
            (False, 1000, -0.4),
            (True, 0, 1.0),
        ],
    )
    def test_reward(self, success, revenue, expected):
        assert compute_reward(success, revenue) == pytest.approx(expected)


class TestLifecycle:
    def test_operations_require_initialize(self):
        engine = MLEngine(n_trees=3, random_state=0)
        with pytest.raises(NotInitializedError):
            engine.predict_churn(1)
        with pytest.raises(NotInitializedError):
            engine.recommend_intervention(1)
        with pytest.raises(NotInitializedError):
            engine.get_feature_importances()
        with pytest.raises(NotInitializedError):
            engine.get_model_metrics()

    def test_synthetic_mode(self, synthetic_engine):
        assert synthetic_engine.is_initialized
        assert synthetic_engine.data_source == "synthetic"
        assert len(synthetic_engine.random_forest.trees) == 5

    def test_dataset_mode(self, dataset_engine, external_payload):
        assert dataset_engine.data_source == "extended"
        assert dataset_engine.random_forest.n_training_samples == len(external_payload["customers"])

    def test_reinitialize_resets_state(self, synthetic_engine):
        synthetic_engine.update_intervention_outcome(5, "Support Recovery", True)
        assert synthetic_engine.outcomes
        synthetic_engine.initialize()
        assert synthetic_engine.outcomes == []
        assert set(synthetic_engine.rl_agent.q_table) == set(SEED_STATES)

    def test_empty_dataset_leaves_model_untrained(self):
        loader = StaticLoader(build_extended_dataset({"customers": []}))
        engine = MLEngine(data_loader=loader, n_trees=3, random_state=0).initialize()
        assert engine.is_initialized
        assert not engine.random_forest.is_trained
        assert engine.get_feature_importances() == []
        assert engine.get_model_metrics() == {}


class TestPrediction:
    def test_synthetic_any_id(self, synthetic_engine):
        for cid in [1, 42, 99999]:
            prediction = synthetic_engine.predict_churn(cid)
            assert prediction.customer_id == cid
            assert 0.0 <= prediction.churn_probability <= 1.0

    def test_synthetic_is_deterministic(self, synthetic_engine):
        first = synthetic_engine.predict_churn(77).churn_probability
        assert synthetic_engine.predict_churn(77).churn_probability == first

    def test_dataset_known_customer(self, dataset_engine):
        prediction = dataset_engine.predict_churn(3)
        assert prediction.customer_id == 3
        assert prediction.risk_level in {"high", "medium", "low"}

    def test_dataset_unknown_customer(self, dataset_engine):
        with pytest.raises(CustomerNotFoundError):
            dataset_engine.predict_churn(10_000)
        with pytest.raises(CustomerNotFoundError):
            dataset_engine.recommend_intervention(10_000)

    def test_recommendation(self, synthetic_engine):
        rec = synthetic_engine.recommend_intervention(12)
        assert rec.type in ACTIONS
        assert rec.priority in {"high", "medium", "low"}
        assert 0.1 <= rec.estimated_success <= 0.95

    def test_importances(self, dataset_engine):
        imps = dataset_engine.get_feature_importances()
        assert 0 < len(imps) <= 8


class TestScoring:
    def test_scored(self, dataset_engine):
        result = dataset_engine.score_customer(3)
        assert isinstance(result, ScoredPrediction)
        assert result.status == "scored"
        assert result.to_dict()["customer_id"] == 3

    def test_unknown_customer_degrades(self, dataset_engine):
        result = dataset_engine.score_customer(10_000)
        assert isinstance(result, DegradedPrediction)
        assert result.fallback_probability is None
        assert "10000" in result.error

    def test_uninitialized_uses_stored_risk(self, external_payload):
        loader = StaticLoader(build_extended_dataset(external_payload))
        engine = MLEngine(data_loader=loader, n_trees=3, random_state=0)
        result = engine.score_customer(1)
        assert isinstance(result, DegradedPrediction)
        assert result.churn_probability == pytest.approx(external_payload["customers"][0]["churn_risk"])

    def test_batch_predict(self, dataset_engine):
        results = dataset_engine.batch_predict([1, 2, 10_000])
        assert [r.status for r in results] == ["scored", "scored", "degraded"]

    def test_risk_segmentation(self, dataset_engine):
        ids = dataset_engine.known_customer_ids()
        segmentation = dataset_engine.risk_segmentation(ids)
        assert set(segmentation) == {"high", "medium", "low"}
        assert sum(s["count"] for s in segmentation.values()) == len(ids)
        assert sum(s["percentage"] for s in segmentation.values()) == pytest.approx(100.0, abs=0.2)

    def test_risk_segmentation_empty(self, dataset_engine):
        segmentation = dataset_engine.risk_segmentation([])
        assert all(s == {"count": 0, "percentage": 0.0} for s in segmentation.values())

    def test_known_customer_ids(self, synthetic_engine, dataset_engine, external_payload):
        assert synthetic_engine.known_customer_ids(n_synthetic=5) == [1, 2, 3, 4, 5]
        assert len(dataset_engine.known_customer_ids()) == len(external_payload["customers"])


class TestOutcomes:
    def test_q_update_recorded(self, synthetic_engine):
        record = synthetic_engine.update_intervention_outcome(7, "Executive Check-in", True, 20000)
        assert record.reward == pytest.approx(1.5)
        assert record.updated_q == pytest.approx(
            record.previous_q + 0.1 * (1.5 - record.previous_q)
        )
        assert synthetic_engine.rl_agent.q_value(record.state, "Executive Check-in") == pytest.approx(
            record.updated_q
        )
        assert synthetic_engine.outcomes == [record]

    def test_repeated_success_increases_q(self, synthetic_engine):
        first = synthetic_engine.update_intervention_outcome(7, "Onboarding Call", True)
        second = synthetic_engine.update_intervention_outcome(7, "Onboarding Call", True)
        assert second.updated_q > first.updated_q

    def test_unknown_intervention(self, synthetic_engine):
        with pytest.raises(ValueError):
            synthetic_engine.update_intervention_outcome(7, "Free Pizza", True)

    def test_unknown_customer(self, dataset_engine):
        with pytest.raises(CustomerNotFoundError):
            dataset_engine.update_intervention_outcome(10_000, "Support Recovery", False)

    def test_works_before_initialize(self):
        engine = MLEngine(n_trees=3, random_state=0)
        record = engine.update_intervention_outcome(3, "Renewal Reminder", False)
        assert record.updated_q == pytest.approx(-0.05)

    def test_outcome_summary(self, synthetic_engine):
        for cid in range(1, 5):
            synthetic_engine.update_intervention_outcome(cid, "Payment Recovery", True, 1000)
        synthetic_engine.update_intervention_outcome(9, "Upsell Proposal", False)
        summary = synthetic_engine.get_outcome_summary().set_index("intervention_type")
        assert summary.loc["Payment Recovery", "attempts"] == 4
        assert summary.loc["Payment Recovery", "success_rate"] == pytest.approx(1.0)
        assert summary.loc["Payment Recovery", "total_revenue_impact"] == pytest.approx(4000.0)
        assert summary.loc["Upsell Proposal", "successes"] == 0

    def test_outcome_summary_cleared_on_retrain(self, synthetic_engine):
        synthetic_engine.update_intervention_outcome(1, "Support Recovery", True)
        synthetic_engine.initialize()
        assert synthetic_engine.get_outcome_summary().empty

    def test_compare_intervention_outcomes(self, synthetic_engine):
        for cid in range(1, 21):
            synthetic_engine.update_intervention_outcome(cid, "Payment Recovery", True)
            synthetic_engine.update_intervention_outcome(cid, "Upsell Proposal", cid % 4 == 0)
        result = synthetic_engine.compare_intervention_outcomes("Payment Recovery", "Upsell Proposal")
        assert result.n_a == result.n_b == 20
        assert result.difference == pytest.approx(0.75)
        assert result.is_significant
        with pytest.raises(ValueError):
            synthetic_engine.compare_intervention_outcomes("Payment Recovery", "Renewal Reminder")

    def test_action_analytics(self, synthetic_engine):
        record = synthetic_engine.update_intervention_outcome(9, "Upsell Proposal", True)
        analytics = synthetic_engine.get_action_analytics()
        assert record.state in analytics


class TestModelMetrics:
    def test_keys(self, synthetic_engine):
        metrics = synthetic_engine.get_model_metrics()
        for key in ["n_samples", "mae", "rmse", "r2", "roc_auc", "n_trees", "data_source", "trained_at"]:
            assert key in metrics
        assert metrics["n_samples"] == 100
        assert metrics["data_source"] == "synthetic"
