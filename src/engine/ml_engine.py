"""
Churn scoring engine facade.

Owns the tree ensemble and the intervention agent, resolves customer
features from the configured dataset (or from the deterministic synthetic
generator when no dataset is configured) and exposes the scoring,
recommendation, importance and outcome-reporting operations.

The engine is an ordinary object: construct one per composition root and
pass it to whatever handlers need it. Retraining (``initialize``) and
``update_intervention_outcome`` mutate state and need exclusive access when
the engine is shared between threads.
"""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Protocol, Sequence

import numpy as np
import pandas as pd

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", ".."))
from configs.config import (
    ACTIONS,
    CONFIDENCE_LEVEL,
    FAILURE_REWARD,
    MAX_REVENUE_BONUS,
    NUM_TREES,
    REVENUE_BONUS_DIVISOR,
    SEGMENT_HIGH_THRESHOLD,
    SEGMENT_MEDIUM_THRESHOLD,
    SUCCESS_REWARD,
    SYNTHETIC_TRAINING_SAMPLES,
    TARGET_COLUMN,
)
from src.data.data_pipeline import (
    ExtendedDataset,
    build_training_set,
    features_from_frame,
    generate_synthetic_training_set,
)
from src.data.feature_extractor import (
    CustomerFeatures,
    extract_features,
    generate_synthetic_features,
)
from src.evaluation.model_metrics import compute_regression_metrics
from src.evaluation.outcome_analytics import (
    InterventionComparison,
    compare_interventions,
    summarize_outcomes,
)
from src.exceptions import CustomerNotFoundError, NotInitializedError
from src.models.random_forest import RandomForestPredictor
from src.models.rl_agent import ReinforcementLearningAgent, encode_state
from src.models.schemas import (
    ChurnPrediction,
    DegradedPrediction,
    FeatureImportance,
    InterventionRecommendation,
    OutcomeRecord,
    ScoredPrediction,
    ScoringResult,
)

logger = logging.getLogger(__name__)


class DataSource(Protocol):
    def get_extended_data(self) -> Optional[ExtendedDataset]:
        ...


def compute_reward(success: bool, revenue_impact: Optional[float] = None) -> float:
    """
    Reward for a reported outcome: +1.0 on success, −0.5 on failure, plus
    ``min(revenue_impact / 10000, 0.5)`` when a positive revenue impact is given.
    """
    reward = SUCCESS_REWARD if success else FAILURE_REWARD
    if revenue_impact is not None and revenue_impact > 0:
        reward += min(revenue_impact / REVENUE_BONUS_DIVISOR, MAX_REVENUE_BONUS)
    return reward


class MLEngine:
    """
    Facade over the churn ensemble and the intervention agent.

    Parameters
    ----------
    data_loader : DataSource, optional
        Collaborator exposing ``get_extended_data()``. When it is absent or
        returns None the engine runs in synthetic mode.
    n_trees : int
        Ensemble size.
    random_state : int, optional
        Seed for bootstrap sampling, synthetic training data and the agent.
    reference_time : datetime, optional
        Fixed "now" for day-difference features; the current time otherwise.
    """

    def __init__(
        self,
        data_loader: Optional[DataSource] = None,
        n_trees: int = NUM_TREES,
        random_state: Optional[int] = None,
        reference_time: Optional[datetime] = None,
        synthetic_samples: int = SYNTHETIC_TRAINING_SAMPLES,
    ) -> None:
        self.data_loader = data_loader
        self.n_trees = n_trees
        self.random_state = random_state
        self.reference_time = reference_time
        self.synthetic_samples = synthetic_samples

        self.random_forest = RandomForestPredictor(n_trees=n_trees, random_state=random_state)
        self.rl_agent = ReinforcementLearningAgent(random_state=random_state)
        self.is_initialized = False
        self.data_source = "none"
        self.training_metrics: Dict[str, Any] = {}
        self.outcomes: List[OutcomeRecord] = []

    # ------------------------------------------------------------------
    # lifecycle
    # ------------------------------------------------------------------

    def _extended_data(self) -> Optional[ExtendedDataset]:
        if self.data_loader is None:
            return None
        return self.data_loader.get_extended_data()

    def initialize(self) -> "MLEngine":
        """
        Train from scratch. Uses the extended dataset when available and a
        synthetic training set otherwise; the agent is re-seeded either way.
        """
        if self.is_initialized:
            logger.info("Retraining ML engine; forest and agent state will be rebuilt")
        logger.info("Initializing ML engine...")
        self.is_initialized = False
        self.random_forest = RandomForestPredictor(
            n_trees=self.n_trees, random_state=self.random_state
        )
        self.rl_agent = ReinforcementLearningAgent(random_state=self.random_state)
        self.outcomes = []
        self.training_metrics = {}

        dataset = self._extended_data()
        if dataset is None:
            logger.warning("No extended data available, using simulated training data")
            features, labels = self._synthetic_training_data()
            self.data_source = "synthetic"
        else:
            features, labels = build_training_set(dataset, now=self._now())
            self.data_source = "extended"

        if features:
            self.random_forest.train(features, labels)
            self._record_training_metrics(features, labels)
            logger.info("Trained on %d %s customer records", len(features), self.data_source)
        else:
            logger.warning("Extended dataset has no customers; model left untrained")

        self.is_initialized = True
        logger.info("ML engine initialized successfully")
        return self

    def _synthetic_training_data(self):
        df = generate_synthetic_training_set(self.synthetic_samples, random_state=self.random_state)
        return features_from_frame(df), df[TARGET_COLUMN].to_numpy(dtype=float)

    def _record_training_metrics(
        self,
        features: Sequence[CustomerFeatures],
        labels: np.ndarray,
    ) -> None:
        predicted = self.random_forest.predict_proba(features)
        metrics = compute_regression_metrics(labels, predicted)
        metrics.update(
            {
                "n_trees": self.random_forest.n_trees,
                "data_source": self.data_source,
                "trained_at": datetime.now(timezone.utc).isoformat(),
            }
        )
        self.training_metrics = metrics

    def _require_initialized(self) -> None:
        if not self.is_initialized:
            raise NotInitializedError("ML Engine not initialized")

    def _now(self) -> datetime:
        return self.reference_time or datetime.now(timezone.utc)

    # ------------------------------------------------------------------
    # feature resolution
    # ------------------------------------------------------------------

    def extract_customer_features(self, customer_id: Any) -> CustomerFeatures:
        """
        Real features when a dataset is configured (missing ids raise
        ``CustomerNotFoundError``); deterministic synthetic features otherwise.
        """
        dataset = self._extended_data()
        if dataset is None:
            return generate_synthetic_features(customer_id)

        customer = dataset.get_customer(customer_id)
        if customer is None:
            raise CustomerNotFoundError(customer_id)
        return extract_features(customer, dataset.sessions, now=self._now())

    # ------------------------------------------------------------------
    # public operations
    # ------------------------------------------------------------------

    def predict_churn(self, customer_id: Any) -> ChurnPrediction:
        self._require_initialized()
        features = self.extract_customer_features(customer_id)
        prediction = self.random_forest.predict(features)
        prediction.customer_id = customer_id
        return prediction

    def recommend_intervention(self, customer_id: Any) -> InterventionRecommendation:
        self._require_initialized()
        features = self.extract_customer_features(customer_id)
        return self.rl_agent.select_action(features)

    def get_feature_importances(self) -> List[FeatureImportance]:
        self._require_initialized()
        return self.random_forest.get_feature_importances()

    def update_intervention_outcome(
        self,
        customer_id: Any,
        intervention_type: str,
        success: bool,
        revenue_impact: Optional[float] = None,
    ) -> OutcomeRecord:
        """Turn a reported outcome into a reward and feed it to the agent."""
        if intervention_type not in self.rl_agent.actions:
            raise ValueError(
                f"Unknown intervention type {intervention_type!r}; "
                f"expected one of {', '.join(ACTIONS)}."
            )
        features = self.extract_customer_features(customer_id)
        reward = compute_reward(success, revenue_impact)
        state = encode_state(features)
        previous_q = self.rl_agent.q_value(state, intervention_type)
        updated_q = self.rl_agent.update_policy(features, intervention_type, reward)

        record = OutcomeRecord(
            customer_id=customer_id,
            intervention_type=intervention_type,
            success=bool(success),
            revenue_impact=revenue_impact,
            reward=reward,
            state=state,
            previous_q=previous_q,
            updated_q=updated_q,
        )
        self.outcomes.append(record)
        return record

    # ------------------------------------------------------------------
    # degraded-aware scoring
    # ------------------------------------------------------------------

    def _stored_churn_risk(self, customer_id: Any) -> Optional[float]:
        dataset = self._extended_data()
        if dataset is None:
            return None
        customer = dataset.get_customer(customer_id)
        if customer is None:
            return None
        try:
            return float(customer.get(TARGET_COLUMN))
        except (TypeError, ValueError):
            return None

    def score_customer(self, customer_id: Any) -> ScoringResult:
        """
        Score one customer, returning a tagged result instead of raising for
        the engine's own failure modes.
        """
        try:
            return ScoredPrediction(customer_id, self.predict_churn(customer_id))
        except (NotInitializedError, CustomerNotFoundError) as exc:
            logger.warning("Prediction for customer %s degraded: %s", customer_id, exc)
            return DegradedPrediction(
                customer_id=customer_id,
                error=str(exc),
                fallback_probability=self._stored_churn_risk(customer_id),
            )

    def batch_predict(self, customer_ids: Sequence[Any]) -> List[ScoringResult]:
        return [self.score_customer(cid) for cid in customer_ids]

    def risk_segmentation(self, customer_ids: Sequence[Any]) -> Dict[str, Dict[str, float]]:
        """
        Bucket customers into high (p ≥ 0.8), medium (p ≥ 0.5) and low risk.
        Degraded results use their fallback probability (0 when unknown).
        """
        counts = {"high": 0, "medium": 0, "low": 0}
        for result in self.batch_predict(customer_ids):
            probability = result.churn_probability or 0.0
            if probability >= SEGMENT_HIGH_THRESHOLD:
                counts["high"] += 1
            elif probability >= SEGMENT_MEDIUM_THRESHOLD:
                counts["medium"] += 1
            else:
                counts["low"] += 1

        total = len(customer_ids)
        return {
            tier: {
                "count": count,
                "percentage": round(count / total * 100, 1) if total else 0.0,
            }
            for tier, count in counts.items()
        }

    # ------------------------------------------------------------------
    # reporting
    # ------------------------------------------------------------------

    def get_model_metrics(self) -> Dict[str, Any]:
        self._require_initialized()
        return dict(self.training_metrics)

    def get_action_analytics(self) -> Dict[str, Dict[str, Any]]:
        return self.rl_agent.get_action_analytics()

    def get_outcome_summary(self, confidence_level: float = CONFIDENCE_LEVEL) -> pd.DataFrame:
        """Per-intervention success statistics over the outcomes reported since the last initialize."""
        return summarize_outcomes(self.outcomes, confidence_level=confidence_level)

    def compare_intervention_outcomes(
        self,
        intervention_a: str,
        intervention_b: str,
        confidence_level: float = CONFIDENCE_LEVEL,
    ) -> InterventionComparison:
        return compare_interventions(
            self.outcomes, intervention_a, intervention_b, confidence_level=confidence_level
        )

    def known_customer_ids(self, n_synthetic: int = 100) -> List[Any]:
        """Dataset ids, or ``1..n_synthetic`` in synthetic mode."""
        dataset = self._extended_data()
        if dataset is None:
            return list(range(1, n_synthetic + 1))
        return dataset.customer_ids()
