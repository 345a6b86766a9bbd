"""
Random-forest style churn predictor: an ensemble of bootstrap-trained
variance-reduction trees whose averaged output is the churn probability.
"""
from __future__ import annotations

import logging
from typing import Dict, List, Optional, Sequence

import numpy as np

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", ".."))
from configs.config import (
    FEATURE_DESCRIPTIONS,
    FEATURE_LABELS,
    FEATURE_NAMES,
    HIGH_ACTIONABILITY_FEATURES,
    HIGH_RISK_THRESHOLD,
    MAX_RECOMMENDED_ACTIONS,
    MAX_TREE_DEPTH,
    MEDIUM_ACTIONABILITY_FEATURES,
    MEDIUM_RISK_THRESHOLD,
    MIN_SAMPLES_SPLIT,
    NEGATIVE_IMPACT_FEATURES,
    NUM_TREES,
    TOP_FACTORS,
    TOP_IMPORTANCES,
)
from src.data.feature_extractor import CustomerFeatures
from src.exceptions import MalformedTrainingInputError, NotInitializedError
from src.models.decision_tree import DecisionTree
from src.models.schemas import ChurnPrediction, FeatureFactor, FeatureImportance

logger = logging.getLogger(__name__)


def humanize_feature(feature: str) -> str:
    return FEATURE_LABELS.get(feature, feature)


def feature_impact(feature: str) -> str:
    return "negative" if feature in NEGATIVE_IMPACT_FEATURES else "positive"


def feature_description(feature: str) -> str:
    return FEATURE_DESCRIPTIONS.get(feature, "Feature metric")


def risk_level(probability: float) -> str:
    if probability > HIGH_RISK_THRESHOLD:
        return "high"
    if probability > MEDIUM_RISK_THRESHOLD:
        return "medium"
    return "low"


def importance_confidence(importance_pct: float) -> str:
    if importance_pct >= 20:
        return "high"
    if importance_pct >= 10:
        return "medium"
    return "low"


def actionability(feature: str) -> str:
    if feature in HIGH_ACTIONABILITY_FEATURES:
        return "high"
    if feature in MEDIUM_ACTIONABILITY_FEATURES:
        return "medium"
    return "low"


class RandomForestPredictor:
    """
    Bagged ensemble of regression trees producing churn probabilities.

    Attributes
    ----------
    n_trees : int
        Number of trees grown per ``train`` call.
    trees : list[DecisionTree]
        Fitted trees; empty until trained.
    feature_importances : dict[str, float]
        Per-feature split gain summed over all trees and divided by ``n_trees``.
    """

    def __init__(
        self,
        n_trees: int = NUM_TREES,
        max_depth: int = MAX_TREE_DEPTH,
        min_samples_split: int = MIN_SAMPLES_SPLIT,
        random_state: Optional[int] = None,
    ) -> None:
        if n_trees < 1:
            raise ValueError("n_trees must be at least 1.")
        self.n_trees = n_trees
        self.max_depth = max_depth
        self.min_samples_split = min_samples_split
        self._rng = np.random.default_rng(random_state)
        self.trees: List[DecisionTree] = []
        self.feature_importances: Dict[str, float] = {}
        self.n_training_samples = 0

    @property
    def is_trained(self) -> bool:
        return bool(self.trees)

    # ------------------------------------------------------------------
    # training
    # ------------------------------------------------------------------

    def bootstrap_indices(self, n_samples: int) -> np.ndarray:
        """Indices of a with-replacement resample of size ``n_samples``."""
        return self._rng.integers(0, n_samples, size=n_samples)

    def train(
        self,
        features: Sequence[CustomerFeatures],
        labels: Sequence[float],
    ) -> "RandomForestPredictor":
        """
        Grow ``n_trees`` trees, each on its own bootstrap sample.

        Parameters
        ----------
        features : sequence of CustomerFeatures
        labels : sequence of float
            Churn-risk targets in [0, 1], aligned with ``features``.
        """
        y = np.asarray(labels, dtype=float)
        if len(features) != len(y):
            raise MalformedTrainingInputError(
                f"features and labels must have the same length "
                f"({len(features)} != {len(y)})."
            )
        if len(y) == 0:
            raise MalformedTrainingInputError("Cannot train on an empty dataset.")
        if not np.all(np.isfinite(y)) or y.min() < 0.0 or y.max() > 1.0:
            raise MalformedTrainingInputError("labels must be finite values in [0, 1].")

        X = np.vstack([f.to_array() for f in features])
        logger.info(
            "Training random forest with %d trees on %d samples", self.n_trees, len(y)
        )

        trees: List[DecisionTree] = []
        importance_sum: Dict[str, float] = {}
        for _ in range(self.n_trees):
            idx = self.bootstrap_indices(len(y))
            tree = DecisionTree(self.max_depth, self.min_samples_split, FEATURE_NAMES)
            tree.fit(X[idx], y[idx])
            trees.append(tree)
            for name, gain in tree.feature_importances.items():
                importance_sum[name] = importance_sum.get(name, 0.0) + gain

        self.trees = trees
        self.feature_importances = {
            name: total / self.n_trees for name, total in importance_sum.items()
        }
        self.n_training_samples = len(y)
        logger.info("Random forest training completed.")
        return self

    # ------------------------------------------------------------------
    # inference
    # ------------------------------------------------------------------

    def tree_predictions(self, features: CustomerFeatures) -> np.ndarray:
        if not self.trees:
            raise NotInitializedError("Model not trained yet")
        x = features.to_array()
        return np.array([tree.predict(x) for tree in self.trees])

    def predict_proba(self, features: Sequence[CustomerFeatures]) -> np.ndarray:
        """Mean ensemble output for each feature vector."""
        return np.array([float(self.tree_predictions(f).mean()) for f in features])

    def predict(self, features: CustomerFeatures) -> ChurnPrediction:
        """
        Score one customer.

        churn_probability is the mean tree output; confidence is
        ``1 − sqrt(population variance)`` of the tree outputs, clipped to [0, 1].
        """
        preds = self.tree_predictions(features)
        probability = float(np.clip(preds.mean(), 0.0, 1.0))
        variance = float(np.var(preds))
        confidence = float(np.clip(1.0 - np.sqrt(variance), 0.0, 1.0))

        level = risk_level(probability)
        top_factors = self.top_factors(features)
        return ChurnPrediction(
            customer_id=0,
            churn_probability=probability,
            risk_level=level,
            confidence=confidence,
            top_factors=top_factors,
            recommended_actions=self.recommend_actions(top_factors, level),
        )

    def top_factors(
        self,
        features: CustomerFeatures,
        top_n: int = TOP_FACTORS,
    ) -> List[FeatureFactor]:
        values = features.to_dict()
        ranked = sorted(
            FEATURE_NAMES,
            key=lambda name: self.feature_importances.get(name, 0.0),
            reverse=True,
        )
        return [
            FeatureFactor(
                feature=humanize_feature(name),
                importance=self.feature_importances.get(name, 0.0),
                impact=feature_impact(name),
                description=feature_description(name),
                value=float(values[name]),
            )
            for name in ranked[:top_n]
        ]

    @staticmethod
    def recommend_actions(factors: Sequence[FeatureFactor], level: str) -> List[str]:
        actions: List[str] = []
        if level == "high":
            actions.append("Schedule immediate executive check-in")
            actions.append("Activate priority support channel")

        for factor in factors:
            if "Support" in factor.feature:
                actions.append("Provide enhanced support training")
            elif "Usage" in factor.feature:
                actions.append("Schedule product adoption session")
            elif "Health" in factor.feature:
                actions.append("Conduct health score improvement review")

        if not actions:
            actions.append("Monitor customer engagement closely")
        return actions[:MAX_RECOMMENDED_ACTIONS]

    # ------------------------------------------------------------------
    # reporting
    # ------------------------------------------------------------------

    def get_feature_importances(self, top_n: int = TOP_IMPORTANCES) -> List[FeatureImportance]:
        """
        Importances normalised to percent over all features, sorted
        descending and truncated to ``top_n``.
        """
        ranked = sorted(self.feature_importances.items(), key=lambda kv: kv[1], reverse=True)
        total = sum(value for _, value in ranked)

        result = []
        for name, raw in ranked[:top_n]:
            pct = raw / total * 100 if total > 0 else 0.0
            result.append(
                FeatureImportance(
                    feature=humanize_feature(name),
                    importance=pct,
                    impact=feature_impact(name),
                    description=feature_description(name),
                    raw_importance=raw,
                    confidence_level=importance_confidence(pct),
                    actionability=actionability(name),
                )
            )
        return result
