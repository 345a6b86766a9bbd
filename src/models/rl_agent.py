"""
Tabular Q-learning agent that chooses retention interventions.

States are coarse ``{health}_{support}_{engagement}`` tier strings; actions are
the fixed intervention types from the config. Action choice is epsilon-greedy
and Q-values are updated from reported intervention outcomes.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Sequence

import numpy as np

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", ".."))
from configs.config import (
    ACTION_BASE_SUCCESS_RATES,
    ACTION_DESCRIPTIONS,
    ACTIONS,
    DEFAULT_SUCCESS_RATE,
    DISCOUNT_FACTOR,
    EXPLORATION_RATE,
    INITIAL_Q_SCALE,
    LEARNING_RATE,
    MAX_SUCCESS_RATE,
    MIN_SUCCESS_RATE,
    SEED_STATES,
)
from src.data.feature_extractor import CustomerFeatures
from src.models.schemas import InterventionRecommendation

logger = logging.getLogger(__name__)


def _tier(value: float, high: float, medium: float) -> str:
    if value > high:
        return "high"
    if value > medium:
        return "medium"
    return "low"


def encode_state(features: CustomerFeatures) -> str:
    """Bucket health, support load and engagement into a state key."""
    health = _tier(features.health_score, 70, 40)
    support = _tier(features.support_tickets, 5, 2)
    if features.days_since_last_login < 7:
        engagement = "high"
    elif features.days_since_last_login < 30:
        engagement = "medium"
    else:
        engagement = "low"
    return f"{health}_{support}_{engagement}"


def intervention_priority(features: CustomerFeatures) -> str:
    """
    Priority from a weighted risk score, independent of the forest's
    risk level; the two can disagree.
    """
    risk_score = (
        (100 - features.health_score) * 0.3
        + features.support_tickets * 5
        + (features.days_since_last_login / 30) * 20
    )
    if risk_score > 60:
        return "high"
    if risk_score > 30:
        return "medium"
    return "low"


def estimate_success_rate(action: str, features: CustomerFeatures) -> float:
    rate = ACTION_BASE_SUCCESS_RATES.get(action, DEFAULT_SUCCESS_RATE)
    if features.health_score > 70:
        rate += 0.1
    if features.nps_score > 7:
        rate += 0.1
    if features.support_tickets < 3:
        rate += 0.05
    return min(MAX_SUCCESS_RATE, max(MIN_SUCCESS_RATE, rate))


def action_reasoning(features: CustomerFeatures) -> str:
    if features.health_score < 40:
        return "Low health score indicates need for immediate attention"
    if features.support_tickets > 5:
        return "High support volume suggests product or service issues"
    if features.days_since_last_login > 30:
        return "Extended absence indicates disengagement risk"
    return "Proactive intervention to maintain customer health"


class ReinforcementLearningAgent:
    """
    Epsilon-greedy Q-learning over a small, lazily grown Q-table.

    Parameters
    ----------
    learning_rate : float (α)
    discount_factor : float (γ)
    exploration_rate : float (ε)
        Probability of picking a uniformly random action.
    actions : sequence of str
        Closed set of intervention types.
    random_state : int, optional
        Seed for exploration draws and Q-table seeding.
    """

    def __init__(
        self,
        learning_rate: float = LEARNING_RATE,
        discount_factor: float = DISCOUNT_FACTOR,
        exploration_rate: float = EXPLORATION_RATE,
        actions: Sequence[str] = ACTIONS,
        random_state: Optional[int] = None,
    ) -> None:
        if not 0 <= exploration_rate <= 1:
            raise ValueError("exploration_rate must be in [0, 1].")
        if not 0 < learning_rate <= 1:
            raise ValueError("learning_rate must be in (0, 1].")
        if not actions:
            raise ValueError("actions must not be empty.")

        self.learning_rate = learning_rate
        self.discount_factor = discount_factor
        self.exploration_rate = exploration_rate
        self.actions: List[str] = list(actions)
        self._rng = np.random.default_rng(random_state)
        self.q_table: Dict[str, Dict[str, float]] = {}
        self._seed_q_table()

    def _seed_q_table(self) -> None:
        for state in SEED_STATES:
            self.q_table[state] = {
                action: float(self._rng.random() * INITIAL_Q_SCALE) for action in self.actions
            }

    # ------------------------------------------------------------------
    # policy
    # ------------------------------------------------------------------

    def best_action(self, state: str) -> str:
        action_values = self.q_table.get(state)
        if not action_values:
            return self.actions[0]
        # first maximum wins ties, matching insertion order
        best, best_value = self.actions[0], -np.inf
        for action, value in action_values.items():
            if value > best_value:
                best, best_value = action, value
        return best

    def choose_action(self, state: str) -> str:
        if self._rng.random() < self.exploration_rate:
            return self.actions[int(self._rng.integers(0, len(self.actions)))]
        return self.best_action(state)

    def select_action(self, features: CustomerFeatures) -> InterventionRecommendation:
        action = self.choose_action(encode_state(features))
        success = estimate_success_rate(action, features)
        return InterventionRecommendation(
            type=action,
            priority=intervention_priority(features),
            estimated_success=success,
            estimated_revenue_saved=features.mrr * 12 * success,
            description=ACTION_DESCRIPTIONS.get(action, "Custom intervention strategy"),
            reasoning=action_reasoning(features),
        )

    # ------------------------------------------------------------------
    # learning
    # ------------------------------------------------------------------

    def q_value(self, state: str, action: str) -> float:
        return self.q_table.get(state, {}).get(action, 0.0)

    def update_policy(
        self,
        state: CustomerFeatures,
        action: str,
        reward: float,
        next_state: Optional[CustomerFeatures] = None,
    ) -> float:
        """
        Apply Q(s,a) ← Q(s,a) + α·(r + γ·max_a' Q(s',a') − Q(s,a)).

        Without ``next_state`` the transition is terminal and the
        bootstrap term is 0. Returns the updated Q-value.
        """
        state_key = encode_state(state)
        action_values = self.q_table.setdefault(state_key, {})
        current = action_values.get(action, 0.0)

        max_next = 0.0
        if next_state is not None:
            next_values = self.q_table.get(encode_state(next_state))
            if next_values:
                max_next = max(next_values.values())

        updated = current + self.learning_rate * (
            reward + self.discount_factor * max_next - current
        )
        action_values[action] = updated

        logger.info(
            "Updated Q-value for %s in state %s: %.3f -> %.3f (reward: %.3f)",
            action, state_key, current, updated, reward,
        )
        return updated

    # ------------------------------------------------------------------
    # reporting
    # ------------------------------------------------------------------

    def get_action_analytics(self) -> Dict[str, Dict[str, Any]]:
        """Best action, mean Q-value and full action values for every known state."""
        analytics: Dict[str, Dict[str, Any]] = {}
        for state, action_values in self.q_table.items():
            if not action_values:
                continue
            analytics[state] = {
                "best_action": self.best_action(state),
                "avg_q_value": float(np.mean(list(action_values.values()))),
                "action_values": dict(action_values),
            }
        return analytics
