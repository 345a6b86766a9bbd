"""
Result containers returned by the scoring engine.
"""
from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional, Union


@dataclass
class FeatureFactor:
    """One of the top drivers attached to an individual prediction."""

    feature: str
    importance: float
    impact: str
    description: str
    value: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class FeatureImportance:
    """Model-wide importance of one feature, normalised to percent."""

    feature: str
    importance: float
    impact: str
    description: str
    raw_importance: float
    confidence_level: str
    actionability: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "feature": self.feature,
            "importance": round(self.importance, 4),
            "impact": self.impact,
            "description": self.description,
            "raw_importance": round(self.raw_importance, 6),
            "confidence_level": self.confidence_level,
            "actionability": self.actionability,
        }


@dataclass
class ChurnPrediction:
    customer_id: Any
    churn_probability: float
    risk_level: str
    confidence: float
    top_factors: List[FeatureFactor] = field(default_factory=list)
    recommended_actions: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "customer_id": self.customer_id,
            "churn_probability": round(self.churn_probability, 6),
            "risk_level": self.risk_level,
            "confidence": round(self.confidence, 6),
            "top_factors": [f.to_dict() for f in self.top_factors],
            "recommended_actions": list(self.recommended_actions),
        }


@dataclass
class InterventionRecommendation:
    type: str
    priority: str
    estimated_success: float
    estimated_revenue_saved: float
    description: str
    reasoning: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type,
            "priority": self.priority,
            "estimated_success": round(self.estimated_success, 4),
            "estimated_revenue_saved": round(self.estimated_revenue_saved, 2),
            "description": self.description,
            "reasoning": self.reasoning,
        }


@dataclass
class ScoredPrediction:
    """Successful model score for one customer."""

    customer_id: Any
    prediction: ChurnPrediction
    status: str = "scored"

    @property
    def churn_probability(self) -> float:
        return self.prediction.churn_probability

    def to_dict(self) -> Dict[str, Any]:
        return {"status": self.status, **self.prediction.to_dict()}


@dataclass
class DegradedPrediction:
    """
    Model could not score the customer.

    ``fallback_probability`` is the customer's stored churn risk when the
    record exists, otherwise None.
    """

    customer_id: Any
    error: str
    fallback_probability: Optional[float] = None
    status: str = "degraded"

    @property
    def churn_probability(self) -> Optional[float]:
        return self.fallback_probability

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


ScoringResult = Union[ScoredPrediction, DegradedPrediction]


@dataclass
class OutcomeRecord:
    """A reported intervention outcome and the Q-update it produced."""

    customer_id: Any
    intervention_type: str
    success: bool
    revenue_impact: Optional[float]
    reward: float
    state: str
    previous_q: float
    updated_q: float

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
