"""
Error taxonomy for the churn scoring engine.
"""
from __future__ import annotations

from typing import Any


class ChurnEngineError(Exception):
    """Base class for all engine failures."""


class NotInitializedError(ChurnEngineError, RuntimeError):
    """Raised when a model or the engine is used before it has been trained."""


class CustomerNotFoundError(ChurnEngineError, LookupError):
    """Raised when a customer id is absent from the configured dataset."""

    def __init__(self, customer_id: Any) -> None:
        self.customer_id = customer_id
        super().__init__(f"Customer {customer_id} not found")


class MalformedTrainingInputError(ChurnEngineError, ValueError):
    """Raised when training features and labels cannot be paired up."""
