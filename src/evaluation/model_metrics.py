"""
Quality metrics for the churn ensemble against its continuous risk labels.
"""
from __future__ import annotations

import logging
from typing import Dict

import numpy as np
from sklearn.metrics import (
    mean_absolute_error,
    mean_squared_error,
    r2_score,
    roc_auc_score,
)

logger = logging.getLogger(__name__)


def compute_regression_metrics(
    y_true: np.ndarray,
    y_pred: np.ndarray,
    churn_threshold: float = 0.5,
) -> Dict[str, float]:
    """
    MAE, RMSE and R² of predicted churn probabilities, plus ROC-AUC with the
    labels binarised at ``churn_threshold`` when both classes are present.

    Returns
    -------
    dict with keys: n_samples, mae, rmse, r2, roc_auc (NaN if undefined)
    """
    y_true = np.asarray(y_true, dtype=float)
    y_pred = np.asarray(y_pred, dtype=float)
    if len(y_true) != len(y_pred):
        raise ValueError("y_true and y_pred must have the same length.")
    if len(y_true) == 0:
        raise ValueError("Cannot compute metrics on an empty set.")

    y_binary = (y_true > churn_threshold).astype(int)
    if len(np.unique(y_binary)) == 2:
        auc = float(roc_auc_score(y_binary, y_pred))
    else:
        auc = float("nan")

    r2 = float(r2_score(y_true, y_pred)) if len(y_true) > 1 else float("nan")
    metrics = {
        "n_samples": int(len(y_true)),
        "mae": float(mean_absolute_error(y_true, y_pred)),
        "rmse": float(np.sqrt(mean_squared_error(y_true, y_pred))),
        "r2": r2,
        "roc_auc": auc,
    }
    logger.info(
        "Model evaluation — MAE: %.4f | RMSE: %.4f | R2: %.4f | ROC-AUC: %.4f",
        metrics["mae"],
        metrics["rmse"],
        metrics["r2"],
        metrics["roc_auc"],
    )
    return metrics
