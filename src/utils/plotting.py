"""
Visualisation utilities: feature importance, churn probability distribution,
risk tiers and the intervention Q-table.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Sequence

import matplotlib
matplotlib.use("Agg")
import matplotlib.pyplot as plt
import numpy as np
import pandas as pd
import seaborn as sns

logger = logging.getLogger(__name__)

_PALETTE = sns.color_palette("deep")
_FIGSIZE_WIDE = (12, 5)
_FIGSIZE_SQUARE = (8, 6)
_TIER_ORDER = ["high", "medium", "low"]


def plot_feature_importance(
    importances: Sequence[Any],
    title: str = "Churn Feature Importance",
    save_path: Optional[str] = None,
) -> plt.Figure:
    """Horizontal bar chart of FeatureImportance entries, coloured by impact."""
    names = [imp.feature for imp in importances]
    values = [imp.importance for imp in importances]
    colors = [_PALETTE[3] if imp.impact == "negative" else _PALETTE[2] for imp in importances]

    fig, ax = plt.subplots(figsize=(9, max(4, len(names) * 0.45)))
    ax.barh(names[::-1], values[::-1], color=colors[::-1], edgecolor="white")
    ax.set_xlabel("Importance (%)", fontsize=12)
    ax.set_title(title, fontsize=14, fontweight="bold")
    ax.grid(True, axis="x", alpha=0.3)
    fig.tight_layout()

    if save_path:
        fig.savefig(save_path, dpi=150, bbox_inches="tight")
        logger.info("Feature importance plot saved to %s", save_path)
    return fig


def plot_churn_distribution(
    probabilities: np.ndarray,
    title: str = "Churn Probability Distribution",
    save_path: Optional[str] = None,
) -> plt.Figure:
    """Histogram of predicted churn probabilities with the risk thresholds marked."""
    fig, ax = plt.subplots(figsize=_FIGSIZE_SQUARE)

    sns.histplot(
        probabilities, bins=20, ax=ax,
        color=_PALETTE[0], edgecolor="white", alpha=0.7,
    )
    ax.axvline(0.4, color=_PALETTE[1], linestyle="--", linewidth=1.5, label="Medium risk")
    ax.axvline(0.7, color=_PALETTE[3], linestyle="--", linewidth=1.5, label="High risk")

    ax.set_xlabel("Churn Probability", fontsize=12)
    ax.set_ylabel("Customers", fontsize=12)
    ax.set_xlim(0, 1)
    ax.set_title(title, fontsize=14, fontweight="bold")
    ax.legend(fontsize=11)
    ax.grid(True, alpha=0.3)
    fig.tight_layout()

    if save_path:
        fig.savefig(save_path, dpi=150, bbox_inches="tight")
        logger.info("Churn distribution saved to %s", save_path)
    return fig


def plot_risk_tiers(
    scores_df: pd.DataFrame,
    title: str = "Customers by Risk Tier",
    save_path: Optional[str] = None,
) -> plt.Figure:
    """Risk-level counts next to intervention priority by risk level."""
    tier_colors = {"high": _PALETTE[3], "medium": _PALETTE[1], "low": _PALETTE[2]}
    fig, axes = plt.subplots(1, 2, figsize=_FIGSIZE_WIDE)

    counts = scores_df["risk_level"].value_counts().reindex(_TIER_ORDER, fill_value=0)
    axes[0].bar(
        counts.index,
        counts.values,
        color=[tier_colors[t] for t in counts.index],
        edgecolor="white",
    )
    axes[0].set_title("Model Risk Level", fontsize=12, fontweight="bold")
    axes[0].set_ylabel("Count")
    axes[0].grid(True, axis="y", alpha=0.3)

    cross = pd.crosstab(scores_df["risk_level"], scores_df["priority"])
    cross = cross.reindex(index=_TIER_ORDER, columns=_TIER_ORDER, fill_value=0)
    cross.plot(
        kind="bar", ax=axes[1], stacked=True,
        color=[tier_colors[t] for t in _TIER_ORDER], edgecolor="white",
    )
    axes[1].set_title("Intervention Priority by Risk Level", fontsize=12, fontweight="bold")
    axes[1].set_ylabel("Count")
    axes[1].set_xlabel("Risk Level")
    axes[1].tick_params(axis="x", rotation=0)
    axes[1].grid(True, axis="y", alpha=0.3)
    axes[1].legend(title="Priority", fontsize=10)

    fig.suptitle(title, fontsize=14, fontweight="bold", y=1.02)
    fig.tight_layout()

    if save_path:
        fig.savefig(save_path, dpi=150, bbox_inches="tight")
        logger.info("Risk tier plot saved to %s", save_path)
    return fig


def plot_q_table(
    action_analytics: Dict[str, Dict[str, Any]],
    title: str = "Intervention Q-Values by State",
    save_path: Optional[str] = None,
) -> plt.Figure:
    """Heatmap of Q-values, one row per encoded state."""
    q_df = pd.DataFrame(
        {state: info["action_values"] for state, info in action_analytics.items()}
    ).T.sort_index()

    fig, ax = plt.subplots(figsize=(11, max(3, len(q_df) * 0.5)))
    sns.heatmap(q_df, annot=True, fmt=".3f", cmap="viridis", ax=ax, cbar_kws={"label": "Q-value"})
    ax.set_xlabel("Intervention", fontsize=12)
    ax.set_ylabel("State", fontsize=12)
    ax.set_title(title, fontsize=14, fontweight="bold")
    ax.tick_params(axis="x", rotation=30)
    fig.tight_layout()

    if save_path:
        fig.savefig(save_path, dpi=150, bbox_inches="tight")
        logger.info("Q-table heatmap saved to %s", save_path)
    return fig
