"""
End-to-end scoring runner.

Orchestrates:
  1. Data loading (external mock-data file, synthetic fallback)
  2. Engine initialisation (random forest training + agent seeding)
  3. Churn scoring for every known customer
  4. Intervention recommendation
  5. Replay of reported intervention outcomes and their summary
  6. Feature importance and model metrics
  7. Plots, CSV/JSON outputs and a text summary
"""
from __future__ import annotations

import logging
import os
import sys
from collections import Counter
from typing import Any, Dict, Optional, Sequence

# ensure src/ is importable when running from project root
sys.path.insert(0, os.path.join(os.path.dirname(__file__)))

import pandas as pd

from configs.config import DEFAULT_DATA_PATH, RANDOM_STATE
from src.data.data_pipeline import CustomerDataLoader
from src.engine.ml_engine import MLEngine
from src.models.schemas import ScoredPrediction
from src.utils.helpers import format_engine_summary, save_results, setup_logging

logger = logging.getLogger(__name__)


def run_pipeline(
    data_path: str = DEFAULT_DATA_PATH,
    output_dir: str = "outputs",
    n_synthetic_customers: int = 100,
    random_state: int = RANDOM_STATE,
    outcome_reports: Optional[Sequence[Dict[str, Any]]] = None,
) -> dict:
    """
    Score every known customer and write the results.

    Parameters
    ----------
    data_path : str
        Mock-data JSON file. Missing or non-external files trigger synthetic mode.
    output_dir : str
        Directory for CSV, JSON, plots and the text report.
    n_synthetic_customers : int
        Number of customer ids scored in synthetic mode.
    random_state : int
        Seed for training and exploration.
    outcome_reports : sequence of dict, optional
        Reported intervention outcomes (customer_id, intervention_type, success,
        revenue_impact) fed to the agent before the outcome summary is built.

    Returns
    -------
    dict : consolidated metrics and summaries.
    """
    setup_logging()
    os.makedirs(output_dir, exist_ok=True)

    # ------------------------------------------------------------------
    # 1. data + engine
    # ------------------------------------------------------------------
    loader = CustomerDataLoader(data_path)
    loader.load()

    engine = MLEngine(data_loader=loader, random_state=random_state)
    engine.initialize()

    # ------------------------------------------------------------------
    # 2. scoring and recommendations
    # ------------------------------------------------------------------
    customer_ids = engine.known_customer_ids(n_synthetic=n_synthetic_customers)
    logger.info("Scoring %d customers…", len(customer_ids))

    rows = []
    for result in engine.batch_predict(customer_ids):
        row = {
            "customer_id": result.customer_id,
            "status": result.status,
            "churn_probability": result.churn_probability,
        }
        if isinstance(result, ScoredPrediction):
            recommendation = engine.recommend_intervention(result.customer_id)
            row.update(
                {
                    "risk_level": result.prediction.risk_level,
                    "confidence": result.prediction.confidence,
                    "intervention": recommendation.type,
                    "priority": recommendation.priority,
                    "estimated_success": recommendation.estimated_success,
                    "estimated_revenue_saved": recommendation.estimated_revenue_saved,
                }
            )
        rows.append(row)

    scores_df = pd.DataFrame(rows)
    scores_df.to_csv(os.path.join(output_dir, "customer_scores.csv"), index=False)

    scored_df = scores_df[scores_df["status"] == "scored"]
    recommendation_counts = dict(Counter(scored_df.get("intervention", pd.Series(dtype=object)).dropna()))
    segmentation = engine.risk_segmentation(customer_ids)

    # ------------------------------------------------------------------
    # 3. model reporting
    # ------------------------------------------------------------------
    importances = engine.get_feature_importances()
    model_metrics = engine.get_model_metrics()

    # ------------------------------------------------------------------
    # 4. reported intervention outcomes
    # ------------------------------------------------------------------
    for report_item in outcome_reports or []:
        engine.update_intervention_outcome(
            report_item["customer_id"],
            report_item["intervention_type"],
            bool(report_item["success"]),
            report_item.get("revenue_impact"),
        )
    outcome_summary = engine.get_outcome_summary()
    outcome_summary.to_csv(os.path.join(output_dir, "outcome_summary.csv"), index=False)
    outcome_dicts = outcome_summary.to_dict("records")

    # ------------------------------------------------------------------
    # 5. plots (non-blocking; saved to disk)
    # ------------------------------------------------------------------
    try:
        from src.utils.plotting import (
            plot_churn_distribution,
            plot_feature_importance,
            plot_q_table,
            plot_risk_tiers,
        )

        plot_feature_importance(
            importances,
            save_path=os.path.join(output_dir, "feature_importance.png"),
        )
        plot_churn_distribution(
            scored_df["churn_probability"].to_numpy(dtype=float),
            save_path=os.path.join(output_dir, "churn_distribution.png"),
        )
        plot_risk_tiers(
            scored_df,
            save_path=os.path.join(output_dir, "risk_tiers.png"),
        )
        plot_q_table(
            engine.get_action_analytics(),
            save_path=os.path.join(output_dir, "q_table.png"),
        )
    except Exception as exc:
        logger.warning("Plot generation failed: %s", exc)

    # ------------------------------------------------------------------
    # 6. summary
    # ------------------------------------------------------------------
    importance_dicts = [imp.to_dict() for imp in importances]
    all_metrics = {
        "model_metrics": model_metrics,
        "segmentation": segmentation,
        "feature_importances": importance_dicts,
        "recommendation_counts": recommendation_counts,
        "n_customers": len(customer_ids),
        "n_degraded": int((scores_df["status"] == "degraded").sum()),
        "outcome_summary": outcome_dicts,
    }

    save_results(all_metrics, os.path.join(output_dir, "engine_results.json"))

    report = format_engine_summary(
        model_metrics, segmentation, importance_dicts, recommendation_counts, outcome_dicts
    )
    print(report)

    with open(os.path.join(output_dir, "engine_report.txt"), "w") as fh:
        fh.write(report)

    return all_metrics


if __name__ == "__main__":
    run_pipeline()
