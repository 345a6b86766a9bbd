"""
Run-level utilities for the scoring pipeline: logging configuration,
JSON persistence of engine results and the plain-text summary report.
"""
from __future__ import annotations

import json
import logging
import math
import os
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence

# chatty third-party loggers that flood INFO output during plotting
_NOISY_LOGGERS = ("matplotlib", "PIL")


def setup_logging(
    level: int = logging.INFO,
    log_file: str | None = None,
    quiet: Sequence[str] = _NOISY_LOGGERS,
) -> None:
    """
    Configure the root logger for an engine run.

    Parameters
    ----------
    level : int
        Level for engine loggers (default INFO).
    log_file : str | None
        Optional log file; its directory is created on demand. Records are
        always echoed to stderr as well.
    quiet : sequence of str
        Logger names capped at WARNING regardless of ``level``.
    """
    handlers: list = [logging.StreamHandler()]
    if log_file:
        os.makedirs(os.path.dirname(log_file) or ".", exist_ok=True)
        handlers.append(logging.FileHandler(log_file))

    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        handlers=handlers,
    )
    for name in quiet:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))


def _json_safe(value: Any) -> Any:
    """NaN/inf metrics (e.g. ROC-AUC on a single-class set) become null."""
    if isinstance(value, float) and not math.isfinite(value):
        return None
    if isinstance(value, dict):
        return {k: _json_safe(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_json_safe(v) for v in value]
    return value


def save_results(results: Dict[str, Any], path: str) -> None:
    """Persist engine results as JSON with a UTC save timestamp."""
    os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
    payload = _json_safe(dict(results))
    payload["_saved_at"] = datetime.now(timezone.utc).isoformat()
    with open(path, "w") as fh:
        json.dump(payload, fh, indent=2, default=str)
    logging.getLogger(__name__).info("Results saved to %s", path)


def format_engine_summary(
    model_metrics: Dict[str, Any],
    segmentation: Dict[str, Dict[str, float]],
    importances: List[Dict[str, Any]],
    recommendation_counts: Dict[str, int],
    outcome_summary: Optional[List[Dict[str, Any]]] = None,
) -> str:
    """
    Format a human-readable scoring report.

    Parameters
    ----------
    model_metrics : dict from MLEngine.get_model_metrics().
    segmentation : dict from MLEngine.risk_segmentation().
    importances : list of FeatureImportance.to_dict() entries.
    recommendation_counts : intervention type -> number of customers.
    outcome_summary : list of summarize_outcomes() rows, optional.

    Returns
    -------
    str : multi-line formatted report.
    """
    lines = [
        "=" * 70,
        "  CHURN ENGINE SUMMARY",
        "=" * 70,
        "",
        "[Model]",
        f"  Data source         : {model_metrics.get('data_source', 'N/A')}",
        f"  Trees               : {model_metrics.get('n_trees', 0)}",
        f"  Training samples    : {model_metrics.get('n_samples', 0):,}",
        f"  MAE                 : {model_metrics.get('mae', 0):.4f}",
        f"  RMSE                : {model_metrics.get('rmse', 0):.4f}",
        f"  R2                  : {model_metrics.get('r2', 0):.4f}",
        f"  ROC-AUC (p>0.5)     : {model_metrics.get('roc_auc', float('nan')):.4f}",
        "",
        "[Risk Segmentation]",
    ]
    for tier in ("high", "medium", "low"):
        seg = segmentation.get(tier, {})
        lines.append(
            f"  {tier.capitalize():<20}: {seg.get('count', 0):,} ({seg.get('percentage', 0):.1f}%)"
        )

    lines += ["", "[Top Feature Importances]"]
    for item in importances:
        lines.append(
            f"  {item['feature']:<20}: {item['importance']:.1f}% "
            f"({item['impact']}, {item['actionability']} actionability)"
        )

    lines += ["", "[Recommended Interventions]"]
    for action, count in sorted(recommendation_counts.items(), key=lambda kv: -kv[1]):
        lines.append(f"  {action:<20}: {count:,}")

    lines += ["", "[Intervention Outcomes]"]
    if not outcome_summary:
        lines.append("  No outcomes reported")
    for row in outcome_summary or []:
        lines.append(
            f"  {row['intervention_type']:<20}: {row['successes']}/{row['attempts']} "
            f"({row['success_rate']:.1%}, CI {row['ci_lower']:.1%}-{row['ci_upper']:.1%})"
        )

    lines += ["", "=" * 70]
    return "\n".join(lines)
