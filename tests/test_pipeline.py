"""
End-to-end test of the scoring runner.
"""
import sys
import os
import json

import pandas as pd

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from pipeline import run_pipeline


class TestRunPipeline:
    def test_synthetic_mode(self, tmp_path):
        out = tmp_path / "outputs"
        results = run_pipeline(
            data_path=str(tmp_path / "missing.json"),
            output_dir=str(out),
            n_synthetic_customers=30,
            random_state=0,
        )
        assert results["n_customers"] == 30
        assert results["n_degraded"] == 0
        assert results["model_metrics"]["data_source"] == "synthetic"
        for name in ["customer_scores.csv", "engine_results.json", "engine_report.txt"]:
            assert (out / name).exists()

        scores = pd.read_csv(out / "customer_scores.csv")
        assert len(scores) == 30
        assert scores["churn_probability"].between(0, 1).all()
        assert sum(results["recommendation_counts"].values()) == 30
        assert results["outcome_summary"] == []
        assert (out / "outcome_summary.csv").exists()

    def test_reported_outcomes_summarised(self, tmp_path):
        out = tmp_path / "outputs"
        reports = [
            {"customer_id": 1, "intervention_type": "Support Recovery", "success": True,
             "revenue_impact": 5000},
            {"customer_id": 2, "intervention_type": "Support Recovery", "success": False},
            {"customer_id": 3, "intervention_type": "Renewal Reminder", "success": True},
        ]
        results = run_pipeline(
            data_path=str(tmp_path / "missing.json"),
            output_dir=str(out),
            n_synthetic_customers=10,
            random_state=0,
            outcome_reports=reports,
        )
        by_type = {row["intervention_type"]: row for row in results["outcome_summary"]}
        assert by_type["Support Recovery"]["attempts"] == 2
        assert by_type["Support Recovery"]["successes"] == 1
        assert by_type["Renewal Reminder"]["success_rate"] == 1.0

        saved = json.loads((out / "engine_results.json").read_text())
        assert len(saved["outcome_summary"]) == 2
        report = (out / "engine_report.txt").read_text()
        assert "[Intervention Outcomes]" in report
        assert "Support Recovery" in report

    def test_dataset_mode(self, tmp_path, external_data_file, external_payload):
        out = tmp_path / "outputs"
        results = run_pipeline(data_path=external_data_file, output_dir=str(out), random_state=0)
        assert results["n_customers"] == len(external_payload["customers"])
        assert results["model_metrics"]["data_source"] == "extended"

        saved = json.loads((out / "engine_results.json").read_text())
        assert saved["segmentation"].keys() == {"high", "medium", "low"}
