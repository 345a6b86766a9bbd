"""
Shared fixtures: a small external-format mock-data payload.
"""
import json
from datetime import datetime, timedelta, timezone

import numpy as np
import pytest

REFERENCE_TIME = datetime(2024, 7, 1, tzinfo=timezone.utc)


def make_external_payload(n_customers: int = 40, seed: int = 0) -> dict:
    rng = np.random.default_rng(seed)
    customers = []
    sessions = []
    for cid in range(1, n_customers + 1):
        health = int(rng.integers(5, 100))
        tickets = int(rng.integers(0, 12))
        login_gap = int(rng.integers(0, 60))
        churn = float(np.clip(0.5 - health / 200 + tickets / 30 + login_gap / 120, 0, 1))
        customers.append(
            {
                "id": cid,
                "health_score": health,
                "nps_score": int(rng.integers(0, 11)),
                "support_tickets": tickets,
                "feature_usage": {
                    "login": int(rng.integers(0, 50)),
                    "features": int(rng.integers(0, 20)),
                    "api_calls": int(rng.integers(0, 200)),
                },
                "mrr": float(rng.integers(50, 2000)),
                "plan": ["Basic", "Pro", "Enterprise"][cid % 3],
                "signup_date": (REFERENCE_TIME - timedelta(days=int(rng.integers(30, 900)))).isoformat(),
                "last_login": (REFERENCE_TIME - timedelta(days=login_gap)).isoformat(),
                "churn_risk": round(churn, 4),
            }
        )
        for _ in range(int(rng.integers(0, 4))):
            start = REFERENCE_TIME - timedelta(days=int(rng.integers(1, 30)))
            sessions.append(
                {
                    "customer_id": cid,
                    "started_at": start.isoformat(),
                    "ended_at": (start + timedelta(minutes=int(rng.integers(5, 90)))).isoformat(),
                    "pages_viewed": int(rng.integers(1, 40)),
                }
            )
    return {"customers": customers, "user_sessions": sessions}


@pytest.fixture
def external_payload():
    return make_external_payload()


@pytest.fixture
def external_data_file(tmp_path, external_payload):
    path = tmp_path / "mock-data.json"
    path.write_text(json.dumps(external_payload))
    return str(path)
