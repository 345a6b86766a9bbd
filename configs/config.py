import os

# ensemble parameters
NUM_TREES = 15
MAX_TREE_DEPTH = 5
MIN_SAMPLES_SPLIT = 5

# reinforcement learning parameters
LEARNING_RATE = 0.1
DISCOUNT_FACTOR = 0.9
EXPLORATION_RATE = 0.1
INITIAL_Q_SCALE = 0.1
SEED_STATES = ["low_risk", "medium_risk", "high_risk"]

# reward shaping for reported outcomes
SUCCESS_REWARD = 1.0
FAILURE_REWARD = -0.5
REVENUE_BONUS_DIVISOR = 10000.0
MAX_REVENUE_BONUS = 0.5

RANDOM_STATE = 42

# data settings
DEFAULT_DATA_PATH = os.environ.get(
    "CHURN_MOCK_DATA_PATH", os.path.join(os.getcwd(), "mock-data.json")
)
SYNTHETIC_TRAINING_SAMPLES = 100
NEVER_LOGGED_IN_DAYS = 3650
DEFAULT_NPS_SCORE = 5
TARGET_COLUMN = "churn_risk"

# risk thresholds
HIGH_RISK_THRESHOLD = 0.7
MEDIUM_RISK_THRESHOLD = 0.4
SEGMENT_HIGH_THRESHOLD = 0.8
SEGMENT_MEDIUM_THRESHOLD = 0.5

TOP_FACTORS = 3
TOP_IMPORTANCES = 8
MAX_RECOMMENDED_ACTIONS = 3

# feature vector, positional order matters for tree splits
FEATURE_NAMES = [
    "health_score",
    "nps_score",
    "support_tickets",
    "feature_usage_total",
    "days_since_signup",
    "days_since_last_login",
    "mrr",
    "plan_value",
    "session_count",
    "avg_session_duration",
    "total_pages_viewed",
]

FEATURE_LABELS = {
    "health_score": "Health Score",
    "nps_score": "NPS Score",
    "support_tickets": "Support Tickets",
    "feature_usage_total": "Feature Usage",
    "days_since_signup": "Account Age",
    "days_since_last_login": "Last Login",
    "mrr": "Monthly Revenue",
    "plan_value": "Plan Tier",
    "session_count": "Session Activity",
    "avg_session_duration": "Session Duration",
    "total_pages_viewed": "Page Views",
}

FEATURE_DESCRIPTIONS = {
    "health_score": "Overall customer health metric",
    "nps_score": "Net Promoter Score feedback",
    "support_tickets": "Number of support requests",
    "feature_usage_total": "Total feature engagement",
    "days_since_signup": "Account tenure",
    "days_since_last_login": "Recent activity level",
    "mrr": "Monthly recurring revenue",
    "plan_value": "Subscription tier value",
    "session_count": "User session frequency",
    "avg_session_duration": "Average session length",
    "total_pages_viewed": "Platform exploration depth",
}

# risk-increasing features, everything else is "positive"
NEGATIVE_IMPACT_FEATURES = [
    "support_tickets",
    "days_since_last_login",
    "days_since_signup",
]

HIGH_ACTIONABILITY_FEATURES = [
    "health_score",
    "feature_usage_total",
    "support_tickets",
    "nps_score",
]
MEDIUM_ACTIONABILITY_FEATURES = [
    "days_since_last_login",
    "days_since_signup",
]

PLAN_VALUES = {
    "Enterprise": 3,
    "Pro": 2,
}
DEFAULT_PLAN_VALUE = 1

# (aliases, weight); the first alias present in the usage map wins
FEATURE_USAGE_WEIGHTS = [
    (("featureA", "login"), 1.0),
    (("featureB", "features"), 1.0),
    (("featureC", "api_calls"), 1.0),
    (("claims",), 5.0),
    (("late_days", "late_payment_days"), 0.5),
    (("price_increase_pct",), 1.0),
]

# uniform sampling ranges for synthetic training data
SYNTHETIC_FEATURE_RANGES = {
    "health_score": (0.0, 100.0),
    "nps_score": (0.0, 10.0),
    "support_tickets": (0, 15),
    "feature_usage_total": (0.0, 1000.0),
    "days_since_signup": (0.0, 1000.0),
    "days_since_last_login": (0.0, 60.0),
    "mrr": (0.0, 1000.0),
    "plan_value": (0.0, 3.0),
    "session_count": (0.0, 50.0),
    "avg_session_duration": (0.0, 120.0),
    "total_pages_viewed": (0.0, 200.0),
}

# interventions
ACTION_BASE_SUCCESS_RATES = {
    "Executive Check-in": 0.75,
    "Support Recovery": 0.65,
    "Engagement Boost": 0.55,
    "Payment Recovery": 0.80,
    "Onboarding Call": 0.70,
    "Upsell Proposal": 0.40,
    "Renewal Reminder": 0.60,
}
ACTIONS = list(ACTION_BASE_SUCCESS_RATES)
DEFAULT_SUCCESS_RATE = 0.5
MIN_SUCCESS_RATE = 0.1
MAX_SUCCESS_RATE = 0.95

ACTION_DESCRIPTIONS = {
    "Executive Check-in": "Schedule high-level executive outreach",
    "Support Recovery": "Intensive support intervention program",
    "Engagement Boost": "Feature adoption and engagement campaign",
    "Payment Recovery": "Billing issue resolution and recovery",
    "Onboarding Call": "Comprehensive onboarding review session",
    "Upsell Proposal": "Value-add upgrade opportunity",
    "Renewal Reminder": "Proactive renewal preparation",
}

# outcome analytics
CONFIDENCE_LEVEL = 0.95
