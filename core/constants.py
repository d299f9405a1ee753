BUDGET_PERIODS = (
    ("daily", "Daily"),
    ("weekly", "Weekly"),
    ("bi-weekly", "Bi-weekly"),
    ("monthly", "Monthly"),
    ("quarterly", "Quarterly"),
    ("semi-annually", "Semi-annually"),
    ("annually", "Annually"),
    ("custom", "Custom"),
)

BUDGET_PERIOD_VALUES = tuple(value for value, _ in BUDGET_PERIODS)

# Days added for periods without a calendar rule (custom and anything unknown)
DEFAULT_PERIOD_DAYS = 30

# Precision of every stored amount (DecimalField max_digits and decimal_places)
AMOUNT_MAX_DIGITS = 15
AMOUNT_DECIMAL_PLACES = 2

ITEM_TAGS = (
    ("Bills", "🧾 Bills"),
    ("Savings", "🐷 Savings"),
    ("Groceries", "🛒 Groceries"),
    ("Transport", "🚗 Transport"),
    ("Shopping", "🛍️ Shopping"),
    ("Dining", "🍽️ Dining"),
)

MAX_TAG_LENGTH = 50

COLOR_MAP = {
    "primary": "#0d6efd",
    "success": "#198754",
    "danger": "#dc3545",
    "warning": "#ffc107",
    "info": "#0dcaf0",
    "secondary": "#6c757d",
}

TAG_COLORS = {
    "Bills": "danger",
    "Savings": "success",
    "Groceries": "warning",
    "Transport": "info",
    "Shopping": "primary",
    "Dining": "secondary",
}

# Percent-of-allocation thresholds for budget alerts
ITEM_WARNING_THRESHOLD = 75
ITEM_CRITICAL_THRESHOLD = 90
ITEM_EXCEEDED_THRESHOLD = 100
TOTAL_WARNING_THRESHOLD = 80
TOTAL_CRITICAL_THRESHOLD = 95
DEADLINE_ALERT_DAYS = 3
DEADLINE_LOW_USAGE_THRESHOLD = 50
