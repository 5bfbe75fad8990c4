from .buckets import MonthBucket, add_months, fill_missing_months, month_start, month_window, months_back, year_start
from .retention import CohortWindows, RetentionMetrics, calculate_retention, cohort_windows
from .sentiment import SentimentSummary, aggregate_sentiment, sentiment_from_distribution

__all__ = [
    "MonthBucket",
    "add_months",
    "fill_missing_months",
    "month_start",
    "month_window",
    "months_back",
    "year_start",
    "CohortWindows",
    "RetentionMetrics",
    "calculate_retention",
    "cohort_windows",
    "SentimentSummary",
    "aggregate_sentiment",
    "sentiment_from_distribution",
]
