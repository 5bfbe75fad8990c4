"""
Rating distribution to sentiment percentages.

Positive is 4-5 stars, neutral 3, negative 1-2.
"""
from collections import Counter
from dataclasses import dataclass, field
from typing import Dict, Iterable, Mapping

from fundraising.core.errors import ValidationError
from fundraising.core.numeric import percentage, round_half_up

MIN_RATING = 1
MAX_RATING = 5


def _empty_distribution() -> Dict[int, int]:
    return {rating: 0 for rating in range(MIN_RATING, MAX_RATING + 1)}


@dataclass(frozen=True)
class SentimentSummary:
    total_feedback: int = 0
    average_rating: float = 0.0
    positive: float = 0.0
    neutral: float = 0.0
    negative: float = 0.0
    rating_distribution: Dict[int, int] = field(default_factory=_empty_distribution)


def sentiment_from_distribution(distribution: Mapping[int, int]) -> SentimentSummary:
    """Summarize ``{rating: count}``; an empty distribution yields all zeros"""
    counts = _empty_distribution()
    for rating, count in distribution.items():
        rating = int(rating)
        if rating < MIN_RATING or rating > MAX_RATING:
            raise ValidationError(f"Rating must be between {MIN_RATING} and {MAX_RATING}, got {rating}")
        counts[rating] += int(count)

    total = sum(counts.values())
    if total == 0:
        return SentimentSummary()

    positive = counts[4] + counts[5]
    neutral = counts[3]
    negative = counts[1] + counts[2]
    rating_sum = sum(rating * count for rating, count in counts.items())

    return SentimentSummary(
        total_feedback=total,
        average_rating=round_half_up(rating_sum / total, 1),
        positive=percentage(positive, total),
        neutral=percentage(neutral, total),
        negative=percentage(negative, total),
        rating_distribution=counts,
    )


def aggregate_sentiment(ratings: Iterable[int]) -> SentimentSummary:
    return sentiment_from_distribution(Counter(int(rating) for rating in ratings))
